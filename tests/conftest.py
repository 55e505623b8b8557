"""Shared fixtures: an in-memory repository backend and plan builders."""

import shutil
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Callable, List, Optional, Set

import pytest

from fakeit.distributions import DayPlan, Plan
from fakeit.errors import GitError
from fakeit.git import Author, BackupRecord

AUTHOR = Author("Test User", "test@example.com")

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class FakeBackend:
    """Records every call; failures are injected per commit attempt."""

    def __init__(
        self,
        clean: bool = True,
        fail_on: Optional[Set[int]] = None,
        fail_all: bool = False,
        backup_error: Optional[Exception] = None,
        restore_error: Optional[Exception] = None,
        prune_error: Optional[Exception] = None,
    ):
        self.clean = clean
        self.fail_on = fail_on or set()
        self.fail_all = fail_all
        self.backup_error = backup_error
        self.restore_error = restore_error
        self.prune_error = prune_error

        self.attempts = 0
        self.adds = 0
        self.commits: List[tuple] = []
        self.backups: List[BackupRecord] = []
        self.restored: List[BackupRecord] = []
        self.cleaned: List[Optional[BackupRecord]] = []
        self.prunes = 0
        self.on_commit: Optional[Callable[[int], None]] = None

    def is_working_directory_clean(self) -> bool:
        return self.clean

    def create_backup(self) -> BackupRecord:
        if self.backup_error:
            raise self.backup_error
        backup = BackupRecord(
            id=f"backup-{len(self.backups) + 1}",
            timestamp=datetime(2024, 1, 1, 12, 0),
            branch="main",
            last_commit="a" * 40,
            commit_count=3,
            path=Path("backup.json"),
        )
        self.backups.append(backup)
        return backup

    def restore_from_backup(self, backup: BackupRecord) -> None:
        if self.restore_error:
            raise self.restore_error
        self.restored.append(backup)
        self.commits.clear()

    def cleanup_backup(self, backup: Optional[BackupRecord]) -> None:
        self.cleaned.append(backup)

    def cleanup_old_backups(self, max_age: timedelta = timedelta(hours=24)) -> int:
        self.prunes += 1
        if self.prune_error:
            raise self.prune_error
        return 0

    def add_all(self) -> None:
        self.adds += 1

    def create_commit(self, message: str, timestamp: datetime, author: Author) -> str:
        attempt = self.attempts
        self.attempts += 1
        if self.fail_all or attempt in self.fail_on:
            raise GitError(f"commit {attempt} failed")
        self.commits.append((message, timestamp, author))
        if self.on_commit:
            self.on_commit(len(self.commits))
        return f"{attempt:040x}"

    def current_branch(self) -> str:
        return "main"

    def total_commit_count(self) -> int:
        return 3 + len(self.commits)

    def has_remote(self) -> bool:
        return False


def make_plan(counts: List[int], start: date = date(2024, 1, 1)) -> Plan:
    """A plan with one message per planned commit."""
    return [
        DayPlan(
            date=start + timedelta(days=i),
            count=count,
            messages=[f"Commit {i}-{slot}" for slot in range(count)],
        )
        for i, count in enumerate(counts)
    ]


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def isolated_git(monkeypatch):
    """Keep the user's git configuration out of test repositories."""
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", "/dev/null")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
