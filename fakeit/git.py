"""
Repository backend: the git operations the executor relies on.

``RepositoryBackend`` is the boundary the executor is written against;
``GitBackend`` implements it by shelling out to the ``git`` binary.
"""

import json
import logging
import os
import subprocess
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Protocol

from .errors import BackupError, GitError, PreconditionError

logger = logging.getLogger(__name__)

BACKUP_DIR_NAME = "fakeit-backups"
BACKUP_REF_PREFIX = "refs/fakeit/backups/"
BACKUP_MAX_AGE = timedelta(hours=24)
HISTORY_HEADER = "# Fake Git History Log\n# Format: DATE | AUTHOR | EMAIL | MESSAGE\n\n"


@dataclass(frozen=True)
class Author:
    name: str
    email: str


@dataclass(frozen=True)
class BackupRecord:
    """Where the repository stood before a run started."""

    id: str
    timestamp: datetime
    branch: str
    last_commit: Optional[str]
    commit_count: int
    path: Path

    def serialize(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        data["path"] = str(self.path)
        return data

    @staticmethod
    def deserialize(data: dict) -> "BackupRecord":
        return BackupRecord(
            id=data["id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            branch=data["branch"],
            last_commit=data.get("last_commit"),
            commit_count=int(data.get("commit_count", 0)),
            path=Path(data["path"]),
        )


@dataclass(frozen=True)
class CommitInfo:
    hash: str
    date: datetime
    message: str
    author: str
    email: str


@dataclass(frozen=True)
class RepositoryInfo:
    path: Path
    branch: str
    remote: Optional[str]
    remote_url: Optional[str]
    total_commits: int
    last_commit: Optional[CommitInfo]


class RepositoryBackend(Protocol):
    """Version-control operations consumed by the plan executor."""

    def is_working_directory_clean(self) -> bool:
        """Return True when there is nothing staged, modified or untracked."""

    def create_backup(self) -> BackupRecord:
        """Record the current branch and commit so they can be restored."""

    def restore_from_backup(self, backup: BackupRecord) -> None:
        """Put the repository back at the recorded branch and commit."""

    def cleanup_backup(self, backup: Optional[BackupRecord]) -> None:
        """Remove a backup; best-effort."""

    def cleanup_old_backups(self, max_age: timedelta = BACKUP_MAX_AGE) -> int:
        """Remove backups older than max_age and return how many went."""

    def add_all(self) -> None:
        """Stage every pending change."""

    def create_commit(self, message: str, timestamp: datetime, author: Author) -> str:
        """Create a backdated commit and return its hash."""

    def current_branch(self) -> str:
        """Return the checked-out branch name."""

    def total_commit_count(self) -> int:
        """Return the number of commits reachable from HEAD."""

    def has_remote(self) -> bool:
        """Return True when at least one remote is configured."""


class GitBackend:
    """Runs git commands against a repository directory."""

    def __init__(self, repo_path: Path, history_file: Optional[str] = "history.txt"):
        self.repo_path = Path(repo_path)
        self.history_file = history_file

    # Repository state

    def is_repository(self) -> bool:
        """Return True if repo_path is inside a git work tree."""
        if not self.repo_path.is_dir():
            return False
        result = self._run_git(
            ["git", "rev-parse", "--is-inside-work-tree"], check=False
        )
        return result.returncode == 0 and result.stdout.strip() == "true"

    def init_repository(self, branch: str) -> None:
        """Initialize a repository with the given initial branch."""
        logger.info("Initializing git repository at %s", self.repo_path)
        self.repo_path.mkdir(parents=True, exist_ok=True)
        self._run_git(["git", "init"])
        self._run_git(["git", "symbolic-ref", "HEAD", f"refs/heads/{branch}"])

    def is_working_directory_clean(self) -> bool:
        if not self.is_repository():
            raise PreconditionError(f"Not a git repository: {self.repo_path}")
        result = self._run_git(["git", "status", "--porcelain"])
        return result.stdout.strip() == ""

    def current_branch(self) -> str:
        result = self._run_git(["git", "symbolic-ref", "--short", "HEAD"], check=False)
        if result.returncode != 0:
            # Detached HEAD
            return "HEAD"
        return result.stdout.strip()

    def head_commit(self) -> Optional[str]:
        result = self._run_git(
            ["git", "rev-parse", "--verify", "--quiet", "HEAD"], check=False
        )
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def total_commit_count(self) -> int:
        result = self._run_git(["git", "rev-list", "--count", "HEAD"], check=False)
        if result.returncode != 0:
            return 0
        return int(result.stdout.strip())

    def remotes(self) -> List[str]:
        result = self._run_git(["git", "remote"], check=False)
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def has_remote(self) -> bool:
        return bool(self.remotes())

    def last_commit(self) -> Optional[CommitInfo]:
        result = self._run_git(
            ["git", "log", "-1", "--format=%H%x00%aI%x00%s%x00%an%x00%ae"],
            check=False,
        )
        if result.returncode != 0 or not result.stdout.strip():
            return None
        commit_hash, date_str, message, author, email = result.stdout.strip().split("\x00")
        return CommitInfo(
            hash=commit_hash,
            date=datetime.fromisoformat(date_str),
            message=message,
            author=author,
            email=email,
        )

    def repository_info(self) -> RepositoryInfo:
        if not self.is_repository():
            raise PreconditionError(f"Not a git repository: {self.repo_path}")

        remotes = self.remotes()
        remote = remotes[0] if remotes else None
        remote_url = None
        if remote:
            result = self._run_git(["git", "remote", "get-url", remote], check=False)
            remote_url = result.stdout.strip() or None

        return RepositoryInfo(
            path=self.repo_path,
            branch=self.current_branch(),
            remote=remote,
            remote_url=remote_url,
            total_commits=self.total_commit_count(),
            last_commit=self.last_commit(),
        )

    # Mutation

    def add_all(self) -> None:
        self._run_git(["git", "add", "--all"])

    def create_commit(self, message: str, timestamp: datetime, author: Author) -> str:
        """Create a single commit with backdated timestamp."""
        if self.history_file:
            self._append_history(message, timestamp, author)

        env = os.environ.copy()
        timestamp_str = timestamp.strftime("%Y-%m-%dT%H:%M:%S%z")

        env.update(
            {
                "GIT_AUTHOR_NAME": author.name,
                "GIT_AUTHOR_EMAIL": author.email,
                "GIT_AUTHOR_DATE": timestamp_str,
                "GIT_COMMITTER_NAME": author.name,
                "GIT_COMMITTER_EMAIL": author.email,
                "GIT_COMMITTER_DATE": timestamp_str,
            }
        )

        try:
            self._run_git(["git", "commit", "--allow-empty", "-m", message], env=env)
        except GitError:
            if self.history_file:
                self._revert_history()
            raise

        commit_hash = self.head_commit()
        if commit_hash is None:
            raise GitError("Commit reported success but HEAD does not resolve")
        return commit_hash

    def _append_history(self, message: str, timestamp: datetime, author: Author) -> None:
        path = self.repo_path / self.history_file
        if not path.exists():
            path.write_text(HISTORY_HEADER, encoding="utf-8")
        with open(path, "a", encoding="utf-8") as f:
            f.write(f"{timestamp.isoformat()} | {author.name} | {author.email} | {message}\n")
        self._run_git(["git", "add", "--", self.history_file])

    def _revert_history(self) -> None:
        """Drop the history line staged for a commit that did not happen."""
        try:
            tracked = self._run_git(
                ["git", "cat-file", "-e", f"HEAD:{self.history_file}"], check=False
            )
            if tracked.returncode == 0:
                self._run_git(["git", "checkout", "HEAD", "--", self.history_file])
            else:
                # First commit never landed: the log is not in any commit yet
                self._run_git(
                    ["git", "rm", "--cached", "--quiet", "--ignore-unmatch", "--", self.history_file]
                )
                (self.repo_path / self.history_file).unlink(missing_ok=True)
        except (GitError, OSError) as e:
            logger.warning("Failed to revert %s: %s", self.history_file, e)

    def push(self, branch: str, remote: str = "origin") -> None:
        self._run_git(["git", "push", "-u", remote, branch])

    # Backups

    def backup_dir(self) -> Path:
        result = self._run_git(["git", "rev-parse", "--git-dir"])
        git_dir = Path(result.stdout.strip())
        if not git_dir.is_absolute():
            git_dir = self.repo_path / git_dir
        return git_dir / BACKUP_DIR_NAME

    def create_backup(self) -> BackupRecord:
        now = datetime.now()
        backup_id = f"backup-{now.strftime('%Y%m%d-%H%M%S')}-{uuid.uuid4().hex[:8]}"

        try:
            backup_dir = self.backup_dir()
            backup_dir.mkdir(parents=True, exist_ok=True)
            head = self.head_commit()
            record = BackupRecord(
                id=backup_id,
                timestamp=now,
                branch=self.current_branch(),
                last_commit=head,
                commit_count=self.total_commit_count(),
                path=backup_dir / f"{backup_id}.json",
            )
            if head:
                # Keep the commit reachable even if the branch is rewritten
                self._run_git(["git", "update-ref", BACKUP_REF_PREFIX + backup_id, head])
            record.path.write_text(json.dumps(record.serialize(), indent=2), encoding="utf-8")
        except (GitError, OSError) as e:
            raise BackupError(f"Failed to create backup: {e}") from e

        logger.info("Created backup %s at %s", record.id, record.last_commit or "(no commits)")
        return record

    def list_backups(self) -> List[BackupRecord]:
        backup_dir = self.backup_dir()
        if not backup_dir.is_dir():
            return []

        backups = []
        for path in sorted(backup_dir.glob("*.json")):
            try:
                backups.append(BackupRecord.deserialize(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, ValueError, KeyError) as e:
                logger.warning("Unreadable backup record %s: %s", path, e)
        return backups

    def restore_from_backup(self, backup: BackupRecord) -> None:
        logger.info("Restoring %s to %s", backup.branch, backup.last_commit or "(no commits)")
        try:
            if backup.last_commit is None:
                self._restore_unborn(backup.branch)
            elif backup.branch == "HEAD":
                self._run_git(["git", "checkout", "-f", "--detach", backup.last_commit])
            else:
                if self.current_branch() != backup.branch:
                    self._run_git(["git", "checkout", "-f", backup.branch])
                self._run_git(["git", "reset", "--hard", backup.last_commit])
        except GitError as e:
            raise BackupError(f"Failed to restore backup {backup.id}: {e}") from e

        if self.head_commit() != backup.last_commit:
            raise BackupError(
                f"Restore of backup {backup.id} left HEAD at {self.head_commit()}, "
                f"expected {backup.last_commit}"
            )

    def _restore_unborn(self, branch: str) -> None:
        # The repository had no commits: drop the branch and everything staged
        self._run_git(["git", "symbolic-ref", "HEAD", f"refs/heads/{branch}"])
        self._run_git(["git", "update-ref", "-d", f"refs/heads/{branch}"], check=False)
        self._run_git(["git", "read-tree", "--empty"])
        self._run_git(["git", "clean", "-fd"])

    def cleanup_backup(self, backup: Optional[BackupRecord]) -> None:
        if backup is None:
            return
        try:
            if backup.last_commit:
                self._run_git(
                    ["git", "update-ref", "-d", BACKUP_REF_PREFIX + backup.id], check=False
                )
            backup.path.unlink(missing_ok=True)
        except (GitError, OSError) as e:
            logger.warning("Failed to clean up backup %s: %s", backup.id, e)

    def cleanup_old_backups(self, max_age: timedelta = BACKUP_MAX_AGE) -> int:
        cutoff = datetime.now() - max_age
        removed = 0
        for backup in self.list_backups():
            if backup.timestamp < cutoff:
                self.cleanup_backup(backup)
                removed += 1
        return removed

    def _run_git(
        self, cmd: List[str], env: dict = None, check: bool = True
    ) -> subprocess.CompletedProcess:
        """Run a Git command in the repository directory."""
        try:
            return subprocess.run(
                cmd,
                cwd=self.repo_path,
                env=env,
                check=check,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            raise GitError.from_called_process(e) from e
        except OSError as e:
            raise GitError(f"Could not run {' '.join(cmd)}: {e}", cmd=cmd) from e
