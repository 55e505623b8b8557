"""
Transactional execution.

Invariant:
A run either completes (no failures, or at least one commit created) and drops
its backup, or it aborts or is interrupted and the repository is restored from
the backup exactly once. Only precondition failures are raised.
"""

import random
import signal
from datetime import date, datetime

import pytest

from fakeit.distributions import Uniform, generate, date_range
from fakeit.errors import BackupError, GitError, PreconditionError
from fakeit.executor import (
    FAILURE_THRESHOLD,
    YIELD_SECONDS,
    ExecutionContext,
    ExecutorState,
    PlanExecutor,
    handle_signals,
    recover,
)
from fakeit.messages import populate_messages
from fakeit.rng import SeededRandom

from conftest import AUTHOR, FakeBackend, make_plan


def executor(backend, **kwargs) -> PlanExecutor:
    kwargs.setdefault("sleep", lambda seconds: None)
    return PlanExecutor(backend, AUTHOR, **kwargs)


def test_successful_run(backend) -> None:
    result = executor(backend).execute(make_plan([2, 0, 3]))

    assert result.success
    assert result.state == ExecutorState.COMPLETED
    assert result.total_commits == 5
    assert result.successful_commits == 5
    assert result.failed_commits == 0
    assert len(result.commit_hashes) == 5
    assert result.errors == ()
    assert backend.adds == 5
    assert [c[0] for c in backend.commits] == [
        "Commit 0-0", "Commit 0-1", "Commit 2-0", "Commit 2-1", "Commit 2-2",
    ]
    # Backup discarded and old backups pruned
    assert backend.cleaned == backend.backups
    assert backend.prunes == 1
    assert backend.restored == []


def test_end_to_end_known_seed(backend) -> None:
    days = date_range(date(2024, 1, 1), date(2024, 1, 5))
    plan = populate_messages(generate(Uniform(5), days, SeededRandom("abc")), "default", seed="abc")

    result = executor(backend).execute(plan)

    assert result.success
    assert result.total_commits == 21
    assert result.successful_commits == 21
    assert len(backend.commits) == 21


def test_commits_are_backdated_to_their_day(backend) -> None:
    executor(backend).execute(make_plan([4], start=date(2023, 5, 17)))
    timestamps = [c[1] for c in backend.commits]
    assert all(ts.date() == date(2023, 5, 17) for ts in timestamps)
    assert [ts.hour for ts in timestamps] == [0, 6, 12, 18]
    assert all(c[2] == AUTHOR for c in backend.commits)


def test_commit_time_spreads_over_the_day(backend) -> None:
    ex = executor(backend)
    hours = [ex.commit_time(date(2024, 1, 1), slot, 3).hour for slot in range(3)]
    assert hours == [0, 8, 16]


def test_empty_plan_succeeds_without_touching_repository() -> None:
    backend = FakeBackend(clean=False)
    result = executor(backend).execute(make_plan([0, 0]))

    assert result.success
    assert result.total_commits == 0
    assert backend.backups == []


def test_dirty_working_directory_raises() -> None:
    backend = FakeBackend(clean=False)
    with pytest.raises(PreconditionError, match="not clean"):
        executor(backend).execute(make_plan([1]))

    assert backend.backups == []
    assert backend.commits == []


def test_status_failure_is_a_precondition_error() -> None:
    class Broken(FakeBackend):
        def is_working_directory_clean(self):
            raise GitError("git status failed")

    with pytest.raises(PreconditionError, match="git status failed"):
        executor(Broken()).execute(make_plan([1]))


def test_partial_failure_still_succeeds() -> None:
    backend = FakeBackend(fail_on={1})
    result = executor(backend).execute(make_plan([3]))

    assert result.success
    assert result.state == ExecutorState.COMPLETED
    assert result.successful_commits == 2
    assert result.failed_commits == 1
    assert len(result.errors) == 1
    assert "Failed to create commit on 2024-01-01" in result.errors[0]
    assert backend.restored == []


def test_too_many_failures_abort_and_restore() -> None:
    backend = FakeBackend(fail_all=True)
    result = executor(backend).execute(make_plan([5, 5, 5]))

    assert not result.success
    assert result.state == ExecutorState.ABORTED
    assert result.successful_commits == 0
    assert result.failed_commits == FAILURE_THRESHOLD + 1
    assert backend.attempts == FAILURE_THRESHOLD + 1
    assert "Too many commit failures (11)" in result.errors[-1]
    assert result.restored
    assert backend.restored == backend.backups


def test_all_failures_below_threshold_is_a_failed_run() -> None:
    backend = FakeBackend(fail_all=True)
    result = executor(backend).execute(make_plan([2]))

    assert not result.success
    assert result.state == ExecutorState.ABORTED
    assert result.failed_commits == 2
    assert result.restored


def test_backup_failure_does_not_stop_the_run() -> None:
    backend = FakeBackend(backup_error=BackupError("disk full"))
    ex = executor(backend)
    result = ex.execute(make_plan([2]))

    assert result.success
    assert len(backend.commits) == 2
    assert ex.context.backup is None


def test_failure_without_backup_cannot_restore() -> None:
    backend = FakeBackend(fail_all=True, backup_error=BackupError("disk full"))
    ex = executor(backend)
    result = ex.execute(make_plan([1]))

    assert not result.success
    assert not result.restored
    assert ex.context.state == ExecutorState.RESTORE_FAILED


def test_prune_errors_are_only_logged() -> None:
    backend = FakeBackend(prune_error=OSError("permission denied"))
    result = executor(backend).execute(make_plan([1]))
    assert result.success
    assert backend.prunes == 1


def test_cancellation_restores_from_backup(backend) -> None:
    context = ExecutionContext()
    backend.on_commit = lambda n: context.token.cancel(signal.SIGTERM) if n == 2 else None

    result = executor(backend, context=context).execute(make_plan([5]))

    assert not result.success
    assert result.state == ExecutorState.INTERRUPTED
    assert result.successful_commits == 2
    assert result.restored
    assert len(backend.restored) == 1
    assert context.state == ExecutorState.RESTORED
    assert context.backup is None
    assert context.in_progress is False
    assert "signal 15" in result.errors[-1]


def test_keyboard_interrupt_is_an_interruption() -> None:
    class Interrupting(FakeBackend):
        def create_commit(self, message, timestamp, author):
            if self.commits:
                raise KeyboardInterrupt
            return super().create_commit(message, timestamp, author)

    backend = Interrupting()
    result = executor(backend).execute(make_plan([3]))

    assert result.state == ExecutorState.INTERRUPTED
    assert result.successful_commits == 1
    assert len(backend.restored) == 1


def test_restore_failure_keeps_the_backup() -> None:
    backend = FakeBackend(fail_all=True, restore_error=BackupError("reset failed"))
    context = ExecutionContext()
    result = executor(backend, context=context).execute(make_plan([1]))

    assert not result.restored
    assert context.state == ExecutorState.RESTORE_FAILED
    assert context.backup is not None
    assert backend.cleaned == []


def test_yields_periodically() -> None:
    sleeps = []
    backend = FakeBackend()
    executor(backend, yield_every=2, sleep=sleeps.append).execute(make_plan([5]))
    assert sleeps == [YIELD_SECONDS, YIELD_SECONDS]


def test_days_without_messages_are_skipped(backend) -> None:
    plan = make_plan([2, 1])
    plan[0].messages = []
    result = executor(backend).execute(plan)
    assert [c[0] for c in backend.commits] == ["Commit 1-0"]
    assert result.successful_commits == 1


def test_recover_without_backup() -> None:
    context = ExecutionContext(backend=FakeBackend())
    assert recover(context) is False
    assert context.state == ExecutorState.RESTORE_FAILED


def test_signal_outside_run_exits() -> None:
    context = ExecutionContext()
    with handle_signals(context, signals=(signal.SIGTERM,)):
        handler = signal.getsignal(signal.SIGTERM)
        with pytest.raises(SystemExit) as excinfo:
            handler(signal.SIGTERM, None)
    assert excinfo.value.code == 128 + signal.SIGTERM


def test_signal_during_run_cancels_once() -> None:
    previous = signal.getsignal(signal.SIGTERM)
    context = ExecutionContext(in_progress=True)

    with handle_signals(context, signals=(signal.SIGTERM,)):
        handler = signal.getsignal(signal.SIGTERM)
        handler(signal.SIGTERM, None)
        handler(signal.SIGINT, None)

    assert context.token.cancelled
    assert context.token.signum == signal.SIGTERM
    assert signal.getsignal(signal.SIGTERM) == previous


def test_cancellation_during_last_commit_is_honored(backend) -> None:
    context = ExecutionContext()
    backend.on_commit = lambda n: context.token.cancel(signal.SIGINT) if n == 3 else None

    result = executor(backend, context=context).execute(make_plan([3]))

    assert not result.success
    assert result.state == ExecutorState.INTERRUPTED
    assert result.successful_commits == 3
    assert result.restored
    assert len(backend.restored) == 1
    assert backend.prunes == 0


def test_signal_during_restore_does_not_exit() -> None:
    class SignalledRestore(FakeBackend):
        def restore_from_backup(self, backup):
            signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
            super().restore_from_backup(backup)

    backend = SignalledRestore(fail_all=True)
    context = ExecutionContext()
    with handle_signals(context, signals=(signal.SIGINT,)):
        result = executor(backend, context=context).execute(make_plan([1]))

    assert result.state == ExecutorState.ABORTED
    assert result.restored
    assert backend.restored == backend.backups
    assert backend.cleaned == backend.backups
    assert context.token.cancelled
    assert context.in_progress is False


def test_signal_during_backup_interrupts_before_committing() -> None:
    class SignalledBackup(FakeBackend):
        def create_backup(self):
            signal.getsignal(signal.SIGTERM)(signal.SIGTERM, None)
            return super().create_backup()

    backend = SignalledBackup()
    context = ExecutionContext()
    with handle_signals(context, signals=(signal.SIGTERM,)):
        result = executor(backend, context=context).execute(make_plan([2]))

    assert result.state == ExecutorState.INTERRUPTED
    assert result.successful_commits == 0
    assert backend.attempts == 0
    assert result.restored
    assert backend.cleaned == backend.backups


def test_crowded_day_keeps_timestamps_in_order(backend) -> None:
    result = executor(backend, rng=random.Random(7)).execute(make_plan([60]))

    timestamps = [c[1] for c in backend.commits]
    assert result.successful_commits == 60
    assert timestamps == sorted(timestamps)
    assert all(ts.date() == date(2024, 1, 1) for ts in timestamps)


def test_commit_time_never_precedes_previous_commit(backend) -> None:
    ex = executor(backend)
    previous = datetime(2024, 1, 1, 0, 59)
    assert ex.commit_time(date(2024, 1, 1), 0, 60, previous) == previous

    # A previous commit on another day does not hold the clock back
    yesterday = datetime(2023, 12, 31, 23, 59)
    assert ex.commit_time(date(2024, 1, 1), 0, 60, yesterday).date() == date(2024, 1, 1)
