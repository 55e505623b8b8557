"""
Transactional plan execution.

The executor walks a validated plan and creates one commit per slot:

    IDLE -> PRECONDITION -> BACKED_UP -> COMMITTING -> COMPLETED | ABORTED

Cancellation (SIGINT/SIGTERM) moves a run in COMMITTING to INTERRUPTED, after
which ``recover`` tries once to put the repository back where the backup
says it was (RESTORING -> RESTORED | RESTORE_FAILED).

All run state lives on an ``ExecutionContext`` shared with the signal
handlers, so nothing here is global.
"""

import contextlib
import logging
import random
import signal
import time
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple

from .distributions import Plan
from .errors import FakeitError, PreconditionError
from .git import Author, BackupRecord, RepositoryBackend

logger = logging.getLogger(__name__)

FAILURE_THRESHOLD = 10
YIELD_EVERY = 25
YIELD_SECONDS = 0.01
PROGRESS_EVERY = 10


class ExecutorState(Enum):
    IDLE = "idle"
    PRECONDITION = "precondition"
    BACKED_UP = "backed_up"
    COMMITTING = "committing"
    COMPLETED = "completed"
    ABORTED = "aborted"
    INTERRUPTED = "interrupted"
    RESTORING = "restoring"
    RESTORED = "restored"
    RESTORE_FAILED = "restore_failed"


class CancellationToken:
    """Set once by a signal handler, polled by the executor between commits."""

    def __init__(self):
        self._cancelled = False
        self.signum: Optional[int] = None

    def cancel(self, signum: Optional[int] = None) -> None:
        if not self._cancelled:
            self._cancelled = True
            self.signum = signum

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class ExecutionContext:
    """Mutable state of a single run, shared with the signal handlers."""

    backend: Optional[RepositoryBackend] = None
    backup: Optional[BackupRecord] = None
    in_progress: bool = False
    state: ExecutorState = ExecutorState.IDLE
    token: CancellationToken = field(default_factory=CancellationToken)


@dataclass(frozen=True)
class ExecutionResult:
    """What a run did. Returned even when the run failed."""

    success: bool
    total_commits: int
    successful_commits: int
    failed_commits: int
    errors: Tuple[str, ...]
    commit_hashes: Tuple[str, ...]
    duration: float
    state: ExecutorState
    restored: bool = False


class _Interrupted(FakeitError):
    pass


class _AbortRun(FakeitError):
    pass


def recover(context: ExecutionContext) -> bool:
    """Restore the repository from the context's backup. Tried exactly once."""
    backup = context.backup
    backend = context.backend

    if backup is None or backend is None:
        logger.warning("No backup available, repository left in its current state")
        context.state = ExecutorState.RESTORE_FAILED
        return False

    context.state = ExecutorState.RESTORING
    try:
        backend.restore_from_backup(backup)
    except Exception as e:
        logger.error(
            "Failed to restore backup %s: %s (record kept at %s)", backup.id, e, backup.path
        )
        context.state = ExecutorState.RESTORE_FAILED
        return False

    logger.warning(
        "Restored %s to %s", backup.branch, backup.last_commit or "an empty history"
    )
    context.state = ExecutorState.RESTORED
    _discard_backup(backend, backup)
    context.backup = None
    return True


def _discard_backup(backend: RepositoryBackend, backup: Optional[BackupRecord]) -> None:
    try:
        backend.cleanup_backup(backup)
    except Exception as e:
        logger.warning("Failed to remove backup: %s", e)


@contextlib.contextmanager
def handle_signals(
    context: ExecutionContext, signals: Tuple[int, ...] = (signal.SIGINT, signal.SIGTERM)
) -> Iterator[ExecutionContext]:
    """Route termination signals to the context while the block runs.

    From the backup until the restore or cleanup returns, a signal only cancels
    the token and the executor restores at its next checkpoint. Outside a run
    the process exits straight away.
    """

    def _handler(signum, frame):
        name = signal.Signals(signum).name
        if not context.in_progress:
            raise SystemExit(128 + signum)
        if context.token.cancelled:
            logger.warning("Received %s again, still stopping", name)
            return
        logger.warning("Received %s, stopping after the current commit", name)
        context.token.cancel(signum)

    previous = {signum: signal.signal(signum, _handler) for signum in signals}
    try:
        yield context
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)


class PlanExecutor:
    """Creates the commits of a plan against a repository backend."""

    def __init__(
        self,
        backend: RepositoryBackend,
        author: Author,
        context: Optional[ExecutionContext] = None,
        rng: Optional[random.Random] = None,
        failure_threshold: int = FAILURE_THRESHOLD,
        yield_every: int = YIELD_EVERY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend
        self.author = author
        self.context = context or ExecutionContext()
        self.rng = rng or random.Random()
        self.failure_threshold = failure_threshold
        self.yield_every = yield_every
        self.sleep = sleep

    def commit_time(
        self, day: date, slot: int, day_count: int, previous: Optional[datetime] = None
    ) -> datetime:
        """Spread a day's commits over 24 hours, with a random minute."""
        hour = (slot * 24) // day_count
        minute = self.rng.randrange(60)
        timestamp = datetime.combine(day, dt_time(hour=hour, minute=minute))
        # Slots sharing an hour must not go back in time
        if previous is not None and previous.date() == day and timestamp < previous:
            return previous
        return timestamp

    def execute(self, plan: Plan) -> ExecutionResult:
        """Run the plan. Raises only PreconditionError."""
        started = time.monotonic()
        context = self.context
        context.backend = self.backend
        total = sum(day.count for day in plan)

        if total == 0:
            context.state = ExecutorState.COMPLETED
            return self._result(True, total, 0, [], [], started, context.state)

        self._check_preconditions()

        # Signals only cancel from here on, restore included
        context.in_progress = True
        try:
            return self._run(plan, total, started)
        finally:
            context.in_progress = False

    def _run(self, plan: Plan, total: int, started: float) -> ExecutionResult:
        context = self.context
        self._take_backup()

        successes = 0
        failures = 0
        errors: List[str] = []
        hashes: List[str] = []
        previous: Optional[datetime] = None

        context.state = ExecutorState.COMMITTING
        try:
            for day in plan:
                if day.count == 0 or not day.messages:
                    continue

                logger.debug("Processing %d commits for %s", day.count, day.date.isoformat())
                for slot in range(min(day.count, len(day.messages))):
                    self._check_cancelled(successes)

                    timestamp = self.commit_time(day.date, slot, day.count, previous)
                    previous = timestamp
                    try:
                        commit_hash = self._create_commit(day.messages[slot], timestamp)
                    except Exception as e:
                        failures += 1
                        message = f"Failed to create commit on {day.date.isoformat()}: {e}"
                        errors.append(message)
                        logger.error(message)
                        if failures > self.failure_threshold:
                            raise _AbortRun(
                                f"Too many commit failures ({failures}). "
                                "Aborting to prevent further issues."
                            )
                        continue

                    hashes.append(commit_hash)
                    successes += 1
                    if successes % PROGRESS_EVERY == 0:
                        logger.info("Created %d/%d commits", successes, total)
                    if successes % self.yield_every == 0:
                        self.sleep(YIELD_SECONDS)

            # A signal during the last commit still counts
            self._check_cancelled(successes)

            success = failures == 0 or successes > 0
            outcome = ExecutorState.COMPLETED if success else ExecutorState.ABORTED
        except (_Interrupted, KeyboardInterrupt) as e:
            reason = str(e) or f"Interrupted after {successes} commits"
            errors.append(reason)
            logger.warning(reason)
            success = False
            outcome = ExecutorState.INTERRUPTED
        except Exception as e:
            message = f"Critical error during commit creation: {e}"
            errors.append(message)
            logger.error(message)
            success = False
            outcome = ExecutorState.ABORTED

        context.state = outcome
        restored = False
        if success:
            self._finish()
        else:
            restored = recover(context)

        return self._result(
            success, total, successes, errors, hashes, started, outcome, restored, failures
        )

    def _check_cancelled(self, successes: int) -> None:
        token = self.context.token
        if token.cancelled:
            raise _Interrupted(
                f"Interrupted by signal {token.signum} after {successes} commits"
            )

    def _check_preconditions(self) -> None:
        self.context.state = ExecutorState.PRECONDITION
        try:
            clean = self.backend.is_working_directory_clean()
        except PreconditionError:
            raise
        except Exception as e:
            raise PreconditionError(f"Could not read repository status: {e}") from e

        if not clean:
            raise PreconditionError(
                "Working directory is not clean. Please commit or stash your "
                "changes before proceeding."
            )

    def _take_backup(self) -> None:
        try:
            self.context.backup = self.backend.create_backup()
            logger.info("Created backup: %s", self.context.backup.id)
        except Exception as e:
            self.context.backup = None
            logger.warning("Failed to create backup, continuing without one: %s", e)
        self.context.state = ExecutorState.BACKED_UP

    def _create_commit(self, message: str, timestamp: datetime) -> str:
        logger.debug("Creating commit %r at %s", message, timestamp.isoformat())
        self.backend.add_all()
        return self.backend.create_commit(message, timestamp, self.author)

    def _finish(self) -> None:
        _discard_backup(self.backend, self.context.backup)
        self.context.backup = None
        try:
            removed = self.backend.cleanup_old_backups()
            if removed:
                logger.info("Removed %d old backups", removed)
        except Exception as e:
            logger.warning("Failed to prune old backups: %s", e)

    def _result(
        self,
        success: bool,
        total: int,
        successes: int,
        errors: List[str],
        hashes: List[str],
        started: float,
        state: ExecutorState,
        restored: bool = False,
        failures: int = 0,
    ) -> ExecutionResult:
        return ExecutionResult(
            success=success,
            total_commits=total,
            successful_commits=successes,
            failed_commits=failures,
            errors=tuple(errors),
            commit_hashes=tuple(hashes),
            duration=time.monotonic() - started,
            state=state,
            restored=restored,
        )
