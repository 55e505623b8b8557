"""Exceptions raised by fakeit."""

import subprocess
from typing import List, Optional


class FakeitError(Exception):
    """Base class for all fakeit errors."""


class GenerationError(FakeitError, ValueError):
    """Plan could not be generated from the configuration."""


class PreconditionError(FakeitError):
    """Repository is not in a state that allows mutation."""


class GitError(FakeitError):
    """A git command failed."""

    def __init__(
        self, message: str, cmd: Optional[List[str]] = None, stderr: str = ""
    ):
        super().__init__(message)
        self.cmd = cmd or []
        self.stderr = stderr

    @classmethod
    def from_called_process(cls, exc: subprocess.CalledProcessError) -> "GitError":
        stderr = exc.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode(errors="replace")
        stderr = (stderr or "").strip()
        cmd = list(exc.cmd) if isinstance(exc.cmd, (list, tuple)) else [str(exc.cmd)]
        detail = f": {stderr}" if stderr else ""
        return cls(
            f"'{' '.join(cmd)}' exited with status {exc.returncode}{detail}",
            cmd=cmd,
            stderr=stderr,
        )


class BackupError(GitError):
    """Backup could not be created or restored."""
