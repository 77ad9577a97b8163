"""Exception taxonomy shared by providers, actions and the step runner."""
from __future__ import annotations

from collections.abc import Sequence

from .exit_codes import ExitCode


class WorkstationError(RuntimeError):
    """Base class for wsctl failures carrying an exit code."""

    exit_code: int = ExitCode.FAILURE


class CommandError(WorkstationError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] = (),
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        """Record the failed invocation alongside the message."""
        super().__init__(message)
        self.command = list(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ToolNotFoundError(WorkstationError):
    """Raised when an executable cannot be located at invocation time."""

    exit_code = ExitCode.MISSING_TOOL


class FatalError(WorkstationError):
    """Errors that always abort the run before further mutation."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        """Allow callers to pick a more specific exit code."""
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class PrerequisiteError(FatalError):
    """A required external tool or precondition is missing."""


class PlatformError(FatalError):
    """The host operating system is not supported."""


class TargetError(FatalError):
    """A required directory is absent, not writable or would be clobbered."""


class ConflictError(FatalError):
    """A simulated change reported a conflict before anything was applied."""


class UserDeclined(WorkstationError):
    """Raised when the user answers a confirmation prompt negatively."""

    exit_code = ExitCode.OK


class TerminationRequested(BaseException):
    """Raised inside the runner when SIGTERM is delivered."""


__all__ = [
    "CommandError",
    "ConflictError",
    "FatalError",
    "PlatformError",
    "PrerequisiteError",
    "TargetError",
    "TerminationRequested",
    "ToolNotFoundError",
    "UserDeclined",
    "WorkstationError",
]
