"""Process invocation shared by every external tool provider."""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar, Protocol

from ..errors import CommandError, ToolNotFoundError
from ..steps.actions import format_command

LOGGER = logging.getLogger(__name__)


class Runner(Protocol):
    """Callable signature used to execute external commands."""

    def __call__(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Run *args* and return the completed process."""
        ...


def subprocess_runner(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture_output: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Execute *args* with :func:`subprocess.run` without raising on failure."""
    merged_env = None
    if env:
        merged_env = dict(os.environ)
        merged_env.update(env)
    return subprocess.run(  # noqa: S603
        list(args),
        cwd=str(cwd) if cwd is not None else None,
        env=merged_env,
        capture_output=capture_output,
        text=True,
        check=False,
    )


@dataclass(slots=True)
class Shell:
    """Entry point for running commands and locating executables."""

    runner: Runner = subprocess_runner
    which: Callable[[str], str | None] = shutil.which

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        """Run *args*, translating a missing executable into ``ToolNotFoundError``."""
        LOGGER.debug("+ %s", format_command(args))
        try:
            return self.runner(args, cwd=cwd, env=env, capture_output=capture_output)
        except FileNotFoundError as exc:
            raise ToolNotFoundError(f"{args[0]} not found: {exc}") from exc

    def has(self, binary: str) -> bool:
        """Return ``True`` when *binary* (a name or a path) resolves to an executable."""
        return self.which(binary) is not None


def raise_for_status(
    result: subprocess.CompletedProcess[str],
    argv: Sequence[str],
    error_class: type[CommandError] = CommandError,
) -> None:
    """Raise *error_class* when *result* exited non-zero."""
    if result.returncode == 0:
        return
    stdout = getattr(result, "stdout", "") or ""
    stderr = getattr(result, "stderr", "") or ""
    message = stderr.strip() or stdout.strip() or "no output"
    raise error_class(
        f"{format_command(argv)} failed (exit {result.returncode}): {message}",
        command=argv,
        returncode=result.returncode,
        stdout=stdout,
        stderr=stderr,
    )


@dataclass(slots=True)
class CommandProvider:
    """Base class for providers wrapping a single executable."""

    shell: Shell = field(default_factory=Shell)
    binary: str = ""

    error_class: ClassVar[type[CommandError]] = CommandError

    def available(self) -> bool:
        """Return ``True`` when the wrapped executable is installed."""
        return self.shell.has(self.binary)

    def command(self, *args: str) -> list[str]:
        """Return the full argument vector for ``binary args...``."""
        return [self.binary, *args]

    def _run(
        self,
        *args: str,
        check: bool = True,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        argv = self.command(*args)
        result = self.shell.run(argv, cwd=cwd, env=env, capture_output=capture_output)
        if check:
            raise_for_status(result, argv, self.error_class)
        return result

    def _succeeds(self, *args: str, cwd: Path | None = None) -> bool:
        try:
            result = self._run(*args, check=False, cwd=cwd)
        except ToolNotFoundError:
            return False
        return result.returncode == 0


__all__ = ["CommandProvider", "Runner", "Shell", "raise_for_status", "subprocess_runner"]
