"""Git provider for cloning and updating local checkouts."""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..errors import CommandError
from .base import CommandProvider


class GitError(CommandError):
    """Raised when a git command fails."""


@dataclass(slots=True)
class GitProvider(CommandProvider):
    """Wrap the ``git`` command line."""

    binary: str = "git"

    error_class: ClassVar[type[CommandError]] = GitError

    def is_repository(self, directory: Path) -> bool:
        """Return ``True`` when *directory* holds a git checkout."""
        return (directory / ".git").is_dir()

    def clone_command(self, url: str, directory: Path) -> list[str]:
        """Return the argv used to clone *url* into *directory*."""
        return self.command("clone", url, str(directory))

    def pull_command(self, directory: Path) -> list[str]:
        """Return the argv used to fast-forward *directory*."""
        return self.command("-C", str(directory), "pull", "--ff-only")

    def clone(self, url: str, directory: Path) -> subprocess.CompletedProcess[str]:
        """Clone *url* into *directory*, creating missing parents."""
        directory.parent.mkdir(parents=True, exist_ok=True)
        return self._run(*self.clone_command(url, directory)[1:])

    def pull_ff_only(self, directory: Path) -> subprocess.CompletedProcess[str]:
        """Fast-forward the checkout in *directory* to its upstream."""
        return self._run(*self.pull_command(directory)[1:])


__all__ = ["GitError", "GitProvider"]
