"""GNU Stow provider for linking the dotfiles tree into the home directory.

Every mutating operation has a simulation counterpart (``stow -n -v``) whose
``LINK:``/``UNLINK:`` lines describe what the real run would do. Conflicts
are detected with the simulation before anything is touched.
"""
from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..errors import CommandError, ConflictError
from .base import CommandProvider

_LINK_LINE = re.compile(r"^LINK:\s+(?P<target>\S+)", re.MULTILINE)
_UNLINK_LINE = re.compile(r"^UNLINK:\s+(?P<target>\S+)", re.MULTILINE)
_CONFLICT_LINE = re.compile(r"^\s*\*\s+(?P<detail>.+)$", re.MULTILINE)


class StowError(CommandError):
    """Raised when a stow command fails."""


@dataclass(slots=True)
class StowProvider(CommandProvider):
    """Wrap the ``stow`` command line for a single package directory (``.``)."""

    binary: str = "stow"

    error_class: ClassVar[type[CommandError]] = StowError

    def link_command(self, target: Path, *, simulate: bool = False) -> list[str]:
        """Return the argv that links ``.`` into *target*."""
        flags = ["-n", "-v"] if simulate else []
        return self.command("--target", str(target), *flags, ".")

    def unlink_command(self, target: Path, *, simulate: bool = False) -> list[str]:
        """Return the argv that removes the links of ``.`` from *target*."""
        flags = ["-n", "-v"] if simulate else []
        return self.command("--target", str(target), *flags, "-D", ".")

    def _simulate(self, argv: list[str], directory: Path) -> subprocess.CompletedProcess[str]:
        return self._run(*argv[1:], check=False, cwd=directory)

    def pending_links(self, directory: Path, target: Path) -> list[str]:
        """Return the links a real run would create, empty when fully linked."""
        result = self._simulate(self.link_command(target, simulate=True), directory)
        output = f"{result.stdout or ''}{result.stderr or ''}"
        return [match.group("target") for match in _LINK_LINE.finditer(output)]

    def pending_unlinks(self, directory: Path, target: Path) -> list[str]:
        """Return the links a real unstow would remove."""
        result = self._simulate(self.unlink_command(target, simulate=True), directory)
        output = f"{result.stdout or ''}{result.stderr or ''}"
        return [match.group("target") for match in _UNLINK_LINE.finditer(output)]

    def check_conflicts(self, directory: Path, target: Path) -> None:
        """Raise :class:`ConflictError` when linking would clobber existing files."""
        argv = self.link_command(target, simulate=True)
        result = self._simulate(argv, directory)
        if result.returncode == 0:
            return
        output = f"{result.stdout or ''}{result.stderr or ''}"
        details = [match.group("detail").strip() for match in _CONFLICT_LINE.finditer(output)]
        message = "Stow conflict detected"
        if details:
            message = f"{message}: {'; '.join(details)}"
        raise ConflictError(message)

    def link(self, directory: Path, target: Path) -> subprocess.CompletedProcess[str]:
        """Create the symlinks for *directory* inside *target*."""
        return self._run(*self.link_command(target)[1:], cwd=directory)

    def unlink(self, directory: Path, target: Path) -> subprocess.CompletedProcess[str]:
        """Remove the symlinks for *directory* from *target*."""
        return self._run(*self.unlink_command(target)[1:], cwd=directory)


__all__ = ["StowError", "StowProvider"]
