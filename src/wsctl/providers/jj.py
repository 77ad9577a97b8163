"""Jujutsu (``jj``) provider for repository-scoped configuration."""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..errors import CommandError
from .base import CommandProvider


class JujutsuError(CommandError):
    """Raised when a jj command fails."""


@dataclass(slots=True)
class JujutsuProvider(CommandProvider):
    """Wrap the ``jj`` command line."""

    binary: str = "jj"

    error_class: ClassVar[type[CommandError]] = JujutsuError

    def in_repository(self, cwd: Path) -> bool:
        """Return ``True`` when *cwd* is inside a jj repository."""
        return self._succeeds("log", "-r", "@", "--no-pager", cwd=cwd)

    def config_get(self, key: str, *, cwd: Path) -> str | None:
        """Return the effective value of *key* or ``None`` when unset."""
        result = self._run("config", "get", key, check=False, cwd=cwd)
        if result.returncode != 0:
            return None
        return (result.stdout or "").strip()

    def config_set_command(self, key: str, value: str) -> list[str]:
        """Return the argv that sets *key* for the current repository."""
        return self.command("config", "set", "--repo", key, value)

    def config_set(self, key: str, value: str, *, cwd: Path) -> subprocess.CompletedProcess[str]:
        """Set *key* to *value* in the repository configuration."""
        return self._run(*self.config_set_command(key, value)[1:], cwd=cwd)


__all__ = ["JujutsuError", "JujutsuProvider"]
