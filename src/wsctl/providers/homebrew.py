"""Homebrew provider for installing and removing formulae and casks."""
from __future__ import annotations

import platform
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..errors import CommandError
from .base import CommandProvider

_UPDATED_LINE = re.compile(r"Updated", re.MULTILINE)
_REMOVED_LINE = re.compile(r"^(Removing formula|Uninstalling)", re.MULTILINE)


class HomebrewError(CommandError):
    """Raised when a brew command fails."""


@dataclass(slots=True)
class HomebrewProvider(CommandProvider):
    """Wrap the ``brew`` command line."""

    binary: str = "brew"

    error_class: ClassVar[type[CommandError]] = HomebrewError

    def default_prefix(self) -> Path:
        """Return the prefix Homebrew installs into on this architecture."""
        if platform.machine() == "arm64":
            return Path("/opt/homebrew")
        return Path("/usr/local")

    def prefix(self) -> Path:
        """Return ``brew --prefix`` or the architecture default when brew is absent."""
        if self.available():
            result = self._run("--prefix", check=False)
            value = (result.stdout or "").strip()
            if result.returncode == 0 and value:
                return Path(value)
        return self.default_prefix()

    def locate(self) -> bool:
        """Point at the default prefix binary when ``brew`` is not on ``PATH`` yet."""
        if self.available():
            return True
        candidate = self.default_prefix() / "bin" / "brew"
        if self.shell.has(str(candidate)):
            self.binary = str(candidate)
            return True
        return False

    def shellenv_line(self, prefix: Path | None = None) -> str:
        """Return the profile line that loads brew's shell environment."""
        resolved = prefix or self.prefix()
        return f'eval "$({resolved}/bin/brew shellenv)"'

    def is_installed(self, name: str, *, cask: bool = False) -> bool:
        """Return ``True`` when *name* is listed by ``brew list``."""
        args = ["list", "--cask", name] if cask else ["list", name]
        return self._succeeds(*args)

    def install_command(self, *names: str, cask: bool = False) -> list[str]:
        """Return the argv used to install *names*."""
        return self.command("install", *(["--cask"] if cask else []), *names)

    def uninstall_command(self, *names: str, cask: bool = False) -> list[str]:
        """Return the argv used to uninstall *names*."""
        return self.command("uninstall", *(["--cask"] if cask else []), *names)

    def install(self, name: str, *, cask: bool = False) -> subprocess.CompletedProcess[str]:
        """Install a formula or cask."""
        return self._run(*self.install_command(name, cask=cask)[1:])

    def uninstall(self, name: str, *, cask: bool = False) -> subprocess.CompletedProcess[str]:
        """Uninstall a formula or cask."""
        return self._run(*self.uninstall_command(name, cask=cask)[1:])

    def taps(self) -> list[str]:
        """Return the names of the configured taps."""
        result = self._run("tap", check=False)
        if result.returncode != 0:
            return []
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def tap(self, name: str) -> subprocess.CompletedProcess[str]:
        """Add a third-party tap."""
        return self._run("tap", name)

    def analytics_disabled(self) -> bool:
        """Return ``True`` when ``brew analytics state`` reports analytics off."""
        result = self._run("analytics", "state", check=False)
        return result.returncode == 0 and "disabled" in (result.stdout or "").lower()

    def analytics_off(self) -> subprocess.CompletedProcess[str]:
        """Disable Homebrew analytics."""
        return self._run("analytics", "off")

    def update(self) -> int:
        """Refresh package definitions and return a best-effort update count."""
        result = self._run("update")
        output = f"{result.stdout or ''}{result.stderr or ''}"
        return len(_UPDATED_LINE.findall(output))

    def outdated(self) -> list[str]:
        """Return outdated package names, one per line of ``--quiet`` output."""
        result = self._run("outdated", "--quiet", check=False)
        if result.returncode != 0:
            return []
        return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]

    def upgrade(self) -> subprocess.CompletedProcess[str]:
        """Upgrade every outdated package."""
        return self._run("upgrade")

    def autoremove(self, *, quiet: bool = True) -> int:
        """Remove unused dependencies and return a best-effort removal count."""
        args = ["autoremove", "-q"] if quiet else ["autoremove"]
        result = self._run(*args, check=False)
        output = f"{result.stdout or ''}{result.stderr or ''}"
        return len(_REMOVED_LINE.findall(output))

    def cleanup(self, *, scrub: bool = False) -> subprocess.CompletedProcess[str]:
        """Remove stale versions and downloads."""
        args = ["cleanup", "-s"] if scrub else ["cleanup", "-q"]
        return self._run(*args, check=False)

    def cache_path(self) -> Path | None:
        """Return ``brew --cache`` or ``None`` when it cannot be determined."""
        result = self._run("--cache", check=False)
        value = (result.stdout or "").strip()
        if result.returncode != 0 or not value:
            return None
        return Path(value)


__all__ = ["HomebrewError", "HomebrewProvider"]
