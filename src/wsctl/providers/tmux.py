"""tmux provider for session management and popups."""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..errors import CommandError
from .base import CommandProvider


class TmuxError(CommandError):
    """Raised when a tmux command fails."""


@dataclass(slots=True)
class TmuxProvider(CommandProvider):
    """Wrap the ``tmux`` command line."""

    binary: str = "tmux"

    error_class: ClassVar[type[CommandError]] = TmuxError

    def has_session(self, name: str) -> bool:
        """Return ``True`` when a session called *name* exists."""
        return self._succeeds("has-session", "-t", name)

    def new_session(
        self,
        name: str,
        *,
        window: str | None = None,
        cwd: Path | None = None,
        command: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Create a detached session."""
        args = ["new-session", "-d", "-s", name]
        if window:
            args += ["-n", window]
        if cwd is not None:
            args += ["-c", str(cwd)]
        if command:
            args.append(command)
        return self._run(*args)

    def pane_id(self, target: str) -> str:
        """Return the pane identifier (``%N``) for *target*."""
        result = self._run("display-message", "-t", target, "-p", "#{pane_id}")
        return (result.stdout or "").strip()

    def split_window(
        self, target: str, *, horizontal: bool, percent: int
    ) -> subprocess.CompletedProcess[str]:
        """Split *target* giving the new pane *percent* of the space."""
        direction = "-h" if horizontal else "-v"
        return self._run("split-window", direction, "-p", str(percent), "-t", target)

    def select_pane(self, target: str) -> subprocess.CompletedProcess[str]:
        """Focus the pane *target*."""
        return self._run("select-pane", "-t", target)

    def switch_client(self, name: str) -> subprocess.CompletedProcess[str]:
        """Switch the current client to session *name*."""
        return self._run("switch-client", "-t", name)

    def attach(self, name: str) -> subprocess.CompletedProcess[str]:
        """Attach the terminal to session *name*."""
        return self._run("attach-session", "-t", name, capture_output=False)

    def current_pane_path(self) -> Path | None:
        """Return the working directory of the active pane, if any."""
        result = self._run("display-message", "-p", "-F", "#{pane_current_path}", check=False)
        value = (result.stdout or "").strip()
        if result.returncode != 0 or not value:
            return None
        return Path(value)

    def display_popup(
        self, *, width: str, height: str, command: str
    ) -> subprocess.CompletedProcess[str]:
        """Open a popup running *command* that closes when it exits."""
        return self._run("display-popup", "-w", width, "-h", height, "-E", command)


__all__ = ["TmuxError", "TmuxProvider"]
