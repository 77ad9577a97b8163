"""Operating-system level helpers that do not belong to a single package tool.

The platform probe and the sleep used while polling for the Xcode command
line tools are injectable so the workflows can be exercised off macOS.
"""
from __future__ import annotations

import platform
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..config import ToolsConfig
from ..errors import CommandError, ToolNotFoundError
from .base import Shell, raise_for_status

BASH = "/bin/bash"


class SystemCommandError(CommandError):
    """Raised when curl, rsync, bat or the Homebrew installer fail."""


@dataclass(slots=True)
class SystemProvider:
    """Wrap platform detection, Xcode tooling, downloads and rsync."""

    shell: Shell = field(default_factory=Shell)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    system: Callable[[], str] = platform.system
    sleep: Callable[[float], None] = time.sleep

    def platform_name(self) -> str:
        """Return the kernel name, ``Darwin`` on macOS."""
        return self.system()

    def has(self, tool: str) -> bool:
        """Return ``True`` when *tool* is on ``PATH``."""
        return self.shell.has(tool)

    def _run(
        self,
        argv: list[str],
        *,
        check: bool = True,
        env: dict[str, str] | None = None,
        capture_output: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        result = self.shell.run(argv, env=env, capture_output=capture_output)
        if check:
            raise_for_status(result, argv, SystemCommandError)
        return result

    # ------------------------------------------------------------------
    # Xcode command line tools
    # ------------------------------------------------------------------

    def xcode_tools_installed(self) -> bool:
        """Return ``True`` when ``xcode-select -p`` reports a developer directory."""
        try:
            result = self._run([self.tools.xcode_select, "-p"], check=False)
        except ToolNotFoundError:
            return False
        return result.returncode == 0

    def trigger_xcode_install(self) -> None:
        """Ask macOS to show the command line tools installer prompt."""
        self._run([self.tools.xcode_select, "--install"], check=False)

    def wait_for_xcode_tools(self, *, attempts: int, interval: float) -> bool:
        """Poll until the tools appear; ``False`` after *attempts* misses."""
        for _ in range(attempts):
            if self.xcode_tools_installed():
                return True
            self.sleep(interval)
        return self.xcode_tools_installed()

    # ------------------------------------------------------------------
    # Homebrew installer
    # ------------------------------------------------------------------

    def install_script_command(self, url: str) -> str:
        """Return the shell one-liner equivalent of fetching and running *url*."""
        return f'NONINTERACTIVE=1 {BASH} -c "$({self.tools.curl} -fsSL {url})"'

    def fetch_script(self, url: str) -> str:
        """Download *url* with curl and return its body."""
        result = self._run([self.tools.curl, "-fsSL", url])
        return result.stdout or ""

    def run_script(self, script: str) -> subprocess.CompletedProcess[str]:
        """Run *script* with bash in non-interactive mode, streaming output."""
        return self._run(
            [BASH, "-c", script],
            env={"NONINTERACTIVE": "1"},
            capture_output=False,
        )

    # ------------------------------------------------------------------
    # rsync and bat
    # ------------------------------------------------------------------

    def rsync_command(self, source: Path, destination: Path, *, simulate: bool = False) -> list[str]:
        """Return the argv mirroring *source* into *destination*."""
        flags = ["-ani"] if simulate else ["-a"]
        return [self.tools.rsync, *flags, "--delete", f"{source}/", f"{destination}/"]

    def rsync_pending(self, source: Path, destination: Path) -> list[str]:
        """Return the itemised changes a real sync would make."""
        if not destination.is_dir():
            return [str(destination)]
        result = self._run(self.rsync_command(source, destination, simulate=True))
        return [line for line in (result.stdout or "").splitlines() if line.strip()]

    def rsync(self, source: Path, destination: Path) -> subprocess.CompletedProcess[str]:
        """Mirror *source* into *destination*, deleting extraneous files."""
        destination.mkdir(parents=True, exist_ok=True)
        return self._run(self.rsync_command(source, destination))

    def rebuild_bat_cache(self) -> subprocess.CompletedProcess[str]:
        """Rebuild bat's syntax and theme cache."""
        return self._run([self.tools.bat, "cache", "--build"])


__all__ = ["SystemCommandError", "SystemProvider"]
