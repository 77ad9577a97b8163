"""ssh-keygen provider."""
from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar

from ..errors import CommandError
from .base import CommandProvider


class SshKeygenError(CommandError):
    """Raised when ssh-keygen fails."""


@dataclass(slots=True)
class SshKeygenProvider(CommandProvider):
    """Wrap ``ssh-keygen`` for ed25519 key generation."""

    binary: str = "ssh-keygen"

    error_class: ClassVar[type[CommandError]] = SshKeygenError

    def generate_command(self, path: Path, comment: str) -> list[str]:
        """Return the argv that generates an ed25519 key at *path*."""
        return self.command("-t", "ed25519", "-f", str(path), "-C", comment)

    def generate(self, path: Path, comment: str) -> subprocess.CompletedProcess[str]:
        """Generate a key pair, prompting on the terminal for a passphrase."""
        return self._run(*self.generate_command(path, comment)[1:], capture_output=False)


__all__ = ["SshKeygenError", "SshKeygenProvider"]
