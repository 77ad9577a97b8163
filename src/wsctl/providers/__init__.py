"""Providers wrapping the external tools a workstation is provisioned with."""
from __future__ import annotations

from dataclasses import dataclass, field

from ..config import WorkstationConfig
from .base import CommandProvider, Runner, Shell, raise_for_status, subprocess_runner
from .git import GitError, GitProvider
from .homebrew import HomebrewError, HomebrewProvider
from .jj import JujutsuError, JujutsuProvider
from .ssh import SshKeygenError, SshKeygenProvider
from .stow import StowError, StowProvider
from .system import SystemCommandError, SystemProvider
from .tmux import TmuxError, TmuxProvider


@dataclass(slots=True)
class Toolbox:
    """Every provider bound to one shell and the configured executables."""

    brew: HomebrewProvider
    git: GitProvider
    stow: StowProvider
    tmux: TmuxProvider
    ssh_keygen: SshKeygenProvider
    jj: JujutsuProvider
    system: SystemProvider
    shell: Shell = field(default_factory=Shell)

    @classmethod
    def from_config(cls, config: WorkstationConfig, shell: Shell | None = None) -> Toolbox:
        """Construct providers using the executable names from *config*."""
        shell = shell or Shell()
        tools = config.tools
        return cls(
            brew=HomebrewProvider(shell=shell, binary=tools.brew),
            git=GitProvider(shell=shell, binary=tools.git),
            stow=StowProvider(shell=shell, binary=tools.stow),
            tmux=TmuxProvider(shell=shell, binary=tools.tmux),
            ssh_keygen=SshKeygenProvider(shell=shell, binary=tools.ssh_keygen),
            jj=JujutsuProvider(shell=shell, binary=tools.jj),
            system=SystemProvider(shell=shell, tools=tools),
            shell=shell,
        )


__all__ = [
    "CommandProvider",
    "GitError",
    "GitProvider",
    "HomebrewError",
    "HomebrewProvider",
    "JujutsuError",
    "JujutsuProvider",
    "Runner",
    "Shell",
    "SshKeygenError",
    "SshKeygenProvider",
    "StowError",
    "StowProvider",
    "SystemCommandError",
    "SystemProvider",
    "TmuxError",
    "TmuxProvider",
    "Toolbox",
    "raise_for_status",
    "subprocess_runner",
]
