"""Provisioning workflows assembled from steps and providers."""

from __future__ import annotations

from .apps import build_apps_bootstrap, build_apps_rollback
from .brew import build_brew_maintain
from .cleanup import build_system_cleanup
from .dev import build_dev_bootstrap, build_dev_rollback
from .jj import build_jj_identity, match_identity
from .ssh import build_ssh_bootstrap, render_ssh_config
from .tmux import build_tmux_session, open_popup, popup_session_name

__all__ = [
    "build_apps_bootstrap",
    "build_apps_rollback",
    "build_brew_maintain",
    "build_dev_bootstrap",
    "build_dev_rollback",
    "build_jj_identity",
    "build_ssh_bootstrap",
    "build_system_cleanup",
    "build_tmux_session",
    "match_identity",
    "open_popup",
    "popup_session_name",
    "render_ssh_config",
]
