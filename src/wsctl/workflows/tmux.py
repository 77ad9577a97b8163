"""tmux development session and the per-directory popup session."""
from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Mapping

from ..config import WorkstationConfig
from ..errors import PrerequisiteError, WorkstationError
from ..providers import Toolbox
from ..steps import (
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    Workflow,
    format_command,
)

LOGGER = logging.getLogger(__name__)

MAIN_WINDOW = "main"
SIDE_PANE_PERCENT = 10
POPUP_PREFIX = "opencode"


def build_tmux_session(
    config: WorkstationConfig,
    tools: Toolbox,
    *,
    session: str | None = None,
    attach: bool = True,
    env: Mapping[str, str] | None = None,
) -> Workflow:
    """Ensure the development session exists, then switch to or attach it.

    A new session gets a main pane with a narrow right column and a short
    bottom strip, with focus returned to the main pane.
    """
    tmux = tools.tmux
    name = session or config.tmux.session
    env = os.environ if env is None else env

    def verify(context: StepContext) -> StepResult:
        if not tmux.available():
            raise PrerequisiteError("tmux not found")
        return StepResult(StepOutcome.DONE, "Ready")

    def ensure(context: StepContext) -> StepResult:
        if tmux.has_session(name):
            return StepResult(StepOutcome.SKIPPED, f"Session '{name}' already exists")
        if context.dry_run:
            context.output.dry_run(
                format_command(tmux.command("new-session", "-d", "-s", name, "-n", MAIN_WINDOW))
            )
            context.output.dry_run(f"split {name}:{MAIN_WINDOW} into main, side and bottom panes")
            return StepResult(StepOutcome.CHANGED, "Dry run")
        tmux.new_session(name, window=MAIN_WINDOW)
        main_pane = tmux.pane_id(f"{name}:{MAIN_WINDOW}")
        tmux.split_window(main_pane, horizontal=True, percent=SIDE_PANE_PERCENT)
        tmux.split_window(main_pane, horizontal=False, percent=SIDE_PANE_PERCENT)
        tmux.select_pane(main_pane)
        return StepResult(StepOutcome.CHANGED, f"Created session '{name}'")

    def open_session(context: StepContext) -> StepResult:
        if not attach:
            return StepResult(StepOutcome.SKIPPED, "Not attaching (--no-attach)")
        inside = bool(env.get("TMUX"))
        if context.dry_run:
            verb = "switch-client" if inside else "attach-session"
            context.output.dry_run(format_command(tmux.command(verb, "-t", name)))
            return StepResult(StepOutcome.CHANGED, "Dry run")
        if inside:
            tmux.switch_client(name)
            return StepResult(StepOutcome.DONE, f"Switched to '{name}'")
        context.output.stop_spinner()
        tmux.attach(name)
        return StepResult(StepOutcome.DONE, f"Detached from '{name}'")

    return Workflow(
        command="tmux session",
        title="TMUX Session",
        steps=[
            StepDefinition("tmux", "Checking installation", verify),
            StepDefinition("session", "Ensuring session", ensure),
            StepDefinition("open", "Opening session", open_session),
        ],
    )


def popup_session_name(path: str) -> str:
    """Return the popup session name derived from a pane's working directory."""
    digest = hashlib.md5(path.encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"{POPUP_PREFIX}-{digest[:8]}"


def open_popup(
    config: WorkstationConfig,
    tools: Toolbox,
    *,
    width: str | None = None,
    height: str | None = None,
    command: str | None = None,
) -> str | None:
    """Open a popup attached to the session for the current pane's directory.

    The session is created running *command* when it does not exist yet.
    Failures are logged and swallowed; the name of the attached session is
    returned on success.
    """
    tmux = tools.tmux
    popup = config.tmux
    try:
        pane_path = tmux.current_pane_path()
        if pane_path is None:
            return None
        session = popup_session_name(str(pane_path))
        if not tmux.has_session(session):
            tmux.new_session(session, cwd=pane_path, command=command or popup.popup_command)
        tmux.display_popup(
            width=width or popup.popup_width,
            height=height or popup.popup_height,
            command=f'{tmux.binary} attach-session -t "{session}"',
        )
    except (WorkstationError, OSError) as exc:
        LOGGER.debug("popup failed: %s", exc)
        return None
    return session


__all__ = ["build_tmux_session", "open_popup", "popup_session_name"]
