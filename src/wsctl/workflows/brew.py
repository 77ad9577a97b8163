"""Routine Homebrew maintenance: update, upgrade and clean up."""
from __future__ import annotations

import logging

from ..config import WorkstationConfig
from ..providers import Toolbox
from ..steps import (
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    SummaryField,
    Workflow,
    format_command,
)
from .apps import update_definitions
from .common import remove_path, require_homebrew

LOGGER = logging.getLogger(__name__)


def build_brew_maintain(
    config: WorkstationConfig, tools: Toolbox, *, wipe_cache: bool = False
) -> Workflow:
    """Return the maintenance workflow; *wipe_cache* also empties ``brew --cache``."""
    brew = tools.brew

    def upgrade(context: StepContext) -> StepResult:
        with context.output.spinner("Checking outdated packages"):
            outdated = brew.outdated()
        if not outdated:
            return StepResult(StepOutcome.SKIPPED, "Already up to date")
        tallies = {"packages.upgraded": len(outdated)}
        if context.dry_run:
            context.output.dry_run(format_command(brew.command("upgrade")))
            return StepResult(StepOutcome.CHANGED, "Dry run", tallies=tallies)
        with context.output.spinner("Installing available upgrades"):
            brew.upgrade()
        return StepResult(StepOutcome.CHANGED, f"Upgraded {len(outdated)}", tallies=tallies)

    def cleanup(context: StepContext) -> StepResult:
        if context.dry_run:
            context.output.dry_run(format_command(brew.command("cleanup", "-s")))
            context.output.dry_run(format_command(brew.command("autoremove")))
            if wipe_cache:
                context.output.dry_run("remove everything under $(brew --cache)")
            return StepResult(StepOutcome.CHANGED, "Dry run")
        with context.output.spinner("Removing outdated versions and cache"):
            brew.cleanup(scrub=True)
            removed = brew.autoremove(quiet=False)
            if wipe_cache:
                _wipe_cache(tools)
        return StepResult(StepOutcome.DONE, "Clean", tallies={"packages.removed": removed})

    return Workflow(
        command="brew maintain",
        title="Homebrew Maintenance",
        steps=[
            require_homebrew(brew),
            update_definitions(tools),
            StepDefinition("upgrade", "Upgrading packages", upgrade),
            StepDefinition("cleanup", "Cleaning up", cleanup, fatal=False),
        ],
        summary=(
            SummaryField("Updated", "packages.updated"),
            SummaryField("Upgraded", "packages.upgraded"),
            SummaryField("Removed", "packages.removed"),
        ),
    )


def _wipe_cache(tools: Toolbox) -> None:
    cache = tools.brew.cache_path()
    if cache is None or not cache.is_dir():
        return
    for entry in cache.iterdir():
        try:
            remove_path(entry)
        except OSError as exc:
            LOGGER.debug("could not remove %s: %s", entry, exc)


__all__ = ["build_brew_maintain"]
