"""GUI application installs through Homebrew casks."""
from __future__ import annotations

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
    run_batch,
)
from .common import brew_cleanup, package_actions, require_homebrew


def update_definitions(tools: Toolbox) -> StepDefinition:
    """Return a fatal ``brew update`` step."""

    def run(context: StepContext) -> StepResult:
        if context.dry_run:
            context.output.dry_run(format_command(tools.brew.command("update")))
            return StepResult(StepOutcome.CHANGED, "Dry run")
        with context.output.spinner("Fetching latest package definitions"):
            updated = tools.brew.update()
        return StepResult(StepOutcome.DONE, "Updated", tallies={"packages.updated": updated})

    return StepDefinition("update", "Updating Homebrew", run)


def build_apps_bootstrap(config: WorkstationConfig, tools: Toolbox) -> Workflow:
    """Install every configured GUI application that is missing."""

    def install(context: StepContext) -> StepResult:
        actions = package_actions(
            tools.brew,
            config.homebrew.gui_apps,
            cask=True,
            tally="apps.installed",
            skipped_tally="apps.skipped",
            failed_tally="apps.failed",
        )
        return run_batch(context, actions, spinner=lambda action: f"Installing {action.name}")

    return Workflow(
        command="apps bootstrap",
        title="GUI Applications Setup",
        steps=[
            require_homebrew(tools.brew),
            update_definitions(tools),
            StepDefinition("apps", "Installing GUI applications", install, fatal=False),
        ],
        summary=(
            SummaryField("Installed", "apps.installed"),
            SummaryField("Skipped", "apps.skipped"),
            SummaryField("Failed", "apps.failed"),
        ),
    )


def build_apps_rollback(config: WorkstationConfig, tools: Toolbox) -> Workflow:
    """Uninstall the configured GUI applications."""

    def uninstall(context: StepContext) -> StepResult:
        actions = package_actions(
            tools.brew,
            config.homebrew.gui_apps,
            cask=True,
            install=False,
            tally="apps.removed",
            skipped_tally="apps.skipped",
            failed_tally="apps.failed",
        )
        return run_batch(context, actions, spinner=lambda action: f"Uninstalling {action.name}")

    def cleanup(context: StepContext) -> StepResult:
        if context.config.keeps("brew-cleanup"):
            return StepResult(StepOutcome.SKIPPED, "Skipped")
        return brew_cleanup(context, tools.brew)

    return Workflow(
        command="apps rollback",
        title="GUI Applications Uninstall",
        steps=[
            require_homebrew(tools.brew, title="Checking Homebrew installation"),
            StepDefinition("apps", "Uninstalling GUI applications", uninstall, fatal=False),
            StepDefinition("cleanup", "Cleaning up Homebrew", cleanup, fatal=False),
        ],
        summary=(
            SummaryField("Removed", "apps.removed"),
            SummaryField("Skipped", "apps.skipped"),
        ),
    )


__all__ = ["build_apps_bootstrap", "build_apps_rollback", "update_definitions"]
