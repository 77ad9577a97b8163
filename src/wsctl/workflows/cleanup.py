"""Removal of shell history, editor leftovers and caches from the home directory."""
from __future__ import annotations

from ..config import CLEANUP_GROUPS, WorkstationConfig
from ..steps import (
    IdempotentAction,
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    SummaryField,
    Workflow,
    run_batch,
)
from .common import removal_action

GROUP_ORDER = ("history", "editor", "package-caches", "homebrew", "system")


def build_system_cleanup(config: WorkstationConfig) -> Workflow:
    """Delete every configured path group not excluded with a keep tag.

    Missing paths and paths that cannot be removed both count as skipped.
    """
    groups = [name for name in GROUP_ORDER if name in config.cleanup]
    groups += sorted(name for name in config.cleanup if name not in GROUP_ORDER)

    def clean(context: StepContext) -> StepResult:
        actions: list[IdempotentAction] = []
        for group in groups:
            if group in CLEANUP_GROUPS and context.config.keeps(group):
                continue
            actions.extend(
                removal_action(
                    path,
                    tally="items.cleaned",
                    skipped_tally="items.skipped",
                    failed_tally="items.skipped",
                )
                for path in config.cleanup[group]
            )
        with context.output.spinner("Cleaning shell history, editor files, and package caches"):
            result = run_batch(context, actions, report=False)
        cleaned = sum(1 for item in result.items if item.outcome is StepOutcome.CHANGED)
        if context.dry_run:
            context.output.muted(f"Would remove {cleaned} items")
            message = "Dry run"
        elif cleaned:
            message = f"Removed {cleaned} items"
        else:
            message = "System already clean"
        return StepResult(
            outcome=StepOutcome.SKIPPED if not cleaned else StepOutcome.CHANGED,
            message=message,
            items=result.items,
        )

    return Workflow(
        command="system cleanup",
        title="System Cleanup",
        steps=[StepDefinition("cleanup", "Removing cache and temporary files", clean, fatal=False)],
        summary=(
            SummaryField("Cleaned", "items.cleaned"),
            SummaryField("Skipped", "items.skipped"),
        ),
    )


__all__ = ["GROUP_ORDER", "build_system_cleanup"]
