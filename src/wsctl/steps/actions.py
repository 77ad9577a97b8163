"""Idempotent provisioning actions.

An action owns one named resource. It probes the current state first and
only mutates when the probe says the resource is not already where it should
be. In dry-run mode the commands are reported instead of executed.
"""
from __future__ import annotations

import logging
import shlex
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field

from ..errors import CommandError, FatalError, ToolNotFoundError
from .models import ItemResult, StepContext, StepOutcome, StepResult

LOGGER = logging.getLogger(__name__)


def format_command(command: Sequence[str] | str) -> str:
    """Render *command* the way a shell user would type it."""
    if isinstance(command, str):
        return command
    return shlex.join(command)


@dataclass(slots=True)
class IdempotentAction:
    """Bring a named resource to its target state exactly once."""

    name: str
    probe: Callable[[], bool]
    apply: Callable[[], object]
    commands: Sequence[Sequence[str] | str] = field(default_factory=tuple)
    satisfied: str = "Already satisfied"
    changed: str = "Applied"
    failed: str = "Failed"
    tally: str | None = None
    skipped_tally: str | None = None
    failed_tally: str | None = None

    def execute(self, context: StepContext) -> ItemResult:
        """Probe, then skip, report or apply."""
        if not context.config.force and self.probe():
            return ItemResult(
                name=self.name,
                outcome=StepOutcome.SKIPPED,
                message=self.satisfied,
                tally=self.skipped_tally,
            )

        if context.dry_run:
            for command in self.commands:
                context.output.dry_run(format_command(command))
            return ItemResult(
                name=self.name,
                outcome=StepOutcome.CHANGED,
                message="Dry run",
                tally=self.tally,
            )

        try:
            self.apply()
        except FatalError:
            raise
        except (CommandError, ToolNotFoundError, OSError) as exc:
            LOGGER.debug("action %s failed: %s", self.name, exc)
            return ItemResult(
                name=self.name,
                outcome=StepOutcome.FAILED,
                message=f"{self.failed}: {exc}",
                tally=self.failed_tally,
            )
        return ItemResult(
            name=self.name,
            outcome=StepOutcome.CHANGED,
            message=self.changed,
            tally=self.tally,
        )


def run_action(context: StepContext, action: IdempotentAction) -> StepResult:
    """Execute a single action and wrap it as a step result."""
    item = action.execute(context)
    return StepResult(outcome=item.outcome, message=item.message, items=(item,))


def run_batch(
    context: StepContext,
    actions: Iterable[IdempotentAction],
    *,
    spinner: Callable[[IdempotentAction], str] | None = None,
    report: bool = True,
    message: str | None = None,
) -> StepResult:
    """Execute *actions* one by one; a failing item never stops the batch."""
    items: list[ItemResult] = []
    for action in actions:
        if spinner is not None:
            with context.output.spinner(spinner(action)):
                item = action.execute(context)
        else:
            item = action.execute(context)
        items.append(item)
        if report:
            _report_item(context, item)
    return StepResult.from_items(items, message=message)


def _report_item(context: StepContext, item: ItemResult) -> None:
    if item.outcome is StepOutcome.FAILED:
        context.output.failure(f"{item.message} ({item.name})")
    elif item.outcome is StepOutcome.SKIPPED:
        context.output.skip(f"{item.message}: {item.name}")
    elif not context.dry_run:
        context.output.success(f"{item.message} {item.name}")


__all__ = ["IdempotentAction", "format_command", "run_action", "run_batch"]
