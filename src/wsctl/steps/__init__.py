"""Step runner infrastructure shared by every workflow."""

from __future__ import annotations

from .actions import IdempotentAction, format_command, run_action, run_batch
from .engine import StepAbort, StepRunner, termination_guard
from .models import (
    ItemResult,
    RunReport,
    RunSummary,
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    SummaryField,
    Workflow,
    combine_outcomes,
    describe_items,
)

__all__ = [
    "IdempotentAction",
    "ItemResult",
    "RunReport",
    "RunSummary",
    "StepAbort",
    "StepContext",
    "StepDefinition",
    "StepOutcome",
    "StepResult",
    "StepRunner",
    "SummaryField",
    "Workflow",
    "combine_outcomes",
    "describe_items",
    "format_command",
    "run_action",
    "run_batch",
    "termination_guard",
]
