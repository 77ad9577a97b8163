"""Data models for provisioning steps and their aggregated outcome."""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import RunConfig
    from ..output import OutputAdapter


class StepOutcome(str, Enum):
    """Classified result of a step or of a single item inside a step."""

    DONE = "done"
    SKIPPED = "skipped"
    CHANGED = "changed"
    FAILED = "failed"

    @property
    def is_failure(self) -> bool:
        """Return ``True`` when the outcome represents a failure."""
        return self is StepOutcome.FAILED


@dataclass(slots=True, frozen=True)
class ItemResult:
    """Outcome of one idempotent action applied to a named resource."""

    name: str
    outcome: StepOutcome
    message: str
    tally: str | None = None


@dataclass(slots=True, frozen=True)
class StepResult:
    """Outcome of a step, optionally broken down per item."""

    outcome: StepOutcome
    message: str
    items: Sequence[ItemResult] = field(default_factory=tuple)
    tallies: Mapping[str, int] = field(default_factory=dict)

    @classmethod
    def from_items(
        cls,
        items: Sequence[ItemResult],
        *,
        message: str | None = None,
        tallies: Mapping[str, int] | None = None,
    ) -> StepResult:
        """Derive a step result from per-item results."""
        outcome = combine_outcomes(item.outcome for item in items)
        if message is None:
            message = describe_items(items)
        return cls(outcome=outcome, message=message, items=tuple(items), tallies=tallies or {})


@dataclass(slots=True, frozen=True)
class StepContext:
    """Shared, read-only collaborators handed to every step action."""

    config: RunConfig
    output: OutputAdapter

    @property
    def dry_run(self) -> bool:
        """Return ``True`` when mutations must only be reported."""
        return self.config.dry_run


StepAction = Callable[[StepContext], "StepResult | None"]


@dataclass(slots=True, frozen=True)
class StepDefinition:
    """Metadata + callable for a step."""

    name: str
    title: str
    run: StepAction
    fatal: bool = True


@dataclass(slots=True, frozen=True)
class SummaryField:
    """One counter shown in the end-of-run summary."""

    label: str
    tally: str


@dataclass(slots=True, frozen=True)
class Workflow:
    """An ordered list of steps plus how to present them."""

    command: str
    title: str
    steps: Sequence[StepDefinition]
    summary: Sequence[SummaryField] = field(default_factory=tuple)


@dataclass(slots=True)
class RunSummary:
    """Counters accumulated across a run.

    ``outcomes`` counts every classified outcome; items are counted
    individually when a step reports them, otherwise the step itself is
    counted. ``tallies`` holds the labelled counters workflows report, such
    as ``apps.installed``.
    """

    outcomes: Counter[StepOutcome] = field(default_factory=Counter)
    tallies: Counter[str] = field(default_factory=Counter)

    def accumulate(self, result: StepResult) -> None:
        """Fold *result* into the running counters."""
        if result.items:
            for item in result.items:
                self.outcomes[item.outcome] += 1
                if item.tally:
                    self.tallies[item.tally] += 1
        else:
            self.outcomes[result.outcome] += 1
        for key, value in result.tallies.items():
            self.tallies[key] += value

    def count(self, outcome: StepOutcome) -> int:
        """Return the number of results classified as *outcome*."""
        return self.outcomes[outcome]

    def tally(self, key: str) -> int:
        """Return the labelled counter *key*."""
        return self.tallies[key]

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "outcomes": {outcome.value: self.outcomes[outcome] for outcome in StepOutcome},
            "tallies": dict(sorted(self.tallies.items())),
        }


@dataclass(slots=True, frozen=True)
class RunReport:
    """Complete report for a workflow run."""

    summary: RunSummary
    results: Sequence[tuple[str, StepResult]]
    exit_code: int
    completed: bool
    cancelled: bool = False
    error: str | None = None


OUTCOME_ORDER: Mapping[StepOutcome, int] = {
    StepOutcome.DONE: 0,
    StepOutcome.SKIPPED: 1,
    StepOutcome.CHANGED: 2,
    StepOutcome.FAILED: 3,
}


def combine_outcomes(outcomes: Iterable[StepOutcome]) -> StepOutcome:
    """Return the most significant outcome; all-skipped stays skipped."""
    collected = list(outcomes)
    if not collected:
        return StepOutcome.DONE
    return max(collected, key=OUTCOME_ORDER.__getitem__)


def describe_items(items: Sequence[ItemResult]) -> str:
    """Summarise per-item outcomes in a short human sentence."""
    counts = Counter(item.outcome for item in items)
    if not items or counts[StepOutcome.SKIPPED] == len(items):
        return "Already satisfied"
    parts: list[str] = []
    if counts[StepOutcome.CHANGED]:
        parts.append(f"{counts[StepOutcome.CHANGED]} changed")
    if counts[StepOutcome.SKIPPED]:
        parts.append(f"{counts[StepOutcome.SKIPPED]} already satisfied")
    if counts[StepOutcome.FAILED]:
        parts.append(f"{counts[StepOutcome.FAILED]} failed")
    return ", ".join(parts).capitalize()

