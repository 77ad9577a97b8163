"""Sequential execution harness for provisioning workflows."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from types import FrameType

from ..config import RunConfig
from ..errors import FatalError, TerminationRequested, UserDeclined, WorkstationError
from ..exit_codes import ExitCode
from ..logging import OperationScope
from ..output import OutputAdapter
from .models import (
    RunReport,
    RunSummary,
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    Workflow,
)

LOGGER = logging.getLogger(__name__)


class StepAbort(WorkstationError):
    """Raised when a fatal step fails without a more specific error."""


def _raise_termination(signum: int, frame: FrameType | None) -> None:
    raise TerminationRequested(signum)


@contextmanager
def termination_guard() -> Iterator[None]:
    """Translate SIGTERM into :class:`TerminationRequested` for the block."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    previous = signal.signal(signal.SIGTERM, _raise_termination)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


class StepRunner:
    """Run workflow steps in order and always leave the terminal clean."""

    def __init__(
        self,
        config: RunConfig,
        output: OutputAdapter,
        *,
        operation: OperationScope | None = None,
    ) -> None:
        """Store the run configuration and rendering collaborators."""
        self.config = config
        self.output = output
        self.operation = operation
        self.context = StepContext(config=config, output=output)

    def run(self, workflow: Workflow) -> RunReport:
        """Execute *workflow* and return its report.

        Fatal failures stop the run; soft failures are counted and the run
        continues. Whatever happens, the spinner is stopped and a trailing
        blank line is written before returning.
        """
        summary = RunSummary()
        results: list[tuple[str, StepResult]] = []
        exit_code: int = ExitCode.OK
        completed = False
        cancelled = False
        error: str | None = None

        try:
            with termination_guard():
                self.output.clear()
                self.output.header(workflow.title)
                self.output.blank()
                for step in workflow.steps:
                    result = self._run_step(step)
                    summary.accumulate(result)
                    results.append((step.name, result))
                    if step.fatal and result.outcome is StepOutcome.FAILED:
                        raise StepAbort(result.message)
                if workflow.summary:
                    self.output.blank()
                    self.output.summary(
                        [(field.label, summary.tally(field.tally)) for field in workflow.summary]
                    )
                self.output.complete()
                completed = True
        except UserDeclined:
            cancelled = True
            exit_code = ExitCode.OK
            self.output.success("Cancelled")
        except WorkstationError as exc:
            exit_code = int(exc.exit_code)
            error = str(exc)
            self.output.muted(f"Error: {exc}")
        except KeyboardInterrupt:
            exit_code = ExitCode.INTERRUPTED
            error = "interrupted"
        except TerminationRequested:
            exit_code = ExitCode.TERMINATED
            error = "terminated"
        finally:
            self.output.stop_spinner()
            self.output.blank()

        return RunReport(
            summary=summary,
            results=tuple(results),
            exit_code=exit_code,
            completed=completed,
            cancelled=cancelled,
            error=error,
        )

    def _run_step(self, step: StepDefinition) -> StepResult:
        self.output.step(step.title)
        try:
            result = step.run(self.context) or StepResult(StepOutcome.DONE, "Done")
        except UserDeclined as exc:
            self._record(step.name, "declined", str(exc))
            raise
        except FatalError:
            self._record(step.name, StepOutcome.FAILED.value, "aborted")
            raise
        except WorkstationError as exc:
            if step.fatal:
                self._record(step.name, StepOutcome.FAILED.value, str(exc))
                raise
            LOGGER.debug("soft failure in step %s: %s", step.name, exc)
            result = StepResult(StepOutcome.FAILED, str(exc))
        except OSError as exc:
            if step.fatal:
                self._record(step.name, StepOutcome.FAILED.value, str(exc))
                raise StepAbort(str(exc)) from exc
            result = StepResult(StepOutcome.FAILED, str(exc))
        finally:
            self.output.stop_spinner()

        self._render(result)
        self._record(step.name, result.outcome.value, result.message)
        return result

    def _render(self, result: StepResult) -> None:
        if result.outcome is StepOutcome.FAILED:
            self.output.failure(result.message)
        elif result.outcome is StepOutcome.CHANGED and self.config.dry_run:
            self.output.success("Dry run")
        else:
            self.output.success(result.message)

    def _record(self, name: str, status: str, detail: str) -> None:
        if self.operation is not None:
            self.operation.add_step(name, status=status, detail=detail)


__all__ = ["StepAbort", "StepRunner", "termination_guard"]
