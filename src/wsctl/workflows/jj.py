"""Repository-scoped jj identity selection."""
from __future__ import annotations

from pathlib import Path

from ..config import JjIdentity, WorkstationConfig
from ..errors import FatalError, PrerequisiteError
from ..providers import Toolbox
from ..steps import (
    IdempotentAction,
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    Workflow,
    run_batch,
)


def match_identity(cwd: Path, identities: tuple[JjIdentity, ...]) -> JjIdentity | None:
    """Return the first identity whose marker occurs in *cwd*."""
    text = cwd.as_posix()
    for identity in identities:
        if identity.marker in text:
            return identity
    return None


def build_jj_identity(config: WorkstationConfig, tools: Toolbox, *, cwd: Path) -> Workflow:
    """Set ``user.name`` and ``user.email`` for the repository at *cwd*."""
    jj = tools.jj

    def check_repository(context: StepContext) -> StepResult:
        if not jj.available():
            raise PrerequisiteError("jj not found")
        if not jj.in_repository(cwd):
            raise FatalError("Not in a jj repository")
        return StepResult(StepOutcome.DONE, "Ready")

    def set_identity(context: StepContext) -> StepResult:
        identity = match_identity(cwd, config.jj_identities)
        if identity is None:
            raise FatalError("No matching git host pattern found")
        actions = [
            IdempotentAction(
                name=key,
                probe=lambda key=key, value=value: jj.config_get(key, cwd=cwd) == value,
                apply=lambda key=key, value=value: jj.config_set(key, value, cwd=cwd),
                commands=(jj.config_set_command(key, value),),
                satisfied="Already set",
                changed="Set",
            )
            for key, value in (("user.name", identity.name), ("user.email", identity.email))
        ]
        result = run_batch(context, actions, report=False)
        if result.outcome is StepOutcome.FAILED:
            return result
        if result.outcome is StepOutcome.SKIPPED:
            message = f"jj identity already set to {identity.label}"
        else:
            message = f"Set jj identity to {identity.label}"
        return StepResult(outcome=result.outcome, message=message, items=result.items)

    return Workflow(
        command="jj identity",
        title="jj Identity",
        steps=[
            StepDefinition("repository", "Checking repository", check_repository),
            StepDefinition("identity", "Setting identity", set_identity),
        ],
    )


__all__ = ["build_jj_identity", "match_identity"]
