"""Steps and action factories shared by several workflows."""
from __future__ import annotations

import shutil
from collections.abc import Iterable, Sequence
from pathlib import Path

from ..config import RepositoryConfig
from ..errors import CommandError, PlatformError, PrerequisiteError, UserDeclined
from ..providers import GitProvider, HomebrewProvider, SystemProvider
from ..steps import (
    IdempotentAction,
    ItemResult,
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    format_command,
)

MACOS = "Darwin"


def require_macos(system: SystemProvider, *, purpose: str = "script") -> StepDefinition:
    """Return a fatal step refusing to run anywhere but macOS."""

    def run(context: StepContext) -> StepResult:
        name = system.platform_name()
        if name != MACOS:
            raise PlatformError(f"This {purpose} is intended for macOS ({MACOS}) only, not {name}")
        return StepResult(StepOutcome.DONE, "Ready")

    return StepDefinition(name="platform", title="Checking platform", run=run)


def require_homebrew(brew: HomebrewProvider, *, title: str = "Checking installation") -> StepDefinition:
    """Return a fatal step that fails when ``brew`` is not installed."""

    def run(context: StepContext) -> StepResult:
        if not brew.locate():
            raise PrerequisiteError("Homebrew not found")
        return StepResult(StepOutcome.DONE, "Ready")

    return StepDefinition(name="homebrew", title=title, run=run)


def confirm_or_decline(context: StepContext, planned: Sequence[str], *, warning: str) -> StepResult:
    """Show the planned actions and ask before mutating anything.

    ``--yes`` skips the prompt. A negative answer raises :class:`UserDeclined`.
    """
    if context.config.assume_yes:
        return StepResult(StepOutcome.SKIPPED, "Skipped (--yes)")
    output = context.output
    output.muted(f"Warning: {warning}")
    output.blank()
    output.muted("Planned actions:")
    for line in planned:
        output.plain(f"  • {line}")
    output.blank()
    if not output.confirm("Proceed?"):
        raise UserDeclined("Cancelled")
    return StepResult(StepOutcome.DONE, "Confirmed")


def package_actions(
    brew: HomebrewProvider,
    names: Iterable[str],
    *,
    cask: bool = False,
    install: bool = True,
    tally: str | None = None,
    skipped_tally: str | None = None,
    failed_tally: str | None = None,
) -> list[IdempotentAction]:
    """Build one install (or uninstall) action per package name."""
    actions: list[IdempotentAction] = []
    for name in names:
        if install:
            actions.append(
                IdempotentAction(
                    name=name,
                    probe=lambda name=name: brew.is_installed(name, cask=cask),
                    apply=lambda name=name: brew.install(name, cask=cask),
                    commands=(brew.install_command(name, cask=cask),),
                    satisfied="Already installed",
                    changed="Installed",
                    failed="Failed to install",
                    tally=tally,
                    skipped_tally=skipped_tally,
                    failed_tally=failed_tally,
                )
            )
        else:
            actions.append(
                IdempotentAction(
                    name=name,
                    probe=lambda name=name: not brew.is_installed(name, cask=cask),
                    apply=lambda name=name: brew.uninstall(name, cask=cask),
                    commands=(brew.uninstall_command(name, cask=cask),),
                    satisfied="Not installed",
                    changed="Removed",
                    failed="Failed to remove",
                    tally=tally,
                    skipped_tally=skipped_tally,
                    failed_tally=failed_tally,
                )
            )
    return actions


def brew_cleanup(context: StepContext, brew: HomebrewProvider) -> StepResult:
    """Run ``brew autoremove`` and ``brew cleanup``; their failures are ignored."""
    if not brew.locate():
        return StepResult(StepOutcome.SKIPPED, "Homebrew not found; skipped")
    if context.dry_run:
        context.output.dry_run(format_command(brew.command("autoremove", "-q")))
        context.output.dry_run(format_command(brew.command("cleanup", "-q")))
        return StepResult(StepOutcome.CHANGED, "Dry run")
    with context.output.spinner("Removing unused dependencies and cache"):
        removed = brew.autoremove()
        brew.cleanup()
    return StepResult(StepOutcome.DONE, "Clean", tallies={"packages.autoremoved": removed})


def sync_repository(
    context: StepContext,
    git: GitProvider,
    repository: RepositoryConfig,
    label: str,
) -> ItemResult:
    """Clone *repository* or fast-forward an existing checkout.

    An existing directory that is not a checkout is left untouched.
    """
    directory = repository.directory
    output = context.output
    if git.is_repository(directory):
        if context.dry_run:
            output.dry_run(format_command(git.pull_command(directory)))
            return ItemResult(label, StepOutcome.CHANGED, "Dry run")
        try:
            with output.spinner(f"Pulling latest changes for {label}"):
                result = git.pull_ff_only(directory)
        except CommandError as exc:
            return ItemResult(label, StepOutcome.FAILED, f"Update failed: {exc}")
        if "Already up to date" in (result.stdout or ""):
            return ItemResult(label, StepOutcome.SKIPPED, "Already up to date")
        return ItemResult(label, StepOutcome.CHANGED, "Updated")

    if directory.exists():
        output.muted(
            f"Warning: {directory} exists but is not a git repo; skipping clone to avoid overwriting."
        )
        return ItemResult(label, StepOutcome.SKIPPED, "Not a git repository")

    if context.dry_run:
        output.dry_run(format_command(git.clone_command(repository.repository, directory)))
        return ItemResult(label, StepOutcome.CHANGED, "Dry run")
    try:
        with output.spinner(f"Cloning {label}"):
            git.clone(repository.repository, directory)
    except (CommandError, OSError) as exc:
        return ItemResult(label, StepOutcome.FAILED, f"Clone failed: {exc}")
    return ItemResult(label, StepOutcome.CHANGED, "Cloned")


def remove_path(path: Path) -> None:
    """Delete *path* whether it is a file, symlink or directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


def path_exists(path: Path) -> bool:
    """Return ``True`` for existing paths, including dangling symlinks."""
    return path.exists() or path.is_symlink()


def removal_action(
    path: Path,
    *,
    name: str | None = None,
    changed: str = "Removed",
    satisfied: str = "Not found",
    tally: str | None = None,
    skipped_tally: str | None = None,
    failed_tally: str | None = None,
) -> IdempotentAction:
    """Build an action that deletes *path* when it exists."""
    return IdempotentAction(
        name=name or str(path),
        probe=lambda: not path_exists(path),
        apply=lambda: remove_path(path),
        commands=(["rm", "-rf", str(path)],),
        satisfied=satisfied,
        changed=changed,
        failed="Failed to remove",
        tally=tally,
        skipped_tally=skipped_tally,
        failed_tally=failed_tally,
    )


__all__ = [
    "MACOS",
    "brew_cleanup",
    "confirm_or_decline",
    "package_actions",
    "path_exists",
    "removal_action",
    "remove_path",
    "require_homebrew",
    "require_macos",
    "sync_repository",
]
