"""Developer environment bootstrap and rollback."""
from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

from ..config import WorkstationConfig
from ..errors import CommandError, PrerequisiteError, TargetError, ToolNotFoundError
from ..providers import HomebrewProvider, Toolbox
from ..steps import (
    IdempotentAction,
    ItemResult,
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    SummaryField,
    Workflow,
    format_command,
    run_action,
    run_batch,
)
from .common import (
    brew_cleanup,
    confirm_or_decline,
    package_actions,
    removal_action,
    require_macos,
    sync_repository,
)

LOGGER = logging.getLogger(__name__)

BOOTSTRAP_TITLE = "macOS Development Environment Setup"
ROLLBACK_TITLE = "macOS Development Environment Rollback"

STOW_LOCAL_IGNORE = """\
RCS
.+,v
CVS
.#.+
.cvsignore
.svn
_darcs
.hg
.git
.gitignore
.gitmodules
.+~
^/README.*
^/LICENSE.*
^/COPYING
^/scripts
^/\\.jj
"""

SHELLENV_MARKER = "brew shellenv"


def build_dev_bootstrap(config: WorkstationConfig, tools: Toolbox) -> Workflow:
    """Return the ordered steps that provision a developer workstation."""
    home = config.home
    homebrew = config.homebrew
    dotfiles = config.dotfiles.directory
    scripts_dir = dotfiles / "scripts"

    def prerequisites(context: StepContext) -> StepResult:
        if not home.is_dir() or not os.access(home, os.W_OK):
            raise TargetError(f"Home directory is not writable: {home}")
        if not tools.system.has(config.tools.curl):
            raise PrerequisiteError("curl is required but not found")
        if not tools.git.available():
            context.output.muted("Note: git not found yet (will be available after Xcode CLT install)")
        return StepResult(StepOutcome.DONE, "Ready")

    def existing_conflicts(context: StepContext) -> StepResult:
        stow = tools.stow
        if not dotfiles.is_dir() or not stow.available():
            return StepResult(StepOutcome.SKIPPED, "Dotfiles not cloned yet")
        with context.output.spinner("Checking for stow conflicts"):
            stow.check_conflicts(dotfiles, home)
        return StepResult(StepOutcome.DONE, "No conflicts")

    def xcode(context: StepContext) -> StepResult:
        system = tools.system

        def install() -> None:
            with context.output.spinner("Triggering Xcode CLI tools installer prompt"):
                system.trigger_xcode_install()
            with context.output.spinner("Waiting for Xcode CLI tools to become available"):
                ready = system.wait_for_xcode_tools(
                    attempts=config.xcode.poll_attempts,
                    interval=config.xcode.poll_interval,
                )
            if not ready:
                raise PrerequisiteError(
                    "Xcode CLI tools not detected after waiting. Install manually then re-run."
                )

        return run_action(
            context,
            IdempotentAction(
                name="xcode-command-line-tools",
                probe=system.xcode_tools_installed,
                apply=install,
                commands=([config.tools.xcode_select, "--install"],),
                satisfied="Already installed",
                changed="Installed",
            ),
        )

    def install_homebrew(context: StepContext) -> StepResult:
        url = homebrew.install_script_url

        def install() -> None:
            with context.output.spinner("Downloading Homebrew installer"):
                script = tools.system.fetch_script(url)
            tools.system.run_script(script)
            if not tools.brew.locate():
                raise PrerequisiteError("Homebrew installer finished but brew was not found")

        return run_action(
            context,
            IdempotentAction(
                name="homebrew",
                probe=tools.brew.locate,
                apply=install,
                commands=(tools.system.install_script_command(url),),
                satisfied="Already installed",
                changed="Installer completed",
            ),
        )

    def shell_environment(context: StepContext) -> StepResult:
        profile = home / ".zprofile"
        line = tools.brew.shellenv_line()

        def configured() -> bool:
            try:
                return SHELLENV_MARKER in profile.read_text(encoding="utf-8")
            except FileNotFoundError:
                return False

        def append() -> None:
            with profile.open("a", encoding="utf-8") as handle:
                handle.write(f"{line}\n")

        actions = [
            IdempotentAction(
                name=str(profile),
                probe=configured,
                apply=append,
                commands=(f"append '{line}' to {profile}",),
                satisfied="Already configured in ~/.zprofile",
                changed="Added to ~/.zprofile",
            ),
            IdempotentAction(
                name="analytics",
                probe=lambda: _analytics_disabled(tools.brew),
                apply=tools.brew.analytics_off,
                commands=(tools.brew.command("analytics", "off"),),
                satisfied="Analytics already disabled",
                changed="Disabled",
                failed="Could not disable analytics",
            ),
        ]
        return run_batch(context, actions, report=False)

    def cli_packages(context: StepContext) -> StepResult:
        actions = package_actions(
            tools.brew,
            homebrew.formulae,
            tally="formulae.installed",
            skipped_tally="formulae.skipped",
            failed_tally="formulae.failed",
        )
        return run_batch(context, actions, spinner=lambda action: f"Installing {action.name}")

    def nerd_fonts(context: StepContext) -> StepResult:
        items: list[ItemResult] = []
        tap = homebrew.font_tap
        if tap:
            tap_item = IdempotentAction(
                name=tap,
                probe=lambda: _tapped(tools.brew, tap),
                apply=lambda: tools.brew.tap(tap),
                commands=(tools.brew.command("tap", tap),),
                satisfied="Already tapped",
                changed="Tapped",
            ).execute(context)
            if tap_item.outcome is StepOutcome.FAILED:
                context.output.muted(f"Note: could not tap {tap}")
            else:
                items.append(tap_item)
        actions = package_actions(
            tools.brew,
            homebrew.nerd_fonts,
            cask=True,
            tally="fonts.installed",
            skipped_tally="fonts.skipped",
            failed_tally="fonts.failed",
        )
        result = run_batch(context, actions, spinner=lambda action: f"Installing {action.name}")
        items.extend(result.items)
        return StepResult.from_items(items, tallies=result.tallies)

    def dotfiles_repository(context: StepContext) -> StepResult:
        item = sync_repository(context, tools.git, config.dotfiles, "dotfiles")
        return StepResult(outcome=item.outcome, message=item.message, items=(item,))

    def workstation_scripts(context: StepContext) -> StepResult:
        source = config.workstation.directory
        repo_item = sync_repository(context, tools.git, config.workstation, "workstation")

        def current() -> bool:
            if not source.is_dir():
                return False
            try:
                return not tools.system.rsync_pending(source, scripts_dir)
            except (CommandError, ToolNotFoundError) as exc:
                LOGGER.debug("rsync probe failed: %s", exc)
                return False

        def copy() -> None:
            if not source.is_dir():
                raise FileNotFoundError(f"workstation directory not found at {source}")
            with context.output.spinner(f"Copying scripts into {scripts_dir}"):
                tools.system.rsync(source, scripts_dir)

        rsync_item = IdempotentAction(
            name=str(scripts_dir),
            probe=current,
            apply=copy,
            commands=(
                ["mkdir", "-p", str(scripts_dir)],
                tools.system.rsync_command(source, scripts_dir),
            ),
            satisfied="Already in sync",
            changed="Synced",
            failed="Sync failed",
        ).execute(context)
        items = [repo_item, rsync_item]
        return StepResult.from_items(items, message=rsync_item.message)

    def stow_ignore(context: StepContext) -> StepResult:
        ignore_file = dotfiles / ".stow-local-ignore"
        return run_action(
            context,
            IdempotentAction(
                name=str(ignore_file),
                probe=ignore_file.is_file,
                apply=lambda: ignore_file.write_text(STOW_LOCAL_IGNORE, encoding="utf-8"),
                commands=(f"write {ignore_file}",),
                satisfied="Already configured",
                changed="Created",
            ),
        )

    def link_dotfiles(context: StepContext) -> StepResult:
        stow = tools.stow
        output = context.output
        missing_directory = not dotfiles.is_dir()
        missing_stow = not stow.available()
        if context.dry_run and (missing_directory or missing_stow):
            output.dry_run(f"(cd {dotfiles} && {format_command(stow.link_command(home, simulate=True))})")
            output.dry_run(f"(cd {dotfiles} && {format_command(stow.link_command(home))})")
            return StepResult(StepOutcome.CHANGED, "Dry run")
        if missing_directory:
            raise TargetError(f"dotfiles directory not found at {dotfiles}")
        if missing_stow:
            raise PrerequisiteError("stow is required but not found")

        with output.spinner("Checking for stow conflicts"):
            stow.check_conflicts(dotfiles, home)
            pending = stow.pending_links(dotfiles, home)
        if not pending and not context.config.force:
            return StepResult(StepOutcome.SKIPPED, "Already linked")
        tallies = {"symlinks.linked": len(pending)}
        if context.dry_run:
            output.dry_run(f"(cd {dotfiles} && {format_command(stow.link_command(home))})")
            return StepResult(StepOutcome.CHANGED, "Dry run", tallies=tallies)
        with output.spinner("Creating symlinks in $HOME"):
            stow.link(dotfiles, home)
        return StepResult(StepOutcome.CHANGED, "Linked", tallies=tallies)

    def bat_cache(context: StepContext) -> StepResult:
        """Rebuild bat's theme and syntax cache from the linked config.

        The cache is derived data with no state to probe; the step reports DONE.
        """
        if not tools.system.has(config.tools.bat):
            return StepResult(StepOutcome.SKIPPED, "bat not found")
        if context.dry_run:
            context.output.dry_run(f"{config.tools.bat} cache --build")
            return StepResult(StepOutcome.DONE, "Dry run")
        with context.output.spinner("Rebuilding bat cache"):
            tools.system.rebuild_bat_cache()
        return StepResult(StepOutcome.DONE, "Rebuilt bat cache")

    def executable_scripts(context: StepContext) -> StepResult:
        if not scripts_dir.is_dir():
            return StepResult(StepOutcome.SKIPPED, "No scripts directory")
        actions = [
            IdempotentAction(
                name=script.name,
                probe=lambda script=script: _is_executable(script),
                apply=lambda script=script: _make_executable(script),
                commands=(["chmod", "+x", str(script)],),
                satisfied="Already executable",
                changed="Made executable",
            )
            for script in sorted(scripts_dir.glob("*.sh"))
        ]
        return run_batch(context, actions, report=False)

    def neovim(context: StepContext) -> StepResult:
        """Marker step only.

        lazy.nvim installs plugins on the first launch of nvim; nothing is
        run here.
        """
        return StepResult(StepOutcome.DONE, "Plugins install on first nvim launch")

    steps = [
        require_macos(tools.system, purpose="bootstrap"),
        StepDefinition("prerequisites", "Checking prerequisites", prerequisites),
        StepDefinition("conflicts", "Checking dotfiles for stow conflicts", existing_conflicts),
        StepDefinition("xcode", "Ensuring Xcode command line tools are installed", xcode),
        StepDefinition("homebrew", "Ensuring Homebrew is installed", install_homebrew),
        StepDefinition(
            "shellenv", "Configuring Homebrew shell environment", shell_environment, fatal=False
        ),
        StepDefinition("formulae", "Installing command line packages", cli_packages, fatal=False),
        StepDefinition("fonts", "Installing Nerd Fonts", nerd_fonts, fatal=False),
        StepDefinition("dotfiles", "Syncing dotfiles repository", dotfiles_repository, fatal=False),
        StepDefinition(
            "workstation",
            "Syncing workstation scripts into dotfiles",
            workstation_scripts,
            fatal=False,
        ),
        StepDefinition("stow-ignore", "Ensuring .stow-local-ignore", stow_ignore, fatal=False),
        StepDefinition("stow", "Linking dotfiles with Stow", link_dotfiles),
        StepDefinition("bat", "Rebuilding bat cache", bat_cache, fatal=False),
        StepDefinition("scripts", "Making scripts executable", executable_scripts, fatal=False),
        StepDefinition("neovim", "Preparing Neovim environment", neovim, fatal=False),
    ]
    return Workflow(
        command="dev bootstrap",
        title=BOOTSTRAP_TITLE,
        steps=steps,
        summary=(
            SummaryField("Formulae installed", "formulae.installed"),
            SummaryField("Fonts installed", "fonts.installed"),
            SummaryField("Symlinks linked", "symlinks.linked"),
        ),
    )


def build_dev_rollback(
    config: WorkstationConfig,
    tools: Toolbox,
    *,
    remove_workstation_repo: bool = False,
) -> Workflow:
    """Return the steps that undo :func:`build_dev_bootstrap`.

    The workstation checkout is only removed when *remove_workstation_repo*
    is set; everything else can be kept with ``RunConfig.keep`` tags.
    """
    home = config.home
    homebrew = config.homebrew
    dotfiles = config.dotfiles.directory
    workstation = config.workstation.directory

    def confirm(context: StepContext) -> StepResult:
        keeps = context.config.keeps
        planned = [f"Remove Stow-managed symlinks from {home}"]
        if not keeps("brew"):
            planned.append("Uninstall Homebrew formulae from bootstrap list")
        if not keeps("fonts"):
            planned.append("Uninstall Nerd Font casks from bootstrap list")
        if not keeps("brew-cleanup"):
            planned.append("Run brew autoremove and brew cleanup")
        if not keeps("dotfiles-repo"):
            planned.append(f"Remove local repo at {dotfiles}")
        if remove_workstation_repo:
            planned.append(f"Remove local repo at {workstation}")
        return confirm_or_decline(
            context,
            planned,
            warning=(
                "This will remove Stow-managed dotfile symlinks and optionally uninstall "
                "Homebrew packages from the bootstrap list."
            ),
        )

    def remove_symlinks(context: StepContext) -> StepResult:
        stow = tools.stow
        if not dotfiles.is_dir():
            return StepResult(StepOutcome.SKIPPED, "No dotfiles directory")
        if not stow.available():
            return StepResult(StepOutcome.SKIPPED, "stow not found; skipping")
        pending = stow.pending_unlinks(dotfiles, home)
        if not pending:
            return StepResult(StepOutcome.SKIPPED, "Nothing to remove")
        tallies = {"symlinks.removed": len(pending)}
        if context.dry_run:
            context.output.dry_run(f"(cd {dotfiles} && {format_command(stow.unlink_command(home))})")
            return StepResult(StepOutcome.CHANGED, "Dry run", tallies=tallies)
        with context.output.spinner("Removing Stow symlinks"):
            stow.unlink(dotfiles, home)
        return StepResult(StepOutcome.CHANGED, f"Removed {len(pending)}", tallies=tallies)

    def uninstall(names: tuple[str, ...], *, cask: bool, keep: str, tally: str):
        def run(context: StepContext) -> StepResult:
            if context.config.keeps(keep):
                return StepResult(StepOutcome.SKIPPED, "Skipped")
            if not tools.brew.locate():
                return StepResult(StepOutcome.SKIPPED, "Homebrew not found; skipped")
            actions = package_actions(
                tools.brew,
                names,
                cask=cask,
                install=False,
                tally=tally,
                failed_tally=f"{tally.split('.')[0]}.failed",
            )
            return run_batch(context, actions, spinner=lambda action: f"Removing {action.name}")

        return run

    def cleanup(context: StepContext) -> StepResult:
        if context.config.keeps("brew-cleanup"):
            return StepResult(StepOutcome.SKIPPED, "Skipped")
        return brew_cleanup(context, tools.brew)

    def remove_repositories(context: StepContext) -> StepResult:
        output = context.output
        actions: list[IdempotentAction] = []
        if context.config.keeps("dotfiles-repo"):
            output.success("Dotfiles repo kept")
        else:
            actions.append(
                removal_action(
                    dotfiles,
                    name="dotfiles",
                    changed="Removed dotfiles repo",
                    satisfied="Dotfiles repo not found",
                )
            )
        if remove_workstation_repo:
            actions.append(
                removal_action(
                    workstation,
                    name="workstation",
                    changed="Removed workstation repo",
                    satisfied="Workstation repo not found",
                )
            )
        else:
            output.success("Workstation repo kept")
        if not actions:
            return StepResult(StepOutcome.SKIPPED, "Repositories kept")
        return run_batch(context, actions, report=False)

    steps = [
        require_macos(tools.system, purpose="rollback"),
        StepDefinition("confirm", "Confirmation", confirm),
        StepDefinition("symlinks", "Removing dotfiles symlinks", remove_symlinks, fatal=False),
        StepDefinition(
            "formulae",
            "Uninstalling Homebrew formulae",
            uninstall(homebrew.formulae, cask=False, keep="brew", tally="formulae.removed"),
            fatal=False,
        ),
        StepDefinition(
            "fonts",
            "Uninstalling Nerd Font casks",
            uninstall(homebrew.nerd_fonts, cask=True, keep="fonts", tally="casks.removed"),
            fatal=False,
        ),
        StepDefinition("cleanup", "Cleaning up Homebrew", cleanup, fatal=False),
        StepDefinition("repositories", "Removing local repositories", remove_repositories, fatal=False),
    ]
    return Workflow(
        command="dev rollback",
        title=ROLLBACK_TITLE,
        steps=steps,
        summary=(
            SummaryField("Formulae removed", "formulae.removed"),
            SummaryField("Casks removed", "casks.removed"),
            SummaryField("Symlinks removed", "symlinks.removed"),
        ),
    )


def _analytics_disabled(brew: HomebrewProvider) -> bool:
    try:
        return brew.analytics_disabled()
    except ToolNotFoundError:
        return False


def _tapped(brew: HomebrewProvider, tap: str) -> bool:
    try:
        return tap in brew.taps()
    except ToolNotFoundError:
        return False


def _is_executable(path: Path) -> bool:
    return os.access(path, os.X_OK)


def _make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


__all__ = ["BOOTSTRAP_TITLE", "ROLLBACK_TITLE", "build_dev_bootstrap", "build_dev_rollback"]
