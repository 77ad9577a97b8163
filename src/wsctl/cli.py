"""Typer command line for ``wsctl``.

Every provisioning command shares the same switches (``--dry-run``,
``--no-spinner``, ``--no-clear``, ``--debug``, ``--yes`` and ``--force``),
builds a workflow from the loaded configuration and hands it to the step
runner. The run is recorded in the structured operations log and the
runner's exit code becomes the process exit code.
"""
from __future__ import annotations

import logging
import textwrap
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from .config import ConfigError, RunConfig, WorkstationConfig, build_run_config, load_config
from .exit_codes import ExitCode
from .logging import StructuredLogger
from .output import OutputAdapter
from .providers import Toolbox
from .steps import RunReport, StepOutcome, StepRunner, Workflow
from .workflows import (
    build_apps_bootstrap,
    build_apps_rollback,
    build_brew_maintain,
    build_dev_bootstrap,
    build_dev_rollback,
    build_jj_identity,
    build_ssh_bootstrap,
    build_system_cleanup,
    build_tmux_session,
    open_popup,
)

console = Console(highlight=False, soft_wrap=True)
error_console = Console(stderr=True)

# Replaced in tests to run every provider against a fake workstation.
toolbox_factory: Callable[[WorkstationConfig], Toolbox] = Toolbox.from_config
cwd_factory: Callable[[], Path] = Path.cwd

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to wsctl's YAML config file.",
)
DRY_RUN_OPTION = typer.Option(
    False, "--dry-run", help="Print the commands that would run without changing anything."
)
NO_SPINNER_OPTION = typer.Option(False, "--no-spinner", help="Disable the progress spinner.")
NO_CLEAR_OPTION = typer.Option(False, "--no-clear", help="Do not clear the screen first.")
DEBUG_OPTION = typer.Option(False, "--debug", help="Trace every external command on stderr.")
YES_OPTION = typer.Option(False, "--yes", "-y", help="Skip interactive confirmation.")
FORCE_OPTION = typer.Option(False, "--force", help="Re-apply actions even when already satisfied.")
NO_BREW_CLEANUP_OPTION = typer.Option(
    False, "--no-brew-cleanup", help="Skip brew autoremove and brew cleanup."
)

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

app = typer.Typer(
    add_completion=False,
    context_settings=CONTEXT_SETTINGS,
    help=textwrap.dedent(
        """
        macOS workstation provisioning.

        Bootstrap and roll back developer tooling, GUI applications, dotfiles,
        SSH keys, tmux sessions and jj identities with idempotent steps.
        """
    ).strip(),
)
dev_app = typer.Typer(help="Developer environment bootstrap and rollback.")
apps_app = typer.Typer(help="GUI applications installed as Homebrew casks.")
brew_app = typer.Typer(help="Homebrew maintenance.")
system_app = typer.Typer(help="Home directory cleanup.")
ssh_app = typer.Typer(help="Per-host SSH keys.")
tmux_app = typer.Typer(help="tmux sessions and popups.")
jj_app = typer.Typer(help="jj repository identity.")

app.add_typer(dev_app, name="dev")
app.add_typer(apps_app, name="apps")
app.add_typer(brew_app, name="brew")
app.add_typer(system_app, name="system")
app.add_typer(ssh_app, name="ssh")
app.add_typer(tmux_app, name="tmux")
app.add_typer(jj_app, name="jj")


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: WorkstationConfig
    logger: StructuredLogger
    tools: Toolbox


def _config_error(exc: ConfigError) -> typer.Exit:
    console.print(f"[dim]Error: {escape(str(exc))}[/dim]")
    console.print()
    return typer.Exit(code=ExitCode.FAILURE)


def _ensure_runtime(ctx: typer.Context, config_file: Path | None) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        raise _config_error(exc) from exc
    runtime = RuntimeContext(
        config=config,
        logger=StructuredLogger(config.logs_dir),
        tools=toolbox_factory(config),
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    root = ctx.find_root()
    if isinstance(root.obj, RuntimeContext):
        return root.obj
    return _ensure_runtime(root, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the wsctl version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        runtime = _ensure_runtime(ctx, config_file)
        with runtime.logger.operation(
            "root --version",
            args={"version": True},
            target={"kind": "meta", "scope": "version"},
        ) as op:
            console.print(f"wsctl {__version__}")
            op.success("Reported CLI version.", changed=0)
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


def _configure_debug(enabled: bool) -> None:
    """Attach a rich handler to the ``wsctl`` logger hierarchy."""
    if not enabled:
        return
    logger = logging.getLogger("wsctl")
    logger.setLevel(logging.DEBUG)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(
            RichHandler(console=error_console, show_path=False, markup=False, rich_tracebacks=True)
        )


def _run_config(
    *,
    dry_run: bool,
    no_spinner: bool,
    no_clear: bool,
    debug: bool,
    yes: bool,
    force: bool,
    keep: Mapping[str, bool] | None = None,
) -> RunConfig:
    tags = [tag for tag, kept in (keep or {}).items() if kept]
    try:
        return build_run_config(
            dry_run=dry_run,
            no_spinner=no_spinner,
            no_clear=no_clear,
            assume_yes=yes,
            debug=debug,
            force=force,
            keep=tags,
        )
    except ConfigError as exc:
        raise _config_error(exc) from exc


def _execute(
    runtime: RuntimeContext,
    workflow: Workflow,
    run_config: RunConfig,
    *,
    args: Mapping[str, object] | None = None,
    target: Mapping[str, object] | None = None,
) -> RunReport:
    """Run *workflow*, log the outcome and exit with the runner's code."""
    _configure_debug(run_config.debug)
    output = OutputAdapter(console, no_spinner=run_config.no_spinner, no_clear=run_config.no_clear)
    payload = {**run_config.to_dict(), **dict(args or {})}
    with runtime.logger.operation(workflow.command, args=payload, target=target) as op:
        report = StepRunner(run_config, output, operation=op).run(workflow)
        summary = report.summary
        context = {"summary": summary.to_dict(), "dry_run": run_config.dry_run}
        changed = summary.count(StepOutcome.CHANGED)
        failed = summary.count(StepOutcome.FAILED)
        if report.cancelled:
            op.success("Cancelled by user.", changed=0, context=context)
        elif report.exit_code != ExitCode.OK:
            op.error(report.error or "Run failed.", rc=report.exit_code, context=context)
        elif failed:
            op.warning(
                f"Completed with {failed} failed item(s).",
                warnings=[
                    item.message
                    for _, result in report.results
                    for item in (result.items or ())
                    if item.outcome is StepOutcome.FAILED
                ],
                changed=changed,
                context=context,
            )
        elif run_config.dry_run:
            op.success("Dry run complete.", changed=0, context=context)
        else:
            op.success("Completed.", changed=changed, context=context)
    if report.exit_code != ExitCode.OK:
        raise typer.Exit(code=report.exit_code)
    return report


# ----------------------------------------------------------------------
# dev
# ----------------------------------------------------------------------


@dev_app.command("bootstrap")
def dev_bootstrap(
    ctx: typer.Context,
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Install developer tooling, fonts and dotfiles."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run, no_spinner=no_spinner, no_clear=no_clear, debug=debug, yes=yes, force=force
    )
    _execute(
        runtime,
        build_dev_bootstrap(runtime.config, runtime.tools),
        run_config,
        target={"kind": "workstation", "home": runtime.config.home},
    )


@dev_app.command("rollback")
def dev_rollback(
    ctx: typer.Context,
    keep_brew: bool = typer.Option(False, "--keep-brew", help="Keep Homebrew formulae."),
    keep_fonts: bool = typer.Option(False, "--keep-fonts", help="Keep Nerd Font casks."),
    keep_dotfiles_repo: bool = typer.Option(
        False, "--keep-dotfiles-repo", help="Keep the local dotfiles checkout."
    ),
    remove_workstation_repo: bool = typer.Option(
        False,
        "--remove-workstation-repo",
        envvar="REMOVE_WORKSTATION_REPO",
        help="Also delete the workstation checkout.",
    ),
    no_brew_cleanup: bool = NO_BREW_CLEANUP_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Remove what ``dev bootstrap`` installed."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run,
        no_spinner=no_spinner,
        no_clear=no_clear,
        debug=debug,
        yes=yes,
        force=force,
        keep={
            "brew": keep_brew,
            "fonts": keep_fonts,
            "dotfiles-repo": keep_dotfiles_repo,
            "brew-cleanup": no_brew_cleanup,
        },
    )
    _execute(
        runtime,
        build_dev_rollback(
            runtime.config, runtime.tools, remove_workstation_repo=remove_workstation_repo
        ),
        run_config,
        args={"remove_workstation_repo": remove_workstation_repo},
        target={"kind": "workstation", "home": runtime.config.home},
    )


# ----------------------------------------------------------------------
# apps / brew / system
# ----------------------------------------------------------------------


@apps_app.command("bootstrap")
def apps_bootstrap(
    ctx: typer.Context,
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Install the configured GUI applications."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run, no_spinner=no_spinner, no_clear=no_clear, debug=debug, yes=yes, force=force
    )
    _execute(
        runtime,
        build_apps_bootstrap(runtime.config, runtime.tools),
        run_config,
        target={"kind": "casks", "names": runtime.config.homebrew.gui_apps},
    )


@apps_app.command("rollback")
def apps_rollback(
    ctx: typer.Context,
    no_brew_cleanup: bool = NO_BREW_CLEANUP_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Uninstall the configured GUI applications."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run,
        no_spinner=no_spinner,
        no_clear=no_clear,
        debug=debug,
        yes=yes,
        force=force,
        keep={"brew-cleanup": no_brew_cleanup},
    )
    _execute(
        runtime,
        build_apps_rollback(runtime.config, runtime.tools),
        run_config,
        target={"kind": "casks", "names": runtime.config.homebrew.gui_apps},
    )


@brew_app.command("maintain")
def brew_maintain(
    ctx: typer.Context,
    wipe_cache: bool = typer.Option(
        False, "--wipe-cache", help="Also delete everything under brew --cache."
    ),
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Update, upgrade and clean up Homebrew."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run, no_spinner=no_spinner, no_clear=no_clear, debug=debug, yes=yes, force=force
    )
    _execute(
        runtime,
        build_brew_maintain(runtime.config, runtime.tools, wipe_cache=wipe_cache),
        run_config,
        args={"wipe_cache": wipe_cache},
        target={"kind": "homebrew"},
    )


@system_app.command("cleanup")
def system_cleanup(
    ctx: typer.Context,
    keep_history: bool = typer.Option(False, "--keep-history", help="Keep shell history files."),
    keep_editor: bool = typer.Option(False, "--keep-editor", help="Keep editor swap and backups."),
    keep_package_caches: bool = typer.Option(
        False, "--keep-package-caches", help="Keep npm, pnpm, yarn and bun caches."
    ),
    keep_homebrew: bool = typer.Option(
        False, "--keep-homebrew", help="Keep Homebrew caches and logs."
    ),
    keep_system: bool = typer.Option(
        False, "--keep-system", help="Keep ~/.cache and Finder metadata."
    ),
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Remove history, editor leftovers and caches from the home directory."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run,
        no_spinner=no_spinner,
        no_clear=no_clear,
        debug=debug,
        yes=yes,
        force=force,
        keep={
            "history": keep_history,
            "editor": keep_editor,
            "package-caches": keep_package_caches,
            "homebrew": keep_homebrew,
            "system": keep_system,
        },
    )
    _execute(
        runtime,
        build_system_cleanup(runtime.config),
        run_config,
        target={"kind": "home", "path": runtime.config.home},
    )


# ----------------------------------------------------------------------
# ssh / tmux / jj
# ----------------------------------------------------------------------


@ssh_app.command("bootstrap")
def ssh_bootstrap(
    ctx: typer.Context,
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Generate per-host ed25519 keys and write ~/.ssh/config."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run, no_spinner=no_spinner, no_clear=no_clear, debug=debug, yes=yes, force=force
    )
    _execute(
        runtime,
        build_ssh_bootstrap(runtime.config, runtime.tools),
        run_config,
        target={"kind": "ssh", "path": runtime.config.ssh.directory},
    )


@tmux_app.command("session")
def tmux_session(
    ctx: typer.Context,
    session: str | None = typer.Option(None, "--session", help="Session name (default: dev)."),
    no_attach: bool = typer.Option(False, "--no-attach", help="Create the session only."),
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Create the development session if needed and open it."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run, no_spinner=no_spinner, no_clear=no_clear, debug=debug, yes=yes, force=force
    )
    name = session or runtime.config.tmux.session
    _execute(
        runtime,
        build_tmux_session(runtime.config, runtime.tools, session=name, attach=not no_attach),
        run_config,
        args={"session": name, "attach": not no_attach},
        target={"kind": "tmux-session", "name": name},
    )


@tmux_app.command("popup")
def tmux_popup(
    ctx: typer.Context,
    width: str | None = typer.Option(None, "--width", help="Popup width (default: 80%)."),
    height: str | None = typer.Option(None, "--height", help="Popup height (default: 80%)."),
    cmd: str | None = typer.Option(
        None, "--cmd", help="Command to run in the session (default: opencode)."
    ),
    debug: bool = DEBUG_OPTION,
) -> None:
    """Open a popup attached to a session for the current pane's directory.

    Always exits 0 so a failing popup never disturbs the tmux client.
    """
    runtime = _get_runtime(ctx)
    _configure_debug(debug)
    with runtime.logger.operation(
        "tmux popup",
        args={"width": width, "height": height, "cmd": cmd},
        target={"kind": "tmux-popup"},
    ) as op:
        session = open_popup(runtime.config, runtime.tools, width=width, height=height, command=cmd)
        if session is None:
            op.warning("Popup could not be opened.", warnings=["popup failed"])
        else:
            op.success("Opened popup.", context={"session": session})


@jj_app.command("identity")
def jj_identity(
    ctx: typer.Context,
    dry_run: bool = DRY_RUN_OPTION,
    no_spinner: bool = NO_SPINNER_OPTION,
    no_clear: bool = NO_CLEAR_OPTION,
    debug: bool = DEBUG_OPTION,
    yes: bool = YES_OPTION,
    force: bool = FORCE_OPTION,
) -> None:
    """Set the jj user identity for the repository in the current directory."""
    runtime = _get_runtime(ctx)
    run_config = _run_config(
        dry_run=dry_run, no_spinner=no_spinner, no_clear=no_clear, debug=debug, yes=yes, force=force
    )
    cwd = cwd_factory()
    _execute(
        runtime,
        build_jj_identity(runtime.config, runtime.tools, cwd=cwd),
        run_config,
        target={"kind": "jj-repository", "path": cwd},
    )


__all__ = ["RuntimeContext", "app"]
