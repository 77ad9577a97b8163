"""Tests for the apps, brew, cleanup, ssh, tmux and jj workflows."""
from __future__ import annotations

import stat
from collections.abc import Callable
from pathlib import Path

import pytest

from wsctl.config import JjIdentity, SshIdentity, WorkstationConfig
from wsctl.exit_codes import ExitCode
from wsctl.providers import Toolbox
from wsctl.steps import StepOutcome
from wsctl.workflows import (
    build_apps_bootstrap,
    build_apps_rollback,
    build_brew_maintain,
    build_jj_identity,
    build_ssh_bootstrap,
    build_system_cleanup,
    build_tmux_session,
    open_popup,
    popup_session_name,
    render_ssh_config,
)
from wsctl.workflows.jj import match_identity
from tests.conftest import FakeWorkstation, WorkflowRun, snapshot

Runner = Callable[..., WorkflowRun]


# ----------------------------------------------------------------------
# apps
# ----------------------------------------------------------------------


def test_apps_bootstrap_installs_missing_casks(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """Missing apps are installed, present ones skipped and counted."""
    workstation.casks.update({"wezterm", "raycast"})

    run = run_workflow(build_apps_bootstrap(config, toolbox))

    assert run.report.exit_code == ExitCode.OK, run.text
    assert workstation.casks == set(config.homebrew.gui_apps)
    summary = run.report.summary
    assert summary.tally("apps.installed") == len(config.homebrew.gui_apps) - 2
    assert summary.tally("apps.skipped") == 2
    assert ["brew", "update"] in workstation.calls
    assert "Already installed: wezterm" in run.text


def test_apps_bootstrap_all_present_installs_nothing(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """With every app present no install command runs."""
    workstation.casks.update(config.homebrew.gui_apps)

    run = run_workflow(build_apps_bootstrap(config, toolbox))

    assert [call for call in workstation.commands("brew") if call[1] == "install"] == []
    assert run.report.summary.tally("apps.installed") == 0
    assert run.report.summary.tally("apps.skipped") == len(config.homebrew.gui_apps)
    assert "Installed: 0  Skipped: 10  Failed: 0" in run.text


def test_apps_bootstrap_failure_is_counted(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """A failing cask install does not stop the others."""
    workstation.failing.add(("brew", "install", "--cask", "docker"))

    run = run_workflow(build_apps_bootstrap(config, toolbox))

    assert run.report.exit_code == ExitCode.OK
    assert run.report.summary.tally("apps.failed") == 1
    assert "zoom" in workstation.casks
    assert "docker" not in workstation.casks


def test_apps_bootstrap_without_homebrew_exits_1(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """The apps workflow requires Homebrew."""
    workstation.tools.discard("brew")

    run = run_workflow(build_apps_bootstrap(config, toolbox))

    assert run.report.exit_code == ExitCode.FAILURE
    assert run.report.error == "Homebrew not found"
    assert "Error: Homebrew not found" in run.text


def test_apps_bootstrap_update_failure_is_fatal(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """brew update failing stops before any install."""
    workstation.failing.add(("brew", "update"))

    run = run_workflow(build_apps_bootstrap(config, toolbox))

    assert run.report.exit_code == ExitCode.FAILURE
    assert workstation.casks == set()


def test_apps_rollback_removes_and_cleans(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """Installed apps are removed and Homebrew is cleaned up."""
    workstation.casks.update({"zoom", "spotify"})

    run = run_workflow(build_apps_rollback(config, toolbox))

    assert run.report.exit_code == ExitCode.OK, run.text
    assert workstation.casks == set()
    assert run.report.summary.tally("apps.removed") == 2
    assert run.report.summary.tally("apps.skipped") == len(config.homebrew.gui_apps) - 2
    assert ["brew", "autoremove", "-q"] in workstation.calls
    assert ["brew", "cleanup", "-q"] in workstation.calls


def test_apps_rollback_keep_brew_cleanup(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """--no-brew-cleanup skips autoremove and cleanup."""
    run = run_workflow(build_apps_rollback(config, toolbox), keep=("brew-cleanup",))

    assert run.report.exit_code == ExitCode.OK
    assert [call for call in workstation.commands("brew") if call[1] == "cleanup"] == []


# ----------------------------------------------------------------------
# brew maintain
# ----------------------------------------------------------------------


def test_brew_maintain_updates_upgrades_and_cleans(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """The three phases run in order and their counts are summarised."""
    workstation.outdated = ["node", "git"]
    workstation.autoremove_output = "Uninstalling /opt/homebrew/Cellar/libuv/1.48.0...\n"

    run = run_workflow(build_brew_maintain(config, toolbox))

    assert run.report.exit_code == ExitCode.OK, run.text
    verbs = [call[1] for call in workstation.commands("brew")]
    assert verbs.index("update") < verbs.index("upgrade") < verbs.index("cleanup")
    summary = run.report.summary
    assert summary.tally("packages.updated") == 1
    assert summary.tally("packages.upgraded") == 2
    assert summary.tally("packages.removed") == 1
    assert "Updated: 1  Upgraded: 2  Removed: 1" in run.text


def test_brew_maintain_nothing_outdated(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """No outdated packages means no upgrade command."""
    run = run_workflow(build_brew_maintain(config, toolbox))

    assert ["brew", "upgrade"] not in workstation.calls
    assert dict(run.report.results)["upgrade"].outcome is StepOutcome.SKIPPED


def test_brew_maintain_wipes_cache(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
    home: Path,
) -> None:
    """--wipe-cache empties the directory reported by ``brew --cache``."""
    cache = home / "Library" / "Caches" / "Homebrew"
    (cache / "downloads").mkdir(parents=True)
    (cache / "node.tar.gz").write_text("x", encoding="utf-8")

    run = run_workflow(build_brew_maintain(config, toolbox, wipe_cache=True))

    assert run.report.exit_code == ExitCode.OK, run.text
    assert cache.is_dir()
    assert list(cache.iterdir()) == []


def test_brew_maintain_dry_run(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """Dry-run prints every mutating brew command instead of running it."""
    workstation.outdated = ["node"]

    run = run_workflow(build_brew_maintain(config, toolbox, wipe_cache=True), dry_run=True)

    assert run.report.exit_code == ExitCode.OK
    verbs = {call[1] for call in workstation.commands("brew")}
    assert verbs == {"outdated"}
    assert workstation.outdated == ["node"]
    for command in ("brew update", "brew upgrade", "brew cleanup -s", "brew autoremove"):
        assert f"DRY-RUN: {command}" in run.text


# ----------------------------------------------------------------------
# system cleanup
# ----------------------------------------------------------------------


def _populate(home: Path) -> None:
    (home / ".zsh_history").write_text("ls\n", encoding="utf-8")
    (home / ".npm" / "_cacache").mkdir(parents=True)
    (home / ".vim" / "swap").mkdir(parents=True)
    (home / ".DS_Store").write_bytes(b"\0")


def test_system_cleanup_removes_configured_paths(
    config: WorkstationConfig, run_workflow: Runner, home: Path
) -> None:
    """History, editor and cache paths are removed and counted."""
    _populate(home)

    run = run_workflow(build_system_cleanup(config))

    assert run.report.exit_code == ExitCode.OK, run.text
    assert not (home / ".zsh_history").exists()
    assert not (home / ".npm").exists()
    assert not (home / ".vim" / "swap").exists()
    assert (home / ".vim").is_dir()
    assert run.report.summary.tally("items.cleaned") == 4
    assert "Removed 4 items" in run.text


def test_system_cleanup_already_clean(config: WorkstationConfig, run_workflow: Runner) -> None:
    """A clean home reports nothing to do."""
    run = run_workflow(build_system_cleanup(config))

    assert "System already clean" in run.text
    assert run.report.summary.tally("items.cleaned") == 0
    total = sum(len(paths) for paths in config.cleanup.values())
    assert run.report.summary.tally("items.skipped") == total


def test_system_cleanup_keep_history(
    config: WorkstationConfig, run_workflow: Runner, home: Path
) -> None:
    """--keep-history leaves shell history in place."""
    _populate(home)

    run = run_workflow(build_system_cleanup(config), keep=("history",))

    assert (home / ".zsh_history").exists()
    assert not (home / ".npm").exists()
    assert run.report.summary.tally("items.cleaned") == 3


def test_system_cleanup_dry_run(
    config: WorkstationConfig, run_workflow: Runner, home: Path
) -> None:
    """Dry-run lists removals without deleting."""
    _populate(home)
    before = snapshot(home)

    run = run_workflow(build_system_cleanup(config), dry_run=True)

    assert snapshot(home) == before
    assert f"DRY-RUN: rm -rf {home / '.zsh_history'}" in run.text
    assert "Would remove 4 items" in run.text


# ----------------------------------------------------------------------
# ssh
# ----------------------------------------------------------------------


def test_render_ssh_config_uses_home_relative_paths(tmp_path: Path) -> None:
    """Identity files under home are written with ``~``."""
    identities = (SshIdentity(host="github.com", key_name="id_gh", comment="me@github"),)

    text = render_ssh_config(tmp_path / ".ssh", identities, tmp_path)

    assert text == (
        "Host github.com\n"
        "  HostName github.com\n"
        "  User git\n"
        "  IdentityFile ~/.ssh/id_gh\n"
    )


def test_ssh_bootstrap_generates_keys_and_config(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """Each identity gets a key pair, a config block and strict modes."""
    ssh_dir = config.ssh.directory

    run = run_workflow(build_ssh_bootstrap(config, toolbox))

    assert run.report.exit_code == ExitCode.OK, run.text
    assert stat.S_IMODE(ssh_dir.stat().st_mode) == 0o700
    for identity in config.ssh.identities:
        private = ssh_dir / identity.key_name
        public = ssh_dir / f"{identity.key_name}.pub"
        assert stat.S_IMODE(private.stat().st_mode) == 0o600
        assert stat.S_IMODE(public.stat().st_mode) == 0o644
        assert identity.comment in run.text
    content = (ssh_dir / "config").read_text(encoding="utf-8")
    assert "Host gitea.com" in content
    assert "IdentityFile ~/.ssh/id_ed25519_github" in content
    assert len(workstation.commands("ssh-keygen")) == 2


def test_ssh_bootstrap_refuses_existing_keys(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """Existing keys abort the run unless --force is given."""
    ssh_dir = config.ssh.directory
    ssh_dir.mkdir()
    (ssh_dir / "id_ed25519_github").write_text("existing", encoding="utf-8")

    run = run_workflow(build_ssh_bootstrap(config, toolbox))

    assert run.report.exit_code == ExitCode.FAILURE
    assert "Refusing to overwrite existing SSH keys: id_ed25519_github" in run.text
    assert workstation.commands("ssh-keygen") == []


def test_ssh_bootstrap_force_keeps_existing_keys(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """--force continues but never regenerates a key that exists."""
    ssh_dir = config.ssh.directory
    ssh_dir.mkdir()
    existing = ssh_dir / "id_ed25519_github"
    existing.write_text("existing", encoding="utf-8")

    run = run_workflow(build_ssh_bootstrap(config, toolbox), force=True)

    assert run.report.exit_code == ExitCode.OK, run.text
    assert existing.read_text(encoding="utf-8") == "existing"
    (call,) = workstation.commands("ssh-keygen")
    assert str(ssh_dir / "id_ed25519_gitea") in call


def test_ssh_bootstrap_requires_ssh_keygen(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """Without ssh-keygen nothing is created."""
    workstation.tools.discard("ssh-keygen")

    run = run_workflow(build_ssh_bootstrap(config, toolbox))

    assert run.report.exit_code == ExitCode.FAILURE
    assert not config.ssh.directory.exists()


# ----------------------------------------------------------------------
# tmux
# ----------------------------------------------------------------------


def test_tmux_session_created_then_reused(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """The first run builds the layout; the second only attaches."""
    first = run_workflow(build_tmux_session(config, toolbox, env={}))

    assert first.report.exit_code == ExitCode.OK, first.text
    assert "Created session 'dev'" in first.text
    assert workstation.sessions == {"dev"}
    verbs = [call[1] for call in workstation.commands("tmux")]
    assert verbs == [
        "has-session",
        "new-session",
        "display-message",
        "split-window",
        "split-window",
        "select-pane",
        "attach-session",
    ]

    workstation.calls.clear()
    second = run_workflow(build_tmux_session(config, toolbox, env={}))

    assert "Session 'dev' already exists" in second.text
    assert [call for call in workstation.commands("tmux") if call[1] == "new-session"] == []
    assert ["tmux", "attach-session", "-t", "dev"] in workstation.calls


def test_tmux_session_switches_inside_tmux(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """Inside tmux the client is switched instead of attaching."""
    workstation.sessions.add("work")

    run = run_workflow(
        build_tmux_session(config, toolbox, session="work", env={"TMUX": "/tmp/tmux-501/default"})
    )

    assert run.report.exit_code == ExitCode.OK
    assert ["tmux", "switch-client", "-t", "work"] in workstation.calls
    assert "Switched to 'work'" in run.text


def test_tmux_session_no_attach(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """--no-attach creates the session and stops."""
    run = run_workflow(build_tmux_session(config, toolbox, attach=False, env={}))

    assert run.report.exit_code == ExitCode.OK
    assert workstation.sessions == {"dev"}
    assert [call for call in workstation.commands("tmux") if call[1] == "attach-session"] == []


def test_tmux_session_requires_tmux(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
) -> None:
    """Missing tmux is a prerequisite failure."""
    workstation.tools.discard("tmux")

    run = run_workflow(build_tmux_session(config, toolbox, env={}))

    assert run.report.exit_code == ExitCode.FAILURE
    assert run.report.error == "tmux not found"


def test_popup_session_name_is_stable() -> None:
    """Popup sessions are keyed by the first eight hex digits of an md5."""
    name = popup_session_name("/Users/dev/project")

    assert name == popup_session_name("/Users/dev/project")
    assert name != popup_session_name("/Users/dev/other")
    assert name.startswith("opencode-")
    assert len(name) == len("opencode-") + 8


def test_open_popup_creates_session_once(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    tmp_path: Path,
) -> None:
    """The popup session is created in the pane directory and then reused."""
    workstation.pane_path = tmp_path
    expected = popup_session_name(str(tmp_path))

    assert open_popup(config, toolbox) == expected
    assert open_popup(config, toolbox, width="50%", command="htop") == expected

    created = [call for call in workstation.commands("tmux") if call[1] == "new-session"]
    assert created == [["tmux", "new-session", "-d", "-s", expected, "-c", str(tmp_path), "opencode"]]
    popups = [call for call in workstation.commands("tmux") if call[1] == "display-popup"]
    assert popups[-1][:6] == ["tmux", "display-popup", "-w", "50%", "-h", "80%"]


def test_open_popup_outside_tmux_is_silent(
    config: WorkstationConfig, toolbox: Toolbox, workstation: FakeWorkstation
) -> None:
    """No current pane means no popup and no error."""
    assert open_popup(config, toolbox) is None


def test_open_popup_swallows_failures(
    config: WorkstationConfig, toolbox: Toolbox, workstation: FakeWorkstation, tmp_path: Path
) -> None:
    """tmux failures are logged and ignored."""
    workstation.pane_path = tmp_path
    workstation.failing.add(("tmux", "display-popup"))

    assert open_popup(config, toolbox) is None


# ----------------------------------------------------------------------
# jj
# ----------------------------------------------------------------------


IDENTITIES = (
    JjIdentity(marker="/gitea/", label="Gitea", name="me", email="me@gitea.invalid"),
    JjIdentity(marker="/github/", label="GitHub", name="me", email="me@github.invalid"),
)


@pytest.mark.parametrize(
    ("path", "label"),
    [
        ("/Users/dev/Developer/projects/github/wsctl", "GitHub"),
        ("/Users/dev/Developer/projects/gitea/notes", "Gitea"),
        ("/Users/dev/scratch", None),
    ],
)
def test_match_identity(path: str, label: str | None) -> None:
    """The first identity whose marker is in the path wins."""
    identity = match_identity(Path(path), IDENTITIES)

    assert (identity.label if identity else None) == label


def test_jj_identity_sets_and_then_skips(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
    home: Path,
) -> None:
    """The identity is written once and reported as already set afterwards."""
    repo = home / "Developer" / "projects" / "github" / "wsctl"
    workstation.jj_repos.add(repo)
    expected = next(identity for identity in config.jj_identities if identity.label == "GitHub")

    first = run_workflow(build_jj_identity(config, toolbox, cwd=repo))

    assert first.report.exit_code == ExitCode.OK, first.text
    assert workstation.jj_config == {"user.name": expected.name, "user.email": expected.email}
    assert "Set jj identity to GitHub" in first.text

    workstation.calls.clear()
    second = run_workflow(build_jj_identity(config, toolbox, cwd=repo))

    assert "jj identity already set to GitHub" in second.text
    assert [call for call in workstation.commands("jj") if call[1:3] == ["config", "set"]] == []


def test_jj_identity_outside_repository(
    config: WorkstationConfig,
    toolbox: Toolbox,
    run_workflow: Runner,
    home: Path,
) -> None:
    """Running outside a jj repository fails."""
    run = run_workflow(build_jj_identity(config, toolbox, cwd=home))

    assert run.report.exit_code == ExitCode.FAILURE
    assert run.report.error == "Not in a jj repository"


def test_jj_identity_without_matching_host(
    config: WorkstationConfig,
    toolbox: Toolbox,
    workstation: FakeWorkstation,
    run_workflow: Runner,
    home: Path,
) -> None:
    """Repositories outside known hosts are rejected."""
    repo = home / "scratch"
    workstation.jj_repos.add(repo)

    run = run_workflow(build_jj_identity(config, toolbox, cwd=repo))

    assert run.report.exit_code == ExitCode.FAILURE
    assert run.report.error == "No matching git host pattern found"
    assert workstation.jj_config == {}
