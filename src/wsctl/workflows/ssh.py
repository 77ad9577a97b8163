"""Per-host SSH key generation and client configuration."""
from __future__ import annotations

import stat
from dataclasses import replace
from pathlib import Path

from ..config import SshIdentity, WorkstationConfig
from ..errors import FatalError, PrerequisiteError
from ..providers import Toolbox
from ..steps import (
    IdempotentAction,
    StepContext,
    StepDefinition,
    StepOutcome,
    StepResult,
    Workflow,
    run_action,
    run_batch,
)

DIRECTORY_MODE = 0o700
PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644


def render_ssh_config(directory: Path, identities: tuple[SshIdentity, ...], home: Path) -> str:
    """Return ``~/.ssh/config`` content with one ``Host`` block per identity."""
    blocks = []
    for identity in identities:
        key_path = directory / identity.key_name
        try:
            shown = f"~/{key_path.relative_to(home)}"
        except ValueError:
            shown = str(key_path)
        blocks.append(
            f"Host {identity.host}\n"
            f"  HostName {identity.host}\n"
            f"  User {identity.user}\n"
            f"  IdentityFile {shown}\n"
        )
    return "\n".join(blocks)


def _mode(path: Path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


def _has_mode(path: Path, mode: int) -> bool:
    return path.exists() and _mode(path) == mode


def build_ssh_bootstrap(config: WorkstationConfig, tools: Toolbox) -> Workflow:
    """Return the workflow generating one ed25519 key pair per configured host."""
    directory = config.ssh.directory
    identities = config.ssh.identities
    config_path = directory / "config"
    content = render_ssh_config(directory, identities, config.home)

    def key_path(identity: SshIdentity) -> Path:
        return directory / identity.key_name

    def check_existing(context: StepContext) -> StepResult:
        if not tools.ssh_keygen.available():
            raise PrerequisiteError("ssh-keygen is required but not found")
        existing = [key_path(identity) for identity in identities if key_path(identity).exists()]
        if not existing:
            return StepResult(StepOutcome.DONE, "Ready")
        if not context.config.force:
            names = ", ".join(path.name for path in existing)
            raise FatalError(f"Refusing to overwrite existing SSH keys: {names}")
        return StepResult(StepOutcome.SKIPPED, f"Keeping {len(existing)} existing key(s)")

    def ensure_directory(context: StepContext) -> StepResult:
        def create() -> None:
            directory.mkdir(parents=True, exist_ok=True)
            directory.chmod(DIRECTORY_MODE)

        return run_action(
            context,
            IdempotentAction(
                name=str(directory),
                probe=lambda: directory.is_dir() and _mode(directory) == DIRECTORY_MODE,
                apply=create,
                commands=(["mkdir", "-p", str(directory)], ["chmod", "700", str(directory)]),
                satisfied="Already exists",
                changed="Created",
            ),
        )

    def generate(context: StepContext) -> StepResult:
        actions = [
            IdempotentAction(
                name=identity.key_name,
                probe=lambda identity=identity: key_path(identity).exists(),
                apply=lambda identity=identity: tools.ssh_keygen.generate(
                    key_path(identity), identity.comment
                ),
                commands=(tools.ssh_keygen.generate_command(key_path(identity), identity.comment),),
                satisfied="Key exists",
                changed="Generated",
                failed="ssh-keygen failed",
            )
            for identity in identities
        ]
        # Existing keys are never regenerated, even with --force.
        context = StepContext(config=replace(context.config, force=False), output=context.output)
        return run_batch(context, actions)

    def write_config(context: StepContext) -> StepResult:
        def current() -> bool:
            try:
                return config_path.read_text(encoding="utf-8") == content
            except FileNotFoundError:
                return False

        return run_action(
            context,
            IdempotentAction(
                name=str(config_path),
                probe=current,
                apply=lambda: config_path.write_text(content, encoding="utf-8"),
                commands=(f"write {config_path}",),
                satisfied="Already configured",
                changed="Written",
            ),
        )

    def permissions(context: StepContext) -> StepResult:
        actions: list[IdempotentAction] = []
        for identity in identities:
            for path, mode in (
                (key_path(identity), PRIVATE_KEY_MODE),
                (key_path(identity).with_name(f"{identity.key_name}.pub"), PUBLIC_KEY_MODE),
            ):
                actions.append(
                    IdempotentAction(
                        name=path.name,
                        probe=lambda path=path, mode=mode: _has_mode(path, mode),
                        apply=lambda path=path, mode=mode: path.chmod(mode),
                        commands=(["chmod", f"{mode:o}", str(path)],),
                        satisfied="Already set",
                        changed="Updated",
                    )
                )
        return run_batch(context, actions, report=False)

    def show_public_keys(context: StepContext) -> StepResult:
        output = context.output
        output.skip("Add these public keys to their respective services:")
        for identity in identities:
            public = key_path(identity).with_name(f"{identity.key_name}.pub")
            try:
                key = public.read_text(encoding="utf-8").strip()
            except FileNotFoundError:
                key = "(not generated)"
            output.plain(f"  {identity.host}: {key}")
        return StepResult(StepOutcome.DONE, "Generated per-host SSH keys and ssh_config entries")

    return Workflow(
        command="ssh bootstrap",
        title="SSH Keys",
        steps=[
            StepDefinition("existing", "Checking existing keys", check_existing),
            StepDefinition("directory", "Ensuring ~/.ssh", ensure_directory),
            StepDefinition("keys", "Generating SSH keys", generate),
            StepDefinition("config", "Writing ssh config", write_config),
            StepDefinition("permissions", "Setting key permissions", permissions, fatal=False),
            StepDefinition("public-keys", "Public keys", show_public_keys, fatal=False),
        ],
    )


__all__ = ["build_ssh_bootstrap", "render_ssh_config"]
