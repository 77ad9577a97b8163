"""Configuration loader for wsctl.

Two kinds of configuration exist:

* :class:`WorkstationConfig` describes *what* to provision (paths, package
  lists, identities). It is read from multiple sources in order:

  1. Built-in defaults.
  2. ``~/.config/wsctl/config.yml`` (or an override path).
  3. Legacy environment variable names kept for existing shell setups
     (``DOTFILES_DIRECTORY``, ``DOTFILES_REPO``, ``WORKSTATION_DIRECTORY``,
     ``WORKSTATION_REPO``).
  4. Environment variables prefixed with ``WSCTL_``.
  5. Explicit overrides supplied programmatically.

* :class:`RunConfig` describes *how* a single invocation behaves (dry-run,
  spinner, confirmation). It is built once from CLI flags and never changes.

Environment keys use double underscores to express nesting, e.g.::

    export WSCTL_DOTFILES__DIRECTORY=~/src/dotfiles
    export WSCTL_TMUX__SESSION=work

Values are coerced via PyYAML's ``safe_load`` so that booleans, numbers and
lists are parsed naturally.
"""
from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

try:  # PyYAML is a runtime dependency (declared in pyproject.toml).
    import yaml
except Exception as exc:  # pragma: no cover - import failure is an install problem
    raise RuntimeError(
        "PyYAML is required to load wsctl configuration. Install with "
        "`pip install wsctl` or ensure PyYAML>=6.0 is available."
    ) from exc


ENV_PREFIX = "WSCTL_"
CONFIG_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
RESERVED_ENV_KEYS = {CONFIG_ENV_VAR}

# Environment names kept from the shell scripts this tool replaces.
LEGACY_ENV_KEYS: Mapping[str, tuple[str, ...]] = {
    "DOTFILES_DIRECTORY": ("dotfiles", "directory"),
    "DOTFILES_REPO": ("dotfiles", "repository"),
    "WORKSTATION_DIRECTORY": ("workstation", "directory"),
    "WORKSTATION_REPO": ("workstation", "repository"),
}

CLEANUP_GROUPS = frozenset({"history", "editor", "package-caches", "homebrew", "system"})

KNOWN_KEEP_TAGS = CLEANUP_GROUPS | frozenset(
    {"brew", "fonts", "brew-cleanup", "dotfiles-repo"}
)


class ConfigError(RuntimeError):
    """Raised when configuration parsing fails."""


@dataclass(frozen=True)
class RunConfig:
    """Per-invocation behaviour flags shared by every workflow."""

    dry_run: bool = False
    no_spinner: bool = False
    no_clear: bool = False
    assume_yes: bool = False
    debug: bool = False
    force: bool = False
    keep: frozenset[str] = frozenset()

    def keeps(self, tag: str) -> bool:
        """Return ``True`` when resource *tag* is excluded from mutation."""
        return tag in self.keep

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "dry_run": self.dry_run,
            "no_spinner": self.no_spinner,
            "no_clear": self.no_clear,
            "assume_yes": self.assume_yes,
            "debug": self.debug,
            "force": self.force,
            "keep": sorted(self.keep),
        }


def build_run_config(
    *,
    dry_run: bool = False,
    no_spinner: bool = False,
    no_clear: bool = False,
    assume_yes: bool = False,
    debug: bool = False,
    force: bool = False,
    keep: Sequence[str] = (),
    env: Mapping[str, str] | None = None,
) -> RunConfig:
    """Resolve a :class:`RunConfig` from CLI flags and the environment."""
    resolved_env = os.environ if env is None else env
    unknown = set(keep) - KNOWN_KEEP_TAGS
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keep tags: {joined}.")
    return RunConfig(
        dry_run=dry_run,
        no_spinner=no_spinner,
        no_clear=no_clear,
        assume_yes=assume_yes,
        debug=debug or resolved_env.get("DEBUG", "0") == "1",
        force=force,
        keep=frozenset(keep),
    )


@dataclass(frozen=True)
class RepositoryConfig:
    """Local checkout location and remote URL for a git repository."""

    directory: Path
    repository: str

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"directory": str(self.directory), "repository": self.repository}


@dataclass(frozen=True)
class HomebrewConfig:
    """Homebrew installer location and the package lists to manage."""

    install_script_url: str
    formulae: tuple[str, ...]
    nerd_fonts: tuple[str, ...]
    font_tap: str | None
    gui_apps: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "install_script_url": self.install_script_url,
            "formulae": list(self.formulae),
            "nerd_fonts": list(self.nerd_fonts),
            "font_tap": self.font_tap,
            "gui_apps": list(self.gui_apps),
        }


@dataclass(frozen=True)
class ToolsConfig:
    """Executable names (or absolute paths) for external collaborators."""

    brew: str = "brew"
    git: str = "git"
    stow: str = "stow"
    tmux: str = "tmux"
    ssh_keygen: str = "ssh-keygen"
    jj: str = "jj"
    curl: str = "curl"
    rsync: str = "rsync"
    bat: str = "bat"
    xcode_select: str = "xcode-select"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "brew": self.brew,
            "git": self.git,
            "stow": self.stow,
            "tmux": self.tmux,
            "ssh_keygen": self.ssh_keygen,
            "jj": self.jj,
            "curl": self.curl,
            "rsync": self.rsync,
            "bat": self.bat,
            "xcode_select": self.xcode_select,
        }


@dataclass(frozen=True)
class SshIdentity:
    """One per-host SSH key and its ssh_config entry."""

    host: str
    key_name: str
    comment: str
    user: str = "git"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "host": self.host,
            "key_name": self.key_name,
            "comment": self.comment,
            "user": self.user,
        }


@dataclass(frozen=True)
class SshConfig:
    """SSH directory and the identities to generate."""

    directory: Path
    identities: tuple[SshIdentity, ...]

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "directory": str(self.directory),
            "identities": [identity.to_dict() for identity in self.identities],
        }


@dataclass(frozen=True)
class JjIdentity:
    """Identity applied to jj repositories whose path contains ``marker``."""

    marker: str
    label: str
    name: str
    email: str

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "marker": self.marker,
            "label": self.label,
            "name": self.name,
            "email": self.email,
        }


@dataclass(frozen=True)
class TmuxConfig:
    """Default tmux session name and popup geometry."""

    session: str = "dev"
    popup_width: str = "80%"
    popup_height: str = "80%"
    popup_command: str = "opencode"

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {
            "session": self.session,
            "popup": {
                "width": self.popup_width,
                "height": self.popup_height,
                "command": self.popup_command,
            },
        }


@dataclass(frozen=True)
class XcodeConfig:
    """Polling limits while waiting for the command line tools installer."""

    poll_attempts: int = 120
    poll_interval: float = 5.0

    def to_dict(self) -> dict[str, object]:
        """Return a serialisable representation."""
        return {"poll_attempts": self.poll_attempts, "poll_interval": self.poll_interval}


@dataclass(frozen=True)
class WorkstationConfig:
    """Resolved configuration values for wsctl."""

    config_file: Path
    home: Path
    logs_dir: Path
    dotfiles: RepositoryConfig
    workstation: RepositoryConfig
    homebrew: HomebrewConfig
    tools: ToolsConfig
    ssh: SshConfig
    jj_identities: tuple[JjIdentity, ...]
    tmux: TmuxConfig
    cleanup: Mapping[str, tuple[Path, ...]] = field(default_factory=dict)
    xcode: XcodeConfig = XcodeConfig()

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-serialisable representation of the config."""
        return {
            "config_file": str(self.config_file),
            "home": str(self.home),
            "logs_dir": str(self.logs_dir),
            "dotfiles": self.dotfiles.to_dict(),
            "workstation": self.workstation.to_dict(),
            "homebrew": self.homebrew.to_dict(),
            "tools": self.tools.to_dict(),
            "ssh": self.ssh.to_dict(),
            "jj": {"identities": [identity.to_dict() for identity in self.jj_identities]},
            "tmux": self.tmux.to_dict(),
            "cleanup": {
                group: [str(path) for path in paths] for group, paths in self.cleanup.items()
            },
            "xcode": self.xcode.to_dict(),
        }


DEFAULTS: dict[str, object] = {
    "config_file": "~/.config/wsctl/config.yml",
    "home": "~",
    "logs_dir": None,  # derived from home when absent
    "dotfiles": {
        "directory": "~/dotfiles-macos",
        "repository": "https://github.com/nvimcraft/dotfiles-macos.git",
    },
    "workstation": {
        "directory": "~/Developer/projects/github/macos-workstation",
        "repository": "https://github.com/nvimcraft/macos-workstation.git",
    },
    "homebrew": {
        "install_script_url": (
            "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
        ),
        "formulae": [
            "stow", "node", "git", "gh", "neovim", "tmux",
            "go", "python",
            "ripgrep", "bat", "eza", "tree", "tlrc", "zoxide", "delta",
            "powerlevel10k", "zsh-autosuggestions", "zsh-syntax-highlighting",
        ],
        "nerd_fonts": ["font-lilex-nerd-font"],
        "font_tap": "homebrew/cask-fonts",
        "gui_apps": [
            "chatgpt",
            "discord",
            "docker",
            "keycastr",
            "microsoft-teams",
            "raycast",
            "spotify",
            "thebrowsercompany-dia",
            "wezterm",
            "zoom",
        ],
    },
    "tools": ToolsConfig().to_dict(),
    "ssh": {
        "directory": None,  # derived from home when absent
        "identities": [
            {"host": "github.com", "key_name": "id_ed25519_github", "comment": "nvimcraft@github"},
            {"host": "gitea.com", "key_name": "id_ed25519_gitea", "comment": "nvimcraft@gitea"},
        ],
    },
    "jj": {
        "identities": [
            {
                "marker": "/gitea/",
                "label": "Gitea",
                "name": "nvimcraft",
                "email": "nvimcraft@noreply.gitea.com",
            },
            {
                "marker": "/github/",
                "label": "GitHub",
                "name": "nvimcraft",
                "email": "260064684+nvimcraft@users.noreply.github.com",
            },
        ],
    },
    "tmux": {
        "session": "dev",
        "popup": {"width": "80%", "height": "80%", "command": "opencode"},
    },
    "cleanup": {
        "history": [
            ".zsh_history",
            ".bash_history",
            ".python_history",
            ".mysql_history",
            ".psql_history",
            ".lesshst",
        ],
        "editor": [".viminfo", ".vim/swap", ".vim/backup", ".biome"],
        "package-caches": [".npm", ".pnpm", ".yarn", ".bun"],
        "homebrew": ["Library/Caches/Homebrew", "Library/Logs/Homebrew"],
        "system": [".cache", ".DS_Store", ".zcompdump"],
    },
    "xcode": {"poll_attempts": 120, "poll_interval": 5.0},
}

ALLOWED_TOP_LEVEL_KEYS = set(DEFAULTS.keys())
_SECTION_KEYS: Mapping[str, set[str]] = {
    "dotfiles": {"directory", "repository"},
    "workstation": {"directory", "repository"},
    "homebrew": {"install_script_url", "formulae", "nerd_fonts", "font_tap", "gui_apps"},
    "tools": set(ToolsConfig().to_dict().keys()),
    "ssh": {"directory", "identities"},
    "jj": {"identities"},
    "tmux": {"session", "popup"},
    "xcode": {"poll_attempts", "poll_interval"},
}


def load_config(
    config_file: str | os.PathLike[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> WorkstationConfig:
    """Load and merge configuration sources into a :class:`WorkstationConfig`."""
    merged: dict[str, object] = _deep_copy(DEFAULTS)
    resolved_env = dict(os.environ if env is None else env)

    config_default = _expect_str(merged["config_file"], "config_file")
    config_path = _determine_config_path(config_default, config_file, resolved_env)

    file_values = _load_yaml_file(config_path)
    if file_values:
        _deep_merge(merged, file_values)

    legacy_values = _build_legacy_overrides(resolved_env)
    if legacy_values:
        _deep_merge(merged, legacy_values)

    env_values = _build_env_overrides(resolved_env)
    if env_values:
        _deep_merge(merged, env_values)

    if overrides:
        _deep_merge(merged, _deep_copy(overrides))

    merged["config_file"] = str(config_path)

    _validate_structure(merged)

    return _build_workstation_config(merged)


def _determine_config_path(
    default_path: str,
    cli_override: str | os.PathLike[str] | None,
    env: Mapping[str, str],
) -> Path:
    if cli_override:
        return Path(cli_override).expanduser()
    if CONFIG_ENV_VAR in env:
        return Path(env[CONFIG_ENV_VAR]).expanduser()
    return Path(default_path).expanduser()


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigError(f"Config file {path} must contain a mapping at the top level.")
    return _as_dict(data, f"file:{path}")


def _validate_structure(raw: Mapping[str, object]) -> None:
    unknown_keys = set(raw.keys()) - ALLOWED_TOP_LEVEL_KEYS
    if unknown_keys:
        joined = ", ".join(sorted(unknown_keys))
        raise ConfigError(f"Unknown configuration keys: {joined}.")

    for section, allowed in _SECTION_KEYS.items():
        section_map = _as_dict(raw.get(section), section)
        unknown = set(section_map.keys()) - allowed
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown {section} configuration keys: {joined}.")

    popup = _as_dict(_as_dict(raw.get("tmux"), "tmux").get("popup"), "tmux.popup")
    unknown_popup = set(popup.keys()) - {"width", "height", "command"}
    if unknown_popup:
        joined = ", ".join(sorted(unknown_popup))
        raise ConfigError(f"Unknown tmux.popup configuration keys: {joined}.")

    cleanup = _as_dict(raw.get("cleanup"), "cleanup")
    unknown_groups = set(cleanup.keys()) - CLEANUP_GROUPS
    if unknown_groups:
        joined = ", ".join(sorted(unknown_groups))
        raise ConfigError(f"Unknown cleanup groups: {joined}.")


def _build_workstation_config(raw: Mapping[str, object]) -> WorkstationConfig:
    config_file = _to_path(raw.get("config_file"))
    home = _to_path(raw.get("home"))

    logs_dir_value = raw.get("logs_dir")
    logs_dir = (
        _resolve_under(home, logs_dir_value)
        if logs_dir_value
        else home / ".local" / "state" / "wsctl" / "logs"
    )

    dotfiles = _build_repository(raw.get("dotfiles"), "dotfiles", home)
    workstation = _build_repository(raw.get("workstation"), "workstation", home)

    brew_map = _as_dict(raw.get("homebrew"), "homebrew")
    font_tap_value = brew_map.get("font_tap")
    homebrew = HomebrewConfig(
        install_script_url=_expect_str(
            brew_map.get("install_script_url"), "homebrew.install_script_url"
        ),
        formulae=_expect_names(brew_map.get("formulae"), "homebrew.formulae"),
        nerd_fonts=_expect_names(brew_map.get("nerd_fonts"), "homebrew.nerd_fonts"),
        font_tap=str(font_tap_value) if font_tap_value else None,
        gui_apps=_expect_names(brew_map.get("gui_apps"), "homebrew.gui_apps"),
    )

    tools_map = _as_dict(raw.get("tools"), "tools")
    tools = ToolsConfig(
        **{key: _expect_str(value, f"tools.{key}") for key, value in tools_map.items()}
    )

    ssh_map = _as_dict(raw.get("ssh"), "ssh")
    ssh_dir_value = ssh_map.get("directory")
    ssh_directory = _resolve_under(home, ssh_dir_value) if ssh_dir_value else home / ".ssh"
    identities: list[SshIdentity] = []
    for index, entry in enumerate(_as_sequence(ssh_map.get("identities", []), "ssh.identities")):
        label = f"ssh.identities[{index}]"
        mapping = _as_dict(entry, label)
        unknown = set(mapping.keys()) - {"host", "key_name", "comment", "user"}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ConfigError(f"Unknown keys for {label}: {joined}.")
        identities.append(
            SshIdentity(
                host=_expect_str(mapping.get("host"), f"{label}.host"),
                key_name=_expect_str(mapping.get("key_name"), f"{label}.key_name"),
                comment=_expect_str(mapping.get("comment"), f"{label}.comment"),
                user=_expect_str(mapping.get("user", "git"), f"{label}.user"),
            )
        )
    ssh = SshConfig(directory=ssh_directory, identities=tuple(identities))

    jj_map = _as_dict(raw.get("jj"), "jj")
    jj_identities: list[JjIdentity] = []
    for index, entry in enumerate(_as_sequence(jj_map.get("identities", []), "jj.identities")):
        label = f"jj.identities[{index}]"
        mapping = _as_dict(entry, label)
        jj_identities.append(
            JjIdentity(
                marker=_expect_str(mapping.get("marker"), f"{label}.marker"),
                label=_expect_str(mapping.get("label"), f"{label}.label"),
                name=_expect_str(mapping.get("name"), f"{label}.name"),
                email=_expect_str(mapping.get("email"), f"{label}.email"),
            )
        )

    tmux_map = _as_dict(raw.get("tmux"), "tmux")
    popup_map = _as_dict(tmux_map.get("popup"), "tmux.popup")
    tmux = TmuxConfig(
        session=_expect_str(tmux_map.get("session", "dev"), "tmux.session"),
        popup_width=str(popup_map.get("width", "80%")),
        popup_height=str(popup_map.get("height", "80%")),
        popup_command=_expect_str(popup_map.get("command", "opencode"), "tmux.popup.command"),
    )

    cleanup_map = _as_dict(raw.get("cleanup"), "cleanup")
    cleanup: dict[str, tuple[Path, ...]] = {}
    for group, entries in cleanup_map.items():
        names = _expect_names(entries, f"cleanup.{group}")
        cleanup[group] = tuple(_resolve_under(home, name) for name in names)

    xcode_map = _as_dict(raw.get("xcode"), "xcode")
    poll_attempts = _expect_int(xcode_map.get("poll_attempts"), "xcode.poll_attempts", default=120)
    if poll_attempts <= 0:
        raise ConfigError("xcode.poll_attempts must be greater than zero.")
    xcode = XcodeConfig(
        poll_attempts=poll_attempts,
        poll_interval=_expect_positive_float(
            xcode_map.get("poll_interval"), "xcode.poll_interval", default=5.0
        ),
    )

    return WorkstationConfig(
        config_file=config_file,
        home=home,
        logs_dir=logs_dir,
        dotfiles=dotfiles,
        workstation=workstation,
        homebrew=homebrew,
        tools=tools,
        ssh=ssh,
        jj_identities=tuple(jj_identities),
        tmux=tmux,
        cleanup=cleanup,
        xcode=xcode,
    )


def _build_repository(value: object, label: str, home: Path) -> RepositoryConfig:
    mapping = _as_dict(value, label)
    return RepositoryConfig(
        directory=_resolve_under(home, mapping.get("directory")),
        repository=_expect_str(mapping.get("repository"), f"{label}.repository"),
    )


def _build_legacy_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, path in LEGACY_ENV_KEYS.items():
        value = env.get(key)
        if value:
            _assign_nested(overrides, list(path), value)
    return overrides


def _build_env_overrides(env: Mapping[str, str]) -> dict[str, object]:
    overrides: dict[str, object] = {}
    for key, value in env.items():
        if key in RESERVED_ENV_KEYS:
            continue
        if not key.startswith(ENV_PREFIX):
            continue
        suffix = key[len(ENV_PREFIX) :]
        path_segments = [segment.lower() for segment in suffix.split("__") if segment]
        if not path_segments:
            continue
        _assign_nested(overrides, path_segments, _coerce_value(value))
    return overrides


def _assign_nested(tree: MutableMapping[str, object], path: list[str], value: object) -> None:
    current: MutableMapping[str, object] = tree
    for segment in path[:-1]:
        existing = current.get(segment)
        if existing is None:
            new_child: MutableMapping[str, object] = {}
            current[segment] = new_child
            current = new_child
            continue
        if isinstance(existing, MutableMapping):
            current = cast(MutableMapping[str, object], existing)
            continue
        raise ConfigError(
            "Environment overrides conflict with existing scalar value at "
            f"{'.'.join(path)}"
        )
    current[path[-1]] = value


def _deep_merge(target: MutableMapping[str, object], overrides: Mapping[str, object]) -> None:
    for key, value in overrides.items():
        existing = target.get(key)
        if isinstance(existing, MutableMapping) and isinstance(value, Mapping):
            _deep_merge(existing, _as_dict(value, f"merge.{key}"))
            continue
        target[key] = value


def _deep_copy(source: Mapping[str, object]) -> dict[str, object]:
    result: dict[str, object] = {}
    for key, value in source.items():
        if isinstance(value, Mapping):
            result[key] = _deep_copy(_as_dict(value, f"copy.{key}"))
        elif isinstance(value, list):
            result[key] = list(value)
        else:
            result[key] = value
    return result


def _coerce_value(raw: str) -> object:
    raw = raw.strip()
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:  # treat as string if parsing fails
        return raw
    return parsed


def _resolve_under(home: Path, value: object) -> Path:
    text = str(_to_path(value)) if isinstance(value, Path) else value
    if not isinstance(text, str):
        raise ConfigError(f"Cannot convert value {value!r} to Path.")
    if text == "~":
        return home
    if text.startswith("~/"):
        return home / text[2:]
    path = Path(text).expanduser()
    if path.is_absolute():
        return path
    return home / path


def _to_path(value: object) -> Path:
    if value is None:
        raise ConfigError("Expected a filesystem path, received None.")
    if isinstance(value, Path):
        return value.expanduser()
    if isinstance(value, str):
        return Path(value).expanduser()
    raise ConfigError(f"Cannot convert value {value!r} to Path.")


def _as_sequence(value: object, label: str) -> Sequence[object]:
    if isinstance(value, (str, bytes)):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    if not isinstance(value, Sequence):
        raise ConfigError(f"Expected {label} to be a sequence. Got {type(value).__name__}.")
    return value


def _expect_names(value: object, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    names: list[str] = []
    for index, item in enumerate(_as_sequence(value, label)):
        if not isinstance(item, str) or not item.strip():
            raise ConfigError(f"{label}[{index}] must be a non-empty string.")
        names.append(item.strip())
    return tuple(names)


def _expect_int(value: object | None, label: str, *, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be an integer. Got boolean {value!r}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 0)
        except ValueError as exc:
            raise ConfigError(f"Invalid integer for {label}: {value!r}.") from exc
    raise ConfigError(f"Expected {label} to be an integer. Got {type(value).__name__}.")


def _expect_str(value: object, key: str) -> str:
    if isinstance(value, str):
        return value
    raise ConfigError(f"Expected {key} to resolve to a string. Got {value!r}.")


def _expect_positive_float(
    value: object | None,
    label: str,
    *,
    default: float,
) -> float:
    if value is None:
        return float(default)
    if isinstance(value, bool):
        raise ConfigError(f"Expected {label} to be a number. Got boolean {value!r}.")
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value)
        except ValueError as exc:
            raise ConfigError(f"Invalid number for {label}: {value!r}.") from exc
    else:
        raise ConfigError(f"Expected {label} to be numeric. Got {type(value).__name__}.")
    if numeric <= 0:
        raise ConfigError(f"{label} must be greater than zero. Got {numeric}.")
    return numeric


def _as_dict(value: object | None, label: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"Expected {label} to be a mapping. Got {type(value).__name__}.")
    result: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise ConfigError(f"Mapping {label} must use string keys. Got {key!r}.")
        result[key] = item
    return result


__all__ = [
    "ConfigError",
    "HomebrewConfig",
    "JjIdentity",
    "CLEANUP_GROUPS",
    "KNOWN_KEEP_TAGS",
    "RepositoryConfig",
    "RunConfig",
    "SshConfig",
    "SshIdentity",
    "TmuxConfig",
    "ToolsConfig",
    "WorkstationConfig",
    "XcodeConfig",
    "build_run_config",
    "load_config",
]
