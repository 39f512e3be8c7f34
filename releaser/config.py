"""
config.py

Responsibility: Load the release configuration into a deterministic, typed model.

Resolution order (highest to lowest):
1. CLI overrides (applied by the caller via `apply_overrides`)
2. Environment variables (prefixed with RELEASER_)
3. YAML config file (`releaser.yaml` / `.releaser.yaml` in the project root)
4. Built-in defaults

The defaults describe the static musl build of the `nexus-network` client, so a
project without a config file only needs a version.
"""

from __future__ import annotations

import dataclasses
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from releaser.errors import ReleaserError

DEFAULT_CONFIG_NAMES = ("releaser.yaml", ".releaser.yaml")

# MAJOR.MINOR.PATCH with an optional pre-release / build suffix (e.g. 0.9.6-b).
_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(?:[-+][0-9A-Za-z][0-9A-Za-z.+-]*)?$")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

ENV_OVERRIDES = {
    "RELEASER_VERSION": "version",
    "RELEASER_BINARY": "binary_name",
    "RELEASER_REMOTE": "remote",
    "RELEASER_BRANCH": "branch",
    "RELEASER_LOG_LEVEL": "log_level",
}


class ConfigError(ReleaserError):
    pass


@dataclass(frozen=True)
class BuildSettings:
    """How the client binary is compiled."""

    crate_dir: str = "clients/cli"
    target: str = "x86_64-unknown-linux-musl"
    features: tuple[str, ...] = ("build_proto",)
    rustflags: str = "-C target-feature=+crt-static"
    install_toolchain: bool = True
    apt_packages: tuple[str, ...] = ("musl-tools",)


@dataclass(frozen=True)
class GitSettings:
    remote: str = "origin"
    branch: str = "main"
    # Extra paths staged with every release commit (relative to the project root).
    stage: tuple[str, ...] = ()
    # Paths removed from version control before staging the new artifacts.
    stale: tuple[str, ...] = ("releases/checksums.txt",)
    # Delete an existing tag / GitHub release for the same version before re-creating it.
    replace: bool = True


@dataclass(frozen=True)
class GitHubSettings:
    owner: str | None = None
    repo: str | None = None
    api_base: str = "https://api.github.com"
    retries: int = 3
    timeout: int = 30
    title: str = "Release {{ tag }}"
    notes: str = "Release {{ tag }}"
    notes_file: str | None = None
    prerelease: bool = False
    draft: bool = False


@dataclass(frozen=True)
class ReleaseConfig:
    """Everything the build and release flows need, resolved and validated."""

    version: str
    project_root: Path = field(default_factory=lambda: Path(".").resolve())
    binary_name: str = "nexus-network"
    releases_dir: str = "releases"
    tag_prefix: str = "v"
    log_level: str = "INFO"
    build: BuildSettings = field(default_factory=BuildSettings)
    git: GitSettings = field(default_factory=GitSettings)
    github: GitHubSettings = field(default_factory=GitHubSettings)

    @property
    def tag(self) -> str:
        return f"{self.tag_prefix}{self.version}"

    @property
    def releases_path(self) -> Path:
        return self.project_root / self.releases_dir

    @property
    def crate_path(self) -> Path:
        return self.project_root / self.build.crate_dir

    def metadata_paths(self) -> list[str]:
        """Paths committed alongside the artifacts: crate manifests plus configured extras."""
        crate = self.build.crate_dir.rstrip("/")
        paths = [f"{crate}/Cargo.toml", f"{crate}/Cargo.lock", f"{crate}/.cargo/"]
        paths.extend(p for p in self.git.stage if p not in paths)
        return paths


def validate_version(version: str) -> str:
    version = version.strip()
    if version.startswith("v") and _VERSION_RE.match(version[1:]):
        version = version[1:]
    if not _VERSION_RE.match(version):
        raise ConfigError(f"Invalid version {version!r} (expected MAJOR.MINOR.PATCH[-suffix])")
    return version


def validate_log_level(level: str) -> str:
    level = level.strip().upper()
    if level not in LOG_LEVELS:
        raise ConfigError(f"Invalid log level {level!r} (expected one of {', '.join(LOG_LEVELS)})")
    return level


def validate_releases_dir(releases_dir: str, project_root: Path) -> str:
    """Artifacts are committed, so the releases directory must sit inside the project."""
    root = project_root.resolve()
    if not (root / releases_dir).resolve().is_relative_to(root):
        raise ConfigError(f"`releases_dir` must be inside the project root {root}: {releases_dir!r}")
    return releases_dir


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    raw = data.get(key)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"`{key}` must be an object/mapping when provided.")
    return raw


def _opt_str(section: dict[str, Any], key: str, default: str | None) -> str | None:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        raise ConfigError(f"`{key}` must be a string.")
    return str(value).strip() or default


def _str(section: dict[str, Any], key: str, default: str) -> str:
    value = _opt_str(section, key, default)
    return default if value is None else value


def _bool(section: dict[str, Any], key: str, default: bool) -> bool:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "1", "yes", "false", "0", "no"):
        return value.lower() in ("true", "1", "yes")
    raise ConfigError(f"`{key}` must be a boolean.")


def _int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key)
    if value is None:
        return default
    try:
        out = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"`{key}` must be an integer.") from e
    if out < 1:
        raise ConfigError(f"`{key}` must be at least 1.")
    return out


def _str_list(section: dict[str, Any], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = section.get(key)
    if value is None:
        return default
    if isinstance(value, str):
        return tuple(v for v in value.replace(",", " ").split() if v)
    if not isinstance(value, list):
        raise ConfigError(f"`{key}` must be a list of strings.")
    return tuple(str(v).strip() for v in value if str(v).strip())


def parse_config(data: dict[str, Any], *, project_root: Path, version: str | None = None) -> ReleaseConfig:
    """
    Build a `ReleaseConfig` from a parsed YAML mapping.

    `version` wins over the file's `version` key; one of the two is required.
    """
    raw_version = version if version is not None else data.get("version")
    if raw_version is None or not str(raw_version).strip():
        raise ConfigError("A release version is required (config `version`, RELEASER_VERSION or --release-version).")

    b = _mapping(data, "build")
    g = _mapping(data, "git")
    h = _mapping(data, "github")

    defaults_b = BuildSettings()
    defaults_g = GitSettings()
    defaults_h = GitHubSettings()

    build = BuildSettings(
        crate_dir=_str(b, "crate_dir", defaults_b.crate_dir),
        target=_str(b, "target", defaults_b.target),
        features=_str_list(b, "features", defaults_b.features),
        rustflags=_str(b, "rustflags", defaults_b.rustflags),
        install_toolchain=_bool(b, "install_toolchain", defaults_b.install_toolchain),
        apt_packages=_str_list(b, "apt_packages", defaults_b.apt_packages),
    )
    git = GitSettings(
        remote=_str(g, "remote", defaults_g.remote),
        branch=_str(g, "branch", defaults_g.branch),
        stage=_str_list(g, "stage", defaults_g.stage),
        stale=_str_list(g, "stale", defaults_g.stale),
        replace=_bool(g, "replace", defaults_g.replace),
    )
    github = GitHubSettings(
        owner=_opt_str(h, "owner", None),
        repo=_opt_str(h, "repo", None),
        api_base=_str(h, "api_base", defaults_h.api_base),
        retries=_int(h, "retries", defaults_h.retries),
        timeout=_int(h, "timeout", defaults_h.timeout),
        title=_str(h, "title", defaults_h.title),
        notes=_str(h, "notes", defaults_h.notes),
        notes_file=_opt_str(h, "notes_file", None),
        prerelease=_bool(h, "prerelease", defaults_h.prerelease),
        draft=_bool(h, "draft", defaults_h.draft),
    )

    return ReleaseConfig(
        version=validate_version(str(raw_version)),
        project_root=project_root,
        binary_name=_str(data, "binary", "nexus-network"),
        releases_dir=validate_releases_dir(_str(data, "releases_dir", "releases"), project_root),
        tag_prefix="v" if data.get("tag_prefix") is None else str(data["tag_prefix"]).strip(),
        log_level=validate_log_level(_str(data, "log_level", "INFO")),
        build=build,
        git=git,
        github=github,
    )


def find_config_file(project_root: Path) -> Path | None:
    for name in DEFAULT_CONFIG_NAMES:
        candidate = project_root / name
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file does not exist: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Config file must be a mapping/object at the top level.")
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for env_var, key in ENV_OVERRIDES.items():
        value = environ.get(env_var)
        if value:
            out[key] = value
    return out


def apply_overrides(config: ReleaseConfig, overrides: dict[str, Any]) -> ReleaseConfig:
    """
    Return a copy of `config` with flat overrides applied (None values are ignored).

    Recognised keys: version, binary_name, log_level, remote, branch, replace,
    install_toolchain, prerelease, draft.
    """
    top: dict[str, Any] = {}
    git: dict[str, Any] = {}
    build: dict[str, Any] = {}
    github: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key == "version":
            top["version"] = validate_version(str(value))
        elif key in ("binary_name", "log_level"):
            top[key] = validate_log_level(str(value)) if key == "log_level" else str(value)
        elif key in ("remote", "branch", "replace"):
            git[key] = value
        elif key == "install_toolchain":
            build[key] = bool(value)
        elif key in ("prerelease", "draft"):
            github[key] = bool(value)
        else:
            raise ConfigError(f"Unknown config override: {key}")

    if git:
        top["git"] = dataclasses.replace(config.git, **git)
    if build:
        top["build"] = dataclasses.replace(config.build, **build)
    if github:
        top["github"] = dataclasses.replace(config.github, **github)
    return dataclasses.replace(config, **top) if top else config


def load_config(
    config_path: str | Path | None = None,
    *,
    project_root: str | Path = ".",
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> ReleaseConfig:
    """
    Load configuration with full resolution order.

    An explicit `config_path` must exist; otherwise the default names are searched
    in `project_root` and built-in defaults are used when none is found.
    """
    root = Path(project_root).resolve()
    if config_path is not None:
        data = read_config_file(config_path)
    else:
        found = find_config_file(root)
        data = read_config_file(found) if found is not None else {}

    env = _env_overrides(os.environ if environ is None else environ)
    merged = {**env, **{k: v for k, v in (overrides or {}).items() if v is not None}}

    config = parse_config(data, project_root=root, version=merged.pop("version", None))
    return apply_overrides(config, merged)
