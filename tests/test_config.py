"""
Tests for configuration loading, validation and override resolution.
"""

from __future__ import annotations

import pytest

from releaser.config import (
    ConfigError,
    ReleaseConfig,
    apply_overrides,
    load_config,
    parse_config,
    validate_version,
)


class TestValidateVersion:
    @pytest.mark.parametrize("version", ["0.9.7", "0.9.6-b", "1.0.0-rc.1", "2.3.4+build5"])
    def test_accepts(self, version):
        assert validate_version(version) == version

    def test_strips_tag_prefix(self):
        assert validate_version("v0.9.7") == "0.9.7"

    @pytest.mark.parametrize("version", ["", "0.9", "latest", "0.9.7 beta", "../0.9.7"])
    def test_rejects(self, version):
        with pytest.raises(ConfigError, match="Invalid version"):
            validate_version(version)


def test_defaults_describe_static_musl_build(tmp_path):
    config = parse_config({}, project_root=tmp_path, version="0.9.7")

    assert config.binary_name == "nexus-network"
    assert config.tag == "v0.9.7"
    assert config.releases_path == tmp_path / "releases"
    assert config.crate_path == tmp_path / "clients" / "cli"
    assert config.build.target == "x86_64-unknown-linux-musl"
    assert config.build.features == ("build_proto",)
    assert config.build.rustflags == "-C target-feature=+crt-static"
    assert config.build.apt_packages == ("musl-tools",)
    assert config.git.remote == "origin"
    assert config.git.branch == "main"
    assert config.git.replace is True
    assert config.git.stale == ("releases/checksums.txt",)


def test_version_required(tmp_path):
    with pytest.raises(ConfigError, match="version is required"):
        parse_config({}, project_root=tmp_path)


def test_nested_sections(tmp_path):
    data = {
        "version": "1.2.3",
        "binary": "tool",
        "tag_prefix": "",
        "build": {"crate_dir": "cli", "features": "a, b", "install_toolchain": "no"},
        "git": {"branch": "release", "stage": ["README.md"], "replace": False},
        "github": {"owner": "acme", "repo": "tool", "retries": 5, "prerelease": True},
    }
    config = parse_config(data, project_root=tmp_path)

    assert config.tag == "1.2.3"
    assert config.build.features == ("a", "b")
    assert config.build.install_toolchain is False
    assert config.git.branch == "release"
    assert config.git.replace is False
    assert config.github.owner == "acme"
    assert config.github.retries == 5
    assert config.github.prerelease is True
    assert config.metadata_paths() == ["cli/Cargo.toml", "cli/Cargo.lock", "cli/.cargo/", "README.md"]


@pytest.mark.parametrize(
    "data, message",
    [
        ({"build": "nope"}, "`build` must be an object"),
        ({"git": {"replace": "maybe"}}, "`replace` must be a boolean"),
        ({"github": {"retries": "many"}}, "`retries` must be an integer"),
        ({"github": {"timeout": 0}}, "`timeout` must be at least 1"),
        ({"build": {"features": {"a": 1}}}, "`features` must be a list"),
        ({"log_level": "loud"}, "Invalid log level"),
    ],
)
def test_type_errors(tmp_path, data, message):
    with pytest.raises(ConfigError, match=message):
        parse_config({"version": "1.0.0", **data}, project_root=tmp_path)


@pytest.mark.parametrize("releases_dir", ["/srv/releases", "../releases", "releases/../../out"])
def test_releases_dir_outside_project_root(tmp_path, releases_dir):
    with pytest.raises(ConfigError, match="`releases_dir` must be inside the project root"):
        parse_config({"version": "1.0.0", "releases_dir": releases_dir}, project_root=tmp_path)


def test_releases_dir_nested_inside_project_root(tmp_path):
    config = parse_config({"version": "1.0.0", "releases_dir": "dist/releases"}, project_root=tmp_path)
    assert config.releases_path == tmp_path / "dist" / "releases"


def test_apply_overrides_ignores_none(tmp_path):
    config = ReleaseConfig(version="1.0.0", project_root=tmp_path)
    updated = apply_overrides(
        config,
        {"version": "1.0.1", "branch": "dev", "replace": False, "install_toolchain": False, "draft": None},
    )
    assert updated.version == "1.0.1"
    assert updated.git.branch == "dev"
    assert updated.git.replace is False
    assert updated.build.install_toolchain is False
    assert updated.github.draft is False
    assert config.version == "1.0.0"


def test_apply_overrides_unknown_key(tmp_path):
    with pytest.raises(ConfigError, match="Unknown config override"):
        apply_overrides(ReleaseConfig(version="1.0.0", project_root=tmp_path), {"colour": "blue"})


class TestLoadConfig:
    def test_without_file_uses_defaults(self, tmp_path):
        config = load_config(project_root=tmp_path, overrides={"version": "0.9.7"}, environ={})
        assert config.version == "0.9.7"
        assert config.project_root == tmp_path.resolve()

    def test_discovers_releaser_yaml(self, tmp_path):
        (tmp_path / "releaser.yaml").write_text("version: 0.9.6-b\nbinary: other\n")
        config = load_config(project_root=tmp_path, environ={})
        assert config.version == "0.9.6-b"
        assert config.binary_name == "other"

    def test_priority_cli_over_env_over_file(self, tmp_path):
        (tmp_path / "releaser.yaml").write_text("version: 1.0.0\ngit:\n  remote: upstream\n")
        environ = {"RELEASER_VERSION": "1.1.0", "RELEASER_REMOTE": "fork", "RELEASER_LOG_LEVEL": "debug"}

        from_env = load_config(project_root=tmp_path, environ=environ)
        assert from_env.version == "1.1.0"
        assert from_env.git.remote == "fork"
        assert from_env.log_level == "DEBUG"

        from_cli = load_config(project_root=tmp_path, environ=environ, overrides={"version": "1.2.0"})
        assert from_cli.version == "1.2.0"

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            load_config(tmp_path / "missing.yaml", project_root=tmp_path, environ={})

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "releaser.yaml"
        path.write_text("version: [unclosed\n")
        with pytest.raises(ConfigError, match="not valid YAML"):
            load_config(path, project_root=tmp_path, environ={})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "releaser.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, project_root=tmp_path, environ={})
