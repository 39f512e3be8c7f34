"""
build.py

Responsibility: Compile the client as a static musl binary and package it.

High-level flow (`run_build`):
1) Install the cross-compilation target and static-linking toolchain (optional)
2) `cargo build --release --features ... --target ...` with static CRT RUSTFLAGS
3) Package the binary into the releases directory (see `artifacts.py`)
4) Report whether the packaged binary is static
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from releaser import artifacts
from releaser.artifacts import ArtifactSet, StaticCheck
from releaser.config import ReleaseConfig
from releaser.shell import DryRunRunner, Runner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildResult:
    artifacts: ArtifactSet
    static_check: StaticCheck | None


def install_toolchain(config: ReleaseConfig, runner: Runner) -> None:
    build = config.build
    runner.run(["rustup", "target", "add", build.target])
    if build.apt_packages:
        runner.run(["apt-get", "update"])
        runner.run(["apt-get", "install", "-y", *build.apt_packages])


def cargo_command(config: ReleaseConfig) -> list[str]:
    cmd = ["cargo", "build", "--release"]
    if config.build.features:
        cmd += ["--features", ",".join(config.build.features)]
    cmd += ["--target", config.build.target]
    return cmd


def built_binary_path(config: ReleaseConfig) -> Path:
    return config.crate_path / "target" / config.build.target / "release" / config.binary_name


def compile_binary(config: ReleaseConfig, runner: Runner, *, base_env: dict[str, str] | None = None) -> Path:
    env = dict(os.environ if base_env is None else base_env)
    env["RUSTFLAGS"] = config.build.rustflags
    logger.info("Building static binary...")
    runner.run(cargo_command(config), cwd=config.crate_path, env=env)
    return built_binary_path(config)


def run_build(config: ReleaseConfig, runner: Runner) -> BuildResult:
    if config.build.install_toolchain:
        install_toolchain(config, runner)
    else:
        logger.info("Skipping toolchain installation")

    binary = compile_binary(config, runner)

    if isinstance(runner, DryRunRunner):
        logger.info("[dry-run] would package %s into %s", binary, config.releases_path)
        return BuildResult(
            artifacts=ArtifactSet.for_version(config.releases_path, config.binary_name, config.version),
            static_check=None,
        )

    result = artifacts.package(binary, config.releases_path, config.binary_name, config.version)
    logger.info("Build complete! Artifacts are in %s", config.releases_path)

    logger.info("Verifying static binary...")
    check = artifacts.check_static(result.binary, runner)
    if not check.verified:
        logger.warning("Could not verify static linkage: %s", check.detail)
    elif check.is_static:
        logger.info("Binary is static")
    else:
        logger.warning("Binary links shared libraries:\n%s", check.detail)
    return BuildResult(artifacts=result, static_check=check)
