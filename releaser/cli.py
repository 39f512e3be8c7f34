"""
cli.py

Responsibility: CLI entrypoint for releaser.

Commands:
- `build`:     toolchain -> cargo build -> artifacts + checksums -> static check
- `release`:   build -> git tag/commit/push -> GitHub release + asset upload
- `checksums`: regenerate `checksums-static.txt` for existing artifacts
- `verify`:    check artifacts against `checksums-static.txt`

This module parses arguments and configures logging; the work happens in
`build.py`, `release.py` and `artifacts.py`.
"""

from __future__ import annotations

import argparse
import logging

from rich.console import Console
from rich.logging import RichHandler

from releaser import __version__
from releaser.artifacts import (
    CHECKSUM_FILENAME,
    ArtifactSet,
    artifact_basename,
    compute_checksums,
    verify_checksums,
    write_checksums,
)
from releaser.build import run_build
from releaser.config import ReleaseConfig, load_config
from releaser.errors import ReleaserError
from releaser.release import ReleaseOptions, run_release
from releaser.shell import DryRunRunner, Runner

logger = logging.getLogger("releaser")

console = Console(stderr=True)


def setup_logging(level: str) -> None:
    """Configure logging with rich handler."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load(args: argparse.Namespace, **overrides: object) -> ReleaseConfig:
    return load_config(
        args.config,
        project_root=args.project_root,
        overrides={"version": args.release_version, "binary_name": args.binary, **overrides},
    )


def _runner(args: argparse.Namespace) -> Runner:
    return DryRunRunner() if args.dry_run else Runner()


def build_cmd(args: argparse.Namespace, config: ReleaseConfig) -> int:
    result = run_build(config, _runner(args))
    for path in result.artifacts.upload_order():
        logger.info("  %s", path)
    return 0


def release_cmd(args: argparse.Namespace, config: ReleaseConfig) -> int:
    options = ReleaseOptions(
        skip_build=bool(args.skip_build),
        skip_push=bool(args.skip_push),
        skip_github=bool(args.skip_github),
        github_token=args.github_token,
    )
    outcome = run_release(config, _runner(args), options)
    if outcome.release_url:
        console.print(outcome.release_url)
    return 0


def checksums_cmd(args: argparse.Namespace, config: ReleaseConfig) -> int:
    basename = artifact_basename(config.binary_name, config.version)
    if args.dry_run:
        entries = compute_checksums(config.releases_path, basename)
        logger.info("[dry-run] would write %s", config.releases_path / CHECKSUM_FILENAME)
    else:
        entries = write_checksums(config.releases_path, basename)
    for entry in entries:
        logger.info("%s  %s", entry.digest, entry.filename)
    return 0


def verify_cmd(args: argparse.Namespace, config: ReleaseConfig) -> int:
    artifacts = ArtifactSet.for_version(config.releases_path, config.binary_name, config.version)
    bad = verify_checksums(artifacts.checksums)
    if bad:
        logger.error("Checksum verification failed for: %s", ", ".join(bad))
        return 1
    logger.info("All checksums match")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="Path to releaser.yaml (default: search the project root)")
    common.add_argument("--project-root", default=".", help="Repository root (default: current directory)")
    common.add_argument("-r", "--release-version", dest="release_version", default=None, help="Release version, e.g. 0.9.7")
    common.add_argument("--binary", default=None, help="Binary name (overrides config `binary`)")
    common.add_argument("--dry-run", action="store_true", help="Log commands and API calls instead of running them")
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    p = argparse.ArgumentParser(prog="releaser", description="Build a static binary and publish it as a GitHub release")
    p.add_argument("--version", action="version", version=f"releaser {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    b = sub.add_parser("build", parents=[common], help="Build the static binary and release artifacts")
    b.add_argument("--skip-toolchain", action="store_true", help="Do not run rustup/apt-get")
    b.set_defaults(func=build_cmd)

    r = sub.add_parser("release", parents=[common], help="Build, tag, push and publish a GitHub release")
    r.add_argument("--skip-toolchain", action="store_true", help="Do not run rustup/apt-get")
    r.add_argument("--skip-build", action="store_true", help="Reuse artifacts already in the releases directory")
    r.add_argument("--skip-push", action="store_true", help="Commit and tag locally only")
    r.add_argument("--skip-github", action="store_true", help="Push but do not create a GitHub release")
    r.add_argument(
        "--no-replace",
        dest="replace",
        action="store_false",
        default=None,
        help="Do not delete an existing tag/release for this version first",
    )
    r.add_argument("--prerelease", action="store_true", default=None, help="Mark the GitHub release as a prerelease")
    r.add_argument("--draft", action="store_true", default=None, help="Create the GitHub release as a draft")
    r.add_argument("--github-token", default=None, help="GitHub token (or set env GITHUB_TOKEN)")
    r.add_argument("--remote", default=None, help="Git remote (overrides config git.remote)")
    r.add_argument("--branch", default=None, help="Branch to push (overrides config git.branch)")
    r.set_defaults(func=release_cmd)

    c = sub.add_parser("checksums", parents=[common], help="Regenerate checksums-static.txt")
    c.set_defaults(func=checksums_cmd)

    v = sub.add_parser("verify", parents=[common], help="Verify artifacts against checksums-static.txt")
    v.set_defaults(func=verify_cmd)

    return p


def _overrides(args: argparse.Namespace) -> dict[str, object]:
    out: dict[str, object] = {}
    if getattr(args, "skip_toolchain", False):
        out["install_toolchain"] = False
    for key in ("replace", "prerelease", "draft", "remote", "branch"):
        value = getattr(args, key, None)
        if value is not None:
            out[key] = value
    return out


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "INFO")
    try:
        config = _load(args, **_overrides(args))
        if not args.verbose:
            setup_logging(config.log_level)
        return int(args.func(args, config))
    except ReleaserError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
