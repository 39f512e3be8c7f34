"""
release.py

Responsibility: The ordered release flow for one version.

1) Build (or reuse existing artifacts with `skip_build`)
2) Replace mode: delete the local and remote tag (best effort)
3) Remove stale release artifacts from version control (best effort)
4) Stage metadata + new artifacts, commit `Release <tag>` if anything changed
5) Annotated tag, push branch and tag
6) Replace mode: delete an existing GitHub release for the tag
7) Create the GitHub release and upload the artifacts

Replace mode makes a rerun with the same version converge on one tag and one
release. Without it a rerun fails at tagging.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Mapping

from releaser.artifacts import ArtifactError, ArtifactSet, artifact_basename
from releaser.build import run_build
from releaser.config import ReleaseConfig
from releaser.errors import ReleaserError
from releaser.git_ops import GitRepo, parse_github_remote, stale_artifacts
from releaser.github_client import GitHubClient, GitHubError
from releaser.notes import render_notes
from releaser.shell import DryRunRunner, Runner

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ReleaseConfig, str, str, str], GitHubClient]


@dataclass(frozen=True)
class ReleaseOptions:
    skip_build: bool = False
    skip_push: bool = False
    skip_github: bool = False
    github_token: str | None = None


@dataclass
class ReleaseOutcome:
    tag: str
    artifacts: ArtifactSet
    committed: bool = False
    pushed: bool = False
    release_url: str | None = None
    asset_urls: list[str] = field(default_factory=list)


def resolve_token(explicit: str | None, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    return explicit or env.get("GITHUB_TOKEN") or env.get("GH_TOKEN") or ""


def resolve_repository(config: ReleaseConfig, repo: GitRepo) -> tuple[str, str]:
    owner, name = config.github.owner, config.github.repo
    if owner and name:
        return owner, name
    remote_owner, remote_name = parse_github_remote(repo.remote_url(config.git.remote))
    return owner or remote_owner, name or remote_name


def default_client_factory(config: ReleaseConfig, token: str, owner: str, name: str) -> GitHubClient:
    return GitHubClient(
        token,
        owner,
        name,
        api_base=config.github.api_base,
        retries=config.github.retries,
        timeout=config.github.timeout,
    )


def _commit_artifacts(config: ReleaseConfig, repo: GitRepo, artifacts: ArtifactSet) -> bool:
    releases_dir = config.releases_dir.rstrip("/")
    current = artifact_basename(config.binary_name, config.version)

    stale = list(config.git.stale)
    stale += stale_artifacts(repo.tracked_files(releases_dir), binary=config.binary_name, current_basename=current)
    if stale:
        logger.info("Removing stale artifacts: %s", ", ".join(stale))
        repo.remove(*stale)

    metadata = []
    for path in config.metadata_paths():
        if (config.project_root / path).exists():
            metadata.append(path)
        else:
            logger.debug("Not staging missing path %s", path)
    repo.add(*metadata)
    repo.add(*(str(p.relative_to(config.project_root)) for p in artifacts.upload_order()))

    if not repo.has_staged_changes():
        logger.info("Nothing to commit for %s", config.tag)
        return False
    repo.commit(f"Release {config.tag}")
    return True


def _publish(config: ReleaseConfig, client: GitHubClient, artifacts: ArtifactSet, outcome: ReleaseOutcome) -> None:
    rendered = render_notes(config, artifacts)
    kwargs = {
        "tag": config.tag,
        "title": rendered.title,
        "notes": rendered.body,
        "draft": config.github.draft,
        "prerelease": config.github.prerelease,
    }
    logger.info("Creating GitHub release...")
    if config.git.replace:
        release = client.replace_release(**kwargs)
    else:
        release = client.create_release(**kwargs)
    outcome.release_url = release.html_url

    for path in artifacts.upload_order():
        outcome.asset_urls.append(client.upload_asset(release, path))


def run_release(
    config: ReleaseConfig,
    runner: Runner,
    options: ReleaseOptions | None = None,
    *,
    client_factory: ClientFactory = default_client_factory,
) -> ReleaseOutcome:
    options = options or ReleaseOptions()
    dry_run = isinstance(runner, DryRunRunner)
    tag = config.tag

    if options.skip_build:
        artifacts = ArtifactSet.for_version(config.releases_path, config.binary_name, config.version)
        missing = artifacts.missing()
        if missing and not dry_run:
            raise ArtifactError("Missing release artifacts (run without --skip-build): " + ", ".join(str(p) for p in missing))
    else:
        logger.info("Running build...")
        artifacts = run_build(config, runner).artifacts

    outcome = ReleaseOutcome(tag=tag, artifacts=artifacts)
    repo = GitRepo(config.project_root, runner)

    publish = not options.skip_push and not options.skip_github
    token = ""
    owner = name = ""
    if publish and not dry_run:
        # Fail before touching git state when the release cannot be published.
        token = resolve_token(options.github_token)
        if not token:
            raise GitHubError("GitHub token is required (use --github-token or set GITHUB_TOKEN)")
        owner, name = resolve_repository(config, repo)

    logger.info("Creating git tag %s...", tag)
    if config.git.replace:
        repo.delete_tag(tag)
        if not options.skip_push:
            repo.delete_remote_tag(config.git.remote, tag)

    outcome.committed = _commit_artifacts(config, repo, artifacts)
    repo.create_tag(tag, f"Release {tag}")

    if options.skip_push:
        logger.info("Skipping push (tag %s created locally)", tag)
        return outcome

    repo.push(config.git.remote, config.git.branch)
    repo.push(config.git.remote, tag)
    outcome.pushed = True

    if options.skip_github:
        logger.info("Skipping GitHub release for %s", tag)
        return outcome

    if dry_run:
        logger.info("[dry-run] would publish GitHub release %s with %d assets", tag, len(artifacts.upload_order()))
        return outcome

    try:
        _publish(config, client_factory(config, token, owner, name), artifacts, outcome)
    except ReleaserError:
        logger.error("Tag %s was pushed but the GitHub release was not completed", tag)
        raise

    logger.info("Release %s created successfully! %s", tag, outcome.release_url or "")
    return outcome
