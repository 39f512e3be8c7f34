"""
git_ops.py

Responsibility: The git side of a release (stage, commit, tag, push).

Tag and stale-file deletion are best effort: they establish a clean slate and
are allowed to fail when there is nothing to delete.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from releaser.errors import ReleaserError
from releaser.shell import Runner

logger = logging.getLogger(__name__)

# https://github.com/owner/name(.git), git@github.com:owner/name(.git), ssh://git@github.com/owner/name(.git)
_REMOTE_RE = re.compile(
    r"^(?:https?://(?:[^@/]+@)?github\.com/|git@github\.com:|ssh://git@github\.com/)"
    r"(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$"
)


class GitError(ReleaserError):
    pass


def parse_github_remote(url: str) -> tuple[str, str]:
    """Return (owner, name) for a github.com remote URL."""
    m = _REMOTE_RE.match(url.strip())
    if not m:
        raise GitError(f"Not a GitHub remote URL: {url}")
    return m.group("owner"), m.group("name")


class GitRepo:
    def __init__(self, root: Path, runner: Runner) -> None:
        self.root = root
        self.runner = runner

    def _git(self, *args: str) -> str:
        return self.runner.run(["git", *args], cwd=self.root)

    def _git_best_effort(self, *args: str) -> str | None:
        return self.runner.run_best_effort(["git", *args], cwd=self.root)

    def add(self, *paths: str) -> None:
        if paths:
            self._git("add", "--", *paths)

    def remove(self, *paths: str) -> None:
        """`git rm -f`: drops the paths from the index and the working tree."""
        for path in paths:
            self._git_best_effort("rm", "-f", "--", path)

    def tracked_files(self, path: str) -> list[str]:
        out = self._git("ls-files", "--", path)
        return [line.strip() for line in out.splitlines() if line.strip()]

    def has_staged_changes(self) -> bool:
        proc = self.runner.run_status(["git", "diff", "--cached", "--quiet"], cwd=self.root)
        return proc.returncode != 0

    def commit(self, message: str) -> None:
        self._git("commit", "-m", message)

    def delete_tag(self, tag: str) -> None:
        self._git_best_effort("tag", "-d", tag)

    def delete_remote_tag(self, remote: str, tag: str) -> None:
        self._git_best_effort("push", remote, f":refs/tags/{tag}")

    def create_tag(self, tag: str, message: str) -> None:
        self._git("tag", "-a", tag, "-m", message)

    def push(self, remote: str, ref: str) -> None:
        self._git("push", remote, ref)

    def remote_url(self, remote: str) -> str:
        return self._git("remote", "get-url", remote).strip()


def stale_artifacts(tracked: list[str], *, binary: str, current_basename: str) -> list[str]:
    """
    Tracked release files for other versions of `binary`.

    Anything named `<binary>-*` that is not one of the current version's files is stale.
    """
    out: list[str] = []
    for path in tracked:
        name = Path(path).name
        if not name.startswith(f"{binary}-"):
            continue
        if name == current_basename or name.startswith(current_basename + "."):
            continue
        out.append(path)
    return out
