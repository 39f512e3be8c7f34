"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints (releases, release assets)
- Sends HTTP requests to api.github.com / uploads.github.com
- Interprets GitHub API responses / error payloads

Everything else (building, git commands, CLI behavior) should use this client.
"""

from __future__ import annotations

import logging
import mimetypes
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import requests

from releaser import __version__
from releaser.errors import ReleaserError

logger = logging.getLogger(__name__)

_PAGE_SIZE = 100

_CONTENT_TYPES = {
    ".gz": "application/gzip",
    ".zip": "application/zip",
    ".txt": "text/plain",
}


class GitHubError(ReleaserError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ReleaseInfo:
    id: int
    tag_name: str
    name: str
    html_url: str
    upload_url: str
    draft: bool = False

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> ReleaseInfo:
        return cls(
            id=int(data["id"]),
            tag_name=str(data.get("tag_name") or ""),
            name=str(data.get("name") or ""),
            html_url=str(data.get("html_url") or ""),
            # e.g. https://uploads.github.com/repos/o/r/releases/1/assets{?name,label}
            upload_url=str(data.get("upload_url") or "").split("{", 1)[0],
            draft=bool(data.get("draft", False)),
        )


def content_type_for(path: Path) -> str:
    ctype = _CONTENT_TYPES.get(path.suffix)
    if ctype:
        return ctype
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or "application/octet-stream"


class GitHubClient:
    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        *,
        api_base: str = "https://api.github.com",
        retries: int = 3,
        timeout: int = 30,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not token.strip():
            raise GitHubError("GitHub token is required.")
        self.owner = owner
        self.repo = repo
        self._api_base = api_base.rstrip("/")
        self._retries = max(1, retries)
        self._timeout = timeout
        self._sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": f"releaser/{__version__}",
            }
        )

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Send with exponential backoff on connection errors, timeouts and 5xx."""
        last_error = ""
        for attempt in range(1, self._retries + 1):
            try:
                r = self.session.request(method, url, timeout=self._timeout, **kwargs)
                if r.status_code < 500:
                    return r
                last_error = f"HTTP {r.status_code}: {r.text[:200]}"
            except requests.exceptions.Timeout:
                last_error = "Request timed out"
            except requests.exceptions.ConnectionError as e:
                last_error = f"Connection error: {e}"

            logger.warning("GitHub %s attempt %d/%d failed: %s", method, attempt, self._retries, last_error)
            if attempt < self._retries:
                backoff = min(2**attempt, 30)
                logger.debug("Retrying in %d seconds...", backoff)
                self._sleep(backoff)

        raise GitHubError(f"GitHub API {method} {url} failed after {self._retries} attempts: {last_error}")

    def _request(self, method: str, path_or_url: str, **kwargs: Any) -> Any:
        url = path_or_url if "://" in path_or_url else f"{self._api_base}{path_or_url}"
        r = self._send(method, url, **kwargs)
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            message = payload.get("message", payload) if isinstance(payload, dict) else payload
            raise GitHubError(f"GitHub API error {r.status_code} {method} {path_or_url}: {message}", r.status_code)
        if r.status_code == 204 or not r.content:
            return None
        return r.json()

    def get_release_by_tag(self, tag: str) -> ReleaseInfo | None:
        """
        Return ReleaseInfo if a release exists for the tag; otherwise None.

        The tags endpoint only sees published releases. A published release whose
        tag was deleted becomes a draft, so a 404 falls back to the release list.
        """
        try:
            data = self._request("GET", f"{self._repo_path}/releases/tags/{tag}")
        except GitHubError as e:
            if e.status_code != 404:
                raise
            return self._find_release_in_list(tag)
        return ReleaseInfo.from_payload(data)

    def _find_release_in_list(self, tag: str) -> ReleaseInfo | None:
        page = 1
        while True:
            items = self._request(
                "GET",
                f"{self._repo_path}/releases",
                params={"per_page": _PAGE_SIZE, "page": page},
            ) or []
            for item in items:
                if item.get("tag_name") == tag:
                    logger.debug("Found release %s for %s (draft=%s)", item.get("id"), tag, item.get("draft"))
                    return ReleaseInfo.from_payload(item)
            if len(items) < _PAGE_SIZE:
                return None
            page += 1

    def delete_release(self, release_id: int) -> None:
        self._request("DELETE", f"{self._repo_path}/releases/{release_id}")

    def create_release(
        self,
        *,
        tag: str,
        title: str,
        notes: str,
        draft: bool = False,
        prerelease: bool = False,
    ) -> ReleaseInfo:
        body = {
            "tag_name": tag,
            "name": title,
            "body": notes,
            "draft": draft,
            "prerelease": prerelease,
        }
        data = self._request("POST", f"{self._repo_path}/releases", json=body)
        return ReleaseInfo.from_payload(data)

    def replace_release(self, *, tag: str, title: str, notes: str, draft: bool = False, prerelease: bool = False) -> ReleaseInfo:
        """Delete any release already attached to `tag`, then create a fresh one."""
        existing = self.get_release_by_tag(tag)
        if existing is not None:
            logger.info("Deleting existing release %s for %s", existing.id, tag)
            try:
                self.delete_release(existing.id)
            except GitHubError as e:
                # Already gone is the state we wanted.
                if e.status_code != 404:
                    raise
        return self.create_release(tag=tag, title=title, notes=notes, draft=draft, prerelease=prerelease)

    def upload_asset(self, release: ReleaseInfo, path: Path, content_type: str | None = None) -> str:
        """Upload one file as a release asset. Returns the asset's download URL."""
        if not release.upload_url:
            raise GitHubError(f"Release {release.id} has no upload URL")
        data = path.read_bytes()
        headers = {"Content-Type": content_type or content_type_for(path)}
        payload = self._request(
            "POST",
            release.upload_url,
            params={"name": path.name},
            data=data,
            headers=headers,
        )
        logger.info("Uploaded %s (%d bytes)", path.name, len(data))
        return str((payload or {}).get("browser_download_url") or "")
