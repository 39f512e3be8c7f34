"""
Pytest fixtures for releaser tests.

External commands go through `FakeRunner`, which records every invocation and
answers from a table of scripted results; GitHub responses are real
`requests.Response` objects built by `make_response`.
"""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from typing import Any

import pytest
import requests

from releaser.config import ReleaseConfig
from releaser.shell import Runner


class FakeRunner(Runner):
    """Records commands; returns scripted (returncode, output) by command prefix."""

    def __init__(self, results: dict[tuple[str, ...], tuple[int, str]] | None = None) -> None:
        self.results = dict(results or {})
        self.calls: list[tuple[list[str], Path | None, dict[str, str] | None]] = []

    @property
    def commands(self) -> list[list[str]]:
        return [cmd for cmd, _cwd, _env in self.calls]

    def _execute(self, cmd, cwd, env):
        self.calls.append((list(cmd), cwd, env))
        best: tuple[int, str] = (0, "")
        best_len = -1
        for prefix, result in self.results.items():
            if tuple(cmd[: len(prefix)]) == prefix and len(prefix) > best_len:
                best, best_len = result, len(prefix)
        return subprocess.CompletedProcess(cmd, best[0], stdout=best[1])


def make_response(status_code: int, payload: Any = None, text: str | None = None) -> requests.Response:
    r = requests.Response()
    r.status_code = status_code
    if payload is not None:
        r._content = json.dumps(payload).encode("utf-8")
    elif text is not None:
        r._content = text.encode("utf-8")
    else:
        r._content = b""
    return r


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def project(tmp_path):
    """A project root with the crate manifests the release commit stages."""
    crate = tmp_path / "clients" / "cli"
    crate.mkdir(parents=True)
    (crate / "Cargo.toml").write_text('[package]\nname = "nexus-network"\n')
    (crate / "Cargo.lock").write_text("# lock\n")
    return tmp_path


@pytest.fixture
def config(project):
    return ReleaseConfig(version="0.9.7", project_root=project)


@pytest.fixture
def built_binary(config):
    """A fake cargo output at the path run_build expects."""
    path = config.crate_path / "target" / config.build.target / "release" / config.binary_name
    path.parent.mkdir(parents=True)
    path.write_bytes(b"\x7fELF fake static binary\n" * 64)
    path.chmod(0o755)
    return path
