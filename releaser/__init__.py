"""
releaser package

This package builds a static client binary and publishes it as a GitHub release.

Key responsibilities are split across modules:
- `config.py`: load `releaser.yaml` into a typed, validated configuration
- `shell.py`: subprocess execution with abort-on-failure and best-effort variants
- `build.py`: toolchain setup and the static cargo build
- `artifacts.py`: release artifact naming, archives, sha256 checksum files
- `git_ops.py`: git staging, commits, tags and pushes
- `github_client.py`: isolated GitHub REST API interactions (releases / assets)
- `notes.py`: Jinja2 rendering of release titles and notes
- `release.py`: the ordered release flow (build -> git -> GitHub)
- `cli.py`: CLI entrypoint
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
