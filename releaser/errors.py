"""
errors.py

Root of the releaser exception hierarchy. Each module raises its own subclass;
the CLI catches `ReleaserError` and turns it into exit code 1.
"""

from __future__ import annotations


class ReleaserError(RuntimeError):
    pass
