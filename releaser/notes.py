"""
notes.py

Responsibility: Render the GitHub release title and notes.

Templates are Jinja2 strings rendered with StrictUndefined, so a typo in a
variable name fails the release instead of publishing blank notes.

Available variables: tag, version, binary, artifacts (filenames), checksums
(list of (digest, filename)).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from releaser.artifacts import ArtifactSet, read_checksums
from releaser.config import ReleaseConfig
from releaser.errors import ReleaserError


class NotesError(ReleaserError):
    pass


@dataclass(frozen=True)
class RenderedNotes:
    title: str
    body: str


_env = Environment(
    autoescape=False,
    undefined=StrictUndefined,
    keep_trailing_newline=True,
)


def render_text(template_text: str, context: dict[str, Any], *, label: str = "template") -> str:
    try:
        return _env.from_string(template_text).render(**context)
    except TemplateError as e:
        raise NotesError(f"Failed rendering release {label}: {e}") from e


def build_context(config: ReleaseConfig, artifacts: ArtifactSet) -> dict[str, object]:
    checksums: list[tuple[str, str]] = []
    if artifacts.checksums.is_file():
        checksums = [(e.digest, e.filename) for e in read_checksums(artifacts.checksums)]
    return {
        "tag": config.tag,
        "version": config.version,
        "binary": config.binary_name,
        "artifacts": [p.name for p in artifacts.upload_order()],
        "checksums": checksums,
    }


def render_notes(config: ReleaseConfig, artifacts: ArtifactSet) -> RenderedNotes:
    notes_template = config.github.notes
    if config.github.notes_file:
        path = Path(config.github.notes_file)
        if not path.is_absolute():
            path = config.project_root / path
        if not path.is_file():
            raise NotesError(f"Notes file not found: {path}")
        notes_template = path.read_text(encoding="utf-8")

    context = build_context(config, artifacts)
    title = render_text(config.github.title, context, label="title").strip()
    body = render_text(notes_template, context, label="notes")
    return RenderedNotes(title=title, body=body)
