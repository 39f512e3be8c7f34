"""
Tests for release title / notes rendering.
"""

from __future__ import annotations

import dataclasses

import pytest

from releaser.artifacts import ArtifactSet
from releaser.notes import NotesError, render_notes, render_text


def _with_github(config, **changes):
    return dataclasses.replace(config, github=dataclasses.replace(config.github, **changes))


def test_default_title_and_notes(config):
    artifacts = ArtifactSet.for_version(config.releases_path, config.binary_name, config.version)
    rendered = render_notes(config, artifacts)
    assert rendered.title == "Release v0.9.7"
    assert rendered.body == "Release v0.9.7"


def test_notes_list_checksums(config):
    config.releases_path.mkdir()
    artifacts = ArtifactSet.for_version(config.releases_path, config.binary_name, config.version)
    artifacts.checksums.write_text(f"{'b' * 64}  {artifacts.binary.name}\n")
    config = _with_github(
        config,
        notes="{% for digest, name in checksums %}{{ name }}={{ digest[:8] }}\n{% endfor %}",
    )
    assert render_notes(config, artifacts).body == f"{artifacts.binary.name}=bbbbbbbb\n"


def test_notes_file_relative_to_project(config):
    (config.project_root / "NOTES.md").write_text("{{ binary }} {{ version }}: {{ artifacts | join(', ') }}\n")
    config = _with_github(config, notes_file="NOTES.md")
    artifacts = ArtifactSet.for_version(config.releases_path, config.binary_name, config.version)
    body = render_notes(config, artifacts).body
    assert body.startswith("nexus-network 0.9.7: nexus-network-0.9.7-linux-x86_64-static, ")
    assert body.endswith("checksums-static.txt\n")


def test_missing_notes_file(config):
    config = _with_github(config, notes_file="missing.md")
    artifacts = ArtifactSet.for_version(config.releases_path, config.binary_name, config.version)
    with pytest.raises(NotesError, match="Notes file not found"):
        render_notes(config, artifacts)


def test_undefined_variable_fails():
    with pytest.raises(NotesError, match="title"):
        render_text("Release {{ tga }}", {"tag": "v1"}, label="title")


def test_syntax_error_fails():
    with pytest.raises(NotesError):
        render_text("{% for x in %}", {})
