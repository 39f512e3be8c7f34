"""
Tests for the command runner: abort-on-failure, best-effort and dry-run modes.
"""

from __future__ import annotations

import logging
import sys

import pytest

from releaser.shell import CommandError, DryRunRunner, Runner


def test_run_returns_output(tmp_path):
    out = Runner().run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)
    assert out.strip() == "hello"


def test_run_raises_with_combined_output():
    cmd = [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"]
    with pytest.raises(CommandError) as excinfo:
        Runner().run(cmd)
    err = excinfo.value
    assert err.returncode == 3
    assert "out" in err.output and "err" in err.output
    assert "Command failed (3)" in str(err)


def test_missing_executable_is_a_command_error():
    with pytest.raises(CommandError) as excinfo:
        Runner().run(["definitely-not-a-real-binary-xyz"])
    assert excinfo.value.returncode == 127


def test_run_best_effort_swallows_failure(caplog):
    with caplog.at_level(logging.WARNING, logger="releaser.shell"):
        result = Runner().run_best_effort([sys.executable, "-c", "import sys; sys.exit(1)"])
    assert result is None
    assert "Ignoring failure" in caplog.text


def test_run_status_reports_exit_status():
    proc = Runner().run_status([sys.executable, "-c", "import sys; sys.exit(1)"])
    assert proc.returncode == 1


def test_dry_run_records_without_executing(tmp_path, caplog):
    marker = tmp_path / "marker"
    runner = DryRunRunner()
    with caplog.at_level(logging.INFO, logger="releaser.shell"):
        out = runner.run(["touch", str(marker)], cwd=tmp_path)
    assert out == ""
    assert not marker.exists()
    assert runner.commands == [["touch", str(marker)]]
    assert "[dry-run] touch" in caplog.text
