"""
shell.py

Responsibility: Run external commands (cargo, rustup, apt-get, git, ldd).

Every step aborts on the first failing command (`CommandError`), except the
small allow-list of clean-slate steps that go through `run_best_effort`.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from releaser.errors import ReleaserError

logger = logging.getLogger(__name__)


class CommandError(ReleaserError):
    def __init__(self, cmd: list[str], returncode: int, output: str) -> None:
        self.cmd = list(cmd)
        self.returncode = returncode
        self.output = output
        super().__init__(f"Command failed ({returncode}): {shlex.join(cmd)}\n\n{output}".rstrip())


class Runner:
    """Executes commands with combined stdout/stderr capture."""

    def _execute(self, cmd: list[str], cwd: Path | None, env: dict[str, str] | None) -> subprocess.CompletedProcess[str]:
        logger.debug("$ %s", shlex.join(cmd))
        try:
            return subprocess.run(
                cmd,
                cwd=str(cwd) if cwd is not None else None,
                env=env,
                check=False,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except FileNotFoundError as e:
            # Missing executable behaves like a shell's "command not found".
            return subprocess.CompletedProcess(cmd, 127, stdout=f"{cmd[0]}: {e.strerror}")

    def run(self, cmd: list[str], *, cwd: Path | None = None, env: dict[str, str] | None = None) -> str:
        """
        Run a command, raising a CommandError on failure. Returns the captured output.
        """
        proc = self._execute(cmd, cwd, env)
        if proc.returncode != 0:
            raise CommandError(cmd, proc.returncode, proc.stdout or "")
        return proc.stdout or ""

    def run_best_effort(
        self, cmd: list[str], *, cwd: Path | None = None, env: dict[str, str] | None = None
    ) -> str | None:
        """
        Run a command whose failure is acceptable (deleting something that may not exist).
        Returns the output, or None when the command failed.
        """
        proc = self._execute(cmd, cwd, env)
        if proc.returncode != 0:
            logger.warning("Ignoring failure of `%s`: %s", shlex.join(cmd), (proc.stdout or "").strip())
            return None
        return proc.stdout or ""

    def run_status(
        self, cmd: list[str], *, cwd: Path | None = None, env: dict[str, str] | None = None
    ) -> subprocess.CompletedProcess[str]:
        """Run a command whose exit status is the answer; never raises on failure."""
        return self._execute(cmd, cwd, env)


class DryRunRunner(Runner):
    """Logs commands instead of running them. Every command 'succeeds' with no output."""

    def __init__(self) -> None:
        self.commands: list[list[str]] = []

    def _execute(self, cmd: list[str], cwd: Path | None, env: dict[str, str] | None) -> subprocess.CompletedProcess[str]:
        self.commands.append(list(cmd))
        where = f" (in {cwd})" if cwd is not None else ""
        logger.info("[dry-run] %s%s", shlex.join(cmd), where)
        return subprocess.CompletedProcess(cmd, 0, stdout="")
