"""Execution port for configured commands.

The dispatcher only depends on :class:`CommandRunner`; the subprocess
implementation lives behind it so tests can substitute a recording fake.
"""

from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
import time
from abc import ABC, abstractmethod
from pathlib import Path

from hook_runner.config import Settings
from hook_runner.schemas.execution import CommandOutcome

logger = logging.getLogger(__name__)

# Upper bound on collecting output after a timed-out process group was killed
_DRAIN_TIMEOUT_SECONDS = 5.0


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class CommandRunner(ABC):
    """Runs a single command string and reports how it went."""

    @abstractmethod
    def run(self, command: str) -> CommandOutcome:
        """Run ``command`` to completion. Must not raise."""


class SubprocessCommandRunner(CommandRunner):
    """
    Runs commands as local subprocesses.

    Features:
    - Direct exec (``shlex`` split) by default, ``/bin/sh -c`` when ``shell``
    - stdout and stderr captured together
    - Optional timeout; on expiry the whole process group is killed
    """

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        shell: bool = False,
        cwd: str | Path | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.shell = shell
        self.cwd = str(cwd) if cwd else None

    @classmethod
    def from_settings(cls, settings: Settings) -> SubprocessCommandRunner:
        return cls(
            timeout_seconds=settings.command_timeout,
            shell=settings.command_shell,
            cwd=settings.command_working_dir,
        )

    def _argv(self, command: str) -> str | list[str]:
        if self.shell:
            return command
        argv = shlex.split(command)
        if not argv:
            raise ValueError("empty command")
        return argv

    def run(self, command: str) -> CommandOutcome:
        started = time.perf_counter()

        def _elapsed() -> float:
            return max(0.0, time.perf_counter() - started)

        try:
            argv = self._argv(command)
            process = subprocess.Popen(
                argv,
                shell=self.shell,
                cwd=self.cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        except (OSError, ValueError) as e:
            return CommandOutcome(
                command=command,
                status="launch_failed",
                error=str(e),
                duration_seconds=_elapsed(),
            )

        try:
            output, _ = process.communicate(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired:
            output = self._kill_and_drain(process)
            return CommandOutcome(
                command=command,
                status="timeout",
                exit_code=process.returncode,
                output=_decode(output),
                error=f"Command timed out after {self.timeout_seconds} seconds",
                duration_seconds=_elapsed(),
            )

        if process.returncode != 0:
            return CommandOutcome(
                command=command,
                status="non_zero_exit",
                exit_code=process.returncode,
                output=_decode(output),
                error=f"exit status {process.returncode}",
                duration_seconds=_elapsed(),
            )

        return CommandOutcome(
            command=command,
            status="success",
            exit_code=0,
            output=_decode(output),
            duration_seconds=_elapsed(),
        )

    def _kill_and_drain(self, process: subprocess.Popen) -> bytes | None:
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass

        try:
            output, _ = process.communicate(timeout=_DRAIN_TIMEOUT_SECONDS)
            return output
        except subprocess.TimeoutExpired as e:
            # A descendant left the group and still holds the pipe open
            logger.warning(
                "Output pipe still open after killing timed-out command",
                extra={"pid": process.pid},
            )
            if process.stdout:
                process.stdout.close()
            process.wait()
            return e.output

