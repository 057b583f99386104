"""Runners for the external command-line tools (az, kubectl, terraform)."""

import json
import subprocess
import time
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import structlog

from azure_tui.models import ActionResult


logger = structlog.get_logger()


class CommandError(Exception):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, output: str = ""):
        self.command = list(args)
        self.returncode = returncode
        self.output = output.strip()
        detail = self.output.splitlines()[-1] if self.output else f"exit status {returncode}"
        super().__init__(f"{self.command[0]} {' '.join(self.command[1:3])}: {detail}")


def time_left(deadline: float, command: Sequence[str]) -> float:
    """Seconds left before a ``time.monotonic()`` deadline.

    Raises:
        subprocess.TimeoutExpired: If the deadline has already passed.
    """
    left = deadline - time.monotonic()
    if left <= 0:
        raise subprocess.TimeoutExpired(list(command), 0)
    return left


class CliRunner:
    """Runs one executable with a timeout and captures its output."""

    def __init__(self, executable: str, cwd: Optional[Union[str, Path]] = None):
        self.executable = executable
        self.cwd = cwd

    def run(
        self,
        *args: str,
        timeout: float = 30.0,
        cwd: Optional[Union[str, Path]] = None,
    ) -> str:
        """Run the command and return stdout.

        Raises:
            CommandError: If the command exits with a non-zero status.
            subprocess.TimeoutExpired: If it runs longer than ``timeout``.
        """
        command = [self.executable, *args]
        logger.debug("command_started", command=" ".join(command))
        completed = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd or self.cwd,
        )
        if completed.returncode != 0:
            raise CommandError(command, completed.returncode, completed.stderr or completed.stdout)
        return completed.stdout

    def json(self, *args: str, timeout: float = 30.0) -> Any:
        """Run the command and parse stdout as JSON."""
        output = self.run(*args, timeout=timeout)
        if not output.strip():
            return []
        return json.loads(output)

    def action(
        self,
        *args: str,
        success: str,
        timeout: float = 30.0,
        cwd: Optional[Union[str, Path]] = None,
    ) -> ActionResult:
        """Run the command and wrap the outcome in an ActionResult."""
        try:
            output = self.run(*args, timeout=timeout, cwd=cwd)
        except CommandError as e:
            return ActionResult.failed(str(e), output=e.output)
        return ActionResult(success=True, message=success, output=output)


class AzureCli(CliRunner):
    """The ``az`` command line, always asking for JSON output."""

    def __init__(self, executable: str = "az"):
        super().__init__(executable)

    def json(self, *args: str, timeout: float = 30.0) -> Any:
        return super().json(*args, "--output", "json", timeout=timeout)
