"""PowerShell command execution for the inventory and platform cmdlets."""

from __future__ import annotations

import json
import subprocess
from typing import Any, Sequence

from osimage_promoter.exceptions import PlatformCommandError
from osimage_promoter.logging import get_logger

log = get_logger(source="powershell")


def quote(value: object) -> str:
    """Quote a value as a PowerShell single-quoted string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def run_checked_command(command: Sequence[str], operation: str) -> str:
    """Run a command and raise PlatformCommandError if it fails."""
    log.debug(f"Running command: {' '.join(command[:-1])} <script>")
    try:
        result = subprocess.run(
            list(command),
            text=True,
            capture_output=True,
        )
    except OSError as exc:
        raise PlatformCommandError(operation, str(exc)) from exc
    if result.returncode != 0:
        stderr = result.stderr.strip()
        stdout = result.stdout.strip()
        message = stderr or stdout or f"exit code {result.returncode}"
        # PowerShell error records span several lines; keep the log one line per event
        raise PlatformCommandError(operation, " ".join(message.split()))
    return result.stdout


def parse_json_records(output: str, operation: str) -> list[dict[str, Any]]:
    """Parse ConvertTo-Json output, which is a bare object for a single result."""
    text = output.strip()
    if not text:
        return []
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PlatformCommandError(operation, f"Expected JSON output: {exc}") from exc
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    raise PlatformCommandError(operation, f"Unexpected JSON output: {text[:200]}")


class PowerShell:
    """Runs scripts in a fresh, non-interactive PowerShell process.

    Every call starts a new process, so scripts must import the modules they
    use themselves.
    """

    def __init__(self, executable: str = "powershell.exe"):
        self.executable = executable

    def _command(self, script: str) -> list[str]:
        body = f"$ErrorActionPreference = 'Stop'; {script}"
        return [
            self.executable,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            body,
        ]

    def run(self, script: str, operation: str) -> str:
        return run_checked_command(self._command(script), operation)

    def run_json(self, script: str, operation: str) -> list[dict[str, Any]]:
        output = self.run(f"{script} | ConvertTo-Json -Depth 4 -Compress", operation)
        return parse_json_records(output, operation)
