from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from blockedit.logger import logger
from blockedit.models import AutofixResult, CheckResult
from blockedit.settings.models import CommandConfig

from .base import Autofixer, Checker

FILE_PLACEHOLDER = "{file}"


@dataclass
class CommandOutput:
    command: str
    exit_code: Optional[int]
    stdout: str = ""
    stderr: str = ""
    # Set when the command could not be run or timed out
    error: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.error is None and self.exit_code == 0


def run_command(
    config: CommandConfig, file_path: str, base_path: Path, timeout_s: float
) -> CommandOutput:
    """Run a configured shell command for file_path from the project root."""
    shell_command = config.command.replace(FILE_PLACEHOLDER, file_path)
    cwd = base_path / config.working_dir if config.working_dir else base_path
    logger.debug("running command", command=shell_command, cwd=str(cwd))
    try:
        result = subprocess.run(
            ["sh", "-c", shell_command],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired:
        return CommandOutput(
            command=config.command,
            exit_code=None,
            error=f"timed out after {timeout_s}s",
        )
    except OSError as e:
        return CommandOutput(command=config.command, exit_code=None, error=str(e))
    return CommandOutput(
        command=config.command,
        exit_code=result.returncode,
        stdout=result.stdout,
        stderr=result.stderr,
    )


class CommandChecker(Checker):
    """Runs every check command; the file passes only if all of them pass."""

    def __init__(
        self, commands: List[CommandConfig], base_path: Path, timeout_s: float = 120.0
    ):
        self._commands = commands
        self._base_path = base_path
        self._timeout_s = timeout_s

    def check(self, file_path: str) -> CheckResult:
        output = ""
        all_passed = True
        for config in self._commands:
            res = run_command(config, file_path, self._base_path, self._timeout_s)
            if res.error is not None:
                output += f"failed to run check command '{config.command}': {res.error}\n"
                all_passed = False
                continue
            output += f"check command: {config.command}\n"
            if res.passed:
                # Output of passing checks is left out.
                output += "check passed: true\n"
            else:
                output += "check passed: false\n"
                output += res.stdout + "\n" + res.stderr
                all_passed = False
        if not all_passed:
            logger.info("checks failed", file_path=file_path)
        return CheckResult(success=all_passed, message=output)


class CommandAutofixer(Autofixer):
    """Runs autofix commands; only failing commands contribute output."""

    def __init__(
        self, commands: List[CommandConfig], base_path: Path, timeout_s: float = 120.0
    ):
        self._commands = commands
        self._base_path = base_path
        self._timeout_s = timeout_s

    def run(self, file_path: str) -> AutofixResult:
        path = self._base_path / file_path
        before = path.read_bytes() if path.is_file() else None
        output = ""
        for config in self._commands:
            res = run_command(config, file_path, self._base_path, self._timeout_s)
            if res.error is not None:
                output += f"failed to run autofix command '{config.command}': {res.error}\n"
            elif not res.passed:
                output += f"autofix command: {config.command}\n"
                output += res.stdout + "\n" + res.stderr
        after = path.read_bytes() if path.is_file() else None
        return AutofixResult(changed=before != after, output=output)
