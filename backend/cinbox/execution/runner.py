"""
External command runner.

Design rules:
- One blocking subprocess per command
- Capture stdout + stderr (combined) for audit
- Log the full command line before, and exit code after execution
- The runner never interprets exit codes; callers map them to statuses
"""

import logging
import os
import shlex
import shutil
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .errors import CommandNotFoundError, EmptyCommandError
from .results import CommandResult

logger = logging.getLogger(__name__)


def command_program(command: str) -> str:
    """
    First token (the program) of a command line.

    Raises:
        EmptyCommandError: If the command line is empty
    """
    try:
        tokens = shlex.split(command)
    except ValueError:
        tokens = command.split()
    if not tokens:
        raise EmptyCommandError("Empty command line")
    return tokens[0]


def check_executable(command: str) -> str:
    """
    Make sure the program of ``command`` exists and is executable.

    Bare names are looked up on PATH.

    Returns:
        Absolute path of the program

    Raises:
        CommandNotFoundError: If the program cannot be executed
    """
    program = command_program(command)
    if os.sep in program:
        if os.path.isfile(program) and os.access(program, os.X_OK):
            return program
        raise CommandNotFoundError(program, command)

    found = shutil.which(program)
    if found is None:
        raise CommandNotFoundError(program, command)
    return found


class CommandRunner:
    """
    Runs shell command lines and keeps the last result.

    Attributes:
        last_result: CommandResult of the most recent execute() call
    """

    def __init__(self, cwd: Optional[Union[str, Path]] = None, timeout: Optional[float] = None):
        self.cwd = str(cwd) if cwd is not None else None
        self.timeout = timeout
        self.last_result: Optional[CommandResult] = None

    def execute(self, command: str) -> CommandResult:
        """
        Execute ``command`` through the shell and wait for it.

        Raises:
            EmptyCommandError: If command is empty
        """
        if not command or not command.strip():
            raise EmptyCommandError("Empty command line")

        logger.info(f"Executing: {command}")
        started_at = datetime.now()

        completed = subprocess.run(
            command,
            shell=True,
            cwd=self.cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            timeout=self.timeout,
        )

        result = CommandResult(
            command=command,
            exit_code=completed.returncode,
            output=(completed.stdout or "").splitlines(),
            started_at=started_at,
            completed_at=datetime.now(),
        )
        self.last_result = result

        if result.ok:
            logger.info(f"Command finished after {result.duration_seconds():.1f}s: {result.summary()}")
        else:
            logger.warning(f"Command failed with {result.summary()}")
            for line in result.output:
                logger.debug(f"  > {line}")

        return result
