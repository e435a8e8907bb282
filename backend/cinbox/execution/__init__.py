"""
Execution — external command runner.

Public API:
    CommandRunner — Blocking shell command execution with audit logging
    CommandResult — Command line, output lines, exit code, timestamps
    check_executable — Verify the program of a command line
"""

from .errors import ExecError, CommandNotFoundError, EmptyCommandError
from .results import CommandResult
from .runner import CommandRunner, check_executable, command_program

__all__ = [
    "ExecError",
    "CommandNotFoundError",
    "EmptyCommandError",
    "CommandResult",
    "CommandRunner",
    "check_executable",
    "command_program",
]
