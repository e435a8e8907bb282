"""
External command error hierarchy.
"""


class ExecError(Exception):
    """Base exception for external command failures."""

    pass


class CommandNotFoundError(ExecError):
    """Program of a command line does not exist or is not executable."""

    def __init__(self, program: str, command: str):
        self.program = program
        self.command = command
        super().__init__(f"Program not found or not executable: '{program}' (command: {command})")


class EmptyCommandError(ExecError):
    """Command line is empty after placeholder resolution."""

    pass
