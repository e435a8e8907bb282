"""
Task error hierarchy.

Task problems during a run are expressed as TaskStatus values, not
exceptions. These errors cover registry and pipeline misuse.
"""


class TaskError(Exception):
    """Base exception for task failures."""

    pass


class UnknownTaskError(TaskError):
    """Task name is not in the task registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown task: '{name}'")


class DuplicateTaskError(TaskError):
    """Task name is already registered."""

    pass
