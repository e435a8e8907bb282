"""
External command result model.

Every command execution is recorded with its full command line, output
and exit code, so a failure can be diagnosed from the logs alone.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CommandResult(BaseModel):
    """Outcome of one external command."""

    model_config = ConfigDict(extra="forbid")

    command: str
    """Full command line as executed."""

    exit_code: int
    """Process exit code (127 if the shell could not find the program)."""

    output: List[str] = Field(default_factory=list)
    """Combined stdout/stderr, one entry per line."""

    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def first_line(self) -> str:
        """First non-empty output line, or empty string."""
        for line in self.output:
            if line.strip():
                return line.strip()
        return ""

    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def summary(self) -> str:
        return f"exit code {self.exit_code}: {self.command}"
