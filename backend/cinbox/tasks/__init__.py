"""
Tasks — pipeline steps applied to the folders of an item.

Public API:
    Task — Base class (init -> run -> finalize)
    TaskStatus — Severity-ordered task status
    TaskRegistry — Closed name -> Task class table
    TaskPipeline — Runs an item's task list and tallies the outcome
"""

from .errors import TaskError, UnknownTaskError, DuplicateTaskError
from .status import (
    TaskStatus,
    FATAL_STATUSES,
    PROBLEM_STATUSES,
    SUCCESS_STATUSES,
    EXIT_CODE_STATUS,
    is_fatal,
    aborts_pipeline,
    status_for_exit_code,
)
from .base import (
    Task,
    TaskKind,
    MEM_TARGET_FOLDERS,
    MEM_TARGET_FOLDER_STAGES,
    MEM_COPY_SKIPPED,
    MEM_VALIDATION_FAILED,
)
from .registry import TaskRegistry, get_task_registry, DEFAULT_TASKLIST
from .pipeline import TaskPipeline, PipelineResult, TaskRecord

__all__ = [
    # Errors
    "TaskError",
    "UnknownTaskError",
    "DuplicateTaskError",
    # Status
    "TaskStatus",
    "FATAL_STATUSES",
    "PROBLEM_STATUSES",
    "SUCCESS_STATUSES",
    "EXIT_CODE_STATUS",
    "is_fatal",
    "aborts_pipeline",
    "status_for_exit_code",
    # Base
    "Task",
    "TaskKind",
    "MEM_TARGET_FOLDERS",
    "MEM_TARGET_FOLDER_STAGES",
    "MEM_COPY_SKIPPED",
    "MEM_VALIDATION_FAILED",
    # Registry
    "TaskRegistry",
    "get_task_registry",
    "DEFAULT_TASKLIST",
    # Pipeline
    "TaskPipeline",
    "PipelineResult",
    "TaskRecord",
]
