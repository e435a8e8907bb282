"""
Task status state machine.

Statuses are ordered by severity. A task's status is monotonic: a later
set_status() only wins if its severity is greater than or equal to the
current one.

    DONE < SKIPPED < PBC < PBCT < WAIT < ERROR < CONFIG_ERROR

Pipeline reaction:
    DONE, SKIPPED    continue
    PBC              tally, continue
    PBCT             tally, skip remaining folders of this task
    WAIT             abort task list, item goes back to TODO
    ERROR, CONFIG_ERROR  tally, abort task list
"""

from enum import IntEnum
from typing import Dict, FrozenSet


class TaskStatus(IntEnum):
    """
    Task status, ordered by severity.

    PBC  = "problem but continue"
    PBCT = "problem but continue with next task"
    """

    UNDEFINED = 0
    RUNNING = 1
    DONE = 2
    SKIPPED = 3
    PBC = 4
    PBCT = 5
    WAIT = 6
    ERROR = 7
    CONFIG_ERROR = 8


FATAL_STATUSES: FrozenSet[TaskStatus] = frozenset({
    TaskStatus.ERROR,
    TaskStatus.CONFIG_ERROR,
})

PROBLEM_STATUSES: FrozenSet[TaskStatus] = frozenset({
    TaskStatus.PBC,
    TaskStatus.PBCT,
})

SUCCESS_STATUSES: FrozenSet[TaskStatus] = frozenset({
    TaskStatus.DONE,
    TaskStatus.SKIPPED,
})


def is_fatal(status: TaskStatus) -> bool:
    return status in FATAL_STATUSES


def aborts_pipeline(status: TaskStatus) -> bool:
    """True if the item's task list must stop after this status."""
    return status == TaskStatus.WAIT or status in FATAL_STATUSES


# ============================================================================
# EXTERNAL COMMAND EXIT-CODE CONTRACT
# ============================================================================
# Pre/post processors and bucket scripts report through their exit code.
# Any non-zero code that is not listed here is fatal.
# ============================================================================
EXIT_CODE_STATUS: Dict[int, TaskStatus] = {
    0: TaskStatus.DONE,
    5: TaskStatus.WAIT,
    6: TaskStatus.PBCT,
    7: TaskStatus.PBC,
    10: TaskStatus.ERROR,
    11: TaskStatus.CONFIG_ERROR,
    15: TaskStatus.SKIPPED,
}


def status_for_exit_code(exit_code: int) -> TaskStatus:
    """Map an external command's exit code to a task status."""
    return EXIT_CODE_STATUS.get(exit_code, TaskStatus.ERROR)
