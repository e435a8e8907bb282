"""
Task pipeline: run an item's task list over its folder tree.

Task types are applied strictly in configured order. A per-folder task
visits every subfolder depth-first, alphabetically. Recursive and
once-per-item tasks run once, at the item root.

Design rules:
- The pipeline never raises for task problems; it tallies statuses
- WAIT and fatal statuses abort the remaining task list
- PBCT ends the current task's folder loop, then the next task runs
- The subfolder map is refreshed before every task
"""

import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..folders import Folder
from .base import TaskKind
from .registry import TaskRegistry, get_task_registry
from .status import TaskStatus, aborts_pipeline, is_fatal

if TYPE_CHECKING:
    from ..items.context import ItemContext

logger = logging.getLogger(__name__)


class TaskRecord(BaseModel):
    """Outcome of one (task, folder) execution."""

    model_config = ConfigDict(extra="forbid")

    task: str
    folder: str
    status: str


class PipelineResult(BaseModel):
    """Tallies of one item run."""

    model_config = ConfigDict(extra="forbid")

    tasks_total: int = 0
    tasks_done: int = 0
    errors_fatal: int = 0
    errors_problem: int = 0
    try_again: bool = False
    aborted_at: Optional[str] = None
    failed_tasks: List[str] = Field(default_factory=list)
    records: List[TaskRecord] = Field(default_factory=list)

    @property
    def error_count(self) -> int:
        return self.errors_fatal + self.errors_problem

    @property
    def success(self) -> bool:
        return self.error_count == 0


class TaskPipeline:
    """
    Runs a list of task names against one item.

    Args:
        context: Per-item run context
        task_names: Ordered task list
        refresh_subfolders: Returns the current {sub_dir: Folder} map;
            called before every task so that structure changes are seen
        registry: Task registry (defaults to the global one)
    """

    def __init__(
        self,
        context: "ItemContext",
        task_names: List[str],
        refresh_subfolders: Optional[Callable[[], Dict[str, Folder]]] = None,
        registry: Optional[TaskRegistry] = None,
    ):
        self.context = context
        self.task_names = list(task_names)
        self.refresh_subfolders = refresh_subfolders or context.subfolders
        self.registry = registry or get_task_registry()

    def run(self) -> PipelineResult:
        item_id = self.context.item_id
        result = PipelineResult(tasks_total=len(self.task_names))

        for index, task_name in enumerate(self.task_names, start=1):
            task_class = self.registry.get_task_or_raise(task_name)
            subfolders = self.refresh_subfolders()

            logger.info("=" * 60)
            logger.info(f"Executing task #{index}: '{task_name}'...")
            logger.info("=" * 60)

            task_fatal = 0
            task_problems = 0
            abort_after_task = False

            for sub_dir, folder in subfolders.items():
                if task_class.kind == TaskKind.RECURSIVE:
                    task = task_class(folder, self.context, subfolders)
                else:
                    task = task_class(folder, self.context)

                status = task.execute()
                result.records.append(TaskRecord(task=task_name, folder=sub_dir, status=status.name))

                if is_fatal(status):
                    logger.error(f"({item_id}): {status.name} in task '{task_name}'. Aborting task list")
                    task_fatal += 1
                elif status == TaskStatus.WAIT:
                    logger.info(f"({item_id}): Task '{task_name}' triggered item to wait. Resetting item.")
                    result.try_again = True
                elif status == TaskStatus.PBCT:
                    logger.warning(
                        f"({item_id}): Issue found in task '{task_name}' on '{sub_dir}'. "
                        "Continuing with next task."
                    )
                    task_problems += 1
                    break
                elif status == TaskStatus.PBC:
                    logger.warning(
                        f"({item_id}): Issue found in task '{task_name}' on '{sub_dir}'. "
                        "Processing may still proceed..."
                    )
                    task_problems += 1
                elif status == TaskStatus.SKIPPED:
                    logger.info(f"({item_id}): Task '{task_name}' skipped for '{sub_dir}'.")
                elif status == TaskStatus.DONE:
                    logger.debug(f"({item_id}): Task '{task_name}' okay for '{sub_dir}'.")
                else:
                    logger.error(f"({item_id}): Task '{task_name}': Invalid task status '{status!r}'.")
                    task_fatal += 1
                    abort_after_task = True
                    break

                if aborts_pipeline(status):
                    abort_after_task = True
                    break

                if task_class.kind != TaskKind.PER_FOLDER:
                    logger.info(f"Task '{task_name}' is {task_class.kind.value}. Applied only to '{sub_dir}'.")
                    break

            if task_fatal + task_problems == 0:
                if not result.try_again:
                    logger.info(f"({item_id}): Task '{task_name}' ran successfully.")
                    result.tasks_done += 1
            else:
                result.failed_tasks.append(task_name)
                logger.error(f"({item_id}): Task '{task_name}' ran with {task_fatal + task_problems} errors.")

            result.errors_fatal += task_fatal
            result.errors_problem += task_problems

            if abort_after_task:
                result.aborted_at = task_name
                break

        if result.success:
            logger.info(
                f"Item '{item_id}': {result.tasks_done}/{result.tasks_total} task(s) processed successfully!"
            )
        else:
            logger.error(
                f"Item '{item_id}': processed with {result.error_count} errors. "
                f"{len(result.failed_tasks)} task(s) had errors: {', '.join(result.failed_tasks)}"
            )
        return result
