"""
Task Registry - Closed table of available task types.

Item task lists name tasks by string. The registry maps those names to
Task classes. There is no plugin discovery: the set of task types is
fixed per release.
"""

import logging
from typing import Dict, List, Optional, Type

from .base import Task, TaskKind
from .clean import CleanFilenames
from .copy import CopyToTarget, RenameTarget
from .errors import DuplicateTaskError, UnknownTaskError
from .files import FilesMustExist, FilesValid, FilesWait
from .hashes import HashGenerate, HashOutput, HashSearch, HashValidate
from .listing import DirListCSV
from .logfile import LogfileCopy
from .media import FFmpeg, MediaConch, MediaInfo
from .procs import PostProcs, PreProcs

logger = logging.getLogger(__name__)


DEFAULT_TASKLIST: List[str] = [
    FilesWait.name,
    DirListCSV.name,
    CleanFilenames.name,
    PreProcs.name,
    FilesValid.name,
    FilesMustExist.name,
    HashGenerate.name,
    HashSearch.name,
    CopyToTarget.name,
    HashValidate.name,
    RenameTarget.name,
    HashOutput.name,
    PostProcs.name,
    LogfileCopy.name,
]


class TaskRegistry:
    """
    Registry of available task types.

    Lookup is case-sensitive; names are the Task.name class attributes.
    """

    def __init__(self):
        self._tasks: Dict[str, Type[Task]] = {}
        self._initialize_tasks()

    def _initialize_tasks(self) -> None:
        for task_class in (
            FilesWait,
            DirListCSV,
            CleanFilenames,
            PreProcs,
            FilesValid,
            FilesMustExist,
            HashGenerate,
            HashSearch,
            CopyToTarget,
            HashValidate,
            RenameTarget,
            HashOutput,
            PostProcs,
            LogfileCopy,
            FFmpeg,
            MediaInfo,
            MediaConch,
        ):
            self.register(task_class)

    def register(self, task_class: Type[Task]) -> None:
        """
        Raises:
            DuplicateTaskError: If a task with the same name is registered
        """
        if task_class.name in self._tasks:
            raise DuplicateTaskError(f"Task already registered: '{task_class.name}'")
        self._tasks[task_class.name] = task_class

    def get_task(self, name: str) -> Optional[Type[Task]]:
        return self._tasks.get(name)

    def get_task_or_raise(self, name: str) -> Type[Task]:
        """
        Raises:
            UnknownTaskError: If name is not registered
        """
        task_class = self.get_task(name)
        if task_class is None:
            raise UnknownTaskError(name)
        return task_class

    def list_tasks(self) -> List[str]:
        return list(self._tasks.keys())

    def tasks_of_kind(self, kind: TaskKind) -> List[str]:
        return [name for name, cls in self._tasks.items() if cls.kind == kind]

    def validate_tasklist(self, names: List[str]) -> List[str]:
        """Names in ``names`` that are not registered."""
        return [n for n in names if n not in self._tasks]


# Global registry instance
_registry: Optional[TaskRegistry] = None


def get_task_registry() -> TaskRegistry:
    """Get the global task registry instance."""
    global _registry
    if _registry is None:
        _registry = TaskRegistry()
    return _registry
