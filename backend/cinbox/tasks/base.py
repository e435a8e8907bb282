"""
Task abstraction.

A task is one pipeline step applied to one Folder. Each execution is

    init() -> run() -> finalize()

short-circuiting as soon as one phase returns False. Problems are
reported through the task status, not through exceptions. Unexpected
filesystem failures do raise and end up moving the item to ERROR.

Design rules:
- One instance per (task type, folder) per run
- Status is monotonic (see status.py)
- Tasks read settings from their folder's own ConfigResolver
- Cross-task facts go through context.memory, never through globals
"""

import fnmatch
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Mapping, Optional

from ..config import DATETIME_FORMAT, Placeholder
from ..folders import CONF_COPY_EXCLUDE, Folder, FolderError
from .status import TaskStatus, is_fatal

if TYPE_CHECKING:
    from ..items.context import ItemContext

logger = logging.getLogger(__name__)


# Item memory keys shared between tasks
MEM_TARGET_FOLDERS = "targetFolders"
MEM_TARGET_FOLDER_STAGES = "targetFolderStages"
MEM_COPY_SKIPPED = "copySkipped"
MEM_VALIDATION_FAILED = "validationFailed"


class TaskKind(str, Enum):
    """
    How a task type is applied to an item tree.

    PER_FOLDER:     once per subfolder, depth-first, alphabetical
    RECURSIVE:      once at the item root; walks all subfolders itself
    ONCE_PER_ITEM:  once at the item root; works on item-level resources
    """

    PER_FOLDER = "per_folder"
    RECURSIVE = "recursive"
    ONCE_PER_ITEM = "once_per_item"


class Task(ABC):
    """
    Base class for all task types.

    Subclasses set ``name``, ``label`` and optionally ``kind`` and
    ``requires_target``, and implement run(). Settings are loaded in
    load_settings(), which must call the parent implementation first.
    """

    name: ClassVar[str] = "Task"
    label: ClassVar[str] = "Task (abstract)"
    kind: ClassVar[TaskKind] = TaskKind.PER_FOLDER
    requires_target: ClassVar[bool] = False

    def __init__(
        self,
        folder: Folder,
        context: "ItemContext",
        subfolders: Optional[Dict[str, Folder]] = None,
    ):
        self.folder = folder
        self.context = context
        self.subfolders: Dict[str, Folder] = dict(subfolders or {})
        self.config = folder.config
        self._status = TaskStatus.UNDEFINED

        self.source_folder: Path = folder.path
        self.target_folder: Optional[str] = None
        self.target_folder_stage: Optional[str] = None
        self.copy_exclude: List[str] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(folder={self.folder.sub_dir()!r}, status={self._status.name})"

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def status(self) -> TaskStatus:
        return self._status

    def set_status(self, status: TaskStatus) -> bool:
        """
        Raise the status to ``status`` if it is at least as severe.

        Returns:
            False if ``status`` is fatal (ERROR, CONFIG_ERROR), else True
        """
        if status >= self._status:
            self._status = status
        return not is_fatal(status)

    def set_done(self) -> bool:
        return self.set_status(TaskStatus.DONE)

    def set_pbc(self) -> bool:
        return self.set_status(TaskStatus.PBC)

    def set_pbct(self) -> bool:
        return self.set_status(TaskStatus.PBCT)

    def set_wait(self) -> bool:
        return self.set_status(TaskStatus.WAIT)

    def set_error(self) -> bool:
        return self.set_status(TaskStatus.ERROR)

    def set_config_error(self) -> bool:
        return self.set_status(TaskStatus.CONFIG_ERROR)

    def skip_it(self) -> bool:
        """Mark this task as having nothing to do. Returns True."""
        self.set_status(TaskStatus.SKIPPED)
        return True

    @property
    def skipped(self) -> bool:
        return self._status == TaskStatus.SKIPPED

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def load_settings(self) -> bool:
        """Load settings relevant for this task. Must return True on success."""
        exclude = self.config.get(CONF_COPY_EXCLUDE)
        if exclude:
            if not self.option_is_list(exclude, CONF_COPY_EXCLUDE):
                return False
            self.copy_exclude = list(exclude)
            logger.debug(f"Copy exclude: {', '.join(self.copy_exclude)}")
        return True

    def init(self) -> bool:
        """Prepare everything so it's ready for processing."""
        logger.debug(f"Task '{self.name}' init on '{self.folder.sub_dir()}'")
        self.set_status(TaskStatus.RUNNING)

        if not self.load_settings():
            logger.error(f"Failed to load settings for task '{self.name}'")
            self.set_error()
            return False

        if self.skipped:
            logger.info(f"Task '{self.name}' skipped on '{self.folder.sub_dir()}'")
            return False
        if self._status == TaskStatus.DONE:
            # load_settings() found there is nothing to do
            return False

        try:
            self.target_folder = self.folder.target_folder()
            self.target_folder_stage = self.folder.target_folder(staging=True)
        except FolderError as e:
            if self.requires_target:
                logger.error(f"Task '{self.name}': {e}")
                self.set_config_error()
                return False
            logger.debug(f"Task '{self.name}': No target folder for '{self.folder.sub_dir()}': {e}")

        self.config.add_placeholder(Placeholder.DIR_SOURCE, self.source_folder)
        self.config.add_placeholder(Placeholder.DIR_TARGET, self.target_folder or "")
        self.config.add_placeholder(Placeholder.DIR_TARGET_STAGE, self.target_folder_stage or "")
        self.config.add_placeholder(Placeholder.DIR_BASE, self.folder.base_folder)
        self.config.add_placeholder(Placeholder.DIR_TEMP, self.context.temp_folder)
        self.config.add_placeholder(Placeholder.TASK_NAME, self.name)
        self.config.add_placeholder(Placeholder.TASK_LABEL, self.label)
        return True

    @abstractmethod
    def run(self) -> bool:
        """Perform the actual steps of this task. Must set a final status."""
        pass

    def finalize(self) -> bool:
        """Actions after run() finished successfully."""
        return True

    def execute(self) -> TaskStatus:
        """
        Run init -> run -> finalize, stopping at the first phase that fails.

        Returns:
            Final task status
        """
        if self.init() and self.run():
            self.finalize()

        if self._status in (TaskStatus.UNDEFINED, TaskStatus.RUNNING):
            self.set_done()
        return self._status

    # -------------------------------------------------------------------------
    # Helpers for subclasses
    # -------------------------------------------------------------------------

    def option_is_list(self, value: Any, option_name: str) -> bool:
        """Set CONFIG_ERROR unless ``value`` is a list (``KEY[] = ...``)."""
        if isinstance(value, list):
            return True
        logger.error(
            f"Invalid configuration '{option_name}': Must be a list. Maybe missing '[]'?"
        )
        self.set_config_error()
        return False

    def exclude(self, filename: Any) -> Optional[str]:
        """First COPY_EXCLUDE pattern matching the basename, or None."""
        basename = Path(filename).name
        for pattern in self.copy_exclude:
            if fnmatch.fnmatch(basename, pattern):
                return pattern
        return None

    def check_temp_folder(self) -> bool:
        """Set ERROR unless the item temp folder exists."""
        temp = self.context.temp_folder
        if temp is None or not Path(temp).is_dir():
            logger.error(f"Task '{self.name}': Temp folder invalid or not set: {temp}")
            self.set_error()
            return False
        return True

    def resolve(self, text: str, extra: Optional[Mapping[str, Any]] = None) -> str:
        return self.config.resolve(text, extra)

    def command_logfile(self) -> Path:
        """Logfile for an external command: ``<temp>/<TaskName><DATETIME>.log``."""
        stamp = datetime.now().strftime(DATETIME_FORMAT)
        return Path(self.context.temp_folder) / f"{self.name}{stamp}.log"

    def remove_command_logfile(self, logfile: Optional[Path]) -> bool:
        """Delete a command logfile after success. A failed delete is PBC."""
        if logfile is None or not logfile.exists():
            return True
        try:
            logfile.unlink()
        except OSError as e:
            logger.error(f"Logfile '{logfile}' could not be deleted: {e}")
            self.set_pbc()
            return False
        logger.debug(f"Logfile '{logfile}' was deleted.")
        return True
