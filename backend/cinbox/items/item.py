"""
Item - one archival package moving through the inbox.

An item is a folder below one of the processing folders. Its basename is
the item ID. The item owns the FolderArena of its tree and the memory
store of the current run.

Lifecycle (driven by the inbox):
    item = Item(path, inbox_config, inbox_temp)
    item.init_item_settings()
    if item.can_start():
        ... move to IN_PROGRESS ...
        item.init_item()
        item.process()
"""

import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..config import ConfigResolver, Placeholder, SECTION_INBOX
from ..execution import CommandRunner, check_executable
from ..folders import Folder, FolderArena, paths
from ..tasks import MEM_TARGET_FOLDERS, PipelineResult, TaskPipeline, UnknownTaskError, get_task_registry
from .context import ItemContext
from .errors import BucketScriptError, InvalidItemIdError, ProcessingError
from .memory import ItemMemory
from .models import ITEM_DEFAULTS, ItemSettings, ItemStatus, TargetFolderEntry, TokenPayload

logger = logging.getLogger(__name__)


CHANGELOG_FILENAME = "item_changelog.txt"


class Item:
    """
    Archival item.

    Args:
        path: Item folder (basename = item ID)
        inbox_config: Inbox-level resolver; copied, never shared
        inbox_temp: Inbox temp folder; the item temp folder lives below it
        status: Processing folder the item currently sits in
    """

    def __init__(
        self,
        path: Union[str, Path],
        inbox_config: ConfigResolver,
        inbox_temp: Union[str, Path],
        status: ItemStatus = ItemStatus.TODO,
    ):
        self.path = Path(path)
        self.item_id = self.path.name
        self.status = ItemStatus(status)
        self.config = inbox_config.copy()
        self.temp_folder = Path(inbox_temp) / self.item_id.lower()

        self.arena = FolderArena()
        self.memory = ItemMemory(self.item_id)
        self.settings: Optional[ItemSettings] = None
        self.context: Optional[ItemContext] = None
        self.bucket: Optional[str] = None
        self.logfile: Optional[Path] = None
        self.try_again = False
        self.initialized = False
        self.last_result: Optional[PipelineResult] = None
        self._subdirs_snapshot: List[str] = []

    def __repr__(self) -> str:
        return f"Item(id={self.item_id!r}, status={self.status.value})"

    @property
    def changelog_file(self) -> Path:
        return self.temp_folder / CHANGELOG_FILENAME

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def init_item_settings(self) -> ItemSettings:
        """
        Add item placeholders and load the __INBOX__ section over the defaults.

        Raises:
            ConfigError, SettingsError: On invalid configuration
        """
        self.config.add_placeholder(Placeholder.ITEM_ID, self.item_id)
        self.config.add_placeholder(Placeholder.ITEM_ID_UC, self.item_id.upper())
        self.config.add_placeholder(Placeholder.ITEM_ID_LC, self.item_id.lower())
        if self.logfile is not None:
            self.config.add_placeholder(Placeholder.LOGFILE, self.logfile)

        self.config.set_defaults(ITEM_DEFAULTS)
        values = self.config.section_config(SECTION_INBOX)
        if values:
            self.config.load_settings(values)

        self.settings = ItemSettings.from_config(self.config)
        return self.settings

    def set_logfile(self, logfile: Optional[Union[str, Path]]) -> None:
        """Current item logfile; exposed as [@LOGFILE@] and to the run context."""
        self.logfile = Path(logfile) if logfile is not None else None
        self.config.add_placeholder(Placeholder.LOGFILE, self.logfile or "")
        if self.context is not None:
            self.context.logfile = self.logfile

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def validate_item_id(self) -> bool:
        """
        Check the item ID against ITEM_ID_VALID. No patterns means any ID is valid.

        Raises:
            InvalidItemIdError: If no pattern matches
        """
        patterns = list(self.settings.item_id_valid) if self.settings else []
        if not patterns:
            return True
        for pattern in patterns:
            if re.search(pattern, self.item_id):
                logger.debug(f"Item ID '{self.item_id}' matches '{pattern}'")
                return True
        raise InvalidItemIdError(self.item_id, patterns)

    def run_bucket_script(self) -> Optional[str]:
        """
        Ask BUCKET_SCRIPT for this item's bucket: ``script itemId path``.

        The first output line is the bucket.

        Raises:
            BucketScriptError: On a non-zero exit code or empty output
        """
        script = self.settings.bucket_script if self.settings else None
        if not script:
            return None

        command = f'{script} "{self.item_id}" "{self.path}"'
        check_executable(command)
        result = CommandRunner().execute(command)
        if not result.ok:
            raise BucketScriptError(
                f"Bucket script failed for '{self.item_id}' ({result.summary()})"
            )

        bucket = result.first_line()
        if not bucket:
            raise BucketScriptError(f"Bucket script returned no bucket for '{self.item_id}': {command}")

        self.bucket = bucket
        self.config.add_placeholder(Placeholder.BUCKET, bucket)
        logger.info(f"Bucket for '{self.item_id}': {bucket}")
        return bucket

    def init_item(self) -> ItemContext:
        """
        Validate, run the bucket script and build the folder tree.

        Raises:
            ItemError, FolderError, ExecError, UnknownTaskError: If the item
                cannot be processed
        """
        if self.settings is None:
            self.init_item_settings()

        self.temp_folder.mkdir(parents=True, exist_ok=True)
        self.validate_item_id()
        self.run_bucket_script()

        unknown = get_task_registry().validate_tasklist(list(self.settings.tasklist))
        if unknown:
            raise UnknownTaskError(", ".join(unknown))

        self.memory = ItemMemory(self.item_id)
        self.context = ItemContext(
            item_id=self.item_id,
            base_folder=self.path,
            temp_folder=self.temp_folder,
            arena=self.arena,
            memory=self.memory,
            logfile=self.logfile,
        )
        self.build_subfolders()
        self.initialized = True
        return self.context

    # -------------------------------------------------------------------------
    # Folder tree
    # -------------------------------------------------------------------------

    def _subdir_listing(self) -> List[str]:
        return [str(p) for p in paths.recursive_listing(self.path, only_dirs=True)]

    def _init_folder(self, folder: Folder) -> None:
        folder.temp_folder = self.temp_folder
        folder.config.add_placeholder(Placeholder.DIR_BASE, self.path)
        folder.config.add_placeholder(Placeholder.DIR_SOURCE, folder.path)
        folder.init_folder()

    def build_subfolders(self) -> Dict[str, Folder]:
        """(Re)build the folder arena from the item tree on disk."""
        max_depth = self.settings.max_folder_depth if self.settings else paths.DEFAULT_MAX_DEPTH

        self.arena.clear()
        root = self.arena.add(self.path, self.path, None, self.item_id, self.config)
        self._init_folder(root)

        ids = {self.path: root.folder_id}
        for subfolder in paths.list_subfolders(self.path, max_depth):
            folder = self.arena.add(
                subfolder, self.path, ids[subfolder.parent], self.item_id, self.config
            )
            self._init_folder(folder)
            ids[subfolder] = folder.folder_id

        self._subdirs_snapshot = self._subdir_listing()
        if self.context is not None:
            self.context.base_folder = self.path
            self.context.root_id = root.folder_id

        subfolders = self.subfolders()
        logger.info(f"Subfolder structure of '{self.path}': {', '.join(subfolders)}")
        return subfolders

    def subfolders(self) -> Dict[str, Folder]:
        return {f.sub_dir(): f for f in self.arena.walk(0)}

    def refresh_subfolders(self) -> Dict[str, Folder]:
        """Current folder map; rebuilt if the tree changed since the last snapshot."""
        if self._subdir_listing() != self._subdirs_snapshot:
            logger.info(f"({self.item_id}) Subfolder structure has changed. Loading it again.")
            return self.build_subfolders()
        return self.subfolders()

    # -------------------------------------------------------------------------
    # Processing
    # -------------------------------------------------------------------------

    def process(self) -> bool:
        """
        Run the task list.

        Returns:
            True if no task reported a problem. ``try_again`` tells whether
            a task asked the item to wait.

        Raises:
            ProcessingError: If the item was not initialized
        """
        if not self.initialized or self.context is None:
            raise ProcessingError(f"Unable to process item '{self.item_id}'. Item not initialized.")

        self.try_again = False
        logger.info(f"Processing item '{self.item_id}'...")

        pipeline = TaskPipeline(self.context, list(self.settings.tasklist), self.refresh_subfolders)
        result = pipeline.run()

        self.last_result = result
        self.try_again = result.try_again
        logger.debug(f"Item memory ({self.item_id}) on finalize: {self.memory.keys()}")
        return result.success

    # -------------------------------------------------------------------------
    # Cooloff
    # -------------------------------------------------------------------------

    def last_changed(self, filters: Optional[List[str]] = None) -> float:
        """
        Seconds since anything inside the item last changed.

        The item's recursive listing (selected stat() fields) is compared
        with the snapshot stored in the changelog. A difference rewrites
        the snapshot and counts as "changed just now".
        """
        self.temp_folder.mkdir(parents=True, exist_ok=True)
        entries = [self.path] + paths.recursive_listing(self.path)
        snapshot = paths.dirlist_to_text(entries, filters or [])

        changelog = self.changelog_file
        if changelog.is_file() and changelog.read_text(encoding="utf-8") == snapshot:
            return max(0.0, time.time() - changelog.stat().st_mtime)

        logger.info(f"Item '{self.item_id}' has changed. Updating changelog.")
        changelog.write_text(snapshot, encoding="utf-8")
        return 0.0

    def can_start(self) -> bool:
        """True once nothing in the item changed for COOLOFF_TIME minutes."""
        if self.settings is None:
            self.init_item_settings()

        cooloff = self.settings.cooloff_time * 60
        age = self.last_changed(list(self.settings.cooloff_filters))
        if age < cooloff:
            logger.info(
                f"Item '{self.item_id}' not ready yet: changed {int(age)}s ago, cooloff is {cooloff}s"
            )
            return False
        return True

    # -------------------------------------------------------------------------
    # Status folder, token, timestamps
    # -------------------------------------------------------------------------

    def move_to(self, status: ItemStatus, folder: Union[str, Path]) -> Path:
        """
        Move the item folder into ``folder`` and set ``status``.

        Raises:
            FolderMoveError: If the target exists or is not writable
        """
        new_path = paths.move_path(self.path, Path(folder) / self.item_id)
        self.path = new_path
        self.status = ItemStatus(status)
        if self.context is not None:
            self.context.base_folder = new_path
        return new_path

    def token_payload(self) -> TokenPayload:
        entries = self.memory.recall_nice(MEM_TARGET_FOLDERS, strict=False, unique=True)
        return TokenPayload(
            item_id=self.item_id,
            target_folders=[TargetFolderEntry(**e) for e in entries],
        )

    def token_path(self, status: ItemStatus, folder: Union[str, Path]) -> Optional[Path]:
        """Token file for ``status``; relative names are placed in ``folder``."""
        name = self.settings.token_name(status) if self.settings else None
        if not name:
            return None
        path = Path(name)
        if not path.is_absolute():
            path = Path(folder) / path
        return path

    def write_token(self, status: ItemStatus, folder: Union[str, Path]) -> Optional[Path]:
        """Write the token file for ``status`` (if one is configured)."""
        path = self.token_path(status, folder)
        if path is None:
            return None

        payload = self.token_payload().model_dump(by_alias=True)
        path.write_text(json.dumps(payload, indent=4, ensure_ascii=False), encoding="utf-8")
        logger.info(f"Token file written: {path}")
        return path

    def update_timestamp(self) -> None:
        """Touch the item folder. Its mtime is the age used for DONE cleanup."""
        os.utime(self.path, None)
