"""
Inbox engine - the loop that drives items through the processing folders.

Coordinates:
1. Inbox configuration (__INBOX__ section of the config file)
2. Processing folder layout (todo, in_progress, done, error, log)
3. Per-item logfile handling
4. Item status switches (folder move + token file)
5. Working hours, pacing and cleanup of finished items

Items are processed one at a time. A failing item never stops the loop:
its exception is logged, the item moves to ERROR and the next item is
picked up (warn-and-continue).
"""

import dataclasses
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..config import ConfigResolver, SECTION_INBOX
from ..folders import paths
from ..items import Item, ItemLog, ItemStatus, LogStyleError, log_formatter, validate_transition
from .errors import InboxConfigError, InboxError, ItemNotFoundError, ProcessingFolderError
from .models import InboxState, ItemInfo
from .schedule import WORK_TIMES_SLEEP, is_work_time, next_work_time, validate_work_times
from .settings import (
    CONF_DIR_DONE,
    CONF_DIR_LOGS,
    CONF_DIR_STATEKEEPING,
    CONF_DIR_TODO,
    INBOX_DEFAULTS,
    PROCESSING_FOLDER_KEYS,
    STATUS_FOLDER_KEYS,
    InboxSettings,
)

logger = logging.getLogger(__name__)


CONFIG_FILENAME = "cinbox.ini"

SECONDS_PER_DAY = 60 * 60 * 24


class Inbox:
    """
    One inbox: a source folder with its processing folders and config.

    Args:
        source_folder: Inbox root
        processing_folder: Base for the processing folders (defaults to
            the source folder)
        config_file: Config file (defaults to ``<source>/cinbox.ini``)
        log_style: Overrides ITEM_LOGSTYLE from the config
    """

    def __init__(
        self,
        source_folder: Union[str, Path],
        processing_folder: Optional[Union[str, Path]] = None,
        config_file: Optional[Union[str, Path]] = None,
        log_style: Optional[str] = None,
    ):
        self.source_folder = Path(source_folder)
        self.processing_base = Path(processing_folder) if processing_folder else self.source_folder
        self.config_file = Path(config_file) if config_file else self.source_folder / CONFIG_FILENAME
        self.log_style = log_style

        self.config = ConfigResolver()
        self.settings: Optional[InboxSettings] = None
        self.temp_folder: Optional[Path] = None
        self.temp_rerun = False
        self.status_base: Optional[Path] = None

        self.item_list: Dict[str, Path] = {}
        self._queue: List[str] = []
        self.item_count = 0

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self.current_item: Optional[str] = None
        self.errors = 0
        self.running = False
        self.last_run: Optional[datetime] = None

    def __repr__(self) -> str:
        name = self.settings.name if self.settings else "?"
        return f"Inbox(name={name!r}, source={str(self.source_folder)!r})"

    @property
    def name(self) -> str:
        return self.settings.name if self.settings else self.source_folder.name

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def load_config(self) -> InboxSettings:
        """
        Load the config file and the __INBOX__ section over INBOX_DEFAULTS.

        Raises:
            ConfigError: If the file cannot be loaded or parsed
            InboxConfigError: If inbox settings are missing or invalid
        """
        self.config.load_file(self.config_file)
        self.config.init_placeholders()

        values = self.config.section_config(SECTION_INBOX)
        if not values:
            raise InboxConfigError(f"Config section [{SECTION_INBOX}] missing or empty in {self.config_file}")

        self.config.set_defaults(INBOX_DEFAULTS)
        self.config.load_settings(values)
        settings = InboxSettings.from_config(self.config)

        if self.log_style:
            settings = dataclasses.replace(settings, item_logstyle=self.log_style)
        try:
            log_formatter(settings.item_logstyle)
        except LogStyleError as e:
            raise InboxConfigError(str(e))
        validate_work_times(settings.work_times)

        self.settings = settings
        logger.info(f"Inbox '{settings.name}' configured from {self.config_file}")
        return settings

    def _require_settings(self) -> InboxSettings:
        if self.settings is None:
            raise InboxError("Inbox config not loaded. Call load_config() first.")
        return self.settings

    def init_temp_folder(self) -> Path:
        """
        Create ``<DIR_TEMP>/ci-<inbox name>``. An existing one means a re-run.

        Raises:
            InboxError: If the folder cannot be created
        """
        settings = self._require_settings()
        temp_folder = Path(settings.dir_temp) / settings.temp_name

        if temp_folder.is_dir():
            logger.info(f"Temp folder for inbox '{settings.name}' already exists. Possible re-run.")
            self.temp_rerun = True
        else:
            logger.debug(f"Creating temp folder: '{temp_folder}'")
            try:
                temp_folder.mkdir()
            except OSError as e:
                raise InboxError(
                    f"Could not create temp folder '{temp_folder}'. "
                    f"Check access rights? Does the parent folder exist? ({e})"
                )

        self.temp_folder = temp_folder
        return temp_folder

    # -------------------------------------------------------------------------
    # Processing folders
    # -------------------------------------------------------------------------

    def init_status_base(self) -> Path:
        """
        Raises:
            ProcessingFolderError: If the state-keeping folder does not exist
        """
        settings = self._require_settings()
        folder = Path(settings.folders[CONF_DIR_STATEKEEPING])
        if not folder.is_absolute():
            folder = self.processing_base / folder
        folder = folder.resolve()

        if not folder.is_dir():
            raise ProcessingFolderError(f"State-keeping base folder does not exist or is not a folder: {folder}")

        self.status_base = folder
        logger.info(f"State-keeping base folder is '{folder}'")
        return folder

    def processing_folder(self, key: str) -> Path:
        """
        Processing folder for a DIR_* key.

        Raises:
            ProcessingFolderError: If the base is not set or the key is unknown
        """
        settings = self._require_settings()
        if self.status_base is None:
            self.init_status_base()
        name = settings.folders.get(key.upper())
        if not name:
            raise ProcessingFolderError(f"No folder configured matching '{key}'")
        return self.status_base / name

    def processing_folders(self) -> Dict[str, Path]:
        return {key: self.processing_folder(key) for key in PROCESSING_FOLDER_KEYS}

    def status_folder(self, status: ItemStatus) -> Path:
        return self.processing_folder(STATUS_FOLDER_KEYS[ItemStatus(status)])

    def validate_processing_folders(self, quiet: bool = True) -> bool:
        """
        Check that all processing folders exist and are writable.

        Meant to be called between loops as well, to catch folders that
        were removed or renamed while running.

        Raises:
            ProcessingFolderError: If any processing folder is not valid
        """
        folders = self.processing_folders()
        errors = 0
        for key, folder in folders.items():
            if not folder.exists():
                logger.error(f"Processing folder for '{key}' does not exist: {folder}")
                errors += 1
                continue
            if not folder.is_dir():
                logger.error(f"Folder for '{key}' is not a directory: {folder}")
                errors += 1
                continue
            if not paths.is_writable(folder):
                logger.error(f"Cannot write to folder for '{key}': '{folder}' - Check access rights?")
                errors += 1
                continue
            if not quiet:
                logger.info(f"Processing folder for '{key}' is: {folder}")

        if errors:
            raise ProcessingFolderError(f"{errors}/{len(folders)} processing folders are not valid.")
        return True

    def create_processing_folders(self) -> List[Path]:
        """Create missing processing folders. Returns the ones created."""
        created = []
        for key, folder in self.processing_folders().items():
            if folder.is_dir():
                continue
            folder.mkdir(parents=True)
            logger.info(f"Created processing folder for '{key}': {folder}")
            created.append(folder)
        return created

    def init(self, create_folders: bool = False) -> "Inbox":
        """
        Load config, temp folder and processing folders; scan the TODO folder.

        Raises:
            ConfigError, InboxError: If the inbox cannot be used
        """
        self.load_config()
        self.init_temp_folder()
        self.init_status_base()
        if create_folders:
            self.create_processing_folders()
        self.validate_processing_folders(quiet=False)
        self.init_item_list()
        return self

    # -------------------------------------------------------------------------
    # Item list
    # -------------------------------------------------------------------------

    def init_item_list(self, folder: Optional[Union[str, Path]] = None) -> int:
        """
        Scan the TODO folder for items. Starts a new batch.

        Returns:
            Number of items found
        """
        folder = Path(folder) if folder else self.processing_folder(CONF_DIR_TODO)
        self.item_list = {}
        for entry in paths.folder_listing(folder):
            if entry.is_dir():
                self.item_list[entry.name] = entry
            else:
                logger.debug(f"Ignoring '{entry.name}' in '{folder}': Not an item folder")

        self._queue = list(self.item_list)
        self.item_count = 0
        logger.info(f"Found {len(self.item_list)} item(s) in '{folder}'")
        return len(self.item_list)

    def get_next_item(self) -> Optional[str]:
        """Next item ID of the current batch, or None (batch done or limit reached)."""
        limit = self._require_settings().items_at_once
        if limit > 0 and self.item_count >= limit:
            logger.info(f"Reached limit of {limit} items per run.")
            return None
        if not self._queue:
            return None

        item_id = self._queue.pop(0)
        self.item_count += 1
        logger.info(f"Next item: {self.item_count}/{len(self.item_list)} (max {limit})")
        return item_id

    # -------------------------------------------------------------------------
    # Item processing
    # -------------------------------------------------------------------------

    def item_log_folder(self, item: Item) -> Path:
        if self._require_settings().move_logfiles:
            return item.path.parent
        return self.processing_folder(CONF_DIR_LOGS)

    def switch_status(self, item: Item, status: ItemStatus, item_log: Optional[ItemLog] = None) -> Path:
        """
        Move ``item`` to the processing folder of ``status`` and write its token.

        Raises:
            InvalidStatusTransitionError: If the switch is not allowed
            FolderMoveError: If the item folder cannot be moved
        """
        status = ItemStatus(status)
        previous = item.status
        validate_transition(item.item_id, previous, status)

        target_folder = self.status_folder(status)
        item.move_to(status, target_folder)
        self.item_list[item.item_id] = item.path

        if item_log is not None and self._require_settings().move_logfiles:
            item_log.move(target_folder)
            item.set_logfile(item_log.path)

        logger.info(f"({item.item_id}): Changed status from '{previous.value}' to '{status.value}'")

        try:
            item.write_token(status, target_folder)
        except OSError as e:
            logger.error(f"({item.item_id}): Could not write token for '{status.value}': {e}")

        return item.path

    def _fail_item(self, item: Item, item_log: ItemLog) -> None:
        try:
            self.switch_status(item, ItemStatus.ERROR, item_log)
        except Exception as e:
            logger.error(f"({item.item_id}): Could not move item to '{ItemStatus.ERROR.value}': {e}")

    def process_item(self, item_id: str) -> ItemStatus:
        """
        Run one item from TODO to its final status.

        Returns:
            Status the item ends in. TODO if it was not ready yet or a
            task asked to try again later.

        Raises:
            Exception: Whatever stopped the item; it has been moved to ERROR
        """
        settings = self._require_settings()
        path = self.item_list.get(item_id)
        if path is None:
            raise ItemNotFoundError(item_id)

        # fresh date/time placeholders for each item; read_token copies the table concurrently
        with self._lock:
            self.config.init_placeholders()
            item = Item(path, self.config, self.temp_folder, status=ItemStatus.TODO)
        item_log = ItemLog(item.item_id, self.item_log_folder(item), settings.item_logstyle)
        item.set_logfile(item_log.attach())

        with self._lock:
            self.current_item = item_id

        try:
            try:
                item.init_item_settings()
                if not item.can_start():
                    return item.status
                self.switch_status(item, ItemStatus.IN_PROGRESS, item_log)
                item.init_item()
                success = item.process()
            except Exception:
                logger.exception(f"Problems with item '{item_id}'")
                self._fail_item(item, item_log)
                raise

            if item.try_again:
                logger.info(f"({item_id}): Not finished yet. Moving it back to '{ItemStatus.TODO.value}'.")
                self.switch_status(item, ItemStatus.TODO, item_log)
                return item.status

            if not success:
                result = item.last_result
                logger.error(
                    f"({item_id}): Processing finished with {result.error_count} error(s) "
                    f"in: {', '.join(result.failed_tasks)}"
                )
                self._fail_item(item, item_log)
                return item.status

            self.switch_status(item, ItemStatus.DONE, item_log)
            item.update_timestamp()
            if item.temp_folder.is_dir():
                paths.remove_folder(item.temp_folder)
            return item.status
        finally:
            item_log.detach()
            with self._lock:
                self.current_item = None

    # -------------------------------------------------------------------------
    # Garbage collection
    # -------------------------------------------------------------------------

    def remove_done_items(self, now: Optional[float] = None) -> int:
        """
        Delete DONE item folders older than KEEP_FINISHED days.

        Plain files in the DONE folder are left alone.

        Returns:
            Number of items deleted
        """
        keep_finished = self._require_settings().keep_finished
        if keep_finished <= 0:
            logger.debug("KEEP_FINISHED is 0. Finished items are kept.")
            return 0

        folder = self.processing_folder(CONF_DIR_DONE)
        now = now if now is not None else datetime.now().timestamp()
        logger.info(f"Removing finished items older than {keep_finished} days...")

        count = 0
        for entry in paths.folder_listing(folder):
            days = (now - entry.stat().st_mtime) / SECONDS_PER_DAY
            logger.debug(f"Item: {entry.name} ({int(days)} days old)")
            if days <= keep_finished:
                continue
            if not entry.is_dir():
                logger.info(f"Ignoring file '{entry.name}' (not an item). Delete it manually if desired.")
                continue

            try:
                paths.remove_folder(entry)
            except OSError as e:
                logger.warning(f"Could not delete finished item '{entry.name}': {e}")
                continue
            logger.info(f"Deleted finished item: {entry.name}")
            count += 1

        logger.info(f"Deleted {count} item(s).")
        return count

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def pause(self, seconds: float) -> bool:
        """Sleep, waking early on a stop request. Returns False if stopped."""
        if seconds > 0:
            logger.debug(f"Pausing {seconds} seconds...")
        return not self._stop.wait(max(0, seconds))

    def request_stop(self) -> None:
        """Ask the loop to stop at the next item boundary."""
        logger.info("Stop requested.")
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def run(self, forever: bool = False) -> int:
        """
        Process items until the TODO batch is done (or forever).

        Returns:
            Number of items that ended in ERROR or raised
        """
        settings = self._require_settings()
        errors = 0

        upcoming = next_work_time(settings.work_times)
        if upcoming is not None:
            logger.info(f"Next WORK_TIMES start: {upcoming:%Y-%m-%d %H:%M:%S}")

        with self._lock:
            self.running = True
        try:
            item_id = self.get_next_item()
            while (forever or item_id is not None) and not self.stop_requested:
                if not is_work_time(settings.work_times):
                    self.pause(WORK_TIMES_SLEEP)
                    continue

                if self.config.has_changed:
                    logger.warning("Config has changed while running. Please restart to load new settings!")

                if item_id is not None:
                    logger.info(f"Next item to process: '{item_id}'.")
                    try:
                        if self.process_item(item_id) == ItemStatus.ERROR:
                            errors += 1
                    except Exception as e:
                        logger.error(f"Item '{item_id}' failed: {e}")
                        errors += 1
                    with self._lock:
                        self.last_run = datetime.now()

                    item_id = self.get_next_item()
                    if item_id is not None:
                        self.pause(settings.pause_time)
                else:
                    self.remove_done_items()
                    if forever:
                        logger.info("Currently no items to process.")
                        if not self.pause(settings.wait_for_items):
                            break
                        self.validate_processing_folders()
                        self.init_item_list()
                        item_id = self.get_next_item()

                if self.config.monitor_file_changes():
                    logger.info(f"Config file has changed: {self.config.config_file}")
        finally:
            with self._lock:
                self.running = False
                self.errors += errors

        self.remove_done_items()
        return errors

    # -------------------------------------------------------------------------
    # Read-only views
    # -------------------------------------------------------------------------

    def list_items(self, status: Optional[ItemStatus] = None) -> List[ItemInfo]:
        """Item folders found in the status folders (all, or one status)."""
        statuses = [ItemStatus(status)] if status is not None else list(ItemStatus)
        items = []
        for item_status in statuses:
            folder = self.status_folder(item_status)
            if not folder.is_dir():
                continue
            for entry in paths.folder_listing(folder):
                if not entry.is_dir():
                    continue
                items.append(ItemInfo(
                    item_id=entry.name,
                    status=item_status,
                    path=str(entry),
                    modified_at=datetime.fromtimestamp(entry.stat().st_mtime),
                ))
        return items

    def find_item(self, item_id: str) -> ItemInfo:
        """
        Raises:
            ItemNotFoundError: If no status folder holds the item
        """
        for info in self.list_items():
            if info.item_id == item_id:
                return info
        raise ItemNotFoundError(item_id)

    def read_token(self, item_id: str) -> Tuple[Optional[Path], Optional[str]]:
        """
        Token file of the item's current status.

        Returns:
            (path, text); (None, None) if no token is configured for that
            status, (path, None) if it is configured but not written

        Raises:
            ItemNotFoundError: If the item does not exist
        """
        info = self.find_item(item_id)
        with self._lock:
            item = Item(info.path, self.config, self.temp_folder or self.source_folder, status=info.status)
        item.init_item_settings()
        token_path = item.token_path(info.status, Path(info.path).parent)
        if token_path is None:
            return None, None
        if not token_path.is_file():
            return token_path, None
        return token_path, token_path.read_text(encoding="utf-8")

    def snapshot(self) -> InboxState:
        """Current state of the inbox."""
        counts = {}
        ids = {}
        for info in self.list_items():
            counts[info.status] = counts.get(info.status, 0) + 1
            ids.setdefault(info.status, []).append(info.item_id)

        with self._lock:
            return InboxState(
                name=self.name,
                source_folder=str(self.source_folder),
                counts={status: counts.get(status, 0) for status in ItemStatus},
                items={status: ids.get(status, []) for status in ItemStatus},
                current_item=self.current_item,
                errors=self.errors,
                running=self.running,
                last_run=self.last_run,
            )
