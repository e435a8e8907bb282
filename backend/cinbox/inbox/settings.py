"""
Inbox settings.

Loaded from the ``__INBOX__`` section of the config file over
INBOX_DEFAULTS. Item-level keys of the same section (TASKLIST,
COOLOFF_TIME, ...) are read by the item, not here.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from ..config import ConfigResolver, as_bool, as_int, as_list
from ..items.logs import DEFAULT_LOG_STYLE
from ..items.models import ItemStatus
from .errors import InboxConfigError


CONF_INBOX_NAME = "INBOX_NAME"
CONF_PAUSE_TIME = "PAUSE_TIME"
CONF_ITEMS_AT_ONCE = "ITEMS_AT_ONCE"
CONF_KEEP_FINISHED = "KEEP_FINISHED"
CONF_WAIT_FOR_ITEMS = "WAIT_FOR_ITEMS"
CONF_MOVE_LOGFILES = "MOVE_LOGFILES"
CONF_ITEM_LOGSTYLE = "ITEM_LOGSTYLE"
CONF_DIR_TEMP = "DIR_TEMP"
CONF_WORK_TIMES = "WORK_TIMES"

CONF_DIR_STATEKEEPING = "DIR_STATEKEEPING"
CONF_DIR_LOGS = "DIR_LOGS"
CONF_DIR_TODO = "DIR_TODO"
CONF_DIR_IN_PROGRESS = "DIR_IN_PROGRESS"
CONF_DIR_DONE = "DIR_DONE"
CONF_DIR_ERROR = "DIR_ERROR"

# Processing folder key for each item status
STATUS_FOLDER_KEYS: Dict[ItemStatus, str] = {
    ItemStatus.TODO: CONF_DIR_TODO,
    ItemStatus.IN_PROGRESS: CONF_DIR_IN_PROGRESS,
    ItemStatus.DONE: CONF_DIR_DONE,
    ItemStatus.ERROR: CONF_DIR_ERROR,
}

PROCESSING_FOLDER_KEYS = (CONF_DIR_LOGS,) + tuple(STATUS_FOLDER_KEYS.values())

INBOX_DEFAULTS: Dict[str, Any] = {
    CONF_PAUSE_TIME: 5,
    CONF_ITEMS_AT_ONCE: 10,
    CONF_KEEP_FINISHED: 0,
    CONF_WAIT_FOR_ITEMS: 5,
    CONF_MOVE_LOGFILES: 1,
    CONF_ITEM_LOGSTYLE: DEFAULT_LOG_STYLE,
    CONF_DIR_TEMP: "/var/cinbox",
    CONF_DIR_STATEKEEPING: ".",
    CONF_DIR_LOGS: "log",
    CONF_DIR_TODO: "todo",
    CONF_DIR_IN_PROGRESS: "in_progress",
    CONF_DIR_DONE: "done",
    CONF_DIR_ERROR: "error",
}


@dataclass(frozen=True)
class InboxSettings:
    """
    Resolved inbox settings.

    PAUSE_TIME and WAIT_FOR_ITEMS are seconds, KEEP_FINISHED is days
    (0 keeps finished items forever), ITEMS_AT_ONCE 0 means no limit.
    """

    name: str
    pause_time: int = 5
    items_at_once: int = 10
    keep_finished: int = 0
    wait_for_items: int = 5
    move_logfiles: bool = True
    item_logstyle: str = DEFAULT_LOG_STYLE
    dir_temp: str = "/var/cinbox"
    work_times: Tuple[str, ...] = ()
    folders: Dict[str, str] = field(default_factory=lambda: {
        key: INBOX_DEFAULTS[key] for key in (CONF_DIR_STATEKEEPING,) + PROCESSING_FOLDER_KEYS
    })

    @property
    def temp_name(self) -> str:
        """Basename of the inbox temp folder: ``ci-<name>``."""
        return "ci-" + self.name.lower().replace(" ", "_")

    @classmethod
    def from_config(cls, config: ConfigResolver) -> "InboxSettings":
        """
        Build from a resolver with the __INBOX__ section loaded.

        Raises:
            InboxConfigError: If INBOX_NAME is missing
            SettingsError: On a wrong value type
        """
        name = config.get(CONF_INBOX_NAME)
        if not name:
            raise InboxConfigError(f"Inbox name not set. Config option {CONF_INBOX_NAME} is required.")

        folders = {}
        for key in (CONF_DIR_STATEKEEPING,) + PROCESSING_FOLDER_KEYS:
            value = config.get(key)
            if not value:
                raise InboxConfigError(f"No folder configured for '{key}'")
            folders[key] = str(value)

        return cls(
            name=str(name),
            pause_time=as_int(config.get(CONF_PAUSE_TIME), CONF_PAUSE_TIME, 5),
            items_at_once=as_int(config.get(CONF_ITEMS_AT_ONCE), CONF_ITEMS_AT_ONCE, 10),
            keep_finished=as_int(config.get(CONF_KEEP_FINISHED), CONF_KEEP_FINISHED, 0),
            wait_for_items=as_int(config.get(CONF_WAIT_FOR_ITEMS), CONF_WAIT_FOR_ITEMS, 5),
            move_logfiles=as_bool(config.get(CONF_MOVE_LOGFILES), CONF_MOVE_LOGFILES, True),
            item_logstyle=str(config.get(CONF_ITEM_LOGSTYLE) or DEFAULT_LOG_STYLE),
            dir_temp=str(config.get(CONF_DIR_TEMP)),
            work_times=tuple(as_list(config.get(CONF_WORK_TIMES), CONF_WORK_TIMES)),
            folders=folders,
        )
