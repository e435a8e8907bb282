"""
Inbox — the processing loop over an inbox folder.

Public API:
    Inbox — Config, processing folders, item loop, cleanup, snapshots
    InboxSettings — Resolved __INBOX__ settings
    InboxState — Read-only snapshot for monitoring
    is_work_time — WORK_TIMES cron check
"""

from .errors import (
    InboxError,
    InboxConfigError,
    ProcessingFolderError,
    ItemNotFoundError,
)
from .settings import (
    InboxSettings,
    INBOX_DEFAULTS,
    STATUS_FOLDER_KEYS,
    PROCESSING_FOLDER_KEYS,
)
from .schedule import WORK_TIMES_SLEEP, is_work_time, next_work_time, validate_work_times
from .models import InboxState, ItemInfo
from .engine import Inbox, CONFIG_FILENAME

__all__ = [
    # Errors
    "InboxError",
    "InboxConfigError",
    "ProcessingFolderError",
    "ItemNotFoundError",
    # Settings
    "InboxSettings",
    "INBOX_DEFAULTS",
    "STATUS_FOLDER_KEYS",
    "PROCESSING_FOLDER_KEYS",
    # Working hours
    "WORK_TIMES_SLEEP",
    "is_work_time",
    "next_work_time",
    "validate_work_times",
    # Models
    "InboxState",
    "ItemInfo",
    # Engine
    "Inbox",
    "CONFIG_FILENAME",
]
