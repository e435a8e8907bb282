"""
Items — archival packages and their state machine.

Public API:
    Item — One item folder: settings, folder tree, task run, token file
    ItemStatus — TODO / IN_PROGRESS / DONE / ERROR
    ItemContext — Per-run context threaded through the task pipeline
    ItemMemory — Timestamped multi-value store for cross-task facts
    ItemLog — Per-item logfile handler
"""

from .errors import (
    ItemError,
    InvalidItemIdError,
    InvalidStatusTransitionError,
    BucketScriptError,
    MemoryKeyError,
    ProcessingError,
    LogStyleError,
)
from .models import (
    ItemStatus,
    ItemSettings,
    ITEM_DEFAULTS,
    TOKEN_KEYS,
    TargetFolderEntry,
    TokenPayload,
)
from .memory import ItemMemory, MemoryEntry
from .context import ItemContext
from .state import VALID_TRANSITIONS, can_transition, validate_transition
from .logs import ItemLog, LOG_STYLES, DEFAULT_LOG_STYLE, log_formatter
from .item import Item, CHANGELOG_FILENAME

__all__ = [
    # Errors
    "ItemError",
    "InvalidItemIdError",
    "InvalidStatusTransitionError",
    "BucketScriptError",
    "MemoryKeyError",
    "ProcessingError",
    "LogStyleError",
    # Models
    "ItemStatus",
    "ItemSettings",
    "ITEM_DEFAULTS",
    "TOKEN_KEYS",
    "TargetFolderEntry",
    "TokenPayload",
    # Memory / context
    "ItemMemory",
    "MemoryEntry",
    "ItemContext",
    # State machine
    "VALID_TRANSITIONS",
    "can_transition",
    "validate_transition",
    # Logging
    "ItemLog",
    "LOG_STYLES",
    "DEFAULT_LOG_STYLE",
    "log_formatter",
    # Item
    "Item",
    "CHANGELOG_FILENAME",
]
