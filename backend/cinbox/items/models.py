"""
Item data models: status, settings and token payload.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..config import ConfigResolver, as_int, as_list
from ..folders.paths import DEFAULT_MAX_DEPTH
from ..tasks import DEFAULT_TASKLIST


class ItemStatus(str, Enum):
    """
    Item processing status.

    Each status corresponds to a processing folder; changing the status
    moves the item folder.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    ERROR = "error"


# ============================================================================
# SETTINGS (__INBOX__ section, item scope)
# ============================================================================

CONF_MAX_FOLDER_DEPTH = "MAX_FOLDER_DEPTH"
CONF_ITEM_ID_VALID = "ITEM_ID_VALID"
CONF_BUCKET_SCRIPT = "BUCKET_SCRIPT"
CONF_COOLOFF_TIME = "COOLOFF_TIME"
CONF_COOLOFF_FILTERS = "COOLOFF_FILTERS"
CONF_TASKLIST = "TASKLIST"
CONF_DIRLIST_FILE = "DIRLIST_FILE"

TOKEN_KEYS: Dict[ItemStatus, str] = {
    ItemStatus.TODO: "TOKEN_TODO",
    ItemStatus.IN_PROGRESS: "TOKEN_IN_PROGRESS",
    ItemStatus.DONE: "TOKEN_DONE",
    ItemStatus.ERROR: "TOKEN_ERROR",
}

ITEM_DEFAULTS: Dict[str, Any] = {
    CONF_MAX_FOLDER_DEPTH: DEFAULT_MAX_DEPTH,
    CONF_COOLOFF_TIME: 30,
    CONF_COOLOFF_FILTERS: ["atime"],
    CONF_TASKLIST: list(DEFAULT_TASKLIST),
}


@dataclass(frozen=True)
class ItemSettings:
    """Resolved item settings. COOLOFF_TIME is in minutes."""

    max_folder_depth: int = DEFAULT_MAX_DEPTH
    item_id_valid: Tuple[str, ...] = ()
    bucket_script: Optional[str] = None
    cooloff_time: int = 30
    cooloff_filters: Tuple[str, ...] = ("atime",)
    tasklist: Tuple[str, ...] = tuple(DEFAULT_TASKLIST)
    tokens: Dict[str, str] = field(default_factory=dict)
    dirlist_file: Optional[str] = None

    def token_name(self, status: ItemStatus) -> Optional[str]:
        return self.tokens.get(ItemStatus(status).value) or None

    @classmethod
    def from_config(cls, config: ConfigResolver) -> "ItemSettings":
        """
        Build from loaded settings.

        Raises:
            SettingsError: On a wrong value type (e.g. scalar instead of list)
        """
        tokens = {}
        for status, key in TOKEN_KEYS.items():
            value = config.get(key)
            if value:
                tokens[status.value] = str(value)

        return cls(
            max_folder_depth=as_int(config.get(CONF_MAX_FOLDER_DEPTH), CONF_MAX_FOLDER_DEPTH, DEFAULT_MAX_DEPTH),
            item_id_valid=tuple(as_list(config.get(CONF_ITEM_ID_VALID), CONF_ITEM_ID_VALID)),
            bucket_script=config.get(CONF_BUCKET_SCRIPT) or None,
            cooloff_time=as_int(config.get(CONF_COOLOFF_TIME), CONF_COOLOFF_TIME, 30),
            cooloff_filters=tuple(as_list(config.get(CONF_COOLOFF_FILTERS), CONF_COOLOFF_FILTERS)),
            tasklist=tuple(as_list(config.get(CONF_TASKLIST), CONF_TASKLIST)),
            tokens=tokens,
            dirlist_file=config.get(CONF_DIRLIST_FILE) or None,
        )


# ============================================================================
# TOKEN FILE
# ============================================================================

class TargetFolderEntry(BaseModel):
    """One remembered target folder with the time it was recorded."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    timestamp: str
    unix_time: int = Field(alias="unixTime")
    value: str


class TokenPayload(BaseModel):
    """JSON written to token files on status changes."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    item_id: str = Field(alias="itemId")
    target_folders: List[TargetFolderEntry] = Field(default_factory=list, alias="targetFolders")
