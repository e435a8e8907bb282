"""
Inbox state models.

Read-only snapshots of the inbox for logging and the monitoring API.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..items.models import ItemStatus


class ItemInfo(BaseModel):
    """One item folder as found on disk."""

    model_config = ConfigDict(extra="forbid")

    item_id: str
    status: ItemStatus
    path: str
    modified_at: datetime


class InboxState(BaseModel):
    """
    Snapshot of the inbox.

    Counts and IDs are taken from the processing folders at snapshot time.
    ``current_item`` and ``errors`` come from the running loop.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    source_folder: str
    counts: Dict[ItemStatus, int] = Field(default_factory=dict)
    items: Dict[ItemStatus, List[str]] = Field(default_factory=dict)
    current_item: Optional[str] = None
    errors: int = 0
    running: bool = False
    last_run: Optional[datetime] = None
