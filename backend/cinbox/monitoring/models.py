"""
Response models for monitoring API.

All responses are read-only views of the inbox and its items.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from ..items.models import ItemStatus


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    model_config = ConfigDict(extra="forbid")

    status: str = "ok"


class InboxStateResponse(BaseModel):
    """
    Inbox overview.

    Item counts per status folder plus the state of the processing loop.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    source_folder: str
    counts: Dict[ItemStatus, int]
    current_item: Optional[str] = None
    errors: int = 0
    running: bool = False
    last_run: Optional[datetime] = None


class ItemSummary(BaseModel):
    """One item for list endpoints."""

    model_config = ConfigDict(extra="forbid")

    item_id: str
    status: ItemStatus
    modified_at: datetime


class ItemListResponse(BaseModel):
    """Response for listing items."""

    model_config = ConfigDict(extra="forbid")

    items: List[ItemSummary]
    total_count: int


class ItemDetail(BaseModel):
    """
    Detailed view of one item.

    File and byte counts are taken from the item folder at request time.
    """

    model_config = ConfigDict(extra="forbid")

    item_id: str
    status: ItemStatus
    path: str
    modified_at: datetime
    file_count: int
    folder_count: int
    total_bytes: int
    logfile: Optional[str] = None
    processing: bool = False


class TokenResponse(BaseModel):
    """Parsed token file of an item."""

    model_config = ConfigDict(extra="forbid")

    item_id: str
    status: ItemStatus
    path: str
    payload: Dict[str, Any]
