"""
Query layer for read-only inbox state access.

Wraps Inbox read operations and filesystem scanning of item folders.
All operations are strictly read-only.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from ..folders import paths
from ..inbox import Inbox
from ..inbox import ItemNotFoundError as InboxItemNotFoundError
from ..inbox.settings import CONF_DIR_LOGS
from ..items.models import ItemStatus
from .errors import ItemNotFoundError, TokenNotFoundError
from .models import (
    InboxStateResponse,
    ItemDetail,
    ItemListResponse,
    ItemSummary,
    TokenResponse,
)

logger = logging.getLogger(__name__)


def get_inbox_state(inbox: Inbox) -> InboxStateResponse:
    """Counts per status folder and the state of the processing loop."""
    state = inbox.snapshot()
    return InboxStateResponse(
        name=state.name,
        source_folder=state.source_folder,
        counts=state.counts,
        current_item=state.current_item,
        errors=state.errors,
        running=state.running,
        last_run=state.last_run,
    )


def get_item_summaries(inbox: Inbox, status: Optional[ItemStatus] = None) -> ItemListResponse:
    """
    All items, grouped by status folder order (todo, in_progress, done, error).

    Args:
        inbox: The Inbox to query
        status: Only list items of this status

    Returns:
        ItemListResponse containing the item summaries
    """
    summaries = [
        ItemSummary(item_id=info.item_id, status=info.status, modified_at=info.modified_at)
        for info in inbox.list_items(status)
    ]
    return ItemListResponse(items=summaries, total_count=len(summaries))


def _item_logfile(inbox: Inbox, item_path: Path) -> Optional[Path]:
    if inbox.settings is not None and inbox.settings.move_logfiles:
        folder = item_path.parent
    else:
        folder = inbox.processing_folder(CONF_DIR_LOGS)
    logfile = folder / f"{item_path.name}.log"
    return logfile if logfile.is_file() else None


def get_item_detail(inbox: Inbox, item_id: str) -> ItemDetail:
    """
    Detailed view of one item.

    Raises:
        ItemNotFoundError: If the item ID does not exist
    """
    try:
        info = inbox.find_item(item_id)
    except InboxItemNotFoundError:
        raise ItemNotFoundError(item_id)

    item_path = Path(info.path)
    files = 0
    folders = 0
    total_bytes = 0
    for entry in paths.recursive_listing(item_path):
        if entry.is_dir():
            folders += 1
        elif entry.is_file():
            files += 1
            total_bytes += entry.stat().st_size

    logfile = _item_logfile(inbox, item_path)
    state = inbox.snapshot()
    return ItemDetail(
        item_id=info.item_id,
        status=info.status,
        path=info.path,
        modified_at=info.modified_at,
        file_count=files,
        folder_count=folders,
        total_bytes=total_bytes,
        logfile=str(logfile) if logfile else None,
        processing=state.current_item == info.item_id,
    )


def get_item_token(inbox: Inbox, item_id: str) -> TokenResponse:
    """
    Token file written on the item's last status switch.

    Raises:
        ItemNotFoundError: If the item ID does not exist
        TokenNotFoundError: If no token is configured, written or readable
    """
    try:
        info = inbox.find_item(item_id)
        token_path, text = inbox.read_token(item_id)
    except InboxItemNotFoundError:
        raise ItemNotFoundError(item_id)

    if token_path is None:
        raise TokenNotFoundError(item_id, f"No token configured for status '{info.status.value}'")
    if text is None:
        raise TokenNotFoundError(item_id, f"Token file not written: {token_path}")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Unreadable token file '{token_path}': {e}")
        raise TokenNotFoundError(item_id, f"Token file is not valid JSON: {token_path}")

    return TokenResponse(
        item_id=item_id,
        status=info.status,
        path=str(token_path),
        payload=payload,
    )
