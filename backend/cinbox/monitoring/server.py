"""
Monitoring server endpoints.

Read-only HTTP API for inbox and item state visibility.
Intended for trusted LAN access by archive operators.

Observation only, no control operations.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request

from ..items.models import ItemStatus
from .errors import ItemNotFoundError, TokenNotFoundError
from .models import (
    HealthResponse,
    InboxStateResponse,
    ItemDetail,
    ItemListResponse,
    TokenResponse,
)
from .queries import (
    get_inbox_state,
    get_item_detail,
    get_item_summaries,
    get_item_token,
)


router = APIRouter(prefix="/monitor", tags=["monitoring"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns:
        Simple status indicator
    """
    return HealthResponse(status="ok")


@router.get("/inbox", response_model=InboxStateResponse)
async def inbox_state(request: Request):
    """
    Inbox overview: item counts per status and processing loop state.
    """
    inbox = request.app.state.inbox
    return get_inbox_state(inbox)


@router.get("/items", response_model=ItemListResponse)
async def list_items(request: Request, status: Optional[ItemStatus] = None):
    """
    List items found in the status folders.

    Args:
        status: Only list items in this status folder
    """
    inbox = request.app.state.inbox
    return get_item_summaries(inbox, status)


@router.get("/items/{item_id}", response_model=ItemDetail)
async def get_item(item_id: str, request: Request):
    """
    Retrieve detailed information about one item.

    Raises:
        404: If the item ID does not exist
    """
    inbox = request.app.state.inbox

    try:
        return get_item_detail(inbox, item_id)
    except ItemNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/items/{item_id}/token", response_model=TokenResponse)
async def get_item_token_endpoint(item_id: str, request: Request):
    """
    Retrieve the token file of an item's current status.

    Raises:
        404: If the item does not exist or has no token file
    """
    inbox = request.app.state.inbox

    try:
        return get_item_token(inbox, item_id)
    except (ItemNotFoundError, TokenNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
