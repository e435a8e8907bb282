"""
Monitoring-specific errors.

Read-only monitoring should never fail silently.
Explicit error responses for missing items or token files.
"""


class MonitoringError(Exception):
    """Base exception for monitoring operations."""
    pass


class ItemNotFoundError(MonitoringError):
    """Raised when a requested item ID is in none of the status folders."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class TokenNotFoundError(MonitoringError):
    """Raised when an item has no token file for its current status."""

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"No token for item {item_id}: {reason}")
