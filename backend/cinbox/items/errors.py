"""
Item error hierarchy.

All errors inherit from ItemError for easy catching. An ItemError raised
while an item is processed moves the item to ERROR.
"""


class ItemError(Exception):
    """Base exception for item failures."""

    pass


class InvalidItemIdError(ItemError):
    """Item ID does not match any configured ITEM_ID_VALID pattern."""

    def __init__(self, item_id: str, patterns):
        self.item_id = item_id
        self.patterns = list(patterns)
        super().__init__(
            f"Invalid item ID '{item_id}': Does not match {', '.join(self.patterns)}"
        )


class InvalidStatusTransitionError(ItemError):
    """Raised when attempting an illegal item status switch."""

    def __init__(self, item_id: str, current_status: str, target_status: str):
        self.item_id = item_id
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            f"Invalid item status transition for '{item_id}': "
            f"{current_status} -> {target_status}"
        )


class BucketScriptError(ItemError):
    """Bucket script failed or returned no bucket."""

    pass


class MemoryKeyError(ItemError):
    """Memory key is empty, or missing on a strict recall."""

    pass


class ProcessingError(ItemError):
    """Item task list finished with errors."""

    pass


class LogStyleError(ItemError):
    """Unknown item logfile style."""

    def __init__(self, style: str, available):
        self.style = style
        self.available = list(available)
        super().__init__(
            f"Invalid log style '{style}'. Available: {', '.join(self.available)}"
        )
