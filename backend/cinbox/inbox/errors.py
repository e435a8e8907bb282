"""
Inbox error hierarchy.

Errors raised here stop the inbox itself (bad config, broken processing
folders). Per-item failures are ItemErrors and only affect one item.
"""


class InboxError(Exception):
    """Base exception for inbox failures."""

    pass


class InboxConfigError(InboxError):
    """Inbox settings are missing or invalid."""

    pass


class ProcessingFolderError(InboxError):
    """A processing folder is missing, not a directory or not writable."""

    pass


class ItemNotFoundError(InboxError):
    """Raised when no item with the given ID exists in any status folder."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")
