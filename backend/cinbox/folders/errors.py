"""
Folder error hierarchy.

Raised for filesystem layout problems. Task-level problems are expressed
as task statuses instead.
"""


class FolderError(Exception):
    """Base exception for folder model failures."""

    pass


class FolderNotFoundError(FolderError):
    """Folder ID is unknown to the arena, or a path does not exist."""

    pass


class FolderMoveError(FolderError):
    """Folder could not be moved (target exists or parent not writable)."""

    pass


class FolderDepthError(FolderError):
    """Folder tree is deeper than MAX_FOLDER_DEPTH."""

    pass


class TargetResolutionError(FolderError):
    """Target folder path could not be resolved."""

    pass


class MaskError(FolderError):
    """A printf-style ``%s`` mask is invalid."""

    pass
