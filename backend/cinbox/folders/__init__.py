"""
Folders — directory model with config inheritance and target resolution.

Public API:
    Folder — One directory of an item tree
    FolderArena — Integer-indexed owner of all folders of one item
    paths — Sorted listings, snapshots and cleanup helpers
"""

from .errors import (
    FolderError,
    FolderNotFoundError,
    FolderMoveError,
    FolderDepthError,
    TargetResolutionError,
    MaskError,
)
from .models import (
    Folder,
    FolderArena,
    CONF_TARGET_FOLDER,
    CONF_TARGET_STAGE,
    CONF_COPY_EXCLUDE,
    MASK_TARGET_TEMP,
    FOLDER_DEFAULTS,
)
from . import paths

__all__ = [
    # Errors
    "FolderError",
    "FolderNotFoundError",
    "FolderMoveError",
    "FolderDepthError",
    "TargetResolutionError",
    "MaskError",
    # Models
    "Folder",
    "FolderArena",
    "CONF_TARGET_FOLDER",
    "CONF_TARGET_STAGE",
    "CONF_COPY_EXCLUDE",
    "MASK_TARGET_TEMP",
    "FOLDER_DEFAULTS",
    # Helpers
    "paths",
]
