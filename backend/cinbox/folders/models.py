"""
Folder model and folder arena.

A Folder wraps one directory inside an item, knows its position in the
item tree and computes its target and staging paths by walking up the
parent chain.

Folders live in a FolderArena and refer to their parent by integer ID.
There are no owning back-references between folders.

Target resolution rules:
- TARGET_FOLDER unset:    parent's target + own basename
- TARGET_FOLDER relative: parent's target + configured value
- TARGET_FOLDER absolute: used as-is

Staging: on every level with an absolute target, the last path segment is
run through the TARGET_STAGE mask (default ``temp_%s``). Levels below keep
their segment, so the staging tree mirrors the target tree.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from ..config import (
    ConfigResolver,
    SECTION_DEFAULT,
    SECTION_UNDEFINED,
)
from .errors import FolderNotFoundError, TargetResolutionError
from .paths import apply_mask, move_path, relative_path

logger = logging.getLogger(__name__)


CONF_TARGET_FOLDER = "TARGET_FOLDER"
CONF_TARGET_STAGE = "TARGET_STAGE"
CONF_COPY_EXCLUDE = "COPY_EXCLUDE"

MASK_TARGET_TEMP = "temp_%s"

FOLDER_DEFAULTS: Dict[str, Any] = {
    CONF_TARGET_STAGE: MASK_TARGET_TEMP,
}


class Folder:
    """
    One directory of an item tree.

    Attributes:
        folder_id: Index in the owning arena
        path: Absolute path of this directory
        base_folder: Item root; sub_dir() is relative to it
        parent_id: Arena ID of the parent folder (None for the item root)
        item_id: ID of the owning item
        config: This folder's own ConfigResolver (never shared)
        temp_folder: Item temp folder (hash cache, changelog, command logs)
    """

    def __init__(
        self,
        arena: "FolderArena",
        folder_id: int,
        path: Union[str, Path],
        base_folder: Union[str, Path],
        parent_id: Optional[int] = None,
        item_id: Optional[str] = None,
        config: Optional[ConfigResolver] = None,
    ):
        self._arena = arena
        self.folder_id = folder_id
        self.path = Path(path)
        self.base_folder = Path(base_folder)
        self.parent_id = parent_id
        self.item_id = item_id
        self.config = config.copy() if config is not None else ConfigResolver()
        self.temp_folder: Optional[Path] = None
        self.has_target = False

    def __repr__(self) -> str:
        return f"Folder(id={self.folder_id}, sub_dir={self.sub_dir()!r})"

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def parent(self) -> Optional["Folder"]:
        return self._arena.parent_of(self)

    def sub_dir(self) -> str:
        """Path relative to the base folder; ``.`` for the base folder itself."""
        return relative_path(self.path, self.base_folder)

    # -------------------------------------------------------------------------
    # Config
    # -------------------------------------------------------------------------

    def config_for_folder(self, extra: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Effective settings: DEFAULT overlaid by own section.

        An own section that is missing or empty does not count; the
        UNDEFINED section applies instead.
        """
        sections = self.config.sections(extra)
        merged: Dict[str, Any] = dict(sections.get(SECTION_DEFAULT) or {})

        own = sections.get(self.sub_dir())
        if own:
            logger.debug(f"Folder '{self.sub_dir()}' has its own config section")
        else:
            own = sections.get(SECTION_UNDEFINED) or {}
            logger.debug(f"Folder '{self.sub_dir()}' uses {SECTION_UNDEFINED} config")

        merged.update(own)
        return merged

    def init_folder(self, extra: Optional[Mapping[str, Any]] = None) -> None:
        """Load folder defaults, then the effective folder settings."""
        self.config.set_defaults(FOLDER_DEFAULTS)
        values = self.config_for_folder(extra)
        if values:
            self.config.load_settings(values)
        self.has_target = bool(self.config.get(CONF_TARGET_FOLDER))

    # -------------------------------------------------------------------------
    # Target paths
    # -------------------------------------------------------------------------

    def target_folder_raw(self) -> Optional[str]:
        """TARGET_FOLDER as configured (placeholders resolved), or None."""
        raw = self.config.get(CONF_TARGET_FOLDER)
        self.has_target = bool(raw)
        return raw or None

    def is_target_absolute(self) -> Optional[bool]:
        """True/False for absolute/relative TARGET_FOLDER, None if unset."""
        raw = self.target_folder_raw()
        if raw is None:
            return None
        return os.path.isabs(raw)

    def target_stage_mask(self) -> Optional[str]:
        return self.config.get(CONF_TARGET_STAGE) or None

    def target_folder(self, staging: bool = False) -> str:
        """
        Resolve the target path of this folder.

        Args:
            staging: Return the staging path instead of the final one

        Raises:
            TargetResolutionError: If the target is relative (or unset) and
                there is no parent, or staging has no TARGET_STAGE mask
        """
        raw = self.target_folder_raw()

        if raw is not None and os.path.isabs(raw):
            target = raw.rstrip(os.sep) or os.sep
            if not staging:
                return target
            mask = self.target_stage_mask()
            if not mask:
                raise TargetResolutionError(
                    f"No {CONF_TARGET_STAGE} set for '{self.sub_dir()}'"
                )
            return os.path.join(
                os.path.dirname(target), apply_mask(mask, os.path.basename(target))
            )

        parent = self.parent
        if parent is None:
            raise TargetResolutionError(
                f"Target path ({raw}) for '{self.sub_dir()}' is relative, "
                "but no parent folder is set"
            )

        segment = raw if raw is not None else self.name
        return parent.target_folder(staging) + os.sep + segment

    def own_absolute_target(self) -> Optional[str]:
        """Resolved target if THIS folder configures an absolute TARGET_FOLDER."""
        if self.is_target_absolute():
            return self.target_folder()
        return None

    # -------------------------------------------------------------------------
    # Filesystem
    # -------------------------------------------------------------------------

    def move_folder(self, new_path: Union[str, Path]) -> Path:
        """
        Rename this folder to ``new_path``.

        Raises:
            FolderMoveError: If the target exists or its parent is not writable
        """
        new_path = move_path(self.path, new_path)

        if self.base_folder == self.path:
            self.base_folder = new_path
        self.path = new_path
        return new_path


class FolderArena:
    """
    Owner of all Folder objects of one item tree, indexed by integer ID.
    """

    def __init__(self):
        self._folders: Dict[int, Folder] = {}
        self._next_id = 0

    def add(
        self,
        path: Union[str, Path],
        base_folder: Union[str, Path],
        parent_id: Optional[int] = None,
        item_id: Optional[str] = None,
        config: Optional[ConfigResolver] = None,
    ) -> Folder:
        """Create a folder in this arena and return it."""
        if parent_id is not None and parent_id not in self._folders:
            raise FolderNotFoundError(f"Parent folder ID not in arena: {parent_id}")

        folder = Folder(
            arena=self,
            folder_id=self._next_id,
            path=path,
            base_folder=base_folder,
            parent_id=parent_id,
            item_id=item_id,
            config=config,
        )
        self._folders[folder.folder_id] = folder
        self._next_id += 1
        return folder

    def get(self, folder_id: int) -> Folder:
        """
        Raises:
            FolderNotFoundError: If folder_id is unknown
        """
        folder = self._folders.get(folder_id)
        if folder is None:
            raise FolderNotFoundError(f"Folder ID not in arena: {folder_id}")
        return folder

    def find(self, path: Union[str, Path]) -> Optional[Folder]:
        path = Path(path)
        for folder in self._folders.values():
            if folder.path == path:
                return folder
        return None

    def parent_of(self, folder: Folder) -> Optional[Folder]:
        if folder.parent_id is None:
            return None
        return self.get(folder.parent_id)

    def children_of(self, folder: Folder) -> List[Folder]:
        return sorted(
            (f for f in self._folders.values() if f.parent_id == folder.folder_id),
            key=lambda f: f.name,
        )

    def walk(self, root_id: int) -> List[Folder]:
        """Root first, then children depth-first in alphabetical order."""
        root = self.get(root_id)
        result = [root]
        for child in self.children_of(root):
            result.extend(self.walk(child.folder_id))
        return result

    def clear(self) -> None:
        self._folders.clear()
        self._next_id = 0

    def __len__(self) -> int:
        return len(self._folders)

    def __iter__(self) -> Iterator[Folder]:
        return iter(list(self._folders.values()))

    def __contains__(self, folder_id: int) -> bool:
        return folder_id in self._folders
