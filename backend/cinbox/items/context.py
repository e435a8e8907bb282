"""
Per-item run context.

Threaded through the pipeline call chain instead of giving tasks a handle
on the item. Scoped to one item run and discarded afterwards.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from ..folders import Folder, FolderArena
from .memory import ItemMemory


@dataclass
class ItemContext:
    item_id: str
    base_folder: Path
    temp_folder: Path
    arena: FolderArena
    root_id: int = 0
    memory: ItemMemory = field(default_factory=ItemMemory)
    logfile: Optional[Path] = None

    @property
    def root(self) -> Folder:
        return self.arena.get(self.root_id)

    def subfolders(self) -> Dict[str, Folder]:
        """All folders of the item keyed by sub_dir, depth-first, alphabetical."""
        return {f.sub_dir(): f for f in self.arena.walk(self.root_id)}
