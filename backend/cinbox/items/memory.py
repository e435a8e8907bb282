"""
Item memory: facts shared between tasks during one item run.

Each key holds an ordered list of entries. Entries are keyed by a
monotonic sequence number, and carry the wall-clock time they were
stored as data.
"""

import itertools
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .errors import MemoryKeyError

logger = logging.getLogger(__name__)


MEMORY_TS_FORMAT = "%Y%m%d-%H%M%S"


@dataclass(frozen=True)
class MemoryEntry:
    sequence: int
    stored_at: datetime
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.stored_at.strftime(MEMORY_TS_FORMAT),
            "unixTime": int(self.stored_at.timestamp()),
            "value": self.value,
        }


class ItemMemory:
    """Key -> list of MemoryEntry, for one item run."""

    def __init__(self, item_id: str = ""):
        self.item_id = item_id
        self._store: Dict[str, List[MemoryEntry]] = {}
        self._sequence = itertools.count(1)

    def remember(self, key: str, value: Any, append: bool = False) -> MemoryEntry:
        """
        Store ``value`` under ``key``.

        Args:
            append: Keep earlier entries of the key (default: replace them)
        """
        if not key:
            raise MemoryKeyError(f"Item memory '{self.item_id}': Empty key")

        entry = MemoryEntry(sequence=next(self._sequence), stored_at=datetime.now(), value=value)
        if append and key in self._store:
            self._store[key].append(entry)
        else:
            self._store[key] = [entry]

        logger.debug(f"Item memory '{self.item_id}': Remembering '{key}' as {value!r}")
        return entry

    def recall_entries(self, key: str, strict: bool = True, unique: bool = False) -> Optional[List[MemoryEntry]]:
        """
        Entries of ``key`` in the order they were stored.

        Args:
            strict: Raise if the key is unknown (else return None)
            unique: Drop entries whose value equals an earlier one

        Raises:
            MemoryKeyError: On an unknown key with strict=True
        """
        if key not in self._store:
            if strict:
                raise MemoryKeyError(
                    f"Item memory '{self.item_id}': Unable to recall key '{key}', because it's not set"
                )
            return None

        entries = list(self._store[key])
        if unique:
            kept: List[MemoryEntry] = []
            for entry in entries:
                if all(entry.value != k.value for k in kept):
                    kept.append(entry)
            entries = kept
        return entries

    def recall(self, key: str, strict: bool = True, unique: bool = False) -> Optional[Dict[int, Any]]:
        """Values of ``key`` as {sequence: value}, or None (non-strict, unknown key)."""
        entries = self.recall_entries(key, strict, unique)
        if entries is None:
            return None
        return {e.sequence: e.value for e in entries}

    def recall_nice(self, key: str, strict: bool = False, unique: bool = False) -> List[Dict[str, Any]]:
        """Entries as ``{"timestamp", "unixTime", "value"}`` dicts."""
        entries = self.recall_entries(key, strict, unique)
        if not entries:
            return []
        return [e.to_dict() for e in entries]

    def forget(self, key: str) -> None:
        """Remove ``key``. Forgetting an unknown key is fine."""
        if not key:
            raise MemoryKeyError(f"Item memory '{self.item_id}': Cannot forget empty key")
        self._store.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._store.keys())

    def clear(self) -> None:
        self._store.clear()
