"""
Content digests and hash output formats.
"""

import hashlib
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Union

from ..config import Placeholder, resolve_string
from .errors import UnsupportedHashTypeError


CHUNK_SIZE = 1024 * 1024


def supported_hash_types() -> FrozenSet[str]:
    """Lowercase names of all algorithms hashlib can compute here."""
    return frozenset(a.lower() for a in hashlib.algorithms_available)


def validate_hash_type(hash_type: str) -> str:
    """
    Normalize and check a hash algorithm name.

    Returns:
        Lowercase algorithm name

    Raises:
        UnsupportedHashTypeError: If the algorithm is not available
    """
    normalized = (hash_type or "").strip().lower()
    available = supported_hash_types()
    if normalized not in available:
        raise UnsupportedHashTypeError(normalized, available)
    return normalized


def compute_file_hash(path: Union[str, Path], hash_type: str) -> str:
    """
    Compute the hex digest of a file's contents.

    Reads in chunks so large media files do not need to fit in memory.
    """
    algorithm = hashlib.new(validate_hash_type(hash_type))
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            algorithm.update(chunk)
    # shake_* digests need a length
    if algorithm.name.startswith("shake_"):
        return algorithm.hexdigest(32).lower()
    return algorithm.hexdigest().lower()


def compare_hashes(hash1: str, hash2: str) -> bool:
    """Case-insensitive digest comparison."""
    return (hash1 or "").strip().lower() == (hash2 or "").strip().lower()


class HashOutputMode(str, Enum):
    """Where hash output files are written."""

    FILE = "file"        # one hash file per source file
    FOLDER = "folder"    # one merged hash file per folder


class HashFileFormat(str, Enum):
    """Line format of hash output files."""

    GNU = "gnu"
    WIN = "win"
    MACOS = "macos"


HASH_LINE_MASKS: Dict[HashFileFormat, str] = {
    HashFileFormat.GNU: "[@HASHCODE@]  [@FILENAME@]\n",
    HashFileFormat.WIN: "[@HASHCODE@]  [@FILENAME@]\r\n",
    HashFileFormat.MACOS: "[@FILENAME@]  [@HASHCODE@]\n",
}


def format_hash_line(
    file_format: HashFileFormat, hash_type: str, hash_code: str, filename: Union[str, Path]
) -> str:
    """One output line (line break included) for ``filename``."""
    table = {
        Placeholder.HASHTYPE.value: hash_type,
        Placeholder.HASHCODE.value: hash_code,
        Placeholder.FILENAME.value: Path(filename).name,
    }
    return resolve_string(HASH_LINE_MASKS[HashFileFormat(file_format)], table)
