"""
Hash sidecar cache.

Each source file's digest is persisted as a plain-text sidecar in a temp
tree that mirrors the source tree:

    <base>/sub/file.wav  ->  <temp>/sub/file.wav.md5

The cache is keyed by (absolute source path, algorithm). A present,
non-trivial entry means the digest does not need to be recomputed.
It assumes a single writer.
"""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..folders import paths
from .digest import compute_file_hash
from .errors import HashCacheError, HashFileNotFoundError

logger = logging.getLogger(__name__)


PathLike = Union[str, Path]

# A cache file of 1 byte or less (touched, or just a newline) counts as empty
MIN_CACHE_SIZE = 1


def save_hash_to_file(path: PathLike, hash_code: str) -> None:
    """
    Write ``lowercase(hash_code) + newline`` to ``path``.

    Raises:
        HashCacheError: If the file cannot be written
    """
    if not paths.touch_file(path):
        raise HashCacheError(f"Hash cache file is not writable: {path}")
    Path(path).write_text(hash_code.strip().lower() + "\n", encoding="ascii")


def load_hash_from_file(path: PathLike) -> str:
    """
    Read a digest from a hash file: line breaks normalized, trimmed, lowercased.

    Raises:
        HashFileNotFoundError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise HashFileNotFoundError(f"Hashcode file does not exist: {path}")
    contents = path.read_text(encoding="utf-8", errors="replace")
    contents = contents.replace("\r\n", "\n").replace("\r", "\n")
    return contents.strip().lower()


class HashCache:
    """
    Sidecar cache for one item.

    Args:
        base_folder: Item root (source tree)
        temp_folder: Item temp folder (mirror tree)
        hash_type: Lowercase algorithm name
    """

    def __init__(self, base_folder: PathLike, temp_folder: PathLike, hash_type: str):
        self.base_folder = str(base_folder)
        self.temp_folder = str(temp_folder)
        self.hash_type = hash_type.lower()

    def cache_path(self, source_file: PathLike) -> Path:
        """Mirrored sidecar path: base substring replaced by temp, algorithm suffix."""
        mirrored = str(source_file).replace(self.base_folder, self.temp_folder, 1)
        return Path(f"{mirrored}.{self.hash_type}")

    def has_entry(self, source_file: PathLike) -> bool:
        """True if a non-trivial cache entry exists."""
        cache_file = self.cache_path(source_file)
        return cache_file.is_file() and cache_file.stat().st_size > MIN_CACHE_SIZE

    def check_writable(self, source_file: PathLike) -> bool:
        """Touch the cache path before hashing, so write errors show up early."""
        return paths.touch_file(self.cache_path(source_file))

    def save(self, source_file: PathLike, hash_code: str) -> Path:
        cache_file = self.cache_path(source_file)
        save_hash_to_file(cache_file, hash_code)
        return cache_file

    def load(self, source_file: PathLike) -> str:
        """
        Raises:
            HashFileNotFoundError: If no entry exists
        """
        return load_hash_from_file(self.cache_path(source_file))

    def get(self, source_file: PathLike) -> Optional[str]:
        """Cached digest, or None if there is no usable entry."""
        if not self.has_entry(source_file):
            return None
        return self.load(source_file) or None

    def remove(self, source_file: PathLike) -> None:
        """
        Purge an entry. A missing entry is fine.

        Raises:
            HashCacheError: If the file exists but cannot be deleted
        """
        cache_file = self.cache_path(source_file)
        if not cache_file.exists():
            return
        try:
            os.unlink(cache_file)
        except OSError as e:
            raise HashCacheError(f"Could not delete temp hashfile '{cache_file}': {e}")
        logger.debug(f"Removed hash cache entry: {cache_file}")

    def compute(self, source_file: PathLike) -> str:
        """Compute and store the digest of ``source_file``."""
        hash_code = compute_file_hash(source_file, self.hash_type)
        self.save(source_file, hash_code)
        return hash_code

    def folder_hashes(self, folder: PathLike) -> Dict[str, str]:
        """
        Cached digests of all plain files in ``folder``, keyed by path.

        Raises:
            HashFileNotFoundError: If any file has no cache entry
        """
        result: Dict[str, str] = {}
        missing: List[str] = []
        for source_file in paths.folder_files(folder):
            hash_code = self.get(source_file)
            if not hash_code:
                missing.append(str(source_file))
                continue
            result[str(source_file)] = hash_code
        if missing:
            raise HashFileNotFoundError(
                f"No cached {self.hash_type} hash for {len(missing)} file(s): {', '.join(missing)}"
            )
        return result
