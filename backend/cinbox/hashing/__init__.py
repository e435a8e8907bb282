"""
Hashing — digests, sidecar cache, pre-existing hash search, output formats.

Public API:
    HashCache — Mirrored sidecar cache for one item
    compute_file_hash — Chunked file digest
    save_hash_to_file / load_hash_from_file — Sidecar file I/O
    search_hash — Look up a digest in sidecar files
    format_hash_line — GNU / Windows / macOS output lines
"""

from .errors import (
    HashError,
    UnsupportedHashTypeError,
    HashFileNotFoundError,
    HashCacheError,
)
from .digest import (
    HashOutputMode,
    HashFileFormat,
    HASH_LINE_MASKS,
    supported_hash_types,
    validate_hash_type,
    compute_file_hash,
    compare_hashes,
    format_hash_line,
)
from .cache import HashCache, save_hash_to_file, load_hash_from_file
from .search import find_hash_in_file, search_hash, find_duplicates

__all__ = [
    # Errors
    "HashError",
    "UnsupportedHashTypeError",
    "HashFileNotFoundError",
    "HashCacheError",
    # Digests
    "HashOutputMode",
    "HashFileFormat",
    "HASH_LINE_MASKS",
    "supported_hash_types",
    "validate_hash_type",
    "compute_file_hash",
    "compare_hashes",
    "format_hash_line",
    # Cache
    "HashCache",
    "save_hash_to_file",
    "load_hash_from_file",
    # Search
    "find_hash_in_file",
    "search_hash",
    "find_duplicates",
]
