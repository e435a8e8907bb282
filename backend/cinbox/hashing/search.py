"""
Search for pre-existing digests in sidecar files (e.g. ``*.md5``).
"""

from pathlib import Path
from typing import Dict, Iterable, List, Union

from ..folders import paths
from .errors import HashError


def find_hash_in_file(path: Union[str, Path], hash_code: str) -> Dict[int, str]:
    """
    Lines of ``path`` containing ``hash_code`` (case-insensitive).

    Returns:
        {line number: line} for every matching line (may be empty)

    Raises:
        HashError: If hash_code is empty
    """
    needle = (hash_code or "").strip().lower()
    if not needle:
        raise HashError("Empty hashcode given")

    matches: Dict[int, str] = {}
    text = Path(path).read_text(encoding="utf-8", errors="replace")
    for number, line in enumerate(text.replace("\r\n", "\n").replace("\r", "\n").split("\n"), start=1):
        if needle in line.lower():
            matches[number] = line
    return matches


def search_hash(
    folder: Union[str, Path], patterns: Iterable[str], hash_code: str
) -> Dict[str, Dict[int, str]]:
    """
    Search ``hash_code`` in every plain file of ``folder`` matching ``patterns``.

    Returns:
        {search file: {line number: line}} for files with at least one match
    """
    found: Dict[str, Dict[int, str]] = {}
    for candidate in paths.glob_entries(folder, patterns):
        if not candidate.is_file():
            continue
        lines = find_hash_in_file(candidate, hash_code)
        if lines:
            found[str(candidate)] = lines
    return found


def find_duplicates(hashes: Dict[str, str]) -> Dict[str, List[str]]:
    """Digests shared by more than one file: {digest: [files]}."""
    by_hash: Dict[str, List[str]] = {}
    for filename, hash_code in sorted(hashes.items()):
        by_hash.setdefault(hash_code.lower(), []).append(filename)
    return {h: files for h, files in by_hash.items() if len(files) > 1}
