"""
Filesystem helpers shared by folders, items and tasks.

All listings are sorted so that processing order is deterministic.
"""

import glob
import logging
import os
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from .errors import FolderDepthError, FolderError, FolderMoveError, MaskError

logger = logging.getLogger(__name__)


PathLike = Union[str, Path]

# stat() fields written to a directory snapshot, in this order
STAT_KEYS = (
    "dev", "ino", "mode", "nlink", "uid", "gid", "rdev",
    "size", "atime", "mtime", "ctime", "blksize", "blocks",
)

DEFAULT_MAX_DEPTH = 99


def relative_path(path: PathLike, base: PathLike) -> str:
    """
    Path of ``path`` relative to ``base``.

    Returns ``.`` when both are the same folder, so the result can be used
    directly as a config section name.
    """
    path_str = str(path).rstrip(os.sep)
    base_str = str(base).rstrip(os.sep)
    if path_str == base_str:
        return "."
    prefix = base_str + os.sep
    if path_str.startswith(prefix):
        return path_str[len(prefix):]
    return os.path.relpath(path_str, base_str)


def list_subfolders(root: PathLike, max_depth: int = DEFAULT_MAX_DEPTH) -> List[Path]:
    """
    All subfolders below ``root`` (not including root), depth-first, sorted.

    Raises:
        FolderDepthError: If the tree is deeper than max_depth
    """
    result: List[Path] = []

    def _walk(folder: Path, depth: int) -> None:
        children = sorted(p for p in folder.iterdir() if p.is_dir())
        for child in children:
            if depth > max_depth:
                raise FolderDepthError(
                    f"Folder '{child}' exceeds maximum folder depth ({max_depth})"
                )
            result.append(child)
            _walk(child, depth + 1)

    _walk(Path(root), 1)
    return result


def recursive_listing(folder: PathLike, only_dirs: bool = False) -> List[Path]:
    """Every entry below ``folder`` (files and folders), sorted by path."""
    entries: List[Path] = []
    for current, dirs, files in os.walk(folder):
        for name in dirs:
            entries.append(Path(current) / name)
        if not only_dirs:
            for name in files:
                entries.append(Path(current) / name)
    return sorted(entries)


def folder_listing(folder: PathLike) -> List[Path]:
    """Direct entries of ``folder``, sorted by name."""
    return sorted(Path(folder).iterdir())


def folder_files(folder: PathLike) -> List[Path]:
    """Direct plain files of ``folder``, sorted by name."""
    return [p for p in folder_listing(folder) if p.is_file()]


def dirlist_to_text(entries: Iterable[PathLike], exclude_keys: Optional[Sequence[str]] = None) -> str:
    """
    Textual snapshot of stat() values for each entry.

    Used to detect changes inside an item between two scans. Fields named
    in ``exclude_keys`` (e.g. ``atime``) are left out.

    Raises:
        FolderError: If exclude_keys is not a sequence
    """
    if exclude_keys is not None and isinstance(exclude_keys, str):
        raise FolderError(f"exclude_keys must be a list, got '{exclude_keys}'")
    excluded = set(exclude_keys or [])
    keys = [k for k in STAT_KEYS if k not in excluded]

    lines = []
    for entry in entries:
        if not os.path.lexists(entry):
            continue
        stat = os.stat(entry)
        values = [str(int(getattr(stat, f"st_{k}", 0))) for k in keys]
        lines.append(
            f"File: {entry}\nKeys: {';'.join(keys)}\nValues: {';'.join(values)}\n\n"
        )
    return "".join(lines)


def remove_empty_subfolders(folder: PathLike) -> bool:
    """
    Remove ``folder`` and all of its subfolders that are empty, bottom-up.

    Returns:
        True if ``folder`` itself was removed (or did not exist),
        False if something inside was not empty
    """
    folder = Path(folder)
    if not folder.exists():
        return True
    if not folder.is_dir():
        raise FolderError(f"Not a directory: {folder}")

    for child in sorted(p for p in folder.iterdir() if p.is_dir()):
        remove_empty_subfolders(child)

    try:
        folder.rmdir()
    except OSError:
        logger.debug(f"Folder not empty, kept: {folder}")
        return False
    return True


def remove_folder(folder: PathLike) -> None:
    """Remove a folder with all its contents."""
    shutil.rmtree(folder)


def touch_file(path: PathLike) -> bool:
    """
    Create parent folders of ``path`` and touch the file.

    Used to check writability before doing expensive work.

    Returns:
        True if the file exists and is writable afterwards
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch(exist_ok=True)
    except OSError as e:
        logger.error(f"Unable to touch file '{path}': {e}")
        return False
    return os.access(path, os.W_OK)


def is_writable(path: PathLike) -> bool:
    return os.access(path, os.W_OK)


def target_filename(source_file: PathLike, target_folder: PathLike) -> Path:
    """Path of ``source_file``'s basename inside ``target_folder``."""
    return Path(target_folder) / Path(source_file).name


def apply_mask(mask: str, value: str) -> str:
    """
    Apply a printf-style ``%s`` mask.

    Raises:
        MaskError: If the mask does not take exactly one ``%s``
    """
    try:
        return mask % value
    except (TypeError, ValueError) as e:
        raise MaskError(f"Invalid mask '{mask}': {e}")


def glob_entries(folder: PathLike, patterns: Iterable[str]) -> List[Path]:
    """Entries of ``folder`` matching any glob pattern, sorted, no duplicates."""
    base = glob.escape(str(folder))
    matches = set()
    for pattern in patterns:
        for match in glob.glob(os.path.join(base, pattern)):
            matches.add(Path(match))
    return sorted(matches)


def move_path(source: PathLike, target: PathLike) -> Path:
    """
    Rename ``source`` to ``target``.

    Raises:
        FolderMoveError: If the target exists or its parent is not writable
    """
    source, target = Path(source), Path(target)
    if target.exists():
        raise FolderMoveError(f"Cannot move '{source}': Target already exists: {target}")
    if not target.parent.is_dir() or not is_writable(target.parent):
        raise FolderMoveError(
            f"Cannot move '{source}': Target folder not writable: {target.parent}"
        )

    logger.debug(f"Moving '{source}' to '{target}'")
    os.rename(source, target)
    return target
