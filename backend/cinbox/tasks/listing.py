"""
Directory listing of the whole item as CSV.
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path

from ..config import SECTION_INBOX
from ..folders import paths
from .base import Task, TaskKind

logger = logging.getLogger(__name__)


CONF_DIRLIST_FILE = "DIRLIST_FILE"

CSV_HEADER = ["Type", "Path", "Filename", "Bytes", "CTime", "MTime", "ATime"]


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).astimezone().isoformat(timespec="seconds")


class DirListCSV(Task):
    """Write ``<item>/<DIRLIST_FILE>.csv`` once per item. Never overwrites."""

    name = "DirListCSV"
    label = "Directory listing (CSV)"
    kind = TaskKind.ONCE_PER_ITEM

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.dirlist_file: Path = Path()

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        name = self.config.get_from_section(SECTION_INBOX, CONF_DIRLIST_FILE)
        if isinstance(name, str):
            name = name.strip()
        if not name:
            return self.skip_it()
        if not isinstance(name, str):
            logger.error(f"Invalid {CONF_DIRLIST_FILE}: Must be a single filename")
            self.set_config_error()
            return False

        self.dirlist_file = Path(self.folder.base_folder) / f"{name}.csv"
        return True

    def run(self) -> bool:
        if self.dirlist_file.exists():
            logger.info(f"Directory listing already exists, not overwriting: {self.dirlist_file}")
            self.skip_it()
            return True

        base = Path(self.folder.base_folder)
        entries = [e for e in paths.recursive_listing(base) if e != self.dirlist_file]
        if not entries:
            logger.error(f"Directory listing of '{base}' is empty")
            self.set_pbct()
            return False

        with open(self.dirlist_file, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_ALL)
            writer.writerow(CSV_HEADER)
            for entry in entries:
                stat = os.stat(entry)
                writer.writerow([
                    "d" if entry.is_dir() else "f",
                    paths.relative_path(entry.parent, base),
                    entry.name,
                    stat.st_size,
                    _iso(stat.st_ctime),
                    _iso(stat.st_mtime),
                    _iso(stat.st_atime),
                ])

        logger.info(f"Directory listing written: {self.dirlist_file} ({len(entries)} entries)")
        self.set_done()
        return True
