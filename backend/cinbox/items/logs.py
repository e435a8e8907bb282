"""
Per-item logfile.

While an item is processed, everything logged below the ``cinbox``
logger is also written to ``<itemId>.log``. The file can move along with
the item folder on status changes.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Union

from .errors import LogStyleError

logger = logging.getLogger(__name__)


PACKAGE_LOGGER = "cinbox"

LOG_STYLES: Dict[str, str] = {
    "classic": "%(asctime)s %(levelname)-8s %(message)s",
    "filecv": "%(asctime)s [%(item_id)s] %(levelname)s %(name)s: %(message)s",
}
DEFAULT_LOG_STYLE = "classic"


def log_formatter(style: str) -> logging.Formatter:
    """
    Raises:
        LogStyleError: If style is unknown
    """
    key = (style or DEFAULT_LOG_STYLE).strip().lower()
    if key not in LOG_STYLES:
        raise LogStyleError(style, LOG_STYLES)
    return logging.Formatter(LOG_STYLES[key])


class _ItemIdFilter(logging.Filter):
    def __init__(self, item_id: str):
        super().__init__()
        self.item_id = item_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.item_id = self.item_id
        return True


class ItemLog:
    """
    Logfile of one item.

    Args:
        item_id: Item ID (also the logfile basename)
        folder: Folder the logfile is written to
        style: Formatter style (see LOG_STYLES)
    """

    def __init__(self, item_id: str, folder: Union[str, Path], style: str = DEFAULT_LOG_STYLE):
        self.item_id = item_id
        self.formatter = log_formatter(style)
        self.path = Path(folder) / f"{item_id}.log"
        self._handler: Optional[logging.FileHandler] = None

    @property
    def attached(self) -> bool:
        return self._handler is not None

    def attach(self) -> Path:
        if self._handler is not None:
            return self.path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        handler.setFormatter(self.formatter)
        handler.addFilter(_ItemIdFilter(self.item_id))
        handler.setLevel(logging.DEBUG)
        logging.getLogger(PACKAGE_LOGGER).addHandler(handler)
        self._handler = handler
        return self.path

    def detach(self) -> None:
        if self._handler is None:
            return
        logging.getLogger(PACKAGE_LOGGER).removeHandler(self._handler)
        self._handler.close()
        self._handler = None

    def move(self, folder: Union[str, Path]) -> Path:
        """Move the logfile into ``folder``, keeping it attached if it was."""
        new_path = Path(folder) / self.path.name
        if new_path == self.path:
            return self.path

        was_attached = self.attached
        self.detach()
        if self.path.exists():
            if new_path.exists():
                # append to a logfile left over from an earlier run
                with open(new_path, "a", encoding="utf-8") as target:
                    target.write(self.path.read_text(encoding="utf-8"))
                os.unlink(self.path)
            else:
                os.rename(self.path, new_path)
        self.path = new_path
        if was_attached:
            self.attach()
        logger.debug(f"Item logfile moved to '{new_path}'")
        return new_path
