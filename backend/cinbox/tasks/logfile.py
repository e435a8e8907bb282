"""
Copy the item logfile to a configurable place (e.g. next to the archived data).
"""

import logging
import shutil
from pathlib import Path
from typing import Optional

from ..folders import paths
from .base import Task, TaskKind

logger = logging.getLogger(__name__)


CONF_LOG_COPY_DIR = "LOG_COPY_DIR"
CONF_LOG_COPY_NAME = "LOG_COPY_NAME"


class LogfileCopy(Task):
    name = "LogfileCopy"
    label = "Copy logfile"
    kind = TaskKind.ONCE_PER_ITEM

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.copy_target: Optional[Path] = None

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        copy_dir = self.config.get(CONF_LOG_COPY_DIR)
        copy_name = self.config.get(CONF_LOG_COPY_NAME)
        if not copy_dir and not copy_name:
            return self.skip_it()

        logfile = self.context.logfile
        if logfile is None:
            logger.error(f"{self.name}: Item has no logfile to copy")
            self.set_error()
            return False

        folder = Path(copy_dir) if copy_dir else Path(logfile).parent
        name = copy_name if copy_name else Path(logfile).name
        self.copy_target = folder / name
        return True

    def init(self) -> bool:
        if not super().init():
            return False
        # touch target now, so that write errors show up before copying
        if not paths.touch_file(self.copy_target):
            logger.error(f"{self.name}: Logfile copy target is not writable: {self.copy_target}")
            self.set_error()
            return False
        return True

    def run(self) -> bool:
        logfile = Path(self.context.logfile)
        logger.info(f"Copying logfile '{logfile}' to '{self.copy_target}'...")
        try:
            shutil.copyfile(logfile, self.copy_target)
        except OSError as e:
            logger.error(f"{self.name}: Unable to copy logfile: {e}")
            self.set_error()
            return False

        self.set_done()
        return True
