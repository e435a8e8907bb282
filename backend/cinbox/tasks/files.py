"""
File presence and validity checks.

All three tasks match glob patterns against the direct entries of one
folder (files and subfolders alike).
"""

import logging
from pathlib import Path
from typing import List, Sequence

from ..folders import paths
from .base import Task

logger = logging.getLogger(__name__)


CONF_FILES_WAIT = "FILES_WAIT"
CONF_MUST_EXIST = "MUST_EXIST"
CONF_FILES_VALID = "FILES_VALID"
CONF_FILES_INVALID = "FILES_INVALID"


def matching_entries(folder: Path, patterns: Sequence[str]) -> List[Path]:
    return paths.glob_entries(folder, patterns)


def non_matching_entries(folder: Path, patterns: Sequence[str]) -> List[Path]:
    """Entries of ``folder`` matched by none of ``patterns``. Dotfiles are not listed."""
    matching = set(matching_entries(folder, patterns))
    return [entry for entry in paths.glob_entries(folder, ["*"]) if entry not in matching]


def missing_patterns(folder: Path, patterns: Sequence[str]) -> List[str]:
    """Patterns that match nothing in ``folder``."""
    return [p for p in patterns if not paths.glob_entries(folder, [p])]


class _PatternTask(Task):
    """Task configured by one required list of glob patterns."""

    option_name = ""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.patterns: List[str] = []

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        value = self.config.get(self.option_name)
        if not value:
            return self.skip_it()
        if not self.option_is_list(value, self.option_name):
            return False

        self.patterns = [str(p) for p in value]
        return True


class FilesWait(_PatternTask):
    """Wait until every FILES_WAIT pattern matches at least one entry."""

    name = "FilesWait"
    label = "Wait for files"
    option_name = CONF_FILES_WAIT

    def run(self) -> bool:
        missing = missing_patterns(self.source_folder, self.patterns)
        if missing:
            for pattern in missing:
                logger.info(f"Waiting for files matching '{pattern}' in '{self.folder.sub_dir()}'")
            self.set_wait()
            return False

        self.set_done()
        return True


class FilesMustExist(_PatternTask):
    name = "FilesMustExist"
    label = "Check for required files"
    option_name = CONF_MUST_EXIST

    def run(self) -> bool:
        missing = missing_patterns(self.source_folder, self.patterns)
        if missing:
            for pattern in missing:
                logger.error(f"Required file missing: '{pattern}' in '{self.folder.sub_dir()}'")
            self.set_pbct()
            return False

        self.set_done()
        return True


class FilesValid(Task):
    """
    Accept only entries matching FILES_VALID and none matching FILES_INVALID.

    Every offending entry is logged before the status is set, so one run
    reports all of them.
    """

    name = "FilesValid"
    label = "Validate filenames"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.files_valid: List[str] = []
        self.files_invalid: List[str] = []

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        valid = self.config.get(CONF_FILES_VALID)
        invalid = self.config.get(CONF_FILES_INVALID)
        if not valid and not invalid:
            return self.skip_it()

        if valid:
            if not self.option_is_list(valid, CONF_FILES_VALID):
                return False
            self.files_valid = [str(p) for p in valid]
        if invalid:
            if not self.option_is_list(invalid, CONF_FILES_INVALID):
                return False
            self.files_invalid = [str(p) for p in invalid]
        return True

    def run(self) -> bool:
        problems = 0

        if self.files_invalid:
            for entry in matching_entries(self.source_folder, self.files_invalid):
                logger.error(f"Invalid file found: {entry}")
                problems += 1

        if self.files_valid:
            for entry in non_matching_entries(self.source_folder, self.files_valid):
                logger.error(f"File is not valid: {entry}")
                problems += 1

        if problems:
            self.set_pbct()
            return False

        self.set_done()
        return True
