"""
Filename cleanup.

Each name in CLEAN_SOURCE selects a character mapping. Mappings are
applied in the configured order to the names of all direct entries of
the folder.
"""

import logging
import os
from typing import Dict, List

from ..folders import paths
from .base import Task

logger = logging.getLogger(__name__)


CONF_CLEAN_SOURCE = "CLEAN_SOURCE"

CLEAN_MAPPINGS: Dict[str, Dict[str, str]] = {
    "umlauts": {
        "ä": "ae", "ü": "ue", "ö": "oe", "ß": "ss",
        "Ä": "AE", "Ü": "UE", "Ö": "OE",
    },
    "illegal": {"?": "_", "*": "_", ":": "_"},
    "whitespace": {" ": "_"},
    "slashes": {"\\": "_", "/": "_"},
    "brackets": {
        "(": "_", ")": "_", "[": "_", "]": "_",
        "{": "_", "}": "_", "<": "_", ">": "_",
    },
    "quotation": {"„": '"', "“": '"', "´": "'", "`": "'"},
    "quotation2": {"„": "_", "“": "_", "´": "_", "`": "_", '"': "_", "'": "_"},
    "picky": {"#": "_", ",": "_", ";": "_", "&": "and"},
}


def clean_name(name: str, mapping_names: List[str]) -> str:
    """Apply the named mappings to ``name``, one after the other."""
    for mapping_name in mapping_names:
        for search, replace in CLEAN_MAPPINGS[mapping_name].items():
            name = name.replace(search, replace)
    return name


class CleanFilenames(Task):
    name = "CleanFilenames"
    label = "Clean filenames"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.mappings: List[str] = []

    def load_settings(self) -> bool:
        if not super().load_settings():
            return False

        value = self.config.get(CONF_CLEAN_SOURCE)
        if not value:
            return self.skip_it()
        if not self.option_is_list(value, CONF_CLEAN_SOURCE):
            return False

        for mapping in value:
            key = str(mapping).strip().lower()
            if key not in CLEAN_MAPPINGS:
                logger.error(
                    f"Invalid {CONF_CLEAN_SOURCE} '{mapping}'. "
                    f"Available: {', '.join(CLEAN_MAPPINGS)}"
                )
                self.set_config_error()
                return False
            self.mappings.append(key)
        return True

    def run(self) -> bool:
        errors = 0
        for entry in paths.folder_listing(self.source_folder):
            cleaned = clean_name(entry.name, self.mappings)
            if cleaned == entry.name:
                continue

            target = entry.with_name(cleaned)
            if os.path.lexists(target):
                logger.error(f"Cannot rename '{entry.name}' to '{cleaned}': Target already exists")
                errors += 1
                continue

            try:
                os.rename(entry, target)
            except OSError as e:
                logger.error(f"Cannot rename '{entry.name}' to '{cleaned}': {e}")
                errors += 1
                continue
            logger.info(f"Renamed '{entry.name}' to '{cleaned}'")

        if errors:
            self.set_pbct()
            return False

        self.set_done()
        return True
