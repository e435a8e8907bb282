"""
Hierarchical configuration resolver.

Holds the raw config text, a placeholder table and a flat settings map
for one scope (inbox, item or folder).

Design rules:
- Placeholders are resolved against the RAW text, before parsing
- Resolution is pure: same text + same table = same result
- Resolving before init_placeholders() fails fast
- Each Folder receives its own copy (see copy()); resolvers are never shared
"""

import copy as _copy
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import ConfigError, ConfigFileError, PlaceholderError, SettingsError
from .parser import Section, Sections, parse_ini_text
from .placeholders import (
    datetime_placeholders,
    environment_placeholders,
    normalize_table,
    resolve_string,
    to_token,
)

logger = logging.getLogger(__name__)


# Reserved section names
SECTION_DEFAULT = "__DEFAULT__"
SECTION_UNDEFINED = "__UNDEFINED__"
SECTION_INBOX = "__INBOX__"

RESERVED_SECTIONS = (SECTION_DEFAULT, SECTION_UNDEFINED, SECTION_INBOX)


class ConfigResolver:
    """
    Config text + placeholder table + settings for one scope.

    Typical use:
        config = ConfigResolver()
        config.load_file("cinbox.ini")
        config.init_placeholders()
        config.set_defaults(DEFAULTS)
        config.load_settings(config.section_config(SECTION_INBOX))
    """

    def __init__(self, text: Optional[str] = None):
        self._raw: Optional[str] = None
        self._placeholders: Dict[str, str] = {}
        self._settings: Dict[str, Any] = {}

        self.config_file: Optional[Path] = None
        self._file_props: Optional[Tuple[int, float]] = None
        self._changed = False

        if text is not None:
            self.load(text)

    # -------------------------------------------------------------------------
    # Raw text
    # -------------------------------------------------------------------------

    def load(self, text: str) -> None:
        """
        Load raw config text. No placeholders are resolved at this point.

        Raises:
            ConfigError: If text is empty
        """
        if not text or not text.strip():
            raise ConfigError("Unable to load config from string: Empty string given")
        self._raw = text

    @property
    def raw(self) -> Optional[str]:
        return self._raw

    def set_config_file(self, path: Union[str, Path]) -> Path:
        """
        Set the config file to load from.

        Raises:
            ConfigFileError: If the file is missing, not a regular file, or empty
        """
        config_file = Path(path)
        if not config_file.exists():
            raise ConfigFileError(f"Config file does not exist: {config_file}")
        if not config_file.is_file():
            raise ConfigFileError(f"Config file is not a regular file: {config_file}")
        if config_file.stat().st_size == 0:
            raise ConfigFileError(f"Config file is empty: {config_file}")

        self.config_file = config_file
        return config_file

    def load_file(self, path: Optional[Union[str, Path]] = None) -> None:
        """Load raw text from ``path`` (or the previously set config file)."""
        if path is not None:
            self.set_config_file(path)
        if self.config_file is None:
            raise ConfigFileError("No config file set")

        self.load(self.config_file.read_text(encoding="utf-8"))
        self.store_file_props()
        logger.info(f"Config loaded from file: {self.config_file}")

    # -------------------------------------------------------------------------
    # Out-of-band edit detection
    # -------------------------------------------------------------------------

    def _current_file_props(self) -> Tuple[int, float]:
        if self.config_file is None:
            raise ConfigFileError("No config file set")
        real = os.path.realpath(self.config_file)
        if not os.path.exists(real):
            raise ConfigFileError(f"Config file does not exist: {self.config_file}")
        stat = os.stat(real)
        return stat.st_size, stat.st_mtime

    def store_file_props(self) -> Tuple[int, float]:
        """Remember size and mtime of the config file."""
        self._file_props = self._current_file_props()
        return self._file_props

    def monitor_file_changes(self) -> Optional[bool]:
        """
        Compare stored size+mtime of the config file with the current ones.

        Returns:
            None if no props were stored yet,
            False if size and mtime are unchanged,
            True if the file changed (has_changed latches to True)
        """
        old = self._file_props
        if old is None:
            return None

        new = self.store_file_props()
        if old == new:
            return False

        self._changed = True
        return True

    @property
    def has_changed(self) -> bool:
        return self._changed

    # -------------------------------------------------------------------------
    # Placeholders
    # -------------------------------------------------------------------------

    def init_placeholders(
        self,
        extra: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, str]:
        """
        Reset the placeholder table to environment + date/time values,
        then merge ``extra`` on top.
        """
        self._placeholders = {}
        self._placeholders.update(environment_placeholders())
        self._placeholders.update(datetime_placeholders(now))
        self._placeholders.update(normalize_table(extra))
        return dict(self._placeholders)

    def add_placeholder(self, name: str, value: Any) -> None:
        """
        Add or replace a single placeholder.

        Raises:
            PlaceholderError: If name is empty
        """
        self._placeholders[to_token(name)] = "" if value is None else str(value)

    @property
    def placeholders(self) -> Dict[str, str]:
        return dict(self._placeholders)

    def resolve(self, text: str, extra: Optional[Mapping[str, Any]] = None) -> str:
        """
        Resolve placeholders in ``text``.

        The placeholder table wins over ``extra`` on conflicting names.

        Raises:
            PlaceholderError: If init_placeholders() was not called
        """
        if not self._placeholders:
            raise PlaceholderError("Config placeholders not initialized")

        table = normalize_table(extra)
        table.update(self._placeholders)
        return resolve_string(text, table)

    def resolved_text(self, extra: Optional[Mapping[str, Any]] = None) -> str:
        """Raw config text with all known placeholders resolved."""
        if self._raw is None:
            raise ConfigError("No config loaded")
        return self.resolve(self._raw, extra)

    def sections(self, extra: Optional[Mapping[str, Any]] = None) -> Sections:
        """Parse the resolved config text into sections."""
        return parse_ini_text(self.resolved_text(extra))

    def section_config(
        self, name: str, extra: Optional[Mapping[str, Any]] = None
    ) -> Optional[Section]:
        """
        Resolved settings of one section.

        Returns:
            Section mapping, or None if the section does not exist

        Raises:
            ConfigError: If name is empty
        """
        if not name:
            raise ConfigError("Section name must not be empty")
        logger.debug(f"Getting config for section '{name}'")
        return self.sections(extra).get(name)

    def get_from_section(
        self, section: str, key: str, extra: Optional[Mapping[str, Any]] = None
    ) -> Optional[Any]:
        """Single value from a section, or None."""
        if not key:
            return None
        values = self.section_config(section, extra)
        if not values:
            return None
        return values.get(key)

    def copy(self) -> "ConfigResolver":
        """Independent copy: raw text and placeholder table, settings reset."""
        other = ConfigResolver()
        other._raw = self._raw
        other._placeholders = dict(self._placeholders)
        return other

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = _copy.deepcopy(value)

    def get(self, key: str) -> Optional[Any]:
        """Setting value (strings trimmed), or None if not set."""
        if key not in self._settings:
            return None
        value = self._settings[key]
        if isinstance(value, str):
            return value.strip()
        return value

    def set_defaults(self, defaults: Mapping[str, Any]) -> None:
        """
        Initialize settings to default values.

        Call BEFORE load_settings() so that keys missing in the config file
        keep their defaults. Overwrites existing values.
        """
        for key, value in defaults.items():
            self.set(key, value)

    def load_settings(self, values: Optional[Mapping[str, Any]]) -> None:
        """
        Load the contents of ONE section into settings.

        Raises:
            SettingsError: If values is empty or not a mapping
        """
        if not values:
            raise SettingsError("Unable to load settings: Empty config given")
        if not isinstance(values, Mapping):
            raise SettingsError(
                f"Unable to load settings: Expected a mapping, got {type(values).__name__}"
            )
        for key, value in values.items():
            self.set(key, value)

    @property
    def settings(self) -> Dict[str, Any]:
        return _copy.deepcopy(self._settings)
