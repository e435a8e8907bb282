"""
Configuration — INI parsing, placeholder resolution and scoped settings.

Public API:
    ConfigResolver — Raw text + placeholder table + settings for one scope
    parse_ini_text — INI-like text to {section: {key: value}}
    Placeholder — Known ``[@NAME@]`` tokens
    resolve_string — Single-pass, order-independent token substitution
"""

from .errors import (
    ConfigError,
    ConfigParseError,
    ConfigFileError,
    PlaceholderError,
    SettingsError,
)
from .parser import parse_ini_text
from .placeholders import (
    Placeholder,
    DATETIME_FORMAT,
    resolve_string,
    to_token,
    file_placeholders,
)
from .resolver import (
    ConfigResolver,
    SECTION_DEFAULT,
    SECTION_UNDEFINED,
    SECTION_INBOX,
    RESERVED_SECTIONS,
)
from .values import as_int, as_list, as_bool

__all__ = [
    # Errors
    "ConfigError",
    "ConfigParseError",
    "ConfigFileError",
    "PlaceholderError",
    "SettingsError",
    # Parsing
    "parse_ini_text",
    # Placeholders
    "Placeholder",
    "DATETIME_FORMAT",
    "resolve_string",
    "to_token",
    "file_placeholders",
    # Resolver
    "ConfigResolver",
    "SECTION_DEFAULT",
    "SECTION_UNDEFINED",
    "SECTION_INBOX",
    "RESERVED_SECTIONS",
    # Value coercion
    "as_int",
    "as_list",
    "as_bool",
]
