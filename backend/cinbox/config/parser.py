"""
INI-like config text parser.

The stdlib configparser cannot express list values (``KEY[] = value``)
and rejects repeated keys, so the format is parsed here.

Format:
    ; comment
    # comment
    [SECTION]
    KEY = scalar value
    LIST[] = first
    LIST[] = second

Values are kept raw (no type coercion, no interpolation). A value wrapped
in matching quotes is unquoted.
"""

from typing import Dict, List, Union

from .errors import ConfigParseError


ConfigValue = Union[str, List[str]]
Section = Dict[str, ConfigValue]
Sections = Dict[str, Section]

COMMENT_PREFIXES = (";", "#")
LIST_SUFFIX = "[]"


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_ini_text(text: str) -> Sections:
    """
    Parse config text into ``{section: {key: value}}``.

    Repeated section headers merge into one section. A repeated scalar key
    overwrites the earlier value. Keys ending in ``[]`` accumulate a list.

    Raises:
        ConfigParseError: On a key outside a section, a line without ``=``,
            an empty key or an unterminated section header
    """
    sections: Sections = {}
    current: Union[Section, None] = None

    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue

        if line.startswith("["):
            if not line.endswith("]"):
                raise ConfigParseError(number, raw_line, "Unterminated section header")
            name = line[1:-1].strip()
            if not name:
                raise ConfigParseError(number, raw_line, "Empty section name")
            current = sections.setdefault(name, {})
            continue

        if "=" not in line:
            raise ConfigParseError(number, raw_line, "Expected 'KEY = value'")
        if current is None:
            raise ConfigParseError(number, raw_line, "Key outside of any section")

        key, value = line.split("=", 1)
        key = key.strip()
        value = _unquote(value.strip())

        if key.endswith(LIST_SUFFIX):
            key = key[: -len(LIST_SUFFIX)].strip()
            if not key:
                raise ConfigParseError(number, raw_line, "Empty key")
            existing = current.get(key)
            if not isinstance(existing, list):
                existing = []
                current[key] = existing
            existing.append(value)
        else:
            if not key:
                raise ConfigParseError(number, raw_line, "Empty key")
            current[key] = value

    return sections
