"""
Typed coercion of raw config values.

Config values are raw strings or lists of strings. Settings dataclasses
use these helpers to turn them into ints, bools and lists.
"""

from typing import Any, List, Optional

from .errors import SettingsError


def as_int(value: Any, name: str, default: Optional[int] = None) -> Optional[int]:
    """
    Coerce a raw value to int.

    Raises:
        SettingsError: If the value is not an integer
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, list):
        raise SettingsError(f"Invalid value for '{name}': Must not be a list")
    try:
        return int(str(value).strip())
    except ValueError:
        raise SettingsError(f"Invalid value for '{name}': Not an integer: {value!r}")


def as_bool(value: Any, name: str, default: bool = False) -> bool:
    """Coerce ``1/0``, ``true/false``, ``yes/no``, ``on/off`` to bool."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise SettingsError(f"Invalid value for '{name}': Not a boolean: {value!r}")


def as_list(value: Any, name: str) -> List[str]:
    """
    Return a list value. Empty/unset becomes [].

    Raises:
        SettingsError: If a scalar is given where a list is required
            (usually a missing ``[]`` on the key)
    """
    if value is None or value == "":
        return []
    if not isinstance(value, list):
        raise SettingsError(
            f"Invalid configuration '{name}': Must be a list. Maybe missing '[]'?"
        )
    return [str(v) for v in value]
