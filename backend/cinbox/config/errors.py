"""
Configuration error hierarchy.

All errors inherit from ConfigError for easy catching.
"""


class ConfigError(Exception):
    """Base exception for configuration failures."""

    pass


class ConfigParseError(ConfigError):
    """Config text could not be parsed into sections."""

    def __init__(self, line_number: int, line: str, reason: str):
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"Config line {line_number}: {reason}: {line!r}")


class ConfigFileError(ConfigError):
    """Config file is missing, not a regular file, or empty."""

    pass


class PlaceholderError(ConfigError):
    """Placeholder table is not initialized or a placeholder is invalid."""

    pass


class SettingsError(ConfigError):
    """A settings mapping is empty, malformed or holds an invalid value."""

    pass
