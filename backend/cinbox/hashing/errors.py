"""
Hash subsystem error hierarchy.
"""


class HashError(Exception):
    """Base exception for hash failures."""

    pass


class UnsupportedHashTypeError(HashError):
    """Hash algorithm is not available in this Python build."""

    def __init__(self, hash_type: str, available):
        self.hash_type = hash_type
        self.available = sorted(available)
        super().__init__(
            f"Hash type '{hash_type}' is invalid or not supported. "
            f"Valid types are: {' '.join(self.available)}"
        )


class HashFileNotFoundError(HashError):
    """A hash cache file does not exist."""

    pass


class HashCacheError(HashError):
    """Hash cache file could not be written or removed."""

    pass
