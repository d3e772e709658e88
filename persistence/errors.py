from __future__ import annotations

from iod_document import ParseError


class KeyValueStoreError(Exception):
    """Base class for key-value store failures (I/O errors surface as OSError)."""


class ConfigError(KeyValueStoreError):
    pass


class LockError(KeyValueStoreError):
    def __init__(self, path, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(f"could not lock {path} after {attempts} attempts")


class InvalidKeyError(KeyValueStoreError, ValueError):
    pass


class InvalidValueError(KeyValueStoreError, ValueError):
    pass


__all__ = [
    "KeyValueStoreError",
    "ConfigError",
    "LockError",
    "ParseError",
    "InvalidKeyError",
    "InvalidValueError",
]
