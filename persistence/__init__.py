from __future__ import annotations

from .disk_store import DEFAULT_SECTION, DiskIodKeyValueStore
from .errors import (
    ConfigError,
    InvalidKeyError,
    InvalidValueError,
    KeyValueStoreError,
    LockError,
    ParseError,
)
from .interfaces import KeyValueStore
from .repositories import AsyncDiskKeyValueRepository, AsyncKeyValueRepository

__all__ = [
    "DEFAULT_SECTION",
    "KeyValueStore",
    "DiskIodKeyValueStore",
    "AsyncKeyValueRepository",
    "AsyncDiskKeyValueRepository",
    "KeyValueStoreError",
    "ConfigError",
    "LockError",
    "ParseError",
    "InvalidKeyError",
    "InvalidValueError",
]
