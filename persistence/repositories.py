from __future__ import annotations

import asyncio
from typing import Any, Protocol

from .interfaces import KeyValueStore


class AsyncKeyValueRepository(Protocol):
    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str, *, dry_run: bool = False) -> str | None: ...
    async def dump(self, *, as_numbers: bool = False) -> dict[str, Any]: ...


class AsyncDiskKeyValueRepository(AsyncKeyValueRepository):
    """
    Async wrapper around a disk-backed key-value store.
    Uses asyncio.to_thread so lock waits and file I/O don't block the event loop.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    async def get(self, key: str) -> str | None:
        return await asyncio.to_thread(self._store.get, key)

    async def set(self, key: str, value: str, *, dry_run: bool = False) -> str | None:
        return await asyncio.to_thread(self._store.set, key, value, dry_run)

    async def dump(self, *, as_numbers: bool = False) -> dict[str, Any]:
        return await asyncio.to_thread(self._store.dump, as_numbers)
