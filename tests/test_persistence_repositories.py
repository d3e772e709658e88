from __future__ import annotations

import asyncio

from persistence.disk_store import DiskIodKeyValueStore
from persistence.repositories import AsyncDiskKeyValueRepository


def test_async_disk_repository_roundtrip(store_path):
    async def _run():
        repo = AsyncDiskKeyValueRepository(DiskIodKeyValueStore(store_path))

        assert await repo.dump() == {}
        assert await repo.set("counter", "1") is None
        assert await repo.get("counter") == "1"

        # dry run reports but does not change
        assert await repo.set("counter", "5", dry_run=True) == "1"
        assert await repo.get("counter") == "1"

        assert await repo.set("counter", "2") == "1"
        assert await repo.dump() == {"counter": "2"}
        assert await repo.dump(as_numbers=True) == {"counter": 2}

    asyncio.run(_run())


def test_async_concurrent_sets_are_serialized(store_path):
    async def _run():
        repo = AsyncDiskKeyValueRepository(DiskIodKeyValueStore(store_path))
        await asyncio.gather(*(repo.set(f"k{i}", str(i)) for i in range(10)))
        return await repo.dump()

    values = asyncio.run(_run())
    assert values == {f"k{i}": str(i) for i in range(10)}
