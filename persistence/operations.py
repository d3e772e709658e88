from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from settings import get_settings

from .disk_store import DiskIodKeyValueStore


class StoreArgs(BaseModel):
    """
    Where the key-value pairs live: an IOD/INI file and a section inside it.

    `path=None` falls back to KVSTORE_PATH, then to $HOME/kvstore.iod;
    `section=None` falls back to KVSTORE_SECTION (default "keyvaluestore").
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str | None = None
    section: str | None = None


class GetValueArgs(StoreArgs):
    key: str


class SetValueArgs(StoreArgs):
    key: str
    # Optional here so that a missing value reaches the store's InvalidValueError.
    value: str | None = None
    dry_run: bool = False


class DumpArgs(StoreArgs):
    as_numbers: bool = False


def open_store(args: StoreArgs) -> DiskIodKeyValueStore:
    settings = get_settings()
    return DiskIodKeyValueStore(
        args.path if args.path is not None else settings.store_path,
        args.section if args.section is not None else settings.store_section,
        lock_retries=settings.lock_retries,
        lock_delay=settings.lock_delay,
        lock_max_delay=settings.lock_max_delay,
    )


def get_kvstore_value(args: GetValueArgs) -> str | None:
    """Get the value of a key in an IOD/INI key-value store file (None if absent)."""
    return open_store(args).get(args.key)


def set_kvstore_value(args: SetValueArgs) -> str | None:
    """Set a value in an IOD/INI key-value store file and return the old value."""
    return open_store(args).set(args.key, args.value, dry_run=args.dry_run)


def dump_kvstore(args: DumpArgs) -> dict[str, Any]:
    """Return all the values of the section as a dict."""
    return open_store(args).dump(as_numbers=args.as_numbers)
