from __future__ import annotations

import logging
from typing import Any, Literal

from typing_extensions import TypedDict

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from persistence.errors import KeyValueStoreError
from persistence.operations import StoreArgs, open_store
from persistence.repositories import AsyncDiskKeyValueRepository
from settings import get_settings

SETTINGS = get_settings()

logger = logging.getLogger(__name__)


class ToolTextContent(TypedDict):
    type: Literal["text"]
    text: str


class KeyValueToolResponse(TypedDict, total=False):
    content: list[ToolTextContent]
    structuredContent: dict[str, Any]


def _repo(section: str | None) -> AsyncDiskKeyValueRepository:
    # Clients choose the section only; the file is always the configured one.
    args = StoreArgs(section=section)
    return AsyncDiskKeyValueRepository(open_store(args))


def _reply(message: str | None = None, **structured: Any) -> KeyValueToolResponse:
    return {
        "content": ([{"type": "text", "text": message}] if message else []),
        "structuredContent": structured,
    }


def _error(e: Exception) -> KeyValueToolResponse:
    logger.info("KVSTORE TOOL: rejected request: %s", e)
    return _reply(f"Error: {e}", error=str(e))


mcp = FastMCP(
    "IOD key-value store",
    stateless_http=True,
    json_response=True,
    # Reached through tunnels/proxies in development; don't pin the Host header.
    transport_security=TransportSecuritySettings(enable_dns_rebinding_protection=False),
)


@mcp.tool()
async def get_value(key: str, section: str | None = None) -> KeyValueToolResponse:
    """
    Gets the value of a key in the key-value store.
    """
    try:
        repo = _repo(section)
        value = await repo.get(key)
    except (KeyValueStoreError, ValueError) as e:
        return _error(e)
    sect = repo.store.section
    if value is None:
        return _reply(f"Key {key!r} not found in [{sect}].", section=sect, key=key, found=False, value=None)
    return _reply(f"{key}={value}", section=sect, key=key, found=True, value=value)


@mcp.tool()
async def set_value(
    key: str,
    value: str,
    section: str | None = None,
    dry_run: bool = False,
) -> KeyValueToolResponse:
    """
    Sets a value in the key-value store and returns the previous value.
    With dry_run, only reports the previous value.
    """
    try:
        repo = _repo(section)
        old = await repo.set(key, value, dry_run=dry_run)
    except (KeyValueStoreError, ValueError) as e:
        return _error(e)
    sect = repo.store.section
    prev = "no previous value" if old is None else f"previous value {old!r}"
    verb = "Would set" if dry_run else "Set"
    return _reply(
        f"{verb} {key!r} in [{sect}] ({prev}).",
        section=sect,
        key=key,
        previous=old,
        dryRun=dry_run,
    )


@mcp.tool()
async def dump_section(section: str | None = None) -> KeyValueToolResponse:
    """
    Returns every key/value pair of a section.
    """
    try:
        repo = _repo(section)
        values = await repo.dump(as_numbers=SETTINGS.dump_as_numbers)
    except (KeyValueStoreError, ValueError) as e:
        return _error(e)
    sect = repo.store.section
    return _reply(f"{len(values)} key(s) in [{sect}].", section=sect, values=values)
