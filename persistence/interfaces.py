from __future__ import annotations

from typing import Any, Protocol


class KeyValueStore(Protocol):
    """
    Minimal interface: string values under string keys inside one named section.
    """

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the key is absent."""
        ...

    def set(self, key: str, value: str, dry_run: bool = False) -> str | None:
        """Store `value` (unless dry_run) and return the previous value."""
        ...

    def dump(self, as_numbers: bool = False) -> dict[str, Any]:
        """Return every key/value pair of the section."""
        ...
