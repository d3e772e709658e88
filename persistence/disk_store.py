from __future__ import annotations

import logging
import os
import re
import stat
from pathlib import Path
from typing import Any

from iod_document import Document, IodParser

from . import locks
from .errors import ConfigError, InvalidKeyError, InvalidValueError
from .interfaces import KeyValueStore
from .paths import default_store_path, ensure_file

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "keyvaluestore"

_INT_RE = re.compile(r"^[-+]?\d+$")
_FLOAT_RE = re.compile(r"^[-+]?(\d+\.\d*|\.\d+|\d+)([eE][-+]?\d+)?$")


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    """
    Atomically write bytes to disk by writing to a temp file then replacing.

    Symlinks are followed so the link target receives the write, and the
    existing file mode is carried over to the replacement.
    """
    path = path.resolve()
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with tmp_path.open("wb") as f:
            f.write(payload)
        if path.exists():
            os.chmod(tmp_path, stat.S_IMODE(path.stat().st_mode))
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def validate_key(key: Any) -> str:
    if not isinstance(key, str) or not key:
        raise InvalidKeyError("key must be a non-empty string")
    if key != key.strip():
        raise InvalidKeyError(f"key {key!r} has leading or trailing whitespace")
    if any(ch in key for ch in "=[]\n\r"):
        raise InvalidKeyError(f"key {key!r} contains one of '=', '[', ']' or a newline")
    if key[0] in ";#":
        raise InvalidKeyError(f"key {key!r} would be read back as a comment")
    return key


def validate_value(value: Any) -> str:
    if value is None:
        raise InvalidValueError("value is required (null values cannot be stored)")
    if not isinstance(value, str):
        raise InvalidValueError(f"value must be a string, got {type(value).__name__}")
    if "\n" in value or "\r" in value:
        raise InvalidValueError("value must not contain newlines")
    return value


def validate_section(section: Any) -> str:
    if not isinstance(section, str):
        raise ConfigError("section must be a string")
    if section != section.strip() or any(ch in section for ch in "[]\n\r"):
        raise ConfigError(f"invalid section name {section!r}")
    return section


def _as_number(value: str) -> int | float | str:
    s = value.strip()
    if _INT_RE.match(s):
        return int(s)
    if _FLOAT_RE.match(s):
        return float(s)
    return value


class DiskIodKeyValueStore(KeyValueStore):
    """
    Key-value pairs kept as parameters of one section in an IOD/INI file.

    - Every call re-reads the file under an exclusive advisory lock; nothing is cached.
    - `set` holds the lock from parse through the atomic replace of the file.
    - The file is created empty on construction if missing.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        section: str = DEFAULT_SECTION,
        *,
        lock_retries: int | None = locks.DEFAULT_RETRIES,
        lock_delay: float = locks.DEFAULT_DELAY,
        lock_max_delay: float = locks.DEFAULT_MAX_DELAY,
    ):
        self._path = Path(path) if path is not None else default_store_path()
        self._section = validate_section(section)
        self._lock_retries = lock_retries
        self._lock_delay = lock_delay
        self._lock_max_delay = lock_max_delay
        self._parser: IodParser | None = None

        if ensure_file(self._path):
            logger.debug("Created IOD key-value store file %s", self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def section(self) -> str:
        return self._section

    @property
    def parser(self) -> IodParser:
        if self._parser is None:
            self._parser = IodParser(ignore_unknown_directives=True)
        return self._parser

    def _lock(self) -> locks.FileLock:
        return locks.acquire(
            self._path,
            retries=self._lock_retries,
            delay=self._lock_delay,
            max_delay=self._lock_max_delay,
        )

    def _read(self) -> Document:
        with self._lock():
            return self.parser.read_file(self._path)

    def get(self, key: str) -> str | None:
        # Hand-edited files may hold keys `set` would refuse; only reject
        # what no parsed line can produce.
        if not isinstance(key, str) or not key or "\n" in key or "\r" in key:
            raise InvalidKeyError("key must be a non-empty single-line string")
        return self._read().get_value(self._section, key)

    def set(self, key: str, value: str, dry_run: bool = False) -> str | None:
        validate_key(key)
        validate_value(value)

        with self._lock():
            doc = self.parser.read_file(self._path)
            old = doc.get_value(self._section, key)
            if dry_run:
                logger.debug("DRY RUN: would set [%s] %s in %s", self._section, key, self._path)
                return old
            doc.set_value(self._section, key, value)
            atomic_write_bytes(self._path, self.parser.serialize(doc))
        logger.info("Set [%s] %s in %s", self._section, key, self._path)
        return old

    def dump(self, as_numbers: bool = False) -> dict[str, Any]:
        items = self._read().section_items(self._section)
        if as_numbers:
            return {k: _as_number(v) for k, v in items.items()}
        return dict(items)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(path={str(self._path)!r}, section={self._section!r})"
