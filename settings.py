from __future__ import annotations

import os
from dataclasses import dataclass

from persistence.errors import ConfigError
from persistence.locks import DEFAULT_DELAY, DEFAULT_MAX_DELAY, DEFAULT_RETRIES


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"{name} must be >= 0, got {raw!r}")
    return value


def _env_retries(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    if raw.strip().lower() in ("none", "forever", "-1"):
        return None
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"{name} must be >= 0 (or -1 to retry forever), got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    # Store target; None means <home>/kvstore.iod
    store_path: str | None
    store_section: str

    # Lock retry policy
    lock_retries: int | None
    lock_delay: float
    lock_max_delay: float

    # dump() numeric coercion (off: values stay strings)
    dump_as_numbers: bool

    log_level: str


def get_settings() -> Settings:
    store_path = os.getenv("KVSTORE_PATH", "").strip() or None
    store_section = os.getenv("KVSTORE_SECTION", "keyvaluestore")

    lock_retries = _env_retries("KVSTORE_LOCK_RETRIES", DEFAULT_RETRIES)
    lock_delay = _env_float("KVSTORE_LOCK_DELAY", DEFAULT_DELAY)
    lock_max_delay = max(lock_delay, _env_float("KVSTORE_LOCK_MAX_DELAY", DEFAULT_MAX_DELAY))

    dump_as_numbers = _env_bool("KVSTORE_DUMP_AS_NUMBERS", False)
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    return Settings(
        store_path=store_path,
        store_section=store_section,
        lock_retries=lock_retries,
        lock_delay=lock_delay,
        lock_max_delay=lock_max_delay,
        dump_as_numbers=dump_as_numbers,
        log_level=log_level,
    )
