from __future__ import annotations

from pathlib import Path

from .errors import ConfigError

DEFAULT_FILENAME = "kvstore.iod"


def home_dir() -> Path:
    try:
        home = Path.home()
    except (RuntimeError, KeyError) as e:
        raise ConfigError("cannot resolve home directory; pass an explicit path") from e
    # Older interpreters hand back "~" unexpanded instead of raising.
    if not home.is_absolute():
        raise ConfigError("cannot resolve home directory; pass an explicit path")
    return home


def default_store_path() -> Path:
    return home_dir() / DEFAULT_FILENAME


def ensure_file(path: Path) -> bool:
    """
    Create `path` (and its parents) as an empty file if it is missing.

    Never truncates. Returns True when the file was created.
    """
    if path.is_file():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    # "a" creates without truncating if another process won the race.
    with path.open("a", encoding="utf-8"):
        pass
    return True
