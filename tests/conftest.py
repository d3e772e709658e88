from __future__ import annotations

import importlib
from pathlib import Path
import sys


import pytest


# Ensure the repository root (parent of ./tests) is importable during pytest collection.
# This avoids ModuleNotFoundError for imports like `import persistence...` under pytest import modes
# that don't automatically prepend the cwd/rootdir to sys.path.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


_KVSTORE_ENV = (
    "KVSTORE_PATH",
    "KVSTORE_SECTION",
    "KVSTORE_LOCK_RETRIES",
    "KVSTORE_LOCK_DELAY",
    "KVSTORE_LOCK_MAX_DELAY",
    "KVSTORE_DUMP_AS_NUMBERS",
)


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "kvstore.iod"


@pytest.fixture
def sandbox_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """
    Point HOME at a temp dir and clear KVSTORE_* so tests never touch a real ~/kvstore.iod.
    """
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in _KVSTORE_ENV:
        monkeypatch.delenv(name, raising=False)
    return home


@pytest.fixture
def configured_store(monkeypatch: pytest.MonkeyPatch, sandbox_home: Path, tmp_path: Path) -> Path:
    path = tmp_path / "configured.iod"
    monkeypatch.setenv("KVSTORE_PATH", str(path))
    return path


@pytest.fixture
def reload_endpoints(configured_store: Path) -> Path:
    """
    Endpoints read settings at import time; reload after sandboxing the environment.
    """
    import endpoints.mcp_endpoints as mcp_endpoints

    importlib.reload(mcp_endpoints)
    return configured_store
