from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path

try:
    import fcntl
except ImportError:  # Windows: fall back to lock directories
    fcntl = None

from .errors import LockError

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 60
DEFAULT_DELAY = 0.05
DEFAULT_MAX_DELAY = 1.0
# Floor for the backoff so a zero delay neither blocks unbounded nor spins.
MIN_DELAY = 0.001


class PathLockRegistry:
    """
    Provides a stable lock per normalized file path to avoid global contention.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def lock_for(self, path: Path) -> threading.Lock:
        key = str(path.resolve())
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


GLOBAL_PATH_LOCKS = PathLockRegistry()


def lock_path_for(path: Path) -> Path:
    """
    Sidecar file that carries the advisory lock for `path`.

    The store replaces the data file atomically, so locking the data file's
    own inode would not serialize writers.
    """
    if fcntl is None:
        return path.with_name(path.name + ".lck")
    return path.with_name(path.name + ".lock")


class FileLock:
    """
    Exclusive advisory lock on a path, held until `release()`.

    Use `acquire()` to obtain one. Works as a context manager; releasing more
    than once is a no-op.
    """

    def __init__(self, path: Path, thread_lock: threading.Lock):
        self.path = path
        self._thread_lock = thread_lock
        self._fd: int | None = None
        self._lock_dir: Path | None = None
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def _try_os_lock(self) -> bool:
        lock_path = lock_path_for(self.path)
        if fcntl is None:
            try:
                os.mkdir(lock_path)
            except FileExistsError:
                return False
            self._lock_dir = lock_path
            return True

        fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            return False
        except BaseException:
            os.close(fd)
            raise
        self._fd = fd
        return True

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            if self._fd is not None:
                fd, self._fd = self._fd, None
                try:
                    fcntl.flock(fd, fcntl.LOCK_UN)
                finally:
                    os.close(fd)
            if self._lock_dir is not None:
                lock_dir, self._lock_dir = self._lock_dir, None
                os.rmdir(lock_dir)
        finally:
            self._thread_lock.release()
        logger.debug("LOCK: released %s", self.path)

    def __enter__(self) -> "FileLock":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is None:
            self.release()
            return
        # Don't let a failing release hide the error already in flight.
        try:
            self.release()
        except OSError:
            logger.warning("LOCK: failed to release %s", self.path, exc_info=True)


def acquire(
    path: Path,
    *,
    retries: int | None = DEFAULT_RETRIES,
    delay: float = DEFAULT_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> FileLock:
    """
    Block until an exclusive lock on `path` is held, backing off exponentially
    between attempts. `retries=None` retries forever; otherwise LockError is
    raised once `retries` retries have failed.
    """
    path = Path(path)
    thread_lock = GLOBAL_PATH_LOCKS.lock_for(path)
    attempts = 0
    wait = max(delay, MIN_DELAY)
    max_delay = max(max_delay, wait)

    # Threads of this process queue on the thread lock; only other processes
    # are seen as flock contention.
    while not thread_lock.acquire(timeout=wait):
        attempts += 1
        if retries is not None and attempts > retries:
            logger.warning("LOCK: giving up on %s after %d attempts (held in-process)", path, attempts)
            raise LockError(path, attempts)
        wait = min(wait * 2, max_delay)

    handle = FileLock(path, thread_lock)
    try:
        while not handle._try_os_lock():
            attempts += 1
            if retries is not None and attempts > retries:
                logger.warning("LOCK: giving up on %s after %d attempts", path, attempts)
                raise LockError(path, attempts)
            time.sleep(wait)
            wait = min(wait * 2, max_delay)
    except BaseException:
        thread_lock.release()
        raise

    logger.debug("LOCK: acquired %s after %d retries", path, attempts)
    return handle


def release(handle: FileLock) -> None:
    handle.release()
