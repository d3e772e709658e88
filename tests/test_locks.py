from __future__ import annotations

import multiprocessing
import threading
import time

import pytest

from persistence import locks
from persistence.errors import LockError


def _hold_lock(path: str, ready, done) -> None:
    with locks.acquire(path, retries=None):
        ready.set()
        done.wait(10)


def test_acquire_creates_sidecar_and_release_is_idempotent(tmp_path):
    target = tmp_path / "store.iod"
    handle = locks.acquire(target)
    assert locks.lock_path_for(target).exists()
    assert not handle.released

    handle.release()
    assert handle.released
    handle.release()
    locks.release(handle)

    # The path can be locked again right away.
    with locks.acquire(target, retries=0):
        pass


def test_context_manager_releases_on_error(tmp_path):
    target = tmp_path / "store.iod"
    with pytest.raises(RuntimeError):
        with locks.acquire(target) as handle:
            raise RuntimeError("boom")
    assert handle.released
    with locks.acquire(target, retries=0):
        pass


def test_failing_release_does_not_mask_original_error(tmp_path, monkeypatch, caplog):
    target = tmp_path / "store.iod"
    handle = locks.acquire(target)

    real_close = locks.os.close

    def _broken_close(fd):
        real_close(fd)
        raise OSError("close failed")

    monkeypatch.setattr(locks.os, "close", _broken_close)
    with pytest.raises(RuntimeError, match="original"):
        with handle:
            raise RuntimeError("original")
    monkeypatch.undo()

    assert "failed to release" in caplog.text
    # The in-process lock was still given back.
    with locks.acquire(target, retries=0):
        pass


def test_threads_are_serialized(tmp_path):
    target = tmp_path / "store.iod"
    inside = 0
    overlaps = []

    def _worker():
        nonlocal inside
        for _ in range(20):
            with locks.acquire(target, retries=None, delay=0.001):
                inside += 1
                overlaps.append(inside)
                time.sleep(0.0005)
                inside -= 1

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert max(overlaps) == 1
    assert len(overlaps) == 80


def test_thread_contention_exhausts_retry_budget(tmp_path):
    target = tmp_path / "store.iod"
    with locks.acquire(target):
        errors = []

        def _contender():
            try:
                locks.acquire(target, retries=2, delay=0.01, max_delay=0.02)
            except LockError as e:
                errors.append(e)

        t = threading.Thread(target=_contender)
        t.start()
        t.join(5)
    assert len(errors) == 1
    assert errors[0].attempts == 3


@pytest.mark.skipif(locks.fcntl is None, reason="flock not available")
def test_other_process_holding_lock_raises_lock_error(tmp_path):
    target = tmp_path / "store.iod"
    ctx = multiprocessing.get_context("spawn")
    ready, done = ctx.Event(), ctx.Event()
    proc = ctx.Process(target=_hold_lock, args=(str(target), ready, done))
    proc.start()
    try:
        assert ready.wait(30)
        with pytest.raises(LockError) as excinfo:
            locks.acquire(target, retries=3, delay=0.01, max_delay=0.02)
        assert excinfo.value.attempts == 4
    finally:
        done.set()
        proc.join(30)

    # Released by the other process; available again.
    with locks.acquire(target, retries=50, delay=0.01):
        pass


def test_zero_delay_still_honours_retry_budget(tmp_path):
    target = tmp_path / "store.iod"
    with locks.acquire(target):
        errors = []

        def _contender():
            try:
                locks.acquire(target, retries=2, delay=0, max_delay=0)
            except LockError as e:
                errors.append(e)

        t = threading.Thread(target=_contender)
        t.start()
        t.join(5)
        assert not t.is_alive()
    assert len(errors) == 1
    assert errors[0].attempts == 3
