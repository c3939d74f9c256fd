# tests/unit/runtime/test_concurrency.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import threading
from unittest.mock import MagicMock

import pytest

from statechart.runtime.concurrency import get_lock, with_lock


def test_get_lock_is_reentrant():
    """Actions call back into the machine on the thread holding its lock."""
    lock = get_lock()
    with with_lock(lock):
        with with_lock(lock):
            assert lock.acquire(blocking=False)
            lock.release()


def test_with_lock():
    lock = MagicMock()
    with with_lock(lock):
        lock.acquire.assert_called_once()
    lock.release.assert_called_once()


def test_with_lock_releases_on_exception():
    lock = MagicMock()
    with pytest.raises(RuntimeError):
        with with_lock(lock):
            raise RuntimeError("Test error")
    lock.acquire.assert_called_once()
    lock.release.assert_called_once()


def test_lock_blocks_other_threads():
    lock = get_lock()
    acquired = []

    def other():
        acquired.append(lock.acquire(blocking=False))

    with with_lock(lock):
        t = threading.Thread(target=other)
        t.start()
        t.join()
    assert acquired == [False]
