# statechart/runtime/concurrency.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Union

LockType = Union[threading.Lock, threading.RLock]


def get_lock() -> threading.RLock:
    """
    Provide a new re-entrant lock. A machine's actions run while its lock is
    held and may call back into the machine on the same thread.
    """
    return threading.RLock()


@contextmanager
def with_lock(lock: LockType) -> Iterator[None]:
    """
    A convenience context manager that acquires the given lock upon entry and
    releases it upon exit, ensuring safe access to shared resources.
    """
    lock.acquire()
    try:
        yield
    finally:
        lock.release()
