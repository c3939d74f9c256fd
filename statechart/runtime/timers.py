# statechart/runtime/timers.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol, Tuple

from statechart.runtime.concurrency import LockType, with_lock

if TYPE_CHECKING:
    from statechart.core.states import StateNode

logger = logging.getLogger(__name__)


class _Cancellable(Protocol):
    def cancel(self) -> None: ...


class TimerBackend(Protocol):
    """
    Source of delayed callbacks. ``call_later`` returns an object with a
    ``cancel()`` method; cancelling after the callback ran is harmless.
    """

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> _Cancellable: ...


class ThreadingTimerBackend:
    """Runs each callback on a daemon ``threading.Timer`` thread."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay_ms / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer


class _ManualCall:
    def __init__(self, backend: "ManualTimerBackend", due: float) -> None:
        self._backend = backend
        self.due = due
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualTimerBackend:
    """
    Virtual clock for deterministic tests and simulations. Nothing fires until
    :meth:`advance` moves the clock past a callback's due time.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._counter = itertools.count()
        self._queue: List[Tuple[float, int, _ManualCall, Callable[[], None]]] = []

    @property
    def now(self) -> float:
        """Milliseconds elapsed on the virtual clock."""
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _, _, call, _ in self._queue if not call.cancelled)

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> _ManualCall:
        call = _ManualCall(self, self._now + delay_ms)
        heapq.heappush(self._queue, (call.due, next(self._counter), call, callback))
        return call

    def advance(self, delay_ms: float) -> int:
        """
        Move the clock forward, firing due callbacks in deadline order. Callbacks
        scheduled while advancing fire too when they fall inside the window.

        :return: Number of callbacks fired.
        """
        if delay_ms < 0:
            raise ValueError("Cannot move the clock backwards")
        deadline = self._now + delay_ms
        fired = 0
        while self._queue and self._queue[0][0] <= deadline:
            due, _, call, callback = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self._now = due
            call.cancelled = True
            callback()
            fired += 1
        self._now = deadline
        return fired

    def run_all(self, limit: int = 1000) -> int:
        """Fire pending callbacks until none remain, up to ``limit`` firings."""
        fired = 0
        while fired < limit:
            live = [entry for entry in self._queue if not entry[2].cancelled]
            if not live:
                break
            fired += self.advance(max(0.0, min(entry[0] for entry in live) - self._now))
        return fired


class TimerHandle:
    """
    A live timer armed for one node. Cancelling is synchronous and idempotent:
    once cancelled, the producer is never invoked.
    """

    def __init__(self, registry: "TimerRegistry", node: "StateNode", delay_ms: float) -> None:
        self._registry = registry
        self._node = node
        self._delay_ms = delay_ms
        self._cancelled = False
        self._fired = False
        self._backend_call: Optional[_Cancellable] = None

    @property
    def node(self) -> "StateNode":
        return self._node

    @property
    def delay_ms(self) -> float:
        return self._delay_ms

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._backend_call is not None:
            self._backend_call.cancel()
        self._registry._discard(self)


class TimerRegistry:
    """
    Schedules and cancels delayed transitions bound to a node's active lifetime.
    At most one timer is armed per node; scheduling again replaces it.
    """

    def __init__(self, backend: Optional[TimerBackend] = None, lock: Optional[LockType] = None) -> None:
        """
        :param backend: Where delayed callbacks come from. Defaults to threading timers.
        :param lock: Lock held while a timer decides whether to fire and runs its
            producer; pass the owning machine's lock so firings serialize with dispatch.
        """
        self._backend = backend or ThreadingTimerBackend()
        self._lock = lock or threading.RLock()
        self._armed: Dict[int, TimerHandle] = {}

    @property
    def backend(self) -> TimerBackend:
        return self._backend

    def armed(self, node: "StateNode") -> Optional[TimerHandle]:
        """The live timer for ``node``, if any."""
        return self._armed.get(id(node))

    def __len__(self) -> int:
        return len(self._armed)

    def schedule(self, node: "StateNode", delay_ms: float, producer: Callable[[], Any]) -> TimerHandle:
        """
        Arm a timer that calls ``producer`` after ``delay_ms`` unless ``node``
        exits first.
        """
        with with_lock(self._lock):
            self.cancel(node)
            handle = TimerHandle(self, node, delay_ms)
            self._armed[id(node)] = handle
            node.pending_timer = handle
            handle._backend_call = self._backend.call_later(delay_ms, lambda: self._fire(handle, producer))
            logger.debug("Armed %sms timer for '%s'", delay_ms, node.path_id)
            return handle

    def cancel(self, node: "StateNode") -> None:
        """Cancel the timer armed for ``node``. No-op when none is armed."""
        with with_lock(self._lock):
            handle = self._armed.get(id(node))
            if handle is None:
                return
            handle.cancel()
            if node.pending_timer is handle:
                node.pending_timer = None
            logger.debug("Cancelled timer for '%s'", node.path_id)

    def cancel_all(self) -> None:
        with with_lock(self._lock):
            for handle in list(self._armed.values()):
                self.cancel(handle.node)

    def _discard(self, handle: TimerHandle) -> None:
        if self._armed.get(id(handle.node)) is handle:
            del self._armed[id(handle.node)]

    def _fire(self, handle: TimerHandle, producer: Callable[[], Any]) -> None:
        with with_lock(self._lock):
            node = handle.node
            if handle.cancelled or self._armed.get(id(node)) is not handle:
                return
            self._discard(handle)
            if node.pending_timer is handle:
                node.pending_timer = None
            handle._fired = True
            if not node.active:
                logger.warning("Timer for inactive state '%s' ignored", node.path_id)
                return
            logger.debug("Timer for '%s' fired after %sms", node.path_id, handle.delay_ms)
            producer()
