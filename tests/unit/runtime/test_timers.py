# tests/unit/runtime/test_timers.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import threading
from unittest.mock import Mock

import pytest

from statechart.core.states import StateNode
from statechart.runtime.timers import ManualTimerBackend, ThreadingTimerBackend, TimerRegistry


@pytest.fixture
def node():
    n = StateNode("waiting")
    n.activate()
    return n


def test_manual_backend_fires_in_deadline_order(clock):
    fired = []
    clock.call_later(30, lambda: fired.append("late"))
    clock.call_later(10, lambda: fired.append("early"))
    cancelled = clock.call_later(20, lambda: fired.append("cancelled"))
    cancelled.cancel()
    assert clock.pending == 2
    assert clock.advance(15) == 1
    assert fired == ["early"]
    assert clock.now == 15
    clock.advance(15)
    assert fired == ["early", "late"]
    assert clock.pending == 0


def test_manual_backend_rejects_negative(clock):
    with pytest.raises(ValueError):
        clock.advance(-1)


def test_manual_backend_run_all(clock):
    fired = []
    clock.call_later(5, lambda: clock.call_later(5, lambda: fired.append(clock.now)))
    assert clock.run_all() == 2
    assert fired == [10]


def test_schedule_and_fire(clock, node):
    registry = TimerRegistry(clock)
    producer = Mock()
    handle = registry.schedule(node, 100, producer)
    assert node.pending_timer is handle
    assert registry.armed(node) is handle
    clock.advance(99)
    producer.assert_not_called()
    clock.advance(1)
    producer.assert_called_once_with()
    assert handle.fired
    assert node.pending_timer is None
    assert len(registry) == 0


def test_cancel_prevents_firing(clock, node):
    registry = TimerRegistry(clock)
    producer = Mock()
    registry.schedule(node, 100, producer)
    registry.cancel(node)
    registry.cancel(node)
    clock.advance(200)
    producer.assert_not_called()
    assert node.pending_timer is None


def test_node_exit_cancels_timer(clock, node):
    registry = TimerRegistry(clock)
    producer = Mock()
    registry.schedule(node, 100, producer)
    node.exit({}, Mock())
    clock.advance(100)
    producer.assert_not_called()
    assert registry.armed(node) is None


def test_rescheduling_replaces_timer(clock, node):
    registry = TimerRegistry(clock)
    first, second = Mock(), Mock()
    registry.schedule(node, 50, first)
    registry.schedule(node, 80, second)
    clock.advance(100)
    first.assert_not_called()
    second.assert_called_once()
    assert len(registry) == 0


def test_firing_for_inactive_node_is_ignored(clock, node, caplog):
    registry = TimerRegistry(clock)
    producer = Mock()
    registry.schedule(node, 10, producer)
    node._active = False
    with caplog.at_level("WARNING", logger="statechart.runtime.timers"):
        clock.advance(10)
    producer.assert_not_called()
    assert "inactive state 'waiting'" in caplog.text


def test_cancel_all(clock):
    registry = TimerRegistry(clock)
    nodes = [StateNode(f"n{i}") for i in range(3)]
    producer = Mock()
    for n in nodes:
        n.activate()
        registry.schedule(n, 10, producer)
    assert len(registry) == 3
    registry.cancel_all()
    clock.advance(10)
    producer.assert_not_called()
    assert len(registry) == 0


def test_threading_backend_fires(node):
    fired = threading.Event()
    registry = TimerRegistry(ThreadingTimerBackend())
    registry.schedule(node, 10, fired.set)
    assert fired.wait(timeout=2.0)


def test_threading_backend_cancel(node):
    fired = threading.Event()
    registry = TimerRegistry(ThreadingTimerBackend())
    registry.schedule(node, 50, fired.set)
    registry.cancel(node)
    assert not fired.wait(timeout=0.2)


def test_default_backend_is_threading():
    assert isinstance(TimerRegistry().backend, ThreadingTimerBackend)
    assert isinstance(TimerRegistry(ManualTimerBackend()).backend, ManualTimerBackend)
