"""statechart: hierarchical and parallel state machine interpreter

Declare a tree of states, transitions, guards and actions as a plain mapping,
then drive it with events. Compound states keep exactly one child active,
parallel states keep all of their regions active, and every dispatch runs to
completion before subscribers are told about the new configuration.

Responsibilities:
    - Building and validating the state tree from a description
    - Event dispatch with hierarchical and parallel transition semantics
    - Delayed ("after") transitions bound to a state's active lifetime
    - Change notification, snapshots and cloning

Logging:
    - Module loggers under ``statechart``; the library adds no handlers
"""

from statechart.core.errors import (
    ActionError,
    BuildError,
    GuardError,
    MachineStateError,
    RestoreError,
    StatechartError,
    TransitionError,
    UnknownTargetError,
    ValidationError,
)
from statechart.core.events import DoneEvent, Event, TimeoutEvent
from statechart.core.state_machine import Machine, create_machine
from statechart.core.states import StateKind, StateNode
from statechart.core.transitions import DelayedTransition, Transition
from statechart.persistence.serializer import Snapshot
from statechart.runtime.timers import ManualTimerBackend, ThreadingTimerBackend

__version__ = "0.1.0"

__all__ = [
    "Machine",
    "create_machine",
    "StateNode",
    "StateKind",
    "Transition",
    "DelayedTransition",
    "Event",
    "TimeoutEvent",
    "DoneEvent",
    "Snapshot",
    "ManualTimerBackend",
    "ThreadingTimerBackend",
    "StatechartError",
    "ValidationError",
    "BuildError",
    "TransitionError",
    "GuardError",
    "ActionError",
    "UnknownTargetError",
    "RestoreError",
    "MachineStateError",
]
