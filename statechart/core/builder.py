# statechart/core/builder.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""
Builds a :class:`~statechart.core.states.StateNode` tree from a declarative
description.

A description is a mapping. The root mapping may carry ``context`` (the
initial context value) and ``events`` (the accepted event types); every node
mapping may carry ``states``, ``parallel``, ``initial``, ``final``, ``entry``,
``exit``, ``on``, ``after`` and ``on_done``::

    {
        "context": {"count": 0},
        "initial": "idle",
        "states": {
            "idle": {"on": {"START": "running"}},
            "running": {"after": {"delay": 1000, "target": "idle"}},
        },
    }
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Set

from statechart.core.errors import BuildError
from statechart.core.states import StateKind, StateNode
from statechart.core.transitions import DelayedTransition, Transition, transitions_from_spec
from statechart.core.validations import Validator
from statechart.runtime.graph import ActiveConfigurationResolver

logger = logging.getLogger(__name__)

ROOT_ID = "root"

_NODE_KEYS = {"states", "parallel", "initial", "final", "entry", "exit", "on", "after", "on_done"}
_ROOT_KEYS = _NODE_KEYS | {"context", "events", "id"}


@dataclass
class MachineDescription:
    """The parsed parts of a root description."""

    root: StateNode
    context: Any = None
    events: Optional[FrozenSet[str]] = None
    source: Mapping[str, Any] = field(default_factory=dict)


def build_tree(description: Mapping[str, Any], state_id: Optional[str] = None, is_root: bool = True) -> StateNode:
    """
    Recursively build the node for ``description`` and its children.

    :param state_id: Id of the node; the root defaults to its ``id`` key or ``"root"``.
    :param is_root: Whether root-only keys (``context``, ``events``, ``id``) are allowed.
    :raises BuildError: On unknown keys, malformed handlers or initial/final marks.
    """
    if not isinstance(description, Mapping):
        raise BuildError(f"Description of '{state_id}' must be a mapping, got {type(description).__name__}")
    if is_root:
        state_id = state_id or description.get("id") or ROOT_ID
    allowed = _ROOT_KEYS if is_root else _NODE_KEYS
    unknown = set(description) - allowed
    if unknown:
        raise BuildError(f"Unknown keys {sorted(unknown)} in description of '{state_id}'")

    states: Mapping[str, Any] = description.get("states") or {}
    if not isinstance(states, Mapping):
        raise BuildError(f"'states' of '{state_id}' must be a mapping")
    parallel = bool(description.get("parallel", False))
    if parallel and not states:
        raise BuildError(f"Parallel state '{state_id}' must declare child states")
    if parallel:
        kind = StateKind.PARALLEL
    elif states:
        kind = StateKind.COMPOUND
    else:
        kind = StateKind.ATOMIC

    handlers: Dict[str, List[Transition]] = {}
    on = description.get("on") or {}
    if not isinstance(on, Mapping):
        raise BuildError(f"'on' of '{state_id}' must be a mapping of event type to transitions")
    for event_type, spec in on.items():
        handlers[event_type] = transitions_from_spec(spec)

    after = description.get("after")
    on_done = description.get("on_done")
    node = StateNode(
        state_id,
        kind,
        entry=description.get("entry"),
        exit=description.get("exit"),
        handlers=handlers,
        after=DelayedTransition.from_spec(after) if after is not None else None,
        on_done=transitions_from_spec(on_done) if on_done is not None else None,
    )

    initial_ids = _initial_marks(state_id, description, states)
    if kind is StateKind.PARALLEL and initial_ids:
        raise BuildError(f"Parallel state '{state_id}' cannot mark an initial child")
    if kind is StateKind.COMPOUND and len(initial_ids) != 1:
        if initial_ids:
            raise BuildError(f"State '{state_id}' has multiple initial children: {sorted(initial_ids)}")
        raise BuildError(f"State '{state_id}' must mark exactly one initial child")
    final_ids = _final_marks(state_id, description, states)

    for child_id, child_description in states.items():
        child = build_tree(child_description, child_id, is_root=False)
        node.add_child(child, initial=child_id in initial_ids, final=child_id in final_ids)
    return node


def _initial_marks(state_id: str, description: Mapping[str, Any], states: Mapping[str, Any]) -> Set[str]:
    marks: Set[str] = set()
    initial = description.get("initial")
    if isinstance(initial, str):
        if initial not in states:
            raise BuildError(f"Initial state '{initial}' is not a child of '{state_id}'")
        marks.add(initial)
    elif initial is not None and not isinstance(initial, bool):
        raise BuildError(f"'initial' of '{state_id}' must be a child id or a boolean")
    for child_id, child_description in states.items():
        if isinstance(child_description, Mapping) and child_description.get("initial") is True:
            marks.add(child_id)
    return marks


def _final_marks(state_id: str, description: Mapping[str, Any], states: Mapping[str, Any]) -> Set[str]:
    marks: Set[str] = set()
    final = description.get("final")
    if isinstance(final, str):
        final = [final]
    if isinstance(final, (list, tuple, set, frozenset)):
        for child_id in final:
            if child_id not in states:
                raise BuildError(f"Final state '{child_id}' is not a child of '{state_id}'")
            marks.add(child_id)
    elif final is not None and not isinstance(final, bool):
        raise BuildError(f"'final' of '{state_id}' must be a child id, a list of ids or a boolean")
    for child_id, child_description in states.items():
        if isinstance(child_description, Mapping) and child_description.get("final") is True:
            marks.add(child_id)
    return marks


class MachineBuilder:
    """
    Turns a root description into a validated tree plus its context and event
    domain. Validation is done once, here, so a built machine is structurally
    sound.
    """

    def __init__(self, validator: Optional[Validator] = None) -> None:
        self._validator = validator or Validator()

    @property
    def validator(self) -> Validator:
        return self._validator

    def build(self, description: Mapping[str, Any]) -> MachineDescription:
        """
        :raises BuildError: If the description is malformed or fails validation.
        """
        if not isinstance(description, Mapping):
            raise BuildError("A machine description must be a mapping")
        root = build_tree(description)
        events = description.get("events")
        if events is not None:
            if isinstance(events, str):
                raise BuildError("'events' must be an iterable of event types, not a string")
            events = frozenset(events)
        self.validate(root, events)
        logger.debug("Built statechart with %d states", sum(1 for _ in root.walk()) - 1)
        return MachineDescription(root=root, context=description.get("context"), events=events, source=description)

    def validate(self, root: StateNode, events: Optional[FrozenSet[str]] = None) -> None:
        resolver = ActiveConfigurationResolver(root)
        self._validator.validate_tree(root, resolver)
        self._validator.validate_event_domain(root, events)
