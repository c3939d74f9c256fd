# statechart/core/state_machine.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import copy
import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, MutableMapping, Optional, Tuple, Union

from statechart.core.builder import MachineBuilder
from statechart.core.errors import MachineStateError, RestoreError, UnknownTargetError, ValidationError
from statechart.core.events import DoneEvent, Event, TimeoutEvent, as_event
from statechart.core.hooks import HookManager
from statechart.core.states import StateKind, StateNode
from statechart.core.transitions import Transition
from statechart.core.validations import Validator
from statechart.persistence.serializer import Serializer, Snapshot
from statechart.runtime.concurrency import get_lock, with_lock
from statechart.runtime.graph import ActiveConfigurationResolver, ActiveState
from statechart.runtime.notifier import ChangeNotifier, Subscriber, Subscription
from statechart.runtime.timers import TimerBackend, TimerRegistry

logger = logging.getLogger(__name__)

_UNSET = object()


class Machine:
    """
    A statechart interpreter. Holds the node tree, the context, the timer
    registry and the change notifier, and drives the tree through entry, exit
    and transition steps as events arrive.

    Every dispatch runs to completion. Events sent from inside an action are
    queued on the running dispatch and processed, each fully, before the
    outermost call returns; subscribers are notified once per outermost call
    that changed anything.
    """

    def __init__(
        self,
        description: Union[Mapping[str, Any], StateNode],
        *,
        context: Any = _UNSET,
        events: Optional[Iterable[str]] = None,
        hooks: Optional[List[object]] = None,
        timer_backend: Optional[TimerBackend] = None,
        validator: Optional[Validator] = None,
    ) -> None:
        """
        :param description: Root description mapping, or an already built root node.
        :param context: Initial context; overrides the description's ``context``.
        :param events: Accepted event types; overrides the description's ``events``.
        :param hooks: Objects with ``on_enter``/``on_exit``/``on_error`` methods.
        :param timer_backend: Source of delayed callbacks; threading timers by default.
        :param validator: Validator applied to the built tree.
        :raises BuildError: If the description is malformed.
        """
        self._validator = validator or Validator()
        builder = MachineBuilder(self._validator)
        if isinstance(description, StateNode):
            if description.parent is not None:
                raise ValidationError("A machine root must not have a parent")
            root = description
            initial_context = None
            event_domain = frozenset(events) if events is not None else None
            builder.validate(root, event_domain)
        else:
            built = builder.build(description)
            root = built.root
            initial_context = built.context
            event_domain = built.events
            if events is not None:
                event_domain = frozenset(events)
                builder.validate(root, event_domain)
        if context is not _UNSET:
            initial_context = context

        self._root = root
        self._events = event_domain
        self._context = copy.deepcopy(initial_context)
        self._lock = get_lock()
        self._resolver = ActiveConfigurationResolver(root)
        self._timers = TimerRegistry(timer_backend, lock=self._lock)
        self._notifier = ChangeNotifier()
        self._hooks = HookManager(hooks)
        self._running = False
        self._queue: Deque[Event] = deque()
        self._depth = 0
        self._stop_requested = False

    @property
    def root(self) -> StateNode:
        return self._root

    @property
    def resolver(self) -> ActiveConfigurationResolver:
        return self._resolver

    @property
    def timers(self) -> TimerRegistry:
        return self._timers

    @property
    def hooks(self) -> HookManager:
        return self._hooks

    @property
    def events(self) -> Optional[frozenset]:
        return self._events

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Enter the root's default configuration. Starting twice is a no-op."""
        with with_lock(self._lock):
            if self._running:
                return
            self._running = True
            self._run_frame(self._enter_default)

    def stop(self) -> None:
        """
        Exit the whole active configuration and cancel every timer. Called from
        inside an action, the stop happens once the running dispatch drains.
        """
        with with_lock(self._lock):
            if self._depth:
                self._stop_requested = True
                return
            if not self._running:
                return
            self._run_frame(self._exit_all)

    def _enter_default(self) -> bool:
        entered: List[StateNode] = []
        exited: List[StateNode] = []
        self._root.enter(self._context, self.send, (), entered, exited)
        self._after_entering(entered, exited)
        logger.debug("Started in %s", self.active_paths())
        return True

    def _exit_all(self) -> bool:
        exited: List[StateNode] = []
        try:
            self._root.exit(self._context, self.send, exited)
        finally:
            for node in exited:
                self._hooks.execute_on_exit(node)
        self._timers.cancel_all()
        self._queue.clear()
        self._running = False
        logger.debug("Stopped")
        return True

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, event: Union[Event, str, Mapping[str, Any]], **payload: Any) -> None:
        """
        Deliver an event. Accepts an :class:`Event`, a type string with keyword
        payload, or a mapping with a ``type`` key.

        :raises MachineStateError: If the machine is not running.
        :raises ValidationError: If the event type is outside the declared domain.
        :raises GuardError, ActionError, UnknownTargetError: Propagated from the
            transition being taken; the configuration is left as it was at the
            point of failure.
        """
        event = as_event(event, **payload)
        if (
            self._events is not None
            and not isinstance(event, (TimeoutEvent, DoneEvent))
            and event.type not in self._events
        ):
            raise ValidationError(f"Event type '{event.type}' is not declared for this machine")
        with with_lock(self._lock):
            if not self._running:
                raise MachineStateError(f"Cannot dispatch '{event.type}': machine is not running")
            if self._depth:
                self._queue.append(event)
                return
            self._run_frame(lambda: self._process(event))

    send = dispatch

    def _run_frame(self, step: Callable[[], bool]) -> None:
        """
        Run ``step`` and then every event queued meanwhile, then publish once if
        anything changed. Only the outermost call on the stack runs a frame.
        """
        self._depth += 1
        changed = False
        try:
            changed = step()
            while self._queue and self._running:
                changed = self._process(self._queue.popleft()) or changed
            if self._stop_requested and self._running:
                self._stop_requested = False
                changed = self._exit_all() or changed
        except Exception as e:
            self._queue.clear()
            self._hooks.execute_on_error(e)
            raise
        finally:
            self._depth -= 1
            self._stop_requested = False
        if changed:
            self._notifier.publish(self._resolver.configuration(), self._context)

    def _process(self, event: Event) -> bool:
        """One macrostep: select transitions for ``event`` and take them in document order."""
        selected = self._select_transitions(event)
        if not selected:
            logger.debug("No transition for '%s' in %s", event.type, self.active_paths())
            return False
        for source, transition in selected:
            if not source.active:
                logger.debug("Skipping transition from '%s': exited earlier in this step", source.path_id)
                continue
            self._take(source, transition, event)
        return True

    def _select_transitions(self, event: Event) -> List[Tuple[StateNode, Transition]]:
        """
        For each active leaf, find the innermost node whose first passing
        candidate handles ``event``. Regions of a parallel node select
        independently; a shared ancestor is selected at most once.
        """
        decisions: Dict[int, Optional[Transition]] = {}
        selected: List[Tuple[StateNode, Transition]] = []
        for leaf in self._resolver.active_leaves():
            node: Optional[StateNode] = leaf
            while node is not None:
                key = id(node)
                if key not in decisions:
                    decisions[key] = self._first_enabled(node, event)
                    if decisions[key] is not None:
                        selected.append((node, decisions[key]))
                if decisions[key] is not None:
                    break
                node = node.parent
        return selected

    def _first_enabled(self, node: StateNode, event: Event) -> Optional[Transition]:
        for candidate in node.handlers_for(event.type):
            if candidate.evaluate_guard(self._context, event):
                return candidate
        return None

    def _take(self, source: StateNode, transition: Transition, event: Event) -> None:
        ref = transition.compute_target(self._context, event)
        target = self._resolve(ref, source) if ref is not None else None

        exited: List[StateNode] = []
        if target is not None:
            try:
                for node in self._resolver.exit_set(source, target):
                    node.exit(self._context, self.send, exited)
            finally:
                self._notify_exits(exited)

        result = transition.execute_action(self._context, event, self.send)
        cleanup = None
        if isinstance(result, str):
            target = self._resolve(result, source)
            try:
                for node in self._resolver.exit_set(source, target):
                    if node.active:
                        node.exit(self._context, self.send, exited)
            finally:
                self._notify_exits(exited)
        elif callable(result):
            cleanup = result
        elif result is not None:
            logger.debug("Ignoring %r returned by the action of '%s'", result, source.path_id)

        if target is not None:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "'%s' -> '%s' on '%s', entering %s",
                    source.path_id,
                    target.path_id,
                    event.type,
                    [node.path_id for node in self._resolver.entry_path(target)],
                )
            entered: List[StateNode] = []
            exited = []
            self._root.enter(self._context, self.send, self._resolver.path_from_root(target), entered, exited)
            self._after_entering(entered, exited)
        else:
            logger.debug("Internal transition of '%s' on '%s'", source.path_id, event.type)

        if cleanup is not None:
            (target or source).attach_cleanup(cleanup)

    def _resolve(self, ref: str, source: StateNode) -> StateNode:
        if not isinstance(ref, str):
            raise UnknownTargetError(f"Target {ref!r} from '{source.path_id}' is not a state reference")
        node = self._resolver.resolve_target(ref, source)
        if node is None:
            raise UnknownTargetError(f"Target '{ref}' from '{source.path_id}' does not resolve to a state")
        return node

    def _after_entering(self, entered: List[StateNode], exited: List[StateNode]) -> None:
        """Hooks, timers and completion events for nodes just entered."""
        self._notify_exits(exited)
        for node in entered:
            self._hooks.execute_on_enter(node)
        for node in entered:
            if node.active and node.after is not None:
                self._arm(node)
        for node in entered:
            parent = node.parent
            if node.active and node.is_final and parent is not None and parent.kind is StateKind.COMPOUND:
                self._queue.append(DoneEvent(parent.path_id, node.id))

    def _notify_exits(self, exited: List[StateNode]) -> None:
        while exited:
            self._hooks.execute_on_exit(exited.pop(0))

    def _arm(self, node: StateNode) -> None:
        delay = node.after.compute_delay(self._context)
        self._timers.schedule(node, delay, lambda: self.dispatch(TimeoutEvent(node.path_id, delay)))

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Subscription:
        """
        Register ``callback(active_configuration, context)``, called once after
        every dispatch that changed the configuration or ran an action.
        """
        return self._notifier.subscribe(callback)

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.unsubscribe()

    def get_active_configuration(self) -> ActiveState:
        """Nested mapping mirroring the tree: child id to nested mapping, or to a bool for atomic states."""
        with with_lock(self._lock):
            return self._resolver.configuration()

    def get_state_value(self) -> Any:
        """Compact form of the configuration, e.g. ``{"power": "off", "temperature": "cold"}``."""
        with with_lock(self._lock):
            return self._resolver.state_value()

    def active_paths(self) -> List[str]:
        """Dotted paths of the active atomic states, in document order."""
        return [node.path_id for node in self._resolver.active_leaves()]

    def matches(self, path: str) -> bool:
        """True when the state at dotted ``path`` is active."""
        node = self._resolver.find(path)
        return node is not None and node.active

    def get_context(self) -> Any:
        return self._context

    def set_context(self, value: Any) -> None:
        """Replace the context. Does not notify subscribers."""
        with with_lock(self._lock):
            self._context = value

    def update_context(self, **changes: Any) -> None:
        """
        Merge ``changes`` into a mapping context.

        :raises TypeError: If the context is not a mutable mapping.
        """
        with with_lock(self._lock):
            if not isinstance(self._context, MutableMapping):
                raise TypeError("update_context requires a mutable mapping context")
            self._context.update(changes)

    # ------------------------------------------------------------------
    # Snapshots and cloning
    # ------------------------------------------------------------------

    def serialize(self) -> Snapshot:
        """Capture the active leaf paths and a deep copy of the context."""
        with with_lock(self._lock):
            return Snapshot(active=tuple(self.active_paths()), context=copy.deepcopy(self._context))

    def restore(self, snapshot: Union[Snapshot, Mapping[str, Any]]) -> None:
        """
        Replace the active configuration and context with ``snapshot``'s.

        No entry or exit actions run. Timers of restored states are re-armed
        with delays recomputed from the restored context. Subscribers are
        notified once.

        :raises RestoreError: If a path is unknown or the paths conflict.
        :raises MachineStateError: If called while a dispatch is running.
        """
        if not isinstance(snapshot, Snapshot):
            snapshot = Snapshot.from_dict(snapshot)
        with with_lock(self._lock):
            if self._depth:
                raise MachineStateError("Cannot restore while a dispatch is running")
            targets = []
            for path in snapshot.active:
                node = self._resolver.find(path)
                if node is None or node is self._root:
                    raise RestoreError(f"Snapshot names unknown state '{path}'")
                targets.append(node)
            try:
                nodes = self._resolver.complete_configuration(targets)
            except ValueError as e:
                raise RestoreError(str(e)) from e

            self._timers.cancel_all()
            for node in self._resolver.exit_path(self._root):
                node.deactivate()
            self._queue.clear()
            self._context = copy.deepcopy(snapshot.context)
            for node in nodes:
                node.activate()
            self._running = bool(nodes)
            for node in nodes:
                if node.after is not None:
                    self._arm(node)
            logger.debug("Restored %s", self.active_paths())
            self._notifier.publish(self._resolver.configuration(), self._context)

    def to_json(self) -> str:
        """JSON text of :meth:`serialize`. The context must be JSON serializable."""
        return Serializer().dumps(self.serialize())

    def from_json(self, text: str) -> None:
        """Restore from text produced by :meth:`to_json`."""
        self.restore(Serializer().loads(text))

    def clone(self) -> "Machine":
        """
        A new, unstarted machine with a structurally identical tree, a deep
        copy of the current context and no timers of its own yet.
        """
        with with_lock(self._lock):
            return Machine(
                self._root.clone(),
                context=copy.deepcopy(self._context),
                events=self._events,
                hooks=self._hooks.hooks,
                timer_backend=self._timers.backend,
                validator=self._validator,
            )

    def __repr__(self) -> str:
        return f"Machine({self._root.id!r}, running={self._running}, active={self.active_paths()})"


def create_machine(description: Mapping[str, Any], **kwargs: Any) -> Machine:
    """Build a :class:`Machine` from a description; see :class:`Machine` for keyword options."""
    return Machine(description, **kwargs)
