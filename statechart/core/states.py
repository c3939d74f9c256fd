# statechart/core/states.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple
from weakref import ReferenceType, ref

from statechart.core.actions import Callback, wrap
from statechart.core.errors import ActionError, BuildError, StatechartError
from statechart.core.events import AFTER_PREFIX, DONE_PREFIX
from statechart.core.transitions import DelayedTransition, Transition

if TYPE_CHECKING:
    from statechart.runtime.timers import TimerHandle

SendFn = Callable[..., None]


class StateKind(Enum):
    """The closed set of node kinds. Engine code branches on this tag."""

    ATOMIC = "atomic"
    COMPOUND = "compound"
    PARALLEL = "parallel"


class StateNode:
    """
    A single node of the statechart tree.

    A node owns its children exclusively; the parent link is a weak
    back-reference used for upward traversal only. Compound nodes have exactly
    one active child while active, parallel nodes have all of their children
    (regions) active while active, atomic nodes have no children.

    Entering and exiting are idempotent: entering an active node or exiting an
    inactive one does nothing beyond descending along the requested path.
    """

    def __init__(
        self,
        state_id: str,
        kind: StateKind = StateKind.ATOMIC,
        entry: Optional[Callable[..., Any]] = None,
        exit: Optional[Callable[..., Any]] = None,
        handlers: Optional[Dict[str, Sequence[Transition]]] = None,
        after: Optional[DelayedTransition] = None,
        on_done: Optional[Sequence[Transition]] = None,
    ) -> None:
        """
        :param state_id: Identifier, unique among its siblings.
        :param kind: Atomic, compound or parallel.
        :param entry: Entry action ``(context, send)``.
        :param exit: Exit action ``(context, send)``.
        :param handlers: Mapping of event type to ordered candidate transitions.
        :param after: Delayed transition armed while the node is active.
        :param on_done: Candidate transitions taken when a final child is entered.
        """
        if not isinstance(state_id, str) or not state_id or "." in state_id:
            raise BuildError(f"State id must be a non-empty string without dots, got {state_id!r}")
        if not isinstance(kind, StateKind):
            raise BuildError("State kind must be a StateKind value")
        self._id = state_id
        self._kind = kind
        self._parent: Optional[ReferenceType[StateNode]] = None
        self._children: List[StateNode] = []
        self._children_by_id: Dict[str, StateNode] = {}
        self._initial_id: Optional[str] = None
        self._is_final = False
        self._entry = wrap(entry)
        self._exit = wrap(exit)
        self._handlers: Dict[str, List[Transition]] = {}
        for event_type, candidates in (handlers or {}).items():
            self.add_handler(event_type, candidates)
        self._after = after
        self._on_done: List[Transition] = list(on_done or [])
        self._active = False
        self._cleanups: List[Callable[[], Any]] = []
        self.pending_timer: Optional["TimerHandle"] = None

    def __repr__(self) -> str:
        return f"StateNode({self.path_id or self._id!r}, {self._kind.value}, active={self._active})"

    @property
    def id(self) -> str:
        return self._id

    @property
    def kind(self) -> StateKind:
        return self._kind

    @property
    def parent(self) -> Optional[StateNode]:
        return self._parent() if self._parent is not None else None

    @property
    def children(self) -> Tuple[StateNode, ...]:
        return tuple(self._children)

    @property
    def is_atomic(self) -> bool:
        return self._kind is StateKind.ATOMIC

    @property
    def is_compound(self) -> bool:
        return self._kind is StateKind.COMPOUND

    @property
    def is_parallel(self) -> bool:
        return self._kind is StateKind.PARALLEL

    @property
    def is_final(self) -> bool:
        return self._is_final

    @property
    def active(self) -> bool:
        return self._active

    @property
    def initial_child(self) -> Optional[StateNode]:
        if self._initial_id is None:
            return None
        return self._children_by_id[self._initial_id]

    @property
    def active_child(self) -> Optional[StateNode]:
        """The active child of a compound node."""
        for child in self._children:
            if child._active:
                return child
        return None

    @property
    def after(self) -> Optional[DelayedTransition]:
        return self._after

    @property
    def entry_action(self) -> Optional[Callback]:
        return self._entry

    @property
    def exit_action(self) -> Optional[Callback]:
        return self._exit

    @property
    def handlers(self) -> Dict[str, List[Transition]]:
        return {event_type: list(candidates) for event_type, candidates in self._handlers.items()}

    @property
    def on_done(self) -> List[Transition]:
        return list(self._on_done)

    @property
    def path(self) -> Tuple[str, ...]:
        """Ids from just below the root down to this node; empty for the root."""
        ids: List[str] = []
        current: Optional[StateNode] = self
        while current is not None and current.parent is not None:
            ids.append(current._id)
            current = current.parent
        return tuple(reversed(ids))

    @property
    def path_id(self) -> str:
        """Dotted form of :attr:`path`."""
        return ".".join(self.path)

    @property
    def timeout_event_type(self) -> str:
        return AFTER_PREFIX + self.path_id

    @property
    def done_event_type(self) -> str:
        return DONE_PREFIX + self.path_id

    def add_child(self, child: StateNode, initial: bool = False, final: bool = False) -> None:
        """
        Attach ``child`` under this node.

        :raises BuildError: On atomic parents, duplicate ids, re-parenting, or a
            second initial child.
        """
        if self.is_atomic:
            raise BuildError(f"Atomic state '{self._id}' cannot have children")
        if child.parent is not None:
            raise BuildError(f"State '{child.id}' already belongs to '{child.parent.id}'")
        if child.id in self._children_by_id:
            raise BuildError(f"Duplicate state id '{child.id}' under '{self._id}'")
        if initial:
            if self.is_parallel:
                raise BuildError(f"Parallel state '{self._id}' cannot mark an initial child")
            if self._initial_id is not None:
                raise BuildError(
                    f"State '{self._id}' has multiple initial children: '{self._initial_id}' and '{child.id}'"
                )
            self._initial_id = child.id
        child._parent = ref(self)
        child._is_final = final
        self._children.append(child)
        self._children_by_id[child.id] = child

    def child(self, state_id: str) -> Optional[StateNode]:
        return self._children_by_id.get(state_id)

    def add_handler(self, event_type: str, candidates: Sequence[Transition]) -> None:
        if not event_type or not isinstance(event_type, str):
            raise BuildError("Event type must be a non-empty string")
        self._handlers.setdefault(event_type, []).extend(candidates)

    def handlers_for(self, event_type: str) -> List[Transition]:
        """Ordered candidate transitions this node declares for ``event_type``."""
        if self._after is not None and event_type == self.timeout_event_type:
            return [self._after]
        if self._on_done and event_type == self.done_event_type:
            return list(self._on_done)
        return list(self._handlers.get(event_type, ()))

    def ancestors(self) -> Iterator[StateNode]:
        """Proper ancestors, innermost first."""
        current = self.parent
        while current is not None:
            yield current
            current = current.parent

    def is_descendant_of(self, other: StateNode) -> bool:
        return any(ancestor is other for ancestor in self.ancestors())

    def walk(self) -> Iterator[StateNode]:
        """This node and every descendant, in document order."""
        yield self
        for child in self._children:
            yield from child.walk()

    def enter(
        self,
        context: Any,
        send: SendFn,
        path: Sequence[StateNode] = (),
        entered: Optional[List[StateNode]] = None,
        exited: Optional[List[StateNode]] = None,
    ) -> None:
        """
        Enter this node, then its descendants: the child named by ``path`` (or
        the initial child) for compound nodes, every region for parallel nodes.

        A compound node that is already active with a different active child
        exits that child first.

        :param path: Explicit descendants to enter, outermost first.
        :param entered: Collects the nodes newly entered, outermost first.
        :param exited: Collects the nodes exited on the way, innermost first.
        """
        if not self._active:
            self._active = True
            if entered is not None:
                entered.append(self)
            if self._entry is not None:
                _run_hook(self._entry, f"Entry action of '{self.path_id}'", context, send)

        next_node = path[0] if path else None
        rest = path[1:] if path else ()
        if self._kind is StateKind.COMPOUND:
            target = next_node or self.active_child or self.initial_child
            current = self.active_child
            if current is not None and current is not target:
                current.exit(context, send, exited)
            target.enter(context, send, rest, entered, exited)
        elif self._kind is StateKind.PARALLEL:
            for region in self._children:
                if region is next_node:
                    region.enter(context, send, rest, entered, exited)
                else:
                    region.enter(context, send, (), entered, exited)

    def exit(self, context: Any, send: SendFn, exited: Optional[List[StateNode]] = None) -> None:
        """
        Exit active descendants leaf-to-root, then run pending cleanups, cancel
        the pending timer, run the exit action and mark this node inactive.
        """
        if not self._active:
            return
        for child in reversed(self._children):
            if child._active:
                child.exit(context, send, exited)
        cleanups, self._cleanups = self._cleanups, []
        for cleanup in cleanups:
            _run_hook(cleanup, f"Cleanup of '{self.path_id}'")
        if self.pending_timer is not None:
            self.pending_timer.cancel()
            self.pending_timer = None
        if self._exit is not None:
            _run_hook(self._exit, f"Exit action of '{self.path_id}'", context, send)
        self._active = False
        if exited is not None:
            exited.append(self)

    def attach_cleanup(self, cleanup: Callable[[], Any]) -> None:
        """Register a closure run the next time this node exits."""
        self._cleanups.append(cleanup)

    @property
    def pending_cleanups(self) -> int:
        return len(self._cleanups)

    def activate(self) -> None:
        """Mark active without running any action. Used when restoring snapshots."""
        self._active = True

    def deactivate(self) -> None:
        """Mark inactive without running any action. Used when restoring snapshots."""
        self._active = False
        self._cleanups = []
        if self.pending_timer is not None:
            self.pending_timer.cancel()
            self.pending_timer = None

    def clone(self) -> StateNode:
        """
        Structurally identical copy of this subtree with fresh flags, no
        cleanups and no timers. Callbacks and transitions are shared since they
        hold no per-instance state.
        """
        copy = StateNode(
            self._id,
            self._kind,
            entry=self._entry,
            exit=self._exit,
            handlers=self._handlers,
            after=self._after,
            on_done=self._on_done,
        )
        for child in self._children:
            copy.add_child(child.clone(), initial=child._id == self._initial_id, final=child._is_final)
        return copy


def _run_hook(fn: Callable[..., Any], label: str, *args: Any) -> None:
    try:
        fn(*args)
    except StatechartError:
        raise
    except Exception as e:
        raise ActionError(f"{label} failed: {e}") from e
