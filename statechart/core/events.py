# statechart/core/events.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Dict, Mapping, Optional, Union

DONE_PREFIX = "done.state."
AFTER_PREFIX = "after."


class Event:
    """
    Represents a signal or trigger within the state machine. Events cause the
    machine to evaluate transitions and possibly change states.
    """

    def __init__(self, type: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """
        Create an event identified by its type tag. Payload may be attached as needed.

        :param type: A string identifying the kind of event.
        :param payload: Optional dictionary of additional event data.
        """
        if not type or not isinstance(type, str):
            raise ValueError("Event type must be a non-empty string")
        self._type = type
        self._payload: Dict[str, Any] = dict(payload or {})

    @property
    def type(self) -> str:
        """The event type tag handlers are keyed on."""
        return self._type

    @property
    def payload(self) -> Dict[str, Any]:
        """Additional event data."""
        return self._payload

    def __getattr__(self, item: str) -> Any:
        # Lets handlers read ``event.floor`` for a payload key ``floor``.
        try:
            return self.__dict__["_payload"][item]
        except KeyError:
            raise AttributeError(item) from None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self._type == other._type and self._payload == other._payload

    def __hash__(self) -> int:
        return hash(self._type)

    def __repr__(self) -> str:
        if self._payload:
            return f"{self.__class__.__name__}({self._type!r}, {self._payload!r})"
        return f"{self.__class__.__name__}({self._type!r})"


class TimeoutEvent(Event):
    """
    Synthetic event produced when a node's delayed transition fires. It is only
    handled by the node that armed the timer.
    """

    def __init__(self, node_path: str, delay_ms: float) -> None:
        """
        :param node_path: Dotted path of the node that owns the timer.
        :param delay_ms: The delay the timer was armed with.
        """
        super().__init__(AFTER_PREFIX + node_path, {"delay_ms": delay_ms})
        self._node_path = node_path

    @property
    def node_path(self) -> str:
        return self._node_path

    @property
    def delay_ms(self) -> float:
        return self._payload["delay_ms"]


class DoneEvent(Event):
    """
    Raised internally when a compound node enters one of its final children.
    """

    def __init__(self, node_path: str, final_child: str) -> None:
        super().__init__(DONE_PREFIX + node_path, {"final": final_child})
        self._node_path = node_path

    @property
    def node_path(self) -> str:
        return self._node_path


def as_event(event: Union[Event, str, Mapping[str, Any]], **payload: Any) -> Event:
    """
    Coerce the accepted event forms into an :class:`Event`.

    Accepts an Event instance, a type string (with keyword payload) or a mapping
    holding a ``type`` key plus payload entries.
    """
    if isinstance(event, Event):
        if payload:
            raise ValueError("Keyword payload cannot be combined with an Event instance")
        return event
    if isinstance(event, str):
        return Event(event, payload)
    if isinstance(event, Mapping):
        data = dict(event)
        try:
            event_type = data.pop("type")
        except KeyError:
            raise ValueError("Event mapping must contain a 'type' key") from None
        data.update(payload)
        return Event(event_type, data)
    raise TypeError(f"Cannot interpret {event!r} as an event")
