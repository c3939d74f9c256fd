# statechart/core/transitions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import Any, Callable, List, Mapping, Optional, Union

from statechart.core.actions import Callback, wrap
from statechart.core.errors import ActionError, BuildError, GuardError, StatechartError
from statechart.core.events import Event

TargetRef = Union[str, Callable[..., str]]

_TRANSITION_KEYS = {"target", "guard", "action"}
_DELAYED_KEYS = _TRANSITION_KEYS | {"delay"}


class Transition:
    """
    Defines a possible path from a node to a target, gated by a guard and
    optionally performing an action. A transition without a target is internal:
    it runs its action without changing the active configuration, unless the
    action itself returns a target.
    """

    def __init__(
        self,
        target: Optional[TargetRef] = None,
        guard: Optional[Callable[..., bool]] = None,
        action: Optional[Callable[..., Any]] = None,
    ) -> None:
        """
        :param target: Target reference string, a callable ``(context, event) -> str``
            computing it at dispatch time, or None for an internal transition.
        :param guard: Predicate ``(context, event) -> bool``.
        :param action: Side effect ``(context, event, send)``; may return a target
            string overriding the destination, or a cleanup callable run on the
            next exit of the state it configured.
        """
        if target is not None and not isinstance(target, str) and not callable(target):
            raise BuildError(f"Transition target must be a string or callable, got {target!r}")
        if isinstance(target, str) and not target:
            raise BuildError("Transition target must not be empty")
        self._target = target
        self._dynamic_target = wrap(target) if callable(target) else None
        self._guard = wrap(guard)
        self._action = wrap(action)

    @property
    def target(self) -> Optional[TargetRef]:
        """The declared target reference."""
        return self._target

    @property
    def guard(self) -> Optional[Callback]:
        return self._guard

    @property
    def action(self) -> Optional[Callback]:
        return self._action

    @property
    def is_internal(self) -> bool:
        """True when the transition declares no target."""
        return self._target is None

    @property
    def is_dynamic(self) -> bool:
        """True when the target is computed from context at dispatch time."""
        return self._dynamic_target is not None

    def evaluate_guard(self, context: Any, event: Event) -> bool:
        """
        Evaluate the guard to determine if the transition can occur.

        :param context: The machine context.
        :param event: The triggering event.
        :return: True if there is no guard or the guard passes.
        :raises GuardError: If the guard raises.
        """
        if self._guard is None:
            return True
        try:
            return bool(self._guard(context, event))
        except Exception as e:
            raise GuardError(f"Guard evaluation failed: {e}") from e

    def compute_target(self, context: Any, event: Event) -> Optional[str]:
        """
        Return the target reference for this firing, evaluating a dynamic target.

        :raises ActionError: If the dynamic target callable raises.
        """
        if self._dynamic_target is None:
            return self._target
        try:
            return self._dynamic_target(context, event)
        except Exception as e:
            raise ActionError(f"Target computation failed: {e}") from e

    def execute_action(self, context: Any, event: Event, send: Callable[..., None]) -> Any:
        """
        Execute the transition's action, if any.

        :return: Whatever the action returned (None, a target string or a cleanup callable).
        :raises ActionError: If the action fails.
        """
        if self._action is None:
            return None
        try:
            return self._action(context, event, send)
        except StatechartError:
            raise
        except Exception as e:
            raise ActionError(f"Action execution failed: {e}") from e

    @classmethod
    def from_spec(cls, spec: Any) -> "Transition":
        """
        Build a transition from its description form: a Transition, a target
        string, a dynamic-target callable or a ``{target, guard, action}`` mapping.
        """
        if isinstance(spec, Transition):
            return spec
        if isinstance(spec, str) or callable(spec):
            return cls(target=spec)
        if isinstance(spec, Mapping):
            unknown = set(spec) - _TRANSITION_KEYS
            if unknown:
                raise BuildError(f"Unknown transition keys: {sorted(unknown)}")
            return cls(target=spec.get("target"), guard=spec.get("guard"), action=spec.get("action"))
        raise BuildError(f"Cannot build a transition from {spec!r}")

    def __repr__(self) -> str:
        target = self._target if isinstance(self._target, str) or self._target is None else "<dynamic>"
        return f"{self.__class__.__name__}(target={target!r})"


class DelayedTransition(Transition):
    """
    A transition taken automatically after its owning node has been active for
    ``delay`` milliseconds. The delay is recomputed from context each time the
    node is entered or restored.
    """

    def __init__(
        self,
        delay: Union[float, Callable[..., float]],
        target: Optional[TargetRef] = None,
        guard: Optional[Callable[..., bool]] = None,
        action: Optional[Callable[..., Any]] = None,
    ) -> None:
        super().__init__(target=target, guard=guard, action=action)
        if callable(delay):
            self._delay: Union[float, Callback] = Callback(delay)
        elif isinstance(delay, (int, float)) and not isinstance(delay, bool) and delay >= 0:
            self._delay = delay
        else:
            raise BuildError(f"Delay must be a non-negative number of milliseconds or a callable, got {delay!r}")

    def compute_delay(self, context: Any) -> float:
        """
        Milliseconds to wait, evaluated against the current context.

        :raises ActionError: If the delay callable raises or returns a negative value.
        """
        if not isinstance(self._delay, Callback):
            return self._delay
        try:
            delay = self._delay(context)
        except Exception as e:
            raise ActionError(f"Delay computation failed: {e}") from e
        if delay is None or delay < 0:
            raise ActionError(f"Delay callable returned an invalid delay: {delay!r}")
        return delay

    @classmethod
    def from_spec(cls, spec: Any) -> "DelayedTransition":
        if isinstance(spec, DelayedTransition):
            return spec
        if not isinstance(spec, Mapping):
            raise BuildError(f"'after' must be a mapping with a 'delay' key, got {spec!r}")
        unknown = set(spec) - _DELAYED_KEYS
        if unknown:
            raise BuildError(f"Unknown delayed transition keys: {sorted(unknown)}")
        if "delay" not in spec:
            raise BuildError("'after' requires a 'delay'")
        return cls(
            delay=spec["delay"],
            target=spec.get("target"),
            guard=spec.get("guard"),
            action=spec.get("action"),
        )


def transitions_from_spec(spec: Any) -> List[Transition]:
    """Normalise a handler spec (single item or ordered list) to a list of candidates."""
    if isinstance(spec, (list, tuple)):
        if not spec:
            raise BuildError("An event handler list must not be empty")
        return [Transition.from_spec(item) for item in spec]
    return [Transition.from_spec(spec)]
