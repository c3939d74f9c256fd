# statechart/core/hooks.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from statechart.core.states import StateNode


@runtime_checkable
class HookProtocol(Protocol):
    """
    Lifecycle listener. Implementations may define any subset of the methods;
    missing ones are skipped.
    """

    def on_enter(self, state: "StateNode") -> None: ...

    def on_exit(self, state: "StateNode") -> None: ...

    def on_error(self, error: Exception) -> None: ...


class HookManager:
    """
    Manages the registration and execution of hooks that listen to state machine
    lifecycle events (on_enter, on_exit, on_error). Users can attach logging,
    monitoring, or custom side effects without altering core logic.
    """

    def __init__(self, hooks: Optional[Iterable[object]] = None) -> None:
        """
        Initialize with an optional list of hook objects.
        """
        self._hooks: List[object] = list(hooks or [])

    @property
    def hooks(self) -> List[object]:
        return list(self._hooks)

    def register_hook(self, hook: object) -> None:
        """
        Add a new hook to the manager's list of hooks.

        :param hook: An object implementing some of the HookProtocol methods.
        """
        self._hooks.append(hook)

    def execute_on_enter(self, state: "StateNode") -> None:
        """
        Run all hooks' on_enter logic when entering a state.
        """
        for hook in self._hooks:
            if hasattr(hook, "on_enter"):
                hook.on_enter(state)

    def execute_on_exit(self, state: "StateNode") -> None:
        """
        Run all hooks' on_exit logic when exiting a state.
        """
        for hook in self._hooks:
            if hasattr(hook, "on_exit"):
                hook.on_exit(state)

    def execute_on_error(self, error: Exception) -> None:
        """
        Run all hooks' on_error logic when an exception occurs.
        """
        for hook in self._hooks:
            if hasattr(hook, "on_error"):
                hook.on_error(error)
