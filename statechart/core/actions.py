# statechart/core/actions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

import inspect
from typing import Any, Callable, Optional


class Callback:
    """
    Adapter that wraps a user-defined callable so it can be invoked with the
    engine's full argument list, passing only as many leading positional
    arguments as the callable accepts.

    Guards are called with ``(context, event)``, transition actions with
    ``(context, event, send)`` and entry/exit actions with ``(context, send)``;
    a callable declaring fewer parameters receives the leading ones only.
    """

    def __init__(self, fn: Callable[..., Any]) -> None:
        """
        :param fn: The user callable.
        :raises TypeError: If ``fn`` is not callable.
        """
        if not callable(fn):
            raise TypeError(f"{fn!r} is not callable")
        self._fn = fn
        self._arity = _positional_arity(fn)

    @property
    def wrapped(self) -> Callable[..., Any]:
        return self._fn

    def __call__(self, *args: Any) -> Any:
        if self._arity is None:
            return self._fn(*args)
        return self._fn(*args[: self._arity])

    def __repr__(self) -> str:
        return f"Callback({getattr(self._fn, '__qualname__', self._fn)!r})"


def _positional_arity(fn: Callable[..., Any]) -> Optional[int]:
    """Number of positional parameters ``fn`` takes, or None when unbounded."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return None
    count = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


def wrap(fn: Optional[Callable[..., Any]]) -> Optional[Callback]:
    """Wrap ``fn`` in a :class:`Callback`, passing None and Callbacks through."""
    if fn is None or isinstance(fn, Callback):
        return fn
    return Callback(fn)
