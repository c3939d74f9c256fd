# statechart/runtime/notifier.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

from typing import Any, Callable, List, Optional

Subscriber = Callable[[Any, Any], None]


class Subscription:
    """
    Handle returned by :meth:`ChangeNotifier.subscribe`. Unsubscribing more
    than once is a no-op.
    """

    def __init__(self, notifier: "ChangeNotifier", callback: Subscriber) -> None:
        self._notifier: Optional[ChangeNotifier] = notifier
        self._callback = callback

    @property
    def callback(self) -> Subscriber:
        return self._callback

    @property
    def active(self) -> bool:
        return self._notifier is not None

    def unsubscribe(self) -> None:
        if self._notifier is None:
            return
        self._notifier._remove(self)
        self._notifier = None

    def __call__(self) -> None:
        self.unsubscribe()


class ChangeNotifier:
    """
    Publish/subscribe channel broadcasting ``(active_configuration, context)``
    after each dispatch settles. Subscribers run synchronously, in subscription
    order, against a snapshot of the subscriber list taken when publishing starts.
    """

    def __init__(self) -> None:
        self._subscriptions: List[Subscription] = []

    def __len__(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: Subscriber) -> Subscription:
        """
        Register ``callback`` and return its unsubscribe handle.

        :raises TypeError: If ``callback`` is not callable.
        """
        if not callable(callback):
            raise TypeError(f"{callback!r} is not callable")
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, configuration: Any, context: Any) -> None:
        """Invoke every current subscriber with ``configuration`` and ``context``."""
        for subscription in list(self._subscriptions):
            if subscription.active:
                subscription.callback(configuration, context)

    def clear(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
