"""
Runtime package: active-configuration resolution, timers, change
notification and locking.
"""

from .graph import ActiveConfigurationResolver
from .notifier import ChangeNotifier, Subscription
from .timers import ManualTimerBackend, ThreadingTimerBackend, TimerRegistry

__all__ = [
    "ActiveConfigurationResolver",
    "ChangeNotifier",
    "Subscription",
    "ManualTimerBackend",
    "ThreadingTimerBackend",
    "TimerRegistry",
]
