"""
Value types shared by the EventBus components.

Priority tiers decide how the scheduler runs a listener: CRITICAL and HIGH
one at a time under a timeout, NORMAL gathered together (notifications),
LOW in the background (the analytics sink).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

# JSON-compatible dict
EventPayload = dict[str, Any]

CallbackType = Union[
    Callable[[EventPayload], Any],
    Callable[[EventPayload], Awaitable[Any]],
]


class ListenerPriority(Enum):
    """Lower values run first."""

    CRITICAL = 0
    HIGH = 10
    NORMAL = 50
    LOW = 100


@dataclass(frozen=True)
class EventListener:
    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority,
        identifier: Optional[str],
        once: bool,
    ) -> EventListener:
        """
        Wrap ``callback``; without an explicit identifier one is derived
        from the callback's module, qualified name and the event name, e.g.
        ``brightbuddy.modules.analytics.service.AnalyticsService.handle_activity_completed@activity.completed``.
        """
        if identifier is None:
            name = getattr(callback, "__qualname__", None) or getattr(callback, "__name__", "callback")
            identifier = f"{getattr(callback, '__module__', 'unknown')}.{name}@{event_name}"
        return cls(callback=callback, priority=priority, identifier=identifier, once=once)
