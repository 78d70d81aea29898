"""
BrightBuddy event system.

Public API:
- EventBus: publish/subscribe with tiered concurrency
- ListenerPriority: CRITICAL, HIGH, NORMAL, LOW
- EventMetrics: immutable metrics snapshot
"""

from brightbuddy.core.event.bus import EventBus
from brightbuddy.core.event.metrics import EventMetrics
from brightbuddy.core.event.types import EventListener, EventPayload, ListenerPriority

__all__ = [
    "EventBus",
    "EventListener",
    "EventMetrics",
    "EventPayload",
    "ListenerPriority",
]
