"""
Listener registry for the EventBus.

Holds ``(pattern, listener)`` subscriptions in ``(priority, identifier)``
order. Exact names are patterns without ``*``, so one router call decides
whether a subscription receives an event. Dispatch prunes ``once``
listeners in the same step that collects them.

Single event loop only; mutations happen between awaits.
"""

from __future__ import annotations

from typing import NamedTuple

from brightbuddy.core.event.router import EventRouter
from brightbuddy.core.event.types import EventListener


class _Subscription(NamedTuple):
    pattern: str
    listener: EventListener

    @property
    def order(self) -> tuple[int, str]:
        return (self.listener.priority.value, self.listener.identifier)


class ListenerRegistry:
    def __init__(self, router: EventRouter | None = None) -> None:
        self._router = router or EventRouter()
        self._subscriptions: list[_Subscription] = []

    def add_listener(self, event_name: str, listener: EventListener, *, allow_duplicates: bool) -> bool:
        """
        Subscribe ``listener`` to a name or pattern.

        Returns False, leaving the registry untouched, when the identifier is
        already subscribed to ``event_name`` and duplicates are not allowed.
        """
        if not allow_duplicates and any(
            sub.pattern == event_name and sub.listener.identifier == listener.identifier
            for sub in self._subscriptions
        ):
            return False

        self._subscriptions.append(_Subscription(event_name, listener))
        self._subscriptions.sort(key=lambda sub: sub.order)
        return True

    def remove_listener(self, event_name: str, identifier: str) -> bool:
        kept = [
            sub
            for sub in self._subscriptions
            if not (sub.pattern == event_name and sub.listener.identifier == identifier)
        ]
        removed = len(kept) < len(self._subscriptions)
        self._subscriptions = kept
        return removed

    def clear_all(self) -> int:
        """Drop everything; returns how many subscriptions there were."""
        total = len(self._subscriptions)
        self._subscriptions = []
        return total

    def extract_listeners_for_event(self, event_name: str) -> list[EventListener]:
        """Listeners receiving ``event_name`` in execution order; ``once`` ones are removed."""
        matched: list[EventListener] = []
        kept: list[_Subscription] = []
        for sub in self._subscriptions:
            if self._router.matches(event_name, sub.pattern):
                matched.append(sub.listener)
                if sub.listener.once:
                    continue
            kept.append(sub)
        self._subscriptions = kept
        return matched

    def get_listener_count_for_event(self, event_name: str) -> int:
        return sum(1 for sub in self._subscriptions if self._router.matches(event_name, sub.pattern))

    def get_total_listener_count(self) -> int:
        return len(self._subscriptions)

    def get_all_event_keys(self) -> list[str]:
        return sorted({sub.pattern for sub in self._subscriptions})
