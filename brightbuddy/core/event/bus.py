"""
EventBus: in-process publish/subscribe for BrightBuddy.

Purpose
-------
Lets the usage ledger and the learning flow announce what happened
(``activity.completed``, ``achievement.unlocked``, subscription changes)
without knowing that analytics and notifications are listening. A listener
that fails or hangs is logged and counted; the publisher carries on.

Architecture Notes
------------------
- Composition: ``EventRouter`` matches names and ``*`` patterns,
  ``ListenerRegistry`` stores listeners in priority order and prunes
  ``once`` listeners, ``EventScheduler`` runs the tiers.
- One bus instance per ``ServiceContainer``; nothing here is a module
  singleton.
- Publishing binds the event name, payload keys and ``user_id`` to the
  log context of the publishing task.
- Delivery is in-process and best effort. Nothing is persisted or replayed.
"""

from __future__ import annotations

import inspect
from typing import Any, Optional

from brightbuddy.core.config.manager import ConfigManager
from brightbuddy.core.event.context import apply_event_log_context
from brightbuddy.core.event.metrics import EventMetrics, EventMetricsRecorder
from brightbuddy.core.event.registry import ListenerRegistry
from brightbuddy.core.event.router import EventRouter
from brightbuddy.core.event.scheduler import EventScheduler
from brightbuddy.core.event.types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)
from brightbuddy.core.logging.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LISTENER_TIMEOUT = 5.0

_TIMEOUT_KEYS = {
    ListenerPriority.CRITICAL: "core.event.listener_timeout.critical_seconds",
    ListenerPriority.HIGH: "core.event.listener_timeout.high_seconds",
}


def _callback_name(callback: CallbackType) -> str:
    return getattr(callback, "__qualname__", None) or getattr(callback, "__name__", repr(callback))


def _require_single_argument(callback: CallbackType) -> None:
    """
    Listeners receive the payload dict and nothing else.

    Callables whose signature cannot be inspected (some builtins) are let
    through.

    Raises:
        ValueError: The callback declares a different number of parameters
    """
    try:
        parameters = inspect.signature(callback).parameters
    except (TypeError, ValueError):
        return
    if len(parameters) != 1:
        raise ValueError(
            f"Event listener '{_callback_name(callback)}' must accept exactly 1 "
            f"parameter (the payload), it declares {len(parameters)}"
        )


class EventBus:
    """
    Tiered publish/subscribe bus.

    >>> bus = EventBus(config_manager=config)
    >>> bus.subscribe("activity.completed", analytics.handle_activity_completed,
    ...               priority=ListenerPriority.LOW)
    >>> await bus.publish("activity.completed", {"user_id": "u1", "score": 90})
    """

    def __init__(
        self,
        registry: Optional[ListenerRegistry] = None,
        router: Optional[EventRouter] = None,
        scheduler: Optional[EventScheduler] = None,
        metrics: Optional[EventMetricsRecorder] = None,
        config_manager: Optional[ConfigManager] = None,
        *,
        enable_metrics: bool = True,
        critical_timeout_seconds: Optional[float] = None,
        high_timeout_seconds: Optional[float] = None,
    ) -> None:
        self._config_manager = config_manager
        self._registry = registry or ListenerRegistry(router or EventRouter())
        self._scheduler = scheduler or EventScheduler()
        # None when metrics are disabled
        self._metrics: Optional[EventMetricsRecorder] = (
            (metrics or EventMetricsRecorder()) if enable_metrics else None
        )

        overrides = {
            ListenerPriority.CRITICAL: critical_timeout_seconds,
            ListenerPriority.HIGH: high_timeout_seconds,
        }
        self._timeouts = {
            priority: self._resolve_timeout(priority, override)
            for priority, override in overrides.items()
        }

        logger.info(
            "EventBus initialized",
            extra={
                "metrics_enabled": self._metrics is not None,
                "listener_timeouts": {p.name: t for p, t in self._timeouts.items()},
            },
        )

    def _resolve_timeout(self, priority: ListenerPriority, override: Optional[float]) -> float:
        """Explicit argument, then ``core.event.listener_timeout.*`` config, then 5 seconds."""
        if override is not None:
            return float(override)
        if self._config_manager is None:
            return DEFAULT_LISTENER_TIMEOUT

        key = _TIMEOUT_KEYS[priority]
        raw = self._config_manager.get(key, DEFAULT_LISTENER_TIMEOUT)
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.warning(
                "Unusable listener timeout in config, using default",
                extra={"config_key": key, "value": raw, "default_value": DEFAULT_LISTENER_TIMEOUT},
            )
            return DEFAULT_LISTENER_TIMEOUT

    @property
    def listener_timeouts(self) -> dict[ListenerPriority, float]:
        return dict(self._timeouts)

    # ------------------------------------------------------------------ #
    # Subscription
    # ------------------------------------------------------------------ #

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
        allow_duplicates: bool = False,
    ) -> str:
        """
        Register ``callback`` for an event name or ``*`` pattern.

        A second listener with the same identifier on the same name is
        ignored unless ``allow_duplicates`` is set. Returns the identifier
        for ``unsubscribe``.
        """
        _require_single_argument(callback)
        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )

        if not self._registry.add_listener(event_name, listener, allow_duplicates=allow_duplicates):
            logger.warning(
                "EventBus: duplicate listener ignored",
                extra={"event_name": event_name, "listener_id": listener.identifier},
            )
            return listener.identifier

        self._count_listeners(1)
        logger.debug(
            "EventBus: listener subscribed",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": priority.name,
                "once": once,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        removed = self._registry.remove_listener(event_name, identifier)
        if removed:
            self._count_listeners(-1)
        return removed

    def clear(self) -> None:
        """Drop every listener; metrics counters other than the listener total are kept."""
        dropped = self._registry.clear_all()
        if self._metrics is not None:
            self._metrics.reset_listener_count()
        logger.info("EventBus: listeners cleared", extra={"dropped_listeners": dropped})

    def _count_listeners(self, delta: int) -> None:
        if self._metrics is not None and delta:
            self._metrics.adjust_listener_count(delta)

    # ------------------------------------------------------------------ #
    # Publishing
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> list[Any]:
        """
        Deliver ``data`` to every listener matching ``event_name``.

        Returns the results of CRITICAL, HIGH and NORMAL listeners, in
        that order. LOW listeners are still running in the background when
        this returns; ``drain()`` waits for them.
        """
        if self._metrics is not None:
            self._metrics.record_publish(event_name)
        apply_event_log_context(event_name, data)

        registered = self._registry.get_total_listener_count()
        listeners = self._registry.extract_listeners_for_event(event_name)
        self._count_listeners(self._registry.get_total_listener_count() - registered)

        if not listeners:
            logger.debug("EventBus: no listeners", extra={"event_name": event_name})
            return []

        return await self._scheduler.execute(
            event_name=event_name,
            payload=data,
            listeners=listeners,
            metrics=self._metrics,
            logger=logger,
            critical_timeout=self._timeouts[ListenerPriority.CRITICAL],
            high_timeout=self._timeouts[ListenerPriority.HIGH],
        )

    async def drain(self) -> None:
        """Wait for background (LOW) listeners to finish."""
        await self._scheduler.drain()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_metrics(self) -> Optional[EventMetrics]:
        return self._metrics.snapshot() if self._metrics is not None else None

    def get_metrics_summary(self) -> dict[str, Any]:
        metrics = self.get_metrics()
        return metrics.get_summary() if metrics is not None else {}

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        """Total listeners, or those that would receive ``event_name`` (wildcards included)."""
        if event_name:
            return self._registry.get_listener_count_for_event(event_name)
        return self._registry.get_total_listener_count()

    def get_all_events(self) -> list[str]:
        return self._registry.get_all_event_keys()

    def get_background_task_count(self) -> int:
        return self._scheduler.get_background_task_count()
