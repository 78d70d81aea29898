"""
Tiered listener execution for the BrightBuddy EventBus.

Execution Model
---------------
- CRITICAL then HIGH: one listener at a time, awaited, each bounded by its
  tier timeout
- NORMAL: gathered concurrently and awaited
- LOW: scheduled as background tasks; ``drain()`` waits for them

Each listener runs in its own error boundary. Failures and timeouts are
logged with the listener id and counted; the publisher never sees them.
Plain functions are pushed to the default executor.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import Logger
from typing import Any, Optional

from brightbuddy.core.event.metrics import EventMetricsRecorder
from brightbuddy.core.event.types import EventListener, EventPayload, ListenerPriority

_SEQUENTIAL = (ListenerPriority.CRITICAL, ListenerPriority.HIGH)


@dataclass(frozen=True)
class _Dispatch:
    """Everything one ``publish`` needs to run and account for its listeners."""

    event_name: str
    payload: EventPayload
    metrics: Optional[EventMetricsRecorder]
    logger: Logger

    def _fields(self, listener: EventListener, **more: Any) -> dict[str, Any]:
        return {
            "event_name": self.event_name,
            "listener_id": listener.identifier,
            "priority": listener.priority.name,
            **more,
        }

    def _failed(self, listener: EventListener, exc: BaseException, message: str) -> None:
        if self.metrics is not None:
            self.metrics.record_error(self.event_name)
        self.logger.error(
            message,
            extra=self._fields(listener, error=str(exc), error_type=type(exc).__name__),
            exc_info=exc,
        )

    async def call(self, listener: EventListener) -> Any:
        self.logger.debug("EventBus: executing listener", extra=self._fields(listener))
        try:
            if asyncio.iscoroutinefunction(listener.callback):
                return await listener.callback(self.payload)
            return await asyncio.get_running_loop().run_in_executor(
                None, listener.callback, self.payload
            )
        except Exception as exc:
            self._failed(listener, exc, "EventBus listener error")
            return None

    async def call_bounded(self, listener: EventListener, timeout: Optional[float]) -> Any:
        if not timeout or timeout <= 0:
            return await self.call(listener)
        try:
            return await asyncio.wait_for(self.call(listener), timeout=timeout)
        except asyncio.TimeoutError as exc:
            self._failed(listener, exc, f"EventBus listener exceeded {timeout}s")
            return None


class EventScheduler:
    """Runs the listeners of one event according to their priority tier."""

    def __init__(self) -> None:
        # LOW tasks are referenced here until done so the loop cannot drop them
        self._background_tasks: set[asyncio.Task[Any]] = set()

    async def execute(
        self,
        *,
        event_name: str,
        payload: EventPayload,
        listeners: list[EventListener],
        metrics: Optional[EventMetricsRecorder],
        logger: Logger,
        critical_timeout: Optional[float],
        high_timeout: Optional[float],
    ) -> list[Any]:
        """
        Run ``listeners`` (already priority-ordered) for one event.

        Returns the results of CRITICAL, HIGH and NORMAL listeners in that
        order; a failed listener contributes ``None``. LOW listeners return
        nothing.
        """
        dispatch = _Dispatch(event_name, payload, metrics, logger)
        timeouts = {ListenerPriority.CRITICAL: critical_timeout, ListenerPriority.HIGH: high_timeout}

        results: list[Any] = []
        for listener in listeners:
            if listener.priority in _SEQUENTIAL:
                results.append(await dispatch.call_bounded(listener, timeouts[listener.priority]))

        concurrent = [dispatch.call(lst) for lst in listeners if lst.priority is ListenerPriority.NORMAL]
        if concurrent:
            results.extend(await asyncio.gather(*concurrent))

        for listener in listeners:
            if listener.priority is ListenerPriority.LOW:
                self._spawn(dispatch, listener)

        return results

    def _spawn(self, dispatch: _Dispatch, listener: EventListener) -> None:
        task = asyncio.get_running_loop().create_task(
            dispatch.call(listener),
            name=f"eventbus-low-{dispatch.event_name}-{listener.identifier}",
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    def get_background_task_count(self) -> int:
        return len(self._background_tasks)

    async def drain(self) -> None:
        """Wait until no LOW-tier task is outstanding, including ones spawned meanwhile."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)
