"""
Event-aware logging context.

Publishing an event binds its name and payload keys (never values) to the
current LogContext so every log line emitted by listeners can be traced back
to the event that caused it.
"""

from __future__ import annotations

from typing import Any

from brightbuddy.core.logging.logger import set_log_context


def apply_event_log_context(event_name: str, payload: dict[str, Any]) -> None:
    """
    Bind ``event_name`` and ``event_keys`` to the current log context.

    The payload's ``user_id`` is bound too when present, so listener logs
    carry the user without each listener setting it.
    """
    user_id = payload.get("user_id")
    set_log_context(
        user_id=str(user_id) if user_id is not None else None,
        event_name=event_name,
        event_keys=sorted(payload.keys()),
    )
