"""
Base Service Foundation

Purpose
-------
Provides the foundational class for BrightBuddy domain services. Services
implement business rules against the key-value store, emit events on the
bus, and raise domain exceptions.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers
- Error logging at the level of each exception's ``ErrorSeverity``

What this class does NOT do:
- Choose or initialize a storage backend
- Own the event bus

Usage
-----
    class UsageLedgerService(BaseService):
        def __init__(self, store, config_manager, event_bus, logger, clock):
            super().__init__(config_manager, event_bus, logger)
            self._store = store
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from brightbuddy.core.exceptions import BrightBuddyError, ConfigurationError, ErrorSeverity

if TYPE_CHECKING:
    from logging import Logger

    from brightbuddy.core.config.manager import ConfigManager
    from brightbuddy.core.event.bus import EventBus

Clock = Callable[[], datetime]

_SEVERITY_LEVELS = {
    ErrorSeverity.DEBUG: logging.DEBUG,
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Application configuration manager
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
        clock: Returns the current UTC time; injectable for tests
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        event_bus: EventBus,
        logger: Logger,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self._clock: Clock = clock or utc_now
        self.log = logger

    def now(self) -> datetime:
        return self._clock()

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Publish a domain event; listener failures never reach the caller."""
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(self, operation: str, error: Exception, **context: Any) -> None:
        """Log a failure at the level its ``ErrorSeverity`` asks for; plain exceptions log as errors."""
        if isinstance(error, BrightBuddyError):
            level = _SEVERITY_LEVELS[error.severity]
            code = error.error_code
        else:
            level = logging.ERROR
            code = None

        self.log.log(
            level,
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_code": code,
                "error_message": str(error),
                **context,
            },
        )
