"""
BrightBuddy Logging Subsystem

Purpose
-------
Structured, non-blocking logging for every BrightBuddy service. Records are
tagged with the learner and activity they concern, pushed onto a bounded
queue and written by a background listener thread, so quota checks and
progression updates on the event loop never wait on stdout or disk.

Responsibilities
----------------
- Configure the root logger once per process (``setup_logging``) and tear
  it down cleanly (``shutdown_logging``).
- Stamp each record with the learner context bound through ``LogContext``
  or ``set_log_context``: user_id, action, activity_id, event_name,
  correlation_id and component.
- Render JSON for production and the optional daily file, plain or
  colored text for local runs.
- Count enqueued, dropped and failed records for ``get_logging_health``.

Architecture Notes
------------------
- Context lives in a ``ContextVar`` so concurrent completions for different
  learners never share fields.
- The context filter runs on the producing side of the queue; the listener
  thread has no access to the caller's ContextVars.
- A full queue drops the record and counts it instead of blocking.
- ``extra={...}`` keys passed at the call site land under ``extra`` in the
  JSON document.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from brightbuddy.core.config.config import Config

# Fields promoted to top-level JSON keys and shown in console output
CONTEXT_FIELDS: Tuple[str, ...] = (
    "user_id",
    "action",
    "activity_id",
    "event_name",
    "correlation_id",
    "component",
)

_learner_context: ContextVar[Dict[str, Any]] = ContextVar("learner_context", default={})


# ============================================================================
# CONFIGURATION
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Resolved logging settings; build with ``LoggerConfig.from_config()``."""

    environment: str = "development"
    level: int = logging.INFO
    json_console: bool = False
    colors: bool = False
    file_enabled: bool = True
    logs_dir: Path = Path("logs")
    file_name: str = "brightbuddy.json.log"
    file_backups: int = 7
    queue_size: int = 10_000
    console_format: str = "%(asctime)s %(levelname)-8s %(name)s: %(message)s%(context_suffix)s"
    date_format: str = "%H:%M:%S"
    quiet_loggers: Tuple[str, ...] = ("asyncio", "sqlalchemy.engine", "testcontainers", "redis")

    @classmethod
    def from_config(cls) -> "LoggerConfig":
        environment = str(Config.ENVIRONMENT).lower()
        level = logging.getLevelName(str(Config.LOG_LEVEL).upper())
        if not isinstance(level, int):
            level = logging.INFO

        json_console = environment == "production" if Config.LOG_JSON is None else bool(Config.LOG_JSON)
        colors = not json_console and bool(Config.LOG_COLORS) and sys.stdout.isatty()

        return cls(
            environment=environment,
            level=level,
            json_console=json_console,
            colors=colors,
            file_enabled=bool(Config.LOG_TO_FILE),
            logs_dir=Path(Config.LOGS_DIR).resolve(),
        )


@dataclass
class _LoggingState:
    config: Optional[LoggerConfig] = None
    log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
    listener: Optional[QueueListener] = None
    enqueued: int = 0
    dropped: int = 0
    handler_errors: int = 0


@dataclass(frozen=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_capacity: int
    records_enqueued: int
    records_dropped: int
    handler_errors: int
    extra: Dict[str, Any] = field(default_factory=dict)


_state = _LoggingState()


# ============================================================================
# RECORD ENRICHMENT AND RENDERING
# ============================================================================


class LearnerContextFilter(logging.Filter):
    """Copy the current learner context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _learner_context.get()
        for name in CONTEXT_FIELDS:
            # extra={"activity_id": ...} at the call site beats the ambient value
            if getattr(record, name, None) is None:
                setattr(record, name, context.get(name))
        if record.component is None:
            record.component = record.name.rsplit(".", 1)[-1]

        bound = [f"{name}={getattr(record, name)}" for name in ("user_id", "activity_id") if getattr(record, name)]
        record.context_suffix = f" [{' '.join(bound)}]" if bound else ""
        return True


class ConsoleFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }

    def __init__(self, fmt: str, datefmt: str, colors: bool) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        if not hasattr(record, "context_suffix"):
            record.context_suffix = ""
        text = super().format(record)
        if not self.colors:
            return text
        color = self.LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{text}\033[0m" if color else text


class JSONFormatter(logging.Formatter):
    """One JSON object per line; call-site extras nested under ``extra``."""

    _RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {
        "message",
        "asctime",
        "taskName",
        "context_suffix",
        *CONTEXT_FIELDS,
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        document: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "at": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        document.update(
            {name: getattr(record, name) for name in CONTEXT_FIELDS if getattr(record, name, None) is not None}
        )

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED and not key.startswith("_")
        }
        if extra:
            document["extra"] = extra
        if record.exc_info:
            document["exc"] = self.formatException(record.exc_info)

        return json.dumps(document, ensure_ascii=False, default=str)


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _state.dropped += 1
            return
        _state.enqueued += 1


class _CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _state.handler_errors += 1
        sys.stderr.write(f"brightbuddy: failed to write log record from {record.name}\n")


# ============================================================================
# LIFECYCLE
# ============================================================================


def _build_handlers(config: LoggerConfig) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if config.json_console:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(ConsoleFormatter(config.console_format, config.date_format, config.colors))
    handlers: List[logging.Handler] = [console]

    if config.file_enabled:
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        daily = TimedRotatingFileHandler(
            filename=str(config.logs_dir / config.file_name),
            when="midnight",
            backupCount=config.file_backups,
            encoding="utf-8",
            utc=True,
        )
        daily.setFormatter(JSONFormatter())
        handlers.append(daily)

    for handler in handlers:
        handler.setLevel(config.level)
    return handlers


def setup_logging(config: Optional[LoggerConfig] = None) -> None:
    """Install the queue-backed root handler. Repeated calls are no-ops."""
    if _state.listener is not None:
        return

    config = config or LoggerConfig.from_config()
    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(config.queue_size)

    listener = _CountingQueueListener(log_queue, *_build_handlers(config), respect_handler_level=True)
    producer = _DroppingQueueHandler(log_queue)
    producer.addFilter(LearnerContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(config.level)
    root.addHandler(producer)
    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    _state.config = config
    _state.log_queue = log_queue
    _state.listener = listener
    _state.enqueued = _state.dropped = _state.handler_errors = 0
    listener.start()

    logging.getLogger(__name__).debug(
        "Logging ready",
        extra={
            "environment": config.environment,
            "level": logging.getLevelName(config.level),
            "json_console": config.json_console,
            "file_enabled": config.file_enabled,
        },
    )


def shutdown_logging() -> None:
    """Flush queued records and detach every root handler."""
    listener = _state.listener
    if listener is None:
        return

    _state.listener = None
    listener.stop()
    for handler in listener.handlers:
        handler.close()

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    _state.log_queue = None


def get_logging_health() -> LoggingHealth:
    log_queue = _state.log_queue
    return LoggingHealth(
        initialized=_state.listener is not None,
        queue_size=log_queue.qsize() if log_queue is not None else 0,
        queue_capacity=log_queue.maxsize if log_queue is not None else 0,
        records_enqueued=_state.enqueued,
        records_dropped=_state.dropped,
        handler_errors=_state.handler_errors,
        extra={"environment": _state.config.environment} if _state.config else {},
    )


# ============================================================================
# PUBLIC API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def _merged_context(fields: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(_learner_context.get())
    for key, value in fields.items():
        if value is None:
            continue
        merged[key] = str(value) if key == "user_id" else value
    return merged


class LogContext:
    """
    Bind learner fields to every record logged inside the block.

    Fields stack on top of any context already bound by an outer block and
    are restored on exit. A short correlation id is generated unless one is
    given or already bound.

    >>> async with LogContext(user_id="u-42", action="complete_activity", activity_id="math_001"):
    ...     logger.info("Recording completion")
    """

    def __init__(self, **fields: Any) -> None:
        self.fields = fields
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        context = _merged_context(self.fields)
        context.setdefault("correlation_id", uuid.uuid4().hex[:8])
        self._token = _learner_context.set(context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _learner_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge fields into the current context without a scope; ``None`` values are ignored."""
    _learner_context.set(_merged_context(fields))


def get_log_context() -> Dict[str, Any]:
    return dict(_learner_context.get())


def clear_log_context() -> None:
    _learner_context.set({})


setup_logging()
