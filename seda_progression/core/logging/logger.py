"""
seda progression logging subsystem.

Purpose
-------
Single source of truth for engine observability:

- Structured JSON logs for aggregation.
- LogContext-based propagation of operation context via ContextVars.
- Correlation IDs so a recorded action can be traced from rule evaluation
  through persistence to notification dispatch.
- Async-safe output through a bounded QueueHandler + QueueListener pair,
  so handlers never block the event loop that serializes user writes.

Responsibilities
----------------
- Initialize and configure the global logging stack.
- Enrich every record with user_id, session_id, operation, correlation_id.
- Provide helper APIs: get_logger(), LogContext, clear_log_context(),
  get_logging_health().

Design Decisions
----------------
- Console is the primary sink (JSON in production, colored text in dev).
- A TimedRotatingFileHandler is attached only when LOG_TO_FILE is set.
- Extra fields passed via `logger.info("msg", extra={...})` are merged into JSON.
- A full queue drops records and counts them instead of blocking callers.

Dependencies
------------
- seda_progression.core.config.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import (
    QueueHandler,
    QueueListener,
    TimedRotatingFileHandler,
)
from pathlib import Path
from typing import Any, Dict, List, Optional

from seda_progression.core.config.config import Config


# ============================================================================
# Operation Context (ContextVars)
# ============================================================================

_log_context: ContextVar[Dict[str, Any]] = ContextVar(
    "log_context",
    default={},
)


# ============================================================================
# Config / Environment
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Configuration for the logging subsystem."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-40s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    DAILY_BASENAME: str = "seda_progression.json.log"
    DAILY_BACKUP_COUNT: int = 1

    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(getattr(Config, "ENVIRONMENT", "development")).lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def log_level(self) -> int:
        level_name = getattr(Config, "LOG_LEVEL", "INFO")
        if not isinstance(level_name, str):
            level_name = "INFO"
        return getattr(logging, level_name.upper(), logging.INFO)

    @property
    def use_json(self) -> bool:
        json_flag = getattr(Config, "LOG_JSON", None)
        if json_flag is None:
            return self.is_production
        return bool(json_flag)

    @property
    def use_colors(self) -> bool:
        if self.is_production or self.use_json:
            return False
        return bool(getattr(Config, "LOG_COLORS", True)) and sys.stdout.isatty()

    @property
    def to_file(self) -> bool:
        return bool(getattr(Config, "LOG_TO_FILE", False))


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Logging Metrics / Health
# ============================================================================


@dataclass(slots=True)
class LoggingMetrics:
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


_logging_metrics: LoggingMetrics = LoggingMetrics()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None


# ============================================================================
# Filters & Formatters
# ============================================================================


_LEVEL_COLORS: Dict[int, str] = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[94m",
    logging.WARNING: "\033[93m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[91m\033[1m",
}
_RESET = "\033[0m"

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}

# Fields bound by LogContext and stamped on by ContextFilter
CONTEXT_ATTRS = ("user_id", "session_id", "correlation_id", "component", "operation")


class ContextFilter(logging.Filter):
    """Copy the active LogContext onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _log_context.get({})
        for attr in CONTEXT_ATTRS:
            setattr(record, attr, context.get(attr) or "N/A")
        if record.component == "N/A":
            record.component = record.name.rsplit(".", 1)[-1]
        return True


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name only."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = _LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)

        original = record.levelname
        record.levelname = f"{color}{original}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Context fields sit at the top level when bound; caller `extra` fields are
    nested under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        created_dt = datetime.fromtimestamp(record.created, tz=timezone.utc)

        log_data: Dict[str, Any] = {
            "timestamp": created_dt.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        log_data.update(
            (attr, getattr(record, attr))
            for attr in CONTEXT_ATTRS
            if getattr(record, attr, None) not in (None, "N/A")
        )

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_ATTRS and not key.startswith("_")
        }
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, ensure_ascii=False, default=str)


# ============================================================================
# Bounded Queue Handler & Listener
# ============================================================================


class BoundedQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.records_enqueued += 1

        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _logging_metrics.records_dropped += 1
            sys.stderr.write("seda_progression logging queue full; dropping log record.\n")


class CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _logging_metrics.listener_errors += 1
        sys.stderr.write("seda_progression logging handler error while processing record.\n")


# ============================================================================
# Global Setup
# ============================================================================

_queue_listener: Optional[QueueListener] = None


def _build_console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOGGER_CONFIG.log_level)

    if LOGGER_CONFIG.use_json:
        handler.setFormatter(JSONFormatter())
    elif LOGGER_CONFIG.use_colors:
        handler.setFormatter(
            ColoredFormatter(
                fmt=LOGGER_CONFIG.CONSOLE_FORMAT,
                datefmt=LOGGER_CONFIG.DATE_FORMAT,
            )
        )
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt=LOGGER_CONFIG.CONSOLE_FORMAT,
                datefmt=LOGGER_CONFIG.DATE_FORMAT,
            )
        )

    return handler


def _build_daily_file_handler() -> logging.Handler:
    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.DAILY_BASENAME

    handler = TimedRotatingFileHandler(
        filename=str(log_file),
        when="midnight",
        interval=1,
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(LOGGER_CONFIG.log_level)
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging() -> None:
    """Install the queue-backed handler stack on the root logger (idempotent)."""
    global _queue_listener, _logging_metrics, _log_queue

    root = logging.getLogger()

    if getattr(root, "_seda_logging_initialized", False):
        return

    _logging_metrics = LoggingMetrics()

    root.setLevel(LOGGER_CONFIG.log_level)

    handlers: List[logging.Handler] = [_build_console_handler()]
    if LOGGER_CONFIG.to_file:
        handlers.append(_build_daily_file_handler())

    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)

    _queue_listener = CountingQueueListener(
        _log_queue,
        *handlers,
        respect_handler_level=True,
    )
    _queue_listener.start()

    queue_handler = BoundedQueueHandler(_log_queue)
    queue_handler.setLevel(LOGGER_CONFIG.log_level)
    queue_handler.addFilter(ContextFilter())

    root.addHandler(queue_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    setattr(root, "_seda_logging_initialized", True)

    log = logging.getLogger(__name__)
    log.info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "colors": LOGGER_CONFIG.use_colors,
            "to_file": LOGGER_CONFIG.to_file,
            "queue_max_size": LOGGER_CONFIG.QUEUE_MAX_SIZE,
        },
    )


def shutdown_logging() -> None:
    """Stop the queue listener and detach the handlers installed by setup."""
    global _queue_listener, _log_queue

    root = logging.getLogger()
    log = logging.getLogger(__name__)

    if not getattr(root, "_seda_logging_initialized", False):
        return

    log.info("Shutting down logging subsystem.")

    if _queue_listener is not None:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.flush()
            handler.close()
        _queue_listener = None

    for handler in list(root.handlers):
        if isinstance(handler, BoundedQueueHandler):
            root.removeHandler(handler)
            handler.close()

    setattr(root, "_seda_logging_initialized", False)
    _log_queue = None


def get_logging_health() -> LoggingHealth:
    initialized = bool(getattr(logging.getLogger(), "_seda_logging_initialized", False))

    queue_size = 0
    max_size = 0
    if _log_queue is not None:
        queue_size = _log_queue.qsize()
        max_size = _log_queue.maxsize

    return LoggingHealth(
        initialized=initialized,
        queue_size=queue_size,
        queue_max_size=max_size,
        records_enqueued=_logging_metrics.records_enqueued,
        records_dropped=_logging_metrics.records_dropped,
        listener_errors=_logging_metrics.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the context bound to the current task."""
    return dict(_log_context.get({}))


class LogContext:
    """
    Bind operation context for the duration of a block.

    Works as both a sync and an async context manager. Nested contexts
    inherit the outer correlation id unless one is passed explicitly.

    Example
    -------
    >>> async with LogContext(user_id="dj-42", operation="apply_event"):
    ...     logger.info("Applying event")
    """

    def __init__(
        self,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        outer = _log_context.get({})
        effective = (
            correlation_id
            or outer.get("correlation_id")
            or self._generate_correlation_id()
        )

        self.context: Dict[str, Any] = {
            **outer,
            "correlation_id": effective,
            **extra,
        }
        if user_id is not None:
            self.context["user_id"] = str(user_id)
        if session_id is not None:
            self.context["session_id"] = session_id
        if component is not None:
            self.context["component"] = component
        if operation is not None:
            self.context["operation"] = operation

        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def _generate_correlation_id() -> str:
        return str(uuid.uuid4())[:8]

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def clear_log_context() -> None:
    _log_context.set({})


# Initialize logging automatically
setup_logging()
