"""
Rankboard Logging Subsystem

Every record is enriched on the producer side with the active ranking
context (identity, group, namespace, correlation/request id, component and
operation) and handed to a bounded queue. A background listener drains the
queue into the real handlers, so a slow sink never blocks the event loop.

Output
------
- Console: JSON in production (or with LOG_JSON=true), colored text on a TTY,
  plain text otherwise.
- File: `logs/rankboard_daily.json.log`, rotated at UTC midnight, always
  JSON. Enabled by LOG_TO_FILE.

When the queue is full a record is dropped and counted; see
`get_logging_health()`.

Usage
-----
>>> logger = get_logger(__name__)
>>> with LogContext(identity="alice", namespace="game1"):
...     logger.info("Score adjusted", extra={"delta": 5})
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from rankboard.core.config.config import Config

_request_context: ContextVar[Dict[str, Any]] = ContextVar("request_context", default={})

_INITIALIZED_FLAG = "_rankboard_logging_initialized"

CONTEXT_FIELDS = (
    "identity",
    "group",
    "namespace",
    "correlation_id",
    "request_id",
    "component",
    "operation",
)


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True)
class LoggerConfig:
    """Logging settings resolved from `Config` at setup time."""

    level: int
    use_json: bool
    use_colors: bool
    log_to_file: bool
    logs_dir: Path
    environment: str
    queue_max_size: int = 10_000
    daily_basename: str = "rankboard_daily.json.log"
    daily_backup_count: int = 1

    CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
    DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_config(cls) -> "LoggerConfig":
        environment = str(getattr(Config.ENVIRONMENT, "value", Config.ENVIRONMENT)).lower()
        production = environment == "production"
        use_json = production if Config.LOG_JSON is None else bool(Config.LOG_JSON)
        return cls(
            level=getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO),
            use_json=use_json,
            use_colors=not use_json and sys.stdout.isatty(),
            log_to_file=bool(Config.LOG_TO_FILE),
            logs_dir=Path(Config.LOGS_DIR).resolve(),
            environment=environment,
        )


# ============================================================================
# Health counters
# ============================================================================


@dataclass
class LoggingHealth:
    initialized: bool = False
    queue_size: int = 0
    queue_max_size: int = 0
    records_enqueued: int = 0
    records_dropped: int = 0
    listener_errors: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_counters = LoggingHealth()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_queue_listener: Optional[QueueListener] = None


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Stamp context fields onto records; explicit `extra=` values win."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context: Dict[str, Any] = _request_context.get({})

        correlation_id = context.get("correlation_id") or context.get("request_id") or "N/A"
        defaults = {
            "identity": context.get("identity", "N/A"),
            "group": context.get("group", "N/A"),
            "namespace": context.get("namespace", "N/A"),
            "correlation_id": correlation_id,
            "request_id": context.get("request_id", correlation_id),
            "component": context.get("component") or record.name.split(".", 1)[0],
            "operation": context.get("operation") or "N/A",
        }
        for name, value in defaults.items():
            if not hasattr(record, name):
                setattr(record, name, value)

        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[1;91m",
    }

    def formatMessage(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = self.LEVEL_COLORS.get(record.levelname)
        line = super().formatMessage(record)
        return f"{color}{line}\033[0m" if color else line


class JSONFormatter(logging.Formatter):
    """One JSON object per record: context fields top-level, the rest under `extra`."""

    STANDARD_ATTRS = frozenset(
        logging.LogRecord("", 0, "", 0, "", None, None).__dict__
    ) | {"message", "asctime", "taskName"}

    CONTEXT_ATTRS = CONTEXT_FIELDS

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) not in (None, "N/A")
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.STANDARD_ATTRS
            and key not in CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class RankboardQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _counters.records_enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _counters.records_dropped += 1
            sys.stderr.write("Rankboard logging queue full; dropping log record.\n")


class RankboardQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _counters.listener_errors += 1
        sys.stderr.write("Rankboard logging handler error while processing record.\n")


def _build_handlers(settings: LoggerConfig) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if settings.use_json:
        console.setFormatter(JSONFormatter())
    else:
        formatter_cls = ColoredFormatter if settings.use_colors else logging.Formatter
        console.setFormatter(
            formatter_cls(fmt=settings.CONSOLE_FORMAT, datefmt=settings.DATE_FORMAT)
        )
    handlers: List[logging.Handler] = [console]

    if settings.log_to_file:
        settings.logs_dir.mkdir(parents=True, exist_ok=True)
        daily = TimedRotatingFileHandler(
            filename=str(settings.logs_dir / settings.daily_basename),
            when="midnight",
            backupCount=settings.daily_backup_count,
            encoding="utf-8",
            utc=True,
        )
        daily.setFormatter(JSONFormatter())
        handlers.append(daily)

    for handler in handlers:
        handler.setLevel(settings.level)
    return handlers


# ============================================================================
# Setup / Teardown
# ============================================================================


def setup_logging(settings: Optional[LoggerConfig] = None) -> None:
    """Install the queue handler on the root logger. Idempotent."""
    global _counters, _log_queue, _queue_listener

    root = logging.getLogger()
    if getattr(root, _INITIALIZED_FLAG, False):
        return

    settings = settings or LoggerConfig.from_config()
    _counters = LoggingHealth(queue_max_size=settings.queue_max_size)
    _log_queue = queue.Queue(settings.queue_max_size)

    _queue_listener = RankboardQueueListener(
        _log_queue, *_build_handlers(settings), respect_handler_level=True
    )
    _queue_listener.start()

    # Context is read here, on the producer side, before the record is queued.
    queue_handler = RankboardQueueHandler(_log_queue)
    queue_handler.setLevel(settings.level)
    queue_handler.addFilter(ContextFilter())

    root.handlers.clear()
    root.setLevel(settings.level)
    root.addHandler(queue_handler)
    for noisy in ("asyncio", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    setattr(root, _INITIALIZED_FLAG, True)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": settings.environment,
            "log_level": logging.getLevelName(settings.level),
            "json": settings.use_json,
            "file_sink": settings.log_to_file,
            "queue_max_size": settings.queue_max_size,
        },
    )


def shutdown_logging() -> None:
    """Drain the queue and close every handler."""
    global _log_queue, _queue_listener

    root = logging.getLogger()
    if not getattr(root, _INITIALIZED_FLAG, False):
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem.")
    if _queue_listener is not None:
        _queue_listener.stop()
        _queue_listener = None

    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)

    setattr(root, _INITIALIZED_FLAG, False)
    _log_queue = None


def get_logging_health() -> LoggingHealth:
    snapshot = LoggingHealth(**_counters.to_dict())
    snapshot.initialized = bool(getattr(logging.getLogger(), _INITIALIZED_FLAG, False))
    snapshot.queue_size = _log_queue.qsize() if _log_queue is not None else 0
    return snapshot


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


# ============================================================================
# Context API
# ============================================================================


class LogContext:
    """
    Scope a set of context fields to a block of (sync or async) code.

    Example
    -------
    >>> async with LogContext(identity="alice", operation="add_identity"):
    ...     await coordinator.add_identity("alice", "US", 100)
    """

    def __init__(
        self,
        identity: Optional[str] = None,
        group: Optional[str] = None,
        namespace: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        effective = correlation_id or request_id or self._generate_correlation_id()

        self.context: Dict[str, Any] = {
            "identity": identity if identity is not None else "N/A",
            "group": group if group is not None else "N/A",
            "namespace": namespace if namespace is not None else "N/A",
            "component": component,
            "operation": operation,
            "correlation_id": effective,
            "request_id": request_id or effective,
            **extra,
        }

        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def _generate_correlation_id() -> str:
        return str(uuid.uuid4())[:8]

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """
    Merge fields into the current context without opening a new scope.

    None values are ignored; a request id doubles as the correlation id when
    none is set yet.
    """
    current = dict(_request_context.get({}))
    current.update({key: value for key, value in fields.items() if value is not None})
    if current.get("request_id"):
        current.setdefault("correlation_id", current["request_id"])
    _request_context.set(current)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get({}))


def clear_log_context() -> None:
    _request_context.set({})


setup_logging()
