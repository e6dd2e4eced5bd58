"""
Structured Logging: JSON or Plain Text with Session Correlation

Provides:
- JSON-formatted log output, one object per line
- Request-scoped fields (session_id, operation) via log_context()
- Log level filtering
- Quieting of chatty third-party loggers

Modules log through ``logging.getLogger(__name__)``; this module only
decides how records are rendered.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Optional, TextIO, Union


class LogLevel(IntEnum):
    """Log level enumeration."""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def parse(cls, value: Union[str, int, LogLevel]) -> LogLevel:
        """Accept "info", "INFO", 20 or LogLevel.INFO."""
        if isinstance(value, str):
            return cls[value.strip().upper()]
        return cls(value)


# Context variable for request-scoped fields
_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# Attributes every logging.LogRecord carries; anything else is an extra
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename",
    "funcName", "levelname", "levelno", "lineno",
    "module", "msecs", "pathname", "process",
    "processName", "relativeCreated", "stack_info",
    "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message", "asctime",
})


@dataclass
class LogRecord:
    """Structured log record."""
    timestamp: str
    level: str
    message: str
    logger_name: str
    session_id: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        data = {
            "@timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "logger": self.logger_name,
        }
        if self.session_id:
            data["session_id"] = self.session_id
        data.update(self.extra)
        return json.dumps(data, default=str)


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter with session correlation.

    Fields bound with log_context() and extras passed to the logging
    call are merged into the top-level object.
    """

    def format(self, record: logging.LogRecord) -> str:
        extra = dict(_log_context.get())
        session_id = extra.pop("session_id", None)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                extra[key] = value

        if record.exc_info:
            extra["exception"] = self.formatException(record.exc_info)

        log_record = LogRecord(
            timestamp=datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            level=record.levelname,
            message=record.getMessage(),
            logger_name=record.name,
            session_id=session_id,
            extra=extra,
        )
        return log_record.to_json()


class _LogContext:
    """Context manager for adding fields to all logs."""

    __slots__ = ("_fields", "_token")

    def __init__(self, fields: dict[str, Any]) -> None:
        self._fields = fields
        self._token: Optional[Token] = None

    def __enter__(self) -> _LogContext:
        self._token = _log_context.set({**_log_context.get(), **self._fields})
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


def log_context(**fields: Any) -> _LogContext:
    """
    Bind fields to every record logged inside the block.

    Usage:
        with log_context(session_id=session_id[:8], operation="page"):
            logger.info("Paging")
    """
    return _LogContext(fields)


def current_context() -> dict[str, Any]:
    """Fields bound by the enclosing log_context() blocks."""
    return dict(_log_context.get())


def setup_logging(
    level: Union[str, LogLevel] = LogLevel.INFO,
    json_output: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure root logger.

    Args:
        level: Minimum log level (name or LogLevel)
        json_output: Use JSON formatting
        stream: Output stream (default: stderr)
    """
    level = LogLevel.parse(level)
    root = logging.getLogger()
    root.setLevel(level.value)
    root.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level.value)

    if json_output:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        ))

    root.addHandler(handler)

    # Suppress noisy loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
