"""
Observability module: structured logging.
"""

from keyscope.observability.logging import (
    JsonFormatter,
    LogLevel,
    current_context,
    log_context,
    setup_logging,
)

__all__ = [
    "JsonFormatter",
    "LogLevel",
    "current_context",
    "log_context",
    "setup_logging",
]
