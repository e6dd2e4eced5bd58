"""
Error Hierarchy for Keyscope

Design Principles:
- Errors travel inside Err(...), they are not raised across components
- Every error carries a code the transport layer can map to a response
- Never include credentials or payloads in messages

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Unique error id and timestamp for correlation

Usage:
    result = await pager.page(session_id, "user:*")
    match result:
        case Ok(page):
            render(page)
        case Err(KeyscopeError(code=ErrorCode.UNKNOWN_SESSION)):
            reply_invalid_session()
        case Err(error):
            reply_failed(error)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Session registry errors
    - 2xxx: Keyspace operation errors
    """

    # Session errors (1xxx)
    CONNECTIVITY_FAILURE = 1001
    UNKNOWN_SESSION = 1002

    # Keyspace errors (2xxx)
    NOT_FOUND = 2001
    MALFORMED_PAYLOAD = 2002
    TRANSIENT_OP_FAILURE = 2003
    INVALID_ARGUMENT = 2004


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class KeyscopeError(Exception):
    """
    Base class for all keyscope errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp of creation
    - Context dict with non-sensitive details
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for logging/API responses."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# SESSION ERRORS
# =============================================================================
@dataclass
class SessionError(KeyscopeError):
    """
    Errors from the connection registry.

    Covers failure to reach a store and lookups of unknown sessions.
    """

    @classmethod
    def connectivity_failure(cls, endpoint: str, reason: str) -> SessionError:
        """Store connection could not be established or maintained."""
        return cls(
            code=ErrorCode.CONNECTIVITY_FAILURE,
            message=f"Unable to connect to {endpoint}: {reason}",
            context={"endpoint": endpoint},
        )

    @classmethod
    def unknown_session(cls, session_id: str) -> SessionError:
        """Session identifier is not present in the registry."""
        return cls(
            code=ErrorCode.UNKNOWN_SESSION,
            message="Invalid or expired session. Establish a connection first.",
            # Only a prefix: ids are bearer handles
            context={"session": session_id[:8]},
        )


# =============================================================================
# KEYSPACE ERRORS
# =============================================================================
@dataclass
class KeyspaceError(KeyscopeError):
    """
    Errors from pagination, materialization and mutation.
    """

    @classmethod
    def not_found(cls, name: str) -> KeyspaceError:
        return cls(
            code=ErrorCode.NOT_FOUND,
            message=f"Key '{name}' not found",
            context={"key": name},
        )

    @classmethod
    def malformed_payload(cls, name: str, kind: str, reason: str) -> KeyspaceError:
        """Write payload does not match the declared kind."""
        return cls(
            code=ErrorCode.MALFORMED_PAYLOAD,
            message=f"Payload for {kind} key '{name}' is malformed: {reason}",
            context={"key": name, "kind": kind},
        )

    @classmethod
    def transient_failure(
        cls,
        operation: str,
        name: str,
        reason: str,
    ) -> KeyspaceError:
        """A store operation failed but the session remains usable."""
        return cls(
            code=ErrorCode.TRANSIENT_OP_FAILURE,
            message=f"Operation '{operation}' failed for '{name}': {reason}",
            context={"operation": operation, "key": name},
        )

    @classmethod
    def invalid_argument(cls, argument: str, reason: str) -> KeyspaceError:
        return cls(
            code=ErrorCode.INVALID_ARGUMENT,
            message=f"Invalid {argument}: {reason}",
            context={"argument": argument},
        )
