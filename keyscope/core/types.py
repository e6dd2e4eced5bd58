"""
Core Type Definitions for Keyscope

Implements the Result/Either monad for zero-exception control flow and
the keyspace data model shared by the pagination, materialization and
mutation engines.

Design Principles:
- Never raise across a component boundary (return Result)
- Model type-dependent values as a closed tagged variant
- Keep records immutable once handed to the transport layer

Complexity: O(1) for all type operations except to_dict() on collections
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    Optional,
    TypeVar,
    Union,
)

from keyscope.core import constants as C

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable container for successful computation results.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Carries the error unchanged through map/flat_map chains.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# KEY KINDS
# =============================================================================
class KeyKind(Enum):
    """
    Data-type tag of a key as reported by the store.

    The store's own type names are mapped through from_store_type();
    anything the core does not materialize collapses to UNSUPPORTED.
    """

    STRING = "string"
    HASH = "hash"
    LIST = "list"
    SET = "set"
    SORTEDSET = "sortedset"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_store_type(cls, type_name: str) -> Optional[KeyKind]:
        """
        Map a TYPE reply to a kind.

        Returns None for "none", which is how the store reports a key
        that does not exist (or expired between enumeration and lookup).
        """
        normalized = type_name.strip().lower()
        if normalized == "none":
            return None
        if normalized == "zset":
            return cls.SORTEDSET
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNSUPPORTED


def expire_in_days(ttl_seconds: Optional[int]) -> Optional[int]:
    """Whole days until expiry, rounded up. None when the key is persistent."""
    if ttl_seconds is None:
        return None
    return math.ceil(ttl_seconds / C.SECONDS_PER_DAY)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# KEY METADATA
# =============================================================================
@dataclass(frozen=True, slots=True)
class KeyInfo:
    """
    Metadata for one key, as observed at last_observed_at.

    Invariant: ttl_seconds and expire_in_days are both set or both None;
    both None means the key has no expiration.
    """

    name: str
    kind: KeyKind
    ttl_seconds: Optional[int] = None
    size: str = C.SIZE_PLACEHOLDER
    last_observed_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.ttl_seconds is not None and self.ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {self.ttl_seconds}")

    @property
    def expire_in_days(self) -> Optional[int]:
        return expire_in_days(self.ttl_seconds)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the transport layer."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "ttl_seconds": self.ttl_seconds,
            "expire_in_days": self.expire_in_days,
            "size": self.size,
            "last_observed_at": self.last_observed_at.isoformat(),
        }


# =============================================================================
# MATERIALIZED VALUES (TAGGED VARIANT)
# =============================================================================
@dataclass(frozen=True, slots=True)
class Scalar:
    """Value of a string key. None when the store returned no value."""

    value: Optional[str]

    def to_primitive(self) -> Optional[str]:
        return self.value


@dataclass(frozen=True, slots=True)
class Mapping:
    """
    Field/value pairs of a hash key.

    Retrieval order is whatever the store returned; do not rely on it.
    """

    fields: dict[str, str]

    def to_primitive(self) -> dict[str, str]:
        return dict(self.fields)


@dataclass(frozen=True, slots=True)
class Sequence:
    """Bounded prefix of a list key, in list order."""

    items: tuple[str, ...]

    def to_primitive(self) -> list[str]:
        return list(self.items)


@dataclass(frozen=True, slots=True)
class SetValue:
    """Members of a set key."""

    members: frozenset[str]

    def to_primitive(self) -> list[str]:
        # Sorted only so serialized output is stable
        return sorted(self.members)


@dataclass(frozen=True, slots=True)
class Unsupported:
    """Placeholder for kinds the materializer does not read."""

    kind_name: str

    def to_primitive(self) -> str:
        return C.UNSUPPORTED_VALUE


MaterializedValue = Union[Scalar, Mapping, Sequence, SetValue, Unsupported]


@dataclass(frozen=True, slots=True)
class KeyValue:
    """
    Full metadata plus the materialized value of one key.

    raw_scalar duplicates the Scalar value for string keys and is None
    for every other kind.
    """

    info: KeyInfo
    value: MaterializedValue
    raw_scalar: Optional[str] = None

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def kind(self) -> KeyKind:
        return self.info.kind

    @property
    def ttl_seconds(self) -> Optional[int]:
        return self.info.ttl_seconds

    @property
    def expire_in_days(self) -> Optional[int]:
        return self.info.expire_in_days

    def to_dict(self) -> dict[str, Any]:
        data = self.info.to_dict()
        data["value"] = self.value.to_primitive()
        data["raw_scalar"] = self.raw_scalar
        return data


# =============================================================================
# WRITE SPECIFICATION
# =============================================================================
@dataclass(frozen=True, slots=True)
class KeyWriteSpec:
    """
    Desired state of one key.

    payload is interpreted per kind: scalar text for "string", a JSON
    object of string values for "hash". Unknown kinds are written as
    strings. ttl_seconds=None means no expiration (an existing one is
    cleared).
    """

    name: str
    payload: str = ""
    kind: str = "string"
    ttl_seconds: Optional[int] = None

    @property
    def normalized_kind(self) -> str:
        return (self.kind or "string").strip().lower()


class WriteOutcome(Enum):
    """How far a successful write got."""

    WRITTEN = "written"
    WRITTEN_WITHOUT_EXPIRY = "written_without_expiry"


class DeleteOutcome(Enum):
    """Result of a delete that reached the store."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"


# =============================================================================
# PAGE OF KEYS
# =============================================================================
@dataclass(frozen=True, slots=True)
class KeysPage:
    """
    One page window of a pattern enumeration.

    total_matches is the number of keys matched during the same pass
    that produced items; items are sorted by name.
    """

    items: tuple[KeyInfo, ...]
    total_matches: int
    page_index: int
    page_size: int

    def __post_init__(self) -> None:
        if len(self.items) > self.page_size:
            raise ValueError(
                f"page holds {len(self.items)} items, page_size is {self.page_size}"
            )
        if self.total_matches < len(self.items):
            raise ValueError(
                f"total_matches ({self.total_matches}) < items ({len(self.items)})"
            )

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_matches / self.page_size)

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total_matches,
            "page": self.page_index,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
        }


# =============================================================================
# SERVER SUMMARY
# =============================================================================
@dataclass(frozen=True, slots=True)
class ServerInfo:
    """Thin summary of the store's INFO reply."""

    version: str = "Unknown"
    used_memory: str = "Unknown"
    connected_clients: str = "0"

    @classmethod
    def from_info(cls, info: dict[str, Any]) -> ServerInfo:
        return cls(
            version=str(info.get("redis_version", "Unknown")),
            used_memory=str(info.get("used_memory_human", "Unknown")),
            connected_clients=str(info.get("connected_clients", "0")),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "version": self.version,
            "used_memory": self.used_memory,
            "connected_clients": self.connected_clients,
        }
