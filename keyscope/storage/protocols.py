"""
Store Capability Protocols
==========================

Structural subtyping protocols (PEP 544) for the store client layer the
keyspace engines run against:

- StoreConnection: one live session against one store instance
- StoreConnector: turns a connection descriptor into a StoreConnection

Design Principles:
    - Zero-exception control flow via Result[T, str]
    - Async-first; every call is a potential suspension point
    - A connection reports Err("Not connected") once closed, so
      operations racing a close observe a failure, not a crash

Implementations:
    - keyscope.storage.redis_store.RedisStoreConnection (redis-py)
    - keyscope.storage.backends.InMemoryStoreConnection (tests/dev)
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from keyscope.core.types import KeyKind, Result

NOT_CONNECTED = "Not connected"


@runtime_checkable
class StoreConnection(Protocol):
    """
    Capability contract for one store session.

    ``supports_multiplexing`` tells the registry whether concurrent
    calls on the same connection are safe; when False the registry
    serializes access per session.
    """

    supports_multiplexing: bool

    @abstractmethod
    async def ping(self) -> Result[bool, str]:
        """Liveness check."""
        ...

    @abstractmethod
    async def server_info(self) -> Result[Dict[str, Any], str]:
        """Flattened INFO reply."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> Result[bool, str]:
        ...

    @abstractmethod
    async def type_of(self, key: str) -> Result[str, str]:
        """
        Raw store type name ("string", "hash", "zset", "none", ...).

        Mapping to KeyKind is done by the caller.
        """
        ...

    @abstractmethod
    async def ttl_of(self, key: str) -> Result[Optional[int], str]:
        """Remaining seconds to live; None when persistent or missing."""
        ...

    @abstractmethod
    async def size_of(self, key: str, kind: KeyKind) -> Result[Optional[int], str]:
        """
        Byte length for strings, cardinality for collections.

        Ok(None) for kinds without a size lookup.
        """
        ...

    @abstractmethod
    async def scan(
        self,
        cursor: int,
        pattern: str,
        count: int,
    ) -> Result[Tuple[int, List[str]], str]:
        """
        One batch of a glob-pattern enumeration.

        Start with cursor 0; the enumeration is complete when the
        returned cursor is 0 again. Restartable per call.
        """
        ...

    @abstractmethod
    async def read_scalar(self, key: str) -> Result[Optional[str], str]:
        ...

    @abstractmethod
    async def read_hash(self, key: str) -> Result[Dict[str, str], str]:
        ...

    @abstractmethod
    async def read_list(self, key: str, limit: int) -> Result[List[str], str]:
        """First ``limit`` elements of a list."""
        ...

    @abstractmethod
    async def read_set(self, key: str) -> Result[List[str], str]:
        ...

    @abstractmethod
    async def write_scalar(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
    ) -> Result[bool, str]:
        """Set a string value and its expiry (or none) in one operation."""
        ...

    @abstractmethod
    async def write_hash(self, key: str, fields: Dict[str, str]) -> Result[int, str]:
        """Set hash fields; returns the number of new fields."""
        ...

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> Result[bool, str]:
        ...

    @abstractmethod
    async def persist(self, key: str) -> Result[bool, str]:
        ...

    @abstractmethod
    async def delete(self, key: str) -> Result[bool, str]:
        """Ok(True) when a key was removed, Ok(False) when absent."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        ...


@runtime_checkable
class StoreConnector(Protocol):
    """Factory establishing connections from a descriptor."""

    @abstractmethod
    async def connect(self, descriptor: str) -> Result[StoreConnection, str]:
        """
        Establish and verify a connection.

        Returns Err with a credential-free reason on any failure; must
        not leave a half-open connection behind.
        """
        ...

    @abstractmethod
    def describe(self, descriptor: str) -> str:
        """Credential-free endpoint description for logs."""
        ...
