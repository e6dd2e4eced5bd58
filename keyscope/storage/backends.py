"""
In-Memory Store Backend: Development and Testing Implementation

Provides a Redis-compatible in-process keyspace implementing the
StoreConnection capability:
- InMemoryKeyspace: typed values with lazy TTL expiry
- InMemoryStoreConnection: one session against a keyspace
- InMemoryConnector: resolves ``memory://<name>`` descriptors

Design Principles:
    - Same Result contract as the redis-backed connection
    - Every call yields to the event loop once, like a network round-trip
    - Failure injection per operation (and optionally per key) for tests
    - Each command body runs without awaiting, so it is atomic

Performance Characteristics:
    - Lookups/reads/writes: O(1) or O(n) in the value size
    - Scan: O(count) per batch
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from keyscope.core.types import KeyKind, Result, Ok, Err
from keyscope.storage.protocols import NOT_CONNECTED, StoreConnection


# =============================================================================
# CONSTANTS
# =============================================================================
MEMORY_SCHEME: str = "memory://"
DEFAULT_KEYSPACE: str = "default"
SERVER_VERSION: str = "7.2.0-inmemory"
WRONGTYPE: str = "WRONGTYPE Operation against a key holding the wrong kind of value"

# Store type names for each kind, as TYPE would report them
_SIZE_KINDS = {
    KeyKind.STRING: "string",
    KeyKind.HASH: "hash",
    KeyKind.LIST: "list",
    KeyKind.SET: "set",
    KeyKind.SORTEDSET: "zset",
}


# =============================================================================
# STORED VALUE
# =============================================================================
@dataclass
class StoredValue:
    """
    Internal record for one key.

    ``type_name`` is the store type ("string", "hash", "list", "set",
    "zset", or anything else for kinds the core does not materialize).
    """
    type_name: str
    data: Any
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at

    def size(self) -> int:
        if self.type_name == "string":
            return len(self.data.encode("utf-8"))
        return len(self.data)


# =============================================================================
# KEYSPACE
# =============================================================================
class InMemoryKeyspace:
    """
    One logical database shared by every connection opened on its name.

    Keys keep insertion order, which is deliberately not sorted so
    callers cannot rely on enumeration order.
    """

    __slots__ = ("_entries", "_clock", "client_count")

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: Dict[str, StoredValue] = {}
        self._clock = clock
        self.client_count = 0

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> Optional[StoredValue]:
        """Live entry for key, expiring it lazily."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, entry: StoredValue) -> None:
        self._entries[key] = entry

    def remove(self, key: str) -> bool:
        return self.get(key) is not None and self._entries.pop(key, None) is not None

    def live_keys(self) -> List[str]:
        return [key for key in list(self._entries) if self.get(key) is not None]

    def __len__(self) -> int:
        return len(self.live_keys())

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    # -------------------------------------------------------------------------
    # SEEDING HELPERS
    # -------------------------------------------------------------------------

    def _expiry(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return None if ttl_seconds is None else self._clock() + ttl_seconds

    def set_string(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        self.put(key, StoredValue("string", value, self._expiry(ttl_seconds)))

    def set_hash(
        self,
        key: str,
        fields: Dict[str, str],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self.put(key, StoredValue("hash", dict(fields), self._expiry(ttl_seconds)))

    def set_list(self, key: str, items: List[str], ttl_seconds: Optional[int] = None) -> None:
        self.put(key, StoredValue("list", list(items), self._expiry(ttl_seconds)))

    def set_members(self, key: str, members: Set[str], ttl_seconds: Optional[int] = None) -> None:
        self.put(key, StoredValue("set", set(members), self._expiry(ttl_seconds)))

    def set_sorted(self, key: str, scores: Dict[str, float]) -> None:
        self.put(key, StoredValue("zset", dict(scores)))

    def set_raw(self, key: str, type_name: str, data: Any) -> None:
        """Store a value of an arbitrary store type (e.g. "stream")."""
        self.put(key, StoredValue(type_name, data))


# =============================================================================
# CONNECTION
# =============================================================================
class InMemoryStoreConnection:
    """
    StoreConnection over an InMemoryKeyspace.

    Failure injection:
        conn.fail("type_of", key="user:1")   # only that key
        conn.fail("scan")                    # every call
        conn.heal()
    """

    __slots__ = (
        "_keyspace",
        "_connected",
        "_failures",
        "_latency_s",
        "supports_multiplexing",
        "calls",
    )

    def __init__(
        self,
        keyspace: InMemoryKeyspace,
        *,
        supports_multiplexing: bool = True,
        latency_s: float = 0.0,
    ) -> None:
        self._keyspace = keyspace
        self._connected = True
        # operation -> None (all keys) or set of keys
        self._failures: Dict[str, Optional[Set[str]]] = {}
        self._latency_s = latency_s
        self.supports_multiplexing = supports_multiplexing
        self.calls: List[Tuple[str, str]] = []
        keyspace.client_count += 1

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def keyspace(self) -> InMemoryKeyspace:
        return self._keyspace

    def fail(self, operation: str, key: Optional[str] = None) -> None:
        """Make ``operation`` return Err, for every key or just ``key``."""
        if key is None:
            self._failures[operation] = None
            return
        keys = self._failures.setdefault(operation, set())
        if keys is not None:
            keys.add(key)

    def heal(self) -> None:
        self._failures.clear()

    def count_calls(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def _enter(self, operation: str, key: str = "") -> Optional[str]:
        """Simulate the round-trip; return an error message or None."""
        await asyncio.sleep(self._latency_s)
        if not self._connected:
            return NOT_CONNECTED
        self.calls.append((operation, key))
        if operation in self._failures:
            keys = self._failures[operation]
            if keys is None or key in keys:
                return f"injected failure: {operation}"
        return None

    def _typed(self, key: str, type_name: str) -> Result[Optional[StoredValue], str]:
        entry = self._keyspace.get(key)
        if entry is not None and entry.type_name != type_name:
            return Err(WRONGTYPE)
        return Ok(entry)

    # -------------------------------------------------------------------------
    # SERVER
    # -------------------------------------------------------------------------

    async def ping(self) -> Result[bool, str]:
        if (error := await self._enter("ping")) is not None:
            return Err(error)
        return Ok(True)

    async def server_info(self) -> Result[Dict[str, Any], str]:
        if (error := await self._enter("server_info")) is not None:
            return Err(error)
        used = sum(entry.size() for entry in (
            self._keyspace.get(key) for key in self._keyspace.live_keys()
        ) if entry is not None)
        return Ok({
            "redis_version": SERVER_VERSION,
            "used_memory_human": f"{used}B",
            "connected_clients": self._keyspace.client_count,
        })

    # -------------------------------------------------------------------------
    # METADATA LOOKUPS
    # -------------------------------------------------------------------------

    async def exists(self, key: str) -> Result[bool, str]:
        if (error := await self._enter("exists", key)) is not None:
            return Err(error)
        return Ok(key in self._keyspace)

    async def type_of(self, key: str) -> Result[str, str]:
        if (error := await self._enter("type_of", key)) is not None:
            return Err(error)
        entry = self._keyspace.get(key)
        return Ok("none" if entry is None else entry.type_name)

    async def ttl_of(self, key: str) -> Result[Optional[int], str]:
        if (error := await self._enter("ttl_of", key)) is not None:
            return Err(error)
        entry = self._keyspace.get(key)
        if entry is None or entry.expires_at is None:
            return Ok(None)
        remaining = math.ceil(entry.expires_at - self._keyspace.now())
        return Ok(remaining if remaining > 0 else None)

    async def size_of(self, key: str, kind: KeyKind) -> Result[Optional[int], str]:
        if (error := await self._enter("size_of", key)) is not None:
            return Err(error)
        type_name = _SIZE_KINDS.get(kind)
        if type_name is None:
            return Ok(None)
        typed = self._typed(key, type_name)
        if typed.is_err():
            return Err(typed.error)
        entry = typed.unwrap()
        return Ok(0 if entry is None else entry.size())

    # -------------------------------------------------------------------------
    # ENUMERATION
    # -------------------------------------------------------------------------

    async def scan(
        self,
        cursor: int,
        pattern: str,
        count: int,
    ) -> Result[Tuple[int, List[str]], str]:
        """Cursor is an offset into the live keys, in insertion order."""
        if (error := await self._enter("scan", pattern)) is not None:
            return Err(error)
        keys = self._keyspace.live_keys()
        batch = keys[cursor:cursor + count]
        next_cursor = cursor + count if cursor + count < len(keys) else 0
        return Ok((next_cursor, [key for key in batch if fnmatchcase(key, pattern)]))

    # -------------------------------------------------------------------------
    # READS
    # -------------------------------------------------------------------------

    async def read_scalar(self, key: str) -> Result[Optional[str], str]:
        if (error := await self._enter("read_scalar", key)) is not None:
            return Err(error)
        return self._typed(key, "string").map(
            lambda entry: None if entry is None else entry.data
        )

    async def read_hash(self, key: str) -> Result[Dict[str, str], str]:
        if (error := await self._enter("read_hash", key)) is not None:
            return Err(error)
        return self._typed(key, "hash").map(
            lambda entry: {} if entry is None else dict(entry.data)
        )

    async def read_list(self, key: str, limit: int) -> Result[List[str], str]:
        if (error := await self._enter("read_list", key)) is not None:
            return Err(error)
        return self._typed(key, "list").map(
            lambda entry: [] if entry is None else list(entry.data[:limit])
        )

    async def read_set(self, key: str) -> Result[List[str], str]:
        if (error := await self._enter("read_set", key)) is not None:
            return Err(error)
        return self._typed(key, "set").map(
            lambda entry: [] if entry is None else list(entry.data)
        )

    # -------------------------------------------------------------------------
    # WRITES
    # -------------------------------------------------------------------------

    async def write_scalar(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
    ) -> Result[bool, str]:
        if (error := await self._enter("write_scalar", key)) is not None:
            return Err(error)
        if ttl_seconds is not None and ttl_seconds <= 0:
            return Err("ERR invalid expire time in 'set' command")
        self._keyspace.set_string(key, value, ttl_seconds)
        return Ok(True)

    async def write_hash(self, key: str, fields: Dict[str, str]) -> Result[int, str]:
        if (error := await self._enter("write_hash", key)) is not None:
            return Err(error)
        if not fields:
            return Err("ERR wrong number of arguments for 'hset' command")
        typed = self._typed(key, "hash")
        if typed.is_err():
            return Err(typed.error)
        entry = typed.unwrap()
        if entry is None:
            entry = StoredValue("hash", {})
            self._keyspace.put(key, entry)
        added = sum(1 for field_name in fields if field_name not in entry.data)
        entry.data.update(fields)
        return Ok(added)

    async def expire(self, key: str, ttl_seconds: int) -> Result[bool, str]:
        if (error := await self._enter("expire", key)) is not None:
            return Err(error)
        entry = self._keyspace.get(key)
        if entry is None:
            return Ok(False)
        if ttl_seconds <= 0:
            self._keyspace.remove(key)
            return Ok(True)
        entry.expires_at = self._keyspace.now() + ttl_seconds
        return Ok(True)

    async def persist(self, key: str) -> Result[bool, str]:
        if (error := await self._enter("persist", key)) is not None:
            return Err(error)
        entry = self._keyspace.get(key)
        if entry is None or entry.expires_at is None:
            return Ok(False)
        entry.expires_at = None
        return Ok(True)

    async def delete(self, key: str) -> Result[bool, str]:
        if (error := await self._enter("delete", key)) is not None:
            return Err(error)
        return Ok(self._keyspace.remove(key))

    async def close(self) -> None:
        if self._connected:
            self._connected = False
            self._keyspace.client_count -= 1


# =============================================================================
# CONNECTOR
# =============================================================================
class InMemoryConnector:
    """
    StoreConnector for ``memory://<name>`` descriptors.

    Every connection opened on the same name shares one keyspace.
    Names passed to mark_unreachable() refuse connections.

    Example:
        connector = InMemoryConnector()
        connector.keyspace("orders").set_string("order:1", "pending")
        result = await connector.connect("memory://orders")
    """

    __slots__ = (
        "_keyspaces",
        "_unreachable",
        "_clock",
        "_supports_multiplexing",
        "_connections",
    )

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        *,
        supports_multiplexing: bool = True,
    ) -> None:
        self._keyspaces: Dict[str, InMemoryKeyspace] = {}
        self._unreachable: Set[str] = set()
        self._clock = clock
        self._supports_multiplexing = supports_multiplexing
        self._connections: List[InMemoryStoreConnection] = []

    @property
    def connections(self) -> List[InMemoryStoreConnection]:
        """Connections handed out and not yet closed."""
        self._connections = [conn for conn in self._connections if conn.connected]
        return list(self._connections)

    def keyspace(self, name: str = DEFAULT_KEYSPACE) -> InMemoryKeyspace:
        """Keyspace for name, created on first use."""
        if name not in self._keyspaces:
            self._keyspaces[name] = InMemoryKeyspace(self._clock)
        return self._keyspaces[name]

    def mark_unreachable(self, name: str) -> None:
        self._unreachable.add(name)

    def describe(self, descriptor: str) -> str:
        return descriptor.strip()

    async def connect(self, descriptor: str) -> Result[StoreConnection, str]:
        await asyncio.sleep(0)
        text = (descriptor or "").strip()
        if not text.startswith(MEMORY_SCHEME):
            return Err(f"Unsupported descriptor, expected {MEMORY_SCHEME}<name>")

        name = text[len(MEMORY_SCHEME):] or DEFAULT_KEYSPACE
        if name in self._unreachable:
            return Err("Connection refused")

        connection = InMemoryStoreConnection(
            self.keyspace(name),
            supports_multiplexing=self._supports_multiplexing,
        )
        self._connections = [conn for conn in self._connections if conn.connected]
        self._connections.append(connection)
        return Ok(connection)
