"""
Redis Store Connection
======================

redis-py (``redis.asyncio``) implementation of the StoreConnection
capability. One instance owns one connection pool against one server and
belongs to exactly one registry session.

Design Principles:
------------------
1. **Result Monad**: every command returns Ok/Err, nothing is raised
2. **Connection Pooling**: redis-py pool, safe for concurrent coroutines
3. **Close Safety**: after close() every call returns Err("Not connected")
4. **Cheap Lookups**: metadata uses O(1) commands (TYPE, TTL, STRLEN, *LEN)

Algorithmic Complexity:
-----------------------
| Operation    | Time     | Notes                         |
|--------------|----------|-------------------------------|
| type/ttl     | O(1)     |                               |
| size_of      | O(1)     | STRLEN/HLEN/LLEN/SCARD/ZCARD  |
| scan         | O(count) | per batch, cursor based       |
| read_hash    | O(n)     | n = fields                    |
| read_list    | O(limit) | LRANGE 0 limit-1              |
| read_set     | O(n)     | n = members                   |
| delete       | O(m)     | m = elements freed            |
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import (
    Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar,
)

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from keyscope.core.types import KeyKind, Result, Ok, Err
from keyscope.storage.config import RedisConfig
from keyscope.storage.protocols import NOT_CONNECTED, StoreConnection

T = TypeVar("T")


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

@dataclass(slots=True)
class RedisMetrics:
    """
    Per-connection command counters.

    Plain increments; safe because one event loop owns the connection.
    """
    command_count: int = 0
    scan_count: int = 0
    error_count: int = 0
    timeout_count: int = 0
    latency_sum_ns: int = 0

    def record(self, latency_ns: int) -> None:
        """Record a completed command."""
        self.command_count += 1
        self.latency_sum_ns += latency_ns

    def get_avg_latency_ms(self) -> float:
        if self.command_count == 0:
            return 0.0
        return (self.latency_sum_ns / self.command_count) / 1_000_000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command_count": self.command_count,
            "scan_count": self.scan_count,
            "error_count": self.error_count,
            "timeout_count": self.timeout_count,
            "avg_latency_ms": self.get_avg_latency_ms(),
        }


# =============================================================================
# REDIS STORE CONNECTION
# =============================================================================

class RedisStoreConnection:
    """
    StoreConnection backed by a redis-py asyncio client.

    Thread Safety:
    --------------
    - The client pool multiplexes concurrent coroutines
    - Instance state is only the pool reference and counters

    Example:
        >>> conn = RedisStoreConnection(RedisConfig(host="cache.internal"))
        >>> (await conn.connect()).is_ok()
        True
        >>> await conn.type_of("user:1")
        Ok('hash')
        >>> await conn.close()
    """

    supports_multiplexing = True

    __slots__ = ("_config", "_pool", "_metrics", "_connected")

    def __init__(self, config: RedisConfig) -> None:
        """
        Args:
            config: Connection configuration.

        Note:
            Call `connect()` before performing operations.
        """
        self._config = config
        self._pool: Optional[aioredis.Redis] = None
        self._metrics = RedisMetrics()
        self._connected = False

    # -------------------------------------------------------------------------
    # CONNECTION MANAGEMENT
    # -------------------------------------------------------------------------

    async def connect(self) -> Result[None, str]:
        """
        Create the client and verify it with PING.

        Returns:
            Ok(None) on success, Err with message on failure. On failure
            the client is released before returning.
        """
        kwargs = self._config.get_connection_kwargs()
        try:
            if self._config.url is not None:
                self._pool = aioredis.from_url(self._config.url, **kwargs)
            else:
                self._pool = aioredis.Redis(**kwargs)

            await self._pool.ping()
            self._connected = True
            return Ok(None)

        except (RedisError, OSError, ValueError) as e:
            self._metrics.error_count += 1
            await self.close()
            return Err(f"Redis connection failed: {e}")

    async def close(self) -> None:
        """
        Close the pool and cleanup resources.

        Safe to call multiple times.
        """
        self._connected = False
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.aclose()

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def config(self) -> RedisConfig:
        return self._config

    @property
    def metrics(self) -> RedisMetrics:
        """Get current metrics snapshot."""
        return self._metrics

    async def _execute(
        self,
        command: Callable[[aioredis.Redis], Awaitable[T]],
    ) -> Result[T, str]:
        """Run one command with close check, timing and error capture."""
        pool = self._pool
        if not self._connected or pool is None:
            return Err(NOT_CONNECTED)

        start_ns = time.perf_counter_ns()
        try:
            value = await command(pool)
        except asyncio.TimeoutError:
            self._metrics.timeout_count += 1
            return Err("Redis timeout")
        except (RedisError, OSError, ValueError) as e:
            # ValueError covers undecodable (binary) replies
            self._metrics.error_count += 1
            return Err(f"Redis error: {e}")

        self._metrics.record(time.perf_counter_ns() - start_ns)
        return Ok(value)

    # -------------------------------------------------------------------------
    # SERVER
    # -------------------------------------------------------------------------

    async def ping(self) -> Result[bool, str]:
        return await self._execute(lambda r: r.ping())

    async def server_info(self) -> Result[Dict[str, Any], str]:
        """INFO (default sections) as one flat dict."""
        return await self._execute(lambda r: r.info())

    # -------------------------------------------------------------------------
    # METADATA LOOKUPS
    # -------------------------------------------------------------------------

    async def exists(self, key: str) -> Result[bool, str]:
        result = await self._execute(lambda r: r.exists(key))
        return result.map(lambda count: count > 0)

    async def type_of(self, key: str) -> Result[str, str]:
        return await self._execute(lambda r: r.type(key))

    async def ttl_of(self, key: str) -> Result[Optional[int], str]:
        """
        Remaining TTL in seconds.

        TTL replies -1 (persistent) and -2 (missing) both map to None.
        """
        result = await self._execute(lambda r: r.ttl(key))
        return result.map(lambda ttl: ttl if ttl is not None and ttl > 0 else None)

    async def size_of(self, key: str, kind: KeyKind) -> Result[Optional[int], str]:
        if kind == KeyKind.STRING:
            return await self._execute(lambda r: r.strlen(key))
        if kind == KeyKind.HASH:
            return await self._execute(lambda r: r.hlen(key))
        if kind == KeyKind.LIST:
            return await self._execute(lambda r: r.llen(key))
        if kind == KeyKind.SET:
            return await self._execute(lambda r: r.scard(key))
        if kind == KeyKind.SORTEDSET:
            return await self._execute(lambda r: r.zcard(key))
        return Ok(None)

    # -------------------------------------------------------------------------
    # ENUMERATION
    # -------------------------------------------------------------------------

    async def scan(
        self,
        cursor: int,
        pattern: str,
        count: int,
    ) -> Result[Tuple[int, List[str]], str]:
        """
        One SCAN round-trip.

        Non-blocking on the server; a full pass may report a key more
        than once if the keyspace is rehashed meanwhile.
        """
        self._metrics.scan_count += 1
        result = await self._execute(
            lambda r: r.scan(cursor=cursor, match=pattern, count=count)
        )
        return result.map(lambda reply: (int(reply[0]), list(reply[1])))

    # -------------------------------------------------------------------------
    # READS
    # -------------------------------------------------------------------------

    async def read_scalar(self, key: str) -> Result[Optional[str], str]:
        return await self._execute(lambda r: r.get(key))

    async def read_hash(self, key: str) -> Result[Dict[str, str], str]:
        return await self._execute(lambda r: r.hgetall(key))

    async def read_list(self, key: str, limit: int) -> Result[List[str], str]:
        return await self._execute(lambda r: r.lrange(key, 0, limit - 1))

    async def read_set(self, key: str) -> Result[List[str], str]:
        result = await self._execute(lambda r: r.smembers(key))
        return result.map(list)

    # -------------------------------------------------------------------------
    # WRITES
    # -------------------------------------------------------------------------

    async def write_scalar(
        self,
        key: str,
        value: str,
        ttl_seconds: Optional[int] = None,
    ) -> Result[bool, str]:
        """SET with optional EX; a plain SET clears any previous TTL."""
        result = await self._execute(lambda r: r.set(key, value, ex=ttl_seconds))
        return result.map(bool)

    async def write_hash(self, key: str, fields: Dict[str, str]) -> Result[int, str]:
        return await self._execute(lambda r: r.hset(key, mapping=fields))

    async def expire(self, key: str, ttl_seconds: int) -> Result[bool, str]:
        result = await self._execute(lambda r: r.expire(key, ttl_seconds))
        return result.map(bool)

    async def persist(self, key: str) -> Result[bool, str]:
        result = await self._execute(lambda r: r.persist(key))
        return result.map(bool)

    async def delete(self, key: str) -> Result[bool, str]:
        result = await self._execute(lambda r: r.delete(key))
        return result.map(lambda deleted: deleted > 0)


# =============================================================================
# CONNECTOR
# =============================================================================

class RedisConnector:
    """
    StoreConnector producing RedisStoreConnection instances.

    Connection descriptors are parsed with
    RedisConfig.from_connection_string(); unspecified settings come from
    ``defaults``.
    """

    __slots__ = ("_defaults",)

    def __init__(self, defaults: Optional[RedisConfig] = None) -> None:
        self._defaults = defaults or RedisConfig()

    def describe(self, descriptor: str) -> str:
        parsed = RedisConfig.from_connection_string(descriptor, self._defaults)
        if parsed.is_err():
            return "<invalid connection string>"
        return parsed.unwrap().endpoint

    async def connect(self, descriptor: str) -> Result[StoreConnection, str]:
        parsed = RedisConfig.from_connection_string(descriptor, self._defaults)
        if parsed.is_err():
            return Err(f"Invalid connection string: {parsed.error}")

        connection = RedisStoreConnection(parsed.unwrap())
        connected = await connection.connect()
        if connected.is_err():
            return Err(connected.error)
        return Ok(connection)
