"""
Session Registry: Live Store Connections Behind Opaque Handles

Owns the mapping from session identifier to StoreConnection:
- open(): connect, verify, allocate an unguessable identifier
- resolve(): pure lookup
- lease(): scoped access, serialized per session when required
- close(): atomic removal plus disposal, idempotent
- close_all(): drain at shutdown

Concurrency Model:
    Every mutation of the identifier map is a section with no await, so
    on a single event loop each insert and removal is already atomic.
    Those sections run under striped asyncio locks picked by the
    identifier's hash; today the locks are never contended and only
    take effect if a store call is moved inside a section. Store
    round-trips (connect, dispose) always happen outside them.

    A session whose connection does not support multiplexed use (or any
    session when serialize_sessions is configured) carries its own lock;
    lease() holds it for the duration of one operation.

Lifecycle:
    A connection is owned by its entry until close(). Operations that
    raced a close keep a reference to the disposed connection and see
    Err("Not connected") from it.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

from keyscope.core.config import RegistryConfig
from keyscope.core.errors import SessionError
from keyscope.core.types import Result, Ok, Err
from keyscope.storage.protocols import StoreConnection, StoreConnector

logger = logging.getLogger(__name__)


# =============================================================================
# SESSION ENTRY
# =============================================================================
@dataclass(slots=True)
class SessionEntry:
    """
    One registered session.

    ``endpoint`` is the credential-free description of the store.
    """
    session_id: str
    connection: StoreConnection
    endpoint: str
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    lock: Optional[asyncio.Lock] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "session": self.session_id[:8],
            "endpoint": self.endpoint,
            "opened_at": self.opened_at.isoformat(),
            "serialized": self.lock is not None,
        }


# =============================================================================
# SESSION REGISTRY
# =============================================================================
class SessionRegistry:
    """
    Process-scoped registry of live store sessions.

    Created explicitly at service start and drained with close_all()
    (or by leaving its async context) at shutdown.

    Usage:
        registry = SessionRegistry(RedisConnector())

        opened = await registry.open("localhost:6379")
        if opened.is_ok():
            session_id = opened.unwrap()
            async with registry.lease(session_id) as connection:
                ...
            await registry.close(session_id)
    """

    __slots__ = ("_connector", "_config", "_entries", "_stripes", "_closing")

    def __init__(
        self,
        connector: StoreConnector,
        config: Optional[RegistryConfig] = None,
    ) -> None:
        self._connector = connector
        self._config = config or RegistryConfig()
        self._entries: dict[str, SessionEntry] = {}
        self._stripes = tuple(
            asyncio.Lock() for _ in range(max(1, self._config.lock_stripes))
        )
        self._closing = False

    def _stripe(self, session_id: str) -> asyncio.Lock:
        return self._stripes[hash(session_id) % len(self._stripes)]

    async def __aenter__(self) -> SessionRegistry:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close_all()

    # -------------------------------------------------------------------------
    # OPEN / RESOLVE / CLOSE
    # -------------------------------------------------------------------------

    async def open(self, descriptor: str) -> Result[str, SessionError]:
        """
        Connect to a store and register a new session.

        Returns:
            Ok(session_id) on success.
            Err(SessionError CONNECTIVITY_FAILURE) on any failure; no
            entry is registered in that case.
        """
        endpoint = self._connector.describe(descriptor)
        if self._closing:
            return Err(SessionError.connectivity_failure(endpoint, "registry is shutting down"))

        connected = await self._connector.connect(descriptor)
        if connected.is_err():
            logger.warning(f"Connect to {endpoint} failed: {connected.error}")
            return Err(SessionError.connectivity_failure(endpoint, connected.error))

        connection = connected.unwrap()
        serialize = self._config.serialize_sessions or not getattr(
            connection, "supports_multiplexing", False
        )

        while True:
            session_id = uuid4().hex
            async with self._stripe(session_id):
                if self._closing:
                    break
                if session_id in self._entries:
                    continue
                self._entries[session_id] = SessionEntry(
                    session_id=session_id,
                    connection=connection,
                    endpoint=endpoint,
                    lock=asyncio.Lock() if serialize else None,
                )
                logger.info(f"Session {session_id[:8]} opened for {endpoint}")
                return Ok(session_id)

        # Shutdown started while we were connecting
        await connection.close()
        return Err(SessionError.connectivity_failure(endpoint, "registry is shutting down"))

    def resolve(self, session_id: str) -> Optional[StoreConnection]:
        """Connection for session_id, or None. No side effects."""
        entry = self._entries.get(session_id)
        return entry.connection if entry is not None else None

    def entry(self, session_id: str) -> Optional[SessionEntry]:
        return self._entries.get(session_id)

    async def close(self, session_id: str) -> bool:
        """
        Remove a session and dispose of its connection.

        Returns:
            True if the session existed and was removed, False otherwise.
            Repeated calls return False.
        """
        async with self._stripe(session_id):
            entry = self._entries.pop(session_id, None)
        if entry is None:
            return False

        await self._dispose(entry)
        logger.info(f"Session {session_id[:8]} closed")
        return True

    async def close_all(self) -> int:
        """
        Close every session and refuse new opens.

        Returns:
            Number of sessions closed.
        """
        self._closing = True
        closed = 0
        for session_id in list(self._entries):
            if await self.close(session_id):
                closed += 1
        if closed:
            logger.info(f"Registry drained: {closed} session(s) closed")
        return closed

    async def _dispose(self, entry: SessionEntry) -> None:
        try:
            await entry.connection.close()
        except (OSError, RuntimeError) as e:
            # The entry is already gone; a dispose failure only leaks the socket
            logger.error(f"Session {entry.session_id[:8]} dispose failed: {e}")

    # -------------------------------------------------------------------------
    # SCOPED ACCESS
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def lease(self, session_id: str) -> AsyncIterator[Optional[StoreConnection]]:
        """
        Scoped access to a session's connection.

        Yields None for an unknown session. Holds the per-session lock
        when the session is serialized.
        """
        entry = self._entries.get(session_id)
        if entry is None:
            yield None
            return
        if entry.lock is None:
            yield entry.connection
            return
        async with entry.lock:
            yield entry.connection

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    def sessions(self) -> list[SessionEntry]:
        return list(self._entries.values())

    @property
    def session_count(self) -> int:
        return len(self._entries)

    @property
    def closing(self) -> bool:
        return self._closing
