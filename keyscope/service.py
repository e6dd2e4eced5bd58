"""
Keyscope Service Facade

Single entry point for transport layers (HTTP handlers, CLI): wires the
connector, the session registry and the three keyspace engines, and
exposes every operation as a coroutine returning a Result or a bool.

Usage:
    config = KeyscopeConfig.from_env().unwrap()
    async with KeyscopeService.from_config(config) as service:
        session_id = (await service.open("localhost:6379")).unwrap()
        page = await service.page(session_id, "user:*", page_index=0, page_size=20)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from keyscope.core.config import KeyscopeConfig
from keyscope.core.errors import KeyscopeError, SessionError
from keyscope.core.types import (
    DeleteOutcome,
    KeysPage,
    KeyValue,
    KeyWriteSpec,
    Result,
    Ok,
    Err,
    ServerInfo,
    WriteOutcome,
)
from keyscope.keyspace.materializer import KeyMaterializer
from keyscope.keyspace.mutation import MutationPipeline
from keyscope.keyspace.pagination import KeyspacePager
from keyscope.observability.logging import log_context
from keyscope.session.registry import SessionRegistry
from keyscope.storage.backends import InMemoryConnector
from keyscope.storage.protocols import StoreConnection, StoreConnector
from keyscope.storage.redis_store import RedisConnector

logger = logging.getLogger(__name__)


class KeyscopeService:
    """
    Facade over registry, pager, materializer and mutation pipeline.

    One instance per process. close_all() (or leaving the async
    context) drains every session.
    """

    __slots__ = (
        "_config",
        "_connector",
        "_registry",
        "_pager",
        "_materializer",
        "_mutations",
    )

    def __init__(
        self,
        connector: StoreConnector,
        config: Optional[KeyscopeConfig] = None,
    ) -> None:
        self._config = config or KeyscopeConfig()
        self._connector = connector
        self._registry = SessionRegistry(connector, self._config.registry)
        self._pager = KeyspacePager(self._registry, self._config.keyspace)
        self._materializer = KeyMaterializer(self._registry, self._config.keyspace)
        self._mutations = MutationPipeline(self._registry)

    @classmethod
    def from_config(cls, config: Optional[KeyscopeConfig] = None) -> KeyscopeService:
        """Redis-backed service; config.redis supplies connection defaults."""
        config = config or KeyscopeConfig()
        return cls(RedisConnector(config.redis), config)

    @classmethod
    def in_memory(
        cls,
        connector: Optional[InMemoryConnector] = None,
        config: Optional[KeyscopeConfig] = None,
    ) -> KeyscopeService:
        """Service over in-process keyspaces (``memory://<name>``)."""
        return cls(connector or InMemoryConnector(), config)

    async def __aenter__(self) -> KeyscopeService:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close_all()

    @property
    def config(self) -> KeyscopeConfig:
        return self._config

    @property
    def connector(self) -> StoreConnector:
        return self._connector

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    # -------------------------------------------------------------------------
    # SESSIONS
    # -------------------------------------------------------------------------

    async def open(self, descriptor: str) -> Result[str, SessionError]:
        return await self._registry.open(descriptor)

    async def close(self, session_id: str) -> bool:
        return await self._registry.close(session_id)

    def resolve(self, session_id: str) -> Optional[StoreConnection]:
        return self._registry.resolve(session_id)

    async def close_all(self) -> int:
        return await self._registry.close_all()

    # -------------------------------------------------------------------------
    # KEYSPACE OPERATIONS
    # -------------------------------------------------------------------------

    async def page(
        self,
        session_id: str,
        pattern: str = "*",
        page_index: int = 0,
        page_size: Optional[int] = None,
        *,
        lenient: Optional[bool] = None,
    ) -> Result[KeysPage, KeyscopeError]:
        with log_context(session_id=session_id[:8], operation="page"):
            return await self._pager.page(
                session_id, pattern, page_index, page_size, lenient=lenient,
            )

    async def fetch(
        self,
        session_id: str,
        name: str,
    ) -> Result[Optional[KeyValue], KeyscopeError]:
        with log_context(session_id=session_id[:8], operation="fetch"):
            return await self._materializer.fetch(session_id, name)

    async def write(self, session_id: str, spec: KeyWriteSpec) -> bool:
        with log_context(session_id=session_id[:8], operation="write"):
            return await self._mutations.write(session_id, spec)

    async def write_detailed(
        self,
        session_id: str,
        spec: KeyWriteSpec,
    ) -> Result[WriteOutcome, KeyscopeError]:
        with log_context(session_id=session_id[:8], operation="write"):
            return await self._mutations.write_detailed(session_id, spec)

    async def delete(self, session_id: str, name: str) -> bool:
        with log_context(session_id=session_id[:8], operation="delete"):
            return await self._mutations.delete(session_id, name)

    async def delete_detailed(
        self,
        session_id: str,
        name: str,
    ) -> Result[DeleteOutcome, KeyscopeError]:
        with log_context(session_id=session_id[:8], operation="delete"):
            return await self._mutations.delete_detailed(session_id, name)

    # -------------------------------------------------------------------------
    # SERVER
    # -------------------------------------------------------------------------

    async def ping(self, session_id: str) -> bool:
        """True if the session exists and the store answers PING."""
        async with self._registry.lease(session_id) as connection:
            if connection is None:
                return False
            result = await connection.ping()
        if result.is_err():
            logger.warning(f"Ping failed: {result.error}")
            return False
        return bool(result.unwrap())

    async def server_info(self, session_id: str) -> Result[ServerInfo, KeyscopeError]:
        """
        Version, memory use and client count of the store.

        An INFO failure degrades to ServerInfo() defaults; only an
        unknown session is an error.
        """
        async with self._registry.lease(session_id) as connection:
            if connection is None:
                return Err(SessionError.unknown_session(session_id))
            info = await connection.server_info()
        if info.is_err():
            logger.error(f"Error getting server info: {info.error}")
            return Ok(ServerInfo())
        return Ok(ServerInfo.from_info(info.unwrap()))
