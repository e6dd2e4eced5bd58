"""
Key Materializer

Reads one key's metadata and its type-dependent value.

Dispatch:
    string    -> GET       -> Scalar (raw_scalar carries the same text)
    hash      -> HGETALL   -> Mapping
    list      -> LRANGE    -> Sequence (first list_preview_limit items)
    set       -> SMEMBERS  -> SetValue
    otherwise              -> Unsupported
"""

from __future__ import annotations

import logging
from typing import Optional

from keyscope.core.config import KeyspaceConfig
from keyscope.core.errors import KeyscopeError, KeyspaceError, SessionError
from keyscope.core.types import (
    KeyInfo,
    KeyKind,
    KeyValue,
    Mapping,
    MaterializedValue,
    Result,
    Ok,
    Err,
    Scalar,
    Sequence,
    SetValue,
    Unsupported,
)
from keyscope.keyspace.metadata import inspect_kind, inspect_size
from keyscope.session.registry import SessionRegistry
from keyscope.storage.protocols import StoreConnection

logger = logging.getLogger(__name__)


class KeyMaterializer:
    """
    Single-key reader.

    A missing key is Ok(None), not an error. Store failures on the
    kind, TTL or value read become TRANSIENT_OP_FAILURE; a failed size
    lookup only degrades the size descriptor.
    """

    __slots__ = ("_registry", "_config")

    def __init__(
        self,
        registry: SessionRegistry,
        config: Optional[KeyspaceConfig] = None,
    ) -> None:
        self._registry = registry
        self._config = config or KeyspaceConfig()

    async def fetch(
        self,
        session_id: str,
        name: str,
    ) -> Result[Optional[KeyValue], KeyscopeError]:
        """Metadata and value of one key, or Ok(None) if it does not exist."""
        async with self._registry.lease(session_id) as connection:
            if connection is None:
                return Err(SessionError.unknown_session(session_id))
            return await self._fetch(connection, name)

    async def _fetch(
        self,
        connection: StoreConnection,
        name: str,
    ) -> Result[Optional[KeyValue], KeyscopeError]:
        exists = await connection.exists(name)
        if exists.is_err():
            return self._failed("exists", name, exists.error)
        if not exists.unwrap():
            return Ok(None)

        kind = await inspect_kind(connection, name)
        if kind.is_err():
            return self._failed("type", name, kind.error)
        key_kind = kind.unwrap()
        if key_kind is None:
            # Expired between EXISTS and TYPE
            return Ok(None)

        ttl = await connection.ttl_of(name)
        if ttl.is_err():
            return self._failed("ttl", name, ttl.error)

        info = KeyInfo(
            name=name,
            kind=key_kind,
            ttl_seconds=ttl.unwrap(),
            size=await inspect_size(connection, name, key_kind),
        )

        value = await self._read_value(connection, name, key_kind)
        if value.is_err():
            return self._failed("read", name, value.error)

        materialized = value.unwrap()
        raw_scalar = materialized.value if isinstance(materialized, Scalar) else None
        return Ok(KeyValue(info=info, value=materialized, raw_scalar=raw_scalar))

    async def _read_value(
        self,
        connection: StoreConnection,
        name: str,
        kind: KeyKind,
    ) -> Result[MaterializedValue, str]:
        match kind:
            case KeyKind.STRING:
                result = await connection.read_scalar(name)
                return result.map(Scalar)
            case KeyKind.HASH:
                result = await connection.read_hash(name)
                return result.map(lambda fields: Mapping(dict(fields)))
            case KeyKind.LIST:
                result = await connection.read_list(name, self._config.list_preview_limit)
                return result.map(lambda items: Sequence(tuple(items)))
            case KeyKind.SET:
                result = await connection.read_set(name)
                return result.map(lambda members: SetValue(frozenset(members)))
            case _:
                return Ok(Unsupported(kind.value))

    @staticmethod
    def _failed(operation: str, name: str, reason: str) -> Err[KeyspaceError]:
        logger.error(f"Fetch of '{name}' failed at {operation}: {reason}")
        return Err(KeyspaceError.transient_failure(operation, name, reason))
