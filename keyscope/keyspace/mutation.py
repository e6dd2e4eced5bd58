"""
Mutation Pipeline

Create/replace and delete of single keys.

Write sequences:
    hash:   parse payload -> HSET fields -> EXPIRE ttl | PERSIST
    other:  SET name payload [EX ttl]

A hash write is not atomic: the fields are committed before the expiry
step runs. If that step fails the write still counts as done and the
outcome is WRITTEN_WITHOUT_EXPIRY.
"""

from __future__ import annotations

import json
import logging

from keyscope.core.errors import KeyscopeError, KeyspaceError, SessionError
from keyscope.core.types import (
    DeleteOutcome,
    KeyWriteSpec,
    Result,
    Ok,
    Err,
    WriteOutcome,
)
from keyscope.session.registry import SessionRegistry
from keyscope.storage.protocols import StoreConnection

logger = logging.getLogger(__name__)

HASH_KIND = "hash"


def parse_hash_payload(name: str, payload: str) -> Result[dict[str, str], KeyspaceError]:
    """
    Decode a hash payload: a JSON object of string values.
    An empty object is valid and writes no fields.

    Error messages describe the shape problem only, never the payload.
    """
    try:
        decoded = json.loads(payload)
    except (json.JSONDecodeError, TypeError):
        return Err(KeyspaceError.malformed_payload(name, HASH_KIND, "not valid JSON"))

    if not isinstance(decoded, dict):
        return Err(KeyspaceError.malformed_payload(name, HASH_KIND, "not a JSON object"))
    if not all(isinstance(value, str) for value in decoded.values()):
        return Err(KeyspaceError.malformed_payload(name, HASH_KIND, "field values must be strings"))
    return Ok(decoded)


class MutationPipeline:
    """
    Validated writes and deletes over a registry session.

    write() and delete() collapse every outcome to a bool for callers
    that only need success/failure; the *_detailed variants keep the
    distinction between partial success, absence and failure.
    """

    __slots__ = ("_registry",)

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry

    # -------------------------------------------------------------------------
    # WRITE
    # -------------------------------------------------------------------------

    async def write(self, session_id: str, spec: KeyWriteSpec) -> bool:
        """True if the value was stored (even when the expiry step failed)."""
        return (await self.write_detailed(session_id, spec)).is_ok()

    async def write_detailed(
        self,
        session_id: str,
        spec: KeyWriteSpec,
    ) -> Result[WriteOutcome, KeyscopeError]:
        if not spec.name or not spec.name.strip():
            return Err(KeyspaceError.invalid_argument("name", "must not be empty"))
        if spec.ttl_seconds is not None and spec.ttl_seconds <= 0:
            return Err(KeyspaceError.invalid_argument("ttl_seconds", "must be > 0"))

        async with self._registry.lease(session_id) as connection:
            if connection is None:
                return Err(SessionError.unknown_session(session_id))
            if spec.normalized_kind == HASH_KIND:
                return await self._write_hash(connection, spec)
            return await self._write_scalar(connection, spec)

    async def _write_hash(
        self,
        connection: StoreConnection,
        spec: KeyWriteSpec,
    ) -> Result[WriteOutcome, KeyscopeError]:
        fields = parse_hash_payload(spec.name, spec.payload)
        if fields.is_err():
            logger.warning(f"Rejected hash write to '{spec.name}': {fields.error.message}")
            return fields

        # HSET rejects an empty mapping
        if fields.unwrap():
            written = await connection.write_hash(spec.name, fields.unwrap())
            if written.is_err():
                logger.error(f"Hash write to '{spec.name}' failed: {written.error}")
                return Err(KeyspaceError.transient_failure("hset", spec.name, written.error))

        if spec.ttl_seconds is not None:
            expiry = await connection.expire(spec.name, spec.ttl_seconds)
        else:
            expiry = await connection.persist(spec.name)
        if expiry.is_err():
            logger.warning(
                f"Fields of '{spec.name}' written but expiry update failed: {expiry.error}"
            )
            return Ok(WriteOutcome.WRITTEN_WITHOUT_EXPIRY)
        return Ok(WriteOutcome.WRITTEN)

    async def _write_scalar(
        self,
        connection: StoreConnection,
        spec: KeyWriteSpec,
    ) -> Result[WriteOutcome, KeyscopeError]:
        written = await connection.write_scalar(spec.name, spec.payload, spec.ttl_seconds)
        if written.is_err():
            logger.error(f"Write to '{spec.name}' failed: {written.error}")
            return Err(KeyspaceError.transient_failure("set", spec.name, written.error))
        if not written.unwrap():
            return Err(KeyspaceError.transient_failure("set", spec.name, "not acknowledged"))
        return Ok(WriteOutcome.WRITTEN)

    # -------------------------------------------------------------------------
    # DELETE
    # -------------------------------------------------------------------------

    async def delete(self, session_id: str, name: str) -> bool:
        """True only if the key existed and was removed."""
        outcome = await self.delete_detailed(session_id, name)
        return outcome.is_ok() and outcome.unwrap() is DeleteOutcome.DELETED

    async def delete_detailed(
        self,
        session_id: str,
        name: str,
    ) -> Result[DeleteOutcome, KeyscopeError]:
        async with self._registry.lease(session_id) as connection:
            if connection is None:
                return Err(SessionError.unknown_session(session_id))
            removed = await connection.delete(name)

        if removed.is_err():
            logger.error(f"Delete of '{name}' failed: {removed.error}")
            return Err(KeyspaceError.transient_failure("delete", name, removed.error))
        return Ok(DeleteOutcome.DELETED if removed.unwrap() else DeleteOutcome.NOT_FOUND)
