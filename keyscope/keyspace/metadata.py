"""
Key Metadata Probing

Shared by the pagination engine and the materializer: reads kind, TTL
and a human-readable size descriptor for one key.
"""

from __future__ import annotations

import logging
from typing import Optional

from keyscope.core import constants as C
from keyscope.core.types import KeyInfo, KeyKind, Result, Ok, Err
from keyscope.storage.protocols import StoreConnection

logger = logging.getLogger(__name__)

_SIZE_UNITS = {
    KeyKind.STRING: "B",
    KeyKind.HASH: "fields",
    KeyKind.LIST: "items",
    KeyKind.SET: "members",
    KeyKind.SORTEDSET: "members",
}


def describe_size(kind: KeyKind, size: Optional[int]) -> str:
    """Format a size lookup result, e.g. "24 B" or "3 fields"."""
    unit = _SIZE_UNITS.get(kind)
    if unit is None or size is None:
        return C.SIZE_PLACEHOLDER
    return f"{size} {unit}"


async def inspect_size(connection: StoreConnection, name: str, kind: KeyKind) -> str:
    """Size descriptor for a key; the placeholder if the lookup fails."""
    size = await connection.size_of(name, kind)
    if size.is_err():
        logger.debug(f"Size lookup failed for '{name}': {size.error}")
        return C.SIZE_PLACEHOLDER
    return describe_size(kind, size.unwrap())


async def inspect_kind(connection: StoreConnection, name: str) -> Result[Optional[KeyKind], str]:
    """Kind of a key; Ok(None) when the key does not exist."""
    type_name = await connection.type_of(name)
    if type_name.is_err():
        return Err(f"type: {type_name.error}")
    return Ok(KeyKind.from_store_type(type_name.unwrap()))


async def inspect_key(connection: StoreConnection, name: str) -> Result[Optional[KeyInfo], str]:
    """
    Full metadata for one key.

    Returns:
        Ok(KeyInfo) for an existing key.
        Ok(None) if the key vanished (e.g. expired mid-scan).
        Err(reason) if the kind or TTL lookup failed. A failed size
        lookup degrades to the placeholder instead.
    """
    kind = await inspect_kind(connection, name)
    if kind.is_err():
        return Err(kind.error)
    key_kind = kind.unwrap()
    if key_kind is None:
        return Ok(None)

    ttl = await connection.ttl_of(name)
    if ttl.is_err():
        return Err(f"ttl: {ttl.error}")

    return Ok(KeyInfo(
        name=name,
        kind=key_kind,
        ttl_seconds=ttl.unwrap(),
        size=await inspect_size(connection, name, key_kind),
    ))
