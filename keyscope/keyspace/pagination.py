"""
Keyspace Pagination Engine

Produces one page of key metadata plus the total number of keys matching
a glob pattern, in a single streaming enumeration pass.

Algorithm:
    start = page_index * page_size, end = start + page_size
    For every key the enumeration yields, in stream order:
      - keys with start <= index < end get a metadata lookup
      - every key increments index, so the final index is total_matches
    Lookups only run for the window; enumeration itself is cheap.

Memory: O(page_size + scan_batch_size). Keys outside the window are
never retained.

Enumeration guarantees are those of SCAN: every key present for the
whole pass is reported; a key may be reported twice if the keyspace is
rehashed during the pass, and keys created or deleted mid-pass may or
may not be seen.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from keyscope.core import constants as C
from keyscope.core.config import KeyspaceConfig
from keyscope.core.errors import KeyscopeError, KeyspaceError, SessionError
from keyscope.core.types import KeyInfo, KeysPage, Result, Ok, Err
from keyscope.keyspace.metadata import inspect_key
from keyscope.session.registry import SessionRegistry
from keyscope.storage.protocols import StoreConnection

logger = logging.getLogger(__name__)


class KeyspacePager:
    """
    Bounded-memory pagination over a live keyspace.

    Metadata policy:
        lenient (default): a key whose kind/TTL lookup fails is logged
        and left out of items, but still counted in total_matches.
        strict: the first lookup failure fails the whole page.
        Keys that vanish between enumeration and lookup are left out in
        both modes.

    Usage:
        pager = KeyspacePager(registry)
        result = await pager.page(session_id, "user:*", page_index=2, page_size=25)
    """

    __slots__ = ("_registry", "_config")

    def __init__(
        self,
        registry: SessionRegistry,
        config: Optional[KeyspaceConfig] = None,
    ) -> None:
        self._registry = registry
        self._config = config or KeyspaceConfig()

    async def page(
        self,
        session_id: str,
        pattern: str = C.DEFAULT_PATTERN,
        page_index: int = 0,
        page_size: Optional[int] = None,
        *,
        lenient: Optional[bool] = None,
    ) -> Result[KeysPage, KeyscopeError]:
        """
        One page of keys matching pattern.

        Args:
            session_id: Registry session handle.
            pattern: Glob pattern; empty means "*".
            page_index: Zero-based page number.
            page_size: Keys per page (default from config, at most
                max_page_size).
            lenient: Override the configured metadata policy.

        Returns:
            Ok(KeysPage); an index past the last page yields empty items
            with the correct total.
            Err(SessionError) for an unknown session.
            Err(KeyspaceError) for invalid arguments, a failed
            enumeration, or a lookup failure in strict mode.
        """
        size = self._config.default_page_size if page_size is None else page_size
        if page_index < 0:
            return Err(KeyspaceError.invalid_argument("page_index", "must be >= 0"))
        if size < 1:
            return Err(KeyspaceError.invalid_argument("page_size", "must be >= 1"))
        if size > self._config.max_page_size:
            return Err(KeyspaceError.invalid_argument(
                "page_size", f"must be <= {self._config.max_page_size}"
            ))
        pattern = pattern or C.DEFAULT_PATTERN
        lenient = self._config.lenient_metadata if lenient is None else lenient

        async with self._registry.lease(session_id) as connection:
            if connection is None:
                return Err(SessionError.unknown_session(session_id))
            return await self._page(connection, pattern, page_index, size, lenient)

    async def _page(
        self,
        connection: StoreConnection,
        pattern: str,
        page_index: int,
        page_size: int,
        lenient: bool,
    ) -> Result[KeysPage, KeyscopeError]:
        start = page_index * page_size
        end = start + page_size
        index = 0
        items: list[KeyInfo] = []

        cursor = 0
        while True:
            scanned = await connection.scan(cursor, pattern, self._config.scan_batch_size)
            if scanned.is_err():
                logger.error(f"Enumeration of '{pattern}' failed: {scanned.error}")
                return Err(KeyspaceError.transient_failure("scan", pattern, scanned.error))
            cursor, keys = scanned.unwrap()

            window: list[str] = []
            for key in keys:
                if start <= index < end:
                    window.append(key)
                index += 1

            if window:
                failure = await self._collect(connection, window, items, lenient)
                if failure is not None:
                    return Err(failure)

            if cursor == 0:
                break

        items.sort(key=lambda info: info.name)
        return Ok(KeysPage(
            items=tuple(items),
            total_matches=index,
            page_index=page_index,
            page_size=page_size,
        ))

    async def _collect(
        self,
        connection: StoreConnection,
        window: list[str],
        items: list[KeyInfo],
        lenient: bool,
    ) -> Optional[KeyspaceError]:
        """Inspect the window keys of one batch into items."""
        if getattr(connection, "supports_multiplexing", False):
            lookups = await asyncio.gather(*(inspect_key(connection, key) for key in window))
        else:
            lookups = [await inspect_key(connection, key) for key in window]

        for key, lookup in zip(window, lookups):
            if lookup.is_err():
                if not lenient:
                    return KeyspaceError.transient_failure("metadata", key, lookup.error)
                logger.warning(f"Error getting metadata for key {key}: {lookup.error}")
                continue
            info = lookup.unwrap()
            if info is None:
                logger.debug(f"Key {key} vanished during enumeration")
                continue
            items.append(info)
        return None
