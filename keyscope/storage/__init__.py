"""
Storage Module: Store Connection Capability and Backends
========================================================

Provides:
- StoreConnection / StoreConnector protocols
- Redis backend (redis.asyncio)
- In-memory backend for development and tests
- Connection descriptor parsing (RedisConfig)

Example:
    >>> connector = RedisConnector()
    >>> result = await connector.connect("localhost:6379,password=secret")

    >>> connector = InMemoryConnector()
    >>> result = await connector.connect("memory://orders")
"""

from keyscope.storage.protocols import (
    NOT_CONNECTED,
    StoreConnection,
    StoreConnector,
)
from keyscope.storage.config import RedisConfig
from keyscope.storage.backends import (
    InMemoryConnector,
    InMemoryKeyspace,
    InMemoryStoreConnection,
)
from keyscope.storage.redis_store import (
    RedisConnector,
    RedisMetrics,
    RedisStoreConnection,
)

__all__ = [
    # Protocols
    "NOT_CONNECTED",
    "StoreConnection",
    "StoreConnector",
    # Configuration
    "RedisConfig",
    # In-memory backend
    "InMemoryConnector",
    "InMemoryKeyspace",
    "InMemoryStoreConnection",
    # Redis backend
    "RedisConnector",
    "RedisMetrics",
    "RedisStoreConnection",
]
