"""
Configuration Management for Keyscope

Provides validated configuration with sensible defaults.
Supports environment variable overrides (KEYSCOPE_ prefix).

Design:
- Immutable after construction
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from keyscope.core.types import Result, Ok, Err
from keyscope.core import constants as C
from keyscope.storage.config import RedisConfig

ENV_PREFIX = "KEYSCOPE"


def _env(name: str, default: str = "") -> str:
    return os.getenv(f"{ENV_PREFIX}_{name}", default)


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    return int(value) if value else default


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name).lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return default


@dataclass(frozen=True)
class RegistryConfig:
    """Connection registry configuration."""

    lock_stripes: int = C.REGISTRY_LOCK_STRIPES
    # Force one-operation-at-a-time per session even on multiplexed clients
    serialize_sessions: bool = False


@dataclass(frozen=True)
class KeyspaceConfig:
    """Pagination and materialization limits."""

    default_page_size: int = C.DEFAULT_PAGE_SIZE
    max_page_size: int = C.MAX_PAGE_SIZE
    scan_batch_size: int = C.SCAN_BATCH_SIZE
    list_preview_limit: int = C.LIST_PREVIEW_LIMIT
    # Skip keys whose metadata lookup fails instead of failing the page
    lenient_metadata: bool = True


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    log_json: bool = False


@dataclass(frozen=True)
class KeyscopeConfig:
    """Root configuration."""

    registry: RegistryConfig = field(default_factory=RegistryConfig)
    keyspace: KeyspaceConfig = field(default_factory=KeyspaceConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)

    @classmethod
    def from_env(cls) -> Result[KeyscopeConfig, str]:
        """
        Load configuration from environment variables.

        Example: KEYSCOPE_MAX_PAGE_SIZE=500, KEYSCOPE_LOG_JSON=true,
        KEYSCOPE_REDIS_SOCKET_TIMEOUT_MS=2000
        """
        try:
            registry = RegistryConfig(
                lock_stripes=_env_int("LOCK_STRIPES", C.REGISTRY_LOCK_STRIPES),
                serialize_sessions=_env_bool("SERIALIZE_SESSIONS", False),
            )
            keyspace = KeyspaceConfig(
                default_page_size=_env_int("DEFAULT_PAGE_SIZE", C.DEFAULT_PAGE_SIZE),
                max_page_size=_env_int("MAX_PAGE_SIZE", C.MAX_PAGE_SIZE),
                scan_batch_size=_env_int("SCAN_BATCH_SIZE", C.SCAN_BATCH_SIZE),
                list_preview_limit=_env_int("LIST_PREVIEW_LIMIT", C.LIST_PREVIEW_LIMIT),
                lenient_metadata=_env_bool("LENIENT_METADATA", True),
            )
            observability = ObservabilityConfig(
                log_level=_env("LOG_LEVEL", "INFO").upper(),
                log_json=_env_bool("LOG_JSON", False),
            )
            redis = RedisConfig.from_env(prefix=f"{ENV_PREFIX}_REDIS")
            return Ok(cls(
                registry=registry,
                keyspace=keyspace,
                observability=observability,
                redis=redis,
            ))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        if self.registry.lock_stripes < 1:
            return Err("lock_stripes must be >= 1")
        if self.keyspace.default_page_size < 1:
            return Err("default_page_size must be >= 1")
        if self.keyspace.max_page_size < self.keyspace.default_page_size:
            return Err("max_page_size cannot be below default_page_size")
        if self.keyspace.scan_batch_size < 1:
            return Err("scan_batch_size must be >= 1")
        if self.keyspace.list_preview_limit < 1:
            return Err("list_preview_limit must be >= 1")
        if self.observability.log_level not in (
            "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
        ):
            return Err(f"Unknown log level: {self.observability.log_level}")
        return Ok(None)
