"""
Store Connection Configuration
==============================

Type-safe, immutable configuration for Redis/Valkey connections, and the
parser that turns a client-supplied connection descriptor into one.

Accepted descriptors:
---------------------
1. URLs understood by redis-py: ``redis://``, ``rediss://``, ``unix://``
2. Comma-separated options, first entry is the endpoint::

       cache.internal:6380,password=secret,ssl=true,defaultDatabase=2

   Supported options (case-insensitive): password, user, ssl,
   defaultDatabase, connectTimeout (ms), syncTimeout (ms),
   asyncTimeout (ms), name, abortConnect (ignored).

Design Principles:
------------------
1. **Immutability**: frozen dataclass, safe to share between sessions
2. **Validation**: invariants checked at construction time
3. **Redaction**: ``endpoint`` never includes credentials
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional
from urllib.parse import urlsplit

from keyscope.core.types import Result, Ok, Err
from keyscope.core import constants as C


URL_SCHEMES = ("redis", "rediss", "unix")

_TRUE_VALUES = ("true", "1", "yes")
_FALSE_VALUES = ("false", "0", "no")


def _parse_bool(value: str) -> Optional[bool]:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return None


# =============================================================================
# REDIS CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class RedisConfig:
    """
    Redis/Valkey connection configuration.

    Attributes:
        host: Server hostname or IP address.
        port: Server port (1-65535).
        db: Logical database index (>= 0).
        username: Optional ACL user.
        password: Optional authentication password.
        ssl: Enable TLS for the connection.
        connect_timeout_ms: TCP connect timeout in milliseconds.
        socket_timeout_ms: Per-command socket timeout in milliseconds.
        max_connections: Connection pool size for one session.
        client_name: Optional CLIENT SETNAME value.
        url: When set, the connection is built from this URL and
            host/port/db are informational only.

    Example:
        >>> config = RedisConfig.from_env("KEYSCOPE_REDIS")
        >>> parsed = RedisConfig.from_connection_string("localhost:6379,ssl=false")
    """
    host: str = "localhost"
    port: int = C.REDIS_DEFAULT_PORT
    db: int = 0
    username: Optional[str] = None
    password: Optional[str] = None
    ssl: bool = False
    connect_timeout_ms: int = C.REDIS_CONNECT_TIMEOUT_MS
    socket_timeout_ms: int = C.REDIS_SOCKET_TIMEOUT_MS
    max_connections: int = C.REDIS_MAX_CONNECTIONS
    client_name: Optional[str] = None
    url: Optional[str] = None

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if not (1 <= self.port <= 65535):
            raise ValueError(f"port must be in [1, 65535], got {self.port}")
        if self.db < 0:
            raise ValueError(f"db must be >= 0, got {self.db}")
        if self.max_connections <= 0:
            raise ValueError(f"max_connections must be > 0, got {self.max_connections}")
        if self.connect_timeout_ms <= 0:
            raise ValueError(f"connect_timeout_ms must be > 0, got {self.connect_timeout_ms}")
        if self.socket_timeout_ms <= 0:
            raise ValueError(f"socket_timeout_ms must be > 0, got {self.socket_timeout_ms}")

    @property
    def endpoint(self) -> str:
        """Credential-free description used in logs and errors."""
        if self.url is not None:
            parts = urlsplit(self.url)
            if parts.scheme == "unix":
                return f"unix:{parts.path}"
            host = parts.hostname or "localhost"
            port = parts.port or C.REDIS_DEFAULT_PORT
            return f"{parts.scheme}://{host}:{port}{parts.path or ''}"
        return f"{self.host}:{self.port}/{self.db}"

    @classmethod
    def from_env(cls, prefix: str = "REDIS") -> RedisConfig:
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_HOST, {prefix}_PORT, {prefix}_DB
        - {prefix}_USERNAME, {prefix}_PASSWORD
        - {prefix}_SSL
        - {prefix}_CONNECT_TIMEOUT_MS, {prefix}_SOCKET_TIMEOUT_MS
        - {prefix}_MAX_CONNECTIONS
        """
        def _get(key: str, default: str = "") -> str:
            return os.environ.get(f"{prefix}_{key}", default)

        def _get_int(key: str, default: int) -> int:
            val = _get(key)
            return int(val) if val else default

        ssl = _parse_bool(_get("SSL"))

        return cls(
            host=_get("HOST", "localhost"),
            port=_get_int("PORT", C.REDIS_DEFAULT_PORT),
            db=_get_int("DB", 0),
            username=_get("USERNAME") or None,
            password=_get("PASSWORD") or None,
            ssl=bool(ssl),
            connect_timeout_ms=_get_int("CONNECT_TIMEOUT_MS", C.REDIS_CONNECT_TIMEOUT_MS),
            socket_timeout_ms=_get_int("SOCKET_TIMEOUT_MS", C.REDIS_SOCKET_TIMEOUT_MS),
            max_connections=_get_int("MAX_CONNECTIONS", C.REDIS_MAX_CONNECTIONS),
        )

    @classmethod
    def from_connection_string(
        cls,
        descriptor: str,
        defaults: Optional[RedisConfig] = None,
    ) -> Result[RedisConfig, str]:
        """
        Parse a client-supplied connection descriptor.

        Fields the descriptor does not mention keep the values of
        ``defaults``. Error messages never echo option values.

        Returns:
            Ok(RedisConfig) or Err(reason).
        """
        base = defaults or cls()
        text = (descriptor or "").strip()
        if not text:
            return Err("connection string is empty")

        scheme = text.split("://", 1)[0].lower() if "://" in text else ""
        if scheme:
            if scheme not in URL_SCHEMES:
                return Err(f"unsupported scheme '{scheme}'")
            try:
                parts = urlsplit(text)
                db_path = parts.path.lstrip("/")
                return Ok(replace(
                    base,
                    host=parts.hostname or base.host,
                    port=parts.port or C.REDIS_DEFAULT_PORT,
                    db=int(db_path) if scheme != "unix" and db_path.isdigit() else base.db,
                    ssl=scheme == "rediss",
                    url=text,
                ))
            except ValueError as e:
                return Err(f"malformed URL: {e}")

        entries = [entry.strip() for entry in text.split(",") if entry.strip()]
        if not entries or "=" in entries[0]:
            return Err("connection string must start with host[:port]")
        endpoint = entries[0]

        host, port = endpoint, C.REDIS_DEFAULT_PORT
        if endpoint.count(":") == 1:
            host, port_text = endpoint.split(":")
            if not port_text.isdigit():
                return Err("port must be numeric")
            port = int(port_text)

        options: Dict[str, Any] = {"host": host, "port": port, "url": None}
        for entry in entries[1:]:
            if "=" not in entry:
                return Err(f"option '{entry}' is missing a value")
            key, value = entry.split("=", 1)
            key = key.strip().lower()
            value = value.strip()

            if key == "password":
                options["password"] = value or None
            elif key == "user":
                options["username"] = value or None
            elif key == "ssl":
                flag = _parse_bool(value)
                if flag is None:
                    return Err("ssl must be true or false")
                options["ssl"] = flag
            elif key == "defaultdatabase":
                if not value.isdigit():
                    return Err("defaultDatabase must be a non-negative integer")
                options["db"] = int(value)
            elif key == "connecttimeout":
                if not value.isdigit():
                    return Err("connectTimeout must be milliseconds")
                options["connect_timeout_ms"] = int(value)
            elif key in ("synctimeout", "asynctimeout"):
                if not value.isdigit():
                    return Err(f"{key} must be milliseconds")
                options["socket_timeout_ms"] = int(value)
            elif key == "name":
                options["client_name"] = value or None
            elif key == "abortconnect":
                continue
            else:
                return Err(f"option '{key}' is not supported")

        try:
            return Ok(replace(base, **options))
        except ValueError as e:
            return Err(str(e))

    def get_connection_kwargs(self) -> Dict[str, Any]:
        """
        Generate kwargs for redis.asyncio.Redis().

        Host and port are omitted when the config carries a URL; pass
        the URL to ``Redis.from_url`` together with these kwargs.
        """
        kwargs: Dict[str, Any] = {
            "max_connections": self.max_connections,
            "socket_connect_timeout": self.connect_timeout_ms / 1000.0,
            "socket_timeout": self.socket_timeout_ms / 1000.0,
            "decode_responses": True,
        }
        if self.client_name:
            kwargs["client_name"] = self.client_name
        if self.url is not None:
            return kwargs

        kwargs.update({
            "host": self.host,
            "port": self.port,
            "db": self.db,
            "ssl": self.ssl,
        })
        if self.username:
            kwargs["username"] = self.username
        if self.password:
            kwargs["password"] = self.password
        return kwargs
