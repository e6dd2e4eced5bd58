"""
Core module: Type definitions, error hierarchy, and configuration.

- Result/Either monad for zero-exception control flow
- Keyspace data model (key metadata, materialized values, pages)
- Coded error hierarchy
- Configuration management with validation
"""

from keyscope.core.types import (
    Result,
    Ok,
    Err,
    KeyKind,
    KeyInfo,
    KeyValue,
    KeysPage,
    KeyWriteSpec,
    MaterializedValue,
    ServerInfo,
    WriteOutcome,
    DeleteOutcome,
)
from keyscope.core.errors import (
    ErrorCode,
    KeyscopeError,
    SessionError,
    KeyspaceError,
)
from keyscope.core.config import (
    KeyscopeConfig,
    RegistryConfig,
    KeyspaceConfig,
    ObservabilityConfig,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "KeyKind",
    "KeyInfo",
    "KeyValue",
    "KeysPage",
    "KeyWriteSpec",
    "MaterializedValue",
    "ServerInfo",
    "WriteOutcome",
    "DeleteOutcome",
    "ErrorCode",
    "KeyscopeError",
    "SessionError",
    "KeyspaceError",
    "KeyscopeConfig",
    "RegistryConfig",
    "KeyspaceConfig",
    "ObservabilityConfig",
]
