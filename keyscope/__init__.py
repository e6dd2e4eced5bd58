"""
Keyscope: Multi-Tenant Redis Keyspace Browser Core

Sits between transport layers and Redis-compatible stores:
- Session Registry: live connections behind opaque session handles
- Pagination Engine: one page of key metadata plus total match count
  in a single SCAN pass
- Key Materializer: metadata plus type-dependent value of one key
- Mutation Pipeline: validated create/replace and delete

Every operation returns a Result (Ok/Err) or a bool; nothing raises
across the service boundary.

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from keyscope.core.types import (
    Result,
    Ok,
    Err,
    KeyKind,
    KeyInfo,
    KeyValue,
    KeysPage,
    KeyWriteSpec,
    Scalar,
    Mapping,
    Sequence,
    SetValue,
    Unsupported,
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
from keyscope.core.config import KeyscopeConfig
from keyscope.session import SessionRegistry
from keyscope.keyspace import KeyspacePager, KeyMaterializer, MutationPipeline
from keyscope.service import KeyscopeService

__all__ = [
    "__version__",
    # Result monad
    "Result",
    "Ok",
    "Err",
    # Data model
    "KeyKind",
    "KeyInfo",
    "KeyValue",
    "KeysPage",
    "KeyWriteSpec",
    "Scalar",
    "Mapping",
    "Sequence",
    "SetValue",
    "Unsupported",
    "ServerInfo",
    "WriteOutcome",
    "DeleteOutcome",
    # Errors
    "ErrorCode",
    "KeyscopeError",
    "SessionError",
    "KeyspaceError",
    # Config
    "KeyscopeConfig",
    # Components
    "SessionRegistry",
    "KeyspacePager",
    "KeyMaterializer",
    "MutationPipeline",
    "KeyscopeService",
]
