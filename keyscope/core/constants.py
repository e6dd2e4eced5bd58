"""
System-Wide Constants for Keyscope

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
SECOND_MS: Final[int] = 1000
SECONDS_PER_DAY: Final[int] = 86400

# =============================================================================
# SESSION REGISTRY
# =============================================================================
REGISTRY_LOCK_STRIPES: Final[int] = 16

# =============================================================================
# PAGINATION
# =============================================================================
DEFAULT_PATTERN: Final[str] = "*"
DEFAULT_PAGE_SIZE: Final[int] = 10
MAX_PAGE_SIZE: Final[int] = 1000

# SCAN COUNT hint per round-trip while enumerating
SCAN_BATCH_SIZE: Final[int] = 1000

# =============================================================================
# MATERIALIZATION
# =============================================================================
# Lists are read as a bounded prefix of this many elements
LIST_PREVIEW_LIMIT: Final[int] = 100

SIZE_PLACEHOLDER: Final[str] = "—"
UNSUPPORTED_VALUE: Final[str] = "Unsupported type"

# =============================================================================
# REDIS DEFAULTS
# =============================================================================
REDIS_DEFAULT_PORT: Final[int] = 6379
REDIS_CONNECT_TIMEOUT_MS: Final[int] = 5 * SECOND_MS
REDIS_SOCKET_TIMEOUT_MS: Final[int] = 5 * SECOND_MS
REDIS_MAX_CONNECTIONS: Final[int] = 16
