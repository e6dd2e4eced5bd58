"""
Session Module: Connection Registry

Maps opaque session identifiers to live store connections, with
scoped leases and explicit shutdown.
"""

from keyscope.session.registry import SessionEntry, SessionRegistry

__all__ = [
    "SessionEntry",
    "SessionRegistry",
]
