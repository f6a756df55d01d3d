"""Storage contract for encrypted session records.

Backends only ever see storage keys and opaque envelope bytes. They are
injected into ``EncryptedSessionHandler``; there is no base class to inherit.
"""
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class SessionStorage(Protocol):
    """Capabilities a session backend must provide."""

    def get(self, key: str) -> Optional[bytes]:
        """Return the record stored under ``key``, or None when absent.

        An empty record is returned as ``b""``, distinct from absence.
        """
        ...

    def put(self, key: str, data: bytes) -> bool:
        """Store ``data`` under ``key``, replacing any previous record atomically."""
        ...

    def remove(self, key: str) -> bool:
        """Remove the record under ``key``. Removing an absent record succeeds."""
        ...

    def gc(self, max_lifetime: int) -> bool:
        """Remove records older than ``max_lifetime`` seconds.

        Keeps sweeping past individual failures; returns False if any
        deletion failed.
        """
        ...
