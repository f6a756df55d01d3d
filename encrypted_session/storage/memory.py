"""In-process storage backend.

Useful for tests and single-process deployments; records are lost when
the process exits.
"""
import time
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger("encrypted_session")


class MemoryStorage:
    """Dict-backed ``SessionStorage`` with per-record modification times."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._records: dict[str, tuple[bytes, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            record = self._records.get(key)
        return record[0] if record is not None else None

    def put(self, key: str, data: bytes) -> bool:
        with self._lock:
            self._records[key] = (bytes(data), self._clock())
        return True

    def remove(self, key: str) -> bool:
        with self._lock:
            self._records.pop(key, None)
        return True

    def touch(self, key: str, mtime: float) -> None:
        """Set the modification time of an existing record."""
        with self._lock:
            data, _ = self._records[key]
            self._records[key] = (data, mtime)

    def gc(self, max_lifetime: int) -> bool:
        now = self._clock()
        with self._lock:
            expired = [
                key for key, (_, mtime) in self._records.items()
                if mtime + max_lifetime < now
            ]
            for key in expired:
                del self._records[key]
        logger.debug("Memory storage gc removed %d record(s)", len(expired))
        return True
