"""Storage backends for encrypted session envelopes."""

from .abstract import SessionStorage
from .memory import MemoryStorage
from .file import FileStorage

__all__ = [
    "SessionStorage",
    "MemoryStorage",
    "FileStorage",
]
