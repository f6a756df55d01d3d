"""Encrypted Session — Session payloads encrypted at rest with the session ID.

Security Note (Threat Model):
    The session ID is the only key that opens a stored payload and it is
    never persisted. Storage keys are derived independently and cannot be
    traced back to the ID. Payloads are decrypted in process memory while a
    request is served; derived keys are zeroed after each operation on a
    best-effort basis, since Python may keep copies of immutable buffers.
"""

from .version import __version__
from .config import HandlerConfig, generate_entropy
from .envelope import CipherSpec, Envelope, available_ciphers, decrypt, encrypt
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    DecryptionError,
    EncryptedSessionError,
    EnvelopeError,
    StorageError,
    WeakRandomnessError,
)
from .handler import EncryptedSessionHandler
from .kdf import KeyDeriver, available_hashes
from .storage import FileStorage, MemoryStorage, SessionStorage

__all__ = [
    "__version__",
    "EncryptedSessionHandler",
    "HandlerConfig",
    "generate_entropy",
    "KeyDeriver",
    "available_hashes",
    "CipherSpec",
    "Envelope",
    "available_ciphers",
    "encrypt",
    "decrypt",
    "SessionStorage",
    "MemoryStorage",
    "FileStorage",
    "EncryptedSessionError",
    "ConfigurationError",
    "WeakRandomnessError",
    "DecryptionError",
    "AuthenticationError",
    "EnvelopeError",
    "StorageError",
]
