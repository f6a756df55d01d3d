"""Exceptions raised by Encrypted Session.

Every error derives from ``EncryptedSessionError``. The absence of a stored
record is never an error: ``read`` returns ``None`` instead.
"""


class EncryptedSessionError(Exception):
    """Base class for all Encrypted Session errors."""


class ConfigurationError(EncryptedSessionError):
    """Invalid cipher, hash algorithm or entropy given at construction.

    Not a ``ValueError`` subclass: pydantic re-wraps ``ValueError`` raised in
    validators, and this one must reach the caller as-is.
    """


class WeakRandomnessError(EncryptedSessionError):
    """The IV source reported non cryptographically strong output."""


class DecryptionError(EncryptedSessionError):
    """Stored session data could not be decrypted."""


class AuthenticationError(DecryptionError):
    """Authentication tag verification failed (tampered envelope or wrong key)."""


class EnvelopeError(DecryptionError):
    """Stored record is not a readable envelope for the configured cipher."""


class StorageError(EncryptedSessionError):
    """A storage backend failed to read, write or remove a record."""
