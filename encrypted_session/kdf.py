"""
Key Deriver — Encryption and storage keys from the session ID.

The session ID is the HKDF input key material and the application entropy
is the HKDF salt. Two derivations with distinct context labels produce:

- an encryption key, sized for the configured cipher;
- a storage key, 32 raw bytes encoded to a 26-character alphanumeric token.

Neither key is ever persisted; both are recomputed on every operation.

Security Note:
    Never log session IDs, entropy or derived keys.
"""
import base64
import logging
import re
from dataclasses import dataclass
from typing import Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .exceptions import ConfigurationError

logger = logging.getLogger("encrypted_session")

MIN_ENTROPY_SIZE = 64
STORAGE_KEY_MATERIAL = 32  # raw bytes derived before encoding
STORAGE_KEY_LENGTH = 26
LABEL_PREFIX = "EncryptedSession"
ENCRYPTION_PURPOSE = "Encryption"
STORAGE_PURPOSE = "Storage"

_NON_ALNUM = re.compile(rb"[^A-Za-z0-9]")

_HASHES: dict[str, type] = {
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
    "sha512-224": hashes.SHA512_224,
    "sha512-256": hashes.SHA512_256,
    "sha3-224": hashes.SHA3_224,
    "sha3-256": hashes.SHA3_256,
    "sha3-384": hashes.SHA3_384,
    "sha3-512": hashes.SHA3_512,
}

SessionID = Union[str, bytes]


def available_hashes() -> list[str]:
    """Return the digest names usable for key derivation."""
    return sorted(_HASHES)


def get_hash(name: str) -> hashes.HashAlgorithm:
    """Resolve a digest name to a ``cryptography`` hash instance.

    Raises:
        ConfigurationError: If the name is not in ``available_hashes()``.
    """
    try:
        return _HASHES[name.lower()]()
    except (KeyError, AttributeError):
        raise ConfigurationError(
            f"The hash algorithm {name!r} is not available. "
            f"Use one of: {', '.join(available_hashes())}"
        ) from None


# ---------------------------------------------------------------------------
# Primitives
# ---------------------------------------------------------------------------

def hkdf(
    secret: bytes,
    salt: bytes,
    info: bytes,
    length: int,
    algorithm: hashes.HashAlgorithm,
) -> bytes:
    """HKDF extract-then-expand (RFC 5869).

    Args:
        secret: Input key material.
        salt: Extraction salt.
        info: Context information for domain separation.
        length: Number of output bytes.
        algorithm: Hash used by the underlying HMAC.

    Returns:
        ``length`` bytes of output keying material.
    """
    kdf = HKDF(
        algorithm=algorithm,
        length=length,
        salt=salt,
        info=info,
    )
    return kdf.derive(secret)


def context_label(scope: str, purpose: str) -> bytes:
    """Build the HKDF info label for a handler scope and key purpose."""
    return f"{LABEL_PREFIX}:{scope}:{purpose}".encode("utf-8")


def encode_storage_key(raw: bytes) -> str:
    """Encode raw key material as a path-safe storage key.

    Base64 encodes ``raw``, drops every non-alphanumeric character and
    truncates to ``STORAGE_KEY_LENGTH`` characters.
    """
    encoded = _NON_ALNUM.sub(b"", base64.b64encode(raw))
    return encoded[:STORAGE_KEY_LENGTH].decode("ascii")


def wipe(buffer: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    buffer[:] = bytes(len(buffer))


def _session_bytes(session_id: SessionID) -> bytes:
    if not isinstance(session_id, (str, bytes, bytearray)):
        raise TypeError(
            f"Session ID must be str or bytes, not {type(session_id).__name__}"
        )
    if isinstance(session_id, str):
        session_id = session_id.encode("utf-8")
    if not session_id:
        raise ValueError("Session ID cannot be empty")
    return bytes(session_id)


# ---------------------------------------------------------------------------
# Derived keys
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class DerivedKeys:
    """Encryption and storage keys for one operation.

    Use as a context manager so ``enc_key`` is zeroed on every exit path::

        with deriver.derive_keys(session_id, scope, 32) as keys:
            ...
    """

    enc_key: bytearray
    store_key: str

    def wipe(self) -> None:
        wipe(self.enc_key)

    def __enter__(self) -> "DerivedKeys":
        return self

    def __exit__(self, *exc_info) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return f"DerivedKeys(enc_key_len={len(self.enc_key)})"


class KeyDeriver:
    """Derives independent keys from a session ID and static entropy.

    Entropy and hash are fixed at construction and never change, so one
    instance can be shared between concurrent callers.
    """

    __slots__ = ("_entropy", "_algorithm")

    def __init__(self, entropy: Union[str, bytes], hash_algorithm: str = "sha256"):
        if isinstance(entropy, str):
            entropy = entropy.encode("utf-8")
        if len(entropy) < MIN_ENTROPY_SIZE:
            raise ConfigurationError(
                f"Please provide at least {MIN_ENTROPY_SIZE} bytes of entropy "
                f"(got {len(entropy)})"
            )
        self._entropy = bytes(entropy)
        self._algorithm = get_hash(hash_algorithm)

    def __repr__(self) -> str:
        return f"KeyDeriver(hash={self._algorithm.name!r})"

    @property
    def algorithm(self) -> hashes.HashAlgorithm:
        return self._algorithm

    def derive(self, session_id: SessionID, label: bytes, length: int) -> bytes:
        """Derive ``length`` bytes from the session ID under ``label``.

        Raises:
            TypeError: If the session ID is not str or bytes.
            ValueError: If the session ID is empty.
        """
        return hkdf(
            _session_bytes(session_id),
            self._entropy,
            label,
            length,
            self._algorithm,
        )

    def encryption_key(
        self, session_id: SessionID, scope: str, length: int
    ) -> bytearray:
        """Derive the encryption key as a wipeable buffer."""
        return bytearray(
            self.derive(session_id, context_label(scope, ENCRYPTION_PURPOSE), length)
        )

    def storage_key(self, session_id: SessionID, scope: str) -> str:
        """Derive the storage key alone (no encryption key is computed)."""
        raw = self.derive(
            session_id,
            context_label(scope, STORAGE_PURPOSE),
            STORAGE_KEY_MATERIAL,
        )
        return encode_storage_key(raw)

    def derive_keys(
        self, session_id: SessionID, scope: str, key_size: int
    ) -> DerivedKeys:
        """Derive both keys for a read or write."""
        return DerivedKeys(
            enc_key=self.encryption_key(session_id, scope, key_size),
            store_key=self.storage_key(session_id, scope),
        )
