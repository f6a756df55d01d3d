"""
Cipher Envelope — Encrypt/decrypt a payload under a raw key.

Each write draws a fresh IV, encrypts, and packs IV, ciphertext and (for
AEAD modes) the authentication tag into a self-describing envelope.

Wire format (version 1), orjson-encoded::

    {"v": 1, "cipher": "aes-256-gcm", "iv": <b64>, "data": <b64>, "tag": <b64>}

``tag`` is omitted for unauthenticated (CBC) envelopes. For AEAD modes the
version and cipher name are bound as associated data, so a header swapped
between records fails authentication.

Security Note:
    Never log plaintext, ciphertext or key material.
"""
import base64
import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Optional

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    DecryptionError,
    EnvelopeError,
    WeakRandomnessError,
)

logger = logging.getLogger("encrypted_session")

ENVELOPE_VERSION = 1
TAG_SIZE = 16  # 128-bit AEAD tag
BLOCK_SIZE = 128  # AES block, in bits, for PKCS7

RandomSource = Callable[[int], tuple[bytes, bool]]


@dataclass(frozen=True, slots=True)
class CipherSpec:
    """Symmetric cipher and mode used for session envelopes."""

    name: str
    mode: str
    key_size: int
    iv_size: int
    authenticated: bool

    @classmethod
    def from_name(cls, name: str) -> "CipherSpec":
        """Look up a cipher by name.

        Raises:
            ConfigurationError: If the cipher is not available.
        """
        try:
            return _CIPHERS[name.lower()]
        except (KeyError, AttributeError):
            raise ConfigurationError(
                f"The cipher {name!r} is not available. "
                f"Use one of: {', '.join(available_ciphers())}"
            ) from None


_CIPHERS: dict[str, CipherSpec] = {
    spec.name: spec
    for spec in (
        CipherSpec("aes-128-gcm", "gcm", 16, 12, True),
        CipherSpec("aes-192-gcm", "gcm", 24, 12, True),
        CipherSpec("aes-256-gcm", "gcm", 32, 12, True),
        CipherSpec("chacha20-poly1305", "chacha20-poly1305", 32, 12, True),
        # legacy, unauthenticated
        CipherSpec("aes-128-cbc", "cbc", 16, 16, False),
        CipherSpec("aes-256-cbc", "cbc", 32, 16, False),
    )
}


def available_ciphers() -> list[str]:
    """Return the cipher names accepted by ``CipherSpec.from_name``."""
    return sorted(_CIPHERS)


def system_random(size: int) -> tuple[bytes, bool]:
    """Default IV source: the OS CSPRNG, always reported as strong."""
    return secrets.token_bytes(size), True


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

def _b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


@dataclass(frozen=True, slots=True)
class Envelope:
    """IV, ciphertext and optional tag as written to storage."""

    cipher: str
    iv: bytes
    ciphertext: bytes
    tag: Optional[bytes] = None
    version: int = ENVELOPE_VERSION

    def __repr__(self) -> str:
        return (
            f"Envelope(v={self.version}, cipher={self.cipher!r}, "
            f"ciphertext_len={len(self.ciphertext)})"
        )

    @property
    def header(self) -> bytes:
        """Associated data bound into AEAD modes."""
        return f"v{self.version}:{self.cipher}".encode("ascii")

    def to_bytes(self) -> bytes:
        """Serialize the envelope to its wire format."""
        record = {
            "v": self.version,
            "cipher": self.cipher,
            "iv": _b64(self.iv),
            "data": _b64(self.ciphertext),
        }
        if self.tag is not None:
            record["tag"] = _b64(self.tag)
        return orjson.dumps(record)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Envelope":
        """Parse an envelope from its wire format.

        Raises:
            EnvelopeError: If the record is malformed or of an unknown version.
        """
        try:
            record = orjson.loads(data)
        except orjson.JSONDecodeError as err:
            raise EnvelopeError("Stored session record is not an envelope") from err
        if not isinstance(record, dict):
            raise EnvelopeError("Stored session record is not an envelope")
        version = record.get("v")
        if version != ENVELOPE_VERSION:
            raise EnvelopeError(f"Unsupported envelope version: {version!r}")
        try:
            tag = record.get("tag")
            return cls(
                cipher=str(record["cipher"]),
                iv=base64.b64decode(record["iv"], validate=True),
                ciphertext=base64.b64decode(record["data"], validate=True),
                tag=base64.b64decode(tag, validate=True) if tag is not None else None,
                version=version,
            )
        except (KeyError, TypeError, ValueError) as err:
            raise EnvelopeError(f"Malformed envelope: {err}") from err


# ---------------------------------------------------------------------------
# Encryption
# ---------------------------------------------------------------------------

def _aead(spec: CipherSpec, key: bytes):
    if spec.mode == "chacha20-poly1305":
        return ChaCha20Poly1305(key)
    return AESGCM(key)


def generate_iv(
    spec: CipherSpec,
    *,
    allow_weak: bool = False,
    random_source: RandomSource = system_random,
) -> bytes:
    """Draw an IV of the size ``spec`` requires.

    Raises:
        WeakRandomnessError: If the source reports weak output and
            ``allow_weak`` is false.
    """
    iv, strong = random_source(spec.iv_size)
    if not strong:
        if not allow_weak:
            raise WeakRandomnessError(
                "A cryptographically weak source was used to generate the "
                "initialisation vector"
            )
        logger.warning(
            "Accepting weak IV for cipher %s (allow_weak_iv is enabled)",
            spec.name,
        )
    return iv


def encrypt(
    plaintext: bytes,
    key: bytes,
    spec: CipherSpec,
    *,
    allow_weak: bool = False,
    random_source: RandomSource = system_random,
) -> Envelope:
    """Encrypt ``plaintext`` under ``key`` with a fresh IV.

    Args:
        plaintext: Data to encrypt (may be empty).
        key: Raw key of ``spec.key_size`` bytes.
        spec: Cipher and mode.
        allow_weak: Accept an IV the source reports as weak.
        random_source: Callable returning ``(bytes, strong)``.

    Returns:
        The envelope to persist.

    Raises:
        WeakRandomnessError: Weak IV rejected; nothing was encrypted.
        ValueError: The key has the wrong size for this cipher.
    """
    iv = generate_iv(spec, allow_weak=allow_weak, random_source=random_source)
    if spec.authenticated:
        header = Envelope(spec.name, iv, b"").header
        sealed = _aead(spec, key).encrypt(iv, plaintext, header)
        return Envelope(
            cipher=spec.name,
            iv=iv,
            ciphertext=sealed[:-TAG_SIZE],
            tag=sealed[-TAG_SIZE:],
        )
    padder = padding.PKCS7(BLOCK_SIZE).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return Envelope(cipher=spec.name, iv=iv, ciphertext=ciphertext)


def decrypt(envelope: Envelope, key: bytes, spec: CipherSpec) -> bytes:
    """Decrypt an envelope written by ``encrypt``.

    Raises:
        EnvelopeError: The envelope was written with a different cipher.
        AuthenticationError: Tag verification failed.
        DecryptionError: Any other cipher failure.
    """
    if envelope.cipher != spec.name:
        raise EnvelopeError(
            f"Envelope cipher {envelope.cipher!r} does not match "
            f"configured cipher {spec.name!r}"
        )
    if len(envelope.iv) != spec.iv_size:
        raise DecryptionError(
            f"Invalid IV length {len(envelope.iv)} for {spec.name}"
        )
    if spec.authenticated:
        if envelope.tag is None or len(envelope.tag) != TAG_SIZE:
            raise AuthenticationError("Envelope is missing its authentication tag")
        try:
            return _aead(spec, key).decrypt(
                envelope.iv, envelope.ciphertext + envelope.tag, envelope.header
            )
        except InvalidTag as err:
            raise AuthenticationError(
                "Session data failed authentication"
            ) from err
        except ValueError as err:
            raise DecryptionError(f"Unable to decrypt session data: {err}") from err
    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(envelope.iv)).decryptor()
        padded = decryptor.update(envelope.ciphertext) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as err:
        raise DecryptionError(f"Unable to decrypt session data: {err}") from err
