"""
Handler Configuration — Validated cipher, hash and entropy settings.

Reads settings from environment variables:
    SESSION_ENTROPY = <at least 64 bytes of secret text>
    SESSION_CIPHER = aes-256-gcm
    SESSION_HASH = sha256
    SESSION_ALLOW_WEAK_IV = false

Security Note:
    Never log entropy. Rotating it invalidates every stored session.
"""
import os
import base64
import secrets
import logging
from typing import Union

from pydantic import BaseModel, Field, field_validator

from .envelope import CipherSpec
from .exceptions import ConfigurationError
from .kdf import MIN_ENTROPY_SIZE, get_hash

logger = logging.getLogger("encrypted_session")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def generate_entropy() -> str:
    """Generate a random 64-byte entropy value and return as base64 string.

    This is a utility for operators to generate new application secrets.

    Returns:
        Base64-encoded 64-byte string (88 characters).
    """
    return base64.b64encode(secrets.token_bytes(MIN_ENTROPY_SIZE)).decode("ascii")


class HandlerConfig(BaseModel):
    """Validated, immutable handler configuration."""

    cipher: str = Field(default="aes-256-gcm")
    hash_algorithm: str = Field(default="sha256")
    entropy: bytes = Field(repr=False)
    allow_weak_iv: bool = Field(default=False)

    model_config = {"frozen": True}

    @field_validator("cipher")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher is available."""
        return CipherSpec.from_name(v).name

    @field_validator("hash_algorithm")
    @classmethod
    def validate_hash(cls, v: str) -> str:
        """Validate hash algorithm is available."""
        get_hash(v)
        return v.lower()

    @field_validator("entropy", mode="before")
    @classmethod
    def validate_entropy(cls, v: Union[str, bytes]) -> bytes:
        """Ensure at least 64 bytes of entropy."""
        if isinstance(v, str):
            v = v.encode("utf-8")
        if not isinstance(v, (bytes, bytearray)) or len(v) < MIN_ENTROPY_SIZE:
            raise ConfigurationError(
                f"Please provide at least {MIN_ENTROPY_SIZE} bytes of entropy."
            )
        return bytes(v)

    @property
    def cipher_spec(self) -> CipherSpec:
        return CipherSpec.from_name(self.cipher)

    @classmethod
    def from_env(cls) -> "HandlerConfig":
        """Create HandlerConfig by loading values from environment.

        Returns:
            Populated HandlerConfig instance.

        Raises:
            ConfigurationError: If SESSION_ENTROPY is missing or invalid.
        """
        entropy = os.environ.get("SESSION_ENTROPY")
        if not entropy:
            raise ConfigurationError(
                "SESSION_ENTROPY environment variable is not set"
            )
        config = cls(
            cipher=os.environ.get("SESSION_CIPHER", "aes-256-gcm"),
            hash_algorithm=os.environ.get("SESSION_HASH", "sha256"),
            entropy=entropy,
            allow_weak_iv=(
                os.environ.get("SESSION_ALLOW_WEAK_IV", "").strip().lower()
                in _TRUE_VALUES
            ),
        )
        logger.debug(
            "Loaded session configuration: cipher=%s hash=%s",
            config.cipher, config.hash_algorithm,
        )
        return config
