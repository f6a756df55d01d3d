"""
EncryptedSessionHandler — Session payloads encrypted with the session ID.

Provides the public API of Encrypted Session:
- ``open(save_path, name)`` / ``close()`` — lifecycle hooks of the host
- ``write(session_id, data)`` — encrypt and persist a session payload
- ``read(session_id)`` — fetch and decrypt, None when no record exists
- ``destroy(session_id)`` — remove the stored record
- ``gc(max_lifetime)`` — sweep expired records in the backend

Keys are derived on every call and the encryption key is zeroed before the
call returns. Compromise of the storage alone reveals neither payloads nor
session IDs; compromise of the entropy alone is useless without a live ID.

Security Note:
    Never log session IDs, derived keys, plaintext or ciphertext. Only log
    operations and storage outcomes.
"""
import logging
from typing import Optional, Union

from .config import HandlerConfig
from .envelope import Envelope, RandomSource, decrypt, encrypt, system_random
from .exceptions import DecryptionError
from .kdf import KeyDeriver, SessionID
from .storage import FileStorage, SessionStorage

logger = logging.getLogger("encrypted_session")


class EncryptedSessionHandler:
    """Session save handler that encrypts payloads at rest.

    The session ID is the derivation secret for two independent keys: one
    encrypts the payload, the other names the record in ``storage``. The
    handler keeps no per-session state between calls.
    """

    def __init__(
        self,
        config: HandlerConfig,
        storage: SessionStorage,
        *,
        random_source: RandomSource = system_random,
    ):
        self._config = config
        self._cipher = config.cipher_spec
        self._deriver = KeyDeriver(config.entropy, config.hash_algorithm)
        self._storage = storage
        self._random = random_source
        self._save_path = ""
        self._name = ""

    def __repr__(self) -> str:
        return (
            f"<EncryptedSessionHandler cipher={self._cipher.name} "
            f"storage={self._storage!r}>"
        )

    @classmethod
    def with_file_storage(
        cls,
        config: HandlerConfig,
        save_path: str,
        name: str,
        **kwargs,
    ) -> "EncryptedSessionHandler":
        """Build a handler storing files under ``save_path``, already opened."""
        handler = cls(config, FileStorage(save_path), **kwargs)
        handler.open(save_path, name)
        return handler

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def scope(self) -> str:
        """Scope bound into every context label."""
        return f"{self._save_path}:{self._name}"

    @property
    def storage(self) -> SessionStorage:
        return self._storage

    def open(self, save_path: str, name: str) -> bool:
        """Record the save path and session name used to scope keys.

        Keys derived under one scope do not open records written under another.
        """
        self._save_path = save_path
        self._name = name
        return True

    def close(self) -> bool:
        return True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def storage_key(self, session_id: SessionID) -> str:
        """Return the storage key for ``session_id`` (no encryption key is derived)."""
        return self._deriver.storage_key(session_id, self.scope)

    def write(self, session_id: SessionID, data: Union[bytes, str]) -> bool:
        """Encrypt ``data`` and store it under the session's storage key.

        Args:
            session_id: The live session ID.
            data: Session payload; str is UTF-8 encoded.

        Returns:
            The backend's ``put`` result.

        Raises:
            WeakRandomnessError: IV source was weak and not allowed; nothing
                was stored.
            StorageError: Propagated from the backend.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        with self._deriver.derive_keys(
            session_id, self.scope, self._cipher.key_size
        ) as keys:
            envelope = encrypt(
                data,
                keys.enc_key,
                self._cipher,
                allow_weak=self._config.allow_weak_iv,
                random_source=self._random,
            )
            result = self._storage.put(keys.store_key, envelope.to_bytes())
        logger.debug("Session write: stored=%s size=%d", result, len(data))
        return result

    def read(self, session_id: SessionID) -> Optional[bytes]:
        """Fetch and decrypt the session payload.

        Returns:
            The plaintext, or None when no record exists for this session.

        Raises:
            AuthenticationError: Record was tampered with.
            EnvelopeError: Record is not a readable envelope.
            DecryptionError: Record could not be decrypted.
            StorageError: Propagated from the backend.
        """
        with self._deriver.derive_keys(
            session_id, self.scope, self._cipher.key_size
        ) as keys:
            record = self._storage.get(keys.store_key)
            if record is None:
                logger.debug("Session read: no stored data")
                return None
            try:
                return decrypt(Envelope.from_bytes(record), keys.enc_key, self._cipher)
            except DecryptionError as err:
                logger.error(
                    "Session read: stored data is unreadable (%s)",
                    type(err).__name__,
                )
                raise

    def destroy(self, session_id: SessionID) -> bool:
        """Remove the stored record; succeeds when none exists."""
        result = self._storage.remove(self.storage_key(session_id))
        logger.debug("Session destroy: removed=%s", result)
        return result

    def gc(self, max_lifetime: int) -> bool:
        """Delegate expiry of old records to the backend."""
        return self._storage.gc(max_lifetime)
