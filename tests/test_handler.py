"""
Tests for EncryptedSessionHandler.

Tests cover:
- Write/read/destroy round trips
- Absence vs corruption on read
- Key scoping by save path and session name
- Weak randomness gate at the handler level
- Key wiping on success and failure paths
- File-backed handler end to end
"""
import os
import secrets

import orjson
import pytest

from encrypted_session import (
    AuthenticationError,
    DecryptionError,
    EncryptedSessionHandler,
    EnvelopeError,
    HandlerConfig,
    KeyDeriver,
    MemoryStorage,
    StorageError,
    WeakRandomnessError,
)


class FailingStorage(MemoryStorage):
    """Backend whose writes always fail."""

    def put(self, key, data):
        raise StorageError("disk full")


class RejectingStorage(MemoryStorage):
    """Backend reporting an unsuccessful write without raising."""

    def put(self, key, data):
        return False


@pytest.fixture
def captured_keys(monkeypatch):
    captured = []
    original = KeyDeriver.derive_keys

    def spy(self, *args, **kwargs):
        keys = original(self, *args, **kwargs)
        captured.append(keys)
        return keys

    monkeypatch.setattr(KeyDeriver, "derive_keys", spy)
    return captured


# --- Test Round Trips ---

class TestSessionLifecycle:
    """End-to-end behaviour over MemoryStorage."""

    def test_write_then_read(self, handler):
        assert handler.write("abc123", "hello") is True
        assert handler.read("abc123") == b"hello"

    def test_destroy_then_read(self, handler):
        handler.write("abc123", b"hello")
        assert handler.destroy("abc123") is True
        assert handler.read("abc123") is None

    def test_destroy_absent_session(self, handler):
        assert handler.destroy("never-written") is True

    def test_read_absent_session(self, handler):
        assert handler.read("abc123") is None

    def test_empty_payload_is_not_absent(self, handler):
        handler.write("abc123", b"")
        assert handler.read("abc123") == b""

    def test_overwrite(self, handler, storage):
        handler.write("abc123", b"first")
        handler.write("abc123", b"second")
        assert handler.read("abc123") == b"second"
        assert len(storage) == 1

    def test_sessions_are_isolated(self, handler):
        handler.write("session-a", b"alpha")
        handler.write("session-b", b"beta")
        assert handler.read("session-a") == b"alpha"
        assert handler.read("session-b") == b"beta"
        assert handler.read("session-c") is None

    def test_bytes_session_id(self, handler):
        handler.write(b"abc123", b"hello")
        assert handler.read("abc123") == b"hello"

    def test_open_and_close(self, config, storage):
        handler = EncryptedSessionHandler(config, storage)
        assert handler.open("/tmp", "SESSID") is True
        assert handler.scope == "/tmp:SESSID"
        assert handler.close() is True

    def test_gc_delegates(self, config):
        now = [1000.0]
        storage = MemoryStorage(clock=lambda: now[0])
        handler = EncryptedSessionHandler(config, storage)
        handler.write("old", b"x")
        now[0] = 5000.0
        handler.write("new", b"y")
        assert handler.gc(1440) is True
        assert handler.read("old") is None
        assert handler.read("new") == b"y"

    @pytest.mark.parametrize(
        "cipher", ["aes-128-gcm", "chacha20-poly1305", "aes-128-cbc"]
    )
    def test_other_ciphers(self, entropy, storage, cipher):
        config = HandlerConfig(entropy=entropy, cipher=cipher, hash_algorithm="sha512")
        handler = EncryptedSessionHandler(config, storage)
        handler.write("abc123", b"hello")
        assert handler.read("abc123") == b"hello"


# --- Test Stored Records ---

class TestStoredRecords:
    """What reaches the backend."""

    def test_storage_key_format(self, handler, storage):
        handler.write("abc123", b"hello")
        (key,) = storage.keys()
        assert key == handler.storage_key("abc123")
        assert key.isalnum() and len(key) <= 26
        assert "abc123" not in key

    def test_record_does_not_contain_plaintext(self, handler, storage):
        handler.write("abc123", b"very-secret-value")
        record = storage.get(handler.storage_key("abc123"))
        assert b"very-secret-value" not in record
        assert b"abc123" not in record
        assert orjson.loads(record)["cipher"] == "aes-256-gcm"

    def test_distinct_ids_distinct_keys(self, handler):
        ids = [secrets.token_urlsafe(24) for _ in range(1000)]
        assert len({handler.storage_key(i) for i in ids}) == len(ids)

    def test_scope_separates_handlers(self, config, storage):
        first = EncryptedSessionHandler(config, storage)
        first.open("/var/lib/sessions", "SESSID")
        second = EncryptedSessionHandler(config, storage)
        second.open("/var/lib/sessions", "OTHER")
        first.write("abc123", b"hello")
        assert second.storage_key("abc123") != first.storage_key("abc123")
        assert second.read("abc123") is None

    def test_other_entropy_cannot_find_record(self, handler, storage, entropy):
        handler.write("abc123", b"hello")
        other = EncryptedSessionHandler(HandlerConfig(entropy=entropy[::-1]), storage)
        other.open("/var/lib/sessions", "SESSID")
        assert other.read("abc123") is None

    def test_write_reports_backend_result(self, config):
        handler = EncryptedSessionHandler(config, RejectingStorage())
        assert handler.write("abc123", b"hello") is False


# --- Test Failures ---

class TestReadFailures:
    """Corrupted records are errors, never absence."""

    def test_garbage_record(self, handler, storage):
        storage.put(handler.storage_key("abc123"), b"garbage")
        with pytest.raises(EnvelopeError):
            handler.read("abc123")

    def test_tampered_record(self, handler, storage):
        handler.write("abc123", b"hello")
        key = handler.storage_key("abc123")
        record = orjson.loads(storage.get(key))
        record["data"] = "AAAAAAA="
        storage.put(key, orjson.dumps(record))
        with pytest.raises(AuthenticationError):
            handler.read("abc123")

    def test_record_moved_to_other_session(self, handler, storage):
        """A record copied under another session's key does not decrypt."""
        handler.write("victim", b"secret")
        storage.put(
            handler.storage_key("attacker"),
            storage.get(handler.storage_key("victim")),
        )
        with pytest.raises(AuthenticationError):
            handler.read("attacker")

    @pytest.mark.parametrize("field", ["iv", "data", "tag"])
    def test_non_ascii_field(self, handler, storage, caplog, field):
        handler.write("abc123", b"hello")
        key = handler.storage_key("abc123")
        record = orjson.loads(storage.get(key))
        record[field] = "\u00e9\u00e9\u00e9\u00e9"
        storage.put(key, orjson.dumps(record))
        with pytest.raises(DecryptionError):
            handler.read("abc123")
        assert "unreadable" in caplog.text

    def test_corruption_is_logged(self, handler, storage, caplog):
        storage.put(handler.storage_key("abc123"), b"garbage")
        with pytest.raises(EnvelopeError):
            handler.read("abc123")
        assert "unreadable" in caplog.text


class TestWeakRandomness:
    """Handler-level IV gate."""

    def test_weak_iv_rejected_before_storage(self, config, storage, weak_random):
        handler = EncryptedSessionHandler(config, storage, random_source=weak_random)
        with pytest.raises(WeakRandomnessError):
            handler.write("abc123", b"hello")
        assert len(storage) == 0

    def test_weak_iv_allowed_by_config(self, entropy, storage, weak_random):
        config = HandlerConfig(entropy=entropy, allow_weak_iv=True)
        handler = EncryptedSessionHandler(config, storage, random_source=weak_random)
        assert handler.write("abc123", b"hello") is True
        assert handler.read("abc123") == b"hello"


# --- Test Key Hygiene ---

class TestKeyWiping:
    """Derived encryption keys are zeroed after every operation."""

    def test_wiped_after_write_and_read(self, handler, captured_keys):
        handler.write("abc123", b"hello")
        handler.read("abc123")
        assert len(captured_keys) == 2
        for keys in captured_keys:
            assert keys.enc_key == bytearray(len(keys.enc_key))

    def test_wiped_after_storage_failure(self, config, captured_keys):
        handler = EncryptedSessionHandler(config, FailingStorage())
        with pytest.raises(StorageError):
            handler.write("abc123", b"hello")
        assert captured_keys[0].enc_key == bytearray(32)

    def test_wiped_after_weak_iv(self, config, captured_keys, weak_random):
        handler = EncryptedSessionHandler(config, MemoryStorage(), random_source=weak_random)
        with pytest.raises(WeakRandomnessError):
            handler.write("abc123", b"hello")
        assert captured_keys[0].enc_key == bytearray(32)

    def test_destroy_derives_storage_key_only(self, handler, captured_keys):
        handler.destroy("abc123")
        assert captured_keys == []


# --- Test File Backed Handler ---

class TestFileHandler:
    """EncryptedSessionHandler.with_file_storage end to end."""

    def test_round_trip(self, config, tmp_path):
        save_path = str(tmp_path)
        handler = EncryptedSessionHandler.with_file_storage(config, save_path, "SESSID")
        handler.write("abc123", "hello")
        path = os.path.join(save_path, f"sess_{handler.storage_key('abc123')}")
        assert os.path.exists(path)
        assert handler.read("abc123") == b"hello"
        assert handler.destroy("abc123") is True
        assert not os.path.exists(path)
        assert handler.read("abc123") is None
