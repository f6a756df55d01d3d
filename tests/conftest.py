import pytest

from encrypted_session import EncryptedSessionHandler, HandlerConfig, MemoryStorage

ENTROPY = b"w4fvdIuGLnF7i8DicF75Z8mPPo4tUyGRvcvHvdknwxCmbpOENpVn0TBBpryRQOKD"


def _weak_random(size: int) -> tuple[bytes, bool]:
    return b"\x00" * size, False


@pytest.fixture
def weak_random():
    """IV source that reports its output as not cryptographically strong."""
    return _weak_random


@pytest.fixture
def entropy():
    return ENTROPY


@pytest.fixture
def config():
    return HandlerConfig(entropy=ENTROPY)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def handler(config, storage):
    h = EncryptedSessionHandler(config, storage)
    h.open("/var/lib/sessions", "SESSID")
    return h
