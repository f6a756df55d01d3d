"""
File Storage — One envelope per file, in the layout of PHP file sessions.

Each record lives at ``<directory>/sess_<storage key>`` with mode 0600.
Writes go to a temporary file in the same directory and are moved into
place with ``os.replace`` so readers never observe a partial record.
Temporary files orphaned by a crash expire through ``gc`` like records.
"""
import os
import glob
import time
import logging
import tempfile
from contextlib import suppress
from typing import Optional

from ..exceptions import StorageError

logger = logging.getLogger("encrypted_session")

FILE_MODE = 0o600


class FileStorage:
    """Filesystem ``SessionStorage``.

    Args:
        directory: Directory holding the session files; created if missing.
        prefix: File name prefix for session records.
    """

    def __init__(self, directory: str, prefix: str = "sess_"):
        self._directory = os.path.abspath(directory)
        self._prefix = prefix

    def __repr__(self) -> str:
        return f"FileStorage(directory={self._directory!r})"

    @property
    def directory(self) -> str:
        return self._directory

    def path(self, key: str) -> str:
        """Full path of the record for ``key``.

        Raises:
            ValueError: If the key is not plain ASCII alphanumeric.
        """
        if not key or not (key.isascii() and key.isalnum()):
            raise ValueError("Storage key must be a non-empty alphanumeric string")
        return os.path.join(self._directory, f"{self._prefix}{key}")

    def get(self, key: str) -> Optional[bytes]:
        path = self.path(key)
        try:
            with open(path, "rb") as fp:
                return fp.read()
        except FileNotFoundError:
            return None
        except OSError as err:
            raise StorageError(f"Unable to read session file {path}: {err}") from err

    def put(self, key: str, data: bytes) -> bool:
        path = self.path(key)
        tmp_path = None
        try:
            os.makedirs(self._directory, mode=0o700, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=self._directory, prefix=f".{self._prefix}", suffix=".tmp"
            )
            with os.fdopen(fd, "wb") as fp:
                fp.write(data)
                fp.flush()
                os.fsync(fp.fileno())
            os.chmod(tmp_path, FILE_MODE)
            os.replace(tmp_path, path)
        except OSError as err:
            if tmp_path is not None:
                with suppress(OSError):
                    os.remove(tmp_path)
            raise StorageError(f"Unable to write session file {path}: {err}") from err
        return True

    def remove(self, key: str) -> bool:
        path = self.path(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as err:
            raise StorageError(f"Unable to remove session file {path}: {err}") from err
        return True

    def gc(self, max_lifetime: int) -> bool:
        success = True
        removed = 0
        now = time.time()
        directory = glob.escape(self._directory)
        # records, then temporary files left behind by interrupted writes
        paths = glob.glob(os.path.join(directory, f"{self._prefix}*"))
        paths += glob.glob(os.path.join(directory, f".{self._prefix}*.tmp"))
        for path in paths:
            try:
                if os.path.getmtime(path) + max_lifetime >= now:
                    continue
                os.remove(path)
                removed += 1
            except FileNotFoundError:
                # removed concurrently
                continue
            except OSError as err:
                logger.error("Unable to remove expired session file %s: %s", path, err)
                success = False
        logger.debug(
            "File storage gc removed %d record(s) from %s", removed, self._directory,
        )
        return success
