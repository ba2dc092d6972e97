"""
Local JSON File Storage

DESIGN DECISION: The snapshot lives in one JSON file per key inside a data
directory (`<data_dir>/<key>.json`) because:
1. It is the desktop equivalent of browser local storage
2. The file is human-readable and easy to back up
3. No database setup required

Writes go to a temp file in the same directory which then replaces the
target, so a crash mid-write never leaves a half-written snapshot.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from billbook.services.storage.interface import (
    SnapshotStorageInterface,
    StorageQuotaExceededError,
    StorageUnavailableError,
)

logger = structlog.get_logger(__name__)


class _TransientWriteError(Exception):
    """An OSError worth retrying (file briefly locked, busy, ...)."""


class JsonFileSnapshotStorage(SnapshotStorageInterface):
    """
    Key-value snapshot storage backed by files in a directory.
    """

    def __init__(self, data_dir: Path | str, max_bytes: Optional[int] = None):
        """
        Args:
            data_dir: Directory holding `<key>.json` files (created on first write)
            max_bytes: Optional size limit per payload
        """
        self._data_dir = Path(data_dir)
        self._max_bytes = max_bytes

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {path}: {e}") from e

    def write(self, key: str, payload: str) -> None:
        data = payload.encode("utf-8")
        if self._max_bytes is not None and len(data) > self._max_bytes:
            raise StorageQuotaExceededError(
                f"Snapshot is {len(data)} bytes, limit is {self._max_bytes}"
            )
        try:
            self._write_with_retry(self.path_for(key), data)
        except _TransientWriteError as e:
            raise StorageUnavailableError(str(e)) from e
        except OSError as e:
            raise StorageUnavailableError(
                f"Cannot write {self.path_for(key)}: {e}"
            ) from e

    @retry(
        retry=retry_if_exception_type(_TransientWriteError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        reraise=True,
    )
    def _write_with_retry(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{target.stem}-", suffix=".tmp", dir=target.parent
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except (PermissionError, BlockingIOError, InterruptedError) as e:
            self._discard(tmp_path)
            logger.debug("snapshot_write_retry", path=str(target), error=str(e))
            raise _TransientWriteError(f"Cannot write {target}: {e}") from e
        except OSError:
            self._discard(tmp_path)
            raise

    @staticmethod
    def _discard(tmp_path: str) -> None:
        try:
            os.remove(tmp_path)
        except FileNotFoundError:
            pass

    def delete(self, key: str) -> bool:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageUnavailableError(
                f"Cannot delete {self.path_for(key)}: {e}"
            ) from e
        return True
