"""In-memory snapshot storage, for tests and memory-only sessions."""

from typing import Optional

from billbook.services.storage.interface import (
    SnapshotStorageInterface,
    StorageQuotaExceededError,
    StorageUnavailableError,
)


class InMemorySnapshotStorage(SnapshotStorageInterface):
    """
    Dict-backed storage.

    `quota_bytes` simulates a full store; `available=False` simulates
    storage being switched off (every read and write raises).
    """

    def __init__(
        self,
        initial: Optional[dict[str, str]] = None,
        quota_bytes: Optional[int] = None,
        available: bool = True,
    ):
        self._data: dict[str, str] = dict(initial or {})
        self.quota_bytes = quota_bytes
        self.available = available
        self.write_count = 0

    def _check_available(self) -> None:
        if not self.available:
            raise StorageUnavailableError("Storage is unavailable")

    def read(self, key: str) -> Optional[str]:
        self._check_available()
        return self._data.get(key)

    def write(self, key: str, payload: str) -> None:
        self._check_available()
        size = len(payload.encode("utf-8"))
        if self.quota_bytes is not None and size > self.quota_bytes:
            raise StorageQuotaExceededError(
                f"Payload of {size} bytes exceeds quota of {self.quota_bytes}"
            )
        self._data[key] = payload
        self.write_count += 1

    def delete(self, key: str) -> bool:
        self._check_available()
        return self._data.pop(key, None) is not None
