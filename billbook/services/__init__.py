"""Services package."""

from billbook.services.persistence import DEFAULT_STATE_KEY, SnapshotPersistence
from billbook.services.storage import (
    ImportDocumentError,
    InMemorySnapshotStorage,
    JsonFileSnapshotStorage,
    PersistenceError,
    SnapshotStorageInterface,
    StorageError,
    StorageQuotaExceededError,
    StorageUnavailableError,
)

__all__ = [
    # Persistence
    "DEFAULT_STATE_KEY",
    "SnapshotPersistence",
    # Storage services
    "ImportDocumentError",
    "InMemorySnapshotStorage",
    "JsonFileSnapshotStorage",
    "PersistenceError",
    "SnapshotStorageInterface",
    "StorageError",
    "StorageQuotaExceededError",
    "StorageUnavailableError",
]
