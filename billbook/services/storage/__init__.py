"""
Storage Services Package

Provides the abstract snapshot storage interface and its implementations:
local JSON files for real use, a dict for tests.
"""

from billbook.services.storage.interface import (
    ImportDocumentError,
    PersistenceError,
    SnapshotStorageInterface,
    StorageError,
    StorageQuotaExceededError,
    StorageUnavailableError,
)
from billbook.services.storage.local_file import JsonFileSnapshotStorage
from billbook.services.storage.memory import InMemorySnapshotStorage

__all__ = [
    # Interface
    "SnapshotStorageInterface",
    # Exceptions
    "ImportDocumentError",
    "PersistenceError",
    "StorageError",
    "StorageQuotaExceededError",
    "StorageUnavailableError",
    # Implementations
    "InMemorySnapshotStorage",
    "JsonFileSnapshotStorage",
]
