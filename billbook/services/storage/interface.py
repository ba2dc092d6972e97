"""
Abstract Storage Interface

DESIGN DECISION: The snapshot is stored through a tiny key-value interface.
This allows us to:
1. Keep the persistence adapter ignorant of where bytes end up
2. Use in-memory storage for testing
3. Swap the local file for another durable store later

The interface is intentionally simple - one text payload per key.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SnapshotStorageInterface(ABC):
    """
    Abstract interface for durable key-value snapshot storage.

    Any storage implementation (local file, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """
        Read the payload stored under a key.

        Args:
            key: The fixed snapshot key

        Returns:
            The stored text, or None if nothing is stored

        Raises:
            StorageUnavailableError: If the store cannot be read
        """
        pass

    @abstractmethod
    def write(self, key: str, payload: str) -> None:
        """
        Replace the payload stored under a key.

        Args:
            key: The fixed snapshot key
            payload: Serialized snapshot

        Raises:
            StorageQuotaExceededError: If the payload doesn't fit
            StorageUnavailableError: If the store cannot be written
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Remove a key.

        Returns:
            True if something was removed
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


PersistenceError = StorageError


class StorageUnavailableError(StorageError):
    """The storage backend cannot be reached or accessed."""
    pass


class StorageQuotaExceededError(StorageError):
    """The payload is larger than the backend accepts."""
    pass


class ImportDocumentError(Exception):
    """An import document could not be parsed or validated."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
