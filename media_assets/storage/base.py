"""Storage backend interface for asset bytes."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class StorageBackend(Protocol):
    """Abstract interface for byte-object storage.

    Objects are addressed by opaque keys chosen by the caller. Implementations
    can use various backends such as the local filesystem, S3, Azure Blob
    Storage, etc. The asset lifecycle only ever puts fresh keys and deletes
    them; keys are never overwritten with different content.
    """

    def put(self, key: str, data: bytes) -> None:
        """Store ``data`` under ``key``.

        Raises:
            StorageError: If the object cannot be written.
        """
        ...

    def get(self, key: str) -> bytes:
        """Return the bytes stored under ``key``.

        Raises:
            ObjectNotFoundError: If no object exists for ``key``.
            StorageError: If the object cannot be read.
        """
        ...

    def delete(self, key: str) -> None:
        """Remove the object stored under ``key``.

        Raises:
            ObjectNotFoundError: If no object exists for ``key``.
            StorageError: If the object cannot be removed.
        """
        ...

    def exists(self, key: str) -> bool:
        """Check whether an object exists for ``key``.

        Raises:
            StorageError: If the backend cannot be queried.
        """
        ...


class StorageError(Exception):
    """Base exception for storage-related errors."""
    pass


class ObjectNotFoundError(StorageError):
    """Raised when a key has no stored object."""

    def __init__(self, key: str):
        super().__init__(f"Object not found: {key}")
        self.key = key
