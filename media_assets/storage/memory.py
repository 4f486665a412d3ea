"""In-memory implementation of StorageBackend."""
import logging
import threading

from .base import ObjectNotFoundError, StorageBackend

logger = logging.getLogger(__name__)


class InMemoryStorageBackend(StorageBackend):
    """In-memory implementation of StorageBackend.

    Objects live in a dictionary guarded by a lock. Data is not persisted
    and will be lost when the process exits. Suitable for development and
    testing.
    """

    def __init__(self):
        self._objects: dict[str, bytes] = {}
        self._lock = threading.Lock()
        logger.info("Initialized InMemoryStorageBackend")

    def put(self, key: str, data: bytes) -> None:
        if not key:
            raise ValueError("Storage key cannot be empty")
        with self._lock:
            self._objects[key] = bytes(data)
        logger.debug(f"Stored object {key} ({len(data)} bytes)")

    def get(self, key: str) -> bytes:
        with self._lock:
            try:
                return self._objects[key]
            except KeyError:
                raise ObjectNotFoundError(key) from None

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(key)
            del self._objects[key]
        logger.debug(f"Deleted object {key}")

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._objects

    def keys(self) -> list[str]:
        """List stored keys. Mainly useful for testing."""
        with self._lock:
            return sorted(self._objects)

    def count(self) -> int:
        with self._lock:
            return len(self._objects)

    def clear(self) -> None:
        """Remove every object.

        This is mainly useful for testing purposes.
        """
        with self._lock:
            self._objects.clear()
        logger.debug("Cleared all objects from storage")
