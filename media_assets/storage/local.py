"""Local filesystem implementation of StorageBackend."""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from config import get_settings

from .base import ObjectNotFoundError, StorageBackend, StorageError

logger = logging.getLogger(__name__)


class LocalStorageBackend(StorageBackend):
    """Local filesystem storage implementation.

    Stores each object as a file below a configurable root directory, with
    the key used as the relative path. Writes go to a temporary file that is
    renamed into place, so readers never observe a partially written object.
    """

    def __init__(self, storage_root: Optional[str | Path] = None):
        """Initialize local storage backend.

        Args:
            storage_root: Root directory for stored objects.
                         If not provided, uses the configured storage root from settings.
        """
        if storage_root is not None:
            self.storage_root = Path(storage_root)
        else:
            self.storage_root = get_settings().storage_root

        self._ensure_storage_dir()
        logger.info(f"Initialized LocalStorageBackend with root: {self.storage_root}")

    def _ensure_storage_dir(self) -> None:
        """Ensure the storage directory exists."""
        try:
            self.storage_root.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured storage directory exists: {self.storage_root}")
        except Exception as e:
            logger.error(f"Failed to create storage directory: {e}")
            raise StorageError(f"Failed to create storage directory: {e}")

    def _resolve(self, key: str) -> Path:
        """Map a key to a path, refusing keys that escape the root."""
        if not key:
            raise ValueError("Storage key cannot be empty")

        root = self.storage_root.resolve()
        path = (root / key).resolve()
        if path == root or root not in path.parents:
            raise ValueError(f"Storage key escapes storage root: {key}")
        return path

    def put(self, key: str, data: bytes) -> None:
        """Write an object to the local filesystem.

        Raises:
            StorageError: If the object cannot be saved.
        """
        file_path = self._resolve(key)

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as tmp:
                    tmp.write(data)
                os.replace(tmp_name, file_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            logger.debug(f"Saved object to: {file_path}")
        except Exception as e:
            logger.error(f"Failed to save object {key}: {e}")
            raise StorageError(f"Failed to save object: {e}")

    def get(self, key: str) -> bytes:
        """Read an object from the local filesystem.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageError: If the object cannot be read.
        """
        file_path = self._resolve(key)

        if not file_path.is_file():
            logger.warning(f"Object not found: {key}")
            raise ObjectNotFoundError(key)

        try:
            content = file_path.read_bytes()
            logger.debug(f"Successfully read object from: {file_path}")
            return content
        except Exception as e:
            logger.error(f"Failed to read object from {file_path}: {e}")
            raise StorageError(f"Failed to read object: {e}")

    def delete(self, key: str) -> None:
        """Remove an object from the local filesystem.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageError: If the object cannot be removed.
        """
        file_path = self._resolve(key)

        try:
            file_path.unlink()
            logger.debug(f"Deleted object: {file_path}")
        except FileNotFoundError:
            raise ObjectNotFoundError(key)
        except Exception as e:
            logger.error(f"Failed to delete object {file_path}: {e}")
            raise StorageError(f"Failed to delete object: {e}")

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()
