"""Storage module for asset bytes."""

from .base import ObjectNotFoundError, StorageBackend, StorageError
from .keys import ORIGINALS_CATEGORY, generate_key
from .local import LocalStorageBackend
from .memory import InMemoryStorageBackend

__all__ = [
    "StorageBackend",
    "StorageError",
    "ObjectNotFoundError",
    "LocalStorageBackend",
    "InMemoryStorageBackend",
    "generate_key",
    "ORIGINALS_CATEGORY",
]
