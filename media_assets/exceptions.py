"""Error taxonomy for the media asset lifecycle."""

from typing import Optional, Sequence


class AssetError(Exception):
    """Base exception for asset lifecycle errors.

    ``code`` is a stable identifier callers can switch on; it is the class
    name unless a subclass overrides it.
    """

    retryable = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    @property
    def code(self) -> str:
        return self.__class__.__name__


class ValidationError(AssetError):
    """Base for upload validation failures. Never retried."""


class TooLarge(ValidationError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"Upload of {size} bytes exceeds the {limit} byte limit")
        self.size = size
        self.limit = limit


class Undecodable(ValidationError):
    pass


class UnsupportedFormat(ValidationError):
    def __init__(self, fmt: Optional[str], allowed: Sequence[str]):
        super().__init__(
            f"Format {fmt!r} is not supported; expected one of {sorted(allowed)}"
        )
        self.format = fmt
        self.allowed = tuple(allowed)


class DimensionOutOfRange(ValidationError):
    def __init__(self, width: int, height: int, min_dim: int, max_dim: int):
        super().__init__(
            f"Image size {width}x{height} is outside [{min_dim}, {max_dim}] px"
        )
        self.width = width
        self.height = height


class GenerationFailed(AssetError):
    """A rendition could not be produced. The whole create may be retried."""

    retryable = True


class StorageWriteFailed(AssetError):
    def __init__(self, key: str, reason: str):
        super().__init__(f"Failed to write {key}: {reason}")
        self.key = key


class StorageDeleteFailed(AssetError):
    """One or more storage objects of an asset could not be removed."""

    def __init__(self, asset_id: str, failed_keys: dict[str, str]):
        keys = ", ".join(sorted(failed_keys))
        super().__init__(f"Failed to delete storage for asset {asset_id}: {keys}")
        self.asset_id = asset_id
        self.failed_keys = dict(failed_keys)


class RepositoryConflict(AssetError):
    """Concurrent mutation detected; the caller should retry."""

    retryable = True


class NotFound(AssetError, KeyError):
    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.message


class BatchTooLarge(AssetError):
    def __init__(self, size: int, limit: int):
        super().__init__(f"Batch of {size} items exceeds the limit of {limit}")
        self.size = size
        self.limit = limit


class InvalidReorder(AssetError, ValueError):
    pass
