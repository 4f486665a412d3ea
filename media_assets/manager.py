"""Single-asset lifecycle orchestration."""

import hashlib
import logging
import uuid
from concurrent.futures import Executor
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Sequence, Union

from media_assets.exceptions import (
    AssetError,
    GenerationFailed,
    NotFound,
    StorageDeleteFailed,
    StorageWriteFailed,
)
from media_assets.renditions import RenditionGenerator
from media_assets.repositories import AssetRepository
from media_assets.schemas import (
    EXTENSIONS,
    Asset,
    AssetMetadata,
    AssetMetadataUpdate,
)
from media_assets.storage import (
    ORIGINALS_CATEGORY,
    ObjectNotFoundError,
    StorageBackend,
    generate_key,
)
from media_assets.validation import Validator

logger = logging.getLogger(__name__)


class AssetState(str, Enum):
    """Progress of a single create call.

    PENDING and STORED only exist inside ``AssetManager.create``; callers
    see either an ACTIVE asset or an error.
    """

    PENDING = "pending"
    STORED = "stored"
    ACTIVE = "active"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AssetManager:
    """Creates, mutates and deletes assets while keeping storage and
    metadata consistent.

    Creation is strict: any failure after the first storage write deletes
    every object written so far before the error propagates, so storage
    never holds bytes no record references. Deletion is best effort: the
    record is removed first and storage cleanup failures are reported, not
    raised.
    """

    def __init__(
        self,
        storage: StorageBackend,
        repository: AssetRepository,
        validator: Optional[Validator] = None,
        generator: Optional[RenditionGenerator] = None,
        executor: Optional[Executor] = None,
        key_factory: Callable[..., str] = generate_key,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the manager.

        Args:
            storage: Byte-object store for originals and renditions.
            repository: Transactional metadata store.
            validator: Upload validator. Defaults to one built from settings.
            generator: Rendition generator. Defaults to one built from settings.
            executor: Optional worker pool for rendition generation. When
                omitted, renditions are generated on the calling thread.
            key_factory: Callable ``(category, ext, now) -> key``.
            clock: Source of creation timestamps.
        """
        self.storage = storage
        self.repository = repository
        self.validator = validator or Validator.from_settings()
        self.generator = generator or RenditionGenerator.from_settings()
        self.executor = executor
        self._key_factory = key_factory
        self._clock = clock

    # Creation

    def create(
        self,
        parent_id: str,
        content: bytes,
        metadata: Optional[AssetMetadata] = None,
    ) -> Asset:
        """Validate, store and register a new asset.

        Args:
            parent_id: Identifier of the owning entity.
            content: Raw upload bytes.
            metadata: Optional alt text, caption and explicit order.

        Returns:
            Asset: The committed asset.

        Raises:
            TooLarge, Undecodable, UnsupportedFormat, DimensionOutOfRange:
                Validation failures, raised before any storage write.
            GenerationFailed: If a rendition could not be produced.
            StorageWriteFailed: If an object could not be written.
            RepositoryConflict: If the metadata commit failed.
        """
        if not parent_id:
            raise ValueError("parent_id cannot be empty")
        metadata = metadata or AssetMetadata()

        state = AssetState.PENDING
        info = self.validator.validate(content)

        asset_id = uuid.uuid4().hex
        now = self._clock()
        original_key = self._key_factory(ORIGINALS_CATEGORY, info.extension, now)
        written: list[str] = []

        try:
            self._put(original_key, content, written)
            state = AssetState.STORED

            renditions = self._generate(content)
            specs = {spec.name: spec for spec in self.generator.specs}
            rendition_keys: dict[str, str] = {}
            for name, data in renditions.items():
                ext = EXTENSIONS[specs[name].format]
                key = self._key_factory(name, ext, now)
                self._put(key, data, written)
                rendition_keys[name] = key

            order = metadata.order
            if order is None:
                order = self.repository.next_order(parent_id)

            asset = Asset(
                id=asset_id,
                parent_id=parent_id,
                original_key=original_key,
                rendition_keys=rendition_keys,
                alt_text=metadata.alt_text,
                caption=metadata.caption,
                is_primary=False,
                order=order,
                created_at=now,
                content_type=info.content_type,
                format=info.format,
                width=info.width,
                height=info.height,
                size_bytes=len(content),
                checksum=hashlib.sha256(content).hexdigest(),
            )
            self.repository.add(asset)
        except Exception as e:
            logger.warning(
                f"Create of asset {asset_id} failed after reaching {state.value}, "
                f"marking {AssetState.FAILED.value}: {e}"
            )
            self._rollback(asset_id, written)
            raise

        logger.info(
            f"Asset {asset_id} for parent {parent_id} is {AssetState.ACTIVE.value} "
            f"({info.format} {info.width}x{info.height}, {len(rendition_keys)} renditions)"
        )
        return asset

    def _put(self, key: str, data: bytes, written: list[str]) -> None:
        # Track the key before writing so a half-finished put is cleaned up too
        written.append(key)
        try:
            self.storage.put(key, data)
        except Exception as e:
            raise StorageWriteFailed(key, str(e)) from e

    def _generate(self, content: bytes) -> dict[str, bytes]:
        if self.executor is None:
            return self.generator.generate(content)
        try:
            future = self.executor.submit(self.generator.generate, content)
        except RuntimeError as e:
            # Executor already shut down
            raise GenerationFailed(f"Rendition executor unavailable: {e}") from e
        return future.result()

    def _rollback(self, asset_id: str, written: Sequence[str]) -> None:
        """Compensate a failed create by deleting the objects it wrote."""
        if not written:
            return
        logger.warning(f"Rolling back {len(written)} storage objects of asset {asset_id}")
        for key in reversed(written):
            try:
                self.storage.delete(key)
            except ObjectNotFoundError:
                pass
            except Exception as e:
                logger.error(f"Compensating delete of {key} failed: {e}")

    # Mutation

    def set_primary(self, parent_id: str, asset_id: str) -> Asset:
        """Make ``asset_id`` the single primary asset of ``parent_id``.

        Raises:
            NotFound: If the asset does not exist or belongs to another parent.
            RepositoryConflict: If a concurrent change prevented the commit.
        """
        asset = self.repository.set_primary(parent_id, asset_id)
        logger.info(f"Asset {asset_id} is now primary for parent {parent_id}")
        return asset

    def update_metadata(
        self,
        asset_id: str,
        fields: Union[AssetMetadataUpdate, dict],
    ) -> Asset:
        """Update ``alt_text``, ``caption`` and ``order``.

        Storage keys are never touched. Unknown field names are rejected.

        Raises:
            NotFound: If the asset does not exist.
            pydantic.ValidationError: If fields are unknown or invalid.
        """
        if not isinstance(fields, AssetMetadataUpdate):
            fields = AssetMetadataUpdate.model_validate(fields)
        changes = fields.changes()
        if not changes:
            return self.repository.get(asset_id)
        return self.repository.update_metadata(asset_id, changes)

    def reorder(self, parent_id: str, asset_ids: Sequence[str]) -> list[Asset]:
        """Assign display order by position in ``asset_ids``.

        Raises:
            NotFound: If an id does not belong to the parent.
            InvalidReorder: If asset_ids is not a permutation of the parent's assets.
        """
        return self.repository.reorder(parent_id, list(asset_ids))

    # Deletion

    def delete(self, asset_id: str) -> Optional[StorageDeleteFailed]:
        """Delete an asset record, then its original and renditions.

        The record removal is authoritative. Storage cleanup is best effort:
        every key is attempted even if an earlier one fails.

        Returns:
            Optional[StorageDeleteFailed]: Aggregated cleanup failure, or None
            when every object was removed.

        Raises:
            NotFound: If the asset does not exist.
        """
        asset = self.repository.delete(asset_id)

        failed: dict[str, str] = {}
        for key in asset.storage_keys:
            try:
                self.storage.delete(key)
            except ObjectNotFoundError:
                logger.warning(f"Object {key} of asset {asset_id} was already gone")
            except Exception as e:
                logger.error(f"Failed to delete object {key} of asset {asset_id}: {e}")
                failed[key] = str(e)

        logger.info(f"Deleted asset {asset_id} of parent {asset.parent_id}")
        if failed:
            return StorageDeleteFailed(asset_id, failed)
        return None

    def delete_all_for_parent(self, parent_id: str) -> list[AssetError]:
        """Delete every asset of a parent.

        Returns:
            list[AssetError]: One entry per asset whose deletion failed.
        """
        errors: list[AssetError] = []
        assets = self.repository.list_for_parent(parent_id)
        for asset in assets:
            try:
                failure = self.delete(asset.id)
            except AssetError as e:
                logger.error(f"Failed to delete asset {asset.id}: {e}")
                errors.append(e)
                continue
            if failure is not None:
                errors.append(failure)

        logger.info(
            f"Deleted {len(assets)} assets of parent {parent_id} with {len(errors)} errors"
        )
        return errors

    # Queries

    def get(self, asset_id: str) -> Asset:
        return self.repository.get(asset_id)

    def list_for_parent(self, parent_id: str) -> list[Asset]:
        """Assets of a parent ordered by ``order``, then ``created_at``."""
        return self.repository.list_for_parent(parent_id)

    def get_primary(self, parent_id: str) -> Asset:
        """Return the parent's primary asset.

        Raises:
            NotFound: If the parent has no primary asset.
        """
        asset = self.repository.get_primary(parent_id)
        if asset is None:
            raise NotFound(f"Parent {parent_id} has no primary asset")
        return asset

    def read_original(self, asset_id: str) -> bytes:
        asset = self.repository.get(asset_id)
        return self._read(asset.original_key)

    def read_rendition(self, asset_id: str, name: str) -> bytes:
        asset = self.repository.get(asset_id)
        key = asset.rendition_keys.get(name)
        if key is None:
            raise NotFound(f"Asset {asset_id} has no rendition {name!r}")
        return self._read(key)

    def _read(self, key: str) -> bytes:
        try:
            return self.storage.get(key)
        except ObjectNotFoundError as e:
            raise NotFound(f"Stored object {key} is missing") from e
