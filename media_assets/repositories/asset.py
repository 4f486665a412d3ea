"""Asset repository for managing asset metadata."""

import logging
import threading
from collections import Counter
from contextlib import contextmanager, nullcontext
from typing import Any, Iterator, Optional, Protocol, Sequence, runtime_checkable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from media_assets.db import uses_single_connection
from media_assets.exceptions import InvalidReorder, NotFound, RepositoryConflict
from media_assets.models.db import AssetRecord
from media_assets.schemas import Asset

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = frozenset({"alt_text", "caption", "order"})


def sort_key(asset: Asset) -> tuple:
    """Display order: ``order``, ties broken by ``created_at`` then ``id``."""
    return (asset.order, asset.created_at, asset.id)


def check_reorder(parent_id: str, current_ids: Sequence[str], asset_ids: Sequence[str]) -> None:
    """Ensure ``asset_ids`` is a permutation of the parent's assets.

    Raises:
        NotFound: If an id does not belong to the parent.
        InvalidReorder: If ids are duplicated or some assets are missing.
    """
    known = set(current_ids)
    unknown = [asset_id for asset_id in asset_ids if asset_id not in known]
    if unknown:
        raise NotFound(f"Assets {unknown} do not belong to parent {parent_id}")

    duplicates = sorted(asset_id for asset_id, n in Counter(asset_ids).items() if n > 1)
    if duplicates:
        raise InvalidReorder(f"Duplicate asset ids in reorder: {duplicates}")

    missing = sorted(known - set(asset_ids))
    if missing:
        raise InvalidReorder(f"Reorder for parent {parent_id} omits assets {missing}")


def _check_changes(changes: dict[str, Any]) -> None:
    illegal = set(changes) - MUTABLE_FIELDS
    if illegal:
        raise ValueError(f"Fields cannot be updated: {sorted(illegal)}")


@runtime_checkable
class AssetRepository(Protocol):
    """Interface for transactional asset metadata storage.

    Every mutating method is a single transaction: it either commits
    completely or leaves the store unchanged. Implementations guarantee that
    at most one asset per parent is primary in any committed state.
    """

    def add(self, asset: Asset) -> Asset:
        """Commit a new asset record.

        Raises:
            RepositoryConflict: If the id or original key already exists, or
                the record would create a second primary for its parent.
        """
        ...

    def get(self, asset_id: str) -> Asset:
        """Get an asset by id.

        Raises:
            NotFound: If asset_id does not exist.
        """
        ...

    def exists(self, asset_id: str) -> bool:
        ...

    def list_for_parent(self, parent_id: str) -> list[Asset]:
        """List a parent's assets in display order."""
        ...

    def get_primary(self, parent_id: str) -> Optional[Asset]:
        """Return the parent's primary asset, or None."""
        ...

    def next_order(self, parent_id: str) -> int:
        """Order value that places a new asset after all existing ones."""
        ...

    def update_metadata(self, asset_id: str, changes: dict[str, Any]) -> Asset:
        """Apply changes to ``alt_text``, ``caption`` and ``order``.

        Raises:
            NotFound: If asset_id does not exist.
            ValueError: If changes name any other field.
        """
        ...

    def set_primary(self, parent_id: str, asset_id: str) -> Asset:
        """Make ``asset_id`` the only primary asset of ``parent_id``.

        Raises:
            NotFound: If the asset does not exist or belongs to another parent.
            RepositoryConflict: If a concurrent change prevented the commit.
        """
        ...

    def reorder(self, parent_id: str, asset_ids: Sequence[str]) -> list[Asset]:
        """Set ``order`` to each asset's position in ``asset_ids``.

        Raises:
            NotFound: If an id does not belong to the parent.
            InvalidReorder: If asset_ids is not a permutation of the parent's assets.
        """
        ...

    def delete(self, asset_id: str) -> Asset:
        """Delete an asset record and return its last committed state.

        Raises:
            NotFound: If asset_id does not exist.
        """
        ...

    def count(self, parent_id: Optional[str] = None) -> int:
        ...


class InMemoryAssetRepository(AssetRepository):
    """In-memory implementation of AssetRepository.

    Records live in a dictionary and every operation runs under one lock,
    which plays the role of the transaction boundary. Data is not persisted
    and will be lost when the application restarts. Suitable for
    development and testing.
    """

    def __init__(self):
        """Initialize the in-memory repository."""
        self._assets: dict[str, Asset] = {}
        self._lock = threading.RLock()
        logger.info("Initialized InMemoryAssetRepository")

    def _for_parent(self, parent_id: str) -> list[Asset]:
        return [a for a in self._assets.values() if a.parent_id == parent_id]

    def _require(self, asset_id: str) -> Asset:
        try:
            return self._assets[asset_id]
        except KeyError:
            raise NotFound(f"Asset with ID {asset_id} not found") from None

    def add(self, asset: Asset) -> Asset:
        with self._lock:
            if asset.id in self._assets:
                raise RepositoryConflict(f"Asset with ID {asset.id} already exists")
            if any(a.original_key == asset.original_key for a in self._assets.values()):
                raise RepositoryConflict(f"Storage key {asset.original_key} already referenced")
            if asset.is_primary and self.get_primary(asset.parent_id) is not None:
                raise RepositoryConflict(f"Parent {asset.parent_id} already has a primary asset")
            self._assets[asset.id] = asset
        logger.debug(f"Added asset: {asset.id} (parent {asset.parent_id})")
        return asset

    def get(self, asset_id: str) -> Asset:
        with self._lock:
            return self._require(asset_id)

    def exists(self, asset_id: str) -> bool:
        with self._lock:
            return asset_id in self._assets

    def list_for_parent(self, parent_id: str) -> list[Asset]:
        with self._lock:
            return sorted(self._for_parent(parent_id), key=sort_key)

    def get_primary(self, parent_id: str) -> Optional[Asset]:
        with self._lock:
            for asset in self._for_parent(parent_id):
                if asset.is_primary:
                    return asset
            return None

    def next_order(self, parent_id: str) -> int:
        with self._lock:
            orders = [a.order for a in self._for_parent(parent_id)]
            return max(orders) + 1 if orders else 0

    def update_metadata(self, asset_id: str, changes: dict[str, Any]) -> Asset:
        _check_changes(changes)
        with self._lock:
            asset = self._require(asset_id)
            updated = Asset.model_validate({**asset.model_dump(), **changes})
            self._assets[asset_id] = updated
        logger.debug(f"Updated asset {asset_id}: {sorted(changes)}")
        return updated

    def set_primary(self, parent_id: str, asset_id: str) -> Asset:
        with self._lock:
            target = self._assets.get(asset_id)
            if target is None or target.parent_id != parent_id:
                raise NotFound(f"Asset {asset_id} not found for parent {parent_id}")
            for asset in self._for_parent(parent_id):
                if asset.is_primary and asset.id != asset_id:
                    self._assets[asset.id] = asset.model_copy(update={"is_primary": False})
            target = target.model_copy(update={"is_primary": True})
            self._assets[asset_id] = target
        return target

    def reorder(self, parent_id: str, asset_ids: Sequence[str]) -> list[Asset]:
        with self._lock:
            current = self._for_parent(parent_id)
            check_reorder(parent_id, [a.id for a in current], asset_ids)
            for position, asset_id in enumerate(asset_ids):
                self._assets[asset_id] = self._assets[asset_id].model_copy(update={"order": position})
            return sorted(self._for_parent(parent_id), key=sort_key)

    def delete(self, asset_id: str) -> Asset:
        with self._lock:
            asset = self._require(asset_id)
            del self._assets[asset_id]
        logger.debug(f"Deleted asset: {asset_id}")
        return asset

    def count(self, parent_id: Optional[str] = None) -> int:
        with self._lock:
            if parent_id is None:
                return len(self._assets)
            return len(self._for_parent(parent_id))

    def clear(self) -> None:
        """Clear all entries from the repository.

        This is mainly useful for testing purposes.
        """
        with self._lock:
            self._assets.clear()
        logger.debug("Cleared all assets from repository")


class AssetDBRepository(AssetRepository):
    """SQLAlchemy-based implementation of AssetRepository.

    Each public method opens its own session from the factory and runs as
    one transaction, so the repository can be shared between threads. The
    primary-asset swap is two ``UPDATE`` statements scoped to the parent
    inside a single transaction. Updating every row of the parent locks the
    parent's asset set on databases with row-level locking. On SQLite the
    database write lock serializes the transactions. A partial unique index
    rejects any commit that would leave two primaries.

    When the engine hands every session the same connection (in-memory
    SQLite), transactions run one at a time under a lock, since a commit on
    the shared connection would otherwise end another thread's transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        """Initialize the repository with a session factory.

        Args:
            session_factory: Factory producing SQLAlchemy sessions
        """
        self._session_factory = session_factory
        bind = session_factory.kw.get("bind")
        if bind is not None and uses_single_connection(bind):
            self._lock = threading.Lock()
            logger.info("Initialized AssetDBRepository (serialized transactions)")
        else:
            self._lock = nullcontext()
            logger.info("Initialized AssetDBRepository")

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._lock:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except (IntegrityError, OperationalError) as e:
                session.rollback()
                logger.warning(f"Asset transaction conflict: {e.orig}")
                raise RepositoryConflict(str(e.orig)) from e
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def _parent_query(self, parent_id: str):
        return (
            select(AssetRecord)
            .where(AssetRecord.parent_id == parent_id)
            .order_by(AssetRecord.order, AssetRecord.created_at, AssetRecord.id)
        )

    def _require(self, session: Session, asset_id: str) -> AssetRecord:
        record = session.get(AssetRecord, asset_id)
        if record is None:
            raise NotFound(f"Asset with ID {asset_id} not found")
        return record

    def add(self, asset: Asset) -> Asset:
        with self._transaction() as session:
            session.add(AssetRecord.from_asset(asset))
        logger.info(f"Created asset record: {asset.id}")
        return asset

    def get(self, asset_id: str) -> Asset:
        with self._transaction() as session:
            return self._require(session, asset_id).to_asset()

    def exists(self, asset_id: str) -> bool:
        with self._transaction() as session:
            return session.get(AssetRecord, asset_id) is not None

    def list_for_parent(self, parent_id: str) -> list[Asset]:
        with self._transaction() as session:
            records = session.scalars(self._parent_query(parent_id)).all()
            return [record.to_asset() for record in records]

    def get_primary(self, parent_id: str) -> Optional[Asset]:
        with self._transaction() as session:
            record = session.scalars(
                select(AssetRecord).where(
                    AssetRecord.parent_id == parent_id,
                    AssetRecord.is_primary.is_(True),
                )
            ).first()
            return record.to_asset() if record is not None else None

    def next_order(self, parent_id: str) -> int:
        with self._transaction() as session:
            highest = session.scalar(
                select(func.max(AssetRecord.order)).where(AssetRecord.parent_id == parent_id)
            )
            return 0 if highest is None else highest + 1

    def update_metadata(self, asset_id: str, changes: dict[str, Any]) -> Asset:
        _check_changes(changes)
        with self._transaction() as session:
            record = self._require(session, asset_id)
            for field, value in changes.items():
                setattr(record, field, value)
            session.flush()
            updated = record.to_asset()
        logger.info(f"Updated asset {asset_id}: {sorted(changes)}")
        return updated

    def set_primary(self, parent_id: str, asset_id: str) -> Asset:
        with self._transaction() as session:
            session.execute(
                update(AssetRecord)
                .where(AssetRecord.parent_id == parent_id, AssetRecord.id != asset_id)
                .values(is_primary=False)
                .execution_options(synchronize_session=False)
            )
            result = session.execute(
                update(AssetRecord)
                .where(AssetRecord.parent_id == parent_id, AssetRecord.id == asset_id)
                .values(is_primary=True)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                # Rolls back the unset above
                raise NotFound(f"Asset {asset_id} not found for parent {parent_id}")
            target = session.get(AssetRecord, asset_id, populate_existing=True).to_asset()
        logger.info(f"Set primary asset of parent {parent_id}: {asset_id}")
        return target

    def reorder(self, parent_id: str, asset_ids: Sequence[str]) -> list[Asset]:
        with self._transaction() as session:
            records = session.scalars(
                select(AssetRecord).where(AssetRecord.parent_id == parent_id).with_for_update()
            ).all()
            check_reorder(parent_id, [record.id for record in records], asset_ids)
            by_id = {record.id: record for record in records}
            for position, asset_id in enumerate(asset_ids):
                by_id[asset_id].order = position
            session.flush()
            reordered = sorted((record.to_asset() for record in records), key=sort_key)
        logger.info(f"Reordered {len(reordered)} assets of parent {parent_id}")
        return reordered

    def delete(self, asset_id: str) -> Asset:
        with self._transaction() as session:
            record = self._require(session, asset_id)
            asset = record.to_asset()
            session.delete(record)
        logger.info(f"Deleted asset record: {asset_id}")
        return asset

    def count(self, parent_id: Optional[str] = None) -> int:
        with self._transaction() as session:
            query = select(func.count()).select_from(AssetRecord)
            if parent_id is not None:
                query = query.where(AssetRecord.parent_id == parent_id)
            return session.scalar(query)
