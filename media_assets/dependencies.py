"""Service wiring from configuration."""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor

from config import get_settings
from media_assets.bulk import BulkIngestionCoordinator
from media_assets.db import get_session_factory, init_db
from media_assets.manager import AssetManager
from media_assets.renditions import RenditionGenerator
from media_assets.repositories import (
    AssetDBRepository,
    AssetRepository,
    InMemoryAssetRepository,
)
from media_assets.storage import InMemoryStorageBackend, LocalStorageBackend, StorageBackend
from media_assets.validation import Validator

logger = logging.getLogger(__name__)


# Process-wide instances, created on first use
_storage_backend: StorageBackend | None = None
_asset_repository: AssetRepository | None = None
_rendition_executor: Executor | None = None
_asset_manager: AssetManager | None = None
_bulk_coordinator: BulkIngestionCoordinator | None = None


def get_storage_backend() -> StorageBackend:
    """Get the storage backend selected by STORAGE_TYPE.

    - "local": LocalStorageBackend below STORAGE_ROOT
    - "memory": InMemoryStorageBackend (data lost on restart)
    """
    global _storage_backend

    if _storage_backend is None:
        settings = get_settings()
        if settings.storage_type == "memory":
            _storage_backend = InMemoryStorageBackend()
            logger.info("Created in-memory storage backend")
        else:
            _storage_backend = LocalStorageBackend(settings.storage_root)
            logger.info(f"Created local storage backend with root: {settings.storage_root}")

    return _storage_backend


def get_asset_repository() -> AssetRepository:
    """Get the asset repository selected by METADATA_STORAGE.

    - "memory": InMemoryAssetRepository (data lost on restart)
    - "database": AssetDBRepository on DATABASE_URL; tables are created on
      first use
    """
    global _asset_repository

    if _asset_repository is None:
        settings = get_settings()
        if settings.metadata_storage == "database":
            init_db()
            _asset_repository = AssetDBRepository(get_session_factory())
            logger.debug("Using database repository for asset metadata")
        else:
            _asset_repository = InMemoryAssetRepository()
            logger.info("Created in-memory repository for asset metadata")

    return _asset_repository


def get_validator() -> Validator:
    return Validator.from_settings(get_settings())


def get_rendition_generator() -> RenditionGenerator:
    return RenditionGenerator.from_settings(get_settings())


def get_rendition_executor() -> Executor | None:
    """Worker pool for rendition generation, or None to run inline."""
    global _rendition_executor

    workers = get_settings().rendition_workers
    if workers and _rendition_executor is None:
        _rendition_executor = ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix="renditions",
        )
        logger.info(f"Created rendition worker pool with {workers} workers")
    return _rendition_executor


def get_asset_manager() -> AssetManager:
    global _asset_manager

    if _asset_manager is None:
        _asset_manager = AssetManager(
            storage=get_storage_backend(),
            repository=get_asset_repository(),
            validator=get_validator(),
            generator=get_rendition_generator(),
            executor=get_rendition_executor(),
        )
    return _asset_manager


def get_bulk_coordinator() -> BulkIngestionCoordinator:
    global _bulk_coordinator

    if _bulk_coordinator is None:
        _bulk_coordinator = BulkIngestionCoordinator.from_settings(
            get_asset_manager(), get_settings()
        )
    return _bulk_coordinator


def reset_dependencies() -> None:
    """Drop cached instances so the next call rebuilds them from settings.

    This is mainly useful for testing purposes.
    """
    global _storage_backend, _asset_repository, _rendition_executor
    global _asset_manager, _bulk_coordinator

    if _rendition_executor is not None:
        _rendition_executor.shutdown(wait=True)
    _storage_backend = None
    _asset_repository = None
    _rendition_executor = None
    _asset_manager = None
    _bulk_coordinator = None
