"""Tests for bulk ingestion."""

import threading
import time

import pytest

from config import Settings
from media_assets.bulk import CANCELLED, BulkIngestionCoordinator
from media_assets.exceptions import BatchTooLarge
from media_assets.manager import AssetManager
from media_assets.renditions import RenditionGenerator
from media_assets.repositories import AssetDBRepository
from media_assets.schemas import AssetMetadata, UploadItem
from media_assets.validation import Validator


@pytest.fixture
def coordinator(manager):
    return BulkIngestionCoordinator(manager, max_batch_size=10, concurrency=3)


class TestBulkCreate:
    """Test cases for BulkIngestionCoordinator.bulk_create."""

    def test_all_valid(self, coordinator, storage, make_image):
        items = [make_image(seed=i) for i in range(4)]

        result = coordinator.bulk_create("listing-1", items)

        assert result.ok
        assert result.total == 4
        assert [a.order for a in result.created] == [0, 1, 2, 3]
        assert storage.count() == 4 * 3

    def test_partial_failure_accounts_for_every_item(self, coordinator, repository, make_image):
        items = [
            make_image(seed=0),
            b"not an image",
            make_image(seed=1),
            b"\x00" * (6 * 1024 * 1024),
            make_image(50, 50),
            make_image(seed=2),
        ]

        result = coordinator.bulk_create("listing-1", items)

        assert len(result.created) == 3
        assert len(result.errors) == 3
        assert result.total == len(items)
        assert not result.ok
        assert [(e.index, e.code) for e in result.errors] == [
            (1, "Undecodable"),
            (3, "TooLarge"),
            (4, "DimensionOutOfRange"),
        ]
        assert [a.order for a in result.created] == [0, 2, 5]
        assert repository.count("listing-1") == 3

    def test_base_order(self, coordinator, make_image):
        result = coordinator.bulk_create("listing-1", [make_image(), make_image()], base_order=10)
        assert [a.order for a in result.created] == [10, 11]

    def test_explicit_order_and_metadata(self, coordinator, make_image):
        items = [
            UploadItem(content=make_image(), metadata=AssetMetadata(alt_text="Kitchen")),
            UploadItem(content=make_image(), metadata=AssetMetadata(order=42, caption="Pool")),
            UploadItem(content=make_image()),
        ]

        result = coordinator.bulk_create("listing-1", items, base_order=3)

        assert [a.order for a in result.created] == [3, 42, 5]
        assert result.created[0].alt_text == "Kitchen"
        assert result.created[1].caption == "Pool"

    def test_negative_base_order(self, coordinator, make_image):
        with pytest.raises(ValueError):
            coordinator.bulk_create("listing-1", [make_image()], base_order=-1)

    def test_batch_too_large_before_any_work(self, manager, storage, repository, make_image):
        coordinator = BulkIngestionCoordinator(manager, max_batch_size=10)
        items = [make_image() for _ in range(11)]

        with pytest.raises(BatchTooLarge) as exc_info:
            coordinator.bulk_create("listing-1", items)

        assert exc_info.value.size == 11
        assert exc_info.value.limit == 10
        assert storage.count() == 0
        assert repository.count() == 0

    def test_empty_batch(self, coordinator):
        result = coordinator.bulk_create("listing-1", [])
        assert result.created == [] and result.errors == []

    def test_unexpected_error_becomes_item_error(self, coordinator, manager, make_image, monkeypatch):
        original_create = manager.create

        def create(parent_id, content, metadata=None):
            if metadata.order == 1:
                raise RuntimeError("boom")
            return original_create(parent_id, content, metadata)

        monkeypatch.setattr(manager, "create", create)

        result = coordinator.bulk_create("listing-1", [make_image(), make_image()])

        assert len(result.created) == 1
        assert result.errors[0].index == 1
        assert result.errors[0].code == "RuntimeError"
        assert result.errors[0].message == "boom"

    def test_concurrency_is_bounded(self, manager, make_image, monkeypatch):
        coordinator = BulkIngestionCoordinator(manager, concurrency=2)
        original_create = manager.create
        lock = threading.Lock()
        running = 0
        peak = 0

        def create(*args, **kwargs):
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            try:
                time.sleep(0.02)
                return original_create(*args, **kwargs)
            finally:
                with lock:
                    running -= 1

        monkeypatch.setattr(manager, "create", create)

        result = coordinator.bulk_create("listing-1", [make_image(seed=i) for i in range(6)])

        assert result.ok
        assert peak <= 2

    def test_rejects_invalid_limits(self, manager):
        with pytest.raises(ValueError):
            BulkIngestionCoordinator(manager, max_batch_size=0)
        with pytest.raises(ValueError):
            BulkIngestionCoordinator(manager, concurrency=0)

    def test_from_settings(self, manager):
        settings = Settings(_env_file=None, max_batch_size=3, bulk_concurrency=2)
        coordinator = BulkIngestionCoordinator.from_settings(manager, settings)

        assert coordinator.max_batch_size == 3
        assert coordinator.concurrency == 2


class TestCancellation:

    def test_cancelled_before_start(self, coordinator, storage, repository, make_image):
        event = threading.Event()
        event.set()

        result = coordinator.bulk_create("listing-1", [make_image() for _ in range(3)], cancel_event=event)

        assert result.created == []
        assert [(e.index, e.code) for e in result.errors] == [(0, CANCELLED), (1, CANCELLED), (2, CANCELLED)]
        assert storage.count() == 0
        assert repository.count() == 0

    def test_cancel_mid_batch_keeps_finished_items(self, manager, storage, repository, make_image, monkeypatch):
        coordinator = BulkIngestionCoordinator(manager, concurrency=1)
        event = threading.Event()
        original_create = manager.create

        def create(*args, **kwargs):
            asset = original_create(*args, **kwargs)
            event.set()
            return asset

        monkeypatch.setattr(manager, "create", create)

        result = coordinator.bulk_create("listing-1", [make_image(seed=i) for i in range(4)], cancel_event=event)

        assert len(result.created) == 1
        assert result.created[0].order == 0
        assert [e.index for e in result.errors] == [1, 2, 3]
        assert {e.code for e in result.errors} == {CANCELLED}
        # The finished item is complete: record and all of its objects
        assert repository.count() == 1
        assert storage.count() == len(result.created[0].storage_keys)


class TestBulkOnSharedConnectionDatabase:
    """Concurrent bulk uploads against in-memory SQLite."""

    def test_concurrent_batches_keep_storage_and_records_consistent(
        self, session_factory, storage, rendition_specs, make_image
    ):
        repository = AssetDBRepository(session_factory)
        manager = AssetManager(
            storage=storage,
            repository=repository,
            validator=Validator(),
            generator=RenditionGenerator(rendition_specs),
        )
        coordinator = BulkIngestionCoordinator(manager, max_batch_size=10, concurrency=4)
        images = [make_image(seed=i) for i in range(10)]
        results = []
        lock = threading.Lock()

        def upload(parent_id: str) -> None:
            result = coordinator.bulk_create(parent_id, images)
            with lock:
                results.append(result)

        threads = [threading.Thread(target=upload, args=(f"listing-{n}",)) for n in range(6)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert [r.errors for r in results] == [[]] * 6
        assert repository.count() == 60
        expected_keys = sorted(
            key
            for n in range(6)
            for asset in repository.list_for_parent(f"listing-{n}")
            for key in asset.storage_keys
        )
        assert storage.keys() == expected_keys
