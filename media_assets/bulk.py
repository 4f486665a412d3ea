"""Multi-file ingestion with per-item results."""

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Optional, Sequence, Union

from config import Settings, get_settings
from media_assets.exceptions import AssetError, BatchTooLarge
from media_assets.manager import AssetManager
from media_assets.schemas import (
    Asset,
    AssetMetadata,
    BulkCreateResult,
    ItemError,
    UploadItem,
)

logger = logging.getLogger(__name__)

CANCELLED = "Cancelled"

BulkInput = Union[bytes, UploadItem]


class BulkIngestionCoordinator:
    """Runs a batch of uploads through ``AssetManager.create``.

    The batch is not one transaction. Each item succeeds or fails on its
    own and the result accounts for every input index exactly once. Items
    run concurrently on a bounded thread pool. When ``cancel_event`` is set,
    no further items are scheduled; items already running are allowed to
    finish so that no storage write is left without its record.
    """

    def __init__(
        self,
        manager: AssetManager,
        max_batch_size: int = 10,
        concurrency: int = 4,
    ):
        if max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.manager = manager
        self.max_batch_size = max_batch_size
        self.concurrency = concurrency

    @classmethod
    def from_settings(
        cls,
        manager: AssetManager,
        settings: Optional[Settings] = None,
    ) -> "BulkIngestionCoordinator":
        settings = settings or get_settings()
        return cls(
            manager,
            max_batch_size=settings.max_batch_size,
            concurrency=settings.bulk_concurrency,
        )

    def bulk_create(
        self,
        parent_id: str,
        items: Sequence[BulkInput],
        base_order: int = 0,
        cancel_event: Optional[threading.Event] = None,
    ) -> BulkCreateResult:
        """Create one asset per item.

        Args:
            parent_id: Identifier of the owning entity.
            items: Raw bytes or UploadItem entries.
            base_order: Order given to the first item; item ``i`` gets
                ``base_order + i`` unless it carries an explicit order.
            cancel_event: Stops scheduling new items once set.

        Returns:
            BulkCreateResult: Created assets in input order and per-item errors.

        Raises:
            BatchTooLarge: If more than ``max_batch_size`` items are given.
                Raised before any item is processed.
        """
        if len(items) > self.max_batch_size:
            raise BatchTooLarge(len(items), self.max_batch_size)
        if base_order < 0:
            raise ValueError("base_order must be non-negative")

        logger.info(f"Bulk upload of {len(items)} items for parent {parent_id}")
        created: dict[int, Asset] = {}
        errors: dict[int, ItemError] = {}

        with ThreadPoolExecutor(
            max_workers=self.concurrency,
            thread_name_prefix="bulk-ingest",
        ) as pool:
            in_flight: dict[Future, int] = {}
            for index, item in enumerate(items):
                if len(in_flight) >= self.concurrency:
                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        self._collect(in_flight.pop(future), future, created, errors)

                if cancel_event is not None and cancel_event.is_set():
                    for skipped in range(index, len(items)):
                        errors[skipped] = ItemError(
                            index=skipped,
                            code=CANCELLED,
                            message="Bulk upload cancelled before item was scheduled",
                        )
                    logger.warning(
                        f"Bulk upload for parent {parent_id} cancelled; "
                        f"{len(items) - index} items not scheduled"
                    )
                    break

                content, metadata = self._prepare(item, base_order + index)
                future = pool.submit(self.manager.create, parent_id, content, metadata)
                in_flight[future] = index

            for future in list(in_flight):
                self._collect(in_flight.pop(future), future, created, errors)

        result = BulkCreateResult(
            created=[created[i] for i in sorted(created)],
            errors=[errors[i] for i in sorted(errors)],
        )
        logger.info(
            f"Bulk upload for parent {parent_id} finished: "
            f"{len(result.created)} created, {len(result.errors)} failed"
        )
        return result

    def _prepare(self, item: BulkInput, default_order: int) -> tuple[bytes, AssetMetadata]:
        if isinstance(item, UploadItem):
            metadata = item.metadata or AssetMetadata()
            if metadata.order is None:
                metadata = metadata.model_copy(update={"order": default_order})
            return item.content, metadata
        return bytes(item), AssetMetadata(order=default_order)

    def _collect(
        self,
        index: int,
        future: Future,
        created: dict[int, Asset],
        errors: dict[int, ItemError],
    ) -> None:
        try:
            created[index] = future.result()
        except AssetError as e:
            logger.info(f"Bulk item {index} failed: {e.code}: {e.message}")
            errors[index] = ItemError(index=index, code=e.code, message=e.message)
        except Exception as e:
            logger.exception(f"Bulk item {index} failed unexpectedly")
            errors[index] = ItemError(index=index, code=type(e).__name__, message=str(e))
