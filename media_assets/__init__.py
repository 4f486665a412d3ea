"""Media asset lifecycle: validation, renditions, storage and metadata."""

from media_assets.bulk import BulkIngestionCoordinator
from media_assets.manager import AssetManager, AssetState
from media_assets.renditions import RenditionGenerator
from media_assets.validation import Validator

__all__ = [
    "AssetManager",
    "AssetState",
    "BulkIngestionCoordinator",
    "RenditionGenerator",
    "Validator",
]
