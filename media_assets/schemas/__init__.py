"""Pydantic schemas for asset records and operation results."""

from .asset import Asset, AssetMetadata, AssetMetadataUpdate, UploadItem
from .bulk import BulkCreateResult, ItemError
from .image import EXTENSIONS, MIME_TYPES, ImageInfo

__all__ = [
    "Asset",
    "AssetMetadata",
    "AssetMetadataUpdate",
    "UploadItem",
    "BulkCreateResult",
    "ItemError",
    "ImageInfo",
    "MIME_TYPES",
    "EXTENSIONS",
]
