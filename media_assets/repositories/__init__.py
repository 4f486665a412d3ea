"""Repository implementations for data access."""

from .asset import AssetDBRepository, AssetRepository, InMemoryAssetRepository

__all__ = [
    "AssetRepository",
    "InMemoryAssetRepository",
    "AssetDBRepository",
]
