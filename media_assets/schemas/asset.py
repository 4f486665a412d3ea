"""Asset-related Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Asset(BaseModel):
    """A stored image bound to a parent entity.

    Instances are immutable snapshots of a committed record. Mutations go
    through the AssetManager, which returns a fresh snapshot.
    """

    model_config = ConfigDict(
        frozen=True,
        from_attributes=True,
        json_schema_extra={
            "examples": [
                {
                    "id": "5f0c6b1e2a4d4f7e9a3b8c1d2e3f4a5b",
                    "parent_id": "listing-42",
                    "original_key": "originals/2026/10/19/9b2f0d6c5a1e4b3c8d7e6f5a4b3c2d1e.jpg",
                    "rendition_keys": {
                        "thumbnail": "thumbnail/2026/10/19/0a1b2c3d4e5f60718293a4b5c6d7e8f9.jpg",
                        "medium": "medium/2026/10/19/f9e8d7c6b5a4938271605f4e3d2c1b0a.jpg"
                    },
                    "alt_text": "Front of the house",
                    "caption": None,
                    "is_primary": True,
                    "order": 0,
                    "created_at": "2026-10-19T09:30:00Z",
                    "content_type": "image/jpeg",
                    "format": "jpeg",
                    "width": 1600,
                    "height": 1200,
                    "size_bytes": 284113,
                    "checksum": "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
                }
            ]
        }
    )

    id: str = Field(..., description="Unique identifier, immutable")
    parent_id: str = Field(..., description="Identifier of the owning entity")
    original_key: str = Field(..., description="Storage key of the source bytes")
    rendition_keys: dict[str, str] = Field(
        default_factory=dict,
        description="Rendition name to storage key"
    )
    alt_text: Optional[str] = Field(default=None, description="Alternative text")
    caption: Optional[str] = Field(default=None, description="Display caption")
    is_primary: bool = Field(default=False, description="Featured image of the parent")
    order: int = Field(default=0, ge=0, description="Display position within the parent")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")

    content_type: str = Field(..., description="MIME type of the original")
    format: str = Field(..., description="Decoded format of the original")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    size_bytes: int = Field(..., gt=0)
    checksum: str = Field(
        ...,
        description="SHA-256 of the original bytes",
        pattern="^[a-f0-9]{64}$"
    )

    @property
    def storage_keys(self) -> list[str]:
        """Every storage key this asset owns, original first."""
        return [self.original_key, *self.rendition_keys.values()]


class AssetMetadata(BaseModel):
    """Caller-supplied descriptive fields for a new asset."""

    alt_text: Optional[str] = Field(default=None, max_length=1000)
    caption: Optional[str] = Field(default=None, max_length=2000)
    order: Optional[int] = Field(
        default=None,
        ge=0,
        description="Explicit display position; appended after the last asset when omitted"
    )


class AssetMetadataUpdate(BaseModel):
    """Partial update of an asset's mutable fields.

    Only fields that were explicitly set are applied, so passing
    ``caption=None`` clears the caption while omitting it keeps it.
    """

    model_config = ConfigDict(extra="forbid")

    alt_text: Optional[str] = Field(default=None, max_length=1000)
    caption: Optional[str] = Field(default=None, max_length=2000)
    order: Optional[int] = Field(default=None, ge=0)

    def changes(self) -> dict:
        """Return only the fields the caller set."""
        fields = self.model_dump(exclude_unset=True)
        if "order" in fields and fields["order"] is None:
            # order is not nullable
            del fields["order"]
        return fields


class UploadItem(BaseModel):
    """One file of a bulk upload together with its optional metadata."""

    model_config = ConfigDict(frozen=True)

    content: bytes
    metadata: Optional[AssetMetadata] = None
