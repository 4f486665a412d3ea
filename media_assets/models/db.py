"""SQLAlchemy database models."""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import declarative_base

from media_assets.schemas import Asset

# Create the declarative base
Base = declarative_base()


class AssetRecord(Base):
    """Model representing one stored image bound to a parent entity.

    The parent table belongs to the caller, so ``parent_id`` is an indexed
    identifier rather than a foreign key.
    """
    __tablename__ = "assets"
    __table_args__ = (
        Index("ix_assets_parent_primary", "parent_id", "is_primary"),
        Index("ix_assets_parent_order", "parent_id", "order"),
        # At most one primary asset per parent in any committed state
        Index(
            "uq_assets_one_primary_per_parent",
            "parent_id",
            unique=True,
            sqlite_where=text("is_primary = 1"),
            postgresql_where=text("is_primary"),
        ),
    )

    # uuid4 hex
    id = Column(String(32), primary_key=True, nullable=False)

    parent_id = Column(String(255), nullable=False, index=True)

    # Storage keys of the original and of each rendition by name
    original_key = Column(String(512), nullable=False, unique=True)
    rendition_keys = Column(JSON, nullable=False, default=dict)

    alt_text = Column(Text, nullable=True)
    caption = Column(Text, nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    # Facts about the original, fixed at creation
    content_type = Column(String(64), nullable=False)
    format = Column(String(16), nullable=False)
    width = Column(Integer, nullable=False)
    height = Column(Integer, nullable=False)
    size_bytes = Column(Integer, nullable=False)
    checksum = Column(String(64), nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"<AssetRecord(id={self.id[:8]}..., parent_id={self.parent_id}, "
            f"order={self.order}, is_primary={self.is_primary})>"
        )

    @classmethod
    def from_asset(cls, asset: Asset) -> "AssetRecord":
        return cls(**asset.model_dump())

    def to_asset(self) -> Asset:
        created_at = self.created_at
        if created_at is not None and created_at.tzinfo is None:
            # SQLite drops tzinfo; values are always written as UTC
            created_at = created_at.replace(tzinfo=timezone.utc)
        return Asset(
            id=self.id,
            parent_id=self.parent_id,
            original_key=self.original_key,
            rendition_keys=dict(self.rendition_keys or {}),
            alt_text=self.alt_text,
            caption=self.caption,
            is_primary=bool(self.is_primary),
            order=self.order,
            created_at=created_at,
            content_type=self.content_type,
            format=self.format,
            width=self.width,
            height=self.height,
            size_bytes=self.size_bytes,
            checksum=self.checksum,
        )
