"""Database models for the media asset service."""

from .db import AssetRecord, Base

__all__ = ["Base", "AssetRecord"]
