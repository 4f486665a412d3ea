"""Configuration package."""

from .settings import DEFAULT_RENDITIONS, RenditionSpec, Settings, get_settings

__all__ = ["Settings", "RenditionSpec", "DEFAULT_RENDITIONS", "get_settings"]
