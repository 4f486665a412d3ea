"""Shared fixtures for the media asset tests."""

import io

import pytest
from PIL import Image
from sqlalchemy.orm import sessionmaker

from config import RenditionSpec
from media_assets.db import create_db_engine, create_session_factory
from media_assets.manager import AssetManager
from media_assets.models import Base
from media_assets.renditions import RenditionGenerator
from media_assets.repositories import InMemoryAssetRepository
from media_assets.storage import InMemoryStorageBackend
from media_assets.validation import Validator


def create_test_image(
    width: int = 400,
    height: int = 300,
    fmt: str = "JPEG",
    mode: str = "RGB",
    seed: int = 0,
) -> bytes:
    """Create an in-memory test image.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        fmt: Pillow format name.
        mode: Pillow image mode.
        seed: Seed for generating different colored images.

    Returns:
        bytes: Encoded image data.
    """
    color = ((seed * 50) % 256, (seed * 100) % 256, (seed * 150) % 256)
    if mode == "RGBA":
        color = color + (128,)
    elif mode == "L":
        color = color[0]
    img = Image.new(mode, (width, height), color=color)

    img_bytes = io.BytesIO()
    img.save(img_bytes, format=fmt)
    return img_bytes.getvalue()


@pytest.fixture
def make_image():
    """Factory fixture for encoded test images."""
    return create_test_image


@pytest.fixture
def rendition_specs():
    return [
        RenditionSpec(name="thumbnail", max_width=200, max_height=200, quality=80),
        RenditionSpec(name="medium", max_width=800, max_height=800, quality=85),
    ]


@pytest.fixture
def storage():
    return InMemoryStorageBackend()


@pytest.fixture
def repository():
    return InMemoryAssetRepository()


@pytest.fixture
def manager(storage, repository, rendition_specs):
    """AssetManager over in-memory storage and metadata."""
    return AssetManager(
        storage=storage,
        repository=repository,
        validator=Validator(),
        generator=RenditionGenerator(rendition_specs),
    )


@pytest.fixture
def db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return create_session_factory(db_engine)
