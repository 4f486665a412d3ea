"""Image inspection schemas."""

from pydantic import BaseModel, ConfigDict, Field

MIME_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}

EXTENSIONS = {
    "jpeg": "jpg",
    "png": "png",
    "webp": "webp",
}


class ImageInfo(BaseModel):
    """Result of validating an upload.

    ``format`` is the lowercase Pillow format name (``jpeg``, ``png``,
    ``webp``).
    """

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., gt=0, description="Decoded width in pixels")
    height: int = Field(..., gt=0, description="Decoded height in pixels")
    format: str = Field(..., description="Decoded image format")

    @property
    def content_type(self) -> str:
        return MIME_TYPES.get(self.format, f"image/{self.format}")

    @property
    def extension(self) -> str:
        return EXTENSIONS.get(self.format, self.format)
