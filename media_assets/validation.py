"""Upload validation: size, decodability, format and dimension checks."""

import io
import logging
from typing import Iterable, Optional

from PIL import Image, UnidentifiedImageError

from config import Settings, get_settings
from media_assets.exceptions import (
    DimensionOutOfRange,
    TooLarge,
    Undecodable,
    UnsupportedFormat,
)
from media_assets.schemas import ImageInfo

logger = logging.getLogger(__name__)


class Validator:
    """Inspects raw upload bytes without side effects.

    Checks run cheapest first: byte length, then the image header (format
    and dimensions), and only then a full pixel decode to catch truncated
    or corrupt payloads.
    """

    def __init__(
        self,
        max_size: int = 5 * 1024 * 1024,
        min_dimension: int = 200,
        max_dimension: int = 5000,
        allowed_formats: Iterable[str] = ("jpeg", "png", "webp"),
    ):
        if min_dimension > max_dimension:
            raise ValueError("min_dimension must not exceed max_dimension")
        self.max_size = max_size
        self.min_dimension = min_dimension
        self.max_dimension = max_dimension
        self.allowed_formats = frozenset(fmt.lower() for fmt in allowed_formats)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Validator":
        settings = settings or get_settings()
        return cls(
            max_size=settings.max_upload_size,
            min_dimension=settings.min_dimension,
            max_dimension=settings.max_dimension,
            allowed_formats=settings.allowed_formats,
        )

    def validate(self, content: bytes) -> ImageInfo:
        """Validate an upload and describe the decoded image.

        Args:
            content: Raw upload bytes.

        Returns:
            ImageInfo: Decoded width, height and lowercase format name.

        Raises:
            TooLarge: If the payload exceeds the configured size.
            Undecodable: If the bytes are not a readable raster image.
            UnsupportedFormat: If the format is outside the allow list.
            DimensionOutOfRange: If width or height is out of bounds.
        """
        if len(content) > self.max_size:
            raise TooLarge(len(content), self.max_size)
        if not content:
            raise Undecodable("Upload is empty")

        try:
            with Image.open(io.BytesIO(content)) as img:
                fmt = (img.format or "").lower()
                if fmt not in self.allowed_formats:
                    raise UnsupportedFormat(fmt or None, self.allowed_formats)

                width, height = img.size
                self._check_dimensions(width, height)

                # Header checks passed, now force a full decode
                img.load()
        except Image.DecompressionBombError as e:
            logger.debug(f"Rejected oversized image: {e}")
            raise DimensionOutOfRange(0, 0, self.min_dimension, self.max_dimension) from e
        except UnidentifiedImageError as e:
            raise Undecodable("Bytes are not a recognised image") from e
        except (OSError, SyntaxError, ValueError) as e:
            # Pillow reports truncated and corrupt data through these
            raise Undecodable(f"Image could not be decoded: {e}") from e

        logger.debug(f"Validated {fmt} image {width}x{height} ({len(content)} bytes)")
        return ImageInfo(width=width, height=height, format=fmt)

    def _check_dimensions(self, width: int, height: int) -> None:
        for value in (width, height):
            if not self.min_dimension <= value <= self.max_dimension:
                raise DimensionOutOfRange(width, height, self.min_dimension, self.max_dimension)
