"""Deterministic rendition (resized copy) generation."""

import io
import logging
from typing import Optional, Sequence

from PIL import Image, ImageColor, ImageOps

from config import RenditionSpec, Settings, get_settings
from media_assets.exceptions import GenerationFailed

logger = logging.getLogger(__name__)

# Formats able to carry an alpha channel
_ALPHA_FORMATS = {"png", "webp"}

_PIL_FORMATS = {"jpeg": "JPEG", "png": "PNG", "webp": "WEBP"}


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Longest-side fit of ``width x height`` into a bounding box.

    Aspect ratio is preserved and the result never exceeds either bound.
    Images already inside the box are returned unchanged (no upscaling).
    """
    scale = min(max_width / width, max_height / height, 1.0)
    if scale == 1.0:
        return width, height
    new_width = min(max_width, max(1, round(width * scale)))
    new_height = min(max_height, max(1, round(height * scale)))
    return new_width, new_height


def _has_transparency(img: Image.Image) -> bool:
    if img.mode in ("RGBA", "LA", "PA"):
        return True
    return img.mode == "P" and "transparency" in img.info


class RenditionGenerator:
    """Produces resized renditions of an original image.

    Generation is a pure function of the input bytes and the specs: encoder
    options are fixed and no metadata (EXIF, ICC, timestamps) is copied to
    the output, so repeated calls yield identical bytes for a given Pillow
    version.
    """

    def __init__(
        self,
        specs: Optional[Sequence[RenditionSpec]] = None,
        background: str = "#ffffff",
    ):
        self.specs = list(specs) if specs is not None else []
        self.background = ImageColor.getrgb(background)[:3]

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RenditionGenerator":
        settings = settings or get_settings()
        return cls(specs=settings.renditions, background=settings.rendition_background)

    def generate(
        self,
        original: bytes,
        specs: Optional[Sequence[RenditionSpec]] = None,
    ) -> dict[str, bytes]:
        """Generate every requested rendition of ``original``.

        Args:
            original: Bytes of a previously validated image.
            specs: Renditions to produce. Defaults to the generator's specs.

        Returns:
            dict[str, bytes]: Encoded rendition bytes keyed by spec name.

        Raises:
            GenerationFailed: If any single rendition cannot be produced.
                No partial result is returned.
        """
        specs = list(specs) if specs is not None else self.specs
        names = [spec.name for spec in specs]
        if len(set(names)) != len(names):
            raise GenerationFailed(f"Duplicate rendition names: {names}")

        try:
            source = self._decode(original)
        except Exception as e:
            logger.warning(f"Could not decode original for renditions: {e}")
            raise GenerationFailed(f"Failed to decode original: {e}") from e

        renditions: dict[str, bytes] = {}
        try:
            for spec in specs:
                renditions[spec.name] = self._render(source, spec)
        except Exception as e:
            logger.warning(f"Rendition generation failed: {e}")
            raise GenerationFailed(f"Failed to generate rendition: {e}") from e
        finally:
            source.close()

        logger.debug(f"Generated renditions {sorted(renditions)} from {len(original)} bytes")
        return renditions

    def _decode(self, original: bytes) -> Image.Image:
        with Image.open(io.BytesIO(original)) as img:
            img.load()
            # Apply EXIF orientation so renditions display upright
            transposed = ImageOps.exif_transpose(img)
            if transposed is img:
                transposed = img.copy()
        return transposed

    def _render(self, source: Image.Image, spec: RenditionSpec) -> bytes:
        size = fit_within(source.width, source.height, spec.max_width, spec.max_height)

        if spec.format in _ALPHA_FORMATS:
            img = self._prepare_with_alpha(source)
        else:
            img = self._flatten(source)

        if img.size != size:
            img = img.resize(size, Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        save_kwargs: dict = {"format": _PIL_FORMATS[spec.format]}
        if spec.format == "jpeg":
            save_kwargs.update(quality=spec.quality, optimize=False, progressive=False)
        elif spec.format == "webp":
            save_kwargs.update(quality=spec.quality, method=4)
        img.save(buffer, **save_kwargs)
        return buffer.getvalue()

    def _flatten(self, img: Image.Image) -> Image.Image:
        """Composite transparent images onto the background colour."""
        if _has_transparency(img):
            rgba = img.convert("RGBA")
            flat = Image.new("RGB", rgba.size, self.background)
            flat.paste(rgba, mask=rgba.getchannel("A"))
            return flat
        if img.mode in ("RGB", "L"):
            return img
        return img.convert("RGB")

    def _prepare_with_alpha(self, img: Image.Image) -> Image.Image:
        if _has_transparency(img):
            return img if img.mode == "RGBA" else img.convert("RGBA")
        if img.mode in ("RGB", "L"):
            return img
        return img.convert("RGB")
