"""Tests for rendition generation."""

import io

import pytest
from PIL import Image, features

from config import RenditionSpec, Settings
from media_assets.exceptions import GenerationFailed
from media_assets.renditions import RenditionGenerator, fit_within


def open_image(data: bytes) -> Image.Image:
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


class TestFitWithin:

    @pytest.mark.parametrize("size, box, expected", [
        ((1000, 500), (200, 200), (200, 100)),
        ((500, 1000), (200, 200), (100, 200)),
        ((1000, 1000), (200, 200), (200, 200)),
        ((4000, 3000), (800, 800), (800, 600)),
        ((300, 900), (800, 800), (267, 800)),
        ((150, 100), (200, 200), (150, 100)),  # never upscaled
        ((5000, 200), (200, 200), (200, 8)),
    ])
    def test_longest_side_fit(self, size, box, expected):
        assert fit_within(*size, *box) == expected

    def test_never_collapses_to_zero(self):
        assert fit_within(5000, 1, 200, 200) == (200, 1)


class TestRenditionGenerator:
    """Test cases for RenditionGenerator."""

    @pytest.fixture
    def generator(self, rendition_specs):
        return RenditionGenerator(rendition_specs)

    def test_generates_every_spec(self, generator, make_image):
        renditions = generator.generate(make_image(1600, 1200))

        assert set(renditions) == {"thumbnail", "medium"}
        assert open_image(renditions["thumbnail"]).size == (200, 150)
        assert open_image(renditions["medium"]).size == (800, 600)
        assert open_image(renditions["thumbnail"]).format == "JPEG"

    @pytest.mark.parametrize("size", [(1600, 1200), (300, 2000), (201, 5000), (999, 999)])
    def test_thumbnail_fits_and_touches_bound(self, size, make_image):
        spec = RenditionSpec(name="thumbnail", max_width=200, max_height=200)
        renditions = RenditionGenerator().generate(make_image(*size, fmt="PNG"), [spec])

        width, height = open_image(renditions["thumbnail"]).size
        assert width <= 200 and height <= 200
        assert width == 200 or height == 200

    def test_smaller_original_is_not_upscaled(self, make_image):
        spec = RenditionSpec(name="medium", max_width=800, max_height=800)
        renditions = RenditionGenerator().generate(make_image(400, 300), [spec])
        assert open_image(renditions["medium"]).size == (400, 300)

    def test_deterministic_output(self, generator, make_image):
        original = make_image(1024, 768, seed=5)
        assert generator.generate(original) == generator.generate(original)

    def test_alpha_is_flattened_for_jpeg(self, make_image):
        spec = RenditionSpec(name="thumbnail", max_width=200, max_height=200, format="jpeg")
        # Fully transparent pixels must come out as the background colour
        img = Image.new("RGBA", (400, 400), (255, 0, 0, 0))
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")

        renditions = RenditionGenerator(background="#00ff00").generate(buffer.getvalue(), [spec])
        thumb = open_image(renditions["thumbnail"])

        assert thumb.mode == "RGB"
        r, g, b = thumb.getpixel((100, 100))
        assert g > 200 and r < 50 and b < 50

    def test_alpha_is_kept_for_png(self, make_image):
        spec = RenditionSpec(name="thumbnail", max_width=200, max_height=200, format="png")
        renditions = RenditionGenerator().generate(make_image(400, 400, fmt="PNG", mode="RGBA"), [spec])
        thumb = open_image(renditions["thumbnail"])

        assert thumb.format == "PNG"
        assert thumb.mode == "RGBA"

    @pytest.mark.skipif(not features.check("webp"), reason="Pillow built without WebP")
    def test_webp_rendition(self, make_image):
        spec = RenditionSpec(name="medium", max_width=300, max_height=300, format="webp")
        renditions = RenditionGenerator().generate(make_image(600, 450), [spec])
        thumb = open_image(renditions["medium"])
        assert thumb.format == "WEBP"
        assert thumb.size == (300, 225)

    def test_grayscale_original(self, generator, make_image):
        renditions = generator.generate(make_image(400, 400, fmt="PNG", mode="L"))
        assert open_image(renditions["thumbnail"]).size == (200, 200)

    def test_exif_orientation_is_applied(self):
        img = Image.new("RGB", (600, 300), "blue")
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 degrees clockwise on display
        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", exif=exif.tobytes())

        spec = RenditionSpec(name="thumbnail", max_width=200, max_height=200)
        renditions = RenditionGenerator().generate(buffer.getvalue(), [spec])

        assert open_image(renditions["thumbnail"]).size == (100, 200)

    def test_undecodable_original(self, generator):
        with pytest.raises(GenerationFailed, match="decode"):
            generator.generate(b"definitely not an image")

    def test_all_or_nothing(self, generator, make_image, monkeypatch):
        calls = []
        original_render = RenditionGenerator._render

        def failing_render(self, source, spec):
            calls.append(spec.name)
            if spec.name == "medium":
                raise OSError("encoder exploded")
            return original_render(self, source, spec)

        monkeypatch.setattr(RenditionGenerator, "_render", failing_render)

        with pytest.raises(GenerationFailed, match="encoder exploded"):
            generator.generate(make_image())
        assert calls == ["thumbnail", "medium"]

    def test_duplicate_spec_names(self, make_image):
        spec = RenditionSpec(name="thumbnail", max_width=10, max_height=10)
        with pytest.raises(GenerationFailed, match="Duplicate"):
            RenditionGenerator().generate(make_image(), [spec, spec])

    def test_retryable(self):
        assert GenerationFailed.retryable is True

    def test_from_settings(self):
        settings = Settings(_env_file=None, rendition_background="black")
        generator = RenditionGenerator.from_settings(settings)

        assert [spec.name for spec in generator.specs] == ["thumbnail", "medium"]
        assert generator.background == (0, 0, 0)
