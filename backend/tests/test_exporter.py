"""
Unit tests for export conversion (elements -> layer descriptors).
"""

import numpy as np
import pytest
from PIL import Image, ImageFont

from psdbridge.config import ConversionConfig
from psdbridge.models.document import FlatLayer, LayerNode
from psdbridge.models.elements import Element, ImageElement, TextElement
from psdbridge.services.exporter import DEFAULT_FILL, ExportService
from psdbridge.services.importer import ImportService
from psdbridge.services.rasterize import RasterizeService


class RecordingFonts:
    """Font resolver stub that records requested families."""

    def __init__(self):
        self.requests = []

    def is_available(self, name):
        return False

    def load(self, names, size):
        self.requests.append((list(names), size))
        return ImageFont.load_default(size=max(1, int(round(size))))


@pytest.fixture
def rasterizer():
    return RasterizeService(upscale_factor=2, quality_upscale_factor=3)


@pytest.fixture
def fonts():
    return RecordingFonts()


@pytest.fixture
def exporter(rasterizer, fonts):
    return ExportService(rasterizer=rasterizer, fonts=fonts)


def red_image_element(rasterizer, **kwargs):
    src = rasterizer.to_data_url(Image.new("RGBA", (100, 50), (255, 0, 0, 255)))
    values = {"name": "Photo", "x": 10, "y": 10, "width": 100, "height": 50, "src": src}
    values.update(kwargs)
    return ImageElement(**values)


class TestGeometry:
    """Tests for boxes, opacity and visibility."""

    def test_image_bounds(self, exporter, rasterizer):
        descriptor = exporter.convert_element(red_image_element(rasterizer))

        assert descriptor.bounds == (10, 10, 110, 60)
        assert descriptor.image.size == (100, 50)

    def test_import_export_round_trip_bounds(self, exporter, rasterizer, fonts):
        """An enhanced import keeps its layer box on the way back out."""
        importer = ImportService(
            config=ConversionConfig(enhance_images=True, upscale_factor=2),
            rasterizer=rasterizer,
            fonts=fonts,
            codec=None,
        )
        node = LayerNode(
            name="Photo",
            left=10,
            top=10,
            right=110,
            bottom=60,
            raster=Image.new("RGBA", (100, 50), (0, 128, 0, 255)),
        )
        element = importer.convert_layer(
            FlatLayer(node=node, index=0, original_index=0, parent_index=None, id="layer_a")
        ).element

        descriptor = exporter.convert_element(element)

        assert descriptor.bounds == (10, 10, 110, 60)
        assert descriptor.image.size == (100, 50)
        assert descriptor.image.getpixel((50, 25)) == (0, 128, 0, 255)

    def test_rounding_and_minimum_size(self, exporter):
        element = Element(type="rect", x=10.4, y=19.6, width=0.2, height=2.5)

        descriptor = exporter.convert_element(element)

        assert (descriptor.left, descriptor.top) == (10, 20)
        assert (descriptor.right - descriptor.left, descriptor.bottom - descriptor.top) == (1, 2)

    @pytest.mark.parametrize("opacity,expected", [(1.0, 255), (0.5, 128), (0.0, 0), (0.2, 51)])
    def test_opacity(self, exporter, rasterizer, opacity, expected):
        descriptor = exporter.convert_element(red_image_element(rasterizer, opacity=opacity))

        assert descriptor.opacity == expected

    def test_hidden(self, exporter, rasterizer):
        descriptor = exporter.convert_element(red_image_element(rasterizer, visible=False))

        assert descriptor.hidden is True

    @pytest.mark.parametrize("target,source", [
        ("soft-light", "softLight"),
        ("color-dodge", "colorDodge"),
        ("normal", "normal"),
        ("plus-lighter", "normal"),
    ])
    def test_blend_mode(self, exporter, rasterizer, target, source):
        descriptor = exporter.convert_element(red_image_element(rasterizer, blend_mode=target))

        assert descriptor.blend_mode == source


class TestImages:
    """Tests for bitmap elements."""

    def test_bitmap_redrawn_into_box(self, exporter, rasterizer):
        descriptor = exporter.convert_element(red_image_element(rasterizer, width=40, height=20))

        assert descriptor.image.size == (40, 20)
        assert descriptor.image.getpixel((20, 10)) == (255, 0, 0, 255)

    def test_undecodable_bitmap_gives_empty_layer(self, exporter):
        element = ImageElement(name="Broken", x=0, y=0, width=30, height=20, src="data:image/png;base64,AAAA")

        descriptor = exporter.convert_element(element)

        assert descriptor.image.size == (30, 20)
        assert np.array(descriptor.image)[:, :, 3].max() == 0

    def test_missing_src(self, exporter):
        descriptor = exporter.convert_element(ImageElement(name="Empty", width=5, height=5))

        assert np.array(descriptor.image)[:, :, 3].max() == 0


class TestText:
    """Tests for text elements."""

    def test_text_rendered_with_record(self, exporter, fonts):
        element = TextElement(
            name="Title",
            x=0,
            y=0,
            width=200,
            height=40,
            text="Hello",
            font_family='"Helvetica Neue", Helvetica Neue, Helvetica, Arial, sans-serif',
            font_size=24,
            fill="rgb(255,0,0)",
            align="center",
        )

        descriptor = exporter.convert_element(element)

        assert descriptor.image.size == (200, 40)
        assert np.array(descriptor.image)[:, :, 3].max() > 0
        assert descriptor.text == {
            "text": "Hello",
            "font_name": "Helvetica Neue",
            "font_size": 24,
            "fill_color": (255, 0, 0),
            "alignment": "center",
        }
        assert fonts.requests[-1] == (["Helvetica Neue", "Helvetica", "Arial"], 24)

    def test_generic_only_family(self, exporter):
        element = TextElement(name="T", width=50, height=20, text="x", font_family="sans-serif")

        descriptor = exporter.convert_element(element)

        assert descriptor.text["font_name"] == "Arial"


class TestOtherKinds:
    """Tests for element kinds without a renderer."""

    def test_flat_fill(self, exporter):
        element = Element(type="rect", name="Box", width=10, height=10, fill="#00ff00")

        descriptor = exporter.convert_element(element)

        assert descriptor.image.getpixel((5, 5)) == (0, 255, 0, 255)
        assert descriptor.text is None

    def test_default_fill(self, exporter, rasterizer):
        descriptor = exporter.convert_element(Element(type="svg", width=4, height=4))

        expected = rasterizer.fill_rect(1, 1, DEFAULT_FILL).getpixel((0, 0))
        assert descriptor.image.getpixel((0, 0)) == expected == (204, 204, 204, 255)
