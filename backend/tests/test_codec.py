"""
Tests for the psd-tools codec adapter.
"""

import numpy as np
import pytest
from PIL import Image, ImageFont
from psd_tools.constants import BlendMode as PsdBlendMode

from psdbridge.config import ConversionConfig
from psdbridge.models.document import LayerDescriptor, LayerDocument
from psdbridge.models.elements import TextElement
from psdbridge.models.responses import ConversionStatus
from psdbridge.services.codec import (
    DocumentCodec,
    MalformedInputError,
    PsdToolsCodec,
    blend_mode_from_psd,
    blend_mode_to_psd,
)
from psdbridge.services.exporter import ExportService
from psdbridge.services.importer import ImportService
from psdbridge.services.rasterize import RasterizeService


class FakeTypeLayer:
    """Minimal stand-in for a psd-tools type layer."""

    kind = "type"
    visible = True
    opacity = 255
    blend_mode = PsdBlendMode.NORMAL

    def __init__(self, name="Title", text="Hello", justification=2, runs=None, transform=(2.0, 0.0, 0.0, 2.0, 10.0, 20.0)):
        self.name = name
        self.text = text
        self.bbox = (10, 20, 110, 60)
        self.transform = transform
        self.engine_dict = {
            "StyleRun": {"RunArray": runs if runs is not None else [{"StyleSheet": {"StyleSheetData": BOLD_SHEET}}]},
            "ParagraphRun": {
                "RunArray": [{"ParagraphSheet": {"Properties": {"Justification": justification}}}],
            },
        }
        self.resource_dict = {
            "FontSet": [{"Name": "AdobeInvisFont"}, {"Name": "Helvetica-Bold"}],
            "TheNormalStyleSheet": 0,
            "StyleSheetSet": [
                {"Name": "Normal RGB", "StyleSheetData": {"Font": 0, "FontSize": 12.0, "AutoLeading": True, "Leading": 99.0}},
            ],
        }

    def is_group(self):
        return False

    def has_pixels(self):
        return False


BOLD_SHEET = {
    "Font": 1,
    "FontSize": 24.0,
    "FillColor": {"Type": 1, "Values": [1.0, 1.0, 0.0, 0.0]},
    "Tracking": 50,
    "Leading": 30.0,
    "AutoLeading": False,
    "HorizontalScale": 1.5,
    "VerticalScale": 0.8,
    "FauxBold": True,
    "Underline": True,
}


class FakePsd(list):
    width = 200
    height = 100
    color_mode = None


def fake_psd_opener(layers):
    class FakePSDImage:
        @staticmethod
        def open(stream):
            return FakePsd(layers)
    return FakePSDImage


class NoFonts:
    def is_available(self, name):
        return False

    def load(self, names, size):
        return ImageFont.load_default(size=max(1, int(round(size))))


@pytest.fixture
def codec():
    return PsdToolsCodec()


@pytest.fixture
def sample_document():
    return LayerDocument(
        width=120,
        height=80,
        layers=[
            LayerDescriptor(
                name="Red",
                left=10,
                top=10,
                right=60,
                bottom=40,
                opacity=128,
                blend_mode="multiply",
                image=Image.new("RGBA", (50, 30), (255, 0, 0, 255)),
            ),
            LayerDescriptor(
                name="Hidden",
                left=0,
                top=0,
                right=20,
                bottom=20,
                hidden=True,
                image=Image.new("RGBA", (20, 20), (0, 0, 255, 255)),
            ),
        ],
    )


class TestSignature:
    """Tests for input validation."""

    @pytest.mark.parametrize("data", [b"", b"PK\x03\x04rest", b"%PDF-1.4", b"8BP"])
    def test_bad_magic(self, codec, data):
        with pytest.raises(MalformedInputError) as exc_info:
            codec.decode(data)

        assert exc_info.value.code == "INVALID_SIGNATURE"

    def test_truncated_container(self, codec):
        with pytest.raises(MalformedInputError) as exc_info:
            codec.decode(b"8BPS\x00\x01garbage")

        assert exc_info.value.code == "UNREADABLE_DOCUMENT"


class TestBlendModes:
    """Tests for psd-tools blend mode names."""

    def test_from_psd(self):
        assert blend_mode_from_psd(PsdBlendMode.SOFT_LIGHT) == "softLight"
        assert blend_mode_from_psd(PsdBlendMode.NORMAL) == "normal"
        assert blend_mode_from_psd(PsdBlendMode.PASS_THROUGH) == "passThrough"

    def test_to_psd(self):
        assert blend_mode_to_psd("colorDodge") == PsdBlendMode.COLOR_DODGE
        assert blend_mode_to_psd("normal") == PsdBlendMode.NORMAL

    @pytest.mark.parametrize("value", ["notAMode", None, ""])
    def test_to_psd_unknown(self, value):
        assert blend_mode_to_psd(value) == PsdBlendMode.NORMAL


class TestRoundTrip:
    """Encode with psd-tools, then decode the result."""

    def test_protocol(self, codec):
        assert isinstance(codec, DocumentCodec)

    def test_encode_writes_psd(self, codec, sample_document):
        data = codec.encode(sample_document)

        assert data[:4] == b"8BPS"

    def test_decode_layers(self, codec, sample_document):
        tree = codec.decode(codec.encode(sample_document))

        assert (tree.width, tree.height) == (120, 80)
        assert [layer.name for layer in tree.layers] == ["Red", "Hidden"]

        red = tree.layers[0]
        assert (red.left, red.top, red.right, red.bottom) == (10, 10, 60, 40)
        assert red.opacity == 128
        assert red.blend_mode == "multiply"
        assert red.hidden is False
        assert red.text is None
        assert tree.layers[1].hidden is True

    def test_pixels_loaded_lazily(self, codec, sample_document):
        tree = codec.decode(codec.encode(sample_document))
        raster = tree.layers[0].raster

        assert callable(raster)
        image = raster()
        assert image.size == (50, 30)
        assert image.convert("RGBA").getpixel((25, 15)) == (255, 0, 0, 255)


class TestTypeLayers:
    """Tests for reading type-layer engine data."""

    def test_style_run_fields(self, codec):
        text = codec._convert_layer(FakeTypeLayer()).text
        style = text.style_runs[0]

        assert text.text == "Hello"
        assert style.font_name == "Helvetica-Bold"
        assert style.font_size == 24.0
        assert style.fill_color == (1.0, 0.0, 0.0)
        assert style.tracking == 50.0
        assert style.leading == 30.0
        assert style.horizontal_scale == pytest.approx(150.0)
        assert style.vertical_scale == pytest.approx(80.0)
        assert style.faux_bold is True
        assert style.faux_italic is None
        assert style.underline is True
        assert style.strikethrough is None

    def test_default_style_sheet(self, codec):
        default = codec._convert_layer(FakeTypeLayer()).text.default_style

        assert default.font_name == "AdobeInvisFont"
        assert default.font_size == 12.0
        # AutoLeading ignores the stored leading
        assert default.leading is None
        assert default.fill_color is None

    def test_empty_runs_dropped(self, codec):
        layer = FakeTypeLayer(runs=[{"StyleSheet": {"StyleSheetData": {}}}])

        assert codec._convert_layer(layer).text.style_runs == []

    def test_transform(self, codec):
        text = codec._convert_layer(FakeTypeLayer()).text

        assert text.transform == (2.0, 0.0, 0.0, 2.0, 10.0, 20.0)

    def test_no_transform(self, codec):
        assert codec._convert_layer(FakeTypeLayer(transform=None)).text.transform is None

    @pytest.mark.parametrize("code,expected", [(0, "left"), (1, "right"), (2, "center"), (3, "justify"), (4, "justify")])
    def test_justification(self, codec, code, expected):
        text = codec._convert_layer(FakeTypeLayer(justification=code)).text

        assert text.alignment == expected

    def test_node_geometry(self, codec):
        node = codec._convert_layer(FakeTypeLayer())

        assert (node.left, node.top, node.right, node.bottom) == (10, 20, 110, 60)
        assert node.blend_mode == "normal"
        assert node.raster is None
        assert node.error is None

    def test_unreadable_text_recorded(self, codec):
        node = codec._convert_layer(FakeTypeLayer(name="Broken", justification="bogus"))

        assert node.text is None
        assert "bogus" in node.error

    def test_bad_layer_fails_alone(self, codec, monkeypatch):
        monkeypatch.setattr(
            "psdbridge.services.codec.PSDImage",
            fake_psd_opener([FakeTypeLayer(name="Good"), FakeTypeLayer(name="Broken", justification="bogus")]),
        )
        service = ImportService(
            config=ConversionConfig(rasterize_text=False),
            rasterizer=RasterizeService(),
            fonts=NoFonts(),
            codec=codec,
        )

        result = service.import_document(b"8BPS" + b"\x00" * 22)

        assert (result.width, result.height) == (200, 100)
        assert result.summary.succeeded == 1
        assert result.summary.failed == 1
        good, broken = result.outcomes
        assert isinstance(good.element, TextElement)
        assert good.element.fill == "rgb(255,0,0)"
        assert broken.status == ConversionStatus.FAILED
        assert "bogus" in broken.reason


class TestTextExport:
    """Exported text is written as pixels."""

    def test_text_reimports_as_pixels(self, codec):
        element = TextElement(
            name="Title",
            x=0,
            y=0,
            width=200,
            height=40,
            text="Hello",
            font_size=24,
            fill="rgb(255,0,0)",
        )
        descriptor = ExportService(rasterizer=RasterizeService(), fonts=NoFonts()).convert_element(element)
        document = LayerDocument(width=200, height=40, layers=[descriptor])

        layer = codec.decode(codec.encode(document)).layers[0]

        assert layer.name == "Title"
        assert layer.text is None
        assert callable(layer.raster)
        assert np.array(layer.raster().convert("RGBA"))[:, :, 3].max() > 0
