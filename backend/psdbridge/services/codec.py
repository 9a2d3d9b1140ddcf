"""
Binary container codec.

The conversion pipeline only depends on the DocumentCodec protocol.
PsdToolsCodec implements it on top of psd-tools: decode builds the
DocumentTree (layer tree, type-layer styles, lazy pixel loaders) and
encode writes one pixel layer per LayerDescriptor.
"""

import io
import logging
import re
from typing import Any, List, Optional, Protocol, runtime_checkable

from PIL import Image

from psd_tools import PSDImage
from psd_tools.api.layers import PixelLayer
from psd_tools.constants import BlendMode as PsdBlendMode

from psdbridge.models.document import DocumentTree, LayerDocument, LayerNode, TextData, TextStyle

logger = logging.getLogger(__name__)

PSD_SIGNATURE = b"8BPS"

# Paragraph justification codes stored in type-layer engine data
PSD_JUSTIFICATION = {0: "left", 1: "right", 2: "center"}


class CodecError(Exception):
    """Error raised by a document codec."""
    def __init__(self, code: str, message: str, details: dict = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class MalformedInputError(CodecError):
    """Input is not a readable PSD container."""


class CodecUnavailableError(CodecError):
    """The codec cannot be invoked at all."""


@runtime_checkable
class DocumentCodec(Protocol):
    """Decode/encode boundary between bytes and the layer model."""

    def decode(self, data: bytes) -> DocumentTree:
        ...

    def encode(self, document: LayerDocument) -> bytes:
        ...


def _value(v: Any) -> Any:
    """Unwrap psd-tools engine-data scalars."""
    return getattr(v, "value", v)


def _lookup(container: Any, *keys: Any) -> Any:
    """Walk nested engine-data keys; None when any step is missing."""
    current = container
    for key in keys:
        if current is None:
            return None
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            return None
    return current


def _number(v: Any) -> Optional[float]:
    v = _value(v)
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def _flag(v: Any) -> Optional[bool]:
    v = _value(v)
    return None if v is None else bool(v)


def blend_mode_from_psd(mode: Any) -> str:
    """psd-tools BlendMode -> camelCase name (SOFT_LIGHT -> softLight)."""
    name = getattr(mode, "name", None) or str(mode)
    parts = name.lower().split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


def blend_mode_to_psd(mode: Optional[str]) -> PsdBlendMode:
    """camelCase name -> psd-tools BlendMode, NORMAL when unknown."""
    key = re.sub(r"([A-Z])", r"_\1", mode or "normal").upper()
    try:
        return PsdBlendMode[key]
    except KeyError:
        logger.debug(f"Unknown blend mode {mode!r}, writing NORMAL")
        return PsdBlendMode.NORMAL


class PsdToolsCodec:
    """DocumentCodec backed by psd-tools."""

    name = "psd-tools"

    # ============================================================
    # Decode
    # ============================================================

    def decode(self, data: bytes) -> DocumentTree:
        """
        Decode PSD bytes into a DocumentTree.

        Raises:
            MalformedInputError: Bad signature or unreadable container
        """
        if not data or bytes(data[:4]) != PSD_SIGNATURE:
            raise MalformedInputError(
                code="INVALID_SIGNATURE",
                message="Not a PSD file (missing 8BPS signature)",
                details={"signature": bytes(data[:4]).hex() if data else ""},
            )

        try:
            psd = PSDImage.open(io.BytesIO(data))
        except Exception as e:
            raise MalformedInputError(
                code="UNREADABLE_DOCUMENT",
                message=f"Cannot read PSD container: {e}",
            )

        color_mode = getattr(psd, "color_mode", None)
        tree = DocumentTree(
            width=int(psd.width),
            height=int(psd.height),
            color_mode=getattr(color_mode, "name", str(color_mode or "RGB")),
            layers=[self._convert_layer(layer) for layer in psd],
        )
        logger.info(f"Decoded PSD {tree.width}x{tree.height} with {tree.count_layers()} layers")
        return tree

    def _convert_layer(self, layer) -> LayerNode:
        left, top, right, bottom = layer.bbox
        node = LayerNode(
            name=layer.name or "Layer",
            left=int(left),
            top=int(top),
            right=int(right),
            bottom=int(bottom),
            hidden=not layer.visible,
            opacity=int(layer.opacity),
            blend_mode=blend_mode_from_psd(layer.blend_mode),
        )

        if layer.is_group():
            node.children = [self._convert_layer(child) for child in layer]
            return node

        if layer.kind == "type":
            try:
                node.text = self._text_data(layer)
            except Exception as e:
                logger.warning(f"Layer '{node.name}' has unreadable text data: {e}")
                node.error = f"Unreadable text data: {e}"

        if layer.has_pixels():
            # Evaluated by the rasterizer
            node.raster = layer.topil

        return node

    def _style_from_sheet(self, sheet: Any, font_set: Any) -> TextStyle:
        style = TextStyle()
        if sheet is None:
            return style

        font_index = _value(_lookup(sheet, "Font"))
        if font_index is not None:
            name = _value(_lookup(font_set, int(font_index), "Name"))
            style.font_name = str(name).strip("\x00") if name else None

        style.font_size = _number(_lookup(sheet, "FontSize"))

        argb = _lookup(sheet, "FillColor", "Values")
        if argb is not None:
            values = [_number(v) for v in argb]
            if len(values) >= 4 and None not in values:
                style.fill_color = (values[1], values[2], values[3])

        style.tracking = _number(_lookup(sheet, "Tracking"))
        if not _flag(_lookup(sheet, "AutoLeading")):
            style.leading = _number(_lookup(sheet, "Leading"))

        # Engine data stores scales as fractions
        horizontal = _number(_lookup(sheet, "HorizontalScale"))
        vertical = _number(_lookup(sheet, "VerticalScale"))
        style.horizontal_scale = horizontal * 100.0 if horizontal is not None else None
        style.vertical_scale = vertical * 100.0 if vertical is not None else None

        style.faux_bold = _flag(_lookup(sheet, "FauxBold"))
        style.faux_italic = _flag(_lookup(sheet, "FauxItalic"))
        style.underline = _flag(_lookup(sheet, "Underline"))
        style.strikethrough = _flag(_lookup(sheet, "Strikethrough"))
        return style

    def _text_data(self, layer) -> TextData:
        engine = layer.engine_dict
        resources = layer.resource_dict
        font_set = _lookup(resources, "FontSet")

        runs: List[TextStyle] = []
        for run in _lookup(engine, "StyleRun", "RunArray") or []:
            style = self._style_from_sheet(_lookup(run, "StyleSheet", "StyleSheetData"), font_set)
            if not style.is_empty():
                runs.append(style)

        default_style = None
        normal_index = _value(_lookup(resources, "TheNormalStyleSheet"))
        if normal_index is not None:
            sheet = _lookup(resources, "StyleSheetSet", int(normal_index), "StyleSheetData")
            default_style = self._style_from_sheet(sheet, font_set)

        alignment = None
        justification = _value(
            _lookup(engine, "ParagraphRun", "RunArray", 0, "ParagraphSheet", "Properties", "Justification")
        )
        if justification is not None:
            alignment = PSD_JUSTIFICATION.get(int(justification), "justify")

        transform = getattr(layer, "transform", None)
        return TextData(
            text=layer.text or "",
            style_runs=runs,
            default_style=default_style,
            transform=tuple(float(v) for v in transform) if transform else None,
            alignment=alignment,
        )

    # ============================================================
    # Encode
    # ============================================================

    def encode(self, document: LayerDocument) -> bytes:
        """Write a LayerDocument as an RGBA PSD file."""
        psd = PSDImage.new("RGBA", (int(document.width), int(document.height)))

        for descriptor in document.layers:
            width = max(1, descriptor.right - descriptor.left)
            height = max(1, descriptor.bottom - descriptor.top)
            image = descriptor.image
            if image is None:
                image = Image.new("RGBA", (width, height), (0, 0, 0, 0))

            layer = PixelLayer.frompil(image, psd, descriptor.name, descriptor.top, descriptor.left)
            # Older psd-tools releases do not attach the new layer
            if layer not in psd:
                psd.append(layer)

            layer.opacity = max(0, min(255, int(descriptor.opacity)))
            layer.visible = not descriptor.hidden
            layer.blend_mode = blend_mode_to_psd(descriptor.blend_mode)

        buffer = io.BytesIO()
        psd.save(buffer)
        logger.info(f"Encoded PSD {document.width}x{document.height} with {len(document.layers)} layers")
        return buffer.getvalue()


# Global codec instance
psd_codec = PsdToolsCodec()
