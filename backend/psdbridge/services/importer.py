"""
Import conversion: PSD layers -> editable elements.

Each flattened layer is converted on its own. A failure in one layer is
recorded as a failed outcome and never stops its siblings.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from PIL import Image

from psdbridge.config import ConversionConfig
from psdbridge.models.document import FlatLayer, TextData, TextStyle
from psdbridge.models.elements import Element, ImageElement, Page, TextElement
from psdbridge.models.responses import ConversionStatus, ConversionSummary, LayerOutcomeInfo
from psdbridge.services.codec import CodecUnavailableError, DocumentCodec, psd_codec
from psdbridge.services.flatten import flatten_layers
from psdbridge.services.fonts import FontResolver, font_resolver
from psdbridge.services.metrics import TextMetrics, resolve_text_metrics
from psdbridge.services.rasterize import RasterizeService, rasterize_service
from psdbridge.services.styles import (
    blend_mode_to_target,
    font_family_with_fallback,
    map_alignment,
    resolve_font_flags,
    rgb_to_css,
    text_decoration,
)

logger = logging.getLogger(__name__)


# ============================================================
# Style extraction strategies
# ============================================================

def first_style_run(text: TextData) -> Optional[TextStyle]:
    if text.style_runs and not text.style_runs[0].is_empty():
        return text.style_runs[0]
    return None


def layer_default_style(text: TextData) -> Optional[TextStyle]:
    if text.default_style is not None and not text.default_style.is_empty():
        return text.default_style
    return None


def fallback_style(text: TextData) -> TextStyle:
    return TextStyle(font_name="Arial", implied_font_size=16.0, fill_color=(0, 0, 0))


# Tried in order; the first one returning a style wins
STYLE_STRATEGIES: Sequence[Callable[[TextData], Optional[TextStyle]]] = (
    first_style_run,
    layer_default_style,
    fallback_style,
)


def select_style(text: TextData, strategies=STYLE_STRATEGIES) -> TextStyle:
    """Pick the style that drives a text layer's conversion."""
    for strategy in strategies:
        style = strategy(text)
        if style is not None:
            return style
    return fallback_style(text)


# ============================================================
# Results
# ============================================================

@dataclass
class LayerOutcome:
    """Result of converting one flattened layer."""
    layer: FlatLayer
    status: ConversionStatus
    element: Optional[Element] = None
    reason: Optional[str] = None

    def to_info(self) -> LayerOutcomeInfo:
        element_type = None
        if self.element is not None:
            element_type = str(getattr(self.element.type, "value", self.element.type))
        return LayerOutcomeInfo(
            index=self.layer.index,
            parent_index=self.layer.parent_index,
            layer_id=self.layer.id,
            name=self.layer.name,
            status=self.status,
            element_id=self.element.id if self.element is not None else None,
            element_type=element_type,
            reason=self.reason,
        )


@dataclass
class ImportResult:
    """Result of importing a whole document."""
    width: int
    height: int
    outcomes: List[LayerOutcome] = field(default_factory=list)
    processing_time_ms: int = 0

    @property
    def elements(self) -> List[Element]:
        return [o.element for o in self.outcomes if o.element is not None]

    def count(self, status: ConversionStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def summary(self) -> ConversionSummary:
        return ConversionSummary(
            total=len(self.outcomes),
            succeeded=self.count(ConversionStatus.SUCCESS),
            skipped=self.count(ConversionStatus.SKIPPED),
            failed=self.count(ConversionStatus.FAILED),
        )

    def to_page(self, name: str = "Page 1") -> Page:
        return Page(name=name, width=self.width, height=self.height, elements=self.elements)


# ============================================================
# Service
# ============================================================

class ImportService:
    """Converts decoded PSD layers into editable elements."""

    def __init__(
        self,
        config: ConversionConfig = None,
        rasterizer: RasterizeService = None,
        fonts: FontResolver = None,
        codec: Optional[DocumentCodec] = psd_codec,
    ):
        self.config = config or ConversionConfig.from_settings()
        self.rasterizer = rasterizer or rasterize_service
        self.fonts = fonts or font_resolver
        self.codec = codec

    def import_document(self, data: bytes, config: ConversionConfig = None) -> ImportResult:
        """
        Decode PSD bytes and convert every layer.

        Args:
            data: Raw PSD file contents
            config: Per-call configuration (defaults to the service's)

        Returns:
            ImportResult with the clamped canvas size and per-layer outcomes

        Raises:
            MalformedInputError: If the container cannot be decoded
            CodecUnavailableError: If no codec is configured
        """
        config = config or self.config
        start_time = time.time()

        if self.codec is None:
            raise CodecUnavailableError(code="CODEC_UNAVAILABLE", message="No document codec configured")

        tree = self.codec.decode(data)
        width = max(1, min(int(tree.width), config.max_canvas_size))
        height = max(1, min(int(tree.height), config.max_canvas_size))
        if (width, height) != (tree.width, tree.height):
            logger.info(f"Canvas {tree.width}x{tree.height} clamped to {width}x{height}")

        flat_layers = flatten_layers(tree.layers)
        outcomes = [self.convert_layer(layer, config) for layer in flat_layers]

        result = ImportResult(
            width=width,
            height=height,
            outcomes=outcomes,
            processing_time_ms=int((time.time() - start_time) * 1000),
        )
        summary = result.summary
        logger.info(
            f"Imported {summary.total} layers in {result.processing_time_ms}ms: "
            f"{summary.succeeded} converted, {summary.skipped} skipped, {summary.failed} failed"
        )
        return result

    def convert_layer(self, layer: FlatLayer, config: ConversionConfig = None) -> LayerOutcome:
        """
        Convert one flattened layer.

        Hidden layers and layers without text or pixels are skipped.
        Exceptions are caught here and reported as a failed outcome.
        """
        config = config or self.config
        node = layer.node

        if layer.hidden:
            logger.debug(f"Skipping hidden layer '{layer.name}'")
            return LayerOutcome(layer=layer, status=ConversionStatus.SKIPPED, reason="hidden")

        if node.error is not None:
            return LayerOutcome(layer=layer, status=ConversionStatus.FAILED, reason=node.error)

        try:
            if node.text is not None:
                element = self._convert_text(layer, config)
            elif node.raster is not None:
                element = self._convert_raster(layer, config)
            else:
                kind = "group" if node.is_group else "no text or pixel data"
                return LayerOutcome(layer=layer, status=ConversionStatus.SKIPPED, reason=kind)
        except Exception as e:
            logger.warning(f"Layer {layer.index} '{layer.name}' failed to convert: {e}")
            return LayerOutcome(layer=layer, status=ConversionStatus.FAILED, reason=str(e))

        return LayerOutcome(layer=layer, status=ConversionStatus.SUCCESS, element=element)

    # ============================================================
    # Helpers
    # ============================================================

    def _common_fields(self, layer: FlatLayer, config: ConversionConfig) -> dict:
        node = layer.node
        source_opacity = max(0.0, min(1.0, node.opacity / 255.0))
        opacity = 1.0 if config.force_full_opacity else round(source_opacity, 4)
        return {
            "id": layer.id,
            "name": node.name,
            "x": float(node.left),
            "y": float(node.top),
            "width": float(layer.width),
            "height": float(layer.height),
            "rotation": 0.0,
            "opacity": opacity,
            "visible": True,
            "blend_mode": blend_mode_to_target(node.blend_mode),
        }

    def _source_metadata(self, layer: FlatLayer) -> dict:
        return {
            "source_opacity": round(max(0.0, min(1.0, layer.node.opacity / 255.0)), 4),
            "source_index": layer.index,
            "parent_index": layer.parent_index,
        }

    def _convert_raster(self, layer: FlatLayer, config: ConversionConfig) -> ImageElement:
        factor = config.effective_upscale
        image = self.rasterizer.rasterize(
            layer.node.raster,
            layer.width,
            layer.height,
            enhance=config.enhance_images,
            factor=factor,
        )

        custom = self._source_metadata(layer)
        if image is None:
            logger.info(f"Layer '{layer.name}' pixels unreadable, using placeholder")
            image = self.rasterizer.placeholder(layer.width, layer.height, layer.name)
            custom.update({"enhanced": False, "upscale_factor": 1, "placeholder": True})
        else:
            custom.update({
                "enhanced": config.enhance_images,
                "upscale_factor": factor if config.enhance_images else 1,
            })

        return ImageElement(
            **self._common_fields(layer, config),
            src=self.rasterizer.to_data_url(image),
            custom=custom,
        )

    def _render_text(self, text: TextData, style: TextStyle, metrics: TextMetrics, width: int, height: int) -> Image.Image:
        font = self.fonts.load(font_family_with_fallback(style.font_name), metrics.font_size_px)
        return self.rasterizer.render_text(
            text.text,
            font=font,
            fill=rgb_to_css(style.fill_color),
            align=map_alignment(style.alignment if style.alignment is not None else text.alignment),
            line_height=metrics.line_height,
            letter_spacing=metrics.letter_spacing,
            width=width,
            height=height,
        )

    def _convert_text(self, layer: FlatLayer, config: ConversionConfig) -> Element:
        text = layer.node.text
        style = select_style(text)
        metrics = resolve_text_metrics(style, text.transform)

        custom = self._source_metadata(layer)
        custom.update({"original_font_name": style.font_name, **metrics.to_metadata()})

        if config.rasterize_text:
            image = None
            if layer.node.raster is not None:
                image = self.rasterizer.rasterize(layer.node.raster, layer.width, layer.height)
            if image is None:
                image = self._render_text(text, style, metrics, layer.width, layer.height)
            custom.update({
                "from_text_layer": True,
                "original_text": text.text,
                "rasterized": True,
                "enhanced": False,
            })
            return ImageElement(
                **self._common_fields(layer, config),
                src=self.rasterizer.to_data_url(image),
                custom=custom,
            )

        bold, italic = resolve_font_flags(style.font_name, style.faux_bold, style.faux_italic)
        custom["font_available"] = self.fonts.is_available(style.font_name)
        alignment = style.alignment if style.alignment is not None else text.alignment

        return TextElement(
            **self._common_fields(layer, config),
            text=text.text,
            font_family=font_family_with_fallback(style.font_name),
            font_size=round(max(1.0, metrics.font_size_px), 3),
            fill=rgb_to_css(style.fill_color),
            align=map_alignment(alignment),
            line_height=round(metrics.line_height, 4),
            letter_spacing=round(metrics.letter_spacing, 4),
            font_weight="bold" if bold else "normal",
            font_style="italic" if italic else "normal",
            text_decoration=text_decoration(style.underline, style.strikethrough),
            custom=custom,
        )


# Global service instance
import_service = ImportService()
