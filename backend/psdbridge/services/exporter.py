"""
Export conversion: editable elements -> PSD layer descriptors.
"""

import logging

from PIL import Image

from psdbridge.models.document import LayerDescriptor
from psdbridge.models.elements import Element, ImageElement, TextElement
from psdbridge.services.fonts import FontResolver, font_resolver
from psdbridge.services.rasterize import RasterizeService, rasterize_service
from psdbridge.services.styles import (
    DEFAULT_FONT_NAME,
    blend_mode_to_source,
    map_alignment,
    parse_css_color,
    split_font_family,
)

logger = logging.getLogger(__name__)

# Flat fill for element kinds that cannot be drawn (shapes, svg, ...)
DEFAULT_FILL = "#cccccc"


class ExportService:
    """Renders elements into raster layer records."""

    def __init__(
        self,
        rasterizer: RasterizeService = None,
        fonts: FontResolver = None,
        default_fill: str = DEFAULT_FILL,
    ):
        self.rasterizer = rasterizer or rasterize_service
        self.fonts = fonts or font_resolver
        self.default_fill = default_fill

    def convert_element(self, element: Element) -> LayerDescriptor:
        """
        Convert one element into a LayerDescriptor.

        Raises whatever rendering raises; the caller decides whether a
        failing element aborts its page.
        """
        left = int(round(element.x))
        top = int(round(element.y))
        width = max(1, int(round(element.width)))
        height = max(1, int(round(element.height)))

        text_record = None
        if isinstance(element, TextElement):
            image, text_record = self._render_text(element, width, height)
        elif isinstance(element, ImageElement):
            image = self._redraw_image(element, width, height)
        else:
            logger.debug(f"Element '{element.name}' of kind '{element.type}' exported as flat fill")
            image = self.rasterizer.fill_rect(width, height, element.fill or self.default_fill)

        return LayerDescriptor(
            name=element.name,
            left=left,
            top=top,
            right=left + width,
            bottom=top + height,
            opacity=int(round(max(0.0, min(1.0, element.opacity)) * 255)),
            hidden=not element.visible,
            blend_mode=blend_mode_to_source(element.blend_mode),
            image=image,
            text=text_record,
        )

    def _redraw_image(self, element: ImageElement, width: int, height: int) -> Image.Image:
        image = self.rasterizer.rasterize(element.src, width, height) if element.src else None
        if image is None:
            logger.warning(f"Image element '{element.name}' has no decodable bitmap, exporting empty layer")
            return self.rasterizer.empty(width, height)
        return image

    def _render_text(self, element: TextElement, width: int, height: int):
        families = split_font_family(element.font_family)
        font = self.fonts.load(families, element.font_size)
        align = map_alignment(element.align)

        image = self.rasterizer.render_text(
            element.text,
            font=font,
            fill=element.fill,
            align=align,
            line_height=element.line_height,
            letter_spacing=element.letter_spacing,
            width=width,
            height=height,
        )

        # The PSD codec writes pixel layers only, so this record is not
        # persisted and a re-import yields an image layer
        record = {
            "text": element.text,
            "font_name": families[0] if families else DEFAULT_FONT_NAME,
            "font_size": element.font_size,
            "fill_color": parse_css_color(element.fill),
            "alignment": align.value,
        }
        return image, record


# Global service instance
export_service = ExportService()
