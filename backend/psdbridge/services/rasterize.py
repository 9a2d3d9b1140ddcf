"""
Rasterization service: turns layer pixel sources, text and flat colors
into RGBA surfaces, and encodes surfaces as PNG data URLs.
"""

import base64
import binascii
import io
import logging
from typing import Any, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from PIL import Image, ImageDraw, ImageFont

from psdbridge.config import settings
from psdbridge.models.document import RasterSource
from psdbridge.models.elements import TextAlign
from psdbridge.services.styles import parse_css_color

logger = logging.getLogger(__name__)

# 3x3 sharpening kernel applied after upscaling
SHARPEN_KERNEL = np.array(
    [[0, -1, 0],
     [-1, 5, -1],
     [0, -1, 0]],
    dtype=np.float32,
)

PLACEHOLDER_FILL = (240, 240, 240, 255)    # #f0f0f0
PLACEHOLDER_BORDER = (204, 204, 204, 255)  # #cccccc
PLACEHOLDER_TEXT = (153, 153, 153, 255)    # #999999

PNG_DATA_URL_PREFIX = "data:image/png;base64,"

Color = Union[str, Sequence[int], None]


def _surface_size(width: float, height: float) -> Tuple[int, int]:
    return max(1, int(round(width))), max(1, int(round(height)))


class RasterizeService:
    """Service for producing RGBA surfaces for layers and elements."""

    def __init__(self, upscale_factor: int = None, quality_upscale_factor: int = None):
        self.upscale_factor = upscale_factor or settings.upscale_factor
        self.quality_upscale_factor = quality_upscale_factor or settings.quality_upscale_factor

    # ============================================================
    # Source decoding
    # ============================================================

    def decode_data_url(self, src: str) -> Image.Image:
        """
        Decode a base64 data URL into an RGBA image.

        Raises:
            ValueError: If the string is not a base64 data URL or not an image
        """
        if not isinstance(src, str) or not src.startswith("data:"):
            raise ValueError("Not a data URL")
        header, sep, payload = src.partition(",")
        if not sep or ";base64" not in header:
            raise ValueError("Data URL is not base64-encoded")
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"Invalid base64 payload: {e}")
        return self._open_bytes(raw)

    def _open_bytes(self, raw: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (OSError, Image.DecompressionBombError) as e:
            raise ValueError(f"Cannot decode image bytes: {e}")
        return image.convert("RGBA")

    def _from_array(self, array: np.ndarray) -> Image.Image:
        if array.dtype != np.uint8:
            if np.issubdtype(array.dtype, np.floating) and array.size and float(array.max()) <= 1.0:
                array = array * 255.0
            array = np.clip(array, 0, 255).astype(np.uint8)
        if array.ndim == 2:
            return Image.fromarray(array).convert("RGBA")
        if array.ndim == 3 and array.shape[2] == 3:
            return Image.fromarray(array).convert("RGBA")
        if array.ndim == 3 and array.shape[2] == 4:
            return Image.fromarray(array)
        raise ValueError(f"Unsupported array shape {array.shape}")

    def to_image(self, source: Any) -> Image.Image:
        """
        Coerce a raster source into an RGBA image.

        Callables are evaluated here so lazy loaders fail inside the caller's
        error boundary.

        Raises:
            ValueError: If the source cannot be turned into pixels
        """
        if callable(source) and not isinstance(source, (Image.Image, np.ndarray)):
            source = source()
        if source is None:
            raise ValueError("Raster source is empty")
        if isinstance(source, Image.Image):
            return source.convert("RGBA")
        if isinstance(source, np.ndarray):
            return self._from_array(source)
        if isinstance(source, (bytes, bytearray, memoryview)):
            return self._open_bytes(bytes(source))
        if isinstance(source, str):
            return self.decode_data_url(source)
        raise ValueError(f"Unsupported raster source type: {type(source).__name__}")

    # ============================================================
    # Surfaces
    # ============================================================

    def rasterize(
        self,
        source: Optional[RasterSource],
        width: float,
        height: float,
        enhance: bool = False,
        quality: bool = False,
        factor: Optional[int] = None,
    ) -> Optional[Image.Image]:
        """
        Draw a raster source into an RGBA surface sized to the box.

        Args:
            source: Image, array, encoded bytes, data URL or lazy loader
            width: Box width in pixels
            height: Box height in pixels
            enhance: Upscale and sharpen the result
            quality: Use the quality upscale factor
            factor: Explicit upscale factor (overrides quality)

        Returns:
            RGBA image, or None when the source cannot be decoded
        """
        size = _surface_size(width, height)
        try:
            image = self.to_image(source)
        except Exception as e:
            logger.warning(f"Cannot rasterize source: {e}")
            return None

        if image.size != size:
            image = image.resize(size, Image.Resampling.LANCZOS)

        if enhance:
            if factor is None:
                factor = self.quality_upscale_factor if quality else self.upscale_factor
            image = self.enhance(image, factor)

        return image

    def enhance(self, image: Image.Image, factor: int) -> Image.Image:
        """
        Upscale with cubic interpolation and sharpen the color channels.

        Alpha is only resized, never sharpened.
        """
        rgba = np.array(image.convert("RGBA"))
        factor = max(1, int(factor))
        if factor > 1:
            h, w = rgba.shape[:2]
            rgba = cv2.resize(rgba, (w * factor, h * factor), interpolation=cv2.INTER_CUBIC)

        rgb = rgba[:, :, :3].astype(np.float32)
        sharpened = cv2.filter2D(rgb, -1, SHARPEN_KERNEL)

        result = np.empty_like(rgba)
        result[:, :, :3] = np.clip(sharpened, 0, 255).astype(np.uint8)
        result[:, :, 3] = rgba[:, :, 3]
        return Image.fromarray(result)

    def empty(self, width: float, height: float) -> Image.Image:
        """Fully transparent surface."""
        return Image.new("RGBA", _surface_size(width, height), (0, 0, 0, 0))

    def fill_rect(self, width: float, height: float, color: Color) -> Image.Image:
        """Opaque surface filled with a single color."""
        if isinstance(color, str) or color is None:
            rgb = parse_css_color(color, default=(204, 204, 204))
        else:
            rgb = tuple(int(c) for c in color[:3])
        return Image.new("RGBA", _surface_size(width, height), rgb + (255,))

    def placeholder(self, width: float, height: float, label: str = "") -> Image.Image:
        """Substitute surface for undecodable pixels: fill, border and label."""
        surface = Image.new("RGBA", _surface_size(width, height), PLACEHOLDER_FILL)
        draw = ImageDraw.Draw(surface)
        w, h = surface.size
        draw.rectangle([0, 0, w - 1, h - 1], outline=PLACEHOLDER_BORDER, width=1)

        if label:
            font = ImageFont.load_default(size=max(8, min(14, h // 3 or 8)))
            left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
            x = (w - (right - left)) / 2 - left
            y = (h - (bottom - top)) / 2 - top
            draw.text((x, y), label, font=font, fill=PLACEHOLDER_TEXT)

        return surface

    # ============================================================
    # Text
    # ============================================================

    def _font_px(self, font: ImageFont.ImageFont, draw: ImageDraw.ImageDraw) -> float:
        size = getattr(font, "size", None)
        if size:
            return float(size)
        _, top, _, bottom = draw.textbbox((0, 0), "Hg", font=font)
        return float(max(1, bottom - top))

    def _line_width(self, draw: ImageDraw.ImageDraw, line: str, font, spacing_px: float) -> float:
        if not line:
            return 0.0
        if spacing_px == 0:
            return draw.textlength(line, font=font)
        return sum(draw.textlength(ch, font=font) for ch in line) + spacing_px * (len(line) - 1)

    def _draw_run(self, draw, x: float, y: float, run: str, font, fill, spacing_px: float) -> None:
        if spacing_px == 0:
            draw.text((x, y), run, font=font, fill=fill)
            return
        for ch in run:
            draw.text((x, y), ch, font=font, fill=fill)
            x += draw.textlength(ch, font=font) + spacing_px

    def _draw_justified(self, draw, y: float, width: int, line: str, font, fill, spacing_px: float) -> None:
        words = line.split()
        if len(words) < 2:
            self._draw_run(draw, 0, y, line, font, fill, spacing_px)
            return
        word_widths = [self._line_width(draw, w, font, spacing_px) for w in words]
        gap = max(0.0, (width - sum(word_widths)) / (len(words) - 1))
        x = 0.0
        for word, word_width in zip(words, word_widths):
            self._draw_run(draw, x, y, word, font, fill, spacing_px)
            x += word_width + gap

    def render_text(
        self,
        text: str,
        font: ImageFont.ImageFont,
        fill: Color,
        align: Union[TextAlign, str],
        line_height: float,
        letter_spacing: float,
        width: float,
        height: float,
    ) -> Image.Image:
        """
        Render text line by line into a transparent surface.

        Lines break on '\\n' and '\\r'; there is no wrapping, bidi or shaping.
        Justified text stretches word gaps on every line except the last.

        Args:
            text: Text content
            font: Loaded Pillow font
            fill: CSS color string or RGB tuple
            align: left, center, right or justify
            line_height: Line height as a multiple of the font size
            letter_spacing: Extra spacing between characters in em
            width: Surface width in pixels
            height: Surface height in pixels
        """
        surface = self.empty(width, height)
        draw = ImageDraw.Draw(surface)
        w, _ = surface.size

        if isinstance(fill, str) or fill is None:
            color = parse_css_color(fill) + (255,)
        else:
            color = tuple(int(c) for c in fill[:3]) + (255,)

        align = TextAlign(align) if not isinstance(align, TextAlign) else align
        font_px = self._font_px(font, draw)
        line_px = font_px * (line_height or 1.2)
        spacing_px = (letter_spacing or 0.0) * font_px

        lines: List[str] = (text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")
        for i, line in enumerate(lines):
            y = i * line_px
            is_last = i == len(lines) - 1
            if align == TextAlign.JUSTIFY and not is_last:
                self._draw_justified(draw, y, w, line, font, color, spacing_px)
                continue

            line_width = self._line_width(draw, line, font, spacing_px)
            if align == TextAlign.CENTER:
                x = (w - line_width) / 2
            elif align == TextAlign.RIGHT:
                x = w - line_width
            else:
                x = 0.0
            self._draw_run(draw, x, y, line, font, color, spacing_px)

        return surface

    # ============================================================
    # Encoding
    # ============================================================

    def to_data_url(self, image: Union[Image.Image, np.ndarray]) -> str:
        """Encode an image as a PNG data URL."""
        if isinstance(image, np.ndarray):
            image = self._from_array(image)

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")

        base64_str = base64.b64encode(buffer.getvalue()).decode("utf-8")
        return f"{PNG_DATA_URL_PREFIX}{base64_str}"


# Global service instance
rasterize_service = RasterizeService()
