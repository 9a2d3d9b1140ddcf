"""
Typographic metric conversion from point-based source values to the
pixel-based units of the editable model.

Scale handling:
    A font size given as an implied pixel size already has the layer's
    horizontal/vertical scale baked in by the authoring tool. Scale factors
    are therefore only applied when the size was derived from points.
    Applying them to an implied size would scale the text twice.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from psdbridge.models.document import TextStyle

# Source documents are authored at 72 points per inch, the editor renders at 96 DPI
POINTS_PER_INCH = 72.0
PIXELS_PER_INCH = 96.0

DEFAULT_FONT_SIZE_PT = 16.0
DEFAULT_LINE_HEIGHT = 1.2

LINE_HEIGHT_MIN = 0.8
LINE_HEIGHT_MAX = 3.0
LETTER_SPACING_MIN = -0.5
LETTER_SPACING_MAX = 2.0

FONT_SIZE_IMPLIED = "implied"
FONT_SIZE_DERIVED = "derived"


def clamp(value: float, low: float, high: float) -> float:
    """Saturate value into [low, high] (inclusive)."""
    return max(low, min(high, value))


def pt_to_px(pt: float) -> float:
    """Convert points to pixels at 96 DPI."""
    return pt * PIXELS_PER_INCH / POINTS_PER_INCH


def resolve_font_size_px(style: TextStyle) -> Tuple[float, str]:
    """
    Resolve the font size in pixels and where it came from.

    Returns:
        (size_px, source) where source is "implied" or "derived"
    """
    if style.implied_font_size is not None and style.implied_font_size > 0:
        return float(style.implied_font_size), FONT_SIZE_IMPLIED

    size_pt = style.font_size if style.font_size else DEFAULT_FONT_SIZE_PT
    return pt_to_px(float(size_pt)), FONT_SIZE_DERIVED


def decompose_transform_scale(matrix: Optional[Sequence[float]]) -> Tuple[float, float]:
    """
    Extract (scale_x, scale_y) from an affine matrix [xx, xy, yx, yy, ...].

    Missing or short matrices give (1.0, 1.0).
    """
    if not matrix or len(matrix) < 4:
        return 1.0, 1.0
    xx, xy, yx, yy = (float(v) for v in matrix[:4])
    return math.hypot(xx, xy), math.hypot(yx, yy)


def resolve_scale(
    style: TextStyle,
    transform: Optional[Sequence[float]] = None,
) -> Tuple[float, float]:
    """
    Combine percentage scales and the affine transform into (scale_x, scale_y).

    The style's own transform takes precedence over the layer-level one.
    """
    scale_x = 1.0
    scale_y = 1.0

    if style.horizontal_scale is not None:
        scale_x *= float(style.horizontal_scale) / 100.0
    if style.vertical_scale is not None:
        scale_y *= float(style.vertical_scale) / 100.0

    matrix = style.transform if style.transform is not None else transform
    if matrix is not None:
        matrix_x, matrix_y = decompose_transform_scale(matrix)
        if matrix_x > 0:
            scale_x *= matrix_x
        if matrix_y > 0:
            scale_y *= matrix_y

    return scale_x, scale_y


def resolve_line_height(style: TextStyle, font_size_px: float) -> float:
    """Line height ratio from leading, or the default when there is none."""
    if style.leading is not None and style.leading > 0 and font_size_px > 0:
        return clamp(pt_to_px(float(style.leading)) / font_size_px, LINE_HEIGHT_MIN, LINE_HEIGHT_MAX)
    return DEFAULT_LINE_HEIGHT


def resolve_letter_spacing(style: TextStyle, scale_x: float = 1.0) -> float:
    """Letter spacing in em from tracking (thousandths of an em)."""
    if style.tracking is None:
        return 0.0
    return clamp(float(style.tracking) / 1000.0 * scale_x, LETTER_SPACING_MIN, LETTER_SPACING_MAX)


@dataclass
class TextMetrics:
    """Resolved text metrics plus their provenance."""
    font_size_px: float
    font_size_source: str
    original_font_size_pt: Optional[float]
    scale_x: float
    scale_y: float
    scale_applied: bool
    line_height: float
    letter_spacing: float

    def to_metadata(self) -> dict:
        return {
            "original_font_size_pt": self.original_font_size_pt,
            "font_size_source": self.font_size_source,
            "font_size_px": round(self.font_size_px, 3),
            "scale_x": round(self.scale_x, 4),
            "scale_y": round(self.scale_y, 4),
            "scale_applied": self.scale_applied,
        }


def resolve_text_metrics(
    style: TextStyle,
    transform: Optional[Sequence[float]] = None,
) -> TextMetrics:
    """Resolve size, scale, line height and letter spacing for a style run."""
    font_size_px, source = resolve_font_size_px(style)
    scale_x, scale_y = resolve_scale(style, transform)

    scale_applied = source == FONT_SIZE_DERIVED
    if scale_applied:
        font_size_px *= scale_y
        letter_spacing = resolve_letter_spacing(style, scale_x)
    else:
        letter_spacing = resolve_letter_spacing(style)

    return TextMetrics(
        font_size_px=font_size_px,
        font_size_source=source,
        original_font_size_pt=style.font_size,
        scale_x=scale_x,
        scale_y=scale_y,
        scale_applied=scale_applied,
        line_height=resolve_line_height(style, font_size_px),
        letter_spacing=letter_spacing,
    )
