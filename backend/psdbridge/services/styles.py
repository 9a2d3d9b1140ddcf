"""
Mapping tables between the PSD vocabulary and the editor vocabulary:
blend modes, text alignment, colors and font fallback chains.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from PIL import ImageColor

from psdbridge.models.elements import BlendMode, TextAlign

logger = logging.getLogger(__name__)


# ============================================================
# Blend Modes
# ============================================================

# Source (PSD, camelCase) -> target (editor, CSS)
BLEND_MODE_TO_TARGET: Dict[str, str] = {
    "normal": BlendMode.NORMAL.value,
    "multiply": BlendMode.MULTIPLY.value,
    "screen": BlendMode.SCREEN.value,
    "overlay": BlendMode.OVERLAY.value,
    "softLight": BlendMode.SOFT_LIGHT.value,
    "hardLight": BlendMode.HARD_LIGHT.value,
    "colorDodge": BlendMode.COLOR_DODGE.value,
    "colorBurn": BlendMode.COLOR_BURN.value,
    "darken": BlendMode.DARKEN.value,
    "lighten": BlendMode.LIGHTEN.value,
    "difference": BlendMode.DIFFERENCE.value,
    "exclusion": BlendMode.EXCLUSION.value,
}

BLEND_MODE_TO_SOURCE: Dict[str, str] = {target: source for source, target in BLEND_MODE_TO_TARGET.items()}

DEFAULT_BLEND_MODE = "normal"


def blend_mode_to_target(mode: Optional[str]) -> str:
    """Map a PSD blend mode to the editor vocabulary; unmapped -> normal."""
    return BLEND_MODE_TO_TARGET.get(mode or "", DEFAULT_BLEND_MODE)


def blend_mode_to_source(mode: Optional[str]) -> str:
    """Map an editor blend mode back to the PSD vocabulary; unmapped -> normal."""
    if isinstance(mode, BlendMode):
        mode = mode.value
    return BLEND_MODE_TO_SOURCE.get(mode or "", DEFAULT_BLEND_MODE)


# ============================================================
# Alignment
# ============================================================

ALIGNMENT_BY_NAME: Dict[str, TextAlign] = {a.value: a for a in TextAlign}

# Numeric codes follow the same order as the names
ALIGNMENT_BY_CODE: Dict[int, TextAlign] = {
    0: TextAlign.LEFT,
    1: TextAlign.CENTER,
    2: TextAlign.RIGHT,
    3: TextAlign.JUSTIFY,
}


def map_alignment(value: Any) -> TextAlign:
    """Map a textual or numeric alignment to the canonical enum (default left)."""
    if isinstance(value, TextAlign):
        return value
    if isinstance(value, bool):
        return TextAlign.LEFT
    if isinstance(value, int):
        return ALIGNMENT_BY_CODE.get(value, TextAlign.LEFT)
    if isinstance(value, float) and value.is_integer():
        return ALIGNMENT_BY_CODE.get(int(value), TextAlign.LEFT)
    if isinstance(value, str):
        key = value.strip().lower()
        if key.isdigit():
            return ALIGNMENT_BY_CODE.get(int(key), TextAlign.LEFT)
        return ALIGNMENT_BY_NAME.get(key, TextAlign.LEFT)
    return TextAlign.LEFT


# ============================================================
# Colors
# ============================================================

def normalize_rgb(color: Optional[Sequence[float]]) -> Tuple[int, int, int]:
    """
    Normalize an RGB triple to integer 0-255 channels.

    A triple whose channels are all <= 1 is read as 0-1 floats and scaled.
    Results are rounded and clamped to [0, 255]. Missing colors are black.
    """
    if not color or len(color) < 3:
        return (0, 0, 0)

    channels = [float(c) for c in color[:3]]
    if all(c <= 1.0 for c in channels):
        channels = [c * 255.0 for c in channels]

    r, g, b = (int(max(0, min(255, round(c)))) for c in channels)
    return (r, g, b)


def rgb_to_css(color: Optional[Sequence[float]]) -> str:
    """Format a source color as an ``rgb(r,g,b)`` string."""
    r, g, b = normalize_rgb(color)
    return f"rgb({r},{g},{b})"


def parse_css_color(value: Optional[str], default: Tuple[int, int, int] = (0, 0, 0)) -> Tuple[int, int, int]:
    """Parse a CSS color (hex, rgb(), named) to an RGB tuple."""
    if not value:
        return default
    try:
        parsed = ImageColor.getrgb(value.strip())
    except ValueError:
        logger.debug(f"Unparseable color {value!r}, using {default}")
        return default
    return tuple(parsed[:3])


# ============================================================
# Fonts
# ============================================================

DEFAULT_FONT_NAME = "Arial"
DEFAULT_FONT_FAMILY = "Arial, sans-serif"

# Canonical fallback table: primary family -> appended fallbacks
FONT_FALLBACKS: Dict[str, str] = {
    # Adobe fonts
    "Adobe Garamond Pro": "Garamond, Times, serif",
    "Adobe Caslon Pro": "Caslon, Times, serif",
    "Minion Pro": "Minion, Times, serif",
    "Myriad Pro": "Myriad, Arial, sans-serif",

    # Common design fonts
    "Helvetica": "Helvetica, Arial, sans-serif",
    "Helvetica Neue": "Helvetica Neue, Helvetica, Arial, sans-serif",
    "Futura": "Futura, Century Gothic, sans-serif",
    "Avenir": "Avenir, Century Gothic, sans-serif",
    "Proxima Nova": "Proxima Nova, Arial, sans-serif",

    # CJK fonts
    "苹方": "PingFang SC, Hiragino Sans GB, Microsoft YaHei, sans-serif",
    "微软雅黑": "Microsoft YaHei, PingFang SC, Hiragino Sans GB, sans-serif",
    "思源黑体": "Source Han Sans SC, Noto Sans CJK SC, sans-serif",

    # Windows system fonts
    "Segoe UI": "Segoe UI, Tahoma, Geneva, sans-serif",
    "Calibri": "Calibri, Candara, Segoe UI, sans-serif",
    "Consolas": "Consolas, Monaco, Courier New, monospace",

    # macOS system fonts
    "San Francisco": "-apple-system, BlinkMacSystemFont, sans-serif",
    "SF Pro Display": "-apple-system, BlinkMacSystemFont, sans-serif",
    "Menlo": "Menlo, Monaco, Consolas, monospace",
}

GENERIC_FAMILIES = ("serif", "sans-serif", "monospace", "cursive", "fantasy", "system-ui")


def generic_fallback(font_name: str) -> str:
    """Pick generic fallbacks from hints in the font name."""
    lower = font_name.lower()
    if "mono" in lower or "code" in lower or "consol" in lower:
        return 'Consolas, Monaco, "Courier New", monospace'
    if "serif" in lower and "sans" not in lower:
        return 'Times, "Times New Roman", Georgia, serif'
    if "script" in lower or "hand" in lower or "brush" in lower:
        return "cursive"
    if "display" in lower or "title" in lower or "decorative" in lower:
        return "fantasy"
    return "Arial, Helvetica, sans-serif"


def font_family_with_fallback(font_name: Optional[str]) -> str:
    """
    Build a CSS font-family chain with the original name first.

    Known fonts use the canonical table; others get generic fallbacks
    chosen from hints in the name.
    """
    if not font_name:
        return DEFAULT_FONT_FAMILY
    fallback = FONT_FALLBACKS.get(font_name) or generic_fallback(font_name)
    return f'"{font_name}", {fallback}'


def split_font_family(family: Optional[str]) -> list:
    """Split a CSS font-family chain into bare family names (generics dropped)."""
    if not family:
        return []
    names = []
    for part in family.split(","):
        name = part.strip().strip('"').strip("'").strip()
        if name and name not in GENERIC_FAMILIES and not name.startswith("-apple") and name not in names:
            names.append(name)
    return names


BOLD_HINTS = ("bold", "black", "heavy")
ITALIC_HINTS = ("italic", "oblique")


def resolve_font_flags(
    font_name: Optional[str],
    faux_bold: Optional[bool] = None,
    faux_italic: Optional[bool] = None,
) -> Tuple[bool, bool]:
    """Bold/italic from explicit flags, else from the font name."""
    lower = (font_name or "").lower()
    bold = faux_bold if faux_bold is not None else any(h in lower for h in BOLD_HINTS)
    italic = faux_italic if faux_italic is not None else any(h in lower for h in ITALIC_HINTS)
    return bool(bold), bool(italic)


def text_decoration(underline: Optional[bool], strikethrough: Optional[bool]) -> str:
    parts = []
    if underline:
        parts.append("underline")
    if strikethrough:
        parts.append("line-through")
    return " ".join(parts)
