"""
Editable scene models: pages of positioned, styled elements.

This is the JSON structure exchanged with the editing surface. Import
produces it, export consumes it.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class ElementType(str, Enum):
    """Element kinds produced by import."""
    TEXT = "text"
    IMAGE = "image"


class BlendMode(str, Enum):
    """Compositing blend modes (editor vocabulary)."""
    NORMAL = "normal"
    MULTIPLY = "multiply"
    SCREEN = "screen"
    OVERLAY = "overlay"
    SOFT_LIGHT = "soft-light"
    HARD_LIGHT = "hard-light"
    COLOR_DODGE = "color-dodge"
    COLOR_BURN = "color-burn"
    DARKEN = "darken"
    LIGHTEN = "lighten"
    DIFFERENCE = "difference"
    EXCLUSION = "exclusion"


class TextAlign(str, Enum):
    """Canonical horizontal text alignment."""
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


def _new_element_id() -> str:
    return f"layer_{uuid4().hex[:12]}"


# ============================================================
# Element Models
# ============================================================

class Element(BaseModel):
    """
    Base editable element.

    Kinds other than text/image (shapes, svg, ...) validate against this
    model; their extra fields are preserved.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(default_factory=_new_element_id, description="Unique element identifier")
    name: str = Field(default="Layer", description="Human-readable element name")
    type: str = Field(description="Element kind")

    x: float = Field(default=0.0, description="Left edge X coordinate (px)")
    y: float = Field(default=0.0, description="Top edge Y coordinate (px)")
    width: float = Field(default=100.0, ge=0.0, description="Width in pixels")
    height: float = Field(default=100.0, ge=0.0, description="Height in pixels")
    rotation: float = Field(default=0.0, description="Rotation in degrees")

    opacity: float = Field(default=1.0, ge=0.0, le=1.0)
    visible: bool = Field(default=True)
    blend_mode: str = Field(default=BlendMode.NORMAL.value, alias="blendMode",
                            description="Blend mode (editor vocabulary)")
    fill: Optional[str] = Field(default=None, description="Fill color (CSS color string)")

    custom: Dict[str, Any] = Field(default_factory=dict, description="Conversion provenance metadata")


class TextElement(Element):
    """Editable text element."""
    type: ElementType = ElementType.TEXT

    text: str = ""
    font_family: str = Field(default="Arial, sans-serif", alias="fontFamily")
    font_size: float = Field(default=16.0, gt=0.0, alias="fontSize", description="Font size in pixels")
    fill: str = Field(default="rgb(0,0,0)")
    align: TextAlign = TextAlign.LEFT
    line_height: float = Field(default=1.2, alias="lineHeight", description="Unitless line height ratio")
    letter_spacing: float = Field(default=0.0, alias="letterSpacing", description="Letter spacing in em")
    font_weight: str = Field(default="normal", alias="fontWeight")
    font_style: str = Field(default="normal", alias="fontStyle")
    text_decoration: str = Field(default="", alias="textDecoration")


class ImageElement(Element):
    """Bitmap element; src is a PNG data URL."""
    type: ElementType = ElementType.IMAGE

    src: str = Field(default="", description="Encoded bitmap (data URL)")


def _element_kind(value: Any) -> str:
    kind = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if isinstance(kind, Enum):
        kind = kind.value
    if kind in (ElementType.TEXT.value, ElementType.IMAGE.value):
        return kind
    return "other"


AnyElement = Annotated[
    Union[
        Annotated[TextElement, Tag("text")],
        Annotated[ImageElement, Tag("image")],
        Annotated[Element, Tag("other")],
    ],
    Discriminator(_element_kind),
]


# ============================================================
# Page / Document Models
# ============================================================

class Page(BaseModel):
    """A single page of the editable document."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str = Field(default="Page")
    width: Optional[int] = Field(default=None, gt=0, description="Overrides the document width")
    height: Optional[int] = Field(default=None, gt=0, description="Overrides the document height")
    elements: List[AnyElement] = Field(default_factory=list, alias="children")


class EditorDocument(BaseModel):
    """
    Editable document: pages plus the currently active page pointer.

    The active page is the only state a batch export touches; it is always
    restored afterwards.
    """
    model_config = ConfigDict(populate_by_name=True)

    width: int = Field(gt=0, description="Canvas width in pixels")
    height: int = Field(gt=0, description="Canvas height in pixels")
    pages: List[Page] = Field(default_factory=list)
    active_page_id: Optional[str] = Field(default=None, alias="activePageId")

    @property
    def active_page(self) -> Optional[Page]:
        if self.active_page_id is None:
            return self.pages[0] if self.pages else None
        return next((p for p in self.pages if p.id == self.active_page_id), None)

    def set_active_page(self, page_id: Optional[str]) -> None:
        """Switch the active page; None clears the pointer."""
        if page_id is not None and not any(p.id == page_id for p in self.pages):
            raise KeyError(f"Page '{page_id}' is not part of this document")
        self.active_page_id = page_id
