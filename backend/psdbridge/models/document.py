"""
Source-side document model: the decoded layer tree and its flattened form.

These are internal structures (not API schemas), so they are plain
dataclasses that can hold PIL images, numpy arrays or lazy pixel loaders.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

# Anything the rasterizer knows how to turn into pixels. A callable is
# evaluated lazily, inside the rasterizer's error boundary.
RasterSource = Union[Image.Image, np.ndarray, bytes, str, Callable[[], Any]]

# Affine matrix [xx, xy, yx, yy, tx, ty]
AffineTransform = Sequence[float]

RGBTriple = Tuple[float, float, float]


@dataclass
class TextStyle:
    """Typographic properties of one style run."""
    font_name: Optional[str] = None
    font_size: Optional[float] = None          # Points
    implied_font_size: Optional[float] = None  # Pixels, already scaled by the authoring tool
    fill_color: Optional[RGBTriple] = None     # 0-1 or 0-255 channels
    tracking: Optional[float] = None           # Thousandths of an em
    leading: Optional[float] = None            # Points
    horizontal_scale: Optional[float] = None   # Percent
    vertical_scale: Optional[float] = None     # Percent
    transform: Optional[AffineTransform] = None
    alignment: Optional[Union[str, int]] = None
    faux_bold: Optional[bool] = None
    faux_italic: Optional[bool] = None
    underline: Optional[bool] = None
    strikethrough: Optional[bool] = None

    def is_empty(self) -> bool:
        """True when no attribute is set."""
        return all(getattr(self, f.name) is None for f in fields(self))


@dataclass
class TextData:
    """Text content of a type layer."""
    text: str
    style_runs: List[TextStyle] = field(default_factory=list)
    default_style: Optional[TextStyle] = None
    transform: Optional[AffineTransform] = None
    alignment: Optional[Union[str, int]] = None


@dataclass
class LayerNode:
    """A single layer of the decoded tree (may be a group)."""
    name: str = "Layer"
    left: int = 0
    top: int = 0
    right: int = 0
    bottom: int = 0
    hidden: bool = False
    opacity: int = 255
    blend_mode: str = "normal"
    text: Optional[TextData] = None
    raster: Optional[RasterSource] = None
    # Set by the codec when part of the layer could not be read
    error: Optional[str] = None
    children: List["LayerNode"] = field(default_factory=list)

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def is_group(self) -> bool:
        return bool(self.children)


@dataclass
class DocumentTree:
    """Result of decoding a PSD container."""
    width: int
    height: int
    color_mode: str = "RGB"
    resolution: float = 72.0
    layers: List[LayerNode] = field(default_factory=list)

    def count_layers(self) -> int:
        """Total number of nodes in the tree."""
        def _count(nodes: List[LayerNode]) -> int:
            return sum(1 + _count(node.children or []) for node in nodes)
        return _count(self.layers)


@dataclass
class FlatLayer:
    """
    A layer node placed in the flattened, depth-first list.

    parent_index is a plain index into the same list and always points to an
    earlier entry (or is None for top-level layers).
    """
    node: LayerNode
    index: int
    original_index: int
    parent_index: Optional[int]
    id: str

    @property
    def name(self) -> str:
        return self.node.name

    @property
    def hidden(self) -> bool:
        return bool(self.node.hidden)

    @property
    def visible(self) -> bool:
        return not self.hidden

    @property
    def width(self) -> int:
        return max(1, self.node.width)

    @property
    def height(self) -> int:
        return max(1, self.node.height)


@dataclass
class LayerDescriptor:
    """Export-side layer record handed to the codec."""
    name: str
    left: int
    top: int
    right: int
    bottom: int
    opacity: int = 255
    hidden: bool = False
    blend_mode: str = "normal"
    image: Optional[Image.Image] = None
    text: Optional[dict] = None

    @property
    def bounds(self) -> Tuple[int, int, int, int]:
        return (self.left, self.top, self.right, self.bottom)


@dataclass
class LayerDocument:
    """DocumentTree-like structure assembled for encoding."""
    width: int
    height: int
    layers: List[LayerDescriptor] = field(default_factory=list)
