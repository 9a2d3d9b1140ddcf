"""
Document, element and API schema models.
"""

from psdbridge.models.document import (
    TextStyle,
    TextData,
    LayerNode,
    DocumentTree,
    FlatLayer,
    LayerDescriptor,
    LayerDocument,
)
from psdbridge.models.elements import (
    ElementType,
    BlendMode,
    TextAlign,
    Element,
    TextElement,
    ImageElement,
    Page,
    EditorDocument,
)
from psdbridge.models.responses import (
    ConversionStatus,
    LayerOutcomeInfo,
    ConversionSummary,
    ImportResponse,
    ExportRequest,
    PageExportSummary,
    ErrorDetail,
    ErrorResponse,
)

__all__ = [
    "TextStyle",
    "TextData",
    "LayerNode",
    "DocumentTree",
    "FlatLayer",
    "LayerDescriptor",
    "LayerDocument",
    "ElementType",
    "BlendMode",
    "TextAlign",
    "Element",
    "TextElement",
    "ImageElement",
    "Page",
    "EditorDocument",
    "ConversionStatus",
    "LayerOutcomeInfo",
    "ConversionSummary",
    "ImportResponse",
    "ExportRequest",
    "PageExportSummary",
    "ErrorDetail",
    "ErrorResponse",
]
