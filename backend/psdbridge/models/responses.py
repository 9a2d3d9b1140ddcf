"""
API request/response models.
"""

from enum import Enum
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from psdbridge.models.elements import EditorDocument, Page


class ConversionStatus(str, Enum):
    """Outcome of converting one unit of work (layer or page)."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


# ============================================================
# Import Models
# ============================================================

class LayerOutcomeInfo(BaseModel):
    """Per-layer result of an import."""
    index: int = Field(description="Position in the flattened layer list")
    parent_index: Optional[int] = Field(default=None, description="Index of the parent group, if any")
    layer_id: str
    name: str
    status: ConversionStatus
    element_id: Optional[str] = None
    element_type: Optional[str] = None
    reason: Optional[str] = Field(default=None, description="Why the layer was skipped or failed")


class ConversionSummary(BaseModel):
    """Counts of successes, skips and failures."""
    total: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0


class ImportResponse(BaseModel):
    """Response from POST /api/v1/documents/import."""
    model_config = ConfigDict(populate_by_name=True)

    filename: Optional[str] = None
    width: int = Field(description="Canvas width in pixels (clamped)")
    height: int = Field(description="Canvas height in pixels (clamped)")
    page: Page = Field(description="Imported elements, in flattened layer order")
    layers: List[LayerOutcomeInfo] = Field(default_factory=list)
    summary: ConversionSummary
    rasterize_text: bool = Field(description="Whether text layers were imported as images")
    processing_time_ms: int = Field(default=0)


# ============================================================
# Export Models
# ============================================================

class ExportRequest(BaseModel):
    """Request body for POST /api/v1/documents/export."""
    document: EditorDocument
    filename: Optional[str] = Field(default=None, description="Base name of the produced file(s)")
    zipped: Optional[bool] = Field(
        default=None,
        description="Force a zip archive for a single page. Documents with more than one page are always zipped.",
    )


class PageExportSummary(BaseModel):
    """Per-page result of an export."""
    page_id: str
    page_index: int
    status: ConversionStatus
    filename: Optional[str] = None
    exported_layers: int = 0
    failed_layers: int = 0
    error: Optional[str] = None


# ============================================================
# Error Models
# ============================================================

class ErrorDetail(BaseModel):
    """Detailed error information."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: ErrorDetail
