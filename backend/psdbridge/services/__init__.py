"""
Conversion services.
"""

from psdbridge.services.flatten import flatten_layers
from psdbridge.services.rasterize import RasterizeService
from psdbridge.services.fonts import FontResolver
from psdbridge.services.codec import (
    CodecError,
    CodecUnavailableError,
    DocumentCodec,
    MalformedInputError,
    PsdToolsCodec,
)
from psdbridge.services.importer import ImportService, ImportResult, LayerOutcome
from psdbridge.services.exporter import ExportService
from psdbridge.services.batch import BatchExportService, ExportResult, PageExportOutcome, activate_page

__all__ = [
    "flatten_layers",
    "RasterizeService",
    "FontResolver",
    "CodecError",
    "CodecUnavailableError",
    "DocumentCodec",
    "MalformedInputError",
    "PsdToolsCodec",
    "ImportService",
    "ImportResult",
    "LayerOutcome",
    "ExportService",
    "BatchExportService",
    "ExportResult",
    "PageExportOutcome",
    "activate_page",
]
