"""
Batch export: every page of an editable document -> PSD file(s).

Pages are exported one at a time. A page that fails is left out of the
result and the batch moves on; only a codec that cannot be invoked at all
fails the whole batch.
"""

import io
import logging
import time
import zipfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from psdbridge.config import settings
from psdbridge.models.document import LayerDocument
from psdbridge.models.elements import EditorDocument, Page
from psdbridge.models.responses import ConversionStatus, PageExportSummary
from psdbridge.services.codec import CodecUnavailableError, DocumentCodec, psd_codec
from psdbridge.services.exporter import ExportService, export_service

logger = logging.getLogger(__name__)

PSD_MEDIA_TYPE = "image/vnd.adobe.photoshop"
ZIP_MEDIA_TYPE = "application/zip"


@contextmanager
def activate_page(document: EditorDocument, page: Page) -> Iterator[Page]:
    """Make a page active for the duration of the block, then restore the previous one."""
    previous = document.active_page_id
    document.set_active_page(page.id)
    try:
        yield page
    finally:
        document.active_page_id = previous


@dataclass
class PageExportOutcome:
    """Result of exporting one page."""
    page_id: str
    page_index: int
    status: ConversionStatus
    filename: Optional[str] = None
    data: Optional[bytes] = None
    exported_layers: int = 0
    failed_layers: int = 0
    error: Optional[str] = None

    def to_summary(self) -> PageExportSummary:
        return PageExportSummary(
            page_id=self.page_id,
            page_index=self.page_index,
            status=self.status,
            filename=self.filename,
            exported_layers=self.exported_layers,
            failed_layers=self.failed_layers,
            error=self.error,
        )


@dataclass
class ExportResult:
    """Result of a batch export."""
    data: Optional[bytes]
    filename: str
    media_type: str
    pages: List[PageExportOutcome] = field(default_factory=list)
    processing_time_ms: int = 0

    @property
    def exported_pages(self) -> List[PageExportOutcome]:
        return [p for p in self.pages if p.status == ConversionStatus.SUCCESS]

    @property
    def failed_pages(self) -> List[PageExportOutcome]:
        return [p for p in self.pages if p.status == ConversionStatus.FAILED]


class BatchExportService:
    """Exports documents page by page through a codec."""

    def __init__(self, exporter: ExportService = None, codec: Optional[DocumentCodec] = psd_codec):
        self.exporter = exporter or export_service
        self.codec = codec

    def _ensure_codec(self) -> DocumentCodec:
        if self.codec is None:
            raise CodecUnavailableError(code="CODEC_UNAVAILABLE", message="No document codec configured")
        is_available = getattr(self.codec, "is_available", None)
        if is_available is not None and not is_available():
            raise CodecUnavailableError(
                code="CODEC_UNAVAILABLE",
                message="Document codec is unavailable",
                details={"codec": getattr(self.codec, "name", type(self.codec).__name__)},
            )
        return self.codec

    def export_page(
        self,
        document: EditorDocument,
        page: Page,
        page_index: int = 0,
        filename: Optional[str] = None,
    ) -> PageExportOutcome:
        """
        Convert and encode a single page.

        Element failures are logged and counted; the page still exports.
        Any other failure marks the page as failed.

        Raises:
            CodecUnavailableError: If the codec cannot be invoked
        """
        codec = self._ensure_codec()
        outcome = PageExportOutcome(
            page_id=page.id,
            page_index=page_index,
            status=ConversionStatus.FAILED,
            filename=filename,
        )

        try:
            with activate_page(document, page):
                layers = []
                for element in page.elements:
                    try:
                        layers.append(self.exporter.convert_element(element))
                    except Exception as e:
                        outcome.failed_layers += 1
                        logger.warning(f"Page {page_index + 1}: element '{element.name}' failed to export: {e}")

                layer_document = LayerDocument(
                    width=page.width or document.width,
                    height=page.height or document.height,
                    layers=layers,
                )
                outcome.data = codec.encode(layer_document)
        except CodecUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Page {page_index + 1} ('{page.name}') failed to export: {e}")
            outcome.error = str(e)
            outcome.data = None
            return outcome

        outcome.status = ConversionStatus.SUCCESS
        outcome.exported_layers = len(layers)
        return outcome

    def export_document(
        self,
        document: EditorDocument,
        zipped: Optional[bool] = None,
        filename: Optional[str] = None,
    ) -> ExportResult:
        """
        Export every page of a document.

        One page gives a single .psd; several pages (or zipped=True) give a
        zip archive with one {filename}_page_{n}.psd entry per exported page.
        A multi-page document is always zipped, even with zipped=False.

        Raises:
            CodecUnavailableError: If the codec cannot be invoked at all
        """
        self._ensure_codec()
        start_time = time.time()
        filename = filename or settings.default_export_filename
        use_zip = bool(zipped) or len(document.pages) > 1
        if zipped is False and use_zip:
            logger.info(f"{len(document.pages)} pages cannot share one .psd, writing a zip")

        outcomes = []
        for index, page in enumerate(document.pages):
            entry_name = f"{filename}_page_{index + 1}.psd"
            outcomes.append(self.export_page(document, page, index, entry_name))

        exported = [o for o in outcomes if o.status == ConversionStatus.SUCCESS]
        if use_zip:
            data = self._zip(exported) if exported else None
            result = ExportResult(data=data, filename=f"{filename}.zip", media_type=ZIP_MEDIA_TYPE, pages=outcomes)
        else:
            data = exported[0].data if exported else None
            result = ExportResult(data=data, filename=f"{filename}.psd", media_type=PSD_MEDIA_TYPE, pages=outcomes)

        result.processing_time_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Exported {len(exported)}/{len(outcomes)} pages to {result.filename} "
            f"in {result.processing_time_ms}ms"
        )
        return result

    def _zip(self, outcomes: List[PageExportOutcome]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for outcome in outcomes:
                archive.writestr(outcome.filename, outcome.data)
        return buffer.getvalue()


# Global service instance
batch_export_service = BatchExportService()
