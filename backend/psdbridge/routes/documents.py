"""
Document import/export endpoints.
"""

import json
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response

from psdbridge.config import ConversionConfig, settings
from psdbridge.models.responses import ErrorResponse, ExportRequest, ImportResponse
from psdbridge.services.batch import batch_export_service
from psdbridge.services.codec import CodecUnavailableError, MalformedInputError
from psdbridge.services.importer import import_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


def codec_unavailable(e: CodecUnavailableError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"code": "CODEC_UNAVAILABLE", "message": e.message, "details": e.details},
    )


def content_disposition(filename: str) -> str:
    """Attachment header; non-ASCII names go in the RFC 5987 form."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    header = f'attachment; filename="{fallback}"'
    if fallback != filename:
        header += f"; filename*=UTF-8''{quote(filename)}"
    return header


def is_psd_upload(file: UploadFile) -> bool:
    """Check the upload's extension and declared content type."""
    suffix = Path(file.filename or "").suffix.lower()
    return suffix in settings.allowed_extensions and file.content_type in settings.allowed_content_types


@router.post(
    "/documents/import",
    response_model=ImportResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Not a PSD file"},
        413: {"model": ErrorResponse, "description": "File too large"},
        503: {"model": ErrorResponse, "description": "Codec unavailable"},
    },
)
async def import_document(
    file: UploadFile = File(..., description="PSD document"),
    rasterize_text: Optional[bool] = Query(
        default=None,
        description="Import text layers as images (default from settings)",
    ),
) -> ImportResponse:
    """
    Convert an uploaded PSD into a page of editable elements.

    Every layer gets an outcome (success, skipped or failed); a failing
    layer does not fail the request.
    """
    logger.info(f"Import request: {file.filename} ({file.content_type})")

    if not is_psd_upload(file):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "INVALID_FILE_TYPE",
                "message": "File must be a PSD document",
                "details": {
                    "filename": file.filename,
                    "received_type": file.content_type,
                    "expected_types": settings.allowed_content_types,
                    "expected_extensions": settings.allowed_extensions,
                },
            },
        )

    content = await file.read()
    if len(content) > settings.max_file_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail={
                "code": "FILE_TOO_LARGE",
                "message": f"File '{file.filename}' exceeds the {settings.max_file_size_mb}MB limit",
                "details": {
                    "size_bytes": len(content),
                    "max_bytes": settings.max_file_size_bytes,
                },
            },
        )

    config = ConversionConfig.from_settings(rasterize_text=rasterize_text)

    try:
        result = import_service.import_document(content, config)
    except MalformedInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "INVALID_FILE_TYPE",
                "message": e.message,
                "details": {"reason": e.code, **e.details},
            },
        )
    except CodecUnavailableError as e:
        raise codec_unavailable(e)

    return ImportResponse(
        filename=file.filename,
        width=result.width,
        height=result.height,
        page=result.to_page(name=Path(file.filename or "Page 1").stem),
        layers=[outcome.to_info() for outcome in result.outcomes],
        summary=result.summary,
        rasterize_text=config.rasterize_text,
        processing_time_ms=result.processing_time_ms,
    )


@router.post(
    "/documents/export",
    response_class=Response,
    responses={
        200: {
            "content": {"image/vnd.adobe.photoshop": {}, "application/zip": {}},
            "description": "PSD file, or a zip of one PSD per page",
        },
        422: {"model": ErrorResponse, "description": "No page could be exported"},
        503: {"model": ErrorResponse, "description": "Codec unavailable"},
    },
)
async def export_document(request: ExportRequest) -> Response:
    """
    Export an editable document to PSD.

    Pages that fail are left out; the X-Export-Summary header lists the
    outcome of every page.
    """
    filename = Path(request.filename).stem if request.filename else None
    logger.info(f"Export request: {len(request.document.pages)} pages")

    try:
        result = batch_export_service.export_document(
            request.document,
            zipped=request.zipped,
            filename=filename,
        )
    except CodecUnavailableError as e:
        raise codec_unavailable(e)

    summaries = [page.to_summary().model_dump(mode="json") for page in result.pages]

    if result.data is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": "EXPORT_FAILED",
                "message": "No page could be exported",
                "details": {"pages": summaries},
            },
        )

    return Response(
        content=result.data,
        media_type=result.media_type,
        headers={
            "Content-Disposition": content_disposition(result.filename),
            "X-Export-Summary": json.dumps(summaries),
        },
    )
