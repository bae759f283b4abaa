"""GST validation and QR extraction endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from invoice_service.api.schemas import QrExtractRequest, QrRetryRequest
from invoice_service.application.gst_validation import GstValidationService
from invoice_service.application.qr_extraction import QrExtractionService
from invoice_service.core.dependencies import get_gst_service, get_qr_service

router = APIRouter(prefix="/validate", tags=["validation"])


@router.get("/gst/{vendor_name}")
async def validate_gst(vendor_name: str, service: GstValidationService = Depends(get_gst_service)):
    result = await service.validate_vendor_gst(vendor_name)
    return JSONResponse(status_code=result.http_status, content=result.to_response())


@router.post("/qr-extract")
async def extract_qr(body: QrExtractRequest, service: QrExtractionService = Depends(get_qr_service)):
    result = await service.extract_qr_from_document(body.file_path, body.submission_id)
    return result.to_response()


@router.post("/qr-retry")
async def retry_qr(body: QrRetryRequest, service: QrExtractionService = Depends(get_qr_service)):
    result = await service.retry_extraction(body.file_path, body.submission_id, body.retry_count)
    return result.to_response()
