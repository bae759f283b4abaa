"""OCR pipeline endpoints: submission, single-shot poll, bounded poll."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from invoice_service.api.mappers import build_poll_completion_response, build_poll_status_response
from invoice_service.api.schemas import (
    PollCompletionRequest,
    PollCompletionResponse,
    PollStatusRequest,
    PollStatusResponse,
    UploadInvoiceRequest,
    UploadInvoiceResponse,
)
from invoice_service.application.notifications import enqueue_ingest_event
from invoice_service.application.poller import ExtractionPoller
from invoice_service.application.submission import DocumentSubmissionService
from invoice_service.core.config import Settings, get_settings
from invoice_service.core.dependencies import get_event_publisher, get_poller, get_submission_service
from invoice_service.domain.ports.events_port import EventPublisherPort

router = APIRouter(tags=["klearstack"])
logger = logging.getLogger(__name__)


@router.post("/klearstack/upload-invoice", response_model=UploadInvoiceResponse)
async def upload_invoice(
    body: UploadInvoiceRequest,
    background_tasks: BackgroundTasks,
    service: DocumentSubmissionService = Depends(get_submission_service),
    publisher: EventPublisherPort = Depends(get_event_publisher),
    settings: Settings = Depends(get_settings),
):
    logger.info("Upload requested", extra={"submission_id": body.submissionId})
    reference = await service.submit_document(body.submissionId, body.filePath, body.fileName)

    enqueue_ingest_event(
        background_tasks,
        publisher,
        settings.EVENTS_TOPIC,
        invoice_id=body.submissionId,
        vendor_id=body.vendorId,
        storage_path=body.filePath,
        original_name=body.fileName,
    )
    return UploadInvoiceResponse(batchId=reference.batch_id, ocrExtNo=reference.batch_id)


@router.post(
    "/klearstack/poll-status",
    response_model=PollStatusResponse,
    response_model_exclude_none=True,
)
async def poll_status(body: PollStatusRequest, poller: ExtractionPoller = Depends(get_poller)):
    check = await poller.check_status_once(body.submissionId, body.batchId)
    return build_poll_status_response(check)


@router.post(
    "/poll-completion",
    response_model=PollCompletionResponse,
    response_model_exclude_none=True,
)
async def poll_completion(body: PollCompletionRequest, poller: ExtractionPoller = Depends(get_poller)):
    logger.info(
        "Bounded polling requested",
        extra={"submission_id": body.submissionId, "batch_id": body.batchId},
    )
    result = await poller.poll_until_complete(body.submissionId, body.batchId, body.maxDuration)
    return build_poll_completion_response(result)
