"""Document submission: download, upload to the OCR provider, record the batch.

Returns as soon as the batch id is known. Completion polling is a separate,
caller-initiated step.
"""

from __future__ import annotations

import logging
import mimetypes
from typing import Any

import httpx

from invoice_service.application.token_manager import TokenManager
from invoice_service.core.exceptions import (
    DownloadError,
    ExternalServiceError,
    MissingBatchIdError,
    UploadError,
)
from invoice_service.domain.keys import batch_key
from invoice_service.domain.models import SubmissionReference
from invoice_service.domain.ports.audit_port import AuditTrailPort
from invoice_service.domain.ports.kv_port import KeyValuePort
from invoice_service.domain.ports.storage_port import StoragePort
from invoice_service.infrastructure.clients.klearstack_http import PROCESS_PATH, KlearStackHttpClient
from invoice_service.observability.metrics import inc_submission
from invoice_service.utils.json_scanner import LenientJSONError, extract_json
from invoice_service.utils.timing import utc_now_iso

logger = logging.getLogger(__name__)

STEP_UPLOAD = "step3_upload"
BATCH_ID_FIELDS = ("OCR_ref_no", "OCR_ext_no", "batch_id")


def extract_batch_id(payload: Any) -> str | None:
    """First non-empty batch identifier, by field priority."""
    if not isinstance(payload, dict):
        return None
    for field in BATCH_ID_FIELDS:
        value = payload.get(field)
        if value:
            return str(value)
    return None


class DocumentSubmissionService:
    def __init__(
        self,
        tokens: TokenManager,
        client: KlearStackHttpClient,
        storage: StoragePort | None,
        kv: KeyValuePort,
        audit: AuditTrailPort,
        bucket: str,
    ):
        self._tokens = tokens
        self._client = client
        self._storage = storage
        self._kv = kv
        self._audit = audit
        self._bucket = bucket

    async def submit_document(self, submission_id: str, stored_file_path: str, file_name: str) -> SubmissionReference:
        log_ctx = {"submission_id": submission_id}
        try:
            tokens = await self._tokens.acquire_working_token(submission_id)
            content = await self._download(stored_file_path)

            upload_request = {
                "filename": file_name,
                "company_name": self._client.company_name,
                "document_type": self._client.document_type,
                "processing_pref": self._client.processing_pref,
            }
            content_type = mimetypes.guess_type(file_name)[0] or "application/pdf"
            try:
                response = await self._client.process_document(tokens.access_token, content, file_name, content_type)
            except httpx.HTTPError as e:
                error_type = "timeout" if isinstance(e, httpx.TimeoutException) else "error"
                raise ExternalServiceError(
                    "klearstack",
                    error_type,
                    message=f"KlearStack upload request failed: {e}",
                    details={"url": self._client.url_for(PROCESS_PATH)},
                ) from e

            text = response.text
            if not response.is_success:
                await self._audit.record(
                    submission_id,
                    STEP_UPLOAD,
                    upload_request,
                    {"error": text},
                    response.status_code,
                    f"KlearStack upload failed: {response.status_code}",
                )
                raise UploadError(response.status_code, text, self._client.url_for(PROCESS_PATH))

            try:
                payload = extract_json(text)
            except LenientJSONError:
                raise MissingBatchIdError(text) from None

            batch_id = extract_batch_id(payload)
            if not batch_id:
                raise MissingBatchIdError(payload)

            await self._audit.record(submission_id, STEP_UPLOAD, upload_request, payload, response.status_code)

            reference = SubmissionReference(
                submission_id=submission_id,
                batch_id=batch_id,
                file_name=file_name,
                ocr_ref_no=_opt_str(payload.get("OCR_ref_no")),
                ocr_ext_no=_opt_str(payload.get("OCR_ext_no")),
                status=_opt_str(payload.get("status")),
                uploaded_at=utc_now_iso(),
            )
            await self._kv.set(batch_key(submission_id), reference.model_dump())
        except Exception:
            inc_submission("error")
            raise

        inc_submission("accepted")
        logger.info("Document submitted", extra={**log_ctx, "batch_id": batch_id})
        return reference

    async def _download(self, path: str) -> bytes:
        if self._storage is None:
            raise DownloadError(self._bucket, path, reason="object storage is not configured")
        try:
            content = await self._storage.download(self._bucket, path)
        except Exception as e:
            raise DownloadError(self._bucket, path, reason=str(e)) from e
        if not content:
            raise DownloadError(self._bucket, path, reason="no data returned")
        return content


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)
