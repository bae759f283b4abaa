from __future__ import annotations

import httpx
import pytest

from invoice_service.application.submission import DocumentSubmissionService
from invoice_service.application.token_manager import TokenManager
from invoice_service.core.exceptions import DownloadError, MissingBatchIdError, UploadError

from conftest import FakeStorage, form_fields, klearstack_handler, make_klear_client

BUCKET = "invoices"
PATH = "2024/acme/inv-1.pdf"


def build_service(handler, kv, audit, storage=None):
    client = make_klear_client(handler)
    if storage is None:
        storage = FakeStorage({(BUCKET, PATH): b"%PDF-1.4 invoice"})
    return DocumentSubmissionService(
        tokens=TokenManager(client, audit),
        client=client,
        storage=storage,
        kv=kv,
        audit=audit,
        bucket=BUCKET,
    )


@pytest.mark.asyncio
async def test_submit_records_batch_reference(kv, audit):
    calls: list[httpx.Request] = []
    service = build_service(klearstack_handler(calls=calls), kv, audit)

    reference = await service.submit_document("sub-1", PATH, "inv-1.pdf")

    assert reference.batch_id == "BATCH-1"
    stored = kv.data["klearstack_batch:sub-1"]
    assert stored["batch_id"] == "BATCH-1"
    assert stored["submission_id"] == "sub-1"
    assert stored["file_name"] == "inv-1.pdf"
    assert stored["ocr_ref_no"] == "BATCH-1"
    assert stored["uploaded_at"].endswith("Z")
    assert audit.steps() == ["step1_token", "step2_refresh", "step3_upload"]

    upload = calls[-1]
    assert upload.url.path.endswith("/processdocument")
    assert upload.headers["Authorization"] == "Bearer fresh-at"
    fields = form_fields(upload)
    assert fields["document_type"] == "Invoices"
    assert fields["processing_pref"] == "Accuracy"
    assert fields["company_name"] == "acme"
    assert b"%PDF-1.4 invoice" in upload.content
    assert b'filename="inv-1.pdf"' in upload.content


@pytest.mark.asyncio
async def test_submit_does_not_poll(kv, audit):
    calls: list[httpx.Request] = []
    service = build_service(klearstack_handler(calls=calls), kv, audit)

    await service.submit_document("sub-1", PATH, "inv-1.pdf")

    assert not any(c.url.path.endswith("/getbatchdocuments") for c in calls)


@pytest.mark.asyncio
async def test_noisy_upload_body_falls_back_to_ext_no(kv, audit):
    handler = klearstack_handler(upload=(200, 'log: accepted\n{"OCR_ext_no": "EXT-9"} done'))
    service = build_service(handler, kv, audit)

    reference = await service.submit_document("sub-2", PATH, "inv-1.pdf")

    assert reference.batch_id == "EXT-9"


@pytest.mark.asyncio
async def test_missing_download_raises(kv, audit):
    service = build_service(klearstack_handler(), kv, audit, storage=FakeStorage())

    with pytest.raises(DownloadError) as exc_info:
        await service.submit_document("sub-1", PATH, "inv-1.pdf")

    assert exc_info.value.http_status == 500
    assert exc_info.value.details["bucket"] == BUCKET
    assert exc_info.value.details["file_path"] == PATH
    assert "klearstack_batch:sub-1" not in kv.data


@pytest.mark.asyncio
async def test_upload_rejection_passes_status_and_body(kv, audit):
    service = build_service(klearstack_handler(upload=(422, "unsupported document")), kv, audit)

    with pytest.raises(UploadError) as exc_info:
        await service.submit_document("sub-1", PATH, "inv-1.pdf")

    err = exc_info.value
    assert err.http_status == 422
    assert err.details["body"] == "unsupported document"
    assert err.details["url"].endswith("/processdocument")
    assert audit.rows[-1]["step"] == "step3_upload"
    assert audit.rows[-1]["status_code"] == 422


@pytest.mark.asyncio
async def test_missing_batch_id_is_not_retryable(kv, audit):
    service = build_service(klearstack_handler(upload=(200, {"status": "queued"})), kv, audit)

    with pytest.raises(MissingBatchIdError) as exc_info:
        await service.submit_document("sub-1", PATH, "inv-1.pdf")

    assert exc_info.value.retryable is False
    assert exc_info.value.http_status == 502
    assert exc_info.value.details["response"] == {"status": "queued"}
    assert kv.data == {}
