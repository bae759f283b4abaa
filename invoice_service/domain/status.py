"""Normalisation of the OCR provider's free-text extraction status.

The provider reports progress under one of three field names and with an
unstable vocabulary. Everything that is not recognisably complete or failed
is treated as still processing so the caller keeps polling.
"""

from __future__ import annotations

from typing import Any

from invoice_service.domain.models import ExtractionStatus

STATUS_FIELDS = ("extraction_status", "status", "extractionStatus")

_COMPLETE = {"completed", "complete"}
_FAILED = {"failed", "error"}
_IN_PROGRESS = {"processing", "in progress", "pending"}


def raw_extraction_status(payload: Any) -> str:
    """First non-empty status value across the known field names."""
    if not isinstance(payload, dict):
        return ""
    for field in STATUS_FIELDS:
        value = payload.get(field)
        if value:
            return str(value)
    return ""


def classify_extraction_status(payload: Any) -> tuple[ExtractionStatus, str]:
    raw = raw_extraction_status(payload)
    lowered = raw.strip().lower()
    if lowered in _COMPLETE:
        return ExtractionStatus.COMPLETE, raw
    if lowered in _FAILED:
        return ExtractionStatus.FAILED, raw
    return ExtractionStatus.PROCESSING, raw


def is_known_in_progress(raw_status: str) -> bool:
    return raw_status.strip().lower() in _IN_PROGRESS


def progress_hint(status: ExtractionStatus, raw_status: str) -> int:
    """Coarse progress percentage reported by the single-shot poll."""
    if status is ExtractionStatus.COMPLETE:
        return 100
    if is_known_in_progress(raw_status):
        return 50
    return 25


def extracted_payload(payload: Any) -> Any:
    """Pick the extracted data out of a completed status response."""
    if not isinstance(payload, dict):
        return payload
    for field in ("results", "extracted_data", "data"):
        value = payload.get(field)
        if value:
            return value
    return payload


def failure_message(payload: Any) -> str:
    if isinstance(payload, dict):
        message = payload.get("error") or payload.get("message")
        if message:
            return str(message)
    return "Extraction failed"


def first_result(payload: Any) -> Any | None:
    """First document of a non-empty `results` list, else None."""
    if isinstance(payload, dict):
        results = payload.get("results")
        if isinstance(results, list) and results:
            return results[0]
    return None
