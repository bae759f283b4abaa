"""Translate application results into API response schemas."""

from __future__ import annotations

from invoice_service.api.schemas import PollCompletionResponse, PollStatusResponse
from invoice_service.domain.models import ExtractionStatus, PollResult, StatusCheck
from invoice_service.domain.status import is_known_in_progress, progress_hint


def build_poll_status_response(check: StatusCheck) -> PollStatusResponse:
    if check.status is ExtractionStatus.COMPLETE:
        return PollStatusResponse(success=True, status="complete", progress=100, data=check.data)
    if check.status is ExtractionStatus.FAILED:
        return PollStatusResponse(success=False, status="failed", error=check.error)
    if is_known_in_progress(check.raw_status):
        return PollStatusResponse(
            success=True,
            status="processing",
            progress=progress_hint(check.status, check.raw_status),
            extraction_status=check.raw_status,
        )
    return PollStatusResponse(
        success=True,
        status="processing",
        progress=progress_hint(check.status, check.raw_status),
        extraction_status=check.raw_status,
        raw_response=check.raw_response,
        debug_note="Unknown extraction_status value, treating as processing",
    )


def build_poll_completion_response(result: PollResult) -> PollCompletionResponse:
    if result.status == "complete":
        return PollCompletionResponse(
            success=True,
            status="complete",
            progress=100,
            data=result.data,
            attempts=result.attempts,
        )
    if result.status == "failed":
        return PollCompletionResponse(
            success=False,
            status="failed",
            error=result.error,
            attempts=result.attempts,
        )
    return PollCompletionResponse(
        success=False,
        status="timeout",
        error=result.error,
        attempts=result.attempts,
        duration=result.duration_ms,
    )
