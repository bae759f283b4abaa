"""Extraction status polling: single-shot check and bounded polling loop.

Both entry points first verify that the batch id was recorded for the
submission by document submission. The loop re-acquires a token pair on every
attempt and absorbs transient token/status failures until its wall-clock
budget runs out.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

import httpx

from invoice_service.application.token_manager import TokenManager
from invoice_service.core.exceptions import (
    BatchNotFoundError,
    BatchOwnershipError,
    StatusCheckError,
    TokenAcquisitionError,
)
from invoice_service.domain.keys import batch_key, extracted_key
from invoice_service.domain.models import ExtractionStatus, PollResult, StatusCheck
from invoice_service.domain.ports.audit_port import AuditTrailPort
from invoice_service.domain.ports.kv_port import KeyValuePort
from invoice_service.domain.status import (
    classify_extraction_status,
    extracted_payload,
    failure_message,
    first_result,
)
from invoice_service.infrastructure.clients.klearstack_http import KlearStackHttpClient
from invoice_service.observability.metrics import inc_poll
from invoice_service.utils.json_scanner import LenientJSONError, extract_json
from invoice_service.utils.timing import utc_now_iso

logger = logging.getLogger(__name__)

STEP_BATCH = "step4_batch"
TIMEOUT_MESSAGE = "KlearStack extraction timeout - processing is taking longer than expected"

Sleep = Callable[[float], Awaitable[Any]]
Clock = Callable[[], float]


class ExtractionPoller:
    def __init__(
        self,
        tokens: TokenManager,
        client: KlearStackHttpClient,
        kv: KeyValuePort,
        audit: AuditTrailPort,
        poll_interval_ms: int = 5000,
        default_max_duration_ms: int = 300000,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ):
        self._tokens = tokens
        self._client = client
        self._kv = kv
        self._audit = audit
        self.poll_interval_ms = poll_interval_ms
        self.default_max_duration_ms = default_max_duration_ms
        self._sleep = sleep
        self._clock = clock

    async def verify_batch(self, submission_id: str, batch_id: str) -> dict[str, Any]:
        """Return the recorded batch reference or raise a client error."""
        record = await self._kv.get(batch_key(submission_id))
        if not record:
            raise BatchNotFoundError(submission_id, batch_id)
        recorded = str(record.get("batch_id") or "")
        if recorded != batch_id:
            raise BatchOwnershipError(submission_id, batch_id, recorded)
        return record

    async def check_status_once(self, submission_id: str, batch_id: str) -> StatusCheck:
        await self.verify_batch(submission_id, batch_id)
        check = await self._fetch_status(submission_id, batch_id)
        inc_poll("single", check.status.value)
        return check

    async def poll_until_complete(
        self,
        submission_id: str,
        batch_id: str,
        max_duration_ms: int | None = None,
    ) -> PollResult:
        """Poll until a terminal status or until ``max_duration_ms`` elapses.

        Timeout is a normal outcome and is returned, not raised.
        """
        await self.verify_batch(submission_id, batch_id)
        budget_ms = self.default_max_duration_ms if max_duration_ms is None else max_duration_ms
        start = self._clock()
        attempts = 0
        log_ctx = {"submission_id": submission_id, "batch_id": batch_id}

        while self._elapsed_ms(start) < budget_ms:
            attempts += 1
            try:
                check = await asyncio.wait_for(
                    self._fetch_status(submission_id, batch_id, attempt=attempts),
                    timeout=(budget_ms - self._elapsed_ms(start)) / 1000,
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Poll attempt cut off at the polling deadline",
                    extra={**log_ctx, "attempt": attempts},
                )
                break
            except (TokenAcquisitionError, StatusCheckError) as e:
                logger.warning(
                    f"Poll attempt failed: {e.message}",
                    extra={**log_ctx, "attempt": attempts, "error_code": e.error_code},
                )
                await self._pause(start, budget_ms)
                continue

            logger.info(
                "Poll attempt",
                extra={**log_ctx, "attempt": attempts, "status": check.raw_status or check.status.value},
            )
            if check.status is ExtractionStatus.COMPLETE:
                inc_poll("loop", "complete")
                return PollResult(
                    status="complete",
                    attempts=attempts,
                    duration_ms=self._elapsed_ms(start),
                    data=check.data,
                )
            if check.status is ExtractionStatus.FAILED:
                inc_poll("loop", "failed")
                return PollResult(
                    status="failed",
                    attempts=attempts,
                    duration_ms=self._elapsed_ms(start),
                    error=check.error,
                )
            await self._pause(start, budget_ms)

        duration_ms = self._elapsed_ms(start)
        inc_poll("loop", "timeout")
        logger.info("Polling budget exhausted", extra={**log_ctx, "attempt": attempts, "duration_ms": duration_ms})
        return PollResult(status="timeout", attempts=attempts, duration_ms=duration_ms, error=TIMEOUT_MESSAGE)

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)

    async def _pause(self, start: float, budget_ms: int) -> None:
        remaining_ms = budget_ms - self._elapsed_ms(start)
        if remaining_ms <= 0:
            return
        await self._sleep(min(self.poll_interval_ms, remaining_ms) / 1000)

    async def _fetch_status(self, submission_id: str, batch_id: str, attempt: int | None = None) -> StatusCheck:
        """One token acquisition plus one status round trip."""
        tokens = await self._tokens.acquire_working_token()

        request_payload: dict[str, Any] = {
            "company_name": self._client.company_name,
            "username": self._client.username,
            "document_type": self._client.document_type,
            "batch_id": batch_id,
        }
        if attempt is not None:
            request_payload["attempt"] = attempt

        try:
            response = await self._client.get_batch_documents(tokens.access_token, batch_id)
        except httpx.HTTPError as e:
            raise StatusCheckError(f"KlearStack status request failed: {e}", batch_id=batch_id) from e

        text = response.text
        if not response.is_success:
            await self._audit.record(
                submission_id,
                STEP_BATCH,
                request_payload,
                {"error": text},
                response.status_code,
                f"KlearStack getBatchDocuments error: {response.status_code}",
            )
            raise StatusCheckError(
                f"KlearStack status error: {response.status_code}",
                batch_id=batch_id,
                status_code=response.status_code,
                body=text,
            )

        try:
            payload = extract_json(text)
        except LenientJSONError as e:
            raise StatusCheckError(f"Unparsable KlearStack status response: {e}", batch_id=batch_id, body=text) from e

        await self._audit.record(submission_id, STEP_BATCH, request_payload, payload, response.status_code)

        status, raw_status = classify_extraction_status(payload)
        if status is ExtractionStatus.COMPLETE:
            await self._store_extracted(submission_id, batch_id, payload)
            return StatusCheck(status=status, raw_status=raw_status, data=extracted_payload(payload), raw_response=payload)
        if status is ExtractionStatus.FAILED:
            return StatusCheck(status=status, raw_status=raw_status, error=failure_message(payload), raw_response=payload)
        return StatusCheck(status=status, raw_status=raw_status, raw_response=payload)

    async def _store_extracted(self, submission_id: str, batch_id: str, payload: Any) -> None:
        document = first_result(payload)
        if document is None:
            return
        try:
            await self._kv.set(
                extracted_key(submission_id),
                {
                    "extracted_at": utc_now_iso(),
                    "batch_id": batch_id,
                    "full_response": payload,
                    "document_data": document,
                },
            )
        except Exception as e:
            logger.warning(
                f"Failed to store extracted data: {e}",
                extra={"submission_id": submission_id, "batch_id": batch_id},
            )
