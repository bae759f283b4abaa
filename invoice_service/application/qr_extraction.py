"""QR extraction chain with caller-driven retry.

Every outcome except a failed signed-URL resolution is continuable: the caller
proceeds without QR data on `not_found` and `skipped`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Sequence

import httpx

from invoice_service.core.exceptions import MaxRetriesExceeded, SignedUrlError
from invoice_service.domain.models import QrExtractionResult, QrOutcome
from invoice_service.domain.ports.storage_port import StoragePort
from invoice_service.infrastructure.clients.qr_http import QrHttpClient
from invoice_service.observability.metrics import inc_qr

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def backoff_delay_ms(retry_count: int, schedule: Sequence[int]) -> int:
    """Table lookup; the last entry is reused once the table is exhausted."""
    return schedule[min(max(retry_count, 0), len(schedule) - 1)]


class QrExtractionService:
    def __init__(
        self,
        client: QrHttpClient,
        storage: StoragePort | None,
        namespace: str,
        signed_url_ttl_seconds: int = 3600,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        backoff_ms: Sequence[int] = (500, 1000, 2000),
        sleep: Sleep = asyncio.sleep,
    ):
        self._client = client
        self._storage = storage
        self._namespace = namespace.strip("/")
        self._ttl = signed_url_ttl_seconds
        self._timeout = timeout_seconds
        self.max_retries = max_retries
        self.backoff_ms = tuple(backoff_ms)
        self._sleep = sleep

    async def extract_qr_from_document(self, file_path: str, submission_id: str | None = None) -> QrExtractionResult:
        file_url = await self._resolve_url(file_path)
        result = await self._extract(file_url)
        result.submission_id = submission_id
        inc_qr(result.outcome.value, result.reason)
        logger.info(
            f"QR extraction {result.outcome.value}",
            extra={"submission_id": submission_id, "status": result.outcome.value, "reason": result.reason},
        )
        return result

    async def retry_extraction(self, file_path: str, submission_id: str, retry_count: int) -> QrExtractionResult:
        """One backoff wait followed by exactly one extraction attempt."""
        if retry_count >= self.max_retries:
            logger.error(
                f"Max retries ({self.max_retries}) reached",
                extra={"submission_id": submission_id, "attempt": retry_count},
            )
            raise MaxRetriesExceeded(retry_count, self.max_retries, submission_id)

        delay_ms = backoff_delay_ms(retry_count, self.backoff_ms)
        logger.info(
            f"Retry {retry_count + 1}/{self.max_retries} (waiting {delay_ms}ms)",
            extra={"submission_id": submission_id, "attempt": retry_count + 1},
        )
        await self._sleep(delay_ms / 1000)
        return await self.extract_qr_from_document(file_path, submission_id)

    async def _resolve_url(self, file_path: str) -> str:
        prefix = f"{self._namespace}/"
        if not file_path.startswith(prefix):
            return file_path

        key = file_path[len(prefix):]
        if self._storage is None:
            raise SignedUrlError(self._namespace, key, reason="object storage is not configured")
        try:
            url = await self._storage.create_signed_url(self._namespace, key, self._ttl)
        except Exception as e:
            logger.error(f"Failed to get signed URL: {e}")
            raise SignedUrlError(self._namespace, key, reason=str(e)) from e
        if not url:
            raise SignedUrlError(self._namespace, key, reason="empty signed URL")
        return url

    async def _extract(self, file_url: str) -> QrExtractionResult:
        if not self._client.configured:
            return QrExtractionResult(
                outcome=QrOutcome.SKIPPED,
                reason="qr_api_not_configured",
                message="QR extraction service not configured - continued without QR data",
            )

        try:
            # wait_for cancels the request task, which closes its connection
            response = await asyncio.wait_for(self._client.extract(file_url), timeout=self._timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return QrExtractionResult(
                outcome=QrOutcome.SKIPPED,
                reason="timeout",
                message="QR extraction service timed out - continued without QR data",
            )
        except (httpx.HTTPError, OSError) as e:
            return QrExtractionResult(
                outcome=QrOutcome.SKIPPED,
                reason=str(e) or type(e).__name__,
                message="QR extraction service unavailable - continued without QR data",
            )

        if not response.is_success:
            logger.warning(f"QR API error: {response.status_code}", extra={"http_status": response.status_code})
            return QrExtractionResult(
                outcome=QrOutcome.SKIPPED,
                reason="qr_api_error",
                message="QR extraction service unavailable - continued without QR data",
            )

        try:
            body = json.loads(response.text)
        except ValueError:
            return QrExtractionResult(
                outcome=QrOutcome.SKIPPED,
                reason="parse_error",
                message="QR data parsing failed - continued without QR data",
            )

        if not isinstance(body, dict) or not body.get("status"):
            return QrExtractionResult(
                outcome=QrOutcome.NOT_FOUND,
                message="No QR code found in invoice - continued without QR data",
                raw_response=body,
            )

        return QrExtractionResult(
            outcome=QrOutcome.FOUND,
            message="QR code extracted successfully",
            qr_data=body,
        )
