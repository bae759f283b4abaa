"""Two-step token acquisition against the OCR provider.

Every privileged call gets its own acquire -> refresh chain. Nothing is
cached between calls and the issued token is only used to authorise the
refresh.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from invoice_service.core.exceptions import TokenAcquisitionError
from invoice_service.domain.models import TokenPair
from invoice_service.domain.ports.audit_port import AuditTrailPort
from invoice_service.infrastructure.clients.klearstack_http import KlearStackHttpClient
from invoice_service.utils.json_scanner import LenientJSONError, extract_json
from invoice_service.utils.masking import mask_secrets

logger = logging.getLogger(__name__)

STEP_TOKEN = "step1_token"
STEP_REFRESH = "step2_refresh"


class TokenManager:
    def __init__(self, client: KlearStackHttpClient, audit: AuditTrailPort | None = None):
        self._client = client
        self._audit = audit

    async def acquire_working_token(self, submission_id: str | None = None) -> TokenPair:
        """Issue a token, refresh it immediately and return the refreshed pair.

        When ``submission_id`` is given both steps are written to the audit
        trail. No retry happens here.

        Raises:
            TokenAcquisitionError: non-2xx status, transport failure, or a body
                without both `access_token` and `refresh_token`.
        """
        issue_request = {"username": self._client.username, "company_name": self._client.company_name}
        issued = await self._call(
            STEP_TOKEN,
            submission_id,
            issue_request,
            self._client.get_access_token(),
        )

        refresh_request = {"refresh_token": "***", "company_name": self._client.company_name}
        refreshed = await self._call(
            STEP_REFRESH,
            submission_id,
            refresh_request,
            self._client.refresh_access_token(issued.access_token, issued.refresh_token),
        )
        logger.info("Working token acquired", extra={"submission_id": submission_id})
        return refreshed

    async def _call(self, step: str, submission_id: str | None, request_payload: dict, pending) -> TokenPair:
        label = "access token" if step == STEP_TOKEN else "refresh token"
        try:
            response: httpx.Response = await pending
        except httpx.HTTPError as e:
            logger.warning(f"{label} request failed: {e}", extra={"step": step, "submission_id": submission_id})
            raise TokenAcquisitionError(f"Failed to get {label}: {e}", step=step) from e

        text = response.text
        if not response.is_success:
            await self._record(
                submission_id,
                step,
                request_payload,
                {"error": text},
                response.status_code,
                f"Failed to get {label}: {response.status_code}",
            )
            raise TokenAcquisitionError(
                f"Failed to get {label}: {response.status_code}",
                step=step,
                status_code=response.status_code,
                body=text,
            )

        try:
            data = extract_json(text)
        except LenientJSONError as e:
            await self._record(submission_id, step, request_payload, {"error": text}, response.status_code, str(e))
            raise TokenAcquisitionError(
                f"Unparsable {label} response: {e}",
                step=step,
                status_code=None,
                body=text,
            ) from e

        pair = _token_pair(data)
        if pair is None:
            await self._record(
                submission_id,
                step,
                request_payload,
                mask_secrets(data),
                response.status_code,
                "Missing access/refresh token",
            )
            raise TokenAcquisitionError(
                f"No access/refresh token in {step} response",
                step=step,
                body=text,
            )

        await self._record(submission_id, step, request_payload, mask_secrets(data), response.status_code)
        return pair

    async def _record(
        self,
        submission_id: str | None,
        step: str,
        request_payload: dict,
        response_payload: Any,
        status_code: int,
        error_message: str | None = None,
    ) -> None:
        if self._audit is None or submission_id is None:
            return
        await self._audit.record(submission_id, step, request_payload, response_payload, status_code, error_message)


def _token_pair(data: Any) -> TokenPair | None:
    if not isinstance(data, dict):
        return None
    access = data.get("access_token")
    refresh = data.get("refresh_token")
    if not access or not refresh:
        return None
    return TokenPair(access_token=str(access), refresh_token=str(refresh))
