"""GST validation chain.

Each precondition that cannot be met short-circuits into a `skipped` result so
that the caller's workflow is never blocked by this secondary check. Only a
structurally invalid GSTIN and an inactive registration produce `invalid`.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from invoice_service.domain.models import (
    GstOutcome,
    GstReason,
    GstValidationResult,
    VendorIdentity,
    VendorRecord,
)
from invoice_service.domain.ports.vendor_port import VendorDirectoryPort
from invoice_service.infrastructure.clients.gst_http import GstHttpClient
from invoice_service.observability.metrics import inc_gst

logger = logging.getLogger(__name__)

# Literal strings some clients send when the vendor field is unset
SENTINEL_VENDOR_NAMES = frozenset({"null", "undefined"})


def is_missing_vendor_name(vendor_name: str | None) -> bool:
    return not vendor_name or not vendor_name.strip() or vendor_name in SENTINEL_VENDOR_NAMES


class GstValidationService:
    def __init__(self, vendors: VendorDirectoryPort, client: GstHttpClient):
        self._vendors = vendors
        self._client = client

    async def validate_vendor_gst(self, vendor_name: str | None) -> GstValidationResult:
        result = await self._validate(vendor_name)
        inc_gst(result.outcome.value, result.reason.value if result.reason else None)
        logger.info(
            f"GST validation {result.outcome.value}",
            extra={"status": result.outcome.value, "reason": result.reason.value if result.reason else None},
        )
        return result

    async def _validate(self, vendor_name: str | None) -> GstValidationResult:
        if is_missing_vendor_name(vendor_name):
            return _skipped(
                GstReason.NO_VENDOR_NAME,
                "Vendor name is required for GST validation",
                VendorIdentity(),
            )

        vendor = await self._lookup(vendor_name)
        if vendor is None:
            return _skipped(
                GstReason.VENDOR_NOT_FOUND,
                f"Vendor '{vendor_name}' not found in vendor master",
                VendorIdentity(name=vendor_name),
            )

        identity = VendorIdentity(name=vendor.vendor_name, id=vendor.vendor_id, gstin=vendor.gst_number or None)
        if not vendor.gst_number:
            return _skipped(
                GstReason.MISSING_GSTIN,
                f"Vendor '{vendor_name}' does not have a GSTIN",
                identity,
            )
        gstin = vendor.gst_number

        if not self._client.api_key_configured:
            logger.error("GST API key is not configured")
            return _skipped(
                GstReason.API_KEY_MISSING,
                "GST validation skipped (API key not configured)",
                identity,
                raw_response={"note": "API key not configured"},
            )

        try:
            response = await self._client.search(gstin)
        except httpx.HTTPError as e:
            logger.warning(f"GST API request failed: {e}", extra={"service": "gst"})
            return _skipped(
                GstReason.NETWORK_ERROR,
                "Network error connecting to GST API.",
                identity,
                raw_response={"error": str(e)},
            )

        if not response.is_success:
            logger.warning(
                f"GST API error: {response.status_code} {response.text}",
                extra={"service": "gst", "http_status": response.status_code},
            )
            return _skipped(
                GstReason.GST_API_ERROR,
                f"GST API error ({response.status_code}): {response.reason_phrase}",
                identity,
                raw_response=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.warning("GST API returned a non-JSON body", extra={"service": "gst"})
            return _skipped(
                GstReason.NETWORK_ERROR,
                "Network error connecting to GST API.",
                identity,
                raw_response=response.text,
            )

        return _classify(data, identity)

    async def _lookup(self, vendor_name: str) -> VendorRecord | None:
        try:
            return await self._vendors.find_by_name(vendor_name)
        except Exception as e:
            logger.error(f"Vendor lookup failed: {e}", exc_info=True)
            return None


def _classify(data: dict[str, Any], identity: VendorIdentity) -> GstValidationResult:
    status_code = data.get("status_code")
    status = data.get("status")
    einvoice_status = data.get("einvoiceStatus")

    error = data.get("error")
    if status_code == 0 and error:
        detail = error.get("message") if isinstance(error, dict) else str(error)
        return GstValidationResult(
            outcome=GstOutcome.INVALID,
            reason=GstReason.INVALID_GSTIN,
            message=f"Invalid GSTIN: {detail or 'GSTIN format is invalid'}",
            vendor=identity,
            status_code=status_code,
            gst_status="Invalid",
            einvoice_status="Unknown",
            raw_response=data,
        )

    if not (status_code == 1 and status == "Active"):
        return GstValidationResult(
            outcome=GstOutcome.INVALID,
            reason=GstReason.GST_INACTIVE,
            message=f"GST status is {status or 'undefined'} (not Active)",
            vendor=identity,
            status_code=status_code,
            gst_status=status,
            einvoice_status=einvoice_status,
            raw_response=data,
        )

    return GstValidationResult(
        outcome=GstOutcome.VALID,
        message="GST validation successful",
        vendor=identity,
        status_code=status_code,
        gst_status=status,
        einvoice_status=einvoice_status,
        raw_response=data,
        should_extract_qr=einvoice_status == "Yes",
    )


def _skipped(
    reason: GstReason,
    message: str,
    vendor: VendorIdentity,
    raw_response: Any = None,
) -> GstValidationResult:
    return GstValidationResult(
        outcome=GstOutcome.SKIPPED,
        reason=reason,
        message=message,
        vendor=vendor,
        raw_response=raw_response,
    )
