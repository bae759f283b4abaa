"""Domain models for the extraction pipeline and the validation chains.

All of these are ephemeral coordination metadata; long-lived invoice records
belong to the relational store.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel


class TokenPair(BaseModel):
    """Provider credentials valid for a single privileged call."""

    access_token: str
    refresh_token: str


class SubmissionReference(BaseModel):
    """Batch reference recorded by document submission, read by the poller."""

    submission_id: str
    batch_id: str
    file_name: str | None = None
    ocr_ref_no: str | None = None
    ocr_ext_no: str | None = None
    status: str | None = None
    uploaded_at: str


class ExtractionStatus(str, Enum):
    """Tri-state extraction outcome normalised from provider vocabulary."""

    PROCESSING = "processing"
    COMPLETE = "complete"
    FAILED = "failed"


class StatusCheck(BaseModel):
    """Result of a single status round trip."""

    status: ExtractionStatus
    raw_status: str = ""
    data: Any = None
    error: str | None = None
    raw_response: Any = None


class PollResult(BaseModel):
    """Terminal outcome of the bounded polling loop."""

    status: Literal["complete", "failed", "timeout"]
    attempts: int
    duration_ms: int
    data: Any = None
    error: str | None = None


class VendorRecord(BaseModel):
    vendor_id: str | None = None
    vendor_name: str
    gst_number: str | None = None


class VendorIdentity(BaseModel):
    name: str | None = None
    id: str | None = None
    gstin: str | None = None


class GstOutcome(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    SKIPPED = "skipped"


class GstReason(str, Enum):
    NO_VENDOR_NAME = "no_vendor_name"
    VENDOR_NOT_FOUND = "vendor_not_found"
    MISSING_GSTIN = "missing_gstin"
    API_KEY_MISSING = "api_key_missing"
    GST_API_ERROR = "gst_api_error"
    NETWORK_ERROR = "network_error"
    INVALID_GSTIN = "invalid_gstin"
    GST_INACTIVE = "gst_inactive"


class GstValidationResult(BaseModel):
    """Tagged GST validation outcome.

    `skipped` and `invalid` are always structured results, never exceptions.
    """

    outcome: GstOutcome
    reason: GstReason | None = None
    message: str
    vendor: VendorIdentity
    status_code: Any = 0
    gst_status: str | None = "Unknown"
    einvoice_status: str | None = "Unknown"
    raw_response: Any = None
    should_extract_qr: bool = False

    @property
    def http_status(self) -> int:
        return 400 if self.outcome is GstOutcome.INVALID else 200

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": self.outcome is not GstOutcome.INVALID,
            "outcome": self.outcome.value,
            "message": self.message,
            "vendor": self.vendor.model_dump(),
            "gstin_response": {
                "status_code": self.status_code,
                "status": self.gst_status,
                "einvoiceStatus": self.einvoice_status,
                "raw_response": self.raw_response,
            },
            "should_extract_qr": self.should_extract_qr,
        }
        if self.reason is not None:
            body["reason"] = self.reason.value
        if self.outcome is GstOutcome.SKIPPED:
            body["warning"] = f"GST validation skipped: {self.reason.value if self.reason else 'unknown'}"
        elif self.outcome is GstOutcome.INVALID and self.reason is not None:
            body["error"] = self.reason.value
        return body


class QrOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    SKIPPED = "skipped"


class QrExtractionResult(BaseModel):
    """Tagged QR extraction outcome. Every outcome is continuable."""

    outcome: QrOutcome
    reason: str | None = None
    message: str
    qr_data: Any = None
    raw_response: Any = None
    submission_id: str | None = None

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": True,
            "status": True,
            "outcome": self.outcome.value,
            "qr_available": self.outcome is QrOutcome.FOUND,
            "message": self.message,
            "submission_id": self.submission_id,
        }
        if self.outcome is QrOutcome.FOUND:
            body["qr_found"] = True
            body["qr_data"] = self.qr_data
        elif self.outcome is QrOutcome.NOT_FOUND:
            body["qr_found"] = False
            body["raw_response"] = self.raw_response
        else:
            body["qr_skipped"] = True
            body["error"] = self.reason
            if self.reason == "timeout":
                body["timeout"] = True
        return body


class NotifyResult(BaseModel):
    """Outcome of the best-effort event side channel."""

    delivered: bool
    topic: str
    idempotency: str | None = None
    error: str | None = None
