"""Custom exception hierarchy for the invoice service.

All exceptions inherit from BaseError and carry structured error information
that the FastAPI handlers turn into problem-details style JSON bodies.
Benign absence-of-data conditions (vendor not found, QR not present, ...) are
NOT exceptions: they are modelled as skipped results in `domain.models`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorCategory(str, Enum):
    """Error categories for classification and monitoring."""

    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"
    EXTERNAL_SERVICE = "external_service"


class BaseError(Exception):
    """Base exception for all invoice service errors.

    Attributes:
        message: Human-readable error message
        error_code: Application-specific error code
        category: Error category for classification
        http_status: HTTP status code to return
        details: Additional context (dict)
        retryable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        category: ErrorCategory,
        http_status: int,
        details: Optional[dict[str, Any]] = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.category = category
        self.http_status = http_status
        self.details = details or {}
        self.retryable = retryable

    def to_dict(self) -> dict[str, Any]:
        """Convert to a problem-details body.

        Always carries `success: false`, the machine readable `error` code and
        a `message`, so callers never have to parse an opaque failure.
        """
        return {
            "success": False,
            "error": self.error_code,
            "message": self.message,
            "type": f"/errors/{self.error_code}",
            "status": self.http_status,
            "category": self.category.value,
            "retryable": self.retryable,
            "details": self.details,
        }


class ClientError(BaseError):
    """Base for client errors (4xx). Not retryable."""

    def __init__(self, message: str, error_code: str, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            category=ErrorCategory.CLIENT_ERROR,
            http_status=kwargs.pop("http_status", 400),
            retryable=False,
            **kwargs,
        )


class RequestValidationFailed(ClientError):
    """Request body or path parameter failed validation (400)."""

    def __init__(self, message: str, field: str | None = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(message=message, error_code="validation_error", details=details, **kwargs)


class BatchNotFoundError(ClientError):
    """No batch reference has been recorded for the submission (404).

    Raised by the poller when a poll arrives before the document submission
    completed, or for an unknown submission.
    """

    def __init__(self, submission_id: str, batch_id: str | None = None):
        super().__init__(
            message=f"No batch recorded for submission {submission_id}",
            error_code="batch_not_found",
            http_status=404,
            details={"submission_id": submission_id, "batch_id": batch_id},
        )


class BatchOwnershipError(ClientError):
    """The batch id belongs to a different submission (409)."""

    def __init__(self, submission_id: str, batch_id: str, recorded_batch_id: str):
        super().__init__(
            message=f"Batch {batch_id} is not owned by submission {submission_id}",
            error_code="batch_mismatch",
            http_status=409,
            details={
                "submission_id": submission_id,
                "batch_id": batch_id,
                "recorded_batch_id": recorded_batch_id,
            },
        )


class MaxRetriesExceeded(ClientError):
    """Caller-driven retry budget is exhausted (400). The caller must stop."""

    def __init__(self, retry_count: int, max_retries: int, submission_id: str | None = None):
        super().__init__(
            message=f"Failed after {max_retries} retries",
            error_code="max_retries_reached",
            http_status=400,
            details={
                "retry_count": retry_count,
                "max_retries": max_retries,
                "submission_id": submission_id,
            },
        )


class ServerError(BaseError):
    """Base for server errors (5xx)."""

    def __init__(self, message: str, error_code: str, **kwargs):
        super().__init__(
            message=message,
            error_code=error_code,
            category=kwargs.pop("category", ErrorCategory.SERVER_ERROR),
            http_status=kwargs.pop("http_status", 500),
            retryable=kwargs.pop("retryable", False),
            **kwargs,
        )


class ExternalServiceError(ServerError):
    """External service failure (502 Bad Gateway / 504 Gateway Timeout).

    Args:
        service_name: Name of the external service
        error_type: Type of error ("timeout", "unavailable", "error")
        details: Additional error context
    """

    def __init__(self, service_name: str, error_type: str, **kwargs):
        if error_type == "timeout":
            http_status = 504
        elif error_type == "unavailable":
            http_status = 503
        else:
            http_status = 502

        additional_details = kwargs.pop("details", {})
        additional_details.update({"service": service_name, "error_type": error_type})

        super().__init__(
            message=kwargs.pop("message", f"{service_name} service {error_type}"),
            error_code=f"{service_name.lower()}_{error_type.lower()}",
            category=ErrorCategory.EXTERNAL_SERVICE,
            http_status=kwargs.pop("http_status", http_status),
            retryable=kwargs.pop("retryable", True),
            details=additional_details,
            **kwargs,
        )


def _passthrough_status(status_code: int | None, fallback: int = 502) -> int:
    if status_code is not None and 400 <= status_code <= 599:
        return status_code
    return fallback


class TokenAcquisitionError(ServerError):
    """Token issuance or refresh against the OCR provider failed.

    Provider HTTP status is passed through when there is one.
    """

    def __init__(
        self,
        message: str,
        *,
        step: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.step = step
        self.status_code = status_code
        self.body = body
        super().__init__(
            message=message,
            error_code="token_acquisition_failed",
            category=ErrorCategory.EXTERNAL_SERVICE,
            http_status=_passthrough_status(status_code),
            retryable=True,
            details={"step": step, "provider_status": status_code, "provider_body": body},
        )


class DownloadError(ServerError):
    """The stored document could not be read from object storage."""

    def __init__(self, bucket: str, path: str, reason: str | None = None):
        super().__init__(
            message="Failed to download file from storage",
            error_code="download_failed",
            http_status=500,
            details={"bucket": bucket, "file_path": path, "reason": reason},
        )


class UploadError(ServerError):
    """The OCR provider rejected the document upload."""

    def __init__(self, status_code: int, body: str, url: str):
        self.status_code = status_code
        self.body = body
        super().__init__(
            message=f"KlearStack upload failed: {status_code}",
            error_code="upload_failed",
            category=ErrorCategory.EXTERNAL_SERVICE,
            http_status=_passthrough_status(status_code),
            details={"provider_status": status_code, "body": body, "url": url},
        )


class MissingBatchIdError(ServerError):
    """Upload succeeded but the provider returned no batch identifier.

    This is a provider contract violation and must not be retried automatically.
    """

    def __init__(self, response: Any):
        super().__init__(
            message="Upload succeeded but no batch ID was returned from KlearStack",
            error_code="missing_batch_id",
            category=ErrorCategory.EXTERNAL_SERVICE,
            http_status=502,
            retryable=False,
            details={"response": response},
        )


class StatusCheckError(ServerError):
    """The OCR provider batch status endpoint failed."""

    def __init__(self, message: str, *, batch_id: str, status_code: int | None = None, body: str | None = None):
        super().__init__(
            message=message,
            error_code="status_check_failed",
            category=ErrorCategory.EXTERNAL_SERVICE,
            http_status=_passthrough_status(status_code),
            retryable=True,
            details={"batch_id": batch_id, "provider_status": status_code, "provider_body": body},
        )


class SignedUrlError(ServerError):
    """A signed URL could not be generated for a storage-relative path."""

    def __init__(self, bucket: str, path: str, reason: str | None = None):
        super().__init__(
            message="Failed to generate signed URL for file",
            error_code="signed_url_error",
            http_status=500,
            details={"bucket": bucket, "file_path": path, "reason": reason},
        )
