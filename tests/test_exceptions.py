from __future__ import annotations

from invoice_service.core.exceptions import (
    BatchNotFoundError,
    ErrorCategory,
    ExternalServiceError,
    RequestValidationFailed,
    StatusCheckError,
    TokenAcquisitionError,
    UploadError,
)


def test_to_dict_always_carries_success_error_and_message():
    body = BatchNotFoundError("sub-1", "B1").to_dict()

    assert body["success"] is False
    assert body["error"] == "batch_not_found"
    assert body["message"] == "No batch recorded for submission sub-1"
    assert body["status"] == 404
    assert body["details"] == {"submission_id": "sub-1", "batch_id": "B1"}


def test_provider_status_is_passed_through_only_for_error_codes():
    assert TokenAcquisitionError("x", step="step1_token", status_code=401).http_status == 401
    assert TokenAcquisitionError("x", step="step1_token").http_status == 502
    assert StatusCheckError("x", batch_id="B", status_code=302).http_status == 502
    assert UploadError(413, "too large", "https://p/processdocument").http_status == 413


def test_external_service_error_maps_timeout_to_504():
    err = ExternalServiceError("klearstack", "timeout")

    assert err.http_status == 504
    assert err.error_code == "klearstack_timeout"
    assert err.category is ErrorCategory.EXTERNAL_SERVICE
    assert err.retryable is True


def test_request_validation_failed_names_field():
    body = RequestValidationFailed("filePath: Field required", field="filePath").to_dict()

    assert body["status"] == 400
    assert body["error"] == "validation_error"
    assert body["details"] == {"field": "filePath"}
    assert body["retryable"] is False
