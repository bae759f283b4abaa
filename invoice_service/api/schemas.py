"""Pydantic request/response schemas for API endpoints.

Field names follow the wire contract callers already use: camelCase on the
OCR pipeline endpoints, snake_case on the validation endpoints.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class UploadInvoiceRequest(BaseModel):
    submissionId: str = Field(..., min_length=1, description="Caller correlation key")
    filePath: str = Field(..., min_length=1, description="Object key inside the invoices bucket")
    fileName: str = Field(..., min_length=1, description="Original file name sent to the provider")
    vendorId: Optional[str] = Field(None, description="Vendor id carried on the ingest event")


class UploadInvoiceResponse(BaseModel):
    success: bool = True
    batchId: str
    ocrExtNo: str
    status: Literal["processing"] = "processing"
    message: str = "Upload successful, data extraction in progress"


class PollStatusRequest(BaseModel):
    submissionId: str = Field(..., min_length=1)
    batchId: str = Field(..., min_length=1)


class PollStatusResponse(BaseModel):
    success: bool
    status: Literal["complete", "failed", "processing"]
    progress: Optional[int] = None
    data: Any = None
    error: Optional[str] = None
    extraction_status: Optional[str] = None
    raw_response: Any = None
    debug_note: Optional[str] = None


class PollCompletionRequest(BaseModel):
    submissionId: str = Field(..., min_length=1)
    batchId: str = Field(..., min_length=1)
    maxDuration: Optional[int] = Field(None, ge=0, description="Polling budget in milliseconds")


class PollCompletionResponse(BaseModel):
    success: bool
    status: Literal["complete", "failed", "timeout"]
    progress: Optional[int] = None
    data: Any = None
    error: Optional[str] = None
    attempts: int
    duration: Optional[int] = None


class QrExtractRequest(BaseModel):
    file_path: str = Field(..., min_length=1)
    submission_id: Optional[str] = None


class QrRetryRequest(BaseModel):
    file_path: str = Field(..., min_length=1)
    submission_id: str = Field(..., min_length=1)
    retry_count: int = Field(0, ge=0)


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
