"""FastAPI dependency injection functions.

Each dependency reads a service built by the lifespan from `app.state` and
answers 503 when it is unavailable. Tests replace them through
`app.dependency_overrides`.
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status

from invoice_service.application.gst_validation import GstValidationService
from invoice_service.application.poller import ExtractionPoller
from invoice_service.application.qr_extraction import QrExtractionService
from invoice_service.application.submission import DocumentSubmissionService
from invoice_service.domain.ports.events_port import EventPublisherPort


def _from_state(request: Request, name: str, label: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} unavailable",
        )
    return value


async def get_submission_service(request: Request) -> DocumentSubmissionService:
    return _from_state(request, "submission_service", "Document submission")


async def get_poller(request: Request) -> ExtractionPoller:
    return _from_state(request, "poller", "Extraction poller")


async def get_gst_service(request: Request) -> GstValidationService:
    return _from_state(request, "gst_service", "GST validation")


async def get_qr_service(request: Request) -> QrExtractionService:
    return _from_state(request, "qr_service", "QR extraction")


async def get_event_publisher(request: Request) -> EventPublisherPort:
    return _from_state(request, "event_publisher", "Event publisher")
