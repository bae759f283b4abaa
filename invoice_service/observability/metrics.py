from __future__ import annotations

import time
from typing import Awaitable, Callable

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    labelnames=("endpoint", "method", "status"),
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=("endpoint", "method"),
    buckets=(0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 300.0),
)
submissions_total = Counter(
    "invoice_submissions_total",
    "Documents submitted to the OCR provider",
    labelnames=("outcome",),
)
extraction_polls_total = Counter(
    "extraction_polls_total",
    "Extraction status checks by mode and resulting status",
    labelnames=("mode", "status"),
)
gst_validations_total = Counter(
    "gst_validations_total",
    "GST validation outcomes",
    labelnames=("outcome", "reason"),
)
qr_extractions_total = Counter(
    "qr_extractions_total",
    "QR extraction outcomes",
    labelnames=("outcome", "reason"),
)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            _observe(request, "500", start)
            raise
        _observe(request, str(getattr(response, "status_code", 200)), start)
        return response


def _observe(request: Request, status: str, start: float) -> None:
    endpoint = _endpoint_label(request)
    method = request.method
    http_requests_total.labels(endpoint=endpoint, method=method, status=status).inc()
    http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(time.perf_counter() - start)


def _endpoint_label(request: Request) -> str:
    # Route template (e.g. /validate/gst/{vendor_name}) keeps label cardinality bounded
    route = request.scope.get("route")
    path = getattr(route, "path", None) or getattr(route, "path_format", None)
    if isinstance(path, str) and path:
        return path
    return request.url.path


def inc_submission(outcome: str) -> None:
    submissions_total.labels(outcome=outcome).inc()


def inc_poll(mode: str, status: str) -> None:
    extraction_polls_total.labels(mode=mode, status=status).inc()


def inc_gst(outcome: str, reason: str | None) -> None:
    gst_validations_total.labels(outcome=outcome, reason=reason or "none").inc()


def inc_qr(outcome: str, reason: str | None) -> None:
    qr_extractions_total.labels(outcome=outcome, reason=reason or "none").inc()


router = APIRouter()


@router.get("/metrics", include_in_schema=False)
async def metrics_endpoint():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
