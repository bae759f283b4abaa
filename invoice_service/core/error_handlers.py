import logging
import uuid

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoice_service.core.exceptions import BaseError, RequestValidationFailed

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    """Return the request id assigned by RequestIdMiddleware, or mint one."""
    rid = getattr(request.state, "request_id", None)
    if not rid:
        rid = uuid.uuid4().hex
        request.state.request_id = rid
    return rid


async def handle_validation_error(request: Request, exc: RequestValidationError):
    """Handler for FastAPI/Pydantic request validation errors."""
    request_id = _request_id(request)

    first_error = exc.errors()[0] if exc.errors() else {}
    loc = first_error.get("loc", [])
    field = ".".join(str(loc_part) for loc_part in loc if loc_part not in ("body", "path", "query"))
    msg = first_error.get("msg", "Validation failed")
    detail = f"{field}: {msg}" if field else msg

    logger.warning(
        f"Validation error: {detail}",
        extra={"path": request.url.path, "error_code": "validation_error"},
    )

    error = RequestValidationFailed(detail, field=field or None)
    return JSONResponse(
        status_code=error.http_status,
        content=error.to_dict(),
        headers={"X-Request-ID": request_id},
    )


async def handle_app_error(request: Request, exc: BaseError):
    """Handler for application-specific BaseErrors."""
    request_id = _request_id(request)

    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        f"Application error: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "http_status": exc.http_status,
        },
    )

    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
        headers={"X-Request-ID": request_id},
    )


async def handle_http_error(request: Request, exc: StarletteHTTPException):
    """Handler for standard HTTP exceptions (404, 405, 503 from dependencies, ...)."""
    request_id = _request_id(request)

    logger.warning(
        "HTTP exception",
        extra={"http_status": exc.status_code, "path": request.url.path},
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": f"http_{exc.status_code}",
            "message": str(exc.detail),
        },
        headers={"X-Request-ID": request_id},
    )


async def handle_unknown_error(request: Request, exc: Exception):
    """Handler for unexpected 500 errors. Always answers with a message field."""
    request_id = _request_id(request)

    logger.exception(
        "Unexpected error occurred",
        extra={"path": request.url.path, "error_code": "internal_error"},
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "internal_error",
            "message": str(exc) or type(exc).__name__,
        },
        headers={"X-Request-ID": request_id},
    )
