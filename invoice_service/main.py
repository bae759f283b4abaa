"""FastAPI application entry point."""

from dotenv import load_dotenv

load_dotenv()

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoice_service.api.routes import health, klearstack, validation
from invoice_service.core.config import get_settings
from invoice_service.core.error_handlers import (
    handle_app_error,
    handle_http_error,
    handle_unknown_error,
    handle_validation_error,
)
from invoice_service.core.exceptions import BaseError
from invoice_service.core.lifespan import lifespan
from invoice_service.core.logging import RequestIdMiddleware, configure_logging
from invoice_service.observability.metrics import MetricsMiddleware
from invoice_service.observability.metrics import router as metrics_router

settings = get_settings()
configure_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Invoice Processing API",
    version="1.0.0",
    description="OCR extraction pipeline, GST validation and QR extraction for invoices",
    lifespan=lifespan,
)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(MetricsMiddleware)

# Exception handlers
app.add_exception_handler(RequestValidationError, handle_validation_error)
app.add_exception_handler(StarletteHTTPException, handle_http_error)
app.add_exception_handler(BaseError, handle_app_error)
app.add_exception_handler(Exception, handle_unknown_error)

# Routers
app.include_router(health.router)
app.include_router(klearstack.router)
app.include_router(validation.router)
app.include_router(metrics_router)
