from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from invoice_service.application.factories import (
    build_gst_service,
    build_klearstack_client,
    build_poller,
    build_qr_service,
    build_storage_adapter,
    build_submission_service,
)
from invoice_service.core.config import get_settings
from invoice_service.infrastructure.database.manager import create_database_manager
from invoice_service.infrastructure.database.repositories import (
    AuditTrailRepository,
    PostgresKeyValueStore,
    VendorRepository,
)
from invoice_service.infrastructure.events.kafka_rest_publisher import create_event_publisher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown tasks.

    Services that need the database stay unset when the pool cannot be
    created; their dependencies then answer 503.
    """
    settings = get_settings()
    logger.info("service_startup", extra={"service": settings.APP_NAME})

    logger.info("Initializing database connection pool...")
    try:
        db_manager = create_database_manager(settings)
        await db_manager.connect()
        app.state.db_manager = db_manager
        logger.info("Database pool ready")
    except Exception as e:
        logger.error(f"Database pool initialization failed: {e}", exc_info=True)
        logger.warning("Application will continue without database connectivity")
        app.state.db_manager = None

    storage = build_storage_adapter(settings)
    if storage is None:
        logger.warning("Object storage is not configured")
    app.state.storage = storage

    app.state.event_publisher = create_event_publisher(settings)
    app.state.qr_service = build_qr_service(settings, storage)

    if app.state.db_manager is not None:
        kv = PostgresKeyValueStore(app.state.db_manager)
        audit = AuditTrailRepository(app.state.db_manager)
        client = build_klearstack_client(settings)
        app.state.submission_service = build_submission_service(settings, client, storage, kv, audit)
        app.state.poller = build_poller(settings, client, kv, audit)
        app.state.gst_service = build_gst_service(settings, VendorRepository(app.state.db_manager))
    else:
        app.state.submission_service = None
        app.state.poller = None
        app.state.gst_service = None

    yield

    if getattr(app.state, "db_manager", None):
        logger.info("Closing database connection pool...")
        await app.state.db_manager.disconnect()
    logger.info("service_shutdown")
