from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from invoice_service.api.schemas import HealthResponse
from invoice_service.core.config import get_settings

router = APIRouter(tags=["health"])

VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health():
    """Liveness check: process is up."""
    settings = get_settings()
    return HealthResponse(status="ok", service=settings.APP_NAME, version=VERSION)


@router.get("/ready")
async def ready(request: Request):
    """Readiness check: the database pool answers."""
    settings = get_settings()
    db_manager = getattr(request.app.state, "db_manager", None)
    if db_manager is None:
        db_health = {"healthy": False, "error": "not initialized", "latency_ms": None}
    else:
        db_health = await db_manager.health_check()

    return JSONResponse(
        status_code=200 if db_health["healthy"] else 503,
        content={
            "status": "ready" if db_health["healthy"] else "unavailable",
            "service": settings.APP_NAME,
            "version": VERSION,
            "database": {
                "status": "connected" if db_health["healthy"] else "disconnected",
                "latency_ms": db_health.get("latency_ms"),
                "error": db_health.get("error"),
            },
            "storage": "configured" if getattr(request.app.state, "storage", None) else "not_configured",
        },
    )
