"""
Health Check Endpoints

Endpoints:
- GET /api/health - Basic health check
- GET /api/health/ready - Readiness probe (registries loaded)
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from lingo_engine.config import settings

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Basic health check.

    Returns a simple status response indicating the API is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe.

    Ready once the lifespan has initialized the registries and session
    manager.
    """
    manager = getattr(request.app.state, "session_manager", None)
    if manager is None:
        return JSONResponse(status_code=503, content={"status": "not_ready"})
    return {
        "status": "ready",
        "modules": len(manager.catalog.get_all_modules()),
        "schemas": len(manager.schema_registry.get_all_schemas()),
        "active_sessions": manager.active_session_count,
    }
