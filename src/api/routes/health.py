"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter, HTTPException, Request
import structlog

from src.core.config import settings
from src.persistence.database import check_database_health

log = structlog.get_logger(__name__)

router = APIRouter()

VERSION = "0.1.0"


def _db_path(request: Request):
    context = getattr(request.app.state, "context", None)
    return context.db_path if context is not None else settings.database_path


@router.get("/")
async def root():
    return {"name": "Carry On", "version": VERSION}


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.

    Returns:
        System health status including database connectivity.
    """
    db_health = await check_database_health(_db_path(request))

    overall_status = "healthy" if db_health["status"] == "healthy" else "unhealthy"

    return {
        "status": overall_status,
        "version": VERSION,
        "debug": settings.debug,
        "components": {"database": db_health},
    }


@router.get("/health/live")
async def liveness():
    """
    Kubernetes-style liveness probe.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(request: Request):
    """
    Kubernetes-style readiness probe.

    Returns 200 if the application is ready to serve requests.
    """
    db_health = await check_database_health(_db_path(request))

    if db_health["status"] != "healthy":
        raise HTTPException(status_code=503, detail="Database not ready")

    return {"status": "ready"}
