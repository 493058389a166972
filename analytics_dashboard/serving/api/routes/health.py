"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Response
from pydantic import BaseModel

from analytics_dashboard.config import get_settings
from analytics_dashboard.database.connection import check_database_health
from analytics_dashboard.serving.cache import get_redis

settings = get_settings()
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Comprehensive health check endpoint.

    The database is required; Redis only degrades the status since the
    service runs uncached without it.
    """
    checks = {}
    overall_status = "healthy"

    db_health = await check_database_health()
    checks["database"] = db_health
    if db_health.get("status") != "healthy":
        overall_status = "unhealthy"

    try:
        redis = get_redis()
        await redis.ping()
        checks["redis"] = {"status": "healthy"}
    except Exception as e:
        checks["redis"] = {"status": "unavailable", "error": str(e)}
        if overall_status == "healthy":
            overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 if the application is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """Returns 200 if the application is ready to receive traffic."""
    db_health = await check_database_health()

    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}

    return {"status": "ready"}


@router.get("/info")
async def api_info() -> Dict[str, str]:
    """API information endpoint."""
    return {
        "name": "Analytics Dashboard API",
        "version": settings.version,
        "environment": settings.app_env,
        "documentation": "/docs",
    }
