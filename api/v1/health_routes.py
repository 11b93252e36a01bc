# =============================================================================
# CORRIDOR ACCESS SYSTEM - HEALTH ROUTES
# =============================================================================
# File: api/v1/health_routes.py
# Description: Health check endpoints for monitoring and orchestration
# =============================================================================

from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel, Field
from datetime import datetime

from core.config import settings
from db.factory import DBFactory
from utils.helpers import utc_now


router = APIRouter(tags=["Health"])

APP_VERSION = "1.0.0"


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Overall status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Environment name")


class DetailedHealthResponse(HealthResponse):
    """Health check with component statuses."""
    components: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


# =============================================================================
# HEALTH ENDPOINTS
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Quick health check for load balancers.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=utc_now(),
        version=APP_VERSION,
        environment=settings.app_env,
    )


@router.get(
    "/health/ready",
    response_model=DetailedHealthResponse,
    summary="Readiness check",
    description="Check database and Redis connectivity.",
)
async def readiness_check() -> DetailedHealthResponse:
    """
    Readiness check.

    The database is required. Redis is optional: when it is disabled the
    component is reported as such and does not degrade the status.
    """
    results = await DBFactory.health_check()
    components: Dict[str, Dict[str, Any]] = {
        "database": {
            "status": "healthy" if results["database"] else "unhealthy",
            "type": settings.db_type,
        },
    }
    overall_status = "healthy" if results["database"] else "unhealthy"

    if settings.redis_enabled:
        components["redis"] = {"status": "healthy" if results["redis"] else "unhealthy"}
        if not results["redis"] and overall_status == "healthy":
            overall_status = "degraded"
    else:
        components["redis"] = {"status": "disabled"}

    return DetailedHealthResponse(
        status=overall_status,
        timestamp=utc_now(),
        version=APP_VERSION,
        environment=settings.app_env,
        components=components,
    )


@router.get(
    "/health/live",
    response_model=HealthResponse,
    summary="Liveness check",
)
async def liveness_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=utc_now(),
        version=APP_VERSION,
        environment=settings.app_env,
    )
