"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

import structlog
from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from app.api.dependencies import ContextDep

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness response schema."""

    status: str
    database: bool
    queue: str


@router.get("/health", response_model=HealthResponse)
async def health_check(context: ContextDep) -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="quickprint-api",
        version=context.settings.api_version,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(context: ContextDep) -> ReadinessResponse:
    """Check database and broker connectivity.

    A missing broker degrades the service rather than making it unready:
    orders still go through, only durable notifications are lost.
    """
    try:
        async with context.database.session() as session:
            await session.execute(text("SELECT 1"))
        database_ok = True
    except Exception as e:
        logger.warning("Database readiness check failed", error=str(e))
        database_ok = False

    if not context.settings.queue_enabled:
        queue_state = "disabled"
    elif context.queue.is_connected:
        queue_state = "connected"
    else:
        queue_state = "disconnected"

    if not database_ok:
        overall = "unavailable"
    elif queue_state == "connected":
        overall = "ready"
    else:
        overall = "degraded"

    return ReadinessResponse(status=overall, database=database_ok, queue=queue_state)
