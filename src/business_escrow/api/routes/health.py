"""Health check endpoint.

Verifies connectivity to the database and Redis, returns structured status.
Used by container healthchecks, load balancers, and monitoring systems.
"""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import text

from business_escrow import __version__
from business_escrow.infrastructure.database.engine import _get_engine
from business_escrow.infrastructure.redis_client import get_redis
from business_escrow.logging_config import get_logger
from business_escrow.schemas.common import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check() -> HealthResponse:
    """Check connectivity to the database and Redis."""
    db_status = "unknown"
    redis_status = "unknown"

    try:
        async with _get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as exc:
        db_status = "unhealthy"
        logger.error("health.db_check_failed", error=str(exc))

    try:
        await get_redis().ping()
        redis_status = "healthy"
    except Exception as exc:
        redis_status = "unhealthy"
        logger.error("health.redis_check_failed", error=str(exc))

    overall = "ok" if db_status == "healthy" and redis_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        redis=redis_status,
    )
