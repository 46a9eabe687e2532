"""Health check endpoint.

Verifies connectivity to PostgreSQL and Redis and reports whether the
auto-resolve sweeper is running. Used by load balancers and monitoring.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from deal_confirmation.infrastructure.database.engine import get_engine
from deal_confirmation.infrastructure.redis_client import get_redis
from deal_confirmation.logging_config import get_logger
from deal_confirmation.schemas.transactions import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(request: Request) -> HealthResponse:
    """Check connectivity to PostgreSQL and Redis."""
    # Check database
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_status = "healthy"
    except (SQLAlchemyError, OSError) as exc:
        db_status = f"unhealthy: {exc}"
        logger.error("health.db_check_failed", error=str(exc))

    # Check Redis. Without it the waiting period falls back to the default.
    redis = get_redis()
    if redis is None:
        redis_status = "not connected"
    else:
        try:
            await redis.ping()
            redis_status = "healthy"
        except Exception as exc:
            redis_status = f"unhealthy: {exc}"
            logger.error("health.redis_check_failed", error=str(exc))

    sweeper = getattr(request.app.state, "sweeper", None)
    sweeper_status = "running" if sweeper is not None and sweeper.running else "stopped"

    overall = "ok" if db_status == "healthy" else "degraded"

    return HealthResponse(
        status=overall,
        version="0.1.0",
        database=db_status,
        redis=redis_status,
        sweeper=sweeper_status,
    )
