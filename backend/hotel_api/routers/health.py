"""
Health checks.
"""

import asyncio
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from hotel_shared.config.settings import settings
from hotel_shared.infrastructure.db import get_db_context
from hotel_shared.infrastructure.events import get_all_breaker_stats, get_redis_pool

router = APIRouter(prefix="/api/health", tags=["health"])


def _ping_database() -> None:
    with get_db_context() as db:
        db.execute(text("SELECT 1"))


@router.get("")
def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "hotel-orders",
        "environment": settings.environment,
    }


@router.get("/detailed")
async def detailed_health_check(request: Request):
    """
    Verify database (and Redis, when it carries broadcasts) and report
    change-bus and circuit-breaker stats. Answers 503 when degraded.
    """
    checks: dict[str, Any] = {
        "service": "hotel-orders",
        "environment": settings.environment,
        "dependencies": {},
    }
    all_healthy = True

    try:
        await asyncio.to_thread(_ping_database)
        checks["dependencies"]["database"] = {"status": "healthy"}
    except Exception as e:
        checks["dependencies"]["database"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False

    if settings.broadcast_transport == "redis":
        try:
            redis = await get_redis_pool()
            await redis.ping()
            checks["dependencies"]["redis"] = {"status": "healthy"}
        except Exception as e:
            checks["dependencies"]["redis"] = {"status": "unhealthy", "error": str(e)}
            all_healthy = False

    bus = getattr(request.app.state, "change_bus", None)
    if bus is not None:
        checks["change_bus"] = bus.get_stats()
    relay = getattr(request.app.state, "redis_relay", None)
    if relay is not None:
        checks["redis_relay"] = relay.get_stats()
    checks["circuit_breakers"] = get_all_breaker_stats()

    checks["status"] = "healthy" if all_healthy else "degraded"
    if not all_healthy:
        return JSONResponse(content=checks, status_code=503)
    return checks
