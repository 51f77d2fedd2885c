"""Liveness and readiness probes."""

from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from src.shared.config import get_settings
from src.shared.database import check_db_health, check_redis_health

router = APIRouter()

ComponentStatus = Literal["healthy", "unhealthy", "disabled"]


class HealthResponse(BaseModel):
    status: str
    version: str = "1.0.0"


class ReadinessResponse(BaseModel):
    status: Literal["ready", "not_ready"]
    database: ComponentStatus
    redis: ComponentStatus


class LivenessResponse(BaseModel):
    status: str = "alive"


@router.get("", response_model=HealthResponse, summary="Basic health check")
async def health_check() -> HealthResponse:
    return HealthResponse(status="healthy")


@router.get("/ready", response_model=ReadinessResponse, summary="Readiness check")
async def readiness_check() -> ReadinessResponse:
    """Report dependency status.

    Only the database gates readiness. Redis is reported, but the cache
    falls through to the database, so losing it keeps the service ready.
    """
    db_ok = await check_db_health(max_retries=1, retry_delay=0)

    redis_status: ComponentStatus = "disabled"
    if get_settings().cache_enabled:
        redis_ok = await check_redis_health(max_retries=1, retry_delay=0)
        redis_status = "healthy" if redis_ok else "unhealthy"

    return ReadinessResponse(
        status="ready" if db_ok else "not_ready",
        database="healthy" if db_ok else "unhealthy",
        redis=redis_status,
    )


@router.get("/live", response_model=LivenessResponse, summary="Liveness check")
async def liveness_check() -> LivenessResponse:
    return LivenessResponse()
