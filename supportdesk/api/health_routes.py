"""
Health Check Routes

- /api/health          basic liveness for load balancers
- /api/health/detailed component status (MongoDB, realtime rooms)
- /api/health/ready    readiness probe (MongoDB reachable)
- /api/health/live     liveness probe
"""

import logging
import time
from typing import Dict, Any, Optional
from datetime import datetime

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from supportdesk import __version__
from supportdesk.database import get_client as get_mongo_client
from supportdesk.realtime import get_broadcaster
from supportdesk.config import settings


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["health"])

SERVICE_START_TIME = time.time()


class HealthStatus(BaseModel):
    """Health check response model"""
    status: str  # "healthy" | "degraded" | "unhealthy"
    timestamp: str
    uptime_seconds: float
    version: str
    environment: Optional[str] = None
    checks: Optional[Dict[str, Any]] = None


class ComponentHealth(BaseModel):
    """Individual component health"""
    status: str  # "up" | "down"
    response_time_ms: Optional[float] = None
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


def _status(overall: str, checks: Optional[Dict[str, Any]] = None) -> HealthStatus:
    return HealthStatus(
        status=overall,
        timestamp=datetime.utcnow().isoformat(),
        uptime_seconds=round(time.time() - SERVICE_START_TIME, 2),
        version=__version__,
        environment=settings.environment,
        checks=checks,
    )


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Returns 200 while the process is serving requests"""
    return _status("healthy")


@router.get("/health/detailed", response_model=HealthStatus)
async def detailed_health_check(response: Response) -> HealthStatus:
    """
    Component status

    Returns:
        200 when MongoDB is up, 503 otherwise
    """
    mongo_health = await _check_mongodb()
    checks = {
        "mongodb": mongo_health.model_dump(),
        "realtime": ComponentHealth(
            status="up",
            details={"rooms": get_broadcaster().room_count()},
        ).model_dump(),
    }

    overall = "healthy" if mongo_health.status == "up" else "unhealthy"
    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return _status(overall, checks)


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """
    Readiness probe

    Returns:
        200: Ready to serve traffic
        503: MongoDB unavailable
    """
    mongo_health = await _check_mongodb()

    if mongo_health.status != "up":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "reason": "MongoDB unavailable"}

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    return {"status": "alive"}


async def _check_mongodb() -> ComponentHealth:
    """Ping MongoDB and time the round trip"""
    start_time = time.time()

    try:
        await get_mongo_client().admin.command("ping")
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return ComponentHealth(status="down", message="MongoDB unreachable")

    return ComponentHealth(
        status="up",
        response_time_ms=round((time.time() - start_time) * 1000, 2),
    )
