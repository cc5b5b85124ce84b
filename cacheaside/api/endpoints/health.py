"""
Health check endpoints.

Liveness for load balancers and a cache report combining store health with
hit/miss statistics.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...core.config import get_settings
from ...services.cache.coordinator import CacheAsideCoordinator
from ..dependencies import get_cache_coordinator

# Track process start time for uptime calculation
PROCESS_START_TIME = time.time()

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns a simple health status for load balancers and monitoring systems.
    """
    settings = get_settings()
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.SERVICE_NAME,
        "environment": settings.ENVIRONMENT,
        "uptime_seconds": int(time.time() - PROCESS_START_TIME),
    }


@router.get("/cache")
async def cache_health(
    coordinator: CacheAsideCoordinator = Depends(get_cache_coordinator),
) -> Dict[str, Any]:
    """Cache store status and hit/miss statistics."""
    report = await coordinator.health_check()
    report["status"] = report["store"].get("status", "unknown")
    report["timestamp"] = datetime.now(timezone.utc).isoformat()
    return report
