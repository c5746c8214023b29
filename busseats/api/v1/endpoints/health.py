"""
Health check endpoints
"""

from typing import Any
import logging
from fastapi import APIRouter, Depends

from busseats.api.deps import get_store
from busseats.config import settings
from busseats.core.redis import redis_manager
from busseats.store import ReservationStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/live")
async def liveness() -> Any:
    """
    Kubernetes liveness probe
    """
    return {"status": "alive", "service": "busseats-api"}


@router.get("/ready")
async def readiness(store: ReservationStore = Depends(get_store)) -> Any:
    """
    Kubernetes readiness probe - checks the store and, when seat locks are on, Redis
    """
    checks = {"store": False, "api": True}

    try:
        checks["store"] = await store.ping()
    except Exception as e:
        logger.warning(f"Store readiness check failed: {e}")

    if settings.SEAT_LOCK_ENABLED:
        checks["redis"] = False
        try:
            checks["redis"] = bool(await redis_manager.ping())
        except Exception as e:
            logger.warning(f"Redis readiness check failed: {e}")

    all_healthy = all(checks.values())

    return {
        "status": "ready" if all_healthy else "not ready",
        "checks": checks,
        "version": settings.APP_VERSION
    }
