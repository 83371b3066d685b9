"""
System health router.

Wired to:
- SimulationActor for lifecycle state
- StorageBackend for database connectivity
"""

import time

from fastapi import APIRouter, Request

from trafficsim import __version__
from trafficsim.config import get_settings
from trafficsim.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

# Track startup time for uptime calculation
_startup_time = time.time()


@router.get("/health")
async def system_health(request: Request):
    """
    Get system health status.
    Reports actor lifecycle and database connectivity.
    """
    settings = get_settings()
    uptime = time.time() - _startup_time

    actor = getattr(request.app.state, "actor", None)
    storage = getattr(request.app.state, "storage", None)

    db_status = "healthy"
    try:
        if storage is None:
            raise RuntimeError("storage not configured")
        storage.count_history()
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    actor_status = actor.lifecycle.value if actor is not None else "missing"
    healthy = db_status == "healthy" and actor_status == "ready"

    return {
        "success": True,
        "data": {
            "status": "healthy" if healthy else "degraded",
            "version": __version__,
            "uptime_seconds": round(uptime, 1),
            "database": db_status,
            "actor": actor_status,
            "inference_enabled": settings.inference_enabled,
        },
    }
