"""
FastAPI dependencies for the shared service objects.

The simulation actor and storage backend are created once in the application
lifespan and stored on ``app.state``; handlers receive them through Depends.
"""

from fastapi import HTTPException, Request, status

from trafficsim.engine.actor import SimulationActor
from trafficsim.storage.base import StorageBackend
from trafficsim.utils.logging import get_logger

logger = get_logger(__name__)


def get_actor(request: Request) -> SimulationActor:
    """Return the process-wide simulation actor."""
    actor = getattr(request.app.state, "actor", None)
    if actor is None:
        logger.error("actor_not_configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Simulator is not running",
        )
    return actor


def get_history_store(request: Request) -> StorageBackend:
    """Return the storage backend used for simulation history."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        logger.error("storage_not_configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Storage is not configured",
        )
    return storage
