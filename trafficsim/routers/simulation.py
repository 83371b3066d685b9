"""
Traffic simulation router.

Wired to:
- SimulationActor for running simulations and reading current status
- StorageBackend for simulation history (insert, prune, recent listing)
"""

import secrets
import string
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from trafficsim.dependencies import get_actor, get_history_store
from trafficsim.engine.actor import SimulationActor, current_time_ms
from trafficsim.engine.errors import InvalidRequest, StorageUnavailable
from trafficsim.models import HistoryRow, ScenarioType
from trafficsim.storage.base import HISTORY_RETENTION_LIMIT, StorageBackend
from trafficsim.storage.duckdb_storage import StorageError
from trafficsim.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()

_ID_ALPHABET = string.digits + string.ascii_lowercase


class SimulateRequest(BaseModel):
    """Simulation request naming the traffic scenario."""

    model_config = ConfigDict(populate_by_name=True)

    scenario: Optional[Any] = Field(default=None, alias="type")


def new_simulation_id() -> str:
    """Build an id like ``sim-1718000000000-k3x9qa``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"sim-{current_time_ms()}-{suffix}"


def prune_history_quietly(storage: StorageBackend) -> None:
    """Enforce the history retention cap; failures are only logged."""
    try:
        storage.prune_history(HISTORY_RETENTION_LIMIT)
    except Exception as e:
        logger.warning("history_prune_failed", error=str(e))


@router.post("/simulate")
async def run_simulation(
    request: SimulateRequest,
    background_tasks: BackgroundTasks,
    actor: SimulationActor = Depends(get_actor),
    storage: StorageBackend = Depends(get_history_store),
):
    """
    Run a traffic simulation for the requested scenario.
    Stores a history row and prunes old rows after the response is sent.
    """
    if request.scenario not in ScenarioType.values():
        logger.warning("simulation_invalid_type", scenario=request.scenario)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Type must be one of: {', '.join(ScenarioType.values())}",
        )

    simulation_id = new_simulation_id()
    logger.info("simulation_requested", simulation_id=simulation_id, scenario=request.scenario)

    try:
        record = await actor.simulate(request.scenario, simulation_id)
    except InvalidRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StorageUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    try:
        storage.write_history_row(HistoryRow.from_record(record))
    except StorageError as e:
        logger.error("simulation_history_write_failed", simulation_id=simulation_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error: could not store simulation metrics",
        )

    background_tasks.add_task(prune_history_quietly, storage)

    return {
        "success": True,
        "data": {
            "simulation_id": record.id,
            "type": record.scenario.value,
            "metrics": record.metrics.model_dump(mode="json"),
            "explanation": record.explanation,
            "timestamp": record.started_at_ms,
        },
    }


@router.get("/metrics")
async def get_recent_metrics(
    limit: int = Query(default=5, ge=1, le=100),
    storage: StorageBackend = Depends(get_history_store),
):
    """
    Get the most recent simulation history rows, newest first.
    """
    try:
        rows = storage.read_recent_history(limit=limit)
    except StorageError as e:
        logger.error("simulation_history_read_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error: unable to retrieve metrics",
        )

    return {
        "success": True,
        "data": [row.model_dump(mode="json") for row in rows],
        "count": len(rows),
    }


@router.get("/status")
async def get_simulation_status(actor: SimulationActor = Depends(get_actor)):
    """
    Get the current simulation and latest metrics.
    """
    try:
        current = await actor.status()
    except StorageUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return {"success": True, "data": current.model_dump(mode="json")}
