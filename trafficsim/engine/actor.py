"""
Simulation actor.

Single-instance owner of the simulator state. The actor is built once at
application startup and handed to request handlers through dependency
injection.

Lifecycle:
    UNINITIALIZED -> READY. The first public call (or start() from the
    application lifespan) restores the persisted ActorState. Nothing is
    answered before the restore completes; a failed restore leaves the actor
    uninitialized so the next call tries again.

Concurrency:
    simulate() calls run one at a time behind an asyncio.Lock, in arrival
    order. Generate, explain and persist form one unit; the in-memory state is
    only replaced after the durable write succeeded. status() takes no lock.
    It reads the current ActorState reference, which is frozen and swapped
    as a whole, so it never sees a half-applied simulation.

Example usage:
    >>> actor = SimulationActor(storage=get_storage())
    >>> await actor.start()
    >>> record = await actor.simulate("ddos", "sim-2")
    >>> record.metrics.unprotected.error_count
    9500
"""

import asyncio
import time
from typing import Callable, Optional, Union

import structlog
from pydantic import ValidationError

from trafficsim.engine.errors import InvalidRequest, StorageUnavailable
from trafficsim.engine.explainer import ExplanationProvider
from trafficsim.engine.metric_generator import MetricGenerator
from trafficsim.models import (
    ActorLifecycle,
    ActorState,
    ScenarioType,
    SimulationRecord,
    SimulationStatus,
    SimulationView,
)
from trafficsim.storage.base import StorageBackend
from trafficsim.storage.duckdb_storage import StorageError

logger = structlog.get_logger()

STATE_KEY = "state"


def current_time_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class SimulationActor:
    """
    Serialized state machine holding the latest simulation.

    Attributes:
        storage: Backend holding the durable state blob
        generator: Metric generator for scenario draws
        explainer: Explanation provider with timeout and fallback
    """

    def __init__(
        self,
        storage: StorageBackend,
        generator: Optional[MetricGenerator] = None,
        explainer: Optional[ExplanationProvider] = None,
        clock: Callable[[], int] = current_time_ms,
    ):
        self.storage = storage
        self.generator = generator or MetricGenerator()
        self.explainer = explainer or ExplanationProvider()
        self._clock = clock

        self._state = ActorState.initial()
        self._lifecycle = ActorLifecycle.UNINITIALIZED
        self._last_started_at_ms = 0

        self._ready = asyncio.Event()
        self._init_lock = asyncio.Lock()
        self._lock = asyncio.Lock()

    @property
    def lifecycle(self) -> ActorLifecycle:
        return self._lifecycle

    @property
    def state(self) -> ActorState:
        """Current state snapshot (immutable)."""
        return self._state

    async def start(self) -> None:
        """Restore persisted state. Safe to call more than once."""
        await self._ensure_ready()

    # =========================================================================
    # Public operations
    # =========================================================================

    async def simulate(
        self, scenario: Union[ScenarioType, str], simulation_id: str
    ) -> SimulationRecord:
        """
        Run a simulation and make it the current state.

        Args:
            scenario: One of the ScenarioType tags
            simulation_id: Non-empty identifier chosen by the caller

        Returns:
            The new SimulationRecord

        Raises:
            InvalidRequest: If the scenario or id is invalid (state untouched)
            StorageUnavailable: If the state could not be restored or persisted
                (in-memory state keeps its previous value)
        """
        await self._ensure_ready()
        scenario_type = self._validate(scenario, simulation_id)

        async with self._lock:
            started_at_ms = max(self._clock(), self._last_started_at_ms)
            metrics = self.generator.generate(scenario_type)
            explanation = await self.explainer.explain(scenario_type, metrics)

            record = SimulationRecord(
                id=simulation_id,
                scenario=scenario_type,
                started_at_ms=started_at_ms,
                metrics=metrics,
                explanation=explanation,
            )
            new_state = ActorState(current_simulation=record, last_metrics=metrics)

            self._persist(new_state)
            self._state = new_state
            self._last_started_at_ms = started_at_ms

        logger.info(
            "simulation_completed",
            simulation_id=simulation_id,
            scenario=scenario_type.value,
            protected_latency_ms=metrics.protected.latency_ms,
            unprotected_latency_ms=metrics.unprotected.latency_ms,
        )
        return record

    async def status(self) -> SimulationStatus:
        """Return the current state with is_active computed against now."""
        await self._ensure_ready()

        state = self._state
        now_ms = self._clock()
        view = (
            SimulationView.from_record(state.current_simulation, now_ms)
            if state.current_simulation is not None
            else None
        )
        return SimulationStatus(simulation=view, metrics=state.last_metrics, timestamp=now_ms)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _validate(scenario: Union[ScenarioType, str], simulation_id: str) -> ScenarioType:
        try:
            scenario_type = ScenarioType(scenario)
        except ValueError:
            logger.warning("simulation_rejected", reason="invalid_scenario", scenario=str(scenario))
            raise InvalidRequest(
                f"Type must be one of: {', '.join(ScenarioType.values())}"
            ) from None

        if not isinstance(simulation_id, str) or not simulation_id.strip():
            logger.warning("simulation_rejected", reason="missing_simulation_id")
            raise InvalidRequest("A non-empty simulation id is required")

        return scenario_type

    async def _ensure_ready(self) -> None:
        if self._ready.is_set():
            return

        async with self._init_lock:
            if self._ready.is_set():
                return

            self._state = self._restore()
            current = self._state.current_simulation
            self._last_started_at_ms = current.started_at_ms if current else 0
            self._lifecycle = ActorLifecycle.READY
            self._ready.set()

    def _restore(self) -> ActorState:
        try:
            payload = self.storage.read_actor_state(STATE_KEY)
        except StorageError as e:
            logger.error("actor_state_restore_failed", error=str(e))
            raise StorageUnavailable(f"Could not restore simulator state: {e}") from e

        if payload is None:
            logger.info("actor_state_initialized", restored=False)
            return ActorState.initial()

        try:
            state = ActorState.model_validate(payload)
        except ValidationError as e:
            logger.error("actor_state_corrupt", error=str(e))
            state = ActorState.initial()
            self._persist(state)
            return state

        logger.info(
            "actor_state_restored",
            restored=True,
            simulation_id=state.current_simulation.id if state.current_simulation else None,
        )
        return state

    def _persist(self, state: ActorState) -> None:
        try:
            self.storage.write_actor_state(STATE_KEY, state.model_dump(mode="json"))
        except StorageError as e:
            logger.error("actor_state_persist_failed", error=str(e))
            raise StorageUnavailable(f"Could not persist simulator state: {e}") from e
