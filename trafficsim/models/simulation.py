"""
Simulation models for the traffic simulator.

This module defines the metric snapshots produced for each scenario, the
immutable simulation record, the singleton actor state persisted between
restarts, and the flattened history row stored by the persistence gateway.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ScenarioType

# A simulation counts as active for this long after it started.
ACTIVE_WINDOW_MS = 30_000


class MetricSnapshot(BaseModel):
    """
    Headline performance metrics for one side of the comparison.

    Attributes:
        latency_ms: Observed latency in milliseconds
        success_rate_percent: Share of successful requests, one decimal place
        requests_handled: Number of requests served
        error_count: Number of failed requests
    """

    model_config = ConfigDict(frozen=True)

    latency_ms: int = Field(ge=0, description="Latency in milliseconds")
    success_rate_percent: float = Field(
        ge=0.0, le=100.0, description="Success rate in percent"
    )
    requests_handled: int = Field(ge=0, description="Requests served")
    error_count: int = Field(ge=0, description="Failed requests")

    @field_validator("success_rate_percent")
    @classmethod
    def round_success_rate(cls, v: float) -> float:
        """Keep success rate at one decimal place."""
        return round(v, 1)


class MetricPair(BaseModel):
    """Protected and unprotected snapshots, always generated together."""

    model_config = ConfigDict(frozen=True)

    protected: MetricSnapshot = Field(description="Traffic behind the protection layer")
    unprotected: MetricSnapshot = Field(description="Traffic hitting the origin directly")

    @classmethod
    def initial(cls) -> "MetricPair":
        """Baseline metrics used before any simulation has run."""
        baseline = MetricSnapshot(
            latency_ms=100,
            success_rate_percent=100.0,
            requests_handled=0,
            error_count=0,
        )
        return cls(protected=baseline, unprotected=baseline)


class SimulationRecord(BaseModel):
    """
    Result of a single simulation request.

    Created exactly once per request and never modified afterwards. Whether
    the simulation is still active is derived from started_at_ms at read
    time, see active_at().
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Opaque simulation identifier")
    scenario: ScenarioType = Field(description="Simulated traffic scenario")
    started_at_ms: int = Field(ge=0, description="Wall-clock start time in epoch ms")
    metrics: MetricPair = Field(description="Generated metric pair")
    explanation: str = Field(min_length=1, description="Natural-language explanation")

    def active_at(self, now_ms: int) -> bool:
        """True while the simulation is inside the active window."""
        return now_ms - self.started_at_ms < ACTIVE_WINDOW_MS


class SimulationView(SimulationRecord):
    """SimulationRecord with is_active resolved against a point in time."""

    is_active: bool

    @classmethod
    def from_record(cls, record: SimulationRecord, now_ms: int) -> "SimulationView":
        return cls(**record.model_dump(), is_active=record.active_at(now_ms))


class ActorState(BaseModel):
    """
    Singleton state owned by the simulation actor.

    Persisted as a single JSON blob and replaced as a whole on every
    successful simulation.
    """

    model_config = ConfigDict(frozen=True)

    current_simulation: Optional[SimulationRecord] = None
    last_metrics: MetricPair = Field(default_factory=MetricPair.initial)

    @classmethod
    def initial(cls) -> "ActorState":
        return cls(current_simulation=None, last_metrics=MetricPair.initial())


class SimulationStatus(BaseModel):
    """Read-only view of the actor state returned by status()."""

    model_config = ConfigDict(frozen=True)

    simulation: Optional[SimulationView] = None
    metrics: MetricPair
    timestamp: int = Field(description="Epoch ms at which the status was computed")


class HistoryRow(BaseModel):
    """
    Flattened projection of a SimulationRecord for durable storage.

    The id is assigned by the store on insert.
    """

    id: Optional[int] = None
    simulation_id: str = Field(min_length=1)
    timestamp: int = Field(ge=0)
    scenario: ScenarioType
    protected_latency_ms: int = Field(ge=0)
    protected_success_rate: float = Field(ge=0.0, le=100.0)
    protected_requests_handled: int = Field(ge=0)
    protected_errors: int = Field(ge=0)
    unprotected_latency_ms: int = Field(ge=0)
    unprotected_success_rate: float = Field(ge=0.0, le=100.0)
    unprotected_requests_handled: int = Field(ge=0)
    unprotected_errors: int = Field(ge=0)
    explanation: Optional[str] = None

    @field_validator("protected_success_rate", "unprotected_success_rate")
    @classmethod
    def round_success_rate(cls, v: float) -> float:
        """Success rates are served at one decimal place."""
        return round(v, 1)

    @classmethod
    def from_record(cls, record: SimulationRecord) -> "HistoryRow":
        """Project a simulation record onto the history table layout."""
        protected = record.metrics.protected
        unprotected = record.metrics.unprotected
        return cls(
            simulation_id=record.id,
            timestamp=record.started_at_ms,
            scenario=record.scenario,
            protected_latency_ms=protected.latency_ms,
            protected_success_rate=protected.success_rate_percent,
            protected_requests_handled=protected.requests_handled,
            protected_errors=protected.error_count,
            unprotected_latency_ms=unprotected.latency_ms,
            unprotected_success_rate=unprotected.success_rate_percent,
            unprotected_requests_handled=unprotected.requests_handled,
            unprotected_errors=unprotected.error_count,
            explanation=record.explanation,
        )
