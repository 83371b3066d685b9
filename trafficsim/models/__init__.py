"""
Pydantic v2 data models for the traffic simulator.

Model Organization:
    - enums: Scenario tags and actor lifecycle
    - simulation: Metric snapshots, simulation records, actor state, history rows
"""

from .enums import ActorLifecycle, ScenarioType
from .simulation import (
    ACTIVE_WINDOW_MS,
    ActorState,
    HistoryRow,
    MetricPair,
    MetricSnapshot,
    SimulationRecord,
    SimulationStatus,
    SimulationView,
)

__all__ = [
    "ACTIVE_WINDOW_MS",
    "ActorLifecycle",
    "ActorState",
    "HistoryRow",
    "MetricPair",
    "MetricSnapshot",
    "ScenarioType",
    "SimulationRecord",
    "SimulationStatus",
    "SimulationView",
]
