"""
Simulation engine components.

This package contains the metric generator, the explanation provider and the
simulation actor that ties them to durable state.
"""

from .actor import STATE_KEY, SimulationActor, current_time_ms
from .errors import (
    ExplanationUnavailable,
    InvalidRequest,
    SimulationError,
    StorageUnavailable,
    UnknownScenario,
)
from .explainer import (
    EXPLANATION_TIMEOUT_SECONDS,
    FALLBACK_EXPLANATIONS,
    ExplanationProvider,
    build_prompt,
)
from .metric_generator import SCENARIO_PROFILES, MetricGenerator

__all__ = [
    "EXPLANATION_TIMEOUT_SECONDS",
    "FALLBACK_EXPLANATIONS",
    "SCENARIO_PROFILES",
    "STATE_KEY",
    "ExplanationProvider",
    "ExplanationUnavailable",
    "InvalidRequest",
    "MetricGenerator",
    "SimulationActor",
    "SimulationError",
    "StorageUnavailable",
    "UnknownScenario",
    "build_prompt",
    "current_time_ms",
]
