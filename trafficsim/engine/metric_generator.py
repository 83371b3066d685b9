"""
Scenario metric generator.

Maps a scenario tag to a protected/unprotected metric pair. Every field is
drawn uniformly and independently from a fixed range per scenario; the ranges
are constants because the demonstration depends on reproducing them.

Example usage:
    >>> generator = MetricGenerator(rng=np.random.default_rng(7))
    >>> pair = generator.generate(ScenarioType.SPIKE)
    >>> pair.unprotected.error_count
    200
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import structlog

from trafficsim.engine.errors import UnknownScenario
from trafficsim.models import MetricPair, MetricSnapshot, ScenarioType

logger = structlog.get_logger()

Range = tuple[float, float]


@dataclass(frozen=True)
class ProfileRanges:
    """
    Bounds for one side of a scenario.

    Latency and success rate are continuous ranges (inclusive after
    rounding). Request count is fixed. Errors are an inclusive integer range.
    """

    latency_ms: Range
    success_rate: Range
    requests_handled: int
    errors: tuple[int, int]


@dataclass(frozen=True)
class ScenarioProfile:
    protected: ProfileRanges
    unprotected: ProfileRanges


SCENARIO_PROFILES: dict[ScenarioType, ScenarioProfile] = {
    ScenarioType.NORMAL: ScenarioProfile(
        protected=ProfileRanges(
            latency_ms=(95.0, 105.0),
            success_rate=(100.0, 100.0),
            requests_handled=10,
            errors=(0, 0),
        ),
        unprotected=ProfileRanges(
            latency_ms=(100.0, 120.0),
            success_rate=(100.0, 100.0),
            requests_handled=10,
            errors=(0, 0),
        ),
    ),
    ScenarioType.SPIKE: ScenarioProfile(
        protected=ProfileRanges(
            latency_ms=(120.0, 150.0),
            success_rate=(98.0, 100.0),
            requests_handled=500,
            errors=(0, 9),
        ),
        unprotected=ProfileRanges(
            latency_ms=(2000.0, 3000.0),
            success_rate=(40.0, 60.0),
            requests_handled=300,
            errors=(200, 200),
        ),
    ),
    ScenarioType.DDOS: ScenarioProfile(
        protected=ProfileRanges(
            latency_ms=(150.0, 200.0),
            success_rate=(95.0, 98.0),
            requests_handled=10000,
            errors=(0, 499),
        ),
        unprotected=ProfileRanges(
            latency_ms=(5000.0, 7000.0),
            success_rate=(0.0, 10.0),
            requests_handled=500,
            errors=(9500, 9500),
        ),
    ),
}


def _round_success(value: float) -> float:
    return round(max(0.0, min(100.0, value)), 1)


class MetricGenerator:
    """
    Generates metric pairs for the three supported scenarios.

    Attributes:
        rng: numpy random Generator used for every draw
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def generate(self, scenario: Union[ScenarioType, str]) -> MetricPair:
        """
        Generate a protected/unprotected metric pair for a scenario.

        Args:
            scenario: Scenario tag, already validated by the caller

        Returns:
            MetricPair with both snapshots drawn from the scenario ranges

        Raises:
            UnknownScenario: If the tag is not one of the ScenarioType values
        """
        try:
            profile = SCENARIO_PROFILES[ScenarioType(scenario)]
        except (ValueError, KeyError) as e:
            logger.error("unknown_scenario", scenario=str(scenario))
            raise UnknownScenario(f"Unknown scenario: {scenario!r}") from e

        return MetricPair(
            protected=self._draw(profile.protected),
            unprotected=self._draw(profile.unprotected),
        )

    def _draw(self, ranges: ProfileRanges) -> MetricSnapshot:
        latency = int(round(self._uniform(ranges.latency_ms)))
        success = _round_success(self._uniform(ranges.success_rate))
        low_err, high_err = ranges.errors
        errors = int(self.rng.integers(low_err, high_err, endpoint=True))

        return MetricSnapshot(
            latency_ms=latency,
            success_rate_percent=success,
            requests_handled=ranges.requests_handled,
            error_count=errors,
        )

    def _uniform(self, bounds: Range) -> float:
        low, high = bounds
        if low == high:
            return low
        return float(self.rng.uniform(low, high))
