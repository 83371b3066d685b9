"""
Natural-language explanations for simulation results.

Asks an external text generator for a two-sentence summary under a hard
deadline. Any failure (no generator, error, timeout, blank answer) yields a
canned explanation for the scenario instead, so explain() never raises for a
valid scenario.
"""

import asyncio
from typing import Optional

import structlog

from trafficsim.connectors.inference_client import InferenceError, TextGenerator
from trafficsim.engine.errors import ExplanationUnavailable, UnknownScenario
from trafficsim.models import MetricPair, ScenarioType

logger = structlog.get_logger()

EXPLANATION_TIMEOUT_SECONDS = 5.0

FALLBACK_EXPLANATIONS: dict[ScenarioType, str] = {
    ScenarioType.NORMAL: (
        "Normal traffic conditions with both profiles performing well. "
        "The protection layer adds marginal gains through caching and "
        "connection reuse."
    ),
    ScenarioType.SPIKE: (
        "A traffic surge overwhelms the unprotected origin while the "
        "protection layer absorbs the load. Latency and error rates stay "
        "close to baseline only on the protected path."
    ),
    ScenarioType.DDOS: (
        "A volumetric attack takes the unprotected origin offline. The "
        "protection layer filters the malicious traffic and keeps the "
        "service available with near-normal success rates."
    ),
}


def _scenario_type(scenario) -> ScenarioType:
    try:
        return ScenarioType(scenario)
    except ValueError as e:
        raise UnknownScenario(f"Unknown scenario: {scenario!r}") from e


def build_prompt(scenario: ScenarioType, metrics: MetricPair) -> str:
    """Build the explanation prompt from the scenario and headline numbers."""
    protected = metrics.protected
    unprotected = metrics.unprotected
    return "\n".join(
        [
            "Explain this traffic simulation in 2 sentences for a technical audience:",
            f"Type: {scenario.value}",
            f"Protected: {protected.latency_ms}ms latency, "
            f"{protected.success_rate_percent}% success",
            f"Unprotected: {unprotected.latency_ms}ms latency, "
            f"{unprotected.success_rate_percent}% success",
        ]
    )


class ExplanationProvider:
    """
    Produces an explanation for every simulation, falling back when needed.

    Attributes:
        generator: Optional text generator; None means always fall back
        timeout_seconds: Deadline for the single generation attempt
    """

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        timeout_seconds: float = EXPLANATION_TIMEOUT_SECONDS,
    ):
        self.generator = generator
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def fallback(scenario: ScenarioType) -> str:
        return FALLBACK_EXPLANATIONS[_scenario_type(scenario)]

    async def explain(self, scenario: ScenarioType, metrics: MetricPair) -> str:
        """
        Explain a simulation result.

        Args:
            scenario: Simulated scenario
            metrics: Generated metric pair

        Returns:
            Generated explanation, or the canned explanation for the scenario

        Raises:
            UnknownScenario: If the tag is not one of the ScenarioType values
        """
        scenario = _scenario_type(scenario)
        try:
            return await self._generate(scenario, metrics)
        except ExplanationUnavailable as e:
            logger.warning(
                "explanation_fallback",
                scenario=scenario.value,
                reason=str(e),
            )
            return self.fallback(scenario)

    async def _generate(self, scenario: ScenarioType, metrics: MetricPair) -> str:
        if self.generator is None:
            raise ExplanationUnavailable("unavailable")

        prompt = build_prompt(scenario, metrics)
        try:
            # wait_for cancels the pending request when the deadline passes
            text = await asyncio.wait_for(
                self.generator.generate(prompt), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            raise ExplanationUnavailable("timeout") from e
        except InferenceError as e:
            raise ExplanationUnavailable("error") from e
        except Exception as e:
            logger.error(
                "explanation_generator_crashed",
                scenario=scenario.value,
                error=str(e),
                exc_info=True,
            )
            raise ExplanationUnavailable("error") from e

        trimmed = text.strip() if isinstance(text, str) else ""
        if not trimmed:
            raise ExplanationUnavailable("empty")

        logger.debug("explanation_generated", scenario=scenario.value, length=len(trimmed))
        return trimmed
