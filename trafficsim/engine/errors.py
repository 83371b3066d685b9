"""
Error taxonomy for the simulation engine.

Only InvalidRequest and StorageUnavailable ever leave the actor. Explanation
failures are absorbed into a fallback string, and UnknownScenario signals a
programming error upstream of the generator or explainer.
"""


class SimulationError(Exception):
    """Base exception for simulation engine failures."""

    pass


class InvalidRequest(SimulationError):
    """Raised when a scenario tag or simulation id fails validation."""

    pass


class StorageUnavailable(SimulationError):
    """Raised when actor state cannot be read from or written to storage."""

    pass


class ExplanationUnavailable(SimulationError):
    """Raised inside the explanation path; never surfaced to callers."""

    pass


class UnknownScenario(SimulationError):
    """Raised by the metric generator or explainer for a tag outside ScenarioType."""

    pass
