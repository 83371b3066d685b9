"""
Enumeration types for the traffic simulator.

All enums inherit from str to ensure JSON serialization compatibility.
"""

from enum import Enum


class ScenarioType(str, Enum):
    """
    Synthetic traffic scenarios the simulator can reproduce.

    Each scenario maps to a fixed set of metric ranges for the protected and
    unprotected profiles.
    """

    NORMAL = "normal"
    SPIKE = "spike"
    DDOS = "ddos"

    @classmethod
    def values(cls) -> list[str]:
        """Return the raw tag values in declaration order."""
        return [member.value for member in cls]


class ActorLifecycle(str, Enum):
    """Lifecycle of the simulation actor."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
