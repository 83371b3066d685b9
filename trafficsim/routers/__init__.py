"""API routers for all endpoints."""

from trafficsim.routers import simulation, system

__all__ = [
    "simulation",
    "system",
]
