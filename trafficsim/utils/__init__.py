"""Utility modules for logging and request tracing."""

from trafficsim.utils.logging import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
