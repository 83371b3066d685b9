"""
External service connectors.

- inference_client: hosted text-generation endpoint used for explanations
"""

from typing import Optional

from trafficsim.config import Settings

from .inference_client import (
    HTTPTextGenerator,
    InferenceError,
    TextGenerator,
    extract_text,
)


def build_text_generator(settings: Settings) -> Optional[TextGenerator]:
    """Build the configured text generator, or None when inference is disabled."""
    if not settings.inference_enabled:
        return None
    return HTTPTextGenerator(
        base_url=settings.inference_base_url,
        model=settings.inference_model,
        api_token=settings.inference_api_token,
    )


__all__ = [
    "HTTPTextGenerator",
    "InferenceError",
    "TextGenerator",
    "build_text_generator",
    "extract_text",
]
