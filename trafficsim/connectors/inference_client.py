"""
Text-generation client for simulation explanations.

Talks to a hosted inference endpoint that accepts a prompt and returns a short
completion. The response body shape differs between deployments, so the text
is read from the first of several known locations.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
import structlog

logger = structlog.get_logger()


class InferenceError(Exception):
    """Raised when the inference endpoint request fails."""

    pass


class TextGenerator(ABC):
    """Anything that turns a prompt into text."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate a completion for the prompt.

        Raises:
            InferenceError: If the completion cannot be produced
        """
        pass

    async def aclose(self) -> None:
        """Release any held resources."""
        return None


def extract_text(payload: Any) -> str:
    """
    Pull the completion text out of an inference response body.

    Checks ``response``, then ``result.response``, ``result.output`` and
    ``result.text``. Returns an empty string when none is a non-empty string.
    """
    if not isinstance(payload, dict):
        return ""

    candidates = [payload.get("response")]
    result = payload.get("result")
    if isinstance(result, dict):
        candidates.extend(
            [result.get("response"), result.get("output"), result.get("text")]
        )

    for candidate in candidates:
        if isinstance(candidate, str) and candidate:
            return candidate
    return ""


class HTTPTextGenerator(TextGenerator):
    """
    Inference endpoint client over httpx.

    Attributes:
        base_url: Endpoint base URL; the model id is appended as a path segment
        model: Model identifier
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        api_token: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._api_token = api_token
        self._http_client = http_client

        logger.info(
            "inference_client_initialized",
            base_url=self.base_url,
            model=model,
            has_token=bool(api_token),
        )

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/{self.model.lstrip('/')}"

    def _get_client(self) -> httpx.AsyncClient:
        # No client-level timeout: the caller enforces the deadline by cancelling.
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=None)
        return self._http_client

    async def generate(self, prompt: str) -> str:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"

        try:
            response = await self._get_client().post(
                self.endpoint,
                json={"prompt": prompt},
                headers=headers,
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "inference_request_rejected",
                status_code=e.response.status_code,
                model=self.model,
            )
            raise InferenceError(
                f"Inference endpoint returned {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("inference_request_failed", model=self.model, error=str(e))
            raise InferenceError(f"Inference request failed: {e}") from e

        return extract_text(payload)

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
