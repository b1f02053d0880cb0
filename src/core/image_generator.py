"""
Remote image generation clients.

Two interchangeable backends share one contract: a prompt and an optional
inline source image go in, and a GenerationResponse comes out carrying
either an image URL or an error message. Explicit service errors are
returned as data; transport failures (network, timeouts, malformed bodies)
are raised so the caller can classify them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from src.core.config import GenerationConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResponse:
    """Outcome reported by the generation service."""
    image_url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Any) -> "GenerationResponse":
        """Read the `{imageUrl} | {error}` wire format."""
        if not isinstance(data, dict):
            return cls()
        image_url = data.get("imageUrl")
        error = data.get("error")
        if isinstance(error, dict):
            error = error.get("message") or str(error)
        return cls(
            image_url=image_url if isinstance(image_url, str) and image_url.strip() else None,
            error=str(error) if error else None,
        )


class RemoteImageGenerator(Protocol):
    """Anything that can turn a prompt into an image URL."""

    async def generate(
        self, prompt: str, source_image: Optional[str] = None
    ) -> GenerationResponse:
        ...

    async def close(self) -> None:
        ...


def _error_from_response(response: httpx.Response) -> Optional[str]:
    """Pull the service's error message out of a non-2xx JSON body.

    Returns None when the body carries no `error`/`message`, so gateway pages
    and bare status codes stay transport failures.
    """
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    error = body.get("error") or body.get("message")
    if isinstance(error, dict):
        error = error.get("message")
    return str(error) if error else None


class EdgeFunctionImageGenerator:
    """Client for a `generate-image` function speaking `{prompt, sourceImage}`.

    Reuses a single httpx.AsyncClient across requests.
    Call ``close()`` when the owning session goes away.
    """

    def __init__(self, config: GenerationConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.headers = {"Content-Type": "application/json"}
        if config.api_key:
            self.headers["Authorization"] = f"Bearer {config.api_key}"
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def generate(
        self, prompt: str, source_image: Optional[str] = None
    ) -> GenerationResponse:
        payload: dict[str, Any] = {"prompt": prompt}
        if source_image:
            payload["sourceImage"] = source_image

        try:
            response = await self._client.post(
                self.config.endpoint_url,
                headers=self.headers,
                json=payload,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Generation HTTP error: {e.response.status_code} - {e.response.text[:500]}")
            error = _error_from_response(e.response)
            if error is None:
                raise
            return GenerationResponse(error=error)

        return GenerationResponse.from_payload(response.json())


class OpenRouterImageGenerator:
    """Generate images using OpenRouter API with chat completions endpoint.

    A source image, when present, is sent as an ``image_url`` content part
    next to the text so the model can edit or restyle it.
    """

    def __init__(self, config: GenerationConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self.headers = {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
            "X-Title": "Abbas Image Studio",
        }
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _build_payload(self, prompt: str, source_image: Optional[str]) -> dict[str, Any]:
        if source_image:
            content: Any = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": source_image}},
            ]
        else:
            content = f"Generate an image: {prompt}"
        return {
            "model": self.config.model,
            "messages": [{"role": "user", "content": content}],
            "modalities": ["image", "text"],
        }

    async def generate(
        self, prompt: str, source_image: Optional[str] = None
    ) -> GenerationResponse:
        try:
            response = await self._client.post(
                self.config.openrouter_url,
                headers=self.headers,
                json=self._build_payload(prompt, source_image),
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"API HTTP error: {e.response.status_code} - {e.response.text[:500]}")
            error = _error_from_response(e.response)
            if error is None:
                raise
            return GenerationResponse(error=error)

        data = response.json()
        if isinstance(data, dict) and data.get("error"):
            return GenerationResponse.from_payload({"error": data["error"]})

        # Extract image from the response
        if isinstance(data, dict) and data.get("choices"):
            message = data["choices"][0].get("message", {})
            images = message.get("images", [])
            if images:
                image_url = images[0].get("image_url", {}).get("url", "")
                if image_url:
                    return GenerationResponse(image_url=image_url)

        msg_keys = list(data["choices"][0].get("message", {}).keys()) if isinstance(data, dict) and data.get("choices") else "N/A"
        logger.warning(f"No image in response. Message keys: {msg_keys}")
        return GenerationResponse()


def create_image_generator(config: GenerationConfig) -> RemoteImageGenerator:
    """Build the generator selected by ``config.backend``."""
    if config.backend == "openrouter":
        return OpenRouterImageGenerator(config)
    if config.backend == "edge":
        return EdgeFunctionImageGenerator(config)
    raise ValueError(f"Unknown generation backend: {config.backend}")
