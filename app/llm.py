import logging
from typing import Any, Optional

import httpx

from .config import LLMConfig
from .errors import (
    ConfigurationError,
    GenerationError,
    RateLimitedError,
    is_rate_limit_message,
)

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull the provider's error message out of a failed response."""
    try:
        detail = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    error = detail.get("error") if isinstance(detail, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return response.reason_phrase


def extract_text(data: Any) -> Optional[str]:
    """Find the generated text in a Responses API payload.

    Providers disagree on the layout: some return ``output_text``, others only
    an ``output`` list whose items are plain strings, message items with
    ``content`` parts, or items carrying ``text`` directly. Reasoning items
    without text are skipped.
    """
    if not isinstance(data, dict):
        return None

    if isinstance(data.get("output_text"), str) and data["output_text"]:
        return data["output_text"]

    parts = []
    for item in data.get("output") or []:
        if isinstance(item, str):
            parts.append(item)
            continue
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if isinstance(content, list):
            parts.extend(
                c["text"]
                for c in content
                if isinstance(c, dict) and isinstance(c.get("text"), str)
            )
        elif isinstance(item.get("text"), str):
            parts.append(item["text"])

    text = "".join(parts)
    return text or None


class GroqClient:
    """Text generation through Groq's OpenAI-compatible Responses API."""

    def __init__(
        self,
        config: LLMConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.config.api_endpoint.rstrip('/')}/responses"

    async def generate(self, prompt: str) -> str:
        if not self.config.is_configured:
            raise ConfigurationError("GROQ API key is not configured.")

        payload = {"model": self.config.model, "input": prompt}
        headers = {"Authorization": f"Bearer {self.config.api_key}"}

        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout, transport=self._transport
            ) as client:
                response = await client.post(self.url, json=payload, headers=headers)
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as exc:
            logger.error("Invalid text generation endpoint %r: %s", self.url, exc)
            raise ConfigurationError(
                "AI service endpoint is misconfigured.", details=str(exc)
            ) from exc
        except httpx.ConnectError as exc:
            logger.error("Could not reach text generation service at %s: %s", self.url, exc)
            raise ConfigurationError(
                "AI service is unreachable.", details=str(exc)
            ) from exc
        except httpx.TimeoutException as exc:
            raise GenerationError(details=f"Request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise GenerationError(details=str(exc)) from exc

        if response.is_error:
            msg = _error_message(response)
            logger.warning(
                "Text generation failed (%s): %s", response.status_code, msg
            )
            if response.status_code == 429 or is_rate_limit_message(msg):
                raise RateLimitedError(details=msg)
            if response.status_code in (401, 403):
                raise ConfigurationError(
                    "AI service credentials were rejected.", details=msg
                )
            raise GenerationError(details=f"Groq API error ({response.status_code}): {msg}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError(details=f"Unexpected response from Groq API: {exc}") from exc

        text = extract_text(data)
        if text is None:
            raise GenerationError(details="Groq API returned no text output")
        return text
