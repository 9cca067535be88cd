from typing import Any

import httpx

from ..errors import DownstreamFailure, UpstreamTimeout
from ..utils.logging import get_logger

logger = get_logger(__name__)


class OpenRouterClient:
    """Minimal async client for the OpenRouter chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://openrouter.ai/api/v1/chat/completions",
        referer: str = "",
        title: str = "",
        timeout: float = 120.0,
        temperature: float = 0.3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.temperature = temperature
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        if referer:
            headers["HTTP-Referer"] = referer
        if title:
            headers["X-Title"] = title
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def complete(self, messages: list[dict[str, Any]], model: str, max_tokens: int = 8000) -> str:
        """Send one chat completion request and return the first choice's text."""
        payload = {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens,
        }
        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout("ai provider", self.timeout) from exc
        except httpx.HTTPError as exc:
            raise DownstreamFailure(str(exc)) from exc

        if response.is_error:
            logger.error("OpenRouter request failed", status=response.status_code, model=model)
            raise DownstreamFailure(response.text)

        try:
            return response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise DownstreamFailure("malformed completion response") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


def clean_html_response(html: str) -> str:
    """Strip markdown code fences the model sometimes wraps around HTML."""
    cleaned = html.strip()
    if cleaned.startswith("```html"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()
