"""
Chat completion client for the LLM audit.

Talks to an OpenAI-compatible chat completions endpoint (Mistral or
OpenAI) in JSON mode and returns the decoded JSON object.
"""

import json
import logging
import os
from typing import Any

import httpx

from ..constants import AUDIT_MAX_TOKENS, AUDIT_TEMPERATURE, DEFAULT_REQUEST_TIMEOUT
from ..core.exceptions import (
    APIError,
    AuthenticationError,
    LLMResponseError,
    MissingConfigError,
    NetworkError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, dict[str, str]] = {
    "mistral": {
        "url": "https://api.mistral.ai/v1/chat/completions",
        "model": "mistral-medium-latest",
        "env": "MISTRAL_API_KEY",
    },
    "openai": {
        "url": "https://api.openai.com/v1/chat/completions",
        "model": "gpt-4o-mini",
        "env": "OPENAI_API_KEY",
    },
}


def _detect_provider() -> str | None:
    for name, provider in PROVIDERS.items():
        if os.getenv(provider["env"]):
            return name
    return None


class LLMClient:
    """Client for JSON-mode chat completions."""

    def __init__(
        self,
        api_key: str | None = None,
        provider: str | None = None,
        model: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: API key; read from ``MISTRAL_API_KEY`` or
                ``OPENAI_API_KEY`` when omitted.
            provider: "mistral" or "openai"; detected from the environment
                when omitted, Mistral first.
            model: Model name; defaults to the provider's audit model.
            timeout: Request timeout in seconds.
        """
        self.provider = provider or _detect_provider() or "mistral"
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider: {self.provider}")

        config = PROVIDERS[self.provider]
        self.api_key = api_key or os.getenv(config["env"])
        self.model = model or config["model"]
        self.url = config["url"]
        self.timeout = timeout

        if self.enabled:
            logger.info(f"LLM audit enabled using {self.provider} ({self.model})")
        else:
            logger.info("LLM audit disabled - no API key found")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def complete_json(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        """Send a chat completion request and decode the JSON answer.

        Raises:
            MissingConfigError: If no API key is configured.
            AuthenticationError: If the API rejects the key.
            RateLimitError: If the API rate limit is hit.
            APIError: For any other unsuccessful HTTP status.
            NetworkError: If the request could not be sent.
            LLMResponseError: If the answer is not a JSON object.
        """
        if not self.enabled:
            raise MissingConfigError(
                f"No API key for {self.provider}; set {PROVIDERS[self.provider]['env']}"
            )

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": AUDIT_TEMPERATURE,
            "max_tokens": AUDIT_MAX_TOKENS,
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                    timeout=self.timeout,
                )
        except httpx.TimeoutException as e:
            raise NetworkError(f"LLM request timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            raise NetworkError(f"LLM request failed: {e}") from e

        self._raise_for_status(response)

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMResponseError("Invalid response format from LLM API") from e

        if not isinstance(content, str):
            raise LLMResponseError("Invalid response format from LLM API")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"LLM answer is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise LLMResponseError("LLM answer is not a JSON object")
        return data

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        if status in (401, 403):
            raise AuthenticationError(f"{self.provider} rejected the API key (HTTP {status})")
        if status == 429:
            retry_after = response.headers.get("retry-after")
            raise RateLimitError(
                f"{self.provider} rate limit exceeded",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        raise APIError(
            f"{self.provider} API error (HTTP {status})",
            status_code=status,
            response_body=response.text[:1000],
        )
