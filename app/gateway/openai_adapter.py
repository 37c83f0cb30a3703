"""LLM gateway contract and the OpenAI chat-completions adapter.

The proposal pipeline only depends on LlmGateway.complete(); retries and
backoff live in app.gateway.retry and never look at the transport.

Status mapping for the OpenAI adapter:
  - Timeout / connection error, 408, 409, 429, 5xx → TRANSIENT
  - 400, 404, 413, 422, empty content, content filter → INVALID
  - 401, 403 → AUTH
  - anything else → UNKNOWN
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from app.gateway.types import CompletionResult, GatewayError, GatewayErrorKind, OpenAIConfig

logger = logging.getLogger(__name__)

_TRANSIENT_STATUSES = {408, 409, 429}
_INVALID_STATUSES = {400, 404, 413, 422}
_AUTH_STATUSES = {401, 403}


def classify_status(status_code: int) -> GatewayErrorKind:
    """Map an HTTP status from the provider onto a gateway error kind."""
    if status_code in _TRANSIENT_STATUSES or status_code >= 500:
        return GatewayErrorKind.TRANSIENT
    if status_code in _AUTH_STATUSES:
        return GatewayErrorKind.AUTH
    if status_code in _INVALID_STATUSES:
        return GatewayErrorKind.INVALID
    return GatewayErrorKind.UNKNOWN


class LlmGateway(ABC):
    """Base class for language-model gateways."""

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def complete(self, system_prompt: str, user_prompt: str, config: OpenAIConfig) -> CompletionResult:
        """Return the model's completion or raise GatewayError."""
        ...

    async def health_check(self) -> bool:
        """Send a tiny completion; True if the provider answered."""
        if not self.is_configured:
            return False
        try:
            result = await self.complete("", "Hello", OpenAIConfig(max_tokens=5))
        except GatewayError as e:
            logger.warning("LLM health check failed (%s): %s", e.kind.value, e)
            return False
        return bool(result.text)


class OpenAIGateway(LlmGateway):
    """OpenAI Chat Completions adapter."""

    api_url = "https://api.openai.com/v1/chat/completions"

    def __init__(self, api_key: str, api_url: str | None = None, timeout: float = 60.0):
        self.api_key = api_key
        self.timeout = timeout
        if api_url:
            self.api_url = api_url

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key != "your_openai_api_key_here"

    async def complete(self, system_prompt: str, user_prompt: str, config: OpenAIConfig) -> CompletionResult:
        if not self.is_configured:
            raise GatewayError("OpenAI API key is not configured", kind=GatewayErrorKind.AUTH)

        payload = config.to_payload()
        payload["messages"] = []
        if system_prompt:
            payload["messages"].append({"role": "system", "content": system_prompt})
        payload["messages"].append({"role": "user", "content": user_prompt})

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.api_url,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException as e:
            raise GatewayError(f"OpenAI timeout after {self.timeout}s", kind=GatewayErrorKind.TRANSIENT) from e
        except httpx.TransportError as e:
            raise GatewayError(f"OpenAI connection error: {type(e).__name__}", kind=GatewayErrorKind.TRANSIENT) from e

        if resp.status_code != 200:
            kind = classify_status(resp.status_code)
            raise GatewayError(
                f"OpenAI returned HTTP {resp.status_code}: {self._error_message(resp)}",
                kind=kind,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
            choice = data["choices"][0]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GatewayError("Malformed response from OpenAI", kind=GatewayErrorKind.UNKNOWN) from e

        if choice.get("finish_reason") == "content_filter":
            raise GatewayError("Completion blocked by OpenAI content filter", kind=GatewayErrorKind.INVALID)

        content = (choice.get("message") or {}).get("content") or ""
        if not content.strip():
            raise GatewayError("No content received from OpenAI", kind=GatewayErrorKind.INVALID)

        usage = data.get("usage") or {}
        tokens = usage.get("total_tokens") or usage.get("prompt_tokens", 0) + usage.get("completion_tokens", 0)

        return CompletionResult(
            text=content,
            tokens_used=int(tokens),
            model=data.get("model", config.model),
        )

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        """Short provider error message; never echoes the request."""
        try:
            body = resp.json()
        except ValueError:
            return resp.reason_phrase or "error"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:200]
        return resp.reason_phrase or "error"
