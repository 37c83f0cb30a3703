"""Core types for the LLM gateway boundary."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class GatewayErrorKind(str, Enum):
    """Failure classes reported by an LLM gateway."""

    TRANSIENT = "transient"  # Network hiccup, 429, 5xx, retryable
    INVALID = "invalid"  # Malformed request, content policy rejection
    AUTH = "auth"  # Credential failure
    UNKNOWN = "unknown"  # Anything else, retried once at most


class GatewayError(Exception):
    """Raised by a gateway when a completion cannot be produced."""

    def __init__(self, message: str, kind: GatewayErrorKind = GatewayErrorKind.UNKNOWN, status_code: int = 0):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Model tuning passed through to the provider
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OpenAIConfig:
    """Model identifier and sampling parameters for a completion call."""

    model: str = "gpt-4o-mini"
    max_tokens: int = 2048
    temperature: float = 0.7
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    def __post_init__(self) -> None:
        if not self.model:
            raise ValueError("model must not be empty")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("temperature must be within [0, 2]")
        if not 0.0 <= self.top_p <= 1.0:
            raise ValueError("top_p must be within [0, 1]")
        for name in ("frequency_penalty", "presence_penalty"):
            if not -2.0 <= getattr(self, name) <= 2.0:
                raise ValueError(f"{name} must be within [-2, 2]")

    def to_payload(self) -> dict:
        """Chat-completions request fields for this config."""
        return {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "top_p": self.top_p,
            "frequency_penalty": self.frequency_penalty,
            "presence_penalty": self.presence_penalty,
        }


# ---------------------------------------------------------------------------
# Rate limit config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitConfig:
    """Process-wide ceilings shared by every caller."""

    enabled: bool = True
    max_requests_per_minute: int = 10
    max_tokens_per_minute: int = 50_000


# ---------------------------------------------------------------------------
# Completion result returned by the gateway
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CompletionResult:
    """Text produced by the model plus accounting fields."""

    text: str
    tokens_used: int = 0
    model: str = ""
