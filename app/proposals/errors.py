"""Exception hierarchy for the proposal pipeline.

Every error carries a machine-readable code, a short message safe to show
to the caller, and whether retrying later can help. ProposalService adds
the request fingerprint and the stage that failed before re-raising, so
logs can be correlated without exposing prompt text.
"""

from __future__ import annotations

from app.proposals.types import ProposalStage


class ProposalError(Exception):
    """Base class for proposal pipeline failures."""

    error_code = "proposal_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
        self.stage: ProposalStage | None = None
        self.fingerprint: str | None = None

    def with_context(self, stage: ProposalStage, fingerprint: str | None) -> ProposalError:
        """Attach diagnostic context; first writer wins."""
        if self.stage is None:
            self.stage = stage
        if self.fingerprint is None:
            self.fingerprint = fingerprint
        return self

    def to_dict(self) -> dict:
        """Caller-facing error payload."""
        return {"error": self.error_code, "message": self.message}


class InvalidInputError(ProposalError):
    """The request is missing required fields or has bad values."""

    error_code = "invalid_input"
    status_code = 400


class TemplateNotFoundError(ProposalError):
    """No template is registered for the requested category."""

    error_code = "template_not_found"

    def __init__(self, category: str):
        super().__init__(f"No proposal template registered for category '{category}'")
        self.category = category


class MissingVariablesError(ProposalError):
    """A template variable's required source field is empty."""

    error_code = "missing_variables"

    def __init__(self, names: list[str]):
        super().__init__(f"Missing template variables: {', '.join(sorted(names))}")
        self.names = sorted(names)


class TemplateValidationError(ProposalError):
    """A template failed registration-time checks."""

    error_code = "template_invalid"

    def __init__(self, template_id: str, problems: list[str]):
        super().__init__(f"Template '{template_id}' is invalid: {'; '.join(problems)}")
        self.problems = problems


class RateLimitedError(ProposalError):
    """Shared request/token capacity is exhausted for now."""

    error_code = "rate_limited"
    status_code = 503
    retryable = True

    def __init__(self, retry_after: float):
        super().__init__(f"Rate limit exceeded. Please try again in {retry_after:.0f} seconds.")
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["retryAfter"] = round(self.retry_after, 1)
        return data


class GatewayNotConfiguredError(ProposalError):
    """No usable credentials for the language-model provider."""

    error_code = "gateway_not_configured"
    status_code = 503


class GatewayTransientError(ProposalError):
    """Provider kept failing transiently after all retries."""

    error_code = "gateway_transient"
    status_code = 503
    retryable = True


class GatewayInvalidError(ProposalError):
    """Provider rejected the request (malformed or content policy)."""

    error_code = "gateway_invalid"
    status_code = 502


class GatewayAuthError(ProposalError):
    """Provider rejected our credentials."""

    error_code = "gateway_auth"
    status_code = 502


class GatewayUnknownError(ProposalError):
    """Provider failed in an unclassified way."""

    error_code = "gateway_unknown"
    status_code = 502


class CacheUnavailableError(ProposalError):
    """The response cache failed; callers bypass it."""

    error_code = "cache_unavailable"
