"""Proposal Service — orchestrates proposal generation end to end.

Per request, strictly in order:
  1. Validate required fields
  2. Look up the response cache (hits return immediately, for free)
  3. Resolve the category template and build the prompt
  4. Admit the call against the shared request/token budget
  5. Call the LLM gateway under the retry policy
  6. Normalize the raw text into a ProposalResponse
  7. Store the response in the cache

The prompt is built before admission because the token estimate is
derived from its length; a misconfigured template therefore never
consumes rate-limit capacity.

Usage:
    service = ProposalService.from_settings()
    proposal = await service.generate(request)
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import replace
from typing import Any

from app.core.metrics import CACHE_LOOKUPS, GATEWAY_ATTEMPTS, GENERATION_DURATION, PROPOSALS_TOTAL
from app.gateway.openai_adapter import LlmGateway, OpenAIGateway
from app.gateway.rate_limiter import RateLimiter
from app.gateway.retry import RetryPolicy
from app.gateway.types import CompletionResult, GatewayError, GatewayErrorKind, OpenAIConfig
from app.proposals.cache import ResponseCache, fingerprint
from app.proposals.errors import (
    CacheUnavailableError,
    GatewayAuthError,
    GatewayInvalidError,
    GatewayNotConfiguredError,
    GatewayTransientError,
    GatewayUnknownError,
    InvalidInputError,
    ProposalError,
    RateLimitedError,
)
from app.proposals.normalizer import normalize_proposal
from app.proposals.prompt_builder import BuiltPrompt, PromptBuilder, estimate_tokens
from app.proposals.templates import TemplateRegistry
from app.proposals.types import ProjectCategory, ProposalRequest, ProposalResponse, ProposalStage

logger = logging.getLogger(__name__)

# Error codes that point at server configuration rather than the caller
_OPERATOR_ERRORS = {
    "template_not_found",
    "missing_variables",
    "template_invalid",
    "gateway_not_configured",
    "gateway_auth",
}

_GATEWAY_ERRORS: dict[GatewayErrorKind, type[ProposalError]] = {
    GatewayErrorKind.TRANSIENT: GatewayTransientError,
    GatewayErrorKind.INVALID: GatewayInvalidError,
    GatewayErrorKind.AUTH: GatewayAuthError,
    GatewayErrorKind.UNKNOWN: GatewayUnknownError,
}

_LIST_MARKER = re.compile(r"^(?:[-*•]|\d+[.)])\s*")


# ---------------------------------------------------------------------------
# Inbound payload parsing
# ---------------------------------------------------------------------------


def _first(payload: Mapping[str, Any], *names: str) -> Any:
    # Blank strings fall through so a filled alias still counts
    for name in names:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return value
    return None


def _optional_text(payload: Mapping[str, Any], *names: str) -> str | None:
    value = _first(payload, *names)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{names[0]} must be a string")
    return value.strip() or None


def _split_requirements(text: str) -> tuple[str, ...]:
    items = (_LIST_MARKER.sub("", line.strip()) for line in text.splitlines())
    return tuple(item for item in items if item)


def parse_request(payload: Mapping[str, Any]) -> ProposalRequest:
    """Build a ProposalRequest from the camelCase API payload.

    Accepts the proposal form's field names as aliases:
    `projectTitle` for `jobTitle`, `budget` for `clientBudget` and
    `additionalNotes` for `additionalContext`. `requirements` may be a
    list of strings or free text; either doubles as the job description
    when `jobDescription` is absent.
    """
    if not isinstance(payload, Mapping):
        raise InvalidInputError("Request body must be a JSON object")

    title = _optional_text(payload, "jobTitle", "projectTitle", "title") or ""
    description = _optional_text(payload, "jobDescription", "description")

    raw_requirements = payload.get("requirements")
    if raw_requirements is None:
        requirements: tuple[str, ...] = ()
    elif isinstance(raw_requirements, str):
        requirements = _split_requirements(raw_requirements)
        if description is None and raw_requirements.strip():
            description = raw_requirements.strip()
    elif isinstance(raw_requirements, list) and all(isinstance(item, str) for item in raw_requirements):
        requirements = tuple(item.strip() for item in raw_requirements if item.strip())
        if description is None and requirements:
            description = "\n".join(f"- {item}" for item in requirements)
    else:
        raise InvalidInputError("requirements must be a string or a list of strings")

    category_value = _optional_text(payload, "projectType", "category") or ProjectCategory.OTHER.value
    try:
        category = ProjectCategory.parse(category_value)
    except ValueError:
        allowed = ", ".join(c.value for c in ProjectCategory)
        raise InvalidInputError(f"projectType must be one of: {allowed}") from None

    return ProposalRequest(
        job_title=title,
        job_description=description or "",
        category=category,
        budget=_optional_text(payload, "clientBudget", "budget"),
        timeline=_optional_text(payload, "timeline"),
        additional_context=_optional_text(payload, "additionalContext", "additionalNotes"),
        client_name=_optional_text(payload, "clientName"),
        requirements=requirements,
    )


def validate_request(request: ProposalRequest) -> None:
    """Raise InvalidInputError unless both required fields are non-blank."""
    missing = []
    if not (request.job_title or "").strip():
        missing.append("jobTitle")
    if not (request.job_description or "").strip():
        missing.append("requirements")
    if missing:
        raise InvalidInputError(f"Missing required fields: {', '.join(missing)}")


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ProposalService:
    """Stateless orchestrator over the shared limiter and cache.

    RateLimiter and ResponseCache are injected so each test (or each
    process) owns its instances; the service itself keeps no per-request
    state between calls.
    """

    def __init__(
        self,
        gateway: LlmGateway,
        rate_limiter: RateLimiter | None = None,
        cache: ResponseCache | None = None,
        templates: TemplateRegistry | None = None,
        config: OpenAIConfig | None = None,
        retry_policy: RetryPolicy | None = None,
        prompt_builder: PromptBuilder | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        timer: Callable[[], float] = time.perf_counter,
    ):
        self.gateway = gateway
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter()
        self.cache = cache if cache is not None else ResponseCache()
        self.templates = templates if templates is not None else TemplateRegistry.with_defaults()
        self.config = config if config is not None else OpenAIConfig()
        self.retry_policy = retry_policy if retry_policy is not None else RetryPolicy()
        self.prompt_builder = prompt_builder if prompt_builder is not None else PromptBuilder()
        self._sleep = sleep
        self._timer = timer

    @classmethod
    def from_settings(cls, s=None) -> ProposalService:
        """Wire the service from process-wide configuration."""
        from app.core.config import cache_config, openai_config, rate_limit_config, settings

        s = s if s is not None else settings
        return cls(
            gateway=OpenAIGateway(
                api_key=s.openai_api_key,
                api_url=s.openai_api_url,
                timeout=s.openai_timeout_seconds,
            ),
            rate_limiter=RateLimiter(rate_limit_config(s)),
            cache=ResponseCache(cache_config(s)),
            templates=TemplateRegistry.with_defaults(),
            config=openai_config(s),
            retry_policy=RetryPolicy(
                max_attempts=s.gateway_max_attempts,
                base_delay=s.gateway_base_retry_delay,
                max_delay=s.gateway_max_retry_delay,
            ),
        )

    def update_config(self, **overrides: Any) -> OpenAIConfig:
        """Replace model tuning fields (validated by OpenAIConfig).

        Switching models drops every cached proposal, since cached
        responses carry the model that wrote them.
        """
        previous_model = self.config.model
        self.config = replace(self.config, **overrides)
        if self.config.model != previous_model:
            dropped = self.cache.reset()
            logger.info("Model changed to %s, dropped %d cached proposals", self.config.model, dropped)
        return self.config

    # -- pipeline -----------------------------------------------------------

    async def generate_from_payload(self, payload: Mapping[str, Any]) -> ProposalResponse:
        """Parse an API payload and run the pipeline."""
        try:
            request = parse_request(payload)
        except ProposalError as e:
            e.with_context(ProposalStage.VALIDATING, None)
            self._record_failure(e)
            raise
        return await self.generate(request)

    async def generate(self, request: ProposalRequest) -> ProposalResponse:
        """Run one request through the pipeline and return its proposal."""
        stage = ProposalStage.VALIDATING
        key: str | None = None

        try:
            validate_request(request)

            stage = ProposalStage.CACHE_CHECK
            key = fingerprint(request)
            cached = await self._cache_lookup(key)
            if cached is not None:
                logger.info("Proposal served from cache", extra={"fingerprint": key[:12]})
                PROPOSALS_TOTAL.labels(outcome="cached").inc()
                return cached

            stage = ProposalStage.BUILDING
            template = self.templates.resolve(request.category)
            prompt = self.prompt_builder.build(template, request)
            if not self.gateway.is_configured:
                raise GatewayNotConfiguredError("Proposal generation is not configured. Please check the API key.")

            stage = ProposalStage.RATE_LIMIT_CHECK
            estimated = estimate_tokens(prompt, self.config.max_tokens)
            admission = await self.rate_limiter.admit(estimated)
            if not admission.admitted:
                raise RateLimitedError(admission.retry_after)

            stage = ProposalStage.GENERATING
            started = self._timer()
            completion = await self._complete(prompt)
            elapsed = self._timer() - started
            GENERATION_DURATION.observe(elapsed)

            stage = ProposalStage.NORMALIZING
            response = normalize_proposal(
                completion,
                request,
                processing_time_ms=int(elapsed * 1000),
                template_id=template.id,
                configured_model=self.config.model,
            )

            await self._cache_store(key, response)

        except ProposalError as e:
            e.with_context(stage, key)
            self._record_failure(e)
            raise

        logger.info(
            "Proposal %s generated with %s (%d tokens, %d ms)",
            response.id,
            response.metadata.model,
            response.metadata.tokens_used,
            response.metadata.processing_time_ms,
            extra={"fingerprint": key[:12], "stage": ProposalStage.DONE.value},
        )
        PROPOSALS_TOTAL.labels(outcome="generated").inc()
        return response

    async def _complete(self, prompt: BuiltPrompt) -> CompletionResult:
        def _on_failure(error: GatewayError, attempt: int) -> None:
            GATEWAY_ATTEMPTS.labels(outcome=error.kind.value).inc()

        try:
            result = await self.retry_policy.run(
                lambda: self.gateway.complete(prompt.system_prompt, prompt.user_prompt, self.config),
                sleep=self._sleep,
                on_failure=_on_failure,
            )
        except GatewayError as e:
            error_cls = _GATEWAY_ERRORS.get(e.kind, GatewayUnknownError)
            raise error_cls(f"Failed to generate proposal: {e}") from e

        GATEWAY_ATTEMPTS.labels(outcome="success").inc()
        return result

    # -- cache (never fatal) ------------------------------------------------

    async def _cache_lookup(self, key: str) -> ProposalResponse | None:
        try:
            cached = await self.cache.lookup(key)
        except CacheUnavailableError as e:
            CACHE_LOOKUPS.labels(result="error").inc()
            logger.warning("Cache lookup bypassed: %s", e, extra={"fingerprint": key[:12], "error_code": e.error_code})
            return None
        CACHE_LOOKUPS.labels(result="hit" if cached is not None else "miss").inc()
        return cached

    async def _cache_store(self, key: str, response: ProposalResponse) -> None:
        try:
            await self.cache.store(key, response)
        except CacheUnavailableError as e:
            logger.warning("Cache store skipped: %s", e, extra={"fingerprint": key[:12], "error_code": e.error_code})

    # -- diagnostics --------------------------------------------------------

    def _record_failure(self, error: ProposalError) -> None:
        PROPOSALS_TOTAL.labels(outcome=error.error_code).inc()
        failed_at = error.stage.value if error.stage else None
        extra = {
            "fingerprint": error.fingerprint[:12] if error.fingerprint else None,
            "stage": ProposalStage.FAILED.value,
            "error_code": error.error_code,
        }
        if error.error_code in _OPERATOR_ERRORS:
            logger.error("Proposal configuration error at %s: %s", failed_at, error.message, extra=extra)
        elif isinstance(error, InvalidInputError):
            logger.info("Proposal request rejected: %s", error.message, extra=extra)
        else:
            logger.warning("Proposal generation failed at %s: %s", failed_at, error.message, extra=extra)

    def status(self) -> dict:
        """Operator view of shared state and configuration."""
        return {
            "model": self.config.model,
            "gateway_configured": self.gateway.is_configured,
            "rate_limit": self.rate_limiter.get_stats(),
            "cache": self.cache.stats(),
            "templates": [t.to_summary_dict() for t in self.templates.list_templates()],
        }
