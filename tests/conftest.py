from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import settings

# Override settings for tests
settings.app_env = "test"
settings.openai_api_key = "sk-test-fake-key"

from app.core.dependencies import get_proposal_service  # noqa: E402
from app.core.rate_limit import limiter  # noqa: E402
from app.gateway.openai_adapter import LlmGateway  # noqa: E402
from app.gateway.rate_limiter import RateLimiter  # noqa: E402
from app.gateway.retry import RetryPolicy  # noqa: E402
from app.gateway.types import (  # noqa: E402
    CompletionResult,
    GatewayError,
    OpenAIConfig,
    RateLimitConfig,
)
from app.main import app  # noqa: E402
from app.proposals.cache import ResponseCache  # noqa: E402
from app.proposals.service import ProposalService  # noqa: E402
from app.proposals.templates import TemplateRegistry  # noqa: E402
from app.proposals.types import CacheConfig, ProjectCategory, ProposalRequest  # noqa: E402

SAMPLE_PROPOSAL = """# Responsive Landing Page Proposal

Thank you for sharing your project. Here is how I would approach it:

- Mobile-first responsive layout
- Lighthouse score above 90
- Contact form with spam protection
1. Discovery call and content review
2. Design and build
3. Launch and handover

Timeline: 3 weeks
Estimated cost: $2,500
Estimated hours: 40
"""


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGateway(LlmGateway):
    """Deterministic gateway: replays scripted results or errors."""

    def __init__(self, outcomes: list | None = None, configured: bool = True):
        self.outcomes = list(outcomes or [])
        self.calls: list[tuple[str, str, OpenAIConfig]] = []
        self.configured = configured

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def complete(self, system_prompt: str, user_prompt: str, config: OpenAIConfig) -> CompletionResult:
        self.calls.append((system_prompt, user_prompt, config))
        outcome = self.outcomes.pop(0) if self.outcomes else SAMPLE_PROPOSAL
        if isinstance(outcome, GatewayError):
            raise outcome
        if isinstance(outcome, CompletionResult):
            return outcome
        return CompletionResult(text=outcome, tokens_used=850, model=config.model)


class CountingRateLimiter(RateLimiter):
    """RateLimiter that records how often admission was attempted."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.admit_calls = 0

    async def admit(self, estimated_tokens: int = 0):
        self.admit_calls += 1
        return await super().admit(estimated_tokens)


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def rate_limiter(clock: ManualClock) -> CountingRateLimiter:
    return CountingRateLimiter(
        RateLimitConfig(enabled=True, max_requests_per_minute=10, max_tokens_per_minute=100_000),
        clock=clock,
    )


@pytest.fixture
def cache(clock: ManualClock) -> ResponseCache:
    return ResponseCache(CacheConfig(enabled=True, ttl_minutes=60, max_entries=100), clock=clock)


@pytest.fixture
def service(gateway: FakeGateway, rate_limiter: CountingRateLimiter, cache: ResponseCache) -> ProposalService:
    return ProposalService(
        gateway=gateway,
        rate_limiter=rate_limiter,
        cache=cache,
        templates=TemplateRegistry.with_defaults(),
        config=OpenAIConfig(model="gpt-4o-mini", max_tokens=1024),
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.01, max_delay=0.05),
        sleep=no_sleep,
    )


@pytest.fixture
def landing_page_request() -> ProposalRequest:
    return ProposalRequest(
        job_title="Landing Page",
        job_description="Build a responsive landing page",
        category=ProjectCategory.WEB_DEVELOPMENT,
        requirements=("Build a responsive landing page",),
    )


@pytest.fixture
async def client(service: ProposalService) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_proposal_service] = lambda: service
    limiter.enabled = False
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.pop(get_proposal_service, None)
