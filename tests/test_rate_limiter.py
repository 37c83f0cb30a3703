"""Tests for the shared RPM/TPM rate limiter."""

import asyncio

import pytest

from app.gateway.rate_limiter import WINDOW_SECONDS, RateLimiter
from app.gateway.types import RateLimitConfig


def _limiter(clock, rpm=10, tpm=50_000, enabled=True):
    return RateLimiter(
        RateLimitConfig(enabled=enabled, max_requests_per_minute=rpm, max_tokens_per_minute=tpm),
        clock=clock,
    )


class TestRequestCeiling:
    @pytest.mark.asyncio
    async def test_admits_up_to_rpm(self, clock):
        limiter = _limiter(clock, rpm=3)
        results = [await limiter.admit(100) for _ in range(3)]
        assert all(r.admitted for r in results)
        assert limiter.current_rpm == 3

    @pytest.mark.asyncio
    async def test_rejects_over_rpm_with_retry_after(self, clock):
        limiter = _limiter(clock, rpm=2)
        await limiter.admit(10)
        clock.advance(15)
        await limiter.admit(10)
        clock.advance(5)

        admission = await limiter.admit(10)
        assert not admission.admitted
        # Oldest entry was admitted 20s ago, so it frees up in 40s
        assert admission.retry_after == pytest.approx(40.0)
        assert limiter.current_rpm == 2

    @pytest.mark.asyncio
    async def test_third_rejected_then_admitted_after_window(self, clock):
        limiter = _limiter(clock, rpm=2)
        assert (await limiter.admit(10)).admitted
        clock.advance(20)
        assert (await limiter.admit(10)).admitted
        clock.advance(20)
        assert not (await limiter.admit(10)).admitted

        clock.advance(21)  # 61s after the first admission
        assert (await limiter.admit(10)).admitted

    @pytest.mark.asyncio
    async def test_rejection_records_nothing(self, clock):
        limiter = _limiter(clock, rpm=1)
        await limiter.admit(100)
        await limiter.admit(100)
        await limiter.admit(100)
        assert limiter.current_rpm == 1
        assert limiter.current_tpm == 100


class TestTokenCeiling:
    @pytest.mark.asyncio
    async def test_rejects_when_estimate_would_exceed_tpm(self, clock):
        limiter = _limiter(clock, tpm=1000)
        assert (await limiter.admit(600)).admitted
        admission = await limiter.admit(500)
        assert not admission.admitted
        assert limiter.current_tpm == 600

    @pytest.mark.asyncio
    async def test_exactly_at_ceiling_is_admitted(self, clock):
        limiter = _limiter(clock, tpm=1000)
        assert (await limiter.admit(400)).admitted
        assert (await limiter.admit(600)).admitted
        assert limiter.current_tpm == 1000

    @pytest.mark.asyncio
    async def test_single_oversized_estimate_waits_full_window(self, clock):
        limiter = _limiter(clock, tpm=1000)
        admission = await limiter.admit(5000)
        assert not admission.admitted
        assert admission.retry_after == WINDOW_SECONDS

    @pytest.mark.asyncio
    async def test_negative_estimate_counts_as_zero(self, clock):
        limiter = _limiter(clock)
        assert (await limiter.admit(-50)).admitted
        assert limiter.current_tpm == 0


class TestWindow:
    @pytest.mark.asyncio
    async def test_entries_expire_after_sixty_seconds(self, clock):
        limiter = _limiter(clock, rpm=1)
        await limiter.admit(10)

        clock.advance(59)
        assert not (await limiter.admit(10)).admitted

        clock.advance(1)
        assert (await limiter.admit(10)).admitted
        assert limiter.current_rpm == 1

    @pytest.mark.asyncio
    async def test_admissions_are_not_refunded(self, clock):
        limiter = _limiter(clock, rpm=2)
        await limiter.admit(10)
        await limiter.admit(10)
        clock.advance(30)
        # Nothing was released even though time passed
        assert not (await limiter.admit(10)).admitted

    @pytest.mark.asyncio
    async def test_get_stats_prunes_expired(self, clock):
        limiter = _limiter(clock, rpm=5, tpm=9000)
        await limiter.admit(1200)
        clock.advance(61)
        stats = limiter.get_stats()
        assert stats == {
            "enabled": True,
            "current_rpm": 0,
            "rpm_limit": 5,
            "current_tpm": 0,
            "tpm_limit": 9000,
        }


class TestDisabled:
    @pytest.mark.asyncio
    async def test_disabled_always_admits_and_records_nothing(self, clock):
        limiter = _limiter(clock, rpm=1, tpm=10, enabled=False)
        for _ in range(5):
            assert (await limiter.admit(10_000)).admitted
        assert limiter.current_rpm == 0


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_callers_never_overshoot(self, clock):
        limiter = _limiter(clock, rpm=5)
        results = await asyncio.gather(*(limiter.admit(10) for _ in range(20)))
        assert sum(1 for r in results if r.admitted) == 5
        assert limiter.current_rpm == 5
