"""Rate Limiter — shared RPM/TPM admission with rolling one-minute windows.

Tracks requests-per-minute (RPM) and tokens-per-minute (TPM) across all
callers using a sliding window. When a ceiling would be exceeded the call
is rejected with the time until the oldest window entry expires.

Admission is serialized by a single asyncio.Lock: purge, check and record
happen in one critical section, so two concurrent callers can never both
take the last unit of capacity.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from app.gateway.types import RateLimitConfig

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0


@dataclass
class _WindowEntry:
    """Single admitted call in the sliding window."""

    timestamp: float
    tokens: int = 0  # Estimated tokens reserved at admission


@dataclass(frozen=True)
class Admission:
    """Result of RateLimiter.admit()."""

    admitted: bool
    retry_after: float = 0.0  # Seconds until capacity frees up (rejections only)


class RateLimiter:
    """Process-wide rate limiter with request and token ceilings.

    Usage:
        limiter = RateLimiter(RateLimitConfig(max_requests_per_minute=10))

        admission = await limiter.admit(estimated_tokens=2500)
        if not admission.admitted:
            # surface admission.retry_after to the caller
            ...

    Admitted capacity is never refunded, so the limiter accounts for
    attempted work rather than completed work.
    """

    def __init__(self, config: RateLimitConfig | None = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._entries: deque[_WindowEntry] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        """Remove entries older than the one-minute window."""
        cutoff = now - WINDOW_SECONDS
        while self._entries and self._entries[0].timestamp <= cutoff:
            self._entries.popleft()

    @property
    def current_rpm(self) -> int:
        """Requests in the current 1-minute window."""
        return len(self._entries)

    @property
    def current_tpm(self) -> int:
        """Tokens in the current 1-minute window."""
        return sum(e.tokens for e in self._entries)

    def _retry_after(self, now: float) -> float:
        if not self._entries:
            # Estimate alone exceeds the token ceiling; a full window is the honest hint
            return WINDOW_SECONDS
        wait = (self._entries[0].timestamp + WINDOW_SECONDS) - now
        return max(wait, 0.1)

    async def admit(self, estimated_tokens: int = 0) -> Admission:
        """Try to admit one call costing roughly `estimated_tokens`."""
        estimated_tokens = max(int(estimated_tokens), 0)

        async with self._lock:
            now = self._clock()
            self._prune(now)

            if not self.config.enabled:
                return Admission(admitted=True)

            if self.current_rpm + 1 > self.config.max_requests_per_minute:
                wait = self._retry_after(now)
                logger.info(
                    "Rate limit: %d/%d requests in window, retry in %.1fs",
                    self.current_rpm,
                    self.config.max_requests_per_minute,
                    wait,
                )
                return Admission(admitted=False, retry_after=wait)

            if self.current_tpm + estimated_tokens > self.config.max_tokens_per_minute:
                wait = self._retry_after(now)
                logger.info(
                    "Rate limit: %d + %d tokens exceeds %d/min, retry in %.1fs",
                    self.current_tpm,
                    estimated_tokens,
                    self.config.max_tokens_per_minute,
                    wait,
                )
                return Admission(admitted=False, retry_after=wait)

            self._entries.append(_WindowEntry(timestamp=now, tokens=estimated_tokens))
            return Admission(admitted=True)

    def get_stats(self) -> dict:
        """Get current rate limit stats."""
        self._prune(self._clock())
        return {
            "enabled": self.config.enabled,
            "current_rpm": self.current_rpm,
            "rpm_limit": self.config.max_requests_per_minute,
            "current_tpm": self.current_tpm,
            "tpm_limit": self.config.max_tokens_per_minute,
        }
