"""Retry policy for gateway calls — exponential backoff with jitter.

Backoff strategy:
  delay = min(base * 2^attempt + jitter, max_delay)
  jitter = random(0, base * 0.5)

Per error kind:
  - TRANSIENT: retried until max_attempts calls have been made
  - UNKNOWN: retried once, then raised
  - INVALID / AUTH: raised immediately
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from app.gateway.types import GatewayError, GatewayErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

# UNKNOWN failures get exactly one retry
UNKNOWN_MAX_ATTEMPTS = 2


def calculate_backoff(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
) -> float:
    """Calculate exponential backoff with jitter.

    Formula: min(base * 2^attempt + jitter, max_delay)
    Jitter: random(0, base * 0.5)
    """
    exponential = base_delay * (2**attempt)
    jitter = random.uniform(0, base_delay * 0.5)
    return min(exponential + jitter, max_delay)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry budget for a single gateway call."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0

    def attempts_for(self, kind: GatewayErrorKind) -> int:
        """Total attempts allowed once a failure of `kind` has been seen."""
        if kind == GatewayErrorKind.TRANSIENT:
            return self.max_attempts
        if kind == GatewayErrorKind.UNKNOWN:
            return min(self.max_attempts, UNKNOWN_MAX_ATTEMPTS)
        return 1

    async def run(
        self,
        call: Callable[[], Awaitable[T]],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_failure: Callable[[GatewayError, int], None] | None = None,
    ) -> T:
        """Invoke `call` until it succeeds or the budget for its error kind runs out.

        Args:
            call: Zero-argument coroutine factory performing one gateway call
            sleep: Awaitable sleep, injectable for tests
            on_failure: Hook invoked with (error, attempt) after each failure

        Raises:
            GatewayError: the last failure once no retry is allowed
        """
        attempt = 0
        while True:
            try:
                return await call()
            except GatewayError as e:
                if on_failure is not None:
                    on_failure(e, attempt)

                if attempt + 1 >= self.attempts_for(e.kind):
                    raise

                delay = calculate_backoff(attempt, self.base_delay, self.max_delay)
                logger.info(
                    "Gateway %s failure (attempt %d/%d), retrying in %.1fs",
                    e.kind.value,
                    attempt + 1,
                    self.attempts_for(e.kind),
                    delay,
                )
                await sleep(delay)
                attempt += 1
