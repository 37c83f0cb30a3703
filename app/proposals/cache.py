"""Response Cache — bounded, TTL-expiring store of generated proposals.

Keys are fingerprints of the normalized request, so equivalent requests
(same content after trimming whitespace and case-folding the category,
regardless of field order) share one entry.

Eviction is strict FIFO by insertion time: a cache hit does not refresh
an entry's age. Expired entries are treated as absent and purged lazily
when touched, and from the head of the queue on each store.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from app.proposals.errors import CacheUnavailableError
from app.proposals.types import CacheConfig, ProposalRequest, ProposalResponse

logger = logging.getLogger(__name__)


def fingerprint(request: ProposalRequest) -> str:
    """Deterministic SHA-256 digest of the normalized request."""
    canonical = json.dumps(request.normalized(), sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class CacheEntry:
    """Cached proposal with its insertion timestamp."""

    value: ProposalResponse
    inserted_at: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class ResponseCache:
    """In-memory proposal cache safe for concurrent coroutines.

    Usage:
        cache = ResponseCache(CacheConfig(ttl_minutes=60, max_entries=100))

        key = fingerprint(request)
        cached = await cache.lookup(key)
        if cached is None:
            response = await generate(...)
            await cache.store(key, response)
    """

    def __init__(self, config: CacheConfig | None = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._stats = CacheStats()
        self._lock = asyncio.Lock()

    @property
    def ttl_seconds(self) -> float:
        return self.config.ttl_minutes * 60.0

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at > self.ttl_seconds

    def _purge_expired_head(self, now: float) -> None:
        # Insertion order equals age order, so expired entries sit at the head
        while self._entries:
            entry = next(iter(self._entries.values()))
            if not self._is_expired(entry, now):
                break
            self._entries.popitem(last=False)

    async def lookup(self, key: str) -> ProposalResponse | None:
        """Return the cached response for `key`, or None on a miss."""
        if not self.config.enabled:
            return None

        async with self._lock:
            try:
                entry = self._entries.get(key)
                if entry is None:
                    self._stats.misses += 1
                    return None

                if self._is_expired(entry, self._clock()):
                    del self._entries[key]
                    self._stats.misses += 1
                    return None

                self._stats.hits += 1
                return entry.value
            except Exception as e:
                raise CacheUnavailableError(f"Cache lookup failed: {type(e).__name__}") from e

    async def store(self, key: str, response: ProposalResponse) -> None:
        """Insert or overwrite `key`; evict the oldest entry when over capacity."""
        if not self.config.enabled:
            return

        async with self._lock:
            try:
                now = self._clock()
                self._purge_expired_head(now)

                # Overwrite moves the key to the tail with a fresh timestamp
                self._entries.pop(key, None)
                self._entries[key] = CacheEntry(value=response, inserted_at=now)

                while len(self._entries) > self.config.max_entries:
                    evicted_key, _ = self._entries.popitem(last=False)
                    self._stats.evictions += 1
                    logger.debug("Cache evicted %s", evicted_key[:12])
            except Exception as e:
                raise CacheUnavailableError(f"Cache store failed: {type(e).__name__}") from e

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._is_expired(entry, self._clock())

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        """Keys in insertion order (oldest first), expired ones included."""
        return list(self._entries)

    def reset(self) -> int:
        """Drop every entry without waiting on the lock. Returns the count removed.

        Safe from synchronous code on the event loop thread because it
        never yields.
        """
        count = len(self._entries)
        self._entries.clear()
        return count

    async def clear(self) -> int:
        """Drop every entry. Returns the count removed."""
        async with self._lock:
            return self.reset()

    def stats(self) -> dict:
        return {
            "enabled": self.config.enabled,
            "size": len(self._entries),
            "max_entries": self.config.max_entries,
            "ttl_minutes": self.config.ttl_minutes,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "evictions": self._stats.evictions,
            "hit_rate": round(self._stats.hit_rate, 4),
        }
