# skolapp/services/rate_limit.py
"""
Fixed-window rate limiting with a pluggable counter store.

The shared store (Redis) keeps limits correct across API instances; the
in-process store is a single-instance fallback for local development and
tests. Both expire counters when their window closes.
"""

import logging
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from cachetools import TLRUCache
from redis import Redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    key_prefix: str
    limit: int
    window_seconds: int


# Live answer submission: at most 5 answers per 10 seconds per user/IP
ANSWER_RULE = RateLimitRule(key_prefix="answer", limit=5, window_seconds=10)


class CounterStore(Protocol):
    def incr(self, key: str, window_seconds: int) -> int:
        """Increment the counter for key, starting a window on first hit. Returns the new value."""
        ...


class RedisCounterStore:
    """Shared counters in Redis (INCR + EXPIRE on first hit)."""

    def __init__(self, client: Redis):
        self._client = client

    def incr(self, key: str, window_seconds: int) -> int:
        value = int(self._client.incr(key))
        if value == 1:
            self._client.expire(key, window_seconds)
        return value


class InMemoryCounterStore:
    """
    Process-local counters.

    Each entry expires window_seconds after its first hit, as passed to
    incr(). The cache is bounded, so memory use stays flat under many
    distinct keys. Only correct for a single API instance.
    """

    def __init__(self, maxsize: int = 10_000, timer=time.monotonic):
        self._counts: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_window_expiry, timer=timer)
        self._lock = threading.Lock()

    def incr(self, key: str, window_seconds: int) -> int:
        with self._lock:
            # Counts are bumped in place so the first hit's expiry is kept
            entry = self._counts.get(key)
            if entry is not None:
                entry[0] += 1
                return entry[0]
            self._counts[key] = [1, window_seconds]
            return 1


def _window_expiry(key, entry, now):
    return now + entry[1]


class RateLimiter:
    """
    Fixed-window limiter.

    Usage:
        limiter = RateLimiter(InMemoryCounterStore(), ANSWER_RULE)
        if not limiter.hit("user:123"):
            raise HTTPException(status_code=429)
    """

    def __init__(self, store: CounterStore, rule: RateLimitRule):
        self.store = store
        self.rule = rule

    def hit(self, identifier: str) -> bool:
        """Count a request; True if it is within the limit. Store failures let the request through."""
        key = f"rate:{self.rule.key_prefix}:{identifier}"
        try:
            count = self.store.incr(key, self.rule.window_seconds)
        except Exception as e:
            logger.warning(f"Rate limit store unavailable, allowing request: {e}")
            return True
        return count <= self.rule.limit


@lru_cache(maxsize=1)
def get_answer_rate_limiter() -> RateLimiter:
    """Build the answer limiter from settings: Redis when REDIS_URL is set, else in-process."""
    from skolapp.config import get_settings

    settings = get_settings()
    if settings.REDIS_URL:
        store: CounterStore = RedisCounterStore(Redis.from_url(settings.REDIS_URL))
        logger.info("Answer rate limiting uses Redis")
    else:
        store = InMemoryCounterStore()
        logger.info("Answer rate limiting uses in-process counters (single instance only)")
    return RateLimiter(store, ANSWER_RULE)
