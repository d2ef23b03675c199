"""Fixed-window rate limiters for the public endpoints."""

import asyncio
import logging
import time
from typing import Protocol

import redis.asyncio as redis

from ..config import settings

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    async def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        """Count one request for `key`.

        Returns whether it is allowed and, when it is not, the seconds until
        the window resets.
        """
        ...


class MemoryRateLimiter:
    """Per-process limiter. Counts reset when the process restarts."""

    def __init__(self, clock=time.monotonic) -> None:
        self._lock = asyncio.Lock()
        self._windows: dict[str, tuple[int, float]] = {}
        self._clock = clock

    async def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        now = self._clock()
        async with self._lock:
            count, reset_at = self._windows.get(key, (0, 0.0))
            if reset_at <= now:
                self._windows[key] = (1, now + window_seconds)
                self._prune(now)
                return True, 0
            if count >= limit:
                return False, max(1, int(reset_at - now + 0.999))
            self._windows[key] = (count + 1, reset_at)
            return True, 0

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]


class RedisRateLimiter:
    """Shared limiter backed by Redis INCR/EXPIRE, consistent across instances."""

    def __init__(self, client: redis.Redis, prefix: str = "growwise:ratelimit:") -> None:
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimiter":
        return cls(redis.from_url(url, decode_responses=True))

    async def hit(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        redis_key = f"{self._prefix}{key}"
        count = await self._client.incr(redis_key)
        if count == 1:
            await self._client.expire(redis_key, window_seconds)
        if count <= limit:
            return True, 0

        ttl = await self._client.ttl(redis_key)
        if ttl < 0:
            # Key lost its expiry; start a fresh window
            await self._client.expire(redis_key, window_seconds)
            ttl = window_seconds
        return False, max(1, ttl)


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """FastAPI dependency returning the process-wide limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        if settings.redis_url:
            logger.info("Using Redis rate limiter")
            _rate_limiter = RedisRateLimiter.from_url(settings.redis_url)
        else:
            _rate_limiter = MemoryRateLimiter()
    return _rate_limiter
