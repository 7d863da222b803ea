import asyncio
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, NamedTuple, Optional

from fastapi import Request
import redis.asyncio as aioredis
from redis.exceptions import RedisError

from medba.config.settings import config

logger = logging.getLogger(__name__)


class RateDecision(NamedTuple):
    allowed: bool
    retry_after: int = 0


@dataclass
class RateBucket:
    window_start: float
    count: int


class InMemoryRateLimiter:
    """
    Process-wide fixed-window counter keyed by client.

    The lock only guards the read-modify-write of one bucket and is never
    held across an await, so it is safe from the event loop and from threads.
    """

    backend = "memory"

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests or config.rate_limit.max_requests
        self.window_seconds = window_seconds or config.rate_limit.window_seconds
        self.clock = clock
        self.buckets: Dict[str, RateBucket] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> RateDecision:
        now = self.clock()
        with self._lock:
            bucket = self.buckets.get(key)

            if bucket is None or now - bucket.window_start >= self.window_seconds:
                self.buckets[key] = RateBucket(window_start=now, count=1)
                return RateDecision(True)

            if bucket.count >= self.max_requests:
                remaining = max(0.0, self.window_seconds - (now - bucket.window_start))
                return RateDecision(False, max(1, math.ceil(remaining)))

            bucket.count += 1
            return RateDecision(True)

    async def admit(self, key: str) -> RateDecision:
        return self.check(key)

    def sweep(self) -> int:
        """Evict buckets whose window started more than two windows ago"""
        cutoff = self.window_seconds * 2
        now = self.clock()
        with self._lock:
            stale = [key for key, bucket in self.buckets.items() if now - bucket.window_start > cutoff]
            for key in stale:
                del self.buckets[key]
        return len(stale)

    async def run_sweeper(self) -> None:
        """Periodic sweep, one pass per window length, until cancelled"""
        while True:
            await asyncio.sleep(self.window_seconds)
            evicted = self.sweep()
            if evicted:
                logger.debug(f"Rate limiter evicted {evicted} stale buckets")

    async def close(self) -> None:
        return None


class RedisRateLimiter:
    """Redis-based fixed-window limiter shared by every worker process"""

    backend = "redis"

    def __init__(
        self,
        redis: aioredis.Redis,
        max_requests: Optional[int] = None,
        window_seconds: Optional[float] = None,
    ):
        self.redis = redis
        self.max_requests = max_requests or config.rate_limit.max_requests
        self.window_seconds = max(1, math.ceil(window_seconds or config.rate_limit.window_seconds))

        self.lua_script = """
        local key = KEYS[1]
        local limit = tonumber(ARGV[1])
        local window = tonumber(ARGV[2])

        local current = redis.call('INCR', key)
        if current == 1 then
            redis.call('EXPIRE', key, window)
        end

        if current > limit then
            local ttl = redis.call('TTL', key)
            return {0, ttl}
        end

        return {1, 0}
        """

    async def admit(self, key: str) -> RateDecision:
        try:
            allowed, ttl = await self.redis.eval(
                self.lua_script,
                1,
                f"rate:{key}",
                self.max_requests,
                self.window_seconds
            )
        except RedisError as e:
            # Redis outage admits the request
            logger.warning(f"Rate limiter unavailable, admitting {key}: {e}")
            return RateDecision(True)

        if int(allowed):
            return RateDecision(True)
        return RateDecision(False, max(1, int(ttl)))

    async def run_sweeper(self) -> None:
        # Redis expires windows itself
        return None

    async def close(self) -> None:
        # Connection is owned by medba.infra.redis
        return None


def client_key(request: Request) -> str:
    """First X-Forwarded-For entry, else the peer address"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and forwarded.strip():
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    if request.client and request.client.host:
        return request.client.host
    return "unknown"

