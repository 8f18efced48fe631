"""Sliding window rate limiting for the authentication endpoints."""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from threading import Lock
from typing import Callable, Deque, DefaultDict, Protocol

from redis import Redis

from ..config import Settings

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def allow(self, key: str) -> bool: ...


class SlidingWindowRateLimiter:
    """Thread-safe in-process sliding window limiter."""

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._clock = clock
        self._events: DefaultDict[str, Deque[float]] = DefaultDict(deque)
        self._lock = Lock()

    def allow(self, key: str) -> bool:
        """Return ``True`` when the request is within the configured rate limit."""
        now = self._clock()
        with self._lock:
            window = self._events[key]
            while window and now - window[0] >= self._window:
                window.popleft()
            if len(window) >= self._max_requests:
                return False
            window.append(now)
            return True


class RedisSlidingWindowRateLimiter:
    """Limiter shared by all replicas, kept in one Redis sorted set per key.

    Each attempt is recorded optimistically inside a MULTI block and removed
    again when it pushes the window over the limit, so concurrent callers never
    see more than ``max_requests`` admitted entries.
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "identity:rate",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix

    def allow(self, key: str) -> bool:
        now_ms = int(time.time() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        member = f"{now_ms}:{uuid.uuid4().hex}"

        pipe = self._client.pipeline(transaction=True)
        pipe.zremrangebyscore(redis_key, 0, now_ms - self._window_ms)
        pipe.zadd(redis_key, {member: now_ms})
        pipe.zcard(redis_key)
        pipe.pexpire(redis_key, self._window_ms)
        _, _, admitted, _ = pipe.execute()

        if int(admitted) > self._max_requests:
            self._client.zrem(redis_key, member)
            return False
        return True


def build_rate_limiter(settings: Settings, redis_client: Redis | None = None) -> RateLimiter:
    """Instantiate the configured limiter backend, falling back to in-memory."""
    if settings.rate_limit_backend == "redis" and redis_client is not None:
        logger.info("rate limiter configured for redis backend")
        return RedisSlidingWindowRateLimiter(
            redis_client,
            max_requests=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    if settings.rate_limit_backend == "redis":
        logger.warning("redis rate limiter requested without a redis client, using in-memory")
    logger.info("rate limiter using in-memory backend")
    return SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
