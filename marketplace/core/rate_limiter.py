import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from enum import Enum
from uuid import uuid4

import redis
from fastapi import HTTPException, status

from marketplace.core.config import settings

logger = logging.getLogger("marketplace.rate_limiter")

TOO_MANY_REQUESTS_DETAIL = "Too many requests. Please try again later."


class RateLimitScope(str, Enum):
    REGISTER = "auth:register"
    LOGIN = "auth:login"
    MESSAGE_SEND = "messages:send"


def _retry_after(oldest: float, window_seconds: int, now: float) -> int:
    return max(1, math.ceil(oldest + window_seconds - now))


class RateLimiter(ABC):
    @abstractmethod
    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        """Record one hit for ``key``; return (allowed, retry_after_seconds)."""

    @abstractmethod
    def reset(self) -> None:
        raise NotImplementedError


class InMemoryRateLimiter(RateLimiter):
    def __init__(self) -> None:
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        now = time.time()
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - window_seconds:
                hits.popleft()
            if len(hits) >= limit:
                return False, _retry_after(hits[0], window_seconds, now)
            hits.append(now)
            return True, 0

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class RedisRateLimiter(RateLimiter):
    """Sliding window kept in one sorted set per key.

    The hit is added and counted in a single MULTI block; a hit over the limit
    is removed again so rejected attempts do not extend the window.
    """

    def __init__(self, redis_url: str, prefix: str = "marketplace:rl") -> None:
        self._client = redis.Redis.from_url(
            redis_url,
            socket_connect_timeout=0.2,
            socket_timeout=0.2,
        )
        self._prefix = prefix

    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        redis_key = f"{self._prefix}:{key}"
        now = time.time()
        member = f"{now:.6f}:{uuid4().hex}"

        pipe = self._client.pipeline(transaction=True)
        pipe.zremrangebyscore(redis_key, 0, now - window_seconds)
        pipe.zadd(redis_key, {member: now})
        pipe.zcard(redis_key)
        pipe.zrange(redis_key, 0, 0, withscores=True)
        pipe.expire(redis_key, window_seconds + 5)
        _, _, hits, oldest, _ = pipe.execute()

        if hits <= limit:
            return True, 0

        self._client.zrem(redis_key, member)
        oldest_at = oldest[0][1] if oldest else now
        return False, _retry_after(oldest_at, window_seconds, now)

    def reset(self) -> None:
        keys = list(self._client.scan_iter(match=f"{self._prefix}:*"))
        if keys:
            self._client.delete(*keys)


class FallbackRateLimiter(RateLimiter):
    """Uses Redis while it answers and the local limiter while it does not."""

    def __init__(self, primary: RateLimiter, fallback: RateLimiter) -> None:
        self._primary = primary
        self._fallback = fallback

    def allow(self, key: str, limit: int, window_seconds: int) -> tuple[bool, int]:
        try:
            return self._primary.allow(key, limit, window_seconds)
        except redis.RedisError as exc:
            logger.warning("rate_limiter_fallback key=%s error=%s", key, type(exc).__name__)
            return self._fallback.allow(key, limit, window_seconds)

    def reset(self) -> None:
        try:
            self._primary.reset()
        except redis.RedisError as exc:
            logger.warning("rate_limiter_reset_failed error=%s", type(exc).__name__)
        self._fallback.reset()


def _build_rate_limiter() -> RateLimiter:
    if settings.rate_limit_backend.strip().lower() != "redis":
        return InMemoryRateLimiter()
    return FallbackRateLimiter(
        primary=RedisRateLimiter(redis_url=settings.rate_limit_redis_url),
        fallback=InMemoryRateLimiter(),
    )


rate_limiter: RateLimiter = _build_rate_limiter()


def _limits_for(scope: RateLimitScope) -> tuple[int, int]:
    # Read on every call so limits follow the live settings object.
    if scope is RateLimitScope.REGISTER:
        return settings.auth_register_max_attempts, settings.auth_rate_limit_window_seconds
    if scope is RateLimitScope.LOGIN:
        return settings.auth_login_max_attempts, settings.auth_rate_limit_window_seconds
    return settings.message_send_max_attempts, settings.message_rate_limit_window_seconds


def enforce_rate_limit(scope: RateLimitScope, subject: str) -> None:
    limit, window_seconds = _limits_for(scope)
    allowed, retry_after = rate_limiter.allow(f"{scope.value}:{subject}", limit, window_seconds)
    if allowed:
        return

    logger.info("rate_limited scope=%s subject=%s retry_after=%s", scope.value, subject, retry_after)
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=TOO_MANY_REQUESTS_DETAIL,
        headers={"Retry-After": str(retry_after)},
    )
