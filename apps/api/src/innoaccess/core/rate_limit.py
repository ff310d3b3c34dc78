"""
Rate Limiting Module

Keyed rate limiting backed by Redis so limits hold across every API
instance. Limit state lives in sorted sets with key expiry; nothing is kept
in process memory.

Used by:
- The cron trigger endpoint (brute force of the shared secret)
- The payment webhook (per gateway IP)
- Checkout initiation (per user)
"""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any, Protocol

from fastapi import HTTPException, Request, status
from redis.asyncio import Redis

from innoaccess.core.redis import get_redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check."""

    allowed: bool
    retry_after_seconds: int = 0
    remaining: int = 0


class RateLimiter(Protocol):
    """Anything that can answer "may this key make another request?"."""

    async def check(self, key: str, limit: int, window_seconds: int) -> RateLimitResult: ...


class RateLimitExceeded(HTTPException):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, limit: int, window_seconds: int, retry_after_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after_seconds": retry_after_seconds,
            },
            headers={"Retry-After": str(retry_after_seconds)},
        )


class RedisRateLimiter:
    """
    Sliding window limiter over a Redis sorted set.

    Each request is a member scored by its timestamp. Members older than
    the window are trimmed on every check and the key expires with the
    window, so idle keys clean themselves up.
    """

    def __init__(self, client: Redis):
        self._client = client

    async def check(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = time.time()
        window_start = now - window_seconds

        pipe = self._client.pipeline()
        pipe.zremrangebyscore(key, 0, window_start)
        pipe.zcard(key)
        pipe.zrange(key, 0, 0, withscores=True)
        results = await pipe.execute()

        current_count = results[1]
        if current_count >= limit:
            oldest = results[2]
            oldest_ts = oldest[0][1] if oldest else now
            retry_after = max(1, int(oldest_ts + window_seconds - now) + 1)
            return RateLimitResult(allowed=False, retry_after_seconds=retry_after, remaining=0)

        pipe = self._client.pipeline()
        pipe.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
        pipe.expire(key, window_seconds)
        await pipe.execute()

        return RateLimitResult(allowed=True, remaining=limit - current_count - 1)


async def get_rate_limiter() -> RateLimiter | None:
    """Return the Redis-backed limiter, or None when Redis is not connected."""
    client = await get_redis()
    if client is None:
        return None
    return RedisRateLimiter(client)


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> RateLimitResult:
    """
    Check if a request is within rate limits.

    When Redis is unavailable the request is allowed and a warning is
    logged; limits are never tracked per process.
    """
    limiter = await get_rate_limiter()
    if limiter is None:
        logger.warning(f"Redis unavailable, rate limit not enforced for {key}")
        return RateLimitResult(allowed=True, remaining=limit)

    try:
        return await limiter.check(key, limit, window_seconds)
    except Exception as e:
        logger.warning(f"Redis rate limit check failed for {key}: {e}")
        return RateLimitResult(allowed=True, remaining=limit)


def client_ip(request: Request) -> str:
    """Best-effort client IP, honouring proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def rate_limit(
    limit: int = 10,
    window_seconds: int = 60,
    key_func: Callable[[Request], str] | None = None,
):
    """
    Rate limiting decorator for FastAPI endpoints.

    Usage:
        @router.post("/orders")
        @rate_limit(limit=10, window_seconds=60)
        async def create_order(request: Request, ...):
            ...

    Args:
        limit: Maximum requests allowed in the window (default: 10)
        window_seconds: Time window in seconds (default: 60)
        key_func: Optional function to generate rate limit key from request.
                  Default uses client IP + endpoint path.

    Raises:
        RateLimitExceeded: When rate limit is exceeded (HTTP 429)
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request: Request | None = kwargs.get("request")
            if request is None:
                for arg in args:
                    if isinstance(arg, Request):
                        request = arg
                        break

            if request is None:
                logger.warning(
                    f"Rate limit decorator on {func.__name__} couldn't find Request object"
                )
                return await func(*args, **kwargs)

            if key_func:
                key = key_func(request)
            else:
                key = f"rate_limit:{client_ip(request)}:{request.url.path}"

            result = await check_rate_limit(key, limit, window_seconds)

            if not result.allowed:
                logger.warning(f"Rate limit exceeded for {key}: {limit}/{window_seconds}s")
                raise RateLimitExceeded(limit, window_seconds, result.retry_after_seconds)

            return await func(*args, **kwargs)

        return wrapper

    return decorator


def user_rate_limit_key(request: Request) -> str:
    """
    Rate limit key for authenticated actions.

    Uses the user id stored on request.state by the auth dependency,
    falling back to the client IP.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id:
        return f"user_action:{user_id}:{request.url.path}"
    return f"user_action:{client_ip(request)}:{request.url.path}"


__all__ = [
    "RateLimiter",
    "RateLimitResult",
    "RedisRateLimiter",
    "RateLimitExceeded",
    "check_rate_limit",
    "client_ip",
    "rate_limit",
    "user_rate_limit_key",
]
