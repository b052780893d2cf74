"""
Rate Limiting

Sliding-window request throttling for the credential endpoints (login and
registration). Uses a Redis sorted set per key when Redis is connected and
an in-process window otherwise. The in-process fallback is per worker.
"""

import logging
import time
from uuid import uuid4

from fastapi import HTTPException, Request, status
from redis.asyncio import Redis

from app.core.redis import get_redis

logger = logging.getLogger(__name__)

# key -> request timestamps inside the current window
_memory_store: dict[str, list[float]] = {}


class RateLimitExceeded(HTTPException):
    """Raised when a key has used up its window (HTTP 429)."""

    def __init__(self, limit: int, window_seconds: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "error": "RATE_LIMIT_EXCEEDED",
                "message": f"Too many attempts. Maximum {limit} per {window_seconds} seconds.",
                "retry_after_seconds": window_seconds,
            },
            headers={"Retry-After": str(window_seconds)},
        )


async def _check_redis(client: Redis, key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, now - window_seconds)
    pipe.zcard(key)
    # Unique member so two hits in the same instant both count
    pipe.zadd(key, {f"{now}:{uuid4().hex}": now})
    pipe.expire(key, window_seconds)
    results = await pipe.execute()

    return results[1] < limit


def _check_memory(key: str, limit: int, window_seconds: int) -> bool:
    now = time.time()
    window = [ts for ts in _memory_store.get(key, []) if ts > now - window_seconds]

    if len(window) >= limit:
        _memory_store[key] = window
        return False

    window.append(now)
    _memory_store[key] = window
    return True


async def check_rate_limit(key: str, limit: int, window_seconds: int) -> bool:
    """
    Record one hit for ``key`` and report whether it is within the limit.

    Args:
        key: Throttle key, e.g. "rate_limit:login:<ip>:<email>"
        limit: Maximum hits allowed in the window
        window_seconds: Window length

    Returns:
        True if allowed, False if the limit is exceeded
    """
    client = get_redis()
    if client is not None:
        try:
            return await _check_redis(client, key, limit, window_seconds)
        except Exception as e:
            logger.warning(f"Redis rate limit check failed, using memory: {e}")

    return _check_memory(key, limit, window_seconds)


def client_key(request: Request, scope: str, identifier: str = "") -> str:
    """Build a throttle key from the client IP, a scope and an optional identifier."""
    client_ip = request.client.host if request.client else "unknown"
    return f"rate_limit:{scope}:{client_ip}:{identifier.strip().lower()}"


async def enforce_rate_limit(key: str, limit: int, window_seconds: int) -> None:
    """Raise RateLimitExceeded when ``key`` is over its limit."""
    if not await check_rate_limit(key, limit, window_seconds):
        logger.warning(f"Rate limit exceeded for {key}: {limit}/{window_seconds}s")
        raise RateLimitExceeded(limit, window_seconds)


def reset_memory_store() -> None:
    """Forget all in-process windows."""
    _memory_store.clear()


__all__ = [
    "RateLimitExceeded",
    "check_rate_limit",
    "client_key",
    "enforce_rate_limit",
    "reset_memory_store",
]
