"""
Redis Connection

Shared async client used for login/registration throttling. Redis is
optional outside production: when it is not connected, rate limiting falls
back to process memory.
"""

import logging

from redis.asyncio import Redis, from_url

from app.core.config import settings

logger = logging.getLogger(__name__)

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect and ping. Called from the application lifespan."""
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    await client.ping()
    redis_client = client
    return redis_client


def get_redis() -> Redis | None:
    """Return the connected client, or None if Redis was never reached."""
    return redis_client


async def close_redis() -> None:
    """Close the shared client."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
        logger.debug("Redis connection closed")
