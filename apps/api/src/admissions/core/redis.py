"""
Redis client.

Holds the process-wide async client behind the referral code cache. The
cache is optional: until ``init_redis`` succeeds, ``get_redis`` returns None
and referral lookups read the database directly.
"""

from redis.asyncio import Redis, from_url

from admissions.core.config import settings

redis_client: Redis | None = None


async def init_redis() -> Redis:
    """Connect and ping. Raises if Redis cannot be reached."""
    global redis_client
    client = from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    await client.ping()
    redis_client = client
    return redis_client


async def get_redis() -> Redis | None:
    return redis_client


def is_redis_available() -> bool:
    return redis_client is not None


async def close_redis() -> None:
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
