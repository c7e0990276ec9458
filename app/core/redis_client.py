"""
Redis connection for state shared between workers (signup staging)
"""
from functools import lru_cache
import redis.asyncio as redis
from app.core.config import get_settings


@lru_cache()
def get_redis_client() -> redis.Redis:
    """Get Redis client instance (cached); connections are opened lazily"""
    settings = get_settings()
    return redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True
    )
