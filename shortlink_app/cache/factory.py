"""
Factory for creating cache instances from settings.
"""

from enum import Enum
import logging

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from shortlink_app.config import Settings

logger = logging.getLogger(__name__)


class CacheBackend(Enum):
    """Available cache backends"""
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


class CacheFactory:
    """
    Simple factory for creating cache instances.

    The caller owns the returned instance and is responsible for closing it
    (see ServiceContainer.shutdown).
    """

    @classmethod
    async def create(cls, backend: CacheBackend, settings: Settings) -> CacheStrategy:
        """
        Create a cache instance for the given backend.

        A Redis backend that cannot be reached at startup falls back to the
        in-memory cache; the cache is a performance optimisation, never a
        correctness dependency.

        Args:
            backend: Type of cache backend (from enum)
            settings: Application settings (Redis URL, timeouts)

        Returns:
            CacheStrategy instance
        """
        if backend == CacheBackend.REDIS:
            import redis.asyncio as redis

            redis_client = redis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=settings.redis_connect_timeout,
                socket_timeout=settings.redis_socket_timeout,
            )
            try:
                # Test connection immediately
                await redis_client.ping()
            except Exception as e:
                logger.warning("Redis connection failed (%s); falling back to in-memory cache", e)
                await redis_client.aclose()
                return InMemoryCache()

            logger.info("Redis cache initialized at %s", settings.redis_url)
            return RedisCache(redis_client)

        if backend == CacheBackend.MEMORY:
            logger.info("In-memory cache initialized")
            return InMemoryCache()

        if backend == CacheBackend.NULL:
            logger.info("Null cache initialized")
            return NullCache()

        raise ValueError(f"Unknown cache backend: {backend}")
