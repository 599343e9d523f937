"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).

Every strategy honours the same failure contract: connectivity problems are
logged and degrade to a miss / no-op sentinel, never an exception.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple
import logging
import time

from shortlink_app.metrics import CACHE_ERRORS_TOTAL

logger = logging.getLogger(__name__)


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    This is the Strategy Pattern interface - allows multiple cache implementations
    without changing the service layer code.

    All methods are async because cache operations involve I/O (network for Redis).
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Returns:
            Cached value or None if not found (or the cache is unreachable)
        """

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        """
        Set value in cache with TTL (Time To Live) in seconds.

        Returns:
            True if successful, False otherwise
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Returns:
            True if the operation succeeded, False on failure
        """

    @abstractmethod
    async def increment_with_ttl(self, key: str, ttl: int) -> Optional[int]:
        """
        Atomically increment an integer counter.

        The first increment (counter becomes 1) sets the TTL; later increments
        leave it untouched.

        Returns:
            The new counter value, or None on failure
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists in cache."""

    @abstractmethod
    async def clear(self) -> bool:
        """Clear all cache entries."""

    async def ping(self) -> bool:
        """Health probe. True when the backend answers."""
        return True

    async def close(self) -> None:
        """Release connections. Safe to call more than once."""


class RedisCache(CacheStrategy):
    """
    Redis cache implementation with async operations (``redis.asyncio``).

    Production-ready cache with:
    - Distributed caching (multiple servers can share cache)
    - Atomic INCR for counters
    - TTL support
    - Short socket timeouts so a slow Redis degrades to a miss
    """

    def __init__(self, redis_client):
        """
        Initialize Redis cache.

        Args:
            redis_client: ``redis.asyncio.Redis`` client created with
                ``decode_responses=True``
        """
        self.redis = redis_client

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis.get(key)
        except Exception as e:
            CACHE_ERRORS_TOTAL.labels(operation="get").inc()
            logger.warning("Redis get error for %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        try:
            return bool(await self.redis.set(key, value, ex=ttl))
        except Exception as e:
            CACHE_ERRORS_TOTAL.labels(operation="set").inc()
            logger.warning("Redis set error for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self.redis.delete(key)
            return True
        except Exception as e:
            CACHE_ERRORS_TOTAL.labels(operation="delete").inc()
            logger.warning("Redis delete error for %s: %s", key, e)
            return False

    async def increment_with_ttl(self, key: str, ttl: int) -> Optional[int]:
        try:
            # One MULTI/EXEC: the key never exists without its TTL.
            # SET NX only creates the key; INCR keeps an existing TTL.
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=ttl, nx=True)
                pipe.incr(key)
                _, count = await pipe.execute()
            return int(count)
        except Exception as e:
            CACHE_ERRORS_TOTAL.labels(operation="increment").inc()
            logger.warning("Redis increment error for %s: %s", key, e)
            return None

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.redis.exists(key))
        except Exception as e:
            CACHE_ERRORS_TOTAL.labels(operation="exists").inc()
            logger.warning("Redis exists error for %s: %s", key, e)
            return False

    async def clear(self) -> bool:
        """Clear all Redis keys (use with caution!)"""
        try:
            await self.redis.flushdb()
            return True
        except Exception as e:
            CACHE_ERRORS_TOTAL.labels(operation="clear").inc()
            logger.warning("Redis clear error: %s", e)
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception:
            return False

    async def close(self) -> None:
        try:
            await self.redis.aclose()
        except Exception as e:
            logger.warning("Redis close error: %s", e)


class InMemoryCache(CacheStrategy):
    """
    In-memory cache implementation using a Python dict.

    Pros:
    - Very fast (no network overhead)
    - Simple (no external dependencies)
    - Good for development and testing

    Cons:
    - Not distributed (each process has its own cache)
    - Lost on restart

    TTLs are enforced lazily on read against ``clock`` (seconds, monotonic by
    default), so tests can advance time without sleeping.
    Note: Async for interface consistency, but operations are instant.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._cache: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock

    def _live(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._cache[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        self._cache[key] = (value, self._clock() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        self._cache.pop(key, None)
        return True

    async def increment_with_ttl(self, key: str, ttl: int) -> Optional[int]:
        entry = self._live(key)
        if entry is None:
            self._cache[key] = ("1", self._clock() + ttl)
            return 1
        value, expires_at = entry
        count = int(value) + 1
        self._cache[key] = (str(count), expires_at)
        return count

    async def exists(self, key: str) -> bool:
        return self._live(key) is not None

    async def clear(self) -> bool:
        self._cache.clear()
        return True


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    Used for:
    - Testing (when you want to test without cache)
    - Disabling cache in certain environments

    Reads always miss; writes report success without storing anything.
    """

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        return True

    async def delete(self, key: str) -> bool:
        return True

    async def increment_with_ttl(self, key: str, ttl: int) -> Optional[int]:
        """Pretends to count; nothing is stored."""
        return 0

    async def exists(self, key: str) -> bool:
        return False

    async def clear(self) -> bool:
        return True
