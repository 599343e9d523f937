"""
Redirect path: short code -> target URL.

Cache-aside in front of the durable store, with lazy expiry. The click that
a successful resolve represents is handed to a dispatcher (the background
worker pool) and never awaited here.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Protocol

from pydantic import BaseModel, ValidationError

from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.click_processor.models import RawVisit
from shortlink_app.exceptions import ExpiredError, NotFoundError
from shortlink_app.metrics import CACHE_HITS_TOTAL, CACHE_MISSES_TOTAL, LINKS_EXPIRED_TOTAL
from shortlink_app.models import ShortLink
from shortlink_app.models.types import utcnow
from shortlink_app.storage.strategies import LinkStore

logger = logging.getLogger(__name__)


def url_cache_key(short_code: str) -> str:
    return f"url:{short_code}"


class CachedLink(BaseModel):
    """JSON projection of a ShortLink stored under ``url:{code}``."""

    id: int
    short_code: str
    original_url: str
    is_active: bool
    expires_at: Optional[datetime] = None

    @classmethod
    def from_link(cls, link: ShortLink) -> "CachedLink":
        return cls(
            id=link.id,
            short_code=link.short_code,
            original_url=link.original_url,
            is_active=link.is_active,
            expires_at=link.expires_at,
        )

    def is_resolvable(self, now: datetime) -> bool:
        return self.is_active and (self.expires_at is None or self.expires_at > now)


async def cache_link(cache: CacheStrategy, link: ShortLink, ttl: int) -> None:
    """Best-effort cache population."""
    await cache.set(url_cache_key(link.short_code), CachedLink.from_link(link).model_dump_json(), ttl=ttl)


class CachePolicy(str, Enum):
    """How far a cache hit is trusted."""

    CONFIRM = "confirm"  # every hit is re-checked against the store
    EMBEDDED = "embedded"  # hit trusted until its TTL lapses


class ClickDispatcher(Protocol):
    def submit(self, short_link_id: int, short_code: str, visit: RawVisit) -> bool: ...


class ResolvedTarget(BaseModel):
    short_link_id: int
    short_code: str
    original_url: str
    from_cache: bool = False


class Resolver:
    """
    resolve(code, visit?) -> ResolvedTarget

    Raises:
        NotFoundError: no active link for the code
        ExpiredError: the link's expiry has passed (it is deactivated now)
        ServiceUnavailableError: the store could not be reached
    """

    def __init__(
        self,
        store: LinkStore,
        cache: CacheStrategy,
        dispatcher: Optional[ClickDispatcher] = None,
        policy: CachePolicy = CachePolicy.CONFIRM,
        cache_ttl: int = 3600,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cache = cache
        self.dispatcher = dispatcher
        self.policy = CachePolicy(policy)
        self.cache_ttl = cache_ttl
        self.clock = clock

    async def resolve(self, short_code: str, visit: Optional[RawVisit] = None) -> ResolvedTarget:
        now = self.clock()
        cached = await self._read_cache(short_code)

        if cached is not None and self.policy == CachePolicy.EMBEDDED and cached.is_resolvable(now):
            CACHE_HITS_TOTAL.inc()
            target = ResolvedTarget(
                short_link_id=cached.id,
                short_code=cached.short_code,
                original_url=cached.original_url,
                from_cache=True,
            )
            return self._dispatch(target, visit, now)

        if cached is None or self.policy == CachePolicy.EMBEDDED:
            CACHE_MISSES_TOTAL.inc()

        link = await self.store.get_active_link(short_code)
        if link is None:
            if cached is not None:
                # Soft-deleted (or expired elsewhere) since it was cached
                await self.cache.delete(url_cache_key(short_code))
            raise NotFoundError(f"Short link '{short_code}' not found")

        if link.is_expired(now):
            await self.store.deactivate(short_code)
            await self.cache.delete(url_cache_key(short_code))
            LINKS_EXPIRED_TOTAL.inc()
            logger.info("Short link %s expired at %s; deactivated", short_code, link.expires_at)
            raise ExpiredError(f"Short link '{short_code}' has expired")

        confirmed_hit = cached is not None and self.policy == CachePolicy.CONFIRM
        if confirmed_hit:
            CACHE_HITS_TOTAL.inc()
        else:
            # Miss, or an embedded payload that no longer matched the store
            await cache_link(self.cache, link, self.cache_ttl)

        target = ResolvedTarget(
            short_link_id=link.id,
            short_code=link.short_code,
            original_url=link.original_url,
            from_cache=confirmed_hit,
        )
        return self._dispatch(target, visit, now)

    async def _read_cache(self, short_code: str) -> Optional[CachedLink]:
        raw = await self.cache.get(url_cache_key(short_code))
        if raw is None:
            return None
        try:
            return CachedLink.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed cache entry for %s", short_code)
            await self.cache.delete(url_cache_key(short_code))
            return None

    def _dispatch(self, target: ResolvedTarget, visit: Optional[RawVisit], now: datetime) -> ResolvedTarget:
        if self.dispatcher is not None:
            visit = visit or RawVisit(timestamp=now)
            self.dispatcher.submit(target.short_link_id, target.short_code, visit)
        return target
