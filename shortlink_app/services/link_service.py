import logging
import math
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.exceptions import (
    AliasTakenError,
    CodeGenerationExhaustedError,
    DuplicateShortCodeError,
    NotFoundError,
)
from shortlink_app.models import ShortLink
from shortlink_app.models.types import utcnow
from shortlink_app.services.qr_codes import qr_code_data_url, short_url
from shortlink_app.services.resolver import cache_link, url_cache_key
from shortlink_app.services.short_code_strategies import ShortCodeGenerator
from shortlink_app.storage.strategies import LinkStore

logger = logging.getLogger(__name__)


class LinkService:
    """
    Short link management with dependency injection for store and cache.

    - Store and cache strategies are injected (not created internally)
    - Easy to test (inject an in-memory cache and a throwaway database)
    - The clock is injected too, so expiry can be tested by moving time
    """

    def __init__(
        self,
        store: LinkStore,
        cache: CacheStrategy,
        generator: Optional[ShortCodeGenerator] = None,
        max_code_retries: int = 3,
        cache_ttl: int = 3600,
        base_url: str = "http://127.0.0.1:8000",
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cache = cache
        self.generator = generator or ShortCodeGenerator()
        self.max_code_retries = max(1, max_code_retries)
        self.cache_ttl = cache_ttl
        self.base_url = base_url
        self.clock = clock

    async def create_short_link(
        self,
        original_url: str,
        custom_alias: Optional[str] = None,
        expires_in: Optional[int] = None,
        tags: Optional[Sequence[str]] = None,
        creator_ip: Optional[str] = None,
        creator_user_agent: Optional[str] = None,
    ) -> ShortLink:
        """Create a new short link.

        Always creates a new link even if the original URL was shortened
        before, so different campaigns can track the same destination.

        Process:
        1. Custom alias: validate, reject if any link (active or not) owns it
        2. Generated code: insert, regenerate on a uniqueness violation
        3. Render a QR code for the short URL with the code being inserted
        4. Cache the mapping (best effort)

        Raises:
            AliasInvalidError, AliasTakenError, CodeGenerationExhaustedError
        """
        now = self.clock()
        expires_at = now + timedelta(days=expires_in) if expires_in else None
        fields = dict(
            original_url=str(original_url),
            created_at=now,
            expires_at=expires_at,
            tags=_distinct(tags or ()),
            creator_ip=creator_ip,
            creator_user_agent=creator_user_agent,
        )

        if custom_alias is not None:
            link = await self._insert_alias(custom_alias, fields)
        else:
            link = await self._insert_generated(fields)

        await cache_link(self.cache, link, self.cache_ttl)
        logger.info("Created short link %s -> %s", link.short_code, link.original_url)
        return link

    async def _insert_alias(self, custom_alias: str, fields: dict) -> ShortLink:
        alias = self.generator.generate(custom_alias)
        if await self.store.code_exists(alias):
            raise AliasTakenError(f"Custom alias '{alias}' is already taken")
        try:
            return await self.store.insert_link(
                short_code=alias, custom_alias=alias, qr_code=self.qr_code_for(alias), **fields
            )
        except DuplicateShortCodeError as e:
            # Lost a race with a concurrent create
            raise AliasTakenError(f"Custom alias '{alias}' is already taken") from e

    async def _insert_generated(self, fields: dict) -> ShortLink:
        for attempt in range(1, self.max_code_retries + 1):
            code = self.generator.generate()
            try:
                return await self.store.insert_link(
                    short_code=code, qr_code=self.qr_code_for(code), **fields
                )
            except DuplicateShortCodeError:
                logger.warning(
                    "Short code collision on %s (attempt %d/%d)",
                    code,
                    attempt,
                    self.max_code_retries,
                )
        raise CodeGenerationExhaustedError(
            f"Could not generate a unique short code after {self.max_code_retries} attempts"
        )

    def qr_code_for(self, short_code: str) -> str:
        """PNG data URL of the short URL for a code."""
        return qr_code_data_url(short_url(self.base_url, short_code))

    async def get_link(self, short_code: str) -> ShortLink:
        link = await self.store.get_active_link(short_code)
        if link is None:
            raise NotFoundError(f"Short link '{short_code}' not found")
        return link

    async def list_links(self, page: int = 1, limit: int = 10) -> Tuple[List[ShortLink], int, int]:
        """Active links, newest first. Returns (links, total, pages)."""
        page = max(1, page)
        limit = max(1, limit)
        links, total = await self.store.list_active_links((page - 1) * limit, limit)
        return links, total, math.ceil(total / limit) if total else 0

    async def update_link(
        self,
        short_code: str,
        tags: Optional[Sequence[str]] = None,
        expires_in: Optional[int] = None,
    ) -> ShortLink:
        """Replace tags and/or reset expiry (days from now) of an active link."""
        expires_at = self.clock() + timedelta(days=expires_in) if expires_in else None
        link = await self.store.update_link(
            short_code,
            tags=_distinct(tags) if tags is not None else None,
            expires_at=expires_at,
        )
        if link is None:
            raise NotFoundError(f"Short link '{short_code}' not found")

        await self.cache.delete(url_cache_key(short_code))
        return link

    async def delete_link(self, short_code: str) -> None:
        """
        Soft delete a short link.
        Also invalidates the cache entry.
        """
        if not await self.store.deactivate(short_code):
            raise NotFoundError(f"Short link '{short_code}' not found")

        await self.cache.delete(url_cache_key(short_code))
        logger.info("Deactivated short link %s", short_code)


def _distinct(tags: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(tags))
