"""
Tests for link creation and management.
"""
import base64
from datetime import timedelta

import pytest

from shortlink_app.exceptions import (
    AliasInvalidError,
    AliasTakenError,
    CodeGenerationExhaustedError,
    NotFoundError,
)
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.qr_codes import qr_code_data_url
from shortlink_app.services.resolver import CachedLink, url_cache_key
from shortlink_app.services.short_code_strategies import ShortCodeGenerator, ShortCodeStrategy


class SequenceStrategy(ShortCodeStrategy):
    """Hands out a fixed sequence of codes, to force collisions."""

    def __init__(self, codes):
        self.codes = list(codes)
        self.calls = 0

    def generate(self) -> str:
        code = self.codes[min(self.calls, len(self.codes) - 1)]
        self.calls += 1
        return code


class TestCreateShortLink:
    """Test creating short links"""

    async def test_generated_code(self, link_service, clock):
        link = await link_service.create_short_link("https://example.com/page")

        assert len(link.short_code) == 7
        assert link.original_url == "https://example.com/page"
        assert link.custom_alias is None
        assert link.clicks == 0
        assert link.is_active is True
        assert link.created_at == clock.now
        assert link.expires_at is None

    async def test_custom_alias(self, link_service):
        link = await link_service.create_short_link("https://example.com/a", custom_alias="demo")

        assert link.short_code == "demo"
        assert link.custom_alias == "demo"

    async def test_expires_in_days(self, link_service, clock):
        link = await link_service.create_short_link("https://example.com", expires_in=3)

        assert link.expires_at == clock.now + timedelta(days=3)

    async def test_tags_are_deduplicated(self, link_service):
        link = await link_service.create_short_link(
            "https://example.com", tags=["promo", "mail", "promo"]
        )
        assert link.tags == ["promo", "mail"]

    async def test_creator_context_is_stored(self, link_service, store):
        link = await link_service.create_short_link(
            "https://example.com", creator_ip="8.8.8.8", creator_user_agent="curl/8.0"
        )

        stored = await store.get_link(link.short_code)
        assert stored.creator_ip == "8.8.8.8"
        assert stored.creator_user_agent == "curl/8.0"

    async def test_populates_cache(self, link_service, cache):
        link = await link_service.create_short_link("https://example.com/cached")

        cached = CachedLink.model_validate_json(await cache.get(url_cache_key(link.short_code)))
        assert cached.id == link.id
        assert cached.original_url == "https://example.com/cached"
        assert cached.is_active is True

    async def test_invalid_alias(self, link_service):
        with pytest.raises(AliasInvalidError):
            await link_service.create_short_link("https://example.com", custom_alias="a b")

    async def test_alias_taken(self, link_service):
        await link_service.create_short_link("https://example.com/1", custom_alias="taken")

        with pytest.raises(AliasTakenError):
            await link_service.create_short_link("https://example.com/2", custom_alias="taken")

    async def test_alias_of_deleted_link_is_still_taken(self, link_service):
        """Codes are never reused, even after a soft delete"""
        await link_service.create_short_link("https://example.com/1", custom_alias="gone")
        await link_service.delete_link("gone")

        with pytest.raises(AliasTakenError):
            await link_service.create_short_link("https://example.com/2", custom_alias="gone")

    async def test_alias_colliding_with_generated_code(self, store, cache, clock):
        strategy = SequenceStrategy(["abc1234"])
        service = LinkService(store, cache, generator=ShortCodeGenerator(strategy), clock=clock)
        await service.create_short_link("https://example.com/1")

        with pytest.raises(AliasTakenError):
            await service.create_short_link("https://example.com/2", custom_alias="abc1234")

    async def test_collision_is_retried(self, store, cache, clock):
        strategy = SequenceStrategy(["dupe001", "dupe001", "fresh01"])
        service = LinkService(store, cache, generator=ShortCodeGenerator(strategy), clock=clock)

        first = await service.create_short_link("https://example.com/1")
        second = await service.create_short_link("https://example.com/2")

        assert first.short_code == "dupe001"
        assert second.short_code == "fresh01"
        assert strategy.calls == 3

    async def test_exhausted_after_three_attempts(self, store, cache, clock):
        strategy = SequenceStrategy(["same001"])
        service = LinkService(
            store, cache, generator=ShortCodeGenerator(strategy), max_code_retries=3, clock=clock
        )
        await service.create_short_link("https://example.com/1")
        strategy.calls = 0

        with pytest.raises(CodeGenerationExhaustedError):
            await service.create_short_link("https://example.com/2")

        assert strategy.calls == 3

    async def test_qr_code_is_png_data_url(self, link_service):
        link = await link_service.create_short_link("https://example.com/a", custom_alias="demo")

        prefix = "data:image/png;base64,"
        assert link.qr_code.startswith(prefix)
        assert base64.b64decode(link.qr_code[len(prefix):]).startswith(b"\x89PNG")
        assert link.qr_code == qr_code_data_url("http://127.0.0.1:8000/demo")

    async def test_qr_code_follows_the_code_that_was_inserted(self, store, cache, clock):
        strategy = SequenceStrategy(["dupe001", "dupe001", "fresh01"])
        service = LinkService(
            store,
            cache,
            generator=ShortCodeGenerator(strategy),
            base_url="https://sho.rt/",
            clock=clock,
        )
        await service.create_short_link("https://example.com/1")

        link = await service.create_short_link("https://example.com/2")

        assert link.short_code == "fresh01"
        assert link.qr_code == qr_code_data_url("https://sho.rt/fresh01")


class TestManageShortLinks:
    """Test get / list / update / delete"""

    async def test_get_link(self, link_service):
        created = await link_service.create_short_link("https://example.com", custom_alias="info")

        link = await link_service.get_link("info")

        assert link.id == created.id

    async def test_get_unknown_link(self, link_service):
        with pytest.raises(NotFoundError):
            await link_service.get_link("missing")

    async def test_list_links_newest_first(self, link_service, clock):
        for index in range(3):
            await link_service.create_short_link(f"https://example.com/{index}", custom_alias=f"link{index}")
            clock.advance(minutes=1)

        links, total, pages = await link_service.list_links(page=1, limit=2)

        assert [link.short_code for link in links] == ["link2", "link1"]
        assert total == 3
        assert pages == 2

        links, _, _ = await link_service.list_links(page=2, limit=2)
        assert [link.short_code for link in links] == ["link0"]

    async def test_list_links_skips_deleted(self, link_service):
        await link_service.create_short_link("https://example.com/1", custom_alias="keep")
        await link_service.create_short_link("https://example.com/2", custom_alias="drop")
        await link_service.delete_link("drop")

        links, total, _ = await link_service.list_links()

        assert [link.short_code for link in links] == ["keep"]
        assert total == 1

    async def test_update_tags_and_expiry(self, link_service, cache, clock):
        await link_service.create_short_link("https://example.com", custom_alias="upd", tags=["old"])

        link = await link_service.update_link("upd", tags=["new", "new", "other"], expires_in=10)

        assert link.tags == ["new", "other"]
        assert link.expires_at == clock.now + timedelta(days=10)
        assert await cache.get(url_cache_key("upd")) is None

    async def test_update_deleted_link(self, link_service):
        await link_service.create_short_link("https://example.com", custom_alias="bye")
        await link_service.delete_link("bye")

        with pytest.raises(NotFoundError):
            await link_service.update_link("bye", tags=["x"])

    async def test_delete_link(self, link_service, store, cache):
        await link_service.create_short_link("https://example.com", custom_alias="del")

        await link_service.delete_link("del")

        stored = await store.get_link("del")
        assert stored.is_active is False
        assert await cache.get(url_cache_key("del")) is None

    async def test_delete_twice(self, link_service):
        await link_service.create_short_link("https://example.com", custom_alias="twice")
        await link_service.delete_link("twice")

        with pytest.raises(NotFoundError):
            await link_service.delete_link("twice")
