"""
Tests for the redirect path: cache-aside resolution and lazy expiry.
"""
import pytest

from shortlink_app.click_processor.models import RawVisit
from shortlink_app.exceptions import ExpiredError, NotFoundError, ServiceUnavailableError
from shortlink_app.services.resolver import CachedLink, CachePolicy, Resolver, url_cache_key


class TestResolve:
    """Test resolving short codes"""

    async def test_unknown_code(self, resolver, dispatcher):
        with pytest.raises(NotFoundError):
            await resolver.resolve("nothere")

        assert dispatcher.jobs == []

    async def test_resolves_and_dispatches_click(self, link_service, resolver, dispatcher):
        link = await link_service.create_short_link("https://example.com/a", custom_alias="demo")
        visit = RawVisit(ip="8.8.8.8", user_agent="curl/8.0")

        target = await resolver.resolve("demo", visit)

        assert target.original_url == "https://example.com/a"
        assert target.short_link_id == link.id
        assert target.short_code == "demo"
        assert dispatcher.jobs == [(link.id, "demo", visit)]

    async def test_missing_visit_gets_clock_timestamp(self, link_service, resolver, dispatcher, clock):
        await link_service.create_short_link("https://example.com", custom_alias="novisit")

        await resolver.resolve("novisit")

        (_, _, visit), = dispatcher.jobs
        assert visit.timestamp == clock.now
        assert visit.ip is None

    async def test_cache_miss_populates_cache(self, link_service, resolver, cache):
        await link_service.create_short_link("https://example.com", custom_alias="miss")
        await cache.clear()

        target = await resolver.resolve("miss")

        assert target.from_cache is False
        cached = CachedLink.model_validate_json(await cache.get(url_cache_key("miss")))
        assert cached.original_url == "https://example.com"

    async def test_cache_hit(self, link_service, resolver):
        await link_service.create_short_link("https://example.com", custom_alias="hit")

        target = await resolver.resolve("hit")

        assert target.from_cache is True

    async def test_malformed_cache_entry_is_discarded(self, link_service, resolver, cache):
        await link_service.create_short_link("https://example.com", custom_alias="junk")
        await cache.set(url_cache_key("junk"), "not json")

        target = await resolver.resolve("junk")

        assert target.original_url == "https://example.com"
        assert target.from_cache is False


class TestExpiry:
    """Lazy expiry on the redirect path"""

    async def test_expired_then_not_found(self, link_service, resolver, store, cache, clock):
        await link_service.create_short_link("https://example.com", custom_alias="short", expires_in=1)
        clock.advance(days=2)

        with pytest.raises(ExpiredError):
            await resolver.resolve("short")

        stored = await store.get_link("short")
        assert stored.is_active is False
        assert await cache.get(url_cache_key("short")) is None

        with pytest.raises(NotFoundError):
            await resolver.resolve("short")

    async def test_not_yet_expired(self, link_service, resolver, clock):
        await link_service.create_short_link("https://example.com", custom_alias="fresh", expires_in=1)
        clock.advance(hours=23)

        target = await resolver.resolve("fresh")

        assert target.original_url == "https://example.com"

    async def test_expired_link_dispatches_no_click(self, link_service, resolver, dispatcher, clock):
        await link_service.create_short_link("https://example.com", custom_alias="noclick", expires_in=1)
        clock.advance(days=1)

        with pytest.raises(ExpiredError):
            await resolver.resolve("noclick")

        assert dispatcher.jobs == []


class TestCachePolicies:
    """Soft delete versus stale cache entries"""

    async def test_confirm_policy_ignores_stale_entry(self, link_service, resolver, store, cache):
        link = await link_service.create_short_link("https://example.com", custom_alias="stale")
        stale_entry = CachedLink.from_link(link).model_dump_json()
        await link_service.delete_link("stale")
        # Simulate an entry written before the delete reached the cache
        await cache.set(url_cache_key("stale"), stale_entry)

        with pytest.raises(NotFoundError):
            await resolver.resolve("stale")

        assert await cache.get(url_cache_key("stale")) is None

    async def test_embedded_policy_trusts_cache(self, link_service, store, cache, dispatcher, clock):
        resolver = Resolver(store, cache, dispatcher=dispatcher, policy=CachePolicy.EMBEDDED, clock=clock)
        await link_service.create_short_link("https://example.com", custom_alias="trust")

        target = await resolver.resolve("trust")

        assert target.from_cache is True
        assert len(dispatcher.jobs) == 1

    async def test_embedded_policy_after_delete(self, link_service, store, cache, clock):
        """The delete path evicts the entry, so the store answers"""
        resolver = Resolver(store, cache, policy=CachePolicy.EMBEDDED, clock=clock)
        await link_service.create_short_link("https://example.com", custom_alias="evicted")
        await link_service.delete_link("evicted")

        with pytest.raises(NotFoundError):
            await resolver.resolve("evicted")

    async def test_embedded_policy_rechecks_expired_payload(self, link_service, store, cache, clock):
        resolver = Resolver(store, cache, policy=CachePolicy.EMBEDDED, clock=clock)
        await link_service.create_short_link("https://example.com", custom_alias="emb", expires_in=1)
        clock.advance(days=2)

        with pytest.raises(ExpiredError):
            await resolver.resolve("emb")

    def test_policy_from_setting_string(self, store, cache):
        assert Resolver(store, cache, policy="embedded").policy is CachePolicy.EMBEDDED
        with pytest.raises(ValueError):
            Resolver(store, cache, policy="sometimes")


class TestStoreUnavailable:
    async def test_store_errors_surface(self, link_service, resolver, database):
        await link_service.create_short_link("https://example.com", custom_alias="down")
        await database.drop_all()

        with pytest.raises(ServiceUnavailableError):
            await resolver.resolve("down")
