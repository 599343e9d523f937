"""
Tests for analytics aggregation.
"""
from datetime import timedelta

import pytest

from shortlink_app.click_processor.models import RawVisit
from shortlink_app.exceptions import NotFoundError

CHROME = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
FIREFOX = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"
SAFARI = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


async def record_clicks(recorder, link, user_agent, count, timestamp, referrer=None):
    for _ in range(count):
        visit = RawVisit(user_agent=user_agent, referrer=referrer, timestamp=timestamp)
        await recorder.record(link.id, link.short_code, visit)


class TestSummarize:
    """Test per-link summaries"""

    async def test_browser_breakdown(self, link_service, recorder, analytics, clock):
        link = await link_service.create_short_link("https://example.com", custom_alias="mix")
        await record_clicks(recorder, link, CHROME, 5, clock.now)
        await record_clicks(recorder, link, FIREFOX, 3, clock.now)
        await record_clicks(recorder, link, SAFARI, 2, clock.now)

        summary = await analytics.summarize("mix", 7)

        assert [(b.name, b.count) for b in summary.browsers] == [
            ("Chrome", 5),
            ("Firefox", 3),
            ("Safari", 2),
        ]
        assert sum(b.count for b in summary.browsers) == summary.clicks_in_period == 10
        assert summary.total_clicks == 10
        assert [(d.name, d.count) for d in summary.devices] == [("desktop", 8), ("mobile", 2)]
        assert [(o.name, o.count) for o in summary.operating_systems] == [
            ("Linux", 3),
            ("Windows", 5),
            ("iOS", 2),
        ]
        assert summary.url.short_code == "mix"
        assert summary.url.original_url == "https://example.com"
        assert summary.cached is False

    async def test_daily_series_and_window(self, link_service, recorder, analytics, clock):
        link = await link_service.create_short_link("https://example.com", custom_alias="days")
        await record_clicks(recorder, link, CHROME, 2, clock.now - timedelta(days=2))
        await record_clicks(recorder, link, CHROME, 1, clock.now - timedelta(days=1))
        await record_clicks(recorder, link, CHROME, 4, clock.now - timedelta(days=20))

        summary = await analytics.summarize("days", 7)

        assert [(d.date, d.clicks) for d in summary.clicks_by_date] == [
            ("2026-03-08", 2),
            ("2026-03-09", 1),
        ]
        assert summary.clicks_in_period == 3
        assert summary.total_clicks == 7

    async def test_referrers_exclude_direct(self, link_service, recorder, analytics, clock):
        link = await link_service.create_short_link("https://example.com", custom_alias="refs")
        await record_clicks(recorder, link, CHROME, 2, clock.now, referrer="https://b.example")
        await record_clicks(recorder, link, CHROME, 2, clock.now, referrer="https://a.example")
        await record_clicks(recorder, link, CHROME, 3, clock.now, referrer="https://c.example")
        await record_clicks(recorder, link, CHROME, 4, clock.now)

        summary = await analytics.summarize("refs", 7)

        # Ordered by key, not by count
        assert [(r.source, r.count) for r in summary.referrers] == [
            ("https://a.example", 2),
            ("https://b.example", 2),
            ("https://c.example", 3),
        ]

    async def test_bot_clicks(self, link_service, recorder, analytics, clock):
        link = await link_service.create_short_link("https://example.com", custom_alias="crawl")
        await record_clicks(recorder, link, "Googlebot/2.1", 2, clock.now)
        await record_clicks(recorder, link, CHROME, 1, clock.now)

        summary = await analytics.summarize("crawl", 7)

        assert summary.bot_clicks == 2
        assert summary.clicks_in_period == 3

    async def test_cached_summary(self, link_service, recorder, analytics, clock):
        link = await link_service.create_short_link("https://example.com", custom_alias="cache")
        await record_clicks(recorder, link, CHROME, 1, clock.now)

        first = await analytics.summarize("cache", 7)
        await record_clicks(recorder, link, CHROME, 1, clock.now)
        second = await analytics.summarize("cache", 7)

        assert first.cached is False
        assert second.cached is True
        assert second.clicks_in_period == 1

    async def test_unknown_code(self, analytics):
        with pytest.raises(NotFoundError):
            await analytics.summarize("ghost", 7)

    async def test_deleted_link_is_still_summarized(self, link_service, recorder, analytics, clock):
        link = await link_service.create_short_link("https://example.com", custom_alias="past")
        await record_clicks(recorder, link, CHROME, 2, clock.now)
        await link_service.delete_link("past")

        summary = await analytics.summarize("past", 7)

        assert summary.clicks_in_period == 2


class TestOverallStats:
    """Test service-wide stats"""

    async def test_overall_stats(self, link_service, recorder, analytics, clock):
        busy = await link_service.create_short_link("https://example.com/busy", custom_alias="busy")
        clock.advance(minutes=1)
        quiet = await link_service.create_short_link("https://example.com/quiet", custom_alias="quiet")
        clock.advance(minutes=1)
        gone = await link_service.create_short_link("https://example.com/gone", custom_alias="gone")
        await record_clicks(recorder, busy, CHROME, 3, clock.now)
        await record_clicks(recorder, quiet, CHROME, 1, clock.now - timedelta(days=1))
        await record_clicks(recorder, gone, CHROME, 5, clock.now)
        await link_service.delete_link("gone")

        stats = await analytics.overall_stats()

        assert stats.total_urls == 2
        assert stats.total_clicks == 4
        assert [link.short_code for link in stats.top_urls] == ["busy", "quiet"]
        assert [link.short_code for link in stats.recent_urls] == ["quiet", "busy"]
        # The daily series covers every event, including deleted links
        assert [(d.date, d.clicks) for d in stats.clicks_by_day] == [
            ("2026-03-09", 1),
            ("2026-03-10", 8),
        ]
        assert stats.cached is False

    async def test_overall_stats_cached(self, link_service, analytics):
        await analytics.overall_stats()
        await link_service.create_short_link("https://example.com/later")

        stats = await analytics.overall_stats()

        assert stats.cached is True
        assert stats.total_urls == 0
