"""
Analytics aggregation over click events.

Summaries are computed from the durable store on demand and cached for a few
minutes; dashboards tolerate that staleness, the redirect path never waits
on it.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List

from pydantic import ValidationError

from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.click_processor.models import DIRECT
from shortlink_app.exceptions import NotFoundError
from shortlink_app.models.types import utcnow
from shortlink_app.schemas.analytics import (
    Breakdown,
    DailyClicks,
    LinkInfo,
    LinkStat,
    LinkSummary,
    OverallStats,
    ReferrerBreakdown,
)
from shortlink_app.storage.strategies import LinkStore

logger = logging.getLogger(__name__)

OVERALL_STATS_KEY = "stats:overall"
OVERALL_WINDOW_DAYS = 7
TOP_LINKS = 10
RECENT_LINKS = 5


def summary_cache_key(short_code: str, window_days: int) -> str:
    return f"analytics:{short_code}:{window_days}"


def by_key(counts: Dict[str, int]) -> List[tuple]:
    """Ordered by key, then count (descending)."""
    return sorted(counts.items(), key=lambda item: (item[0], -item[1]))


def daily_series(counts: Dict[str, int]) -> List[DailyClicks]:
    return [DailyClicks(date=day, clicks=clicks) for day, clicks in sorted(counts.items())]


class AnalyticsService:
    def __init__(
        self,
        store: LinkStore,
        cache: CacheStrategy,
        cache_ttl: int = 300,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.clock = clock

    async def summarize(self, short_code: str, window_days: int = 7) -> LinkSummary:
        """
        Per-link analytics for the last ``window_days`` days.

        Inactive links are still summarized; only an unknown code raises
        NotFoundError.
        """
        key = summary_cache_key(short_code, window_days)
        cached = await self._read_cached(key, LinkSummary)
        if cached is not None:
            return cached

        link = await self.store.get_link(short_code)
        if link is None:
            raise NotFoundError(f"Short link '{short_code}' not found")

        since = self.clock() - timedelta(days=window_days)
        events = await self.store.clicks_since(link.id, since)

        by_date: Counter = Counter()
        browsers: Counter = Counter()
        systems: Counter = Counter()
        devices: Counter = Counter()
        countries: Counter = Counter()
        referrers: Counter = Counter()
        bot_clicks = 0
        for event in events:
            by_date[event.timestamp.strftime("%Y-%m-%d")] += 1
            browsers[event.browser] += 1
            systems[event.os] += 1
            devices[event.device] += 1
            countries[event.country] += 1
            if event.referrer and event.referrer != DIRECT:
                referrers[event.referrer] += 1
            if event.is_bot:
                bot_clicks += 1

        summary = LinkSummary(
            url=LinkInfo.model_validate(link),
            window_days=window_days,
            total_clicks=link.clicks,
            clicks_in_period=len(events),
            bot_clicks=bot_clicks,
            clicks_by_date=daily_series(by_date),
            browsers=_breakdown(browsers),
            operating_systems=_breakdown(systems),
            devices=_breakdown(devices),
            countries=_breakdown(countries),
            referrers=[
                ReferrerBreakdown(source=source, count=count)
                for source, count in by_key(referrers)
            ],
        )
        await self.cache.set(key, summary.model_dump_json(), ttl=self.cache_ttl)
        return summary

    async def overall_stats(self) -> OverallStats:
        """Service-wide stats over active links."""
        cached = await self._read_cached(OVERALL_STATS_KEY, OverallStats)
        if cached is not None:
            return cached

        since = self.clock() - timedelta(days=OVERALL_WINDOW_DAYS)
        stats = OverallStats(
            total_urls=await self.store.count_active_links(),
            total_clicks=await self.store.sum_active_clicks(),
            top_urls=_link_stats(await self.store.top_links(TOP_LINKS)),
            recent_urls=_link_stats(await self.store.recent_links(RECENT_LINKS)),
            clicks_by_day=daily_series(await self.store.clicks_per_day(since)),
        )
        await self.cache.set(OVERALL_STATS_KEY, stats.model_dump_json(), ttl=self.cache_ttl)
        return stats

    async def _read_cached(self, key: str, model):
        raw = await self.cache.get(key)
        if raw is None:
            return None
        try:
            result = model.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding malformed analytics cache entry %s", key)
            await self.cache.delete(key)
            return None
        result.cached = True
        return result


def _breakdown(counts: Counter) -> List[Breakdown]:
    return [Breakdown(name=name, count=count) for name, count in by_key(counts)]


def _link_stats(links: Iterable) -> List[LinkStat]:
    return [LinkStat.model_validate(link) for link in links]
