"""
Click recorder.

Turns a RawVisit into a persisted ClickEvent plus two counter increments.
Analytics are best-effort: every failure is logged, counted and dropped here,
nothing is ever raised back to the redirect path.
"""

import asyncio
import logging
from typing import Callable, Optional

from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.click_processor.enrichment import GeoResolver, enrich, is_bot
from shortlink_app.click_processor.models import DIRECT, ClickRecord, RawVisit
from shortlink_app.metrics import CLICK_ACTIONS_FAILED_TOTAL, CLICKS_RECORDED_TOTAL
from shortlink_app.storage.strategies import LinkStore

logger = logging.getLogger(__name__)


def day_counter_key(short_code: str, day: str) -> str:
    return f"clicks:{short_code}:{day}"


class ClickRecorder:
    """
    Records one click.

    The three persistence actions (event insert, day counter in the cache,
    durable clicks counter) run concurrently and independently: a failure in
    one neither cancels nor blocks the others.
    """

    def __init__(
        self,
        store: LinkStore,
        cache: CacheStrategy,
        counter_ttl: int = 86400,
        geo_resolver: Optional[GeoResolver] = None,
        enricher: Callable = enrich,
    ):
        self.store = store
        self.cache = cache
        self.counter_ttl = counter_ttl
        self.geo_resolver = geo_resolver
        self.enricher = enricher

    def build_record(self, short_link_id: int, short_code: str, visit: RawVisit) -> ClickRecord:
        """Enrich a raw visit into a ClickRecord."""
        try:
            visitor = self.enricher(visit.user_agent, visit.ip, self.geo_resolver)
        except Exception as e:
            # enrich() never raises; a custom enricher might
            logger.warning("Enricher failed for %s, using defaults: %s", short_code, e)
            visitor = enrich(None, None)
            visitor.ip = visit.ip
            visitor.user_agent = visit.user_agent

        return ClickRecord(
            short_link_id=short_link_id,
            short_code=short_code,
            timestamp=visit.timestamp,
            visitor=visitor,
            referrer=visit.referrer or DIRECT,
            is_bot=is_bot(visit.user_agent),
        )

    async def record(self, short_link_id: int, short_code: str, visit: RawVisit) -> None:
        """
        Persist one click. Never raises (cancellation excepted).
        """
        try:
            record = self.build_record(short_link_id, short_code, visit)
        except Exception:
            logger.exception("Could not build click record for %s; click dropped", short_code)
            CLICK_ACTIONS_FAILED_TOTAL.labels(action="enrich").inc()
            return

        day = record.timestamp.strftime("%Y-%m-%d")
        actions = ("event", "day_counter", "link_counter")
        results = await asyncio.gather(
            self.store.add_click(record),
            self._increment_day_counter(short_code, day),
            self.store.increment_clicks(short_link_id),
            return_exceptions=True,
        )

        for action, result in zip(actions, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                CLICK_ACTIONS_FAILED_TOTAL.labels(action=action).inc()
                logger.warning(
                    "Click %s write failed for %s (dropped): %r", action, short_code, result
                )

        CLICKS_RECORDED_TOTAL.inc()

    async def _increment_day_counter(self, short_code: str, day: str) -> None:
        count = await self.cache.increment_with_ttl(
            day_counter_key(short_code, day), self.counter_ttl
        )
        if count is None:
            raise RuntimeError("cache counter unavailable")
