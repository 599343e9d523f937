"""
Service container: builds and owns every long-lived component.

Client handles (database engine, cache client, worker tasks) are created
here from explicit Settings and passed down by constructor injection; no
module-level client globals. Lifecycle:

1. ``ServiceContainer(settings)`` - database engine, store, generator
2. ``await start()``              - tables, cache, services, workers
3. ``await shutdown()``           - drain clicks, stop workers, close clients
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from shortlink_app.cache.factory import CacheBackend, CacheFactory
from shortlink_app.cache.strategies import CacheStrategy
from shortlink_app.click_processor.enrichment import GeoResolver
from shortlink_app.click_processor.recorder import ClickRecorder
from shortlink_app.click_processor.worker import ClickWorkerPool, RetentionSweeper
from shortlink_app.config import Settings
from shortlink_app.database import Database
from shortlink_app.models.types import utcnow
from shortlink_app.services.analytics_service import AnalyticsService
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.resolver import CachePolicy, Resolver
from shortlink_app.services.short_code_strategies import (
    RandomShortCodeStrategy,
    ShortCodeGenerator,
)
from shortlink_app.storage import SQLAlchemyLinkStore

logger = logging.getLogger(__name__)


class ServiceContainer:
    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
        cache: Optional[CacheStrategy] = None,
        geo_resolver: Optional[GeoResolver] = None,
    ):
        self.settings = settings
        self.clock = clock
        self.cache = cache
        self.geo_resolver = geo_resolver

        self.database = Database(settings.database_url, echo=settings.database_echo)
        self.store = SQLAlchemyLinkStore(self.database.session_factory)
        self.generator = ShortCodeGenerator(
            RandomShortCodeStrategy(length=settings.short_code_length)
        )

        self.recorder: Optional[ClickRecorder] = None
        self.workers: Optional[ClickWorkerPool] = None
        self.sweeper: Optional[RetentionSweeper] = None
        self.links: Optional[LinkService] = None
        self.resolver: Optional[Resolver] = None
        self.analytics: Optional[AnalyticsService] = None
        self.started = False

    async def start(self) -> None:
        """Create tables, connect the cache, build services, start workers."""
        if self.started:
            return
        settings = self.settings

        await self.database.create_all()
        if self.cache is None:
            self.cache = await CacheFactory.create(CacheBackend(settings.cache_backend), settings)

        self.recorder = ClickRecorder(
            self.store,
            self.cache,
            counter_ttl=settings.click_counter_ttl,
            geo_resolver=self.geo_resolver,
        )
        self.workers = ClickWorkerPool(
            self.recorder,
            workers=settings.click_workers,
            queue_size=settings.click_queue_size,
        )
        self.links = LinkService(
            self.store,
            self.cache,
            generator=self.generator,
            max_code_retries=settings.max_code_retries,
            cache_ttl=settings.cache_ttl,
            base_url=settings.base_url,
            clock=self.clock,
        )
        self.resolver = Resolver(
            self.store,
            self.cache,
            dispatcher=self.workers,
            policy=CachePolicy(settings.resolver_cache_policy),
            cache_ttl=settings.cache_ttl,
            clock=self.clock,
        )
        self.analytics = AnalyticsService(
            self.store,
            self.cache,
            cache_ttl=settings.analytics_cache_ttl,
            clock=self.clock,
        )

        self.workers.start()
        if settings.retention_enabled:
            self.sweeper = RetentionSweeper(
                self.store,
                retention_days=settings.click_retention_days,
                interval_seconds=settings.retention_sweep_interval_seconds,
                clock=self.clock,
            )
            self.sweeper.start()

        self.started = True
        logger.info(
            "Service container started (cache=%s, policy=%s)",
            type(self.cache).__name__,
            settings.resolver_cache_policy,
        )

    async def shutdown(self) -> None:
        """Drain pending clicks, stop background tasks, close client handles."""
        if not self.started:
            return
        if self.sweeper is not None:
            await self.sweeper.stop()
        if self.workers is not None:
            await self.workers.stop()
        if self.cache is not None:
            await self.cache.close()
        await self.database.dispose()
        self.started = False
        logger.info("Service container stopped")
