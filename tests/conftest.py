"""
Test configuration and fixtures for the short link service.
This centralizes all test setup, making individual tests clean.

Every test gets a fresh SQLite file (aiosqlite) in its own tmp_path, an
in-memory cache and a fake clock that can be moved forward.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from main import create_app
from shortlink_app.cache import InMemoryCache
from shortlink_app.click_processor.models import RawVisit
from shortlink_app.click_processor.recorder import ClickRecorder
from shortlink_app.config import Settings
from shortlink_app.container import ServiceContainer
from shortlink_app.database import Database
from shortlink_app.services.analytics_service import AnalyticsService
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.resolver import Resolver
from shortlink_app.storage import SQLAlchemyLinkStore


class FakeClock:
    """Callable clock returning a fixed aware UTC time until advanced."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class RecordingDispatcher:
    """Stands in for the worker pool: remembers submitted clicks."""

    def __init__(self):
        self.jobs = []

    def submit(self, short_link_id: int, short_code: str, visit: RawVisit) -> bool:
        self.jobs.append((short_link_id, short_code, visit))
        return True


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def database(database_url):
    """
    Create a fresh database for each test.
    This ensures tests are isolated and don't affect each other.
    """
    db = Database(database_url)
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture
def store(database):
    return SQLAlchemyLinkStore(database.session_factory)


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def link_service(store, cache, clock):
    return LinkService(store, cache, clock=clock)


@pytest.fixture
def resolver(store, cache, dispatcher, clock):
    return Resolver(store, cache, dispatcher=dispatcher, clock=clock)


@pytest.fixture
def recorder(store, cache):
    return ClickRecorder(store, cache)


@pytest.fixture
def analytics(store, cache, clock):
    return AnalyticsService(store, cache, clock=clock)


@pytest.fixture
def test_settings(database_url):
    return Settings(
        database_url=database_url,
        cache_backend="memory",
        click_workers=2,
        retention_enabled=False,
        base_url="http://test",
    )


@pytest.fixture
async def container(test_settings, clock):
    """A fully started container: real worker pool, in-memory cache."""
    services = ServiceContainer(test_settings, clock=clock, cache=InMemoryCache())
    await services.start()
    try:
        yield services
    finally:
        await services.shutdown()


@pytest.fixture
async def client(container):
    """
    HTTP client bound to an app built around the started container.
    ASGITransport does not run the lifespan; the container fixture has
    already started everything.
    """
    app = create_app(container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
