"""
Database engine and session management.

The engine and session factory are owned by a ``Database`` object that is
constructed explicitly and passed to whoever needs it (store, container,
tests). Lifecycle:

1. ``Database(url)``      - builds the async engine (no connection yet)
2. ``await create_all()`` - creates tables on startup
3. ``session()``          - opens an AsyncSession (one per unit of work)
4. ``await dispose()``    - closes pooled connections on shutdown
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class Database:
    """Owns the async engine and the session factory."""

    def __init__(self, url: str, echo: bool = False):
        connect_args = {}
        if url.startswith("sqlite"):
            # Concurrent writers wait for the file lock instead of failing fast
            connect_args["timeout"] = 30

        self.url = url
        self.engine: AsyncEngine = create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    def session(self) -> AsyncSession:
        """Open a new session. Use as ``async with db.session() as session``."""
        return self.session_factory()

    async def create_all(self) -> None:
        """Create all tables registered on ``Base``."""
        # Import models so they're registered with Base
        from shortlink_app import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
