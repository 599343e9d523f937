"""
Durable store strategies using Strategy Pattern.

The store is the single source of truth for short links and click events.
The service layer only talks to the ``LinkStore`` interface, so a different
engine can be dropped in without touching the resolver, recorder or
aggregator.

- SQLAlchemyLinkStore: any SQLAlchemy async URL (SQLite/aiosqlite for
  development and tests, PostgreSQL/asyncpg in production)
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortlink_app.click_processor.models import ClickRecord
from shortlink_app.exceptions import DuplicateShortCodeError, ServiceUnavailableError
from shortlink_app.models import ClickEvent, ShortLink


class LinkStore(ABC):
    """
    Abstract base class for the durable store.

    Uniqueness violations surface as DuplicateShortCodeError; any other
    backend failure surfaces as ServiceUnavailableError.
    """

    # ShortLink writes

    @abstractmethod
    async def insert_link(
        self,
        short_code: str,
        original_url: str,
        created_at: datetime,
        custom_alias: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        tags: Sequence[str] = (),
        creator_ip: Optional[str] = None,
        creator_user_agent: Optional[str] = None,
        qr_code: Optional[str] = None,
    ) -> ShortLink:
        """Insert a link; raises DuplicateShortCodeError on a unique violation."""

    @abstractmethod
    async def deactivate(self, short_code: str) -> bool:
        """Soft delete (flag flip). False when no active link had the code."""

    @abstractmethod
    async def update_link(
        self,
        short_code: str,
        tags: Optional[Sequence[str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> Optional[ShortLink]:
        """Update tags/expiry of an active link. None when there is none."""

    @abstractmethod
    async def increment_clicks(self, short_link_id: int) -> None:
        """Atomic ``clicks = clicks + 1``."""

    # ShortLink reads

    @abstractmethod
    async def code_exists(self, code: str) -> bool:
        """True if any link (active or inactive) owns code as code or alias."""

    @abstractmethod
    async def get_active_link(self, short_code: str) -> Optional[ShortLink]:
        """Point lookup filtered by is_active."""

    @abstractmethod
    async def get_link(self, short_code: str) -> Optional[ShortLink]:
        """Point lookup regardless of is_active."""

    @abstractmethod
    async def list_active_links(self, offset: int, limit: int) -> Tuple[List[ShortLink], int]:
        """Active links newest first, plus the total count."""

    @abstractmethod
    async def count_active_links(self) -> int:
        pass

    @abstractmethod
    async def sum_active_clicks(self) -> int:
        pass

    @abstractmethod
    async def top_links(self, limit: int = 10) -> List[ShortLink]:
        pass

    @abstractmethod
    async def recent_links(self, limit: int = 5) -> List[ShortLink]:
        pass

    # ClickEvent

    @abstractmethod
    async def add_click(self, record: ClickRecord) -> None:
        pass

    @abstractmethod
    async def clicks_since(self, short_link_id: int, since: datetime) -> List[ClickEvent]:
        """Range query on ClickEvent.timestamp for one link."""

    @abstractmethod
    async def clicks_per_day(self, since: datetime) -> Dict[str, int]:
        """Click counts across all links grouped by UTC day (YYYY-MM-DD)."""

    @abstractmethod
    async def purge_clicks_before(self, cutoff: datetime) -> int:
        """Delete click events older than cutoff; returns rows removed."""

    async def ping(self) -> bool:
        return True


class SQLAlchemyLinkStore(LinkStore):
    """
    SQLAlchemy (async ORM) implementation of the durable store.

    Each call opens its own short-lived session from the injected session
    factory, so background click jobs never share a request's session and
    concurrent writers rely on the database's own atomic UPDATE and unique
    indexes.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Open a session and translate backend failures."""
        try:
            async with self.session_factory() as session:
                yield session
        except IntegrityError as e:
            raise DuplicateShortCodeError(str(e.orig)) from e
        except (SQLAlchemyError, OSError) as e:
            raise ServiceUnavailableError(f"Durable store unavailable: {e}") from e

    async def insert_link(
        self,
        short_code: str,
        original_url: str,
        created_at: datetime,
        custom_alias: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        tags: Sequence[str] = (),
        creator_ip: Optional[str] = None,
        creator_user_agent: Optional[str] = None,
        qr_code: Optional[str] = None,
    ) -> ShortLink:
        link = ShortLink(
            short_code=short_code,
            custom_alias=custom_alias,
            original_url=original_url,
            clicks=0,
            is_active=True,
            tags=list(tags),
            creator_ip=creator_ip,
            creator_user_agent=creator_user_agent,
            qr_code=qr_code,
            created_at=created_at,
            updated_at=created_at,
            expires_at=expires_at,
        )
        async with self._session() as session:
            session.add(link)
            await session.commit()
            await session.refresh(link)
        return link

    async def deactivate(self, short_code: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(ShortLink)
                .where(ShortLink.short_code == short_code, ShortLink.is_active.is_(True))
                .values(is_active=False)
            )
            await session.commit()
        return result.rowcount > 0

    async def update_link(
        self,
        short_code: str,
        tags: Optional[Sequence[str]] = None,
        expires_at: Optional[datetime] = None,
    ) -> Optional[ShortLink]:
        async with self._session() as session:
            result = await session.execute(
                select(ShortLink).where(
                    ShortLink.short_code == short_code,
                    ShortLink.is_active.is_(True),
                )
            )
            link = result.scalar_one_or_none()
            if link is None:
                return None
            if tags is not None:
                link.tags = list(tags)
            if expires_at is not None:
                link.expires_at = expires_at
            await session.commit()
            await session.refresh(link)
        return link

    async def increment_clicks(self, short_link_id: int) -> None:
        async with self._session() as session:
            await session.execute(
                update(ShortLink)
                .where(ShortLink.id == short_link_id)
                .values(clicks=ShortLink.clicks + 1)
            )
            await session.commit()

    async def code_exists(self, code: str) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(ShortLink.id)
                .where(or_(ShortLink.short_code == code, ShortLink.custom_alias == code))
                .limit(1)
            )
            return result.first() is not None

    async def get_active_link(self, short_code: str) -> Optional[ShortLink]:
        async with self._session() as session:
            result = await session.execute(
                select(ShortLink).where(
                    ShortLink.short_code == short_code,
                    ShortLink.is_active.is_(True),
                )
            )
            return result.scalar_one_or_none()

    async def get_link(self, short_code: str) -> Optional[ShortLink]:
        async with self._session() as session:
            result = await session.execute(
                select(ShortLink).where(ShortLink.short_code == short_code)
            )
            return result.scalar_one_or_none()

    async def list_active_links(self, offset: int, limit: int) -> Tuple[List[ShortLink], int]:
        async with self._session() as session:
            total = await session.scalar(
                select(func.count(ShortLink.id)).where(ShortLink.is_active.is_(True))
            )
            result = await session.execute(
                select(ShortLink)
                .where(ShortLink.is_active.is_(True))
                .order_by(ShortLink.created_at.desc(), ShortLink.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all()), int(total or 0)

    async def count_active_links(self) -> int:
        async with self._session() as session:
            total = await session.scalar(
                select(func.count(ShortLink.id)).where(ShortLink.is_active.is_(True))
            )
        return int(total or 0)

    async def sum_active_clicks(self) -> int:
        async with self._session() as session:
            total = await session.scalar(
                select(func.coalesce(func.sum(ShortLink.clicks), 0)).where(
                    ShortLink.is_active.is_(True)
                )
            )
        return int(total or 0)

    async def top_links(self, limit: int = 10) -> List[ShortLink]:
        async with self._session() as session:
            result = await session.execute(
                select(ShortLink)
                .where(ShortLink.is_active.is_(True))
                .order_by(ShortLink.clicks.desc(), ShortLink.id)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def recent_links(self, limit: int = 5) -> List[ShortLink]:
        async with self._session() as session:
            result = await session.execute(
                select(ShortLink)
                .where(ShortLink.is_active.is_(True))
                .order_by(ShortLink.created_at.desc(), ShortLink.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def add_click(self, record: ClickRecord) -> None:
        event = ClickEvent(
            short_link_id=record.short_link_id,
            short_code=record.short_code,
            timestamp=record.timestamp,
            ip=record.visitor.ip,
            user_agent=record.visitor.user_agent,
            browser=record.visitor.browser,
            os=record.visitor.os,
            device=record.visitor.device,
            country=record.visitor.country,
            city=record.visitor.city,
            referrer=record.referrer,
            is_bot=record.is_bot,
        )
        async with self._session() as session:
            session.add(event)
            await session.commit()

    async def clicks_since(self, short_link_id: int, since: datetime) -> List[ClickEvent]:
        async with self._session() as session:
            result = await session.execute(
                select(ClickEvent)
                .where(
                    ClickEvent.short_link_id == short_link_id,
                    ClickEvent.timestamp >= since,
                )
                .order_by(ClickEvent.timestamp)
            )
            return list(result.scalars().all())

    async def clicks_per_day(self, since: datetime) -> Dict[str, int]:
        day = func.date(ClickEvent.timestamp).label("day")
        async with self._session() as session:
            result = await session.execute(
                select(day, func.count(ClickEvent.id))
                .where(ClickEvent.timestamp >= since)
                .group_by(day)
                .order_by(day)
            )
            # SQLite returns 'YYYY-MM-DD' strings, PostgreSQL returns dates
            return {str(row[0]): int(row[1]) for row in result.all()}

    async def purge_clicks_before(self, cutoff: datetime) -> int:
        async with self._session() as session:
            result = await session.execute(
                delete(ClickEvent).where(ClickEvent.timestamp < cutoff)
            )
            await session.commit()
        return result.rowcount or 0

    async def ping(self) -> bool:
        try:
            async with self._session() as session:
                await session.execute(select(1))
            return True
        except ServiceUnavailableError:
            return False
