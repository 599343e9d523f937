from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, Boolean, JSON, Index
from shortlink_app.database.connection import Base
from shortlink_app.models.types import UTCDateTime, utcnow


class ShortLink(Base):
    """
    Short link model (transactional data).

    short_code is unique across active AND inactive rows, so codes are never
    reused after a soft delete. custom_alias is unique when present.
    """
    __tablename__ = "short_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Note: unique=True automatically creates an index in SQLAlchemy
    short_code = Column(String(20), unique=True, nullable=False, index=True)
    custom_alias = Column(String(20), unique=True, nullable=True)
    original_url = Column(Text, nullable=False)
    clicks = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    tags = Column(JSON, default=list, nullable=False)

    # Opaque creator context
    creator_ip = Column(String(64), nullable=True)
    creator_user_agent = Column(Text, nullable=True)

    # PNG data URL of the short URL
    qr_code = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
    expires_at = Column(UTCDateTime, nullable=True, index=True)

    __table_args__ = (
        Index("ix_short_links_code_active", "short_code", "is_active"),
        Index("ix_short_links_created_clicks", "created_at", "clicks"),
    )

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_resolvable(self, now: datetime) -> bool:
        return bool(self.is_active) and not self.is_expired(now)

    def __repr__(self) -> str:
        return f"<ShortLink(id={self.id}, short_code='{self.short_code}', clicks={self.clicks})>"
