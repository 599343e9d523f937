from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, Index
from shortlink_app.database.connection import Base
from shortlink_app.models.types import UTCDateTime, utcnow


class ClickEvent(Base):
    """
    One redirect attempt. Immutable once written.

    Rows are purged after the retention window (see RetentionSweeper);
    deleting a ShortLink never cascades here.
    """
    __tablename__ = "click_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    short_link_id = Column(Integer, ForeignKey("short_links.id"), nullable=False)
    short_code = Column(String(20), nullable=False)
    timestamp = Column(UTCDateTime, default=utcnow, nullable=False, index=True)

    # Visitor (best-effort, "Unknown" when not derivable)
    ip = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    browser = Column(String(64), default="Unknown", nullable=False)
    os = Column(String(64), default="Unknown", nullable=False)
    device = Column(String(32), default="Unknown", nullable=False)
    country = Column(String(64), default="Unknown", nullable=False)
    city = Column(String(128), default="Unknown", nullable=False)

    referrer = Column(Text, default="direct", nullable=False)
    is_bot = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_click_events_link_time", "short_link_id", "timestamp"),
        Index("ix_click_events_code_time", "short_code", "timestamp"),
    )
