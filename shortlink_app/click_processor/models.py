"""
Data models for the click pipeline.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from shortlink_app.models.types import utcnow

UNKNOWN = "Unknown"
DIRECT = "direct"


class RawVisit(BaseModel):
    """
    Request metadata captured on the redirect path.

    Built by the API layer from the incoming request and handed to the
    recorder untouched; enrichment happens in the background.
    """

    ip: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="User agent string")
    referrer: Optional[str] = Field(None, description="HTTP referer")
    timestamp: datetime = Field(default_factory=utcnow, description="When the redirect happened")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ip": "8.8.8.8",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "referrer": "https://twitter.com",
                "timestamp": "2025-10-29T10:30:00Z",
            }
        }
    )


class VisitorInfo(BaseModel):
    """Enriched visitor. Every derived field defaults to "Unknown"."""

    ip: Optional[str] = None
    user_agent: Optional[str] = None
    browser: str = UNKNOWN
    os: str = UNKNOWN
    device: str = UNKNOWN
    country: str = UNKNOWN
    city: str = UNKNOWN


class ClickRecord(BaseModel):
    """A fully enriched click, ready to be persisted as a ClickEvent."""

    short_link_id: int
    short_code: str
    timestamp: datetime
    visitor: VisitorInfo
    referrer: str = DIRECT
    is_bot: bool = False
