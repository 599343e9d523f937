"""
Analytics result models.

These are what AnalyticsService returns and what gets cached (as JSON) in
the cache layer, so they round-trip through model_dump_json /
model_validate_json.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict


class DailyClicks(BaseModel):
    date: str  # YYYY-MM-DD (UTC)
    clicks: int


class Breakdown(BaseModel):
    name: str
    count: int


class ReferrerBreakdown(BaseModel):
    source: str
    count: int


class LinkInfo(BaseModel):
    short_code: str
    original_url: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LinkSummary(BaseModel):
    """Per-link analytics over a window of days."""

    url: LinkInfo
    window_days: int
    total_clicks: int
    clicks_in_period: int
    bot_clicks: int
    clicks_by_date: List[DailyClicks]
    browsers: List[Breakdown]
    operating_systems: List[Breakdown]
    devices: List[Breakdown]
    countries: List[Breakdown]
    referrers: List[ReferrerBreakdown]
    cached: bool = False


class LinkStat(BaseModel):
    short_code: str
    original_url: str
    clicks: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OverallStats(BaseModel):
    """Service-wide stats across active links."""

    total_urls: int
    total_clicks: int
    top_urls: List[LinkStat]
    recent_urls: List[LinkStat]
    clicks_by_day: List[DailyClicks]
    cached: bool = False
