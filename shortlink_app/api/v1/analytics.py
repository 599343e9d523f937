from fastapi import APIRouter, Depends, HTTPException, Query, status

from shortlink_app.dependencies import get_analytics_service
from shortlink_app.exceptions import NotFoundError
from shortlink_app.schemas.analytics import LinkSummary, OverallStats
from shortlink_app.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


# Declared before /{short_code} so "overall" is not taken for a code
@router.get("/overall", response_model=OverallStats)
async def get_overall_stats(
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Service-wide stats over active links (cached for a few minutes)"""
    return await analytics.overall_stats()


@router.get("/{short_code}", response_model=LinkSummary)
async def get_link_analytics(
    short_code: str,
    days: int = Query(7, ge=1, le=365),
    analytics: AnalyticsService = Depends(get_analytics_service),
):
    """Per-link click analytics over the last ``days`` days"""
    try:
        return await analytics.summarize(short_code, window_days=days)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
