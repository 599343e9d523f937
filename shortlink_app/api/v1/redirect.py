from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse

from shortlink_app.click_processor.models import RawVisit
from shortlink_app.dependencies import get_raw_visit, get_resolver
from shortlink_app.exceptions import ExpiredError, NotFoundError
from shortlink_app.services.resolver import Resolver

router = APIRouter(tags=["redirect"])


@router.get("/{short_code}")
async def redirect_to_original_url(
    short_code: str,
    visit: RawVisit = Depends(get_raw_visit),
    resolver: Resolver = Depends(get_resolver),
):
    """
    Redirect to the original URL.

    Flow (optimized for performance):
    1. Resolve the code (cache-aside in front of the database)
    2. Hand the click to the background worker pool (not awaited)
    3. Redirect immediately

    Click enrichment and persistence happen in the background,
    so they don't slow down the redirect!
    """
    try:
        target = await resolver.resolve(short_code, visit)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found or inactive"
        )
    except ExpiredError:
        raise HTTPException(
            status_code=status.HTTP_410_GONE,
            detail="Short URL has expired"
        )

    return RedirectResponse(url=target.original_url, status_code=status.HTTP_302_FOUND)
