from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from shortlink_app.dependencies import client_ip, get_link_service
from shortlink_app.exceptions import (
    AliasInvalidError,
    AliasTakenError,
    CodeGenerationExhaustedError,
    NotFoundError,
)
from shortlink_app.schemas.link import (
    ShortLinkCreate,
    ShortLinkPage,
    ShortLinkResponse,
    ShortLinkUpdate,
)
from shortlink_app.services.link_service import LinkService

router = APIRouter(prefix="/urls", tags=["urls"])


@router.post("/", response_model=ShortLinkResponse, status_code=status.HTTP_201_CREATED)
async def create_short_link(
    link_data: ShortLinkCreate,
    request: Request,
    link_service: LinkService = Depends(get_link_service),
):
    """Create a new short link, optionally with a custom alias"""
    try:
        return await link_service.create_short_link(
            str(link_data.original_url),
            custom_alias=link_data.custom_alias,
            expires_in=link_data.expires_in,
            tags=link_data.tags,
            creator_ip=client_ip(request),
            creator_user_agent=request.headers.get("user-agent"),
        )
    except AliasInvalidError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AliasTakenError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except CodeGenerationExhaustedError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/", response_model=ShortLinkPage)
async def list_short_links(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    link_service: LinkService = Depends(get_link_service),
):
    """Active short links, newest first"""
    links, total, pages = await link_service.list_links(page=page, limit=limit)
    return ShortLinkPage(
        urls=[ShortLinkResponse.model_validate(link) for link in links],
        page=page,
        limit=limit,
        total=total,
        pages=pages,
    )


@router.get("/{short_code}", response_model=ShortLinkResponse)
async def get_short_link(
    short_code: str,
    link_service: LinkService = Depends(get_link_service),
):
    """Get information about a short link"""
    try:
        return await link_service.get_link(short_code)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )


@router.patch("/{short_code}", response_model=ShortLinkResponse)
async def update_short_link(
    short_code: str,
    update: ShortLinkUpdate,
    link_service: LinkService = Depends(get_link_service),
):
    """Replace tags and/or reset the expiry of a short link"""
    try:
        return await link_service.update_link(
            short_code, tags=update.tags, expires_in=update.expires_in
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )


@router.delete("/{short_code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_short_link(
    short_code: str,
    link_service: LinkService = Depends(get_link_service),
):
    """Delete a short link (soft delete, invalidates the cache)"""
    try:
        await link_service.delete_link(short_code)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Short URL not found"
        )
