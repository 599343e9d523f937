from pydantic import BaseModel, HttpUrl, Field, computed_field, ConfigDict
from typing import List, Optional
from datetime import datetime
from shortlink_app.config import settings


class ShortLinkCreate(BaseModel):
    original_url: HttpUrl = Field(..., description="The original URL to be shortened")
    # Alias rules are enforced by the code generator (AliasInvalidError -> 400)
    custom_alias: Optional[str] = Field(None, description="Caller-chosen short code")
    expires_in: Optional[int] = Field(None, ge=1, le=365, description="Expiry in days")
    tags: List[str] = Field(default_factory=list, max_length=10)


class ShortLinkUpdate(BaseModel):
    tags: Optional[List[str]] = Field(None, max_length=10)
    expires_in: Optional[int] = Field(None, ge=1, le=365, description="New expiry in days from now")


class ShortLinkResponse(BaseModel):
    """Response schema that serializes the SQLAlchemy ShortLink model

    - from_attributes=True enables ORM mode (reads from model attributes)
    - @computed_field creates derived fields
    """
    short_code: str
    original_url: str
    custom_alias: Optional[str] = None
    clicks: int
    is_active: bool
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    expires_at: Optional[datetime] = None
    qr_code: Optional[str] = None

    @computed_field
    @property
    def short_url(self) -> str:
        """Computed field - automatically generated from short_code"""
        return f"{settings.base_url}/{self.short_code}"

    # Pydantic V2 style configuration
    model_config = ConfigDict(from_attributes=True)


class ShortLinkPage(BaseModel):
    urls: List[ShortLinkResponse]
    page: int
    limit: int
    total: int
    pages: int
