"""Post-related Pydantic schemas."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from leelaaverse.schemas.generation import CamelModel

PostCategoryValue = Literal["image", "video", "text", "mixed"]
PostVisibilityValue = Literal["public", "followers", "private"]

MAX_TAGS = 30

# =============================================================================
# Request Schemas
# =============================================================================


class CreateFromGenerationRequest(CamelModel):
    """Request body for publishing a completed generation."""

    request_id: str = Field(..., min_length=1)
    caption: str | None = Field(default=None, max_length=2200)
    title: str | None = Field(default=None, max_length=200)
    tags: list[str] = Field(default_factory=list, max_length=MAX_TAGS)
    visibility: PostVisibilityValue = "public"


class CreatePostRequest(CamelModel):
    """Request body for creating a post directly."""

    category: PostCategoryValue = "image"
    caption: str | None = Field(default=None, max_length=2200)
    title: str | None = Field(default=None, max_length=200)
    media_url: str | None = None
    tags: list[str] = Field(default_factory=list, max_length=MAX_TAGS)
    visibility: PostVisibilityValue = "public"


# =============================================================================
# Response Schemas
# =============================================================================


class PostOut(CamelModel):
    """Response schema for a post."""

    model_config = CamelModel.model_config | {"from_attributes": True}

    id: UUID
    author_id: UUID
    category: str
    caption: str | None = None
    title: str | None = None
    media_url: str | None = None
    thumbnail_url: str | None = None
    media_type: str | None = None
    ai_generated: bool
    ai_provenance: dict[str, Any] | None = None
    tags: list[str]
    visibility: str
    status: str
    likes_count: int
    comments_count: int
    shares_count: int
    saves_count: int
    views_count: int
    created_at: datetime
    updated_at: datetime


class PaginationOut(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
