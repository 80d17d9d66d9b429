"""Post and generation routes.

Routes are transport-only:
- Extract the viewer from request.state
- Call exactly one service function
- Return success_response(...) or raise ApiError

IMPORTANT: Static routes (/feed, /my-generations, /generation/...) must be
registered BEFORE the dynamic /{post_id} routes.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from leelaaverse.api.deps import get_db, get_generation_client, get_media_relocator
from leelaaverse.auth.middleware import Viewer, get_optional_viewer, get_viewer
from leelaaverse.responses import success_response
from leelaaverse.schemas.generation import GenerateImageRequest, GenerationOut
from leelaaverse.schemas.posts import (
    CreateFromGenerationRequest,
    CreatePostRequest,
    PaginationOut,
    PostCategoryValue,
    PostOut,
)
from leelaaverse.services import generation_records, orchestration
from leelaaverse.services import posts as posts_service
from leelaaverse.services.generation import FalQueueClient
from leelaaverse.services.relocation import MediaRelocator

router = APIRouter()

PageParam = Annotated[int, Query(ge=1)]
LimitParam = Annotated[int, Query(ge=1, le=50)]


def _page(items: list, total: int, page: int, limit: int, key: str, schema) -> dict:
    pagination = PaginationOut(
        page=page, limit=limit, total=total, pages=posts_service.page_count(total, limit)
    )
    return success_response(
        **{
            key: [schema.model_validate(i).model_dump(mode="json", by_alias=True) for i in items],
            "pagination": pagination.model_dump(mode="json"),
        }
    )


# =============================================================================
# Generation workflow
# =============================================================================


@router.post("/generate-image")
async def generate_image(
    body: GenerateImageRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[FalQueueClient, Depends(get_generation_client)],
) -> dict:
    """Submit 1-4 image generation jobs for the prompt."""
    result = await orchestration.start_generation(db, client, viewer.user_id, body)
    return success_response(**result)


@router.get("/generation/{request_id}")
async def get_generation(
    request_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    client: Annotated[FalQueueClient, Depends(get_generation_client)],
) -> dict:
    """Poll a generation.

    Completed and failed generations are answered from storage; a failed one is
    reported with ``success: false`` and HTTP 200.
    """
    return await orchestration.poll_generation(db, client, viewer.user_id, request_id)


@router.post("/create-from-generation", status_code=201)
def create_from_generation(
    body: CreateFromGenerationRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    relocator: Annotated[MediaRelocator, Depends(get_media_relocator)],
) -> dict:
    """Publish a completed generation as a post."""
    result = orchestration.publish_generation(db, relocator, viewer.user_id, body)
    return success_response(**result)


@router.get("/my-generations")
def list_my_generations(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: PageParam = 1,
    limit: LimitParam = 20,
) -> dict:
    """List the viewer's completed generations that have not been published."""
    records, total = generation_records.list_unposted_generations(
        db, viewer.user_id, page=page, limit=limit
    )
    return _page(records, total, page, limit, "generations", GenerationOut)


# =============================================================================
# Posts
# =============================================================================


@router.get("/feed")
def get_feed(
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
    category: PostCategoryValue | None = None,
    page: PageParam = 1,
    limit: LimitParam = 20,
) -> dict:
    """Newest-first feed. Anonymous viewers see public posts only."""
    posts, total = posts_service.get_feed(
        db,
        viewer.user_id if viewer else None,
        category=category,
        page=page,
        limit=limit,
    )
    return _page(posts, total, page, limit, "posts", PostOut)


@router.post("", status_code=201)
def create_post(
    body: CreatePostRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    relocator: Annotated[MediaRelocator, Depends(get_media_relocator)],
) -> dict:
    """Create a post directly (text, or media relocated from ``mediaUrl``)."""
    result = orchestration.create_direct_post(db, relocator, viewer.user_id, body)
    return success_response(**result)


@router.get("/user/{user_id}")
def list_user_posts(
    user_id: UUID,
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: PageParam = 1,
    limit: LimitParam = 20,
) -> dict:
    posts, total = posts_service.list_user_posts(
        db, user_id, viewer.user_id if viewer else None, page=page, limit=limit
    )
    return _page(posts, total, page, limit, "posts", PostOut)


@router.get("/{post_id}")
def get_post(
    post_id: UUID,
    viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Get a single post and count the view."""
    post = posts_service.get_post_for_viewer(db, post_id, viewer.user_id if viewer else None)
    return success_response(
        post=PostOut.model_validate(post).model_dump(mode="json", by_alias=True)
    )


@router.delete("/{post_id}")
def delete_post(
    post_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Soft-delete one of the viewer's posts."""
    posts_service.soft_delete_post(db, post_id, viewer.user_id)
    return success_response(message="Post deleted")
