"""Post service layer.

All post-domain business logic lives here; routes only translate HTTP.

Creation functions (``create_from_generation``, ``create_post``) flush without
committing so callers can bundle them with generation linking and media
compensation in one transaction. Read and delete functions commit their own
side effects.

Visibility rules shared by every read path:
- Soft-deleted posts (``deleted_at`` set) never appear
- Only ``published`` posts appear
- Non-public posts are visible to their author only; to anyone else they do not exist
"""

import math
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from leelaaverse.db.models import (
    GenerationRecord,
    GenerationStatus,
    Post,
    PostCategory,
    PostStatus,
    PostVisibility,
    User,
    utcnow,
)
from leelaaverse.errors import (
    ApiErrorCode,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from leelaaverse.logging import get_logger
from leelaaverse.services.relocation import RelocatedMedia

logger = get_logger(__name__)

DEFAULT_AI_TITLE = "AI Generated Image"
MAX_TAG_LENGTH = 50


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Lower-case and trim tags, dropping blanks and duplicates (first one wins)."""
    seen: list[str] = []
    for tag in tags or []:
        cleaned = tag.strip().lower()[:MAX_TAG_LENGTH]
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def _increment_creations(db: Session, author_id: UUID) -> None:
    db.execute(
        update(User)
        .where(User.id == author_id)
        .values(total_creations=User.total_creations + 1)
        .execution_options(synchronize_session=False)
    )


def create_from_generation(
    db: Session,
    record: GenerationRecord,
    media: RelocatedMedia,
    *,
    caption: str | None = None,
    title: str | None = None,
    tags: list[str] | None = None,
    visibility: str = PostVisibility.public.value,
) -> Post:
    """Create an image post from a completed generation. Flushes, does not commit.

    The provenance block is a verbatim copy of the record's prompt, model,
    parameters and seed.

    Raises:
        InvalidRequestError(E_GENERATION_NOT_COMPLETED): Record is not completed.
        ConflictError(E_GENERATION_ALREADY_POSTED): Record already produced a post.
    """
    if record.status != GenerationStatus.completed.value or not record.result_url:
        raise InvalidRequestError(
            ApiErrorCode.E_GENERATION_NOT_COMPLETED, "Generation is not completed yet"
        )
    if record.post_id is not None:
        raise ConflictError(
            ApiErrorCode.E_GENERATION_ALREADY_POSTED,
            "A post has already been created from this generation",
        )

    post = Post(
        author_id=record.user_id,
        category=PostCategory.image.value,
        caption=(caption or "").strip() or f"AI generated image: {record.prompt}",
        title=(title or "").strip() or DEFAULT_AI_TITLE,
        media_url=media.permanent_url,
        thumbnail_url=media.thumbnail_url,
        media_type=media.content_type,
        ai_generated=True,
        ai_provenance={
            "model": record.model,
            "model_name": record.model_name,
            "prompt": record.prompt,
            "parameters": dict(record.parameters or {}),
            "seed": record.seed,
        },
        tags=normalize_tags(tags),
        visibility=visibility,
        status=PostStatus.published.value,
    )
    db.add(post)
    db.flush()
    _increment_creations(db, record.user_id)

    logger.info(
        "post_created_from_generation",
        post_id=str(post.id),
        generation_id=record.external_job_id,
    )
    return post


def create_post(
    db: Session,
    author_id: UUID,
    *,
    category: str,
    caption: str | None = None,
    title: str | None = None,
    media: RelocatedMedia | None = None,
    tags: list[str] | None = None,
    visibility: str = PostVisibility.public.value,
) -> Post:
    """Create a post directly. Flushes, does not commit.

    Raises:
        InvalidRequestError(E_MEDIA_REQUIRED): Image/video/mixed post without media.
        InvalidRequestError(E_CAPTION_REQUIRED): Text post without caption.
    """
    caption = (caption or "").strip() or None
    if category == PostCategory.text.value:
        if caption is None:
            raise InvalidRequestError(
                ApiErrorCode.E_CAPTION_REQUIRED, "Caption is required for text posts"
            )
    elif media is None:
        raise InvalidRequestError(
            ApiErrorCode.E_MEDIA_REQUIRED, f"Media is required for {category} posts"
        )

    post = Post(
        author_id=author_id,
        category=category,
        caption=caption,
        title=(title or "").strip() or None,
        media_url=media.permanent_url if media else None,
        thumbnail_url=media.thumbnail_url if media else None,
        media_type=media.content_type if media else None,
        ai_generated=False,
        tags=normalize_tags(tags),
        visibility=visibility,
        status=PostStatus.published.value,
    )
    db.add(post)
    db.flush()
    _increment_creations(db, author_id)

    logger.info("post_created", post_id=str(post.id), category=category)
    return post


def _visible_to(viewer_id: UUID | None):
    conditions = [Post.deleted_at.is_(None), Post.status == PostStatus.published.value]
    if viewer_id is None:
        conditions.append(Post.visibility == PostVisibility.public.value)
    else:
        conditions.append(
            or_(Post.visibility == PostVisibility.public.value, Post.author_id == viewer_id)
        )
    return conditions


def _paginate(db: Session, conditions: list, page: int, limit: int) -> tuple[list[Post], int]:
    total = db.execute(select(func.count()).select_from(Post).where(*conditions)).scalar_one()
    posts = (
        db.execute(
            select(Post)
            .where(*conditions)
            .order_by(Post.created_at.desc(), Post.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(posts), total


def get_feed(
    db: Session,
    viewer_id: UUID | None,
    *,
    category: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Post], int]:
    """Newest-first feed of public posts plus the viewer's own."""
    conditions = _visible_to(viewer_id)
    if category:
        conditions.append(Post.category == category)
    return _paginate(db, conditions, page, limit)


def list_user_posts(
    db: Session,
    user_id: UUID,
    viewer_id: UUID | None,
    *,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Post], int]:
    """Posts authored by ``user_id`` that the viewer may see."""
    conditions = _visible_to(viewer_id)
    conditions.append(Post.author_id == user_id)
    return _paginate(db, conditions, page, limit)


def _load_visible(db: Session, post_id: UUID, viewer_id: UUID | None) -> Post:
    post = db.execute(
        select(Post).where(Post.id == post_id, *_visible_to(viewer_id))
    ).scalar_one_or_none()
    if post is None:
        raise NotFoundError(ApiErrorCode.E_POST_NOT_FOUND, "Post not found")
    return post


def get_post_for_viewer(db: Session, post_id: UUID, viewer_id: UUID | None) -> Post:
    """Load a visible post and count the view.

    Raises:
        NotFoundError(E_POST_NOT_FOUND): Missing, deleted, or not visible.
    """
    post = _load_visible(db, post_id, viewer_id)
    db.execute(
        update(Post)
        .where(Post.id == post.id)
        .values(views_count=Post.views_count + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(post)
    return post


def soft_delete_post(db: Session, post_id: UUID, viewer_id: UUID) -> None:
    """Soft-delete a post owned by the viewer.

    Raises:
        NotFoundError(E_POST_NOT_FOUND): Missing, deleted, or not visible.
        ForbiddenError: Visible to the viewer but authored by someone else.
    """
    post = _load_visible(db, post_id, viewer_id)
    if post.author_id != viewer_id:
        raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, "Only the author can delete a post")

    now = utcnow()
    post.deleted_at = now
    post.updated_at = now
    db.commit()

    logger.info("post_deleted", post_id=str(post_id))
