"""SQLAlchemy ORM models for Leelaaverse.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Closed value sets are stored as text guarded by CHECK constraints; columns use
portable types so the same schema runs on PostgreSQL and on SQLite in tests.
"""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
    func,
)
from sqlalchemy import Uuid as SA_Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

JsonType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class GenerationStatus(str, PyEnum):
    """Generation record lifecycle.

    States:
        pending: Submitted to the provider, not yet observed running
        processing: Provider reported the job queued or in progress
        completed: Result URL recorded (terminal)
        failed: Error message recorded (terminal)
    """

    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


ACTIVE_GENERATION_STATUSES = (GenerationStatus.pending.value, GenerationStatus.processing.value)


class GenerationKind(str, PyEnum):
    image = "image"


class PostCategory(str, PyEnum):
    image = "image"
    video = "video"
    text = "text"
    mixed = "mixed"


class PostVisibility(str, PyEnum):
    public = "public"
    followers = "followers"
    private = "private"


class PostStatus(str, PyEnum):
    draft = "draft"
    published = "published"
    archived = "archived"


# =============================================================================
# Models
# =============================================================================


class User(Base):
    """User account model.

    The user ID matches the ``sub`` claim of the bearer token.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(SA_Uuid, primary_key=True, default=uuid4)
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_creations: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    posts: Mapped[list["Post"]] = relationship("Post", back_populates="author")

    __table_args__ = (
        CheckConstraint("total_creations >= 0", name="ck_users_total_creations_nonneg"),
    )


class GenerationRecord(Base):
    """Durable record of one provider job.

    ``external_job_id`` is the provider's request id and the public handle clients poll
    with. ``result_url`` is set only when completed, ``error_message`` only when failed,
    and ``post_id`` never changes once linked.
    """

    __tablename__ = "ai_generations"

    id: Mapped[UUID] = mapped_column(SA_Uuid, primary_key=True, default=uuid4)
    external_job_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    user_id: Mapped[UUID] = mapped_column(
        SA_Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(
        Text, default=GenerationKind.image.value, server_default="image", nullable=False
    )
    model: Mapped[str] = mapped_column(Text, nullable=False)
    model_name: Mapped[str] = mapped_column(Text, nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    parameters: Mapped[dict] = mapped_column(JsonType, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, default=GenerationStatus.pending.value, server_default="pending", nullable=False
    )
    result_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    seed: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    post_id: Mapped[UUID | None] = mapped_column(
        SA_Uuid, ForeignKey("posts.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("kind IN ('image')", name="ck_ai_generations_kind"),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_ai_generations_status",
        ),
        CheckConstraint(
            "(status = 'completed') = (result_url IS NOT NULL)",
            name="ck_ai_generations_result_iff_completed",
        ),
        CheckConstraint(
            "status = 'failed' OR error_message IS NULL",
            name="ck_ai_generations_error_only_failed",
        ),
        Index("ix_ai_generations_user_created", "user_id", "created_at"),
        Index("ix_ai_generations_status_updated", "status", "updated_at"),
    )


class Post(Base):
    """Published content item.

    Image, video and mixed posts carry ``media_url``; text posts carry ``caption``.
    Posts with ``deleted_at`` set are invisible to every read path.
    """

    __tablename__ = "posts"

    id: Mapped[UUID] = mapped_column(SA_Uuid, primary_key=True, default=uuid4)
    author_id: Mapped[UUID] = mapped_column(
        SA_Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    category: Mapped[str] = mapped_column(Text, nullable=False)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    media_type: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_generated: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    ai_provenance: Mapped[dict | None] = mapped_column(JsonType, nullable=True)
    tags: Mapped[list] = mapped_column(JsonType, default=list, nullable=False)
    visibility: Mapped[str] = mapped_column(
        Text, default=PostVisibility.public.value, server_default="public", nullable=False
    )
    status: Mapped[str] = mapped_column(
        Text, default=PostStatus.published.value, server_default="published", nullable=False
    )

    likes_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    comments_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    shares_count: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    saves_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    views_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    author: Mapped["User"] = relationship("User", back_populates="posts")

    __table_args__ = (
        CheckConstraint(
            "category IN ('image', 'video', 'text', 'mixed')", name="ck_posts_category"
        ),
        CheckConstraint(
            "visibility IN ('public', 'followers', 'private')", name="ck_posts_visibility"
        ),
        CheckConstraint("status IN ('draft', 'published', 'archived')", name="ck_posts_status"),
        CheckConstraint(
            "category = 'text' OR media_url IS NOT NULL", name="ck_posts_media_required"
        ),
        CheckConstraint(
            "category != 'text' OR caption IS NOT NULL", name="ck_posts_caption_required"
        ),
        Index("ix_posts_feed", "visibility", "status", "created_at"),
        Index("ix_posts_author_created", "author_id", "created_at"),
    )
