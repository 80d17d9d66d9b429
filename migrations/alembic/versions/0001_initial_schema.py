"""Initial schema - users, posts, ai_generations

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the single authoritative schema for the generation-to-post workflow.
Closed value sets are text columns guarded by CHECK constraints.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=True)
    return sa.Column(
        name, sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False
    )


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("total_creations", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("total_creations >= 0", name="ck_users_total_creations_nonneg"),
    )

    # ==========================================================================
    # posts table
    # ==========================================================================
    op.create_table(
        "posts",
        sa.Column("id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("author_id", sa.UUID(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("media_url", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("media_type", sa.Text(), nullable=True),
        sa.Column("ai_generated", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("ai_provenance", postgresql.JSONB(), nullable=True),
        sa.Column(
            "tags", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False
        ),
        sa.Column("visibility", sa.Text(), server_default="public", nullable=False),
        sa.Column("status", sa.Text(), server_default="published", nullable=False),
        sa.Column("likes_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("comments_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("shares_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("saves_count", sa.Integer(), server_default="0", nullable=False),
        sa.Column("views_count", sa.Integer(), server_default="0", nullable=False),
        _timestamp("deleted_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "category IN ('image', 'video', 'text', 'mixed')", name="ck_posts_category"
        ),
        sa.CheckConstraint(
            "visibility IN ('public', 'followers', 'private')", name="ck_posts_visibility"
        ),
        sa.CheckConstraint("status IN ('draft', 'published', 'archived')", name="ck_posts_status"),
        sa.CheckConstraint(
            "category = 'text' OR media_url IS NOT NULL", name="ck_posts_media_required"
        ),
        sa.CheckConstraint(
            "category != 'text' OR caption IS NOT NULL", name="ck_posts_caption_required"
        ),
    )
    op.create_index("ix_posts_feed", "posts", ["visibility", "status", "created_at"])
    op.create_index("ix_posts_author_created", "posts", ["author_id", "created_at"])

    # ==========================================================================
    # ai_generations table
    # ==========================================================================
    op.create_table(
        "ai_generations",
        sa.Column("id", sa.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False),
        sa.Column("external_job_id", sa.Text(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("kind", sa.Text(), server_default="image", nullable=False),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("model_name", sa.Text(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column(
            "parameters",
            postgresql.JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("result_url", sa.Text(), nullable=True),
        sa.Column("seed", sa.BigInteger(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("post_id", sa.UUID(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("completed_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_job_id", name="uq_ai_generations_external_job_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["post_id"], ["posts.id"], ondelete="SET NULL"),
        sa.CheckConstraint("kind IN ('image')", name="ck_ai_generations_kind"),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_ai_generations_status",
        ),
        sa.CheckConstraint(
            "(status = 'completed') = (result_url IS NOT NULL)",
            name="ck_ai_generations_result_iff_completed",
        ),
        sa.CheckConstraint(
            "status = 'failed' OR error_message IS NULL",
            name="ck_ai_generations_error_only_failed",
        ),
    )
    op.create_index("ix_ai_generations_user_created", "ai_generations", ["user_id", "created_at"])
    op.create_index(
        "ix_ai_generations_status_updated", "ai_generations", ["status", "updated_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_ai_generations_status_updated", table_name="ai_generations")
    op.drop_index("ix_ai_generations_user_created", table_name="ai_generations")
    op.drop_table("ai_generations")
    op.drop_index("ix_posts_author_created", table_name="posts")
    op.drop_index("ix_posts_feed", table_name="posts")
    op.drop_table("posts")
    op.drop_table("users")
