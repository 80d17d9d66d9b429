"""Database module for Leelaaverse.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from leelaaverse.db.engine import create_db_engine, get_engine
from leelaaverse.db.models import (
    Base,
    GenerationKind,
    GenerationRecord,
    GenerationStatus,
    Post,
    PostCategory,
    PostStatus,
    PostVisibility,
    User,
)
from leelaaverse.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "GenerationKind",
    "GenerationStatus",
    "PostCategory",
    "PostStatus",
    "PostVisibility",
    # Models
    "User",
    "GenerationRecord",
    "Post",
]
