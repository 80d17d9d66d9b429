"""Database session management and transaction helpers.

Provides:
- Request-scoped database sessions via the get_db() dependency
- A transaction context manager for mutations
"""

from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from leelaaverse.db.engine import get_engine


def create_session_factory(engine: Engine | None = None) -> sessionmaker[Session]:
    """Create a session factory bound to ``engine`` (the default engine when None)."""
    return sessionmaker(
        bind=engine if engine is not None else get_engine(),
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


_SessionLocal: sessionmaker[Session] | None = None


def get_session_factory() -> sessionmaker[Session]:
    """Get or lazily create the default session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = create_session_factory()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a session that is closed after the request."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Commit the session on success, roll back and re-raise on any exception.

    Usage:
        with transaction(db):
            db.add(post)
            link_to_post(db, record, post.id)
    """
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise
