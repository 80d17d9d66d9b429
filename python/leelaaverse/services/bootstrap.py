"""User bootstrap service.

Ensures a ``users`` row exists for every verified token subject.
"""

from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leelaaverse.db.models import User
from leelaaverse.logging import get_logger

logger = get_logger(__name__)


def ensure_user(db: Session, user_id: UUID) -> User:
    """Return the user row for ``user_id``, creating it on first sight.

    Idempotent and race-safe: a concurrent insert that wins the race surfaces as an
    IntegrityError, after which the existing row is re-read.
    """
    user = db.get(User, user_id)
    if user is not None:
        return user

    db.add(User(id=user_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        user = db.get(User, user_id)
        if user is None:
            raise RuntimeError(f"Failed to bootstrap user {user_id}") from None
        return user

    logger.info("user_bootstrapped", user_id=str(user_id))
    return db.get(User, user_id)
