"""Generation record store.

One durable row per provider job. State transitions are conditional UPDATEs so a
terminal record is never overwritten and a record links to at most one post:

    processing -> completed | failed        (mark_completed / mark_failed)
    completed, post_id NULL -> post_id set  (link_to_post)

``create_record``, ``mark_completed`` and ``mark_failed`` commit. ``link_to_post``
only flushes; it runs inside the publish transaction together with the post insert.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from leelaaverse.db.models import (
    ACTIVE_GENERATION_STATUSES,
    GenerationRecord,
    GenerationStatus,
    utcnow,
)
from leelaaverse.errors import ApiErrorCode, ConflictError, NotFoundError
from leelaaverse.logging import get_logger
from leelaaverse.services.generation import GenerationInput

logger = get_logger(__name__)

MAX_ERROR_MESSAGE_LEN = 1000


def create_record(
    db: Session,
    *,
    user_id: UUID,
    external_job_id: str,
    generation: GenerationInput,
    aspect_ratio: str | None = None,
    style: str | None = None,
) -> GenerationRecord:
    """Persist a freshly submitted job in ``processing``."""
    record = GenerationRecord(
        external_job_id=external_job_id,
        user_id=user_id,
        model=generation.model.key,
        model_name=generation.model.display_name,
        prompt=generation.prompt,
        parameters={
            "aspect_ratio": aspect_ratio,
            "image_size": generation.image_size,
            "num_inference_steps": generation.num_inference_steps,
            "guidance_scale": generation.guidance_scale,
            "style": style,
        },
        status=GenerationStatus.processing.value,
    )
    db.add(record)
    db.commit()

    logger.info(
        "generation_record_created",
        generation_id=external_job_id,
        model=generation.model.key,
    )
    return record


def get_by_external_job_id(
    db: Session, external_job_id: str, *, owner_id: UUID | None = None
) -> GenerationRecord:
    """Load a record by provider job id.

    When ``owner_id`` is given, records belonging to someone else are reported as
    missing rather than forbidden.

    Raises:
        NotFoundError(E_GENERATION_NOT_FOUND): Unknown id or not owned.
    """
    record = db.execute(
        select(GenerationRecord).where(GenerationRecord.external_job_id == external_job_id)
    ).scalar_one_or_none()

    if record is None or (owner_id is not None and record.user_id != owner_id):
        raise NotFoundError(ApiErrorCode.E_GENERATION_NOT_FOUND, "Generation request not found")
    return record


def _transition(db: Session, external_job_id: str, values: dict) -> GenerationRecord:
    now = utcnow()
    result = db.execute(
        update(GenerationRecord)
        .where(
            GenerationRecord.external_job_id == external_job_id,
            GenerationRecord.status.in_(ACTIVE_GENERATION_STATUSES),
        )
        .values(**values, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.commit()

    if result.rowcount != 1:
        current = get_by_external_job_id(db, external_job_id)
        db.refresh(current)
        raise ConflictError(
            ApiErrorCode.E_GENERATION_STATE_CONFLICT,
            f"Generation is already {current.status}",
        )

    record = get_by_external_job_id(db, external_job_id)
    db.refresh(record)
    return record


def mark_completed(
    db: Session, external_job_id: str, asset_url: str, seed: int | None
) -> GenerationRecord:
    """Move an active record to ``completed``.

    Raises:
        ConflictError(E_GENERATION_STATE_CONFLICT): The record is already terminal.
    """
    record = _transition(
        db,
        external_job_id,
        {
            "status": GenerationStatus.completed.value,
            "result_url": asset_url,
            "seed": seed,
            "completed_at": utcnow(),
        },
    )
    logger.info("generation_completed", generation_id=external_job_id)
    return record


def mark_failed(db: Session, external_job_id: str, message: str) -> GenerationRecord:
    """Move an active record to ``failed``.

    Raises:
        ConflictError(E_GENERATION_STATE_CONFLICT): The record is already terminal.
    """
    record = _transition(
        db,
        external_job_id,
        {
            "status": GenerationStatus.failed.value,
            "error_message": message[:MAX_ERROR_MESSAGE_LEN],
            "completed_at": utcnow(),
        },
    )
    logger.info("generation_failed", generation_id=external_job_id, error_message=message)
    return record


def link_to_post(db: Session, record_id: UUID, post_id: UUID) -> None:
    """Attach a completed, unlinked record to a post. Flushes, does not commit.

    Raises:
        ConflictError(E_GENERATION_ALREADY_POSTED): The record is already linked.
    """
    result = db.execute(
        update(GenerationRecord)
        .where(
            GenerationRecord.id == record_id,
            GenerationRecord.post_id.is_(None),
            GenerationRecord.status == GenerationStatus.completed.value,
        )
        .values(post_id=post_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            ApiErrorCode.E_GENERATION_ALREADY_POSTED,
            "A post has already been created from this generation",
        )


def list_unposted_generations(
    db: Session, user_id: UUID, *, page: int = 1, limit: int = 20
) -> tuple[list[GenerationRecord], int]:
    """Return the owner's completed generations not yet published, newest first."""
    conditions = (
        GenerationRecord.user_id == user_id,
        GenerationRecord.status == GenerationStatus.completed.value,
        GenerationRecord.post_id.is_(None),
    )
    total = db.execute(
        select(func.count()).select_from(GenerationRecord).where(*conditions)
    ).scalar_one()

    records = (
        db.execute(
            select(GenerationRecord)
            .where(*conditions)
            .order_by(GenerationRecord.created_at.desc(), GenerationRecord.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    return list(records), total


def fail_stale_generations(db: Session, older_than: datetime) -> list[str]:
    """Fail active records last touched before ``older_than``.

    Each row is finalized with its own conditional UPDATE so a poll that completes a
    record concurrently wins. Returns the external job ids that were failed.
    """
    candidates = (
        db.execute(
            select(GenerationRecord.external_job_id).where(
                GenerationRecord.status.in_(ACTIVE_GENERATION_STATUSES),
                GenerationRecord.updated_at < older_than,
            )
        )
        .scalars()
        .all()
    )

    failed = []
    for external_job_id in candidates:
        now = utcnow()
        result = db.execute(
            update(GenerationRecord)
            .where(
                GenerationRecord.external_job_id == external_job_id,
                GenerationRecord.status.in_(ACTIVE_GENERATION_STATUSES),
            )
            .values(
                status=GenerationStatus.failed.value,
                error_message="Generation timed out",
                completed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            failed.append(external_job_id)

    db.commit()
    return failed
