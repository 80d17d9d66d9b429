"""Stale generation sweeper.

Celery beat job: records left in pending/processing longer than
GENERATION_STALE_AFTER_MINUTES are failed with "Generation timed out" through a
conditional update, so a poll that completes the record concurrently wins. The
provider job itself is not cancelled.
"""

from datetime import UTC, datetime, timedelta

from leelaaverse.celery import celery_app
from leelaaverse.config import get_settings
from leelaaverse.db.session import get_session_factory
from leelaaverse.logging import clear_task_context, configure_task_logging, get_logger
from leelaaverse.services.generation_records import fail_stale_generations

logger = get_logger(__name__)


def sweep_stale_generations(session_factory=None, now: datetime | None = None) -> int:
    """Fail stale active generation records.

    Returns:
        Number of records failed.
    """
    settings = get_settings()
    threshold = (now or datetime.now(UTC)) - timedelta(
        minutes=settings.generation_stale_after_minutes
    )

    db = (session_factory or get_session_factory())()
    try:
        failed = fail_stale_generations(db, threshold)
    except Exception as e:
        logger.error("generation_sweep_error", error=str(e))
        db.rollback()
        raise
    finally:
        db.close()

    for external_job_id in failed:
        logger.info("generation_timed_out", generation_id=external_job_id)
    if failed:
        logger.info("generation_sweep_complete", failed_count=len(failed))
    return len(failed)


@celery_app.task(bind=True, max_retries=0, name="sweep_stale_generations")
def sweep_stale_generations_task(self, request_id: str | None = None) -> dict:
    configure_task_logging(
        request_id=request_id, task_name="sweep_stale_generations", task_id=self.request.id
    )
    try:
        return {"failed_count": sweep_stale_generations()}
    finally:
        clear_task_context()
