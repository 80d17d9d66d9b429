"""Celery worker entrypoint.

Run with: celery -A apps.worker.main:celery_app worker --beat --loglevel=info

This module imports the Celery app and explicitly registers all tasks.
Task definitions are in the leelaaverse.tasks package - no autodiscovery.

Schedule:
- sweep_stale_generations: every 5 minutes via beat, fails generations that
  nobody polled to completion
"""

from celery.signals import worker_process_init

from leelaaverse.celery import celery_app
from leelaaverse.logging import configure_logging, get_logger

# Each import registers the task with the celery_app
from leelaaverse.tasks import sweep_stale_generations  # noqa: F401

app = celery_app


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    """Configure structlog when a worker process starts.

    Worker logs use the same JSON format as the API, with task_name and
    task_id bound per task.
    """
    configure_logging()
    logger = get_logger(__name__)
    logger.info("celery_worker_started")


__all__ = ["app", "celery_app"]
