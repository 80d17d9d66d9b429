"""Celery application configuration.

Central configuration for Celery used by the worker and beat scheduler.

Usage:
    from leelaaverse.celery import celery_app
    celery_app.send_task("sweep_stale_generations")
"""

from celery import Celery

from leelaaverse.config import get_settings

settings = get_settings()

celery_app = Celery("leelaaverse")

celery_app.conf.broker_url = settings.effective_celery_broker_url
celery_app.conf.result_backend = settings.effective_celery_result_backend

celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.timezone = "UTC"
celery_app.conf.enable_utc = True
celery_app.conf.task_default_queue = "default"

# Fail generations the provider never finished (or clients stopped polling)
celery_app.conf.beat_schedule = {
    "sweep-stale-generations": {
        "task": "sweep_stale_generations",
        "schedule": 300.0,
    },
}
