"""Celery tasks for Leelaaverse.

Tasks are explicitly imported here to register them with Celery.
No autodiscovery - all tasks must be imported in this module.
"""

from leelaaverse.tasks.sweep_stale_generations import (
    sweep_stale_generations,
    sweep_stale_generations_task,
)

__all__ = ["sweep_stale_generations", "sweep_stale_generations_task"]
