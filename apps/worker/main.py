"""Celery worker entrypoint.

Run with:
    celery -A apps.worker.main:celery_app worker -Q default,maintenance --loglevel=info
    celery -A apps.worker.main:celery_app beat --loglevel=info

This module imports the Celery app and explicitly registers all tasks.
Task definitions are in the tandem.tasks package - no autodiscovery.

Logging Convention:
- All task log entries include request_id, task_name, task_id when available
- Use configure_task_logging() at the start of each task to set up context

Queue Configuration:
- maintenance: Periodic clean-up (streak photo purge, scheduled by beat)
- default: General background tasks
"""

from celery.signals import worker_process_init

from tandem.celery import celery_app
from tandem.logging import configure_logging, get_logger

# =============================================================================
# Task Registration (explicit imports - no autodiscovery)
# =============================================================================

from tandem.tasks import purge_streak_photos  # noqa: F401

# =============================================================================
# Worker Lifecycle
# =============================================================================


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    """Configure structlog when a worker process starts.

    Worker logs then use the same JSON structured format as the API.
    """
    configure_logging()
    logger = get_logger(__name__)
    logger.info("celery_worker_started", queues=["default", "maintenance"])


# Export celery_app for Celery to find
__all__ = ["celery_app"]
