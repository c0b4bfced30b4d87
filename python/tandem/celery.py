"""Celery application configuration.

Central configuration for Celery used by both the API (for enqueuing) and
the worker/beat processes (for executing periodic tasks).

Usage:
    from tandem.celery import celery_app

    # Run a purge now:
    celery_app.send_task("purge_streak_photos")
"""

from celery import Celery

from tandem.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery("tandem")

# Configure from settings
celery_app.conf.broker_url = settings.effective_celery_broker_url
celery_app.conf.result_backend = settings.effective_celery_result_backend

# Task configuration
celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.timezone = "UTC"
celery_app.conf.enable_utc = True

celery_app.conf.task_routes = {
    "purge_streak_photos": {"queue": "maintenance"},
}

# Default queue
celery_app.conf.task_default_queue = "default"

# Expired and retired streak photos are removed every 15 minutes
celery_app.conf.beat_schedule = {
    "purge-streak-photos": {
        "task": "purge_streak_photos",
        "schedule": 15 * 60,
    },
}

# For testing: allow eager mode (synchronous execution)
celery_app.conf.task_always_eager = False


def get_celery_app() -> Celery:
    """Get the Celery application instance.

    Returns:
        Configured Celery application.
    """
    return celery_app
