"""Periodic removal of streak photos that are past their TTL or retired.

Retired photos that were viewed are kept for a short grace period so the
viewer's signed URL stays usable for the viewing window.
"""

from tandem.celery import celery_app
from tandem.db.session import get_session_factory
from tandem.logging import clear_task_context, configure_task_logging, get_logger
from tandem.services.streaks import purge_expired_streak_photos
from tandem.storage.client import get_storage_client

logger = get_logger(__name__)


@celery_app.task(bind=True, max_retries=0, name="purge_streak_photos")
def purge_streak_photos(self, request_id: str | None = None) -> dict:
    """Purge one batch of dead streak photos.

    Returns:
        Dict with the number of rows deleted.
    """
    configure_task_logging(
        request_id=request_id, task_name="purge_streak_photos", task_id=self.request.id
    )
    logger.info("purge_task_started")

    session_factory = get_session_factory()
    db = session_factory()
    try:
        purged = purge_expired_streak_photos(db, get_storage_client())
        logger.info("purge_task_completed", purged=purged)
        return {"status": "ok", "purged": purged}
    except Exception as exc:
        logger.error("purge_task_failed", error=str(exc))
        raise
    finally:
        db.close()
        clear_task_context()
