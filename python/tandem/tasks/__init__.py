"""Celery tasks for Tandem.

Tasks are explicitly imported here to register them with Celery.
No autodiscovery - all tasks must be imported in this module.
"""

from tandem.tasks.purge_streak_photos import purge_streak_photos

__all__ = ["purge_streak_photos"]
