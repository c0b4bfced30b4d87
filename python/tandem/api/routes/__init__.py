"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from tandem.api.routes.calendar import router as calendar_router
from tandem.api.routes.chat import router as chat_router
from tandem.api.routes.consent import router as consent_router
from tandem.api.routes.couples import router as couples_router
from tandem.api.routes.health import router as health_router
from tandem.api.routes.location import router as location_router
from tandem.api.routes.me import router as me_router
from tandem.api.routes.memories import router as memories_router
from tandem.api.routes.moods import router as moods_router
from tandem.api.routes.streaks import router as streaks_router
from tandem.api.routes.walkie import router as walkie_router


def create_api_router() -> APIRouter:
    """Create and configure the API router.

    Returns:
        Configured APIRouter with all routes registered.
    """
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(me_router, tags=["user"])
    api_router.include_router(couples_router, tags=["couples"])
    api_router.include_router(consent_router, tags=["consent"])
    api_router.include_router(streaks_router, tags=["streaks"])
    api_router.include_router(memories_router, tags=["memories"])
    api_router.include_router(location_router, tags=["location"])
    api_router.include_router(chat_router, tags=["chat"])
    api_router.include_router(moods_router, tags=["moods"])
    api_router.include_router(walkie_router, tags=["walkie"])
    api_router.include_router(calendar_router, tags=["calendar"])
    return api_router


__all__ = ["create_api_router"]
