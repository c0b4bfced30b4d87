"""Consent routes.

Each partner edits only their own flags; a feature is active only while
both partners have it on.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tandem.api.deps import get_db
from tandem.auth.middleware import Viewer, get_viewer
from tandem.responses import success_response
from tandem.schemas.consent import UpdateConsentRequest
from tandem.services import consent as consent_service

router = APIRouter()


@router.get("/consent")
def get_consent(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Both partners' flags and the currently active features."""
    result = consent_service.get_consent_status(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))


@router.patch("/consent")
def update_consent(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: UpdateConsentRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Update the viewer's own flags. Omitted toggles are left as they are."""
    result = consent_service.update_consent(db, viewer.user_id, body.changes())
    return success_response(result.model_dump(mode="json"))


@router.get("/consent/history")
def list_consent_history(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, description="Maximum results (clamped to 500)")] = 100,
) -> dict:
    result = consent_service.list_consent_history(db, viewer.user_id, limit=limit)
    return success_response([entry.model_dump(mode="json") for entry in result])
