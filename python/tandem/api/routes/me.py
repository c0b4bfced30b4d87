"""Current user endpoints.

Routes are transport-only: extract the viewer, call one service function,
return the envelope.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tandem.api.deps import get_db
from tandem.auth.middleware import Viewer, get_viewer
from tandem.responses import success_response
from tandem.schemas.identity import UpdateProfileRequest
from tandem.services import identity as identity_service

router = APIRouter()


@router.get("/me")
def get_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Profile, pairing code, relationship status and permanent history."""
    result = identity_service.get_profile(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))


@router.patch("/me")
def update_me(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: UpdateProfileRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = identity_service.update_profile(db, viewer.user_id, body)
    return success_response(result.model_dump(mode="json"))
