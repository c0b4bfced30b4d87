"""Streak routes.

Streaks need an active couple but no consent toggle. Photos are ephemeral:
a partner gets one short viewing window, then the photo is gone.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tandem.api.deps import get_db, get_storage
from tandem.auth.gate import CoupleContext, require_active_couple
from tandem.responses import success_response
from tandem.schemas.content import SignUploadRequest
from tandem.schemas.streaks import SubmitStreakPhotoRequest
from tandem.services import streaks as streaks_service
from tandem.services.uploads import sign_content_upload
from tandem.storage.client import StorageClientBase

router = APIRouter()

ActiveCouple = Annotated[CoupleContext, Depends(require_active_couple())]


@router.post("/streaks/uploads")
def sign_streak_upload(
    ctx: ActiveCouple,
    body: SignUploadRequest,
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    """Signed upload target for a new streak photo."""
    result = sign_content_upload(ctx, "streaks", body.content_type, storage)
    return success_response(result.model_dump(mode="json"))


@router.post("/streaks/photos", status_code=201)
def submit_streak_photo(
    ctx: ActiveCouple,
    body: SubmitStreakPhotoRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Submit an uploaded photo for today's streak."""
    result = streaks_service.submit_streak_photo(db, ctx, body.content_ref)
    return success_response(result.model_dump(mode="json"))


@router.get("/streaks")
def get_streak_status(
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    result = streaks_service.get_streak_status(db, ctx, storage)
    return success_response(result.model_dump(mode="json"))


@router.post("/streaks/photos/{photo_id}/view")
def view_streak_photo(
    photo_id: UUID,
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    """Open the partner's photo. It can be opened exactly once."""
    result = streaks_service.view_streak_photo(db, ctx, photo_id, storage)
    return success_response(result.model_dump(mode="json"))
