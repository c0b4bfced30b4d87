"""Mood sharing routes (active couple only; mood types need just a login)."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tandem.api.deps import get_db
from tandem.auth.gate import CoupleContext, require_active_couple
from tandem.auth.middleware import Viewer, get_viewer
from tandem.responses import success_response
from tandem.schemas.companion import SetMoodRequest
from tandem.services import moods as moods_service

router = APIRouter()

ActiveCouple = Annotated[CoupleContext, Depends(require_active_couple())]


@router.post("/moods", status_code=201)
def set_mood(
    ctx: ActiveCouple,
    body: SetMoodRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = moods_service.set_mood(db, ctx, body)
    return success_response(result.model_dump(mode="json"))


@router.get("/moods/types")
def list_mood_types(viewer: Annotated[Viewer, Depends(get_viewer)]) -> dict:
    types = moods_service.list_mood_types()
    return success_response([item.model_dump(mode="json") for item in types])


@router.get("/moods/me")
def get_my_mood(ctx: ActiveCouple, db: Annotated[Session, Depends(get_db)]) -> dict:
    result = moods_service.get_my_mood(db, ctx)
    return success_response(result.model_dump(mode="json"))


@router.get("/moods/partner")
def get_partner_mood(ctx: ActiveCouple, db: Annotated[Session, Depends(get_db)]) -> dict:
    """The partner's latest mood, or null."""
    result = moods_service.get_partner_mood(db, ctx)
    return success_response(result.model_dump(mode="json"))


@router.get("/moods/history")
def list_mood_history(
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
) -> dict:
    result = moods_service.list_mood_history(db, ctx, page=page, limit=limit)
    return success_response(result.model_dump(mode="json"))
