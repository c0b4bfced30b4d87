"""Shared calendar routes (active couple only)."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from tandem.api.deps import get_db
from tandem.auth.gate import CoupleContext, require_active_couple
from tandem.responses import success_response
from tandem.schemas.companion import CreateImportantDateRequest
from tandem.services import calendar as calendar_service

router = APIRouter()

ActiveCouple = Annotated[CoupleContext, Depends(require_active_couple())]


@router.post("/calendar/dates", status_code=201)
def add_important_date(
    ctx: ActiveCouple,
    body: CreateImportantDateRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = calendar_service.add_important_date(db, ctx, body)
    return success_response(result.model_dump(mode="json"))


@router.get("/calendar/dates")
def list_important_dates(ctx: ActiveCouple, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Every date plus the ones coming up in the next 30 days."""
    result = calendar_service.list_important_dates(db, ctx)
    return success_response(result.model_dump(mode="json"))


@router.delete("/calendar/dates/{date_id}", status_code=204)
def delete_important_date(
    date_id: UUID,
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    calendar_service.delete_important_date(db, ctx, date_id)
    return Response(status_code=204)
