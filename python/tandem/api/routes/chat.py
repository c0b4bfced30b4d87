"""Couple chat routes (active couple only)."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from tandem.api.deps import get_db
from tandem.auth.gate import CoupleContext, require_active_couple
from tandem.responses import success_response
from tandem.schemas.companion import SendChatMessageRequest
from tandem.services import chat as chat_service

router = APIRouter()

ActiveCouple = Annotated[CoupleContext, Depends(require_active_couple())]


@router.post("/chat/messages", status_code=201)
def send_message(
    ctx: ActiveCouple,
    body: SendChatMessageRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = chat_service.send_message(db, ctx, body)
    return success_response(result.model_dump(mode="json"))


@router.get("/chat/messages")
def list_messages(
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 50,
) -> dict:
    result = chat_service.list_messages(db, ctx, page=page, limit=limit)
    return success_response(result.model_dump(mode="json"))


@router.delete("/chat/messages/{message_id}", status_code=204)
def hide_message(
    message_id: UUID,
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete a message for the viewer only."""
    chat_service.hide_message(db, ctx, message_id)
    return Response(status_code=204)


@router.post("/chat/read")
def mark_read(ctx: ActiveCouple, db: Annotated[Session, Depends(get_db)]) -> dict:
    result = chat_service.mark_read(db, ctx)
    return success_response(result.model_dump(mode="json"))


@router.get("/chat/unread")
def get_unread_count(ctx: ActiveCouple, db: Annotated[Session, Depends(get_db)]) -> dict:
    result = chat_service.get_unread_count(db, ctx)
    return success_response(result.model_dump(mode="json"))
