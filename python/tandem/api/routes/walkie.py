"""Walkie-talkie routes: buzzes and voice notes (active couple only)."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tandem.api.deps import get_db, get_storage
from tandem.auth.gate import CoupleContext, require_active_couple
from tandem.responses import success_response
from tandem.schemas.companion import SendBuzzRequest, SendVoiceMessageRequest
from tandem.schemas.content import SignUploadRequest
from tandem.services import walkie as walkie_service
from tandem.services.uploads import sign_content_upload
from tandem.storage.client import StorageClientBase

router = APIRouter()

ActiveCouple = Annotated[CoupleContext, Depends(require_active_couple())]


@router.post("/walkie/buzzes", status_code=201)
def send_buzz(
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
    body: SendBuzzRequest | None = None,
) -> dict:
    result = walkie_service.send_buzz(db, ctx, body or SendBuzzRequest())
    return success_response(result.model_dump(mode="json"))


@router.post("/walkie/buzzes/collect")
def collect_buzzes(ctx: ActiveCouple, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Fetch undelivered buzzes; each is returned exactly once."""
    result = walkie_service.collect_pending_buzzes(db, ctx)
    return success_response(result.model_dump(mode="json"))


@router.post("/walkie/voice/uploads")
def sign_voice_upload(
    ctx: ActiveCouple,
    body: SignUploadRequest,
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    result = sign_content_upload(ctx, "voice", body.content_type, storage)
    return success_response(result.model_dump(mode="json"))


@router.post("/walkie/voice", status_code=201)
def send_voice_message(
    ctx: ActiveCouple,
    body: SendVoiceMessageRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = walkie_service.send_voice_message(db, ctx, body)
    return success_response(result.model_dump(mode="json"))


@router.get("/walkie/voice")
def list_pending_voice_messages(
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    result = walkie_service.list_pending_voice_messages(db, ctx, storage)
    return success_response(result.model_dump(mode="json"))


@router.post("/walkie/voice/{message_id}/listened")
def mark_voice_listened(
    message_id: UUID,
    ctx: ActiveCouple,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = walkie_service.mark_voice_listened(db, ctx, message_id)
    return success_response(result.model_dump(mode="json"))


@router.get("/walkie/status")
def get_walkie_status(ctx: ActiveCouple, db: Annotated[Session, Depends(get_db)]) -> dict:
    result = walkie_service.get_walkie_status(db, ctx)
    return success_response(result.model_dump(mode="json"))
