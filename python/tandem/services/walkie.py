"""Walkie-talkie service layer: buzzes and voice notes.

A buzz is pending until the recipient fetches it; fetching delivers it.
A voice note is pending until the recipient marks it listened. Audio is
uploaded directly to storage under the couple's ``voice`` prefix, like
streak photos and memories.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from tandem.auth.gate import CoupleContext
from tandem.config import get_settings
from tandem.db.models import Buzz, VoiceMessage
from tandem.db.session import transaction
from tandem.db.types import utc_now
from tandem.errors import (
    ApiError,
    ApiErrorCode,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from tandem.logging import get_logger
from tandem.schemas.companion import (
    BuzzOut,
    PendingBuzzesOut,
    PendingVoiceMessagesOut,
    SendBuzzRequest,
    SendVoiceMessageRequest,
    VoiceMessageOut,
    WalkieStatusOut,
)
from tandem.storage.client import StorageClientBase, StorageError
from tandem.storage.paths import is_couple_content_path

logger = get_logger(__name__)


def _pending_buzzes(ctx: CoupleContext):
    return select(Buzz).where(
        Buzz.couple_id == ctx.couple_id,
        Buzz.recipient_id == ctx.viewer_id,
        Buzz.delivered_at.is_(None),
        Buzz.archived_at.is_(None),
    )


def _pending_voice(ctx: CoupleContext):
    return select(VoiceMessage).where(
        VoiceMessage.couple_id == ctx.couple_id,
        VoiceMessage.recipient_id == ctx.viewer_id,
        VoiceMessage.listened_at.is_(None),
        VoiceMessage.archived_at.is_(None),
    )


def _voice_out(message: VoiceMessage, listen_url: str | None = None) -> VoiceMessageOut:
    return VoiceMessageOut(
        id=message.id,
        sender_id=message.sender_id,
        duration_s=message.duration_s,
        listened_at=message.listened_at,
        created_at=message.created_at,
        listen_url=listen_url,
    )


# =============================================================================
# Buzzes
# =============================================================================


def send_buzz(
    db: Session, ctx: CoupleContext, req: SendBuzzRequest, now: datetime | None = None
) -> BuzzOut:
    now = now or utc_now()

    with transaction(db):
        buzz = Buzz(
            couple_id=ctx.couple_id,
            sender_id=ctx.viewer_id,
            recipient_id=ctx.partner_id,
            kind=req.kind.value,
            created_at=now,
        )
        db.add(buzz)
        db.flush()
        result = BuzzOut.model_validate(buzz)

    logger.info("walkie.buzz_sent", couple_id=str(ctx.couple_id), kind=req.kind.value)
    return result


def collect_pending_buzzes(
    db: Session, ctx: CoupleContext, now: datetime | None = None
) -> PendingBuzzesOut:
    """Return the viewer's undelivered buzzes, newest first, and deliver them.

    Rows are locked while they are claimed (skipping rows another fetch holds),
    so two devices fetching at once never both play the same buzz.
    """
    now = now or utc_now()

    with transaction(db):
        buzzes = db.scalars(
            _pending_buzzes(ctx)
            .order_by(Buzz.created_at.desc(), Buzz.id)
            .with_for_update(skip_locked=True)
        ).all()
        for buzz in buzzes:
            buzz.delivered_at = now
        db.flush()
        result = [BuzzOut.model_validate(buzz) for buzz in buzzes]

    return PendingBuzzesOut(buzzes=result, count=len(result))


# =============================================================================
# Voice notes
# =============================================================================


def send_voice_message(
    db: Session, ctx: CoupleContext, req: SendVoiceMessageRequest, now: datetime | None = None
) -> VoiceMessageOut:
    """
    Raises:
        InvalidRequestError(E_INVALID_CONTENT_REF): Not this couple's voice upload.
    """
    now = now or utc_now()
    if not is_couple_content_path(req.content_ref, ctx.couple_id, "voice"):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_REF, "Audio reference is not a voice upload"
        )

    with transaction(db):
        message = VoiceMessage(
            couple_id=ctx.couple_id,
            sender_id=ctx.viewer_id,
            recipient_id=ctx.partner_id,
            content_ref=req.content_ref,
            duration_s=req.duration_s,
            created_at=now,
        )
        db.add(message)
        db.flush()
        result = _voice_out(message)

    logger.info("walkie.voice_sent", couple_id=str(ctx.couple_id), message_id=str(message.id))
    return result


def list_pending_voice_messages(
    db: Session, ctx: CoupleContext, storage: StorageClientBase
) -> PendingVoiceMessagesOut:
    messages = db.scalars(
        _pending_voice(ctx).order_by(VoiceMessage.created_at.desc(), VoiceMessage.id)
    ).all()

    items = []
    for message in messages:
        try:
            url = storage.sign_download(
                message.content_ref, expires_in=get_settings().signed_url_expiry_s
            )
        except StorageError as e:
            logger.warning("walkie.sign_download_failed", error=e.message)
            raise ApiError(
                ApiErrorCode.E_SIGN_DOWNLOAD_FAILED, "Failed to sign voice note URL"
            ) from e
        items.append(_voice_out(message, url))

    return PendingVoiceMessagesOut(messages=items, count=len(items))


def mark_voice_listened(
    db: Session, ctx: CoupleContext, message_id: UUID, now: datetime | None = None
) -> VoiceMessageOut:
    """Mark a voice note listened. Repeating it keeps the first timestamp.

    Raises:
        NotFoundError(E_MESSAGE_NOT_FOUND): Not a voice note of this couple.
        ForbiddenError(E_FORBIDDEN): Viewer is the sender.
    """
    now = now or utc_now()

    with transaction(db):
        message = db.scalar(
            select(VoiceMessage).where(
                VoiceMessage.id == message_id,
                VoiceMessage.couple_id == ctx.couple_id,
                VoiceMessage.archived_at.is_(None),
            )
        )
        if message is None:
            raise NotFoundError(ApiErrorCode.E_MESSAGE_NOT_FOUND, "Voice note not found")
        if message.recipient_id != ctx.viewer_id:
            raise ForbiddenError(
                ApiErrorCode.E_FORBIDDEN, "Only the recipient can mark a voice note listened"
            )
        if message.listened_at is None:
            message.listened_at = now
        db.flush()
        result = _voice_out(message)

    return result


def get_walkie_status(db: Session, ctx: CoupleContext) -> WalkieStatusOut:
    pending_buzzes = db.scalar(select(func.count()).select_from(_pending_buzzes(ctx).subquery()))
    pending_voice = db.scalar(select(func.count()).select_from(_pending_voice(ctx).subquery()))
    return WalkieStatusOut(
        pending_buzzes=pending_buzzes or 0,
        pending_voice=pending_voice or 0,
        has_notifications=bool(pending_buzzes or pending_voice),
    )


def archive_for_couple(db: Session, couple_id: UUID, now: datetime) -> int:
    """Archive a couple's buzzes and voice notes inside the caller's transaction."""
    archived = 0
    for model in (Buzz, VoiceMessage):
        archived += db.execute(
            update(model)
            .where(model.couple_id == couple_id, model.archived_at.is_(None))
            .values(archived_at=now)
        ).rowcount
    return archived
