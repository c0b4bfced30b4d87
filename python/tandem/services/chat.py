"""Couple chat service layer.

Messages are plain text. Deleting a message only hides it for the user
who deleted it; the partner's view is unchanged.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, exists, func, select, update
from sqlalchemy.orm import Session

from tandem.auth.gate import CoupleContext
from tandem.db.models import ChatMessage, HiddenChatMessage
from tandem.db.session import insert_or_conflict, transaction
from tandem.db.types import utc_now
from tandem.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from tandem.logging import get_logger
from tandem.schemas.companion import (
    ChatMessageOut,
    ChatPageOut,
    MarkReadOut,
    SendChatMessageRequest,
    UnreadCountOut,
)

logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 100


def visible_messages(ctx: CoupleContext) -> Select:
    """The couple's messages minus the ones the viewer has hidden."""
    hidden = exists().where(
        HiddenChatMessage.message_id == ChatMessage.id,
        HiddenChatMessage.user_id == ctx.viewer_id,
    )
    return select(ChatMessage).where(
        ChatMessage.couple_id == ctx.couple_id,
        ChatMessage.archived_at.is_(None),
        ~hidden,
    )


def _count(db: Session, stmt: Select) -> int:
    return db.scalar(select(func.count()).select_from(stmt.subquery())) or 0


def _unread(ctx: CoupleContext) -> Select:
    return visible_messages(ctx).where(
        ChatMessage.recipient_id == ctx.viewer_id, ChatMessage.read_at.is_(None)
    )


def send_message(
    db: Session, ctx: CoupleContext, req: SendChatMessageRequest, now: datetime | None = None
) -> ChatMessageOut:
    """
    Raises:
        InvalidRequestError(E_INVALID_REQUEST): Blank message.
    """
    body = req.body.strip()
    if not body:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Message cannot be empty")
    now = now or utc_now()

    with transaction(db):
        message = ChatMessage(
            couple_id=ctx.couple_id,
            sender_id=ctx.viewer_id,
            recipient_id=ctx.partner_id,
            body=body,
            created_at=now,
        )
        db.add(message)
        db.flush()
        result = ChatMessageOut.model_validate(message)

    logger.info("chat.sent", couple_id=str(ctx.couple_id), message_id=str(message.id))
    return result


def list_messages(
    db: Session, ctx: CoupleContext, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT
) -> ChatPageOut:
    """Newest first, one page at a time, with the viewer's unread count."""
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_LIMIT))

    base = visible_messages(ctx)
    total = _count(db, base)
    messages = db.scalars(
        base.order_by(ChatMessage.created_at.desc(), ChatMessage.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return ChatPageOut(
        messages=[ChatMessageOut.model_validate(message) for message in messages],
        page=page,
        limit=limit,
        total=total,
        has_more=(page - 1) * limit + len(messages) < total,
        unread_count=_count(db, _unread(ctx)),
    )


def mark_read(db: Session, ctx: CoupleContext, now: datetime | None = None) -> MarkReadOut:
    """Mark every unread message addressed to the viewer as read."""
    now = now or utc_now()

    with transaction(db):
        marked = db.execute(
            update(ChatMessage)
            .where(
                ChatMessage.couple_id == ctx.couple_id,
                ChatMessage.recipient_id == ctx.viewer_id,
                ChatMessage.read_at.is_(None),
                ChatMessage.archived_at.is_(None),
            )
            .values(read_at=now)
        ).rowcount

    return MarkReadOut(marked=marked)


def hide_message(
    db: Session, ctx: CoupleContext, message_id: UUID, now: datetime | None = None
) -> None:
    """Hide a message for the viewer only. Hiding twice is a no-op.

    Raises:
        NotFoundError(E_MESSAGE_NOT_FOUND): Not a message of this couple.
    """
    now = now or utc_now()

    with transaction(db):
        message = db.scalar(
            select(ChatMessage).where(
                ChatMessage.id == message_id,
                ChatMessage.couple_id == ctx.couple_id,
                ChatMessage.archived_at.is_(None),
            )
        )
        if message is None:
            raise NotFoundError(ApiErrorCode.E_MESSAGE_NOT_FOUND, "Message not found")
        if db.get(HiddenChatMessage, (message.id, ctx.viewer_id)) is None:
            # A concurrent hide of the same message is fine to lose
            insert_or_conflict(
                db,
                HiddenChatMessage(message_id=message.id, user_id=ctx.viewer_id, hidden_at=now),
            )

    logger.info("chat.hidden", couple_id=str(ctx.couple_id), message_id=str(message_id))


def get_unread_count(db: Session, ctx: CoupleContext) -> UnreadCountOut:
    return UnreadCountOut(unread_count=_count(db, _unread(ctx)))


def archive_for_couple(db: Session, couple_id: UUID, now: datetime) -> int:
    """Archive a couple's messages inside the caller's transaction."""
    return db.execute(
        update(ChatMessage)
        .where(ChatMessage.couple_id == couple_id, ChatMessage.archived_at.is_(None))
        .values(archived_at=now)
    ).rowcount
