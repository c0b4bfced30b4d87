"""Mood sharing service layer.

Every mood a partner sets is kept; the newest row is their current mood.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select, update
from sqlalchemy.orm import Session

from tandem.auth.gate import CoupleContext
from tandem.db.models import Mood, MoodType
from tandem.db.session import transaction
from tandem.db.types import utc_now
from tandem.logging import get_logger
from tandem.schemas.companion import (
    CurrentMoodOut,
    MoodOut,
    MoodPageOut,
    MoodTypeOut,
    SetMoodRequest,
)

logger = get_logger(__name__)

MAX_NOTE_LENGTH = 100
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

MOOD_EMOJIS: dict[MoodType, str] = {
    MoodType.happy: "😊",
    MoodType.excited: "🤩",
    MoodType.calm: "😌",
    MoodType.tired: "😴",
    MoodType.sad: "😢",
    MoodType.stressed: "😫",
    MoodType.loving: "🥰",
    MoodType.angry: "😤",
    MoodType.anxious: "😰",
    MoodType.neutral: "😐",
}


def _couple_moods(couple_id: UUID) -> Select:
    return select(Mood).where(Mood.couple_id == couple_id, Mood.archived_at.is_(None))


def _mood_out(mood: Mood) -> MoodOut:
    mood_type = MoodType(mood.mood)
    return MoodOut(
        id=mood.id,
        user_id=mood.user_id,
        mood=mood_type,
        emoji=MOOD_EMOJIS[mood_type],
        note=mood.note,
        created_at=mood.created_at,
    )


def set_mood(
    db: Session, ctx: CoupleContext, req: SetMoodRequest, now: datetime | None = None
) -> MoodOut:
    now = now or utc_now()
    note = (req.note or "").strip()[:MAX_NOTE_LENGTH]

    with transaction(db):
        mood = Mood(
            couple_id=ctx.couple_id,
            user_id=ctx.viewer_id,
            mood=req.mood.value,
            note=note or None,
            created_at=now,
        )
        db.add(mood)
        db.flush()
        result = _mood_out(mood)

    logger.info("mood.set", couple_id=str(ctx.couple_id), mood=req.mood.value)
    return result


def _latest_mood(db: Session, couple_id: UUID, user_id: UUID) -> CurrentMoodOut:
    mood = db.scalar(
        _couple_moods(couple_id)
        .where(Mood.user_id == user_id)
        .order_by(Mood.created_at.desc(), Mood.id)
        .limit(1)
    )
    return CurrentMoodOut(mood=_mood_out(mood) if mood else None)


def get_my_mood(db: Session, ctx: CoupleContext) -> CurrentMoodOut:
    return _latest_mood(db, ctx.couple_id, ctx.viewer_id)


def get_partner_mood(db: Session, ctx: CoupleContext) -> CurrentMoodOut:
    return _latest_mood(db, ctx.couple_id, ctx.partner_id)


def list_mood_history(
    db: Session, ctx: CoupleContext, page: int = 1, limit: int = DEFAULT_PAGE_LIMIT
) -> MoodPageOut:
    """Both partners' moods, newest first."""
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_LIMIT))

    base = _couple_moods(ctx.couple_id)
    total = db.scalar(select(func.count()).select_from(base.subquery()))
    moods = db.scalars(
        base.order_by(Mood.created_at.desc(), Mood.id).offset((page - 1) * limit).limit(limit)
    ).all()

    return MoodPageOut(
        moods=[_mood_out(mood) for mood in moods], page=page, limit=limit, total=total or 0
    )


def list_mood_types() -> list[MoodTypeOut]:
    return [
        MoodTypeOut(value=mood_type, label=mood_type.value.capitalize(), emoji=emoji)
        for mood_type, emoji in MOOD_EMOJIS.items()
    ]


def archive_for_couple(db: Session, couple_id: UUID, now: datetime) -> int:
    """Archive a couple's moods. Runs inside the caller's transaction."""
    return db.execute(
        update(Mood)
        .where(Mood.couple_id == couple_id, Mood.archived_at.is_(None))
        .values(archived_at=now)
    ).rowcount
