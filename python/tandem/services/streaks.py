"""Ephemeral streak photos and the couple's streak counter.

A streak photo is unavailable as soon as either trigger fires:
- its absolute TTL passes (``expires_at <= now``), or
- it is retired (``is_expired``), which happens the moment the partner views it

Expiry is enforced by filtering at read time. The purge task only reclaims
rows and hosted objects; nothing depends on it having run.

The streak advances on a calendar day on which both partners have submitted
at least one photo. "Today" is the date of ``now`` in the configured
STREAK_TIMEZONE, one shared reference clock for both partners.
"""

from datetime import datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from tandem.auth.gate import CoupleContext
from tandem.config import get_settings
from tandem.db.models import StreakCounter, StreakPhoto
from tandem.db.session import insert_or_conflict, transaction
from tandem.db.types import utc_now
from tandem.errors import (
    ApiError,
    ApiErrorCode,
    ConflictError,
    InvalidRequestError,
    NotFoundError,
)
from tandem.logging import get_logger
from tandem.schemas.streaks import (
    StreakPhotoOut,
    StreakStatusOut,
    StreakSummaryOut,
    SubmitStreakPhotoOut,
    ViewStreakPhotoOut,
)
from tandem.storage.client import StorageClientBase, StorageError
from tandem.storage.paths import is_couple_content_path

logger = get_logger(__name__)

STREAK_PHOTO_TTL = timedelta(hours=24)
MAX_LIVE_PHOTOS = 3

# Display allowance after a view. Client convention only; the server retires
# the photo immediately.
VIEW_WINDOW_SECONDS = 40

# Viewed photos keep their hosted object this long so the viewer can load it
PURGE_VIEW_GRACE = timedelta(minutes=10)
PURGE_BATCH_SIZE = 500


# =============================================================================
# Helper Functions
# =============================================================================


def live_photo_filter(now: datetime):
    """SQL criteria for photos that are neither retired nor past their TTL."""
    return (StreakPhoto.is_expired.is_(False), StreakPhoto.expires_at > now)


def count_live_photos(db: Session, couple_id: UUID, uploaded_by: UUID, now: datetime) -> int:
    return db.scalar(
        select(func.count())
        .select_from(StreakPhoto)
        .where(
            StreakPhoto.couple_id == couple_id,
            StreakPhoto.uploaded_by == uploaded_by,
            *live_photo_filter(now),
        )
    )


def _lock_counter(db: Session, couple_id: UUID, now: datetime) -> StreakCounter:
    """Lock the couple's counter row, creating it for couples that predate it.

    Both partners' submissions serialize on this lock, so the read-modify-write
    in recompute_streak can never lose an update.
    """
    stmt = (
        select(StreakCounter)
        .where(StreakCounter.couple_id == couple_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    counter = db.scalar(stmt)
    if counter is not None:
        return counter

    insert_or_conflict(
        db,
        StreakCounter(couple_id=couple_id, current_streak=0, longest_streak=0, updated_at=now),
    )
    counter = db.scalar(stmt)
    assert counter is not None
    return counter


def _summary(counter: StreakCounter | None) -> StreakSummaryOut:
    if counter is None:
        return StreakSummaryOut(current_streak=0, longest_streak=0, last_streak_date=None)
    return StreakSummaryOut(
        current_streak=counter.current_streak,
        longest_streak=counter.longest_streak,
        last_streak_date=counter.last_streak_date,
    )


def _sign(storage: StorageClientBase, path: str) -> str:
    try:
        return storage.sign_download(path, expires_in=get_settings().signed_url_expiry_s)
    except StorageError as e:
        logger.warning("streak.sign_download_failed", error=e.message)
        raise ApiError(ApiErrorCode.E_SIGN_DOWNLOAD_FAILED, "Failed to sign photo URL") from e


def _photo_out(photo: StreakPhoto, view_url: str | None = None) -> StreakPhotoOut:
    return StreakPhotoOut(
        id=photo.id,
        uploaded_by=photo.uploaded_by,
        expires_at=photo.expires_at,
        created_at=photo.created_at,
        view_url=view_url,
    )


# =============================================================================
# Streak computation
# =============================================================================


def recompute_streak(counter: StreakCounter, now: datetime, tz: ZoneInfo) -> bool:
    """Advance the streak if both partners have submitted today.

    - both submitted today, last qualifying day was yesterday: +1
    - both submitted today, earlier gap: reset to 1 (never 0)
    - last qualifying day is already today: unchanged
    - only one partner submitted today: unchanged

    Mutates ``counter`` in place and performs no I/O.

    Returns:
        True if the counter changed.
    """
    today = now.astimezone(tz).date()
    stamps = (counter.partner1_last_photo_at, counter.partner2_last_photo_at)
    if any(stamp is None or stamp.astimezone(tz).date() != today for stamp in stamps):
        return False

    last = counter.last_streak_date
    if last == today:
        return False

    if last == today - timedelta(days=1):
        counter.current_streak += 1
    else:
        counter.current_streak = 1

    counter.last_streak_date = today
    if counter.current_streak > counter.longest_streak:
        counter.longest_streak = counter.current_streak
    return True


# =============================================================================
# Service Functions
# =============================================================================


def submit_streak_photo(
    db: Session, ctx: CoupleContext, content_ref: str, now: datetime | None = None
) -> SubmitStreakPhotoOut:
    """Record an uploaded streak photo and recompute the streak.

    Raises:
        InvalidRequestError(E_INVALID_CONTENT_REF): Path is not this couple's streak upload.
        ConflictError(E_ITEM_LIMIT_REACHED): Uploader already has 3 live photos.
    """
    now = now or utc_now()
    if not is_couple_content_path(content_ref, ctx.couple_id, "streaks"):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_REF, "Photo reference is not a streak upload"
        )

    with transaction(db):
        counter = _lock_counter(db, ctx.couple_id, now)

        live_count = count_live_photos(db, ctx.couple_id, ctx.viewer_id, now)
        if live_count >= MAX_LIVE_PHOTOS:
            raise ConflictError(
                ApiErrorCode.E_ITEM_LIMIT_REACHED,
                f"You can have at most {MAX_LIVE_PHOTOS} active streak photos",
            )

        photo = StreakPhoto(
            couple_id=ctx.couple_id,
            uploaded_by=ctx.viewer_id,
            content_ref=content_ref,
            expires_at=now + STREAK_PHOTO_TTL,
            is_expired=False,
            created_at=now,
        )
        db.add(photo)

        if ctx.is_partner1:
            counter.partner1_last_photo_at = now
        else:
            counter.partner2_last_photo_at = now
        advanced = recompute_streak(counter, now, get_settings().streak_tz)
        counter.updated_at = now
        db.flush()

        result = SubmitStreakPhotoOut(
            photo=_photo_out(photo),
            streak=_summary(counter),
            active_photos_count=live_count + 1,
        )

    logger.info("streak.photo_submitted", couple_id=str(ctx.couple_id), photo_id=str(photo.id))
    if advanced:
        logger.info(
            "streak.advanced",
            couple_id=str(ctx.couple_id),
            current_streak=result.streak.current_streak,
        )
    return result


def view_streak_photo(
    db: Session,
    ctx: CoupleContext,
    photo_id: UUID,
    storage: StorageClientBase,
    now: datetime | None = None,
) -> ViewStreakPhotoOut:
    """View the partner's photo, retiring it immediately.

    "Never existed" and "already gone" are reported identically.

    Raises:
        NotFoundError(E_ITEM_NOT_FOUND): Unknown, other couple's, expired or already viewed.
        InvalidRequestError(E_CANNOT_VIEW_OWN_ITEM)
    """
    now = now or utc_now()

    with transaction(db):
        photo = db.scalar(
            select(StreakPhoto)
            .where(StreakPhoto.id == photo_id, StreakPhoto.couple_id == ctx.couple_id)
            .execution_options(populate_existing=True)
        )
        if photo is None or not photo.is_live(now):
            raise NotFoundError(ApiErrorCode.E_ITEM_NOT_FOUND, "Photo not found or expired")

        if photo.uploaded_by == ctx.viewer_id:
            raise InvalidRequestError(
                ApiErrorCode.E_CANNOT_VIEW_OWN_ITEM, "You cannot view your own streak photo"
            )

        retired = db.execute(
            update(StreakPhoto)
            .where(StreakPhoto.id == photo.id, *live_photo_filter(now))
            .values(is_expired=True, viewed_at=now, viewed_by=ctx.viewer_id)
        )
        if retired.rowcount != 1:
            raise NotFoundError(ApiErrorCode.E_ITEM_NOT_FOUND, "Photo not found or expired")

        # Signing inside the transaction: no URL, no view
        view_url = _sign(storage, photo.content_ref)

    logger.info("streak.photo_viewed", couple_id=str(ctx.couple_id), photo_id=str(photo_id))
    return ViewStreakPhotoOut(
        photo_id=photo_id,
        viewed_at=now,
        view_url=view_url,
        view_window_seconds=VIEW_WINDOW_SECONDS,
    )


def get_streak_status(
    db: Session,
    ctx: CoupleContext,
    storage: StorageClientBase,
    now: datetime | None = None,
) -> StreakStatusOut:
    """Streak summary plus the live photos on both sides, newest first.

    Only the viewer's own photos carry a view URL; a partner photo can only
    be opened through view_streak_photo, which retires it.
    """
    now = now or utc_now()

    counter = db.get(StreakCounter, ctx.couple_id, populate_existing=True)
    photos = db.scalars(
        select(StreakPhoto)
        .where(StreakPhoto.couple_id == ctx.couple_id, *live_photo_filter(now))
        .order_by(StreakPhoto.created_at.desc(), StreakPhoto.id)
    ).all()

    mine = [p for p in photos if p.uploaded_by == ctx.viewer_id][:MAX_LIVE_PHOTOS]
    theirs = [p for p in photos if p.uploaded_by != ctx.viewer_id][:MAX_LIVE_PHOTOS]

    my_out = [_photo_out(p, _sign(storage, p.content_ref)) for p in mine]
    their_out = [_photo_out(p) for p in theirs]
    all_out = sorted(my_out + their_out, key=lambda p: p.created_at, reverse=True)

    return StreakStatusOut(
        streak=_summary(counter),
        my_photo=my_out[0] if my_out else None,
        partner_photo=their_out[0] if their_out else None,
        all_photos=all_out,
        my_photos_count=len(my_out),
        partner_photos_count=len(their_out),
        view_window_seconds=VIEW_WINDOW_SECONDS,
    )


def purge_expired_streak_photos(
    db: Session,
    storage: StorageClientBase,
    now: datetime | None = None,
    batch_size: int = PURGE_BATCH_SIZE,
) -> int:
    """Delete photos past their TTL or retired, and their hosted objects.

    Object deletion is best-effort and happens after the rows are gone.

    Returns:
        Number of rows deleted.
    """
    now = now or utc_now()
    viewed_before = now - PURGE_VIEW_GRACE

    with transaction(db):
        photos = db.scalars(
            select(StreakPhoto)
            .where(
                or_(
                    StreakPhoto.expires_at <= now,
                    (StreakPhoto.is_expired.is_(True) & StreakPhoto.viewed_at.is_(None)),
                    (StreakPhoto.is_expired.is_(True) & (StreakPhoto.viewed_at <= viewed_before)),
                )
            )
            .order_by(StreakPhoto.created_at)
            .limit(batch_size)
        ).all()
        refs = [photo.content_ref for photo in photos]
        if photos:
            db.execute(
                delete(StreakPhoto).where(StreakPhoto.id.in_([photo.id for photo in photos]))
            )

    failed = sum(1 for ref in refs if not storage.delete_object(ref))

    if refs:
        logger.info("streak.photos_purged", purged=len(refs), storage_failures=failed)
    return len(refs)
