"""Shared calendar of important dates.

"Upcoming" is computed against today's date in STREAK_TIMEZONE, the same
reference clock the streak counter uses. Recurring dates repeat yearly on
their month and day; a 29 February date falls on 28 February in other years.
"""

from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tandem.auth.gate import CoupleContext
from tandem.config import get_settings
from tandem.db.models import ImportantDate
from tandem.db.session import transaction
from tandem.db.types import utc_now
from tandem.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from tandem.logging import get_logger
from tandem.schemas.companion import (
    CalendarOut,
    CreateImportantDateRequest,
    ImportantDateOut,
    UpcomingDateOut,
)

logger = get_logger(__name__)

DEFAULT_EMOJI = "❤️"
UPCOMING_WINDOW = timedelta(days=30)


def _date_out(item: ImportantDate) -> ImportantDateOut:
    return ImportantDateOut(
        id=item.id,
        created_by=item.created_by,
        title=item.title,
        description=item.description,
        date=item.event_date,
        emoji=item.emoji,
        is_recurring=item.is_recurring,
        reminder_enabled=item.reminder_enabled,
        created_at=item.created_at,
    )


def _in_year(day: date, year: int) -> date:
    try:
        return day.replace(year=year)
    except ValueError:
        return date(year, 2, 28)


def next_occurrence(event_date: date, is_recurring: bool, today: date) -> date | None:
    """The first occurrence on or after ``today``, or None if there is none."""
    if not is_recurring:
        return event_date if event_date >= today else None
    occurrence = _in_year(event_date, today.year)
    if occurrence < today:
        occurrence = _in_year(event_date, today.year + 1)
    return occurrence


def add_important_date(
    db: Session,
    ctx: CoupleContext,
    req: CreateImportantDateRequest,
    now: datetime | None = None,
) -> ImportantDateOut:
    """
    Raises:
        InvalidRequestError(E_INVALID_REQUEST): Blank title.
    """
    title = req.title.strip()
    if not title:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "Title cannot be empty")
    now = now or utc_now()
    description = req.description.strip() if req.description else None

    with transaction(db):
        item = ImportantDate(
            couple_id=ctx.couple_id,
            created_by=ctx.viewer_id,
            title=title,
            description=description or None,
            event_date=req.date,
            emoji=req.emoji or DEFAULT_EMOJI,
            is_recurring=req.is_recurring,
            reminder_enabled=req.reminder_enabled,
            created_at=now,
            updated_at=now,
        )
        db.add(item)
        db.flush()
        result = _date_out(item)

    logger.info("calendar.date_added", couple_id=str(ctx.couple_id), date_id=str(item.id))
    return result


def list_important_dates(
    db: Session, ctx: CoupleContext, now: datetime | None = None
) -> CalendarOut:
    """All dates in calendar order, plus those occurring within the next 30 days."""
    now = now or utc_now()
    today = now.astimezone(get_settings().streak_tz).date()
    horizon = today + UPCOMING_WINDOW

    items = db.scalars(
        select(ImportantDate)
        .where(ImportantDate.couple_id == ctx.couple_id, ImportantDate.archived_at.is_(None))
        .order_by(ImportantDate.event_date, ImportantDate.created_at)
    ).all()

    upcoming = []
    for item in items:
        occurs_on = next_occurrence(item.event_date, item.is_recurring, today)
        if occurs_on is not None and occurs_on <= horizon:
            upcoming.append(
                UpcomingDateOut(
                    id=item.id,
                    title=item.title,
                    emoji=item.emoji,
                    occurs_on=occurs_on,
                    days_until=(occurs_on - today).days,
                )
            )
    upcoming.sort(key=lambda entry: entry.occurs_on)

    return CalendarOut(dates=[_date_out(item) for item in items], upcoming=upcoming)


def delete_important_date(db: Session, ctx: CoupleContext, date_id: UUID) -> None:
    """Remove a date from the calendar. Either partner may delete.

    Raises:
        NotFoundError(E_DATE_NOT_FOUND)
    """
    with transaction(db):
        item = db.scalar(
            select(ImportantDate).where(
                ImportantDate.id == date_id,
                ImportantDate.couple_id == ctx.couple_id,
                ImportantDate.archived_at.is_(None),
            )
        )
        if item is None:
            raise NotFoundError(ApiErrorCode.E_DATE_NOT_FOUND, "Date not found")
        db.delete(item)

    logger.info("calendar.date_deleted", couple_id=str(ctx.couple_id), date_id=str(date_id))


def archive_for_couple(db: Session, couple_id: UUID, now: datetime) -> int:
    """Archive a couple's calendar inside the caller's transaction."""
    return db.execute(
        update(ImportantDate)
        .where(ImportantDate.couple_id == couple_id, ImportantDate.archived_at.is_(None))
        .values(archived_at=now, updated_at=now)
    ).rowcount
