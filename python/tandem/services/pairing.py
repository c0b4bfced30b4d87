"""Pairing state machine.

Couple lifecycle:

    (none) -> pending -> active -> dissolved
              pending -> dissolved        (rejected or cancelled)

A couple row is created eagerly when the pairing is requested. ``dissolved``
is terminal: pairing the same two people again creates a new couple.

Exclusivity is enforced by storage, not by check-then-act:
- ``couple_seats`` has one row per user in a pending or active couple
- ``couples.pair_key`` is unique among pending/active couples

The application-level checks below exist to report the precise failed
precondition; the constraints are what hold under concurrency.

Accept/reject/cancel lock the couple row and then apply a conditional update
guarded on ``status = 'pending'``. Whichever call commits first wins; the
loser sees zero affected rows and reports E_REQUEST_NOT_FOUND.
"""

from datetime import date, datetime, time, timezone
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from tandem.config import get_settings
from tandem.db.models import (
    AnonymousReview,
    Couple,
    CoupleSeat,
    CoupleStatus,
    LocationShare,
    Memory,
    MemoryStatus,
    PairRequestStatus,
    RelationshipHistoryEntry,
    RelationshipStatus,
    StreakCounter,
    StreakPhoto,
    User,
    make_pair_key,
)
from tandem.db.session import insert_or_conflict, transaction
from tandem.db.types import utc_now
from tandem.errors import (
    ApiErrorCode,
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
)
from tandem.logging import get_logger
from tandem.schemas.identity import RelationshipHistoryOut
from tandem.schemas.pairing import (
    CertificateOut,
    CoupleOut,
    DissolveOut,
    PairRequestOut,
    PendingRequestOut,
    PendingRequestsOut,
    RelationshipInfoOut,
)
from tandem.services import calendar as calendar_service
from tandem.services import chat as chat_service
from tandem.services import consent as consent_service
from tandem.services import moods as moods_service
from tandem.services import walkie as walkie_service
from tandem.services.identity import (
    get_user_or_401,
    partner_id_of,
    require_active_couple,
    resolve_user_by_code,
    to_public_user,
)

logger = get_logger(__name__)

# Maximum stored length of an anonymous breakup note
MAX_REVIEW_LENGTH = 300

CERTIFICATE_DISCLAIMER = (
    "This certificate is a keepsake generated by the app. "
    "It is not a legal document and has no legal effect."
)


# =============================================================================
# Helper Functions
# =============================================================================


def _couple_out(couple: Couple) -> CoupleOut:
    request = couple.pair_request
    return CoupleOut(
        id=couple.id,
        status=couple.status,
        partner1_id=couple.partner1_id,
        partner2_id=couple.partner2_id,
        request=PairRequestOut(
            from_user_id=request.from_user_id,
            to_user_id=request.to_user_id,
            status=request.status.value,
            created_at=request.created_at,
            responded_at=request.responded_at,
        ),
        paired_at=couple.paired_at,
        relationship_start_date=couple.relationship_start_date,
        dissolved_at=couple.dissolved_at,
        created_at=couple.created_at,
    )


def _load_couple(db: Session, couple_id: UUID, *, for_update: bool = False) -> Couple | None:
    stmt = (
        select(Couple)
        .where(Couple.id == couple_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return db.scalar(stmt)


def _open_couple_for(db: Session, user_id: UUID) -> Couple | None:
    """The pending or active couple holding the user's seat, if any."""
    seat = db.get(CoupleSeat, user_id, populate_existing=True)
    if seat is None:
        return None
    return _load_couple(db, seat.couple_id)


def _release_seats(db: Session, couple_id: UUID) -> None:
    db.execute(delete(CoupleSeat).where(CoupleSeat.couple_id == couple_id))


def relationship_started_at(couple: Couple) -> datetime:
    """Explicit start date if set, else the pairing date, else creation."""
    return couple.relationship_start_date or couple.paired_at or couple.created_at


def whole_days_between(start: datetime, end: datetime) -> int:
    """Whole elapsed days, rounded down, never negative."""
    return max(0, (end - start).days)


def _today(now: datetime) -> date:
    return now.astimezone(get_settings().streak_tz).date()


# =============================================================================
# Requests
# =============================================================================


def request_pairing(
    db: Session, initiator_id: UUID, target_code: str, now: datetime | None = None
) -> CoupleOut:
    """Propose a pairing to the user owning ``target_code``.

    Creates a pending couple with seats for both users.

    Raises:
        ConflictError(E_ALREADY_PAIRED): Initiator already holds a pending/active couple.
        NotFoundError(E_TARGET_NOT_FOUND): No user has that pairing code.
        ConflictError(E_SELF_PAIRING): The code is the initiator's own.
        ConflictError(E_TARGET_ALREADY_PAIRED): Target is in an active couple.
        ConflictError(E_DUPLICATE_REQUEST): A pending request already involves
            the target, or a concurrent request won the race.
    """
    now = now or utc_now()

    with transaction(db):
        initiator = get_user_or_401(db, initiator_id)
        target = resolve_user_by_code(db, target_code)

        existing = _open_couple_for(db, initiator.id)
        if existing is not None:
            if (
                target is not None
                and existing.status == CoupleStatus.pending.value
                and existing.has_partner(target.id)
            ):
                raise ConflictError(
                    ApiErrorCode.E_DUPLICATE_REQUEST,
                    "A pairing request between you already exists",
                )
            raise ConflictError(
                ApiErrorCode.E_ALREADY_PAIRED,
                "You are already in a relationship or have a pending request",
            )

        if target is None:
            raise NotFoundError(ApiErrorCode.E_TARGET_NOT_FOUND, "No user with that code")

        if target.id == initiator.id:
            raise ConflictError(ApiErrorCode.E_SELF_PAIRING, "You cannot pair with yourself")

        target_couple = _open_couple_for(db, target.id)
        if target_couple is not None:
            if target_couple.status == CoupleStatus.active.value:
                raise ConflictError(
                    ApiErrorCode.E_TARGET_ALREADY_PAIRED,
                    "That user is already in a relationship",
                )
            raise ConflictError(
                ApiErrorCode.E_DUPLICATE_REQUEST,
                "That user already has a pending pairing request",
            )

        couple = Couple(
            id=uuid4(),
            partner1_id=initiator.id,
            partner2_id=target.id,
            pair_key=make_pair_key(initiator.id, target.id),
            status=CoupleStatus.pending.value,
            request_from_id=initiator.id,
            request_to_id=target.id,
            request_status=PairRequestStatus.pending.value,
            request_created_at=now,
            created_at=now,
            updated_at=now,
        )
        inserted = insert_or_conflict(
            db,
            couple,
            CoupleSeat(user_id=initiator.id, couple_id=couple.id, created_at=now),
            CoupleSeat(user_id=target.id, couple_id=couple.id, created_at=now),
        )
        if not inserted:
            logger.info("pairing.request_conflict", initiator_id=str(initiator.id))
            raise ConflictError(
                ApiErrorCode.E_DUPLICATE_REQUEST,
                "A pairing request involving one of you was just created",
            )

        result = _couple_out(couple)

    logger.info("pairing.requested", couple_id=str(couple.id))
    return result


def _claim_pending(db: Session, couple_id: UUID, party_clause, values: dict) -> Couple:
    """Lock the couple and move it out of ``pending`` if the party matches.

    Raises:
        NotFoundError(E_REQUEST_NOT_FOUND): No pending request for this party,
            including one another call has already answered.
    """
    _load_couple(db, couple_id, for_update=True)
    claimed = db.execute(
        update(Couple)
        .where(
            Couple.id == couple_id,
            Couple.status == CoupleStatus.pending.value,
            party_clause,
        )
        .values(**values)
    )
    if claimed.rowcount != 1:
        raise NotFoundError(ApiErrorCode.E_REQUEST_NOT_FOUND, "No pending pairing request found")

    couple = _load_couple(db, couple_id)
    assert couple is not None
    return couple


def accept_pairing(
    db: Session, responder_id: UUID, couple_id: UUID, now: datetime | None = None
) -> CoupleOut:
    """Accept a pending request addressed to the responder.

    In one transaction: the couple becomes active, both users become paired,
    and a fresh all-false consent ledger and a zeroed streak counter are
    created. No reader can observe an active couple without its ledger.

    Raises:
        NotFoundError(E_REQUEST_NOT_FOUND)
    """
    now = now or utc_now()

    with transaction(db):
        responder = get_user_or_401(db, responder_id)
        couple = _claim_pending(
            db,
            couple_id,
            Couple.request_to_id == responder.id,
            {
                "status": CoupleStatus.active.value,
                "request_status": PairRequestStatus.accepted.value,
                "request_responded_at": now,
                "paired_at": now,
                "updated_at": now,
            },
        )

        for user_id in couple.partner_ids:
            user = db.get(User, user_id)
            user.relationship_status = RelationshipStatus.paired.value
            user.couple_id = couple.id
            user.updated_at = now

        consent_service.create_ledger(db, couple, now)
        db.add(
            StreakCounter(
                couple_id=couple.id, current_streak=0, longest_streak=0, updated_at=now
            )
        )
        db.flush()

        result = _couple_out(couple)

    logger.info("pairing.accepted", couple_id=str(couple.id))
    return result


def reject_pairing(
    db: Session, responder_id: UUID, couple_id: UUID, now: datetime | None = None
) -> CoupleOut:
    """Reject a pending request addressed to the responder.

    The couple goes straight to dissolved; neither user was ever paired, so
    no user fields change.

    Raises:
        NotFoundError(E_REQUEST_NOT_FOUND)
    """
    now = now or utc_now()

    with transaction(db):
        responder = get_user_or_401(db, responder_id)
        couple = _claim_pending(
            db,
            couple_id,
            Couple.request_to_id == responder.id,
            {
                "status": CoupleStatus.dissolved.value,
                "request_status": PairRequestStatus.rejected.value,
                "request_responded_at": now,
                "dissolved_at": now,
                "updated_at": now,
            },
        )
        _release_seats(db, couple.id)
        result = _couple_out(couple)

    logger.info("pairing.rejected", couple_id=str(couple.id))
    return result


def cancel_pairing(
    db: Session, initiator_id: UUID, couple_id: UUID, now: datetime | None = None
) -> CoupleOut:
    """Withdraw a pending request the caller sent.

    Raises:
        NotFoundError(E_REQUEST_NOT_FOUND)
    """
    now = now or utc_now()

    with transaction(db):
        initiator = get_user_or_401(db, initiator_id)
        couple = _claim_pending(
            db,
            couple_id,
            Couple.request_from_id == initiator.id,
            {
                "status": CoupleStatus.dissolved.value,
                "request_status": PairRequestStatus.cancelled.value,
                "request_responded_at": now,
                "dissolved_at": now,
                "updated_at": now,
            },
        )
        _release_seats(db, couple.id)
        result = _couple_out(couple)

    logger.info("pairing.cancelled", couple_id=str(couple.id))
    return result


def list_pending_requests(db: Session, user_id: UUID) -> PendingRequestsOut:
    """Pending requests the user has received and sent, newest first."""
    user = get_user_or_401(db, user_id)
    couples = db.scalars(
        select(Couple)
        .where(
            Couple.status == CoupleStatus.pending.value,
            or_(Couple.request_to_id == user.id, Couple.request_from_id == user.id),
        )
        .order_by(Couple.request_created_at.desc(), Couple.id)
    ).all()

    incoming: list[PendingRequestOut] = []
    outgoing: list[PendingRequestOut] = []
    for couple in couples:
        is_incoming = couple.request_to_id == user.id
        counterpart = db.get(
            User, couple.request_from_id if is_incoming else couple.request_to_id
        )
        if counterpart is None:
            continue
        item = PendingRequestOut(
            couple_id=couple.id,
            direction="incoming" if is_incoming else "outgoing",
            counterpart=to_public_user(counterpart),
            created_at=couple.request_created_at,
        )
        (incoming if is_incoming else outgoing).append(item)

    return PendingRequestsOut(incoming=incoming, outgoing=outgoing)


# =============================================================================
# Dissolution
# =============================================================================


def dissolve(
    db: Session,
    initiator_id: UUID,
    anonymous_note: str | None = None,
    now: datetime | None = None,
) -> DissolveOut:
    """End the initiator's active relationship.

    Everything below happens in one transaction, so a failure part-way
    leaves the couple active and untouched:
    - active memories are archived (never deleted)
    - live streak photos are retired
    - active location shares are deactivated
    - chat, moods, buzzes, voice notes and calendar dates are archived
    - every consent flag still on is turned off and audited
    - the couple becomes dissolved
    - each partner gets a permanent history entry
    - both users become single with no couple reference
    - seats are released so either may pair again
    - a non-empty note is stored as an anonymous review

    Raises:
        ForbiddenError(E_NO_ACTIVE_RELATIONSHIP / E_RELATIONSHIP_NOT_ACTIVE)
    """
    now = now or utc_now()

    with transaction(db):
        initiator, couple = require_active_couple(db, initiator_id, for_update=True)

        claimed = db.execute(
            update(Couple)
            .where(Couple.id == couple.id, Couple.status == CoupleStatus.active.value)
            .values(status=CoupleStatus.dissolved.value, dissolved_at=now, updated_at=now)
        )
        if claimed.rowcount != 1:
            raise ForbiddenError(
                ApiErrorCode.E_RELATIONSHIP_NOT_ACTIVE, "Your relationship is not active"
            )

        archived = db.execute(
            update(Memory)
            .where(Memory.couple_id == couple.id, Memory.status == MemoryStatus.active.value)
            .values(status=MemoryStatus.archived.value, updated_at=now)
        ).rowcount
        retired = db.execute(
            update(StreakPhoto)
            .where(StreakPhoto.couple_id == couple.id, StreakPhoto.is_expired.is_(False))
            .values(is_expired=True)
        ).rowcount
        db.execute(
            update(LocationShare)
            .where(LocationShare.couple_id == couple.id, LocationShare.is_active.is_(True))
            .values(is_active=False, updated_at=now)
        )
        archived_companion = sum(
            service.archive_for_couple(db, couple.id, now)
            for service in (chat_service, moods_service, walkie_service, calendar_service)
        )

        revoked = 0
        ledger = consent_service.get_ledger(db, couple.id)
        if ledger is not None:
            revoked = consent_service.revoke_all(db, ledger, now)

        started_at = relationship_started_at(couple)
        duration_days = whole_days_between(started_at, now)
        partner = db.get(User, partner_id_of(couple, initiator.id))

        initiator_entry = None
        for user, other in ((initiator, partner), (partner, initiator)):
            entry = RelationshipHistoryEntry(
                couple_id=couple.id,
                partner_id=other.id,
                partner_name=other.display_name,
                partner_code=other.pairing_code,
                started_at=started_at,
                ended_at=now,
                duration_days=duration_days,
                initiated_breakup=user.id == initiator.id,
                created_at=now,
            )
            user.relationship_history.append(entry)
            if user.id == initiator.id:
                initiator_entry = entry

        for user in (initiator, partner):
            user.relationship_status = RelationshipStatus.single.value
            user.couple_id = None
            user.past_relationship_exists = True
            user.updated_at = now

        _release_seats(db, couple.id)

        review_text = (anonymous_note or "").strip()[:MAX_REVIEW_LENGTH]
        if review_text:
            db.add(AnonymousReview(couple_id=couple.id, review_text=review_text, created_at=now))

        db.flush()

        result = DissolveOut(
            couple_id=couple.id,
            dissolved_at=now,
            archived_memories=archived,
            history_entry=RelationshipHistoryOut.model_validate(initiator_entry),
        )

    logger.info(
        "pairing.dissolved",
        couple_id=str(couple.id),
        archived_memories=archived,
        retired_photos=retired,
        archived_companion=archived_companion,
        revoked_consents=revoked,
        review_stored=bool(review_text),
    )
    return result


# =============================================================================
# Relationship details
# =============================================================================


def _relationship_info(db: Session, user_id: UUID, couple: Couple, now: datetime):
    partner = db.get(User, partner_id_of(couple, user_id))
    return RelationshipInfoOut(
        couple_id=couple.id,
        partner=to_public_user(partner),
        paired_at=couple.paired_at,
        relationship_start_date=couple.relationship_start_date,
        start_date_set=couple.relationship_start_date is not None,
        days_together=whole_days_between(relationship_started_at(couple), now),
    )


def get_relationship_info(
    db: Session, user_id: UUID, now: datetime | None = None
) -> RelationshipInfoOut:
    now = now or utc_now()
    _, couple = require_active_couple(db, user_id)
    return _relationship_info(db, user_id, couple, now)


def set_relationship_start_date(
    db: Session, user_id: UUID, start_date: date, now: datetime | None = None
) -> RelationshipInfoOut:
    """Set when the relationship started; it may predate the pairing.

    History entries written by earlier dissolutions are never touched.

    Raises:
        InvalidRequestError(E_INVALID_DATE): Date is in the future.
        ForbiddenError(E_NO_ACTIVE_RELATIONSHIP / E_RELATIONSHIP_NOT_ACTIVE)
    """
    now = now or utc_now()
    if start_date > _today(now):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_DATE, "Relationship start date cannot be in the future"
        )

    with transaction(db):
        _, couple = require_active_couple(db, user_id, for_update=True)
        couple.relationship_start_date = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
        couple.updated_at = now
        db.flush()
        result = _relationship_info(db, user_id, couple, now)

    logger.info("pairing.start_date_set", couple_id=str(couple.id))
    return result


def get_certificate(db: Session, user_id: UUID) -> CertificateOut:
    """Data for the relationship certificate. Rendering is left to clients."""
    _, couple = require_active_couple(db, user_id)
    partners = [db.get(User, partner) for partner in couple.partner_ids]
    return CertificateOut(
        couple_id=couple.id,
        partners=[to_public_user(partner) for partner in partners],
        paired_at=couple.paired_at,
        relationship_start_date=couple.relationship_start_date,
        disclaimer=CERTIFICATE_DISCLAIMER,
    )
