"""Consent ledger service.

Every couple that has ever been active owns one ledger holding each
partner's three consent flags. A feature is active only while BOTH partners'
flags for it are true. The derived set is recomputed from storage on every
call and never cached or stored.

History entries are append-only: one per actual flag flip, never for a
no-op toggle, and never rewritten.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from tandem.db.models import (
    ConsentHistoryEntry,
    ConsentLedger,
    ConsentSource,
    ConsentType,
    Couple,
    PartnerConsent,
)
from tandem.db.session import insert_or_conflict, transaction
from tandem.db.types import utc_now
from tandem.errors import ApiErrorCode, ForbiddenError
from tandem.logging import get_logger
from tandem.schemas.consent import (
    ConsentHistoryOut,
    ConsentStatusOut,
    ConsentUpdateOut,
    FeatureStatusOut,
)
from tandem.services.identity import partner_id_of, require_active_couple

logger = get_logger(__name__)

MAX_HISTORY_LIMIT = 500


# =============================================================================
# Ledger primitives
# =============================================================================


def get_ledger(db: Session, couple_id: UUID) -> ConsentLedger | None:
    return db.scalar(
        select(ConsentLedger)
        .where(ConsentLedger.couple_id == couple_id)
        .execution_options(populate_existing=True)
    )


def load_partner_rows(db: Session, ledger_id: UUID) -> list[PartnerConsent]:
    """Read both partners' flags straight from storage."""
    return list(
        db.scalars(
            select(PartnerConsent)
            .where(PartnerConsent.ledger_id == ledger_id)
            .execution_options(populate_existing=True)
        )
    )


def create_ledger(db: Session, couple: Couple, now: datetime | None = None) -> ConsentLedger:
    """Create a ledger with every flag false for both partners.

    Must run inside the caller's transaction. Consent never defaults to on.
    """
    ledger = ConsentLedger(couple_id=couple.id, created_at=now or utc_now())
    ledger.partners = [
        PartnerConsent(user_id=couple.partner1_id),
        PartnerConsent(user_id=couple.partner2_id),
    ]
    db.add(ledger)
    db.flush()
    return ledger


def get_or_create_ledger(db: Session, couple: Couple) -> ConsentLedger:
    """Return the couple's ledger, creating an all-false one for legacy couples."""
    ledger = get_ledger(db, couple.id)
    if ledger is not None:
        _ensure_partner_rows(db, ledger, couple)
        return ledger

    ledger = ConsentLedger(couple_id=couple.id)
    ledger.partners = [
        PartnerConsent(user_id=couple.partner1_id),
        PartnerConsent(user_id=couple.partner2_id),
    ]
    if insert_or_conflict(db, ledger):
        logger.warning("consent.ledger_created_lazily", couple_id=str(couple.id))
        return ledger

    # Another request created it first
    ledger = get_ledger(db, couple.id)
    assert ledger is not None
    return ledger


def _ensure_partner_rows(db: Session, ledger: ConsentLedger, couple: Couple) -> None:
    present = {row.user_id for row in ledger.partners}
    for user_id in couple.partner_ids:
        if user_id not in present:
            ledger.partners.append(PartnerConsent(user_id=user_id))
    db.flush()


def active_features(partner_rows: list[PartnerConsent]) -> list[ConsentType]:
    """Toggles that every partner has enabled. Empty unless both rows exist."""
    if len(partner_rows) != 2:
        return []
    return [
        consent_type
        for consent_type in ConsentType
        if all(row.flag(consent_type) for row in partner_rows)
    ]


def is_feature_active(db: Session, couple_id: UUID, feature: ConsentType) -> bool:
    """True iff both partners' stored flags for the feature are true.

    Reads the partner rows fresh on every call.
    """
    ledger = get_ledger(db, couple_id)
    if ledger is None:
        return False
    return feature in active_features(load_partner_rows(db, ledger.id))


def revoke_all(
    db: Session,
    ledger: ConsentLedger,
    now: datetime,
    source: ConsentSource = ConsentSource.dissolution,
) -> int:
    """Turn every true flag off, recording one history entry per flip.

    Must run inside the caller's transaction.

    Returns:
        Number of flags flipped.
    """
    flipped = 0
    for row in load_partner_rows(db, ledger.id):
        for consent_type in ConsentType:
            if row.flag(consent_type):
                row.set_flag(consent_type, False)
                row.last_updated_at = now
                db.add(_history_entry(ledger, row.user_id, consent_type, False, source, now))
                flipped += 1
    db.flush()
    return flipped


def _history_entry(
    ledger: ConsentLedger,
    user_id: UUID,
    consent_type: ConsentType,
    enabled: bool,
    source: ConsentSource,
    now: datetime,
) -> ConsentHistoryEntry:
    return ConsentHistoryEntry(
        ledger_id=ledger.id,
        user_id=user_id,
        consent_type=consent_type.value,
        enabled=enabled,
        source=source.value,
        created_at=now,
    )


# =============================================================================
# Service Functions
# =============================================================================


def update_consent(
    db: Session,
    user_id: UUID,
    changes: dict[ConsentType, bool],
    now: datetime | None = None,
) -> ConsentUpdateOut:
    """Update the caller's own consent flags.

    Only flags whose value actually changes are written; each change stamps
    the caller's ``last_updated_at`` and appends one history entry. The
    partner's half of the ledger is never touched.

    Raises:
        ForbiddenError(E_RELATIONSHIP_NOT_ACTIVE): Caller is not in an active couple.
    """
    now = now or utc_now()

    with transaction(db):
        _, couple = require_active_couple(
            db, user_id, missing_code=ApiErrorCode.E_RELATIONSHIP_NOT_ACTIVE
        )
        ledger = get_or_create_ledger(db, couple)
        rows = load_partner_rows(db, ledger.id)
        mine = next(row for row in rows if row.user_id == user_id)

        changed: list[ConsentType] = []
        for consent_type, enabled in changes.items():
            if mine.flag(consent_type) == enabled:
                continue
            mine.set_flag(consent_type, enabled)
            db.add(
                _history_entry(ledger, user_id, consent_type, enabled, ConsentSource.partner, now)
            )
            changed.append(consent_type)

        if changed:
            mine.last_updated_at = now
        db.flush()

        result = ConsentUpdateOut(
            my_consent=mine.flags(),
            active_features=[feature.value for feature in active_features(rows)],
            changed=[consent_type.value for consent_type in changed],
        )

    if changed:
        logger.info(
            "consent.updated",
            couple_id=str(couple.id),
            changed=result.changed,
            active_features=result.active_features,
        )
    return result


def get_consent_status(db: Session, user_id: UUID) -> ConsentStatusOut:
    """Both partners' flags and the derived active features.

    Raises:
        ForbiddenError(E_NO_ACTIVE_RELATIONSHIP / E_RELATIONSHIP_NOT_ACTIVE)
        ForbiddenError(E_CONSENT_NOT_CONFIGURED): Ledger missing.
    """
    _, couple = require_active_couple(db, user_id)
    ledger = get_ledger(db, couple.id)
    if ledger is None:
        raise ForbiddenError(
            ApiErrorCode.E_CONSENT_NOT_CONFIGURED, "Consent settings not found"
        )

    rows = {row.user_id: row for row in load_partner_rows(db, ledger.id)}
    mine = rows.get(user_id)
    partner = rows.get(partner_id_of(couple, user_id))
    active = active_features(list(rows.values()))

    features = {}
    for consent_type in ConsentType:
        features[consent_type.value] = FeatureStatusOut(
            me=mine.flag(consent_type) if mine else False,
            partner=partner.flag(consent_type) if partner else False,
            active=consent_type in active,
        )

    return ConsentStatusOut(
        my_consent={key: status.me for key, status in features.items()},
        partner_consent={key: status.partner for key, status in features.items()},
        active_features=[feature.value for feature in active],
        features=features,
        my_last_updated_at=mine.last_updated_at if mine else None,
        partner_last_updated_at=partner.last_updated_at if partner else None,
    )


def list_consent_history(
    db: Session, user_id: UUID, limit: int = 100
) -> list[ConsentHistoryOut]:
    """Newest-first audit entries for the caller's couple."""
    limit = max(1, min(limit, MAX_HISTORY_LIMIT))
    _, couple = require_active_couple(db, user_id)
    ledger = get_ledger(db, couple.id)
    if ledger is None:
        return []

    entries = db.scalars(
        select(ConsentHistoryEntry)
        .where(ConsentHistoryEntry.ledger_id == ledger.id)
        .order_by(ConsentHistoryEntry.created_at.desc(), ConsentHistoryEntry.id)
        .limit(limit)
    )
    return [ConsentHistoryOut.model_validate(entry) for entry in entries]
