"""Tests for the consent ledger and the authorization gate.

Tests cover:
- A feature is active only while both partners have it on
- Revocation by either partner takes effect on the next evaluation
- Each partner writes only their own flags, with an audit trail
- Gate precondition order and error codes
"""

import pytest
from sqlalchemy import delete, select

from tandem.auth.gate import authorize_active_couple, authorize_feature
from tandem.db.models import (
    ConsentHistoryEntry,
    ConsentLedger,
    ConsentType,
    PartnerConsent,
)
from tandem.db.types import utc_now
from tandem.errors import ApiError, ApiErrorCode, ConsentRequiredError
from tandem.services import consent as consent_service
from tandem.services import pairing as pairing_service
from tests.factories import create_active_couple, create_pending_couple, create_user, set_consent

PHOTO = ConsentType.photo_sharing


class TestConjunctiveConsent:
    def test_both_partners_must_enable(self, db_session):
        """X on, Y off -> inactive; Y on -> active; X off -> inactive immediately."""
        paired = create_active_couple(db_session)
        x, y = paired.ids

        set_consent(db_session, x, (PHOTO,), True)
        assert consent_service.is_feature_active(db_session, paired.couple_id, PHOTO) is False

        set_consent(db_session, y, (PHOTO,), True)
        assert consent_service.is_feature_active(db_session, paired.couple_id, PHOTO) is True

        set_consent(db_session, x, (PHOTO,), False)
        assert consent_service.is_feature_active(db_session, paired.couple_id, PHOTO) is False

    def test_features_are_independent(self, db_session):
        paired = create_active_couple(db_session, consents=(ConsentType.memory_access,))

        assert consent_service.is_feature_active(
            db_session, paired.couple_id, ConsentType.memory_access
        )
        assert not consent_service.is_feature_active(db_session, paired.couple_id, PHOTO)
        assert not consent_service.is_feature_active(
            db_session, paired.couple_id, ConsentType.location_sharing
        )

    def test_no_ledger_means_inactive(self, db_session):
        paired = create_active_couple(db_session, consents=(PHOTO,))
        db_session.execute(delete(ConsentLedger).where(ConsentLedger.couple_id == paired.couple_id))
        db_session.commit()

        assert consent_service.is_feature_active(db_session, paired.couple_id, PHOTO) is False

    def test_active_features_needs_both_rows(self, db_session):
        paired = create_active_couple(db_session, consents=(PHOTO,))
        ledger = consent_service.get_ledger(db_session, paired.couple_id)
        rows = consent_service.load_partner_rows(db_session, ledger.id)

        assert consent_service.active_features(rows) == [PHOTO]
        assert consent_service.active_features(rows[:1]) == []


class TestUpdateConsent:
    def test_caller_only_changes_own_flags(self, db_session):
        paired = create_active_couple(db_session)
        x, y = paired.ids

        result = consent_service.update_consent(db_session, x, {PHOTO: True})

        assert result.my_consent["photoSharing"] is True
        assert result.changed == ["photoSharing"]
        assert result.active_features == []

        status = consent_service.get_consent_status(db_session, y)
        assert status.my_consent["photoSharing"] is False
        assert status.partner_consent["photoSharing"] is True
        assert status.features["photoSharing"].active is False
        assert status.partner_last_updated_at is not None
        assert status.my_last_updated_at is None

    def test_unchanged_flags_are_not_audited(self, db_session):
        paired = create_active_couple(db_session)
        x, _ = paired.ids

        consent_service.update_consent(db_session, x, {PHOTO: True})
        again = consent_service.update_consent(db_session, x, {PHOTO: True})

        assert again.changed == []
        history = consent_service.list_consent_history(db_session, x)
        assert len(history) == 1
        assert history[0].consent_type == "photoSharing"
        assert history[0].enabled is True
        assert history[0].source == "partner"

    def test_history_is_newest_first_and_shared(self, db_session):
        paired = create_active_couple(db_session)
        x, y = paired.ids

        consent_service.update_consent(db_session, x, {PHOTO: True})
        consent_service.update_consent(db_session, y, {ConsentType.location_sharing: True})

        history = consent_service.list_consent_history(db_session, x, limit=10)

        assert [entry.user_id for entry in history][0] == y
        assert len(history) == 2
        assert len(consent_service.list_consent_history(db_session, x, limit=1)) == 1

    def test_requires_active_couple(self, db_session):
        lonely = create_user(db_session)

        with pytest.raises(ApiError) as exc:
            consent_service.update_consent(db_session, lonely.id, {PHOTO: True})

        assert exc.value.code == ApiErrorCode.E_RELATIONSHIP_NOT_ACTIVE

    def test_ledger_is_created_lazily_for_legacy_couples(self, db_session):
        paired = create_active_couple(db_session)
        db_session.execute(delete(ConsentLedger).where(ConsentLedger.couple_id == paired.couple_id))
        db_session.commit()

        consent_service.update_consent(db_session, paired.partner1.id, {PHOTO: True})

        ledger = consent_service.get_ledger(db_session, paired.couple_id)
        rows = consent_service.load_partner_rows(db_session, ledger.id)
        assert {row.user_id for row in rows} == set(paired.ids)


class TestRevokeAll:
    def test_turns_everything_off_with_dissolution_source(self, db_session):
        paired = create_active_couple(db_session, consents=tuple(ConsentType))
        ledger = consent_service.get_ledger(db_session, paired.couple_id)

        flipped = consent_service.revoke_all(db_session, ledger, utc_now())
        db_session.commit()

        assert flipped == 6
        rows = db_session.scalars(select(PartnerConsent)).all()
        assert all(not any(row.flags().values()) for row in rows)
        sources = db_session.scalars(
            select(ConsentHistoryEntry.source).where(ConsentHistoryEntry.enabled.is_(False))
        ).all()
        assert sources == ["dissolution"] * 6


class TestGate:
    """Precondition order: identity, couple reference, active, ledger, consent."""

    def test_no_identity_is_unauthenticated(self, db_session):
        with pytest.raises(ApiError) as exc:
            authorize_feature(db_session, None, PHOTO)

        assert exc.value.code == ApiErrorCode.E_UNAUTHENTICATED
        assert exc.value.status_code == 401

    def test_single_user_has_no_relationship(self, db_session):
        lonely = create_user(db_session)

        with pytest.raises(ApiError) as exc:
            authorize_feature(db_session, lonely.id, PHOTO)

        assert exc.value.code == ApiErrorCode.E_NO_ACTIVE_RELATIONSHIP
        assert exc.value.status_code == 403

    def test_pending_couple_has_no_relationship(self, db_session):
        _, x, _ = create_pending_couple(db_session)

        with pytest.raises(ApiError) as exc:
            authorize_active_couple(db_session, x.id)

        assert exc.value.code == ApiErrorCode.E_NO_ACTIVE_RELATIONSHIP

    def test_stale_couple_reference_is_not_active(self, db_session):
        paired = create_active_couple(db_session)
        x = paired.partner1
        pairing_service.dissolve(db_session, x.id)

        # A reference left behind by an interrupted write
        x.couple_id = paired.couple_id
        db_session.commit()

        with pytest.raises(ApiError) as exc:
            authorize_feature(db_session, x.id, PHOTO)

        assert exc.value.code == ApiErrorCode.E_RELATIONSHIP_NOT_ACTIVE

    def test_missing_ledger_is_not_configured(self, db_session):
        paired = create_active_couple(db_session)
        db_session.execute(delete(ConsentLedger).where(ConsentLedger.couple_id == paired.couple_id))
        db_session.commit()

        with pytest.raises(ApiError) as exc:
            authorize_feature(db_session, paired.partner1.id, PHOTO)

        assert exc.value.code == ApiErrorCode.E_CONSENT_NOT_CONFIGURED

    def test_missing_consent_names_the_toggle(self, db_session):
        paired = create_active_couple(db_session)
        set_consent(db_session, paired.partner1.id, (PHOTO,), True)

        with pytest.raises(ConsentRequiredError) as exc:
            authorize_feature(db_session, paired.partner1.id, PHOTO)

        assert exc.value.code == ApiErrorCode.E_CONSENT_REQUIRED
        assert exc.value.details == {"consent_required": "photoSharing"}
        assert "photoSharing" in exc.value.message

    def test_granted_returns_context(self, db_session):
        paired = create_active_couple(db_session, consents=(PHOTO,))

        ctx = authorize_feature(db_session, paired.partner2.id, PHOTO)

        assert ctx.couple_id == paired.couple_id
        assert ctx.viewer_id == paired.partner2.id
        assert ctx.partner_id == paired.partner1.id
        assert ctx.is_partner1 is False
        assert ctx.ledger is not None

    def test_revocation_applies_on_next_check(self, db_session):
        paired = create_active_couple(db_session, consents=(PHOTO,))
        authorize_feature(db_session, paired.partner1.id, PHOTO)

        set_consent(db_session, paired.partner2.id, (PHOTO,), False)

        with pytest.raises(ConsentRequiredError):
            authorize_feature(db_session, paired.partner1.id, PHOTO)
