"""Tests for ending a relationship.

Tests cover:
- Both partners become single with a permanent history entry each
- Shared content is archived or retired, never deleted
- Consent is revoked and audited
- The anonymous note is stored without an author
- Former partners can no longer use couple features
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect, select

from tandem.db.models import (
    AnonymousReview,
    Buzz,
    ChatMessage,
    ConsentType,
    Couple,
    ImportantDate,
    LocationShare,
    Memory,
    Mood,
    MoodType,
    PartnerConsent,
    StreakPhoto,
    User,
    VoiceMessage,
)
from tandem.errors import ApiError, ApiErrorCode
from tandem.schemas.companion import (
    CreateImportantDateRequest,
    SendBuzzRequest,
    SendChatMessageRequest,
    SendVoiceMessageRequest,
    SetMoodRequest,
)
from tandem.schemas.content import CreateMemoryRequest, ShareLocationRequest
from tandem.services import calendar as calendar_service
from tandem.services import chat as chat_service
from tandem.services import consent as consent_service
from tandem.services import identity as identity_service
from tandem.services import location as location_service
from tandem.services import memories as memories_service
from tandem.services import moods as moods_service
from tandem.services import pairing as pairing_service
from tandem.services import streaks as streaks_service
from tandem.services import walkie as walkie_service
from tests.factories import content_ref, couple_context, create_active_couple, create_user

PAIRED_AT = datetime(2026, 1, 10, 8, 0, tzinfo=timezone.utc)
ENDED_AT = datetime(2026, 3, 1, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def paired_with_content(db_session):
    paired = create_active_couple(db_session, consents=tuple(ConsentType), now=PAIRED_AT)
    x, y = paired.ids
    ctx = couple_context(db_session, x)
    now = ENDED_AT - timedelta(hours=1)

    for caption in ("first", "second"):
        memories_service.create_memory(
            db_session,
            ctx,
            CreateMemoryRequest(content_ref=content_ref(paired.couple_id, "memories"), caption=caption),
            now=now,
        )
    streaks_service.submit_streak_photo(db_session, ctx, content_ref(paired.couple_id), now=now)
    location_service.share_location(
        db_session, ctx, ShareLocationRequest(latitude=52.37, longitude=4.89), now=now
    )
    return paired


class TestDissolve:
    def test_both_partners_become_single_with_history(self, db_session, paired_with_content):
        paired = paired_with_content
        x, y = paired.ids

        result = pairing_service.dissolve(db_session, x, "It was lovely", now=ENDED_AT)

        assert result.couple_id == paired.couple_id
        assert result.history_entry.initiated_breakup is True
        assert result.history_entry.duration_days == 50

        for user_id, initiated in ((x, True), (y, False)):
            profile = identity_service.get_profile(db_session, user_id)
            assert profile.relationship_status == "single"
            assert profile.couple_id is None
            assert profile.past_relationship_exists is True
            assert len(profile.relationship_history) == 1
            entry = profile.relationship_history[0]
            assert entry.couple_id == paired.couple_id
            assert entry.initiated_breakup is initiated
            assert entry.started_at == PAIRED_AT
            assert entry.ended_at == ENDED_AT

        history_x = identity_service.get_profile(db_session, x).relationship_history[0]
        assert history_x.partner_id == y
        assert history_x.partner_name == "Bob"

        couple = db_session.get(Couple, paired.couple_id, populate_existing=True)
        assert couple.status == "dissolved"
        assert couple.dissolved_at == ENDED_AT

    def test_content_is_archived_not_deleted(self, db_session, paired_with_content):
        paired = paired_with_content

        result = pairing_service.dissolve(db_session, paired.partner2.id, now=ENDED_AT)

        assert result.archived_memories == 2
        memories = db_session.scalars(
            select(Memory).where(Memory.couple_id == paired.couple_id)
        ).all()
        assert len(memories) == 2
        assert {memory.status for memory in memories} == {"archived"}
        assert (
            db_session.scalars(memories_service.active_memories(paired.couple_id)).all() == []
        )

        photos = db_session.scalars(select(StreakPhoto)).all()
        assert len(photos) == 1
        assert photos[0].is_expired is True

        share = db_session.scalar(select(LocationShare))
        assert share.is_active is False

    def test_companion_rows_are_archived(self, db_session, paired_with_content):
        paired = paired_with_content
        x_ctx = couple_context(db_session, paired.partner1.id)
        now = ENDED_AT - timedelta(minutes=30)
        chat_service.send_message(db_session, x_ctx, SendChatMessageRequest(body="hey"), now=now)
        moods_service.set_mood(db_session, x_ctx, SetMoodRequest(mood=MoodType.calm), now=now)
        walkie_service.send_buzz(db_session, x_ctx, SendBuzzRequest(), now=now)
        walkie_service.send_voice_message(
            db_session,
            x_ctx,
            SendVoiceMessageRequest(
                content_ref=content_ref(paired.couple_id, "voice"), duration_s=2
            ),
            now=now,
        )
        calendar_service.add_important_date(
            db_session,
            x_ctx,
            CreateImportantDateRequest(title="Anniversary", date=PAIRED_AT.date()),
            now=now,
        )

        pairing_service.dissolve(db_session, paired.partner1.id, now=ENDED_AT)

        for model in (ChatMessage, Mood, Buzz, VoiceMessage, ImportantDate):
            rows = db_session.scalars(
                select(model).execution_options(populate_existing=True)
            ).all()
            assert len(rows) == 1, model.__name__
            assert rows[0].archived_at == ENDED_AT, model.__name__

    def test_consent_is_revoked(self, db_session, paired_with_content):
        paired = paired_with_content

        pairing_service.dissolve(db_session, paired.partner1.id, now=ENDED_AT)

        rows = db_session.scalars(select(PartnerConsent)).all()
        assert len(rows) == 2
        assert all(not any(row.flags().values()) for row in rows)
        for feature in ConsentType:
            assert not consent_service.is_feature_active(db_session, paired.couple_id, feature)

    def test_anonymous_note_has_no_author(self, db_session, paired_with_content):
        paired = paired_with_content

        pairing_service.dissolve(db_session, paired.partner1.id, "  " + "x" * 400, now=ENDED_AT)

        review = db_session.scalar(select(AnonymousReview))
        assert review.couple_id == paired.couple_id
        assert review.review_text == "x" * 300
        columns = {column.key for column in inspect(AnonymousReview).columns}
        assert columns == {"id", "couple_id", "review_text", "created_at"}

    def test_blank_note_is_not_stored(self, db_session, paired_with_content):
        pairing_service.dissolve(db_session, paired_with_content.partner1.id, "   ", now=ENDED_AT)

        assert db_session.scalar(select(AnonymousReview)) is None

    def test_former_partners_cannot_update_consent(self, db_session, paired_with_content):
        paired = paired_with_content
        pairing_service.dissolve(db_session, paired.partner1.id, "bye", now=ENDED_AT)

        for user_id in paired.ids:
            with pytest.raises(ApiError) as exc:
                consent_service.update_consent(db_session, user_id, {ConsentType.photo_sharing: True})
            assert exc.value.code == ApiErrorCode.E_RELATIONSHIP_NOT_ACTIVE

    def test_second_dissolve_has_no_relationship(self, db_session, paired_with_content):
        paired = paired_with_content
        pairing_service.dissolve(db_session, paired.partner1.id, now=ENDED_AT)

        with pytest.raises(ApiError) as exc:
            pairing_service.dissolve(db_session, paired.partner2.id, now=ENDED_AT)

        assert exc.value.code == ApiErrorCode.E_NO_ACTIVE_RELATIONSHIP

    def test_single_user_cannot_dissolve(self, db_session):
        lonely = create_user(db_session)

        with pytest.raises(ApiError) as exc:
            pairing_service.dissolve(db_session, lonely.id)

        assert exc.value.code == ApiErrorCode.E_NO_ACTIVE_RELATIONSHIP

    def test_failure_part_way_changes_nothing(self, db_session, paired_with_content, monkeypatch):
        paired = paired_with_content

        def explode(*args, **kwargs):
            raise RuntimeError("storage failure")

        monkeypatch.setattr(consent_service, "revoke_all", explode)
        with pytest.raises(RuntimeError):
            pairing_service.dissolve(db_session, paired.partner1.id, now=ENDED_AT)

        couple = db_session.get(Couple, paired.couple_id, populate_existing=True)
        assert couple.status == "active"
        user = db_session.get(User, paired.partner1.id, populate_existing=True)
        assert user.relationship_status == "paired"
        assert {m.status for m in db_session.scalars(select(Memory)).all()} == {"active"}

    def test_history_survives_start_date_change_of_new_couple(self, db_session):
        paired = create_active_couple(db_session, now=PAIRED_AT)
        x, y = paired.ids
        pairing_service.dissolve(db_session, x, now=ENDED_AT)

        z = create_user(db_session, "Zoe")
        couple = pairing_service.request_pairing(db_session, x, z.pairing_code)
        pairing_service.accept_pairing(db_session, z.id, couple.id)
        pairing_service.set_relationship_start_date(db_session, x, PAIRED_AT.date())

        entry = identity_service.get_profile(db_session, x).relationship_history[0]
        assert entry.partner_id == y
        assert entry.started_at == PAIRED_AT
