"""Tests for ephemeral streak photos and the streak counter.

Tests cover:
- Streak increments, holds and resets on the shared calendar day
- The per-uploader cap on live photos
- Double expiry: TTL or retirement on first partner view
- Status listing and which photos carry a view URL
- Purging dead photos and their hosted objects
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import select

from tandem.db.models import StreakCounter, StreakPhoto
from tandem.errors import ApiError, ApiErrorCode
from tandem.services import streaks as streaks_service
from tandem.storage.client import FakeStorageClient, StorageError
from tests.factories import content_ref, couple_context, create_active_couple

UTC = ZoneInfo("UTC")
DAY_N = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


class FailingDownloadStorage(FakeStorageClient):
    def sign_download(self, path: str, *, expires_in: int = 300) -> str:
        raise StorageError("storage down", code="E_SIGN_DOWNLOAD_FAILED")


def _submit(db, user_id, now=None):
    ctx = couple_context(db, user_id)
    return streaks_service.submit_streak_photo(db, ctx, content_ref(ctx.couple_id), now=now)


def _counter(last_streak_date=None, current=0, longest=0, p1=None, p2=None) -> StreakCounter:
    return StreakCounter(
        current_streak=current,
        longest_streak=longest,
        last_streak_date=last_streak_date,
        partner1_last_photo_at=p1,
        partner2_last_photo_at=p2,
    )


class TestRecomputeStreak:
    def test_first_qualifying_day_starts_at_one(self):
        counter = _counter(p1=DAY_N, p2=DAY_N)

        assert streaks_service.recompute_streak(counter, DAY_N, UTC) is True
        assert counter.current_streak == 1
        assert counter.longest_streak == 1
        assert counter.last_streak_date == DAY_N.date()

    def test_consecutive_day_increments(self):
        counter = _counter(date(2026, 5, 31), current=4, longest=4, p1=DAY_N, p2=DAY_N)

        streaks_service.recompute_streak(counter, DAY_N, UTC)

        assert counter.current_streak == 5
        assert counter.longest_streak == 5

    def test_gap_resets_to_one_and_keeps_longest(self):
        counter = _counter(date(2026, 5, 29), current=7, longest=9, p1=DAY_N, p2=DAY_N)

        streaks_service.recompute_streak(counter, DAY_N, UTC)

        assert counter.current_streak == 1
        assert counter.longest_streak == 9

    def test_only_one_partner_today_is_unchanged(self):
        counter = _counter(
            date(2026, 5, 31), current=2, longest=2, p1=DAY_N, p2=DAY_N - timedelta(days=1)
        )

        assert streaks_service.recompute_streak(counter, DAY_N, UTC) is False
        assert counter.current_streak == 2

    def test_same_day_twice_counts_once(self):
        counter = _counter(DAY_N.date(), current=3, longest=3, p1=DAY_N, p2=DAY_N)

        assert streaks_service.recompute_streak(counter, DAY_N, UTC) is False
        assert counter.current_streak == 3

    def test_day_boundary_uses_reference_timezone(self):
        # 23:30 UTC on June 1st is already June 2nd in Auckland
        late = datetime(2026, 6, 1, 23, 30, tzinfo=timezone.utc)
        counter = _counter(date(2026, 6, 1), current=1, longest=1, p1=late, p2=late)

        assert streaks_service.recompute_streak(counter, late, UTC) is False
        assert streaks_service.recompute_streak(counter, late, ZoneInfo("Pacific/Auckland"))
        assert counter.current_streak == 2


class TestStreakDays:
    def test_streak_over_several_days(self, db_session):
        """N: both -> 1. N+1: both -> 2. N+2: only X -> 2. N+4: both -> 1."""
        paired = create_active_couple(db_session)
        x, y = paired.ids

        _submit(db_session, x, DAY_N)
        result = _submit(db_session, y, DAY_N + timedelta(minutes=5))
        assert result.streak.current_streak == 1

        _submit(db_session, x, DAY_N + timedelta(days=1))
        result = _submit(db_session, y, DAY_N + timedelta(days=1, minutes=5))
        assert result.streak.current_streak == 2

        result = _submit(db_session, x, DAY_N + timedelta(days=2))
        assert result.streak.current_streak == 2

        _submit(db_session, y, DAY_N + timedelta(days=4))
        result = _submit(db_session, x, DAY_N + timedelta(days=4, minutes=5))
        assert result.streak.current_streak == 1
        assert result.streak.longest_streak == 2
        assert result.streak.last_streak_date == (DAY_N + timedelta(days=4)).date()

    def test_counter_is_created_for_couples_without_one(self, db_session):
        paired = create_active_couple(db_session)
        db_session.delete(db_session.get(StreakCounter, paired.couple_id))
        db_session.commit()

        result = _submit(db_session, paired.partner1.id, DAY_N)

        assert result.streak.current_streak == 0
        assert db_session.get(StreakCounter, paired.couple_id) is not None


class TestSubmitStreakPhoto:
    def test_submit_sets_24h_expiry(self, db_session):
        paired = create_active_couple(db_session)

        result = _submit(db_session, paired.partner1.id, DAY_N)

        assert result.photo.expires_at == DAY_N + timedelta(hours=24)
        assert result.photo.uploaded_by == paired.partner1.id
        assert result.active_photos_count == 1

    def test_fourth_live_photo_is_rejected(self, db_session):
        paired = create_active_couple(db_session)
        x = paired.partner1.id
        for minute in range(3):
            _submit(db_session, x, DAY_N + timedelta(minutes=minute))

        with pytest.raises(ApiError) as exc:
            _submit(db_session, x, DAY_N + timedelta(minutes=3))

        assert exc.value.code == ApiErrorCode.E_ITEM_LIMIT_REACHED
        assert exc.value.status_code == 409
        assert len(db_session.scalars(select(StreakPhoto)).all()) == 3

    def test_cap_is_per_uploader(self, db_session):
        paired = create_active_couple(db_session)
        x, y = paired.ids
        for minute in range(3):
            _submit(db_session, x, DAY_N + timedelta(minutes=minute))

        result = _submit(db_session, y, DAY_N + timedelta(minutes=5))

        assert result.active_photos_count == 1

    def test_expired_photos_free_the_cap(self, db_session):
        paired = create_active_couple(db_session)
        x = paired.partner1.id
        for minute in range(3):
            _submit(db_session, x, DAY_N + timedelta(minutes=minute))

        result = _submit(db_session, x, DAY_N + timedelta(hours=25))

        assert result.active_photos_count == 1

    def test_reference_must_be_this_couples_streak_upload(self, db_session):
        paired = create_active_couple(db_session)
        other = create_active_couple(db_session)
        ctx = couple_context(db_session, paired.partner1.id)

        for ref in (
            content_ref(other.couple_id),
            content_ref(paired.couple_id, "memories"),
            "https://example.com/cat.jpg",
        ):
            with pytest.raises(ApiError) as exc:
                streaks_service.submit_streak_photo(db_session, ctx, ref, now=DAY_N)
            assert exc.value.code == ApiErrorCode.E_INVALID_CONTENT_REF


class TestViewStreakPhoto:
    def test_view_retires_photo_immediately(self, db_session, storage):
        """Y views X's oldest photo; it is gone from Y's listing and cannot be reopened."""
        paired = create_active_couple(db_session)
        x, y = paired.ids
        photos = [_submit(db_session, x, DAY_N + timedelta(minutes=m)).photo for m in range(3)]
        oldest = photos[0]
        y_ctx = couple_context(db_session, y)

        viewed = streaks_service.view_streak_photo(
            db_session, y_ctx, oldest.id, storage, now=DAY_N + timedelta(hours=1)
        )

        assert viewed.photo_id == oldest.id
        assert viewed.view_url.startswith("https://fake-storage.test/")
        assert viewed.view_window_seconds == 40

        status = streaks_service.get_streak_status(
            db_session, y_ctx, storage, now=DAY_N + timedelta(hours=1)
        )
        assert oldest.id not in {p.id for p in status.all_photos}
        assert status.partner_photos_count == 2

        with pytest.raises(ApiError) as exc:
            streaks_service.view_streak_photo(
                db_session, y_ctx, oldest.id, storage, now=DAY_N + timedelta(hours=1)
            )
        assert exc.value.code == ApiErrorCode.E_ITEM_NOT_FOUND

        row = db_session.get(StreakPhoto, oldest.id, populate_existing=True)
        assert row.is_expired is True
        assert row.viewed_by == y

    def test_view_after_ttl_is_not_found(self, db_session, storage):
        paired = create_active_couple(db_session)
        x, y = paired.ids
        photo = _submit(db_session, x, DAY_N).photo

        with pytest.raises(ApiError) as exc:
            streaks_service.view_streak_photo(
                db_session,
                couple_context(db_session, y),
                photo.id,
                storage,
                now=DAY_N + timedelta(hours=24, seconds=1),
            )

        assert exc.value.code == ApiErrorCode.E_ITEM_NOT_FOUND

    def test_cannot_view_own_photo(self, db_session, storage):
        paired = create_active_couple(db_session)
        x = paired.partner1.id
        photo = _submit(db_session, x, DAY_N).photo

        with pytest.raises(ApiError) as exc:
            streaks_service.view_streak_photo(
                db_session, couple_context(db_session, x), photo.id, storage, now=DAY_N
            )

        assert exc.value.code == ApiErrorCode.E_CANNOT_VIEW_OWN_ITEM

    def test_other_couples_photo_is_not_found(self, db_session, storage):
        paired = create_active_couple(db_session)
        other = create_active_couple(db_session)
        photo = _submit(db_session, paired.partner1.id, DAY_N).photo

        with pytest.raises(ApiError) as exc:
            streaks_service.view_streak_photo(
                db_session, couple_context(db_session, other.partner2.id), photo.id, storage,
                now=DAY_N,
            )

        assert exc.value.code == ApiErrorCode.E_ITEM_NOT_FOUND

    def test_sign_failure_leaves_photo_live(self, db_session):
        paired = create_active_couple(db_session)
        x, y = paired.ids
        photo = _submit(db_session, x, DAY_N).photo

        with pytest.raises(ApiError) as exc:
            streaks_service.view_streak_photo(
                db_session, couple_context(db_session, y), photo.id, FailingDownloadStorage(),
                now=DAY_N,
            )

        assert exc.value.code == ApiErrorCode.E_SIGN_DOWNLOAD_FAILED
        row = db_session.get(StreakPhoto, photo.id, populate_existing=True)
        assert row.is_expired is False
        assert row.viewed_at is None

    def test_viewing_frees_a_slot_for_the_uploader(self, db_session, storage):
        paired = create_active_couple(db_session)
        x, y = paired.ids
        photos = [_submit(db_session, x, DAY_N + timedelta(minutes=m)).photo for m in range(3)]
        streaks_service.view_streak_photo(
            db_session, couple_context(db_session, y), photos[1].id, storage, now=DAY_N
        )

        result = _submit(db_session, x, DAY_N + timedelta(minutes=10))

        assert result.active_photos_count == 3


class TestStreakStatus:
    def test_only_own_photos_carry_view_url(self, db_session, storage):
        paired = create_active_couple(db_session)
        x, y = paired.ids
        _submit(db_session, x, DAY_N)
        _submit(db_session, y, DAY_N + timedelta(minutes=1))

        status = streaks_service.get_streak_status(
            db_session, couple_context(db_session, x), storage, now=DAY_N + timedelta(minutes=2)
        )

        assert status.my_photos_count == 1
        assert status.partner_photos_count == 1
        assert status.my_photo.view_url is not None
        assert status.partner_photo.view_url is None
        assert [p.uploaded_by for p in status.all_photos] == [y, x]
        assert status.streak.current_streak == 1
        assert status.view_window_seconds == 40

    def test_expired_photos_are_filtered_at_read_time(self, db_session, storage):
        paired = create_active_couple(db_session)
        x = paired.partner1.id
        _submit(db_session, x, DAY_N)

        status = streaks_service.get_streak_status(
            db_session, couple_context(db_session, x), storage, now=DAY_N + timedelta(days=1)
        )

        assert status.all_photos == []
        assert status.my_photo is None


class TestPurge:
    def test_removes_dead_rows_and_objects(self, db_session, storage):
        paired = create_active_couple(db_session)
        x, y = paired.ids
        expired = _submit(db_session, x, DAY_N).photo
        viewed = _submit(db_session, y, DAY_N + timedelta(hours=20)).photo
        live = _submit(db_session, x, DAY_N + timedelta(hours=23)).photo
        streaks_service.view_streak_photo(
            db_session, couple_context(db_session, x), viewed.id, storage,
            now=DAY_N + timedelta(hours=21),
        )
        refs = {
            photo.id: photo.content_ref for photo in db_session.scalars(select(StreakPhoto)).all()
        }

        purged = streaks_service.purge_expired_streak_photos(
            db_session, storage, now=DAY_N + timedelta(hours=24, minutes=1)
        )

        assert purged == 2
        remaining = {photo.id for photo in db_session.scalars(select(StreakPhoto)).all()}
        assert remaining == {live.id}
        assert set(storage.deleted) == {refs[expired.id], refs[viewed.id]}

    def test_recently_viewed_photo_is_kept_for_grace_period(self, db_session, storage):
        paired = create_active_couple(db_session)
        x, y = paired.ids
        photo = _submit(db_session, x, DAY_N).photo
        streaks_service.view_streak_photo(
            db_session, couple_context(db_session, y), photo.id, storage, now=DAY_N
        )

        assert (
            streaks_service.purge_expired_streak_photos(
                db_session, storage, now=DAY_N + timedelta(minutes=5)
            )
            == 0
        )
        assert (
            streaks_service.purge_expired_streak_photos(
                db_session, storage, now=DAY_N + timedelta(minutes=11)
            )
            == 1
        )
