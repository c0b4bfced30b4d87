"""End-to-end HTTP tests for the couple lifecycle.

Each test drives the API the way a client would: bootstrap two users,
pair them, toggle consent, use the gated features and finally break up.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from tandem.db.models import AnonymousReview
from tests.helpers import auth_headers, create_test_user_id, data, error_code


class Person:
    def __init__(self, client: TestClient, name: str):
        self.client = client
        self.id = create_test_user_id()
        self.headers = auth_headers(self.id, user_metadata={"name": name})
        self.pairing_code = data(client.get("/me", headers=self.headers))["pairing_code"]

    def get(self, path: str, **kwargs):
        return self.client.get(path, headers=self.headers, **kwargs)

    def post(self, path: str, **kwargs):
        return self.client.post(path, headers=self.headers, **kwargs)

    def put(self, path: str, **kwargs):
        return self.client.put(path, headers=self.headers, **kwargs)

    def patch(self, path: str, **kwargs):
        return self.client.patch(path, headers=self.headers, **kwargs)

    def delete(self, path: str, **kwargs):
        return self.client.delete(path, headers=self.headers, **kwargs)


@pytest.fixture
def alice(client) -> Person:
    return Person(client, "Alice")


@pytest.fixture
def bob(client) -> Person:
    return Person(client, "Bob")


@pytest.fixture
def couple_id(alice: Person, bob: Person) -> str:
    response = alice.post("/couples/requests", json={"pairing_code": bob.pairing_code.lower()})
    assert response.status_code == 201, response.text
    request_id = data(response)["id"]
    assert data(bob.post(f"/couples/requests/{request_id}/accept"))["status"] == "active"
    return request_id


def _enable(person: Person, **toggles):
    return data(person.patch("/consent", json=toggles))


class TestPairingFlow:
    def test_request_is_listed_for_both_sides(self, alice, bob):
        couple = data(alice.post("/couples/requests", json={"pairing_code": bob.pairing_code}))

        outgoing = data(alice.get("/couples/requests"))["outgoing"]
        incoming = data(bob.get("/couples/requests"))["incoming"]

        assert couple["status"] == "pending"
        assert couple["request"]["status"] == "pending"
        assert [r["couple_id"] for r in outgoing] == [couple["id"]]
        assert incoming[0]["counterpart"]["display_name"] == "Alice"

    def test_unknown_code_and_self_pairing(self, alice):
        response = alice.post("/couples/requests", json={"pairing_code": "NOPE1234"})
        assert response.status_code == 404
        assert error_code(response) == "E_TARGET_NOT_FOUND"

        response = alice.post("/couples/requests", json={"pairing_code": alice.pairing_code})
        assert response.status_code == 409
        assert error_code(response) == "E_SELF_PAIRING"

    def test_accept_makes_both_paired(self, alice, bob, couple_id):
        info = data(alice.get("/couples/me"))

        assert info["couple_id"] == couple_id
        assert info["partner"]["id"] == str(bob.id)
        assert info["start_date_set"] is False
        assert data(bob.get("/me"))["relationship_status"] == "paired"

    def test_requester_cannot_accept_own_request(self, alice, bob):
        couple = data(alice.post("/couples/requests", json={"pairing_code": bob.pairing_code}))

        response = alice.post(f"/couples/requests/{couple['id']}/accept")

        assert response.status_code == 404
        assert error_code(response) == "E_REQUEST_NOT_FOUND"

    def test_reject_and_cancel(self, client, alice, bob):
        carol = Person(client, "Carol")
        first = data(alice.post("/couples/requests", json={"pairing_code": bob.pairing_code}))
        assert data(bob.post(f"/couples/requests/{first['id']}/reject"))["request"]["status"] == (
            "rejected"
        )

        second = data(alice.post("/couples/requests", json={"pairing_code": carol.pairing_code}))
        cancelled = data(alice.post(f"/couples/requests/{second['id']}/cancel"))

        assert cancelled["status"] == "dissolved"
        assert cancelled["request"]["status"] == "cancelled"
        assert data(carol.get("/couples/requests"))["incoming"] == []

    def test_third_party_blocked_while_paired(self, client, alice, bob, couple_id):
        carol = Person(client, "Carol")

        response = carol.post("/couples/requests", json={"pairing_code": alice.pairing_code})

        assert response.status_code == 409
        assert error_code(response) == "E_TARGET_ALREADY_PAIRED"

    def test_start_date_and_certificate(self, alice, bob, couple_id):
        info = data(alice.put("/couples/me/start-date", json={"start_date": "2024-02-14"}))
        certificate = data(bob.get("/couples/me/certificate"))

        assert info["start_date_set"] is True
        assert info["relationship_start_date"].startswith("2024-02-14")
        assert {p["id"] for p in certificate["partners"]} == {str(alice.id), str(bob.id)}

    def test_future_start_date_rejected(self, alice, couple_id):
        response = alice.put("/couples/me/start-date", json={"start_date": "2999-01-01"})

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_DATE"


class TestConsentFlow:
    def test_feature_needs_both_partners(self, alice, bob, couple_id):
        mine = _enable(alice, locationSharing=True)
        assert mine["active_features"] == []
        assert mine["changed"] == ["locationSharing"]

        response = alice.put("/location", json={"latitude": 1.0, "longitude": 2.0})
        assert response.status_code == 403
        assert response.json()["error"]["details"] == {"consent_required": "locationSharing"}

        assert _enable(bob, locationSharing=True)["active_features"] == ["locationSharing"]
        assert alice.put("/location", json={"latitude": 1.0, "longitude": 2.0}).status_code == 200

    def test_status_and_history(self, alice, bob, couple_id):
        _enable(alice, photoSharing=True, memoryAccess=False)

        status = data(bob.get("/consent"))
        history = data(alice.get("/consent/history", params={"limit": 5}))

        assert status["partner_consent"]["photoSharing"] is True
        assert status["features"]["photoSharing"] == {"me": False, "partner": True, "active": False}
        assert [h["consent_type"] for h in history] == ["photoSharing"]

    def test_unknown_toggle_rejected(self, alice, couple_id):
        response = alice.patch("/consent", json={"cameraAccess": True})

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_REQUEST"

    def test_single_user_has_no_consent(self, alice):
        response = alice.get("/consent")

        assert response.status_code == 403
        assert error_code(response) == "E_NO_ACTIVE_RELATIONSHIP"


class TestStreakFlow:
    def test_upload_submit_view_once(self, alice, bob, couple_id):
        upload = data(alice.post("/streaks/uploads", json={"content_type": "image/jpeg"}))
        assert f"couples/{couple_id}/streaks/" in upload["path"]

        submitted = alice.post("/streaks/photos", json={"content_ref": upload["path"]})
        assert submitted.status_code == 201
        photo_id = data(submitted)["photo"]["id"]

        status = data(bob.get("/streaks"))
        assert status["partner_photo"]["id"] == photo_id
        assert status["partner_photo"]["view_url"] is None

        viewed = data(bob.post(f"/streaks/photos/{photo_id}/view"))
        assert viewed["view_url"].startswith("https://fake-storage.test/download/")
        assert viewed["view_window_seconds"] == 40

        again = bob.post(f"/streaks/photos/{photo_id}/view")
        assert again.status_code == 404
        assert error_code(again) == "E_ITEM_NOT_FOUND"

    def test_own_photo_cannot_be_viewed(self, alice, couple_id):
        upload = data(alice.post("/streaks/uploads", json={"content_type": "image/png"}))
        photo_id = data(alice.post("/streaks/photos", json={"content_ref": upload["path"]}))[
            "photo"
        ]["id"]

        response = alice.post(f"/streaks/photos/{photo_id}/view")

        assert response.status_code == 400
        assert error_code(response) == "E_CANNOT_VIEW_OWN_ITEM"

    def test_foreign_content_ref_rejected(self, alice, couple_id):
        response = alice.post(
            "/streaks/photos",
            json={"content_ref": f"couples/{uuid4()}/streaks/{uuid4()}.jpg"},
        )

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_CONTENT_REF"

    def test_unsupported_image_type(self, alice, couple_id):
        response = alice.post("/streaks/uploads", json={"content_type": "image/gif"})

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_CONTENT_TYPE"

    def test_streaks_need_a_partner(self, alice):
        response = alice.get("/streaks")

        assert response.status_code == 403
        assert error_code(response) == "E_NO_ACTIVE_RELATIONSHIP"


class TestMemoryFlow:
    def test_memory_lifecycle(self, alice, bob, storage, couple_id):
        for person in (alice, bob):
            _enable(person, photoSharing=True, memoryAccess=True)

        upload = data(alice.post("/memories/uploads", json={"content_type": "image/webp"}))
        created = alice.post(
            "/memories", json={"content_ref": upload["path"], "caption": "first trip"}
        )
        assert created.status_code == 201
        memory_id = data(created)["id"]

        page = data(bob.get("/memories", params={"page": 1, "limit": 10}))
        assert page["total"] == 1
        assert page["memories"][0]["caption"] == "first trip"
        assert data(bob.get(f"/memories/{memory_id}"))["view_url"]

        deleted = bob.delete(f"/memories/{memory_id}")
        assert deleted.status_code == 204
        assert storage.deleted == [upload["path"]]

        missing = alice.get(f"/memories/{memory_id}")
        assert missing.status_code == 404
        assert error_code(missing) == "E_MEMORY_NOT_FOUND"

    def test_listing_needs_memory_access(self, alice, bob, couple_id):
        for person in (alice, bob):
            _enable(person, photoSharing=True)

        response = alice.get("/memories")

        assert response.status_code == 403
        assert response.json()["error"]["details"] == {"consent_required": "memoryAccess"}

    def test_bad_pagination_rejected(self, alice, bob, couple_id):
        for person in (alice, bob):
            _enable(person, memoryAccess=True)

        assert alice.get("/memories", params={"page": 0}).status_code == 400


class TestLocationFlow:
    def test_share_read_stop(self, alice, bob, couple_id):
        for person in (alice, bob):
            _enable(person, locationSharing=True)

        alice.put("/location", json={"latitude": 51.5, "longitude": -0.12, "accuracy": 5})
        seen = data(bob.get("/location/partner"))
        assert (seen["latitude"], seen["longitude"]) == (51.5, -0.12)
        assert data(alice.get("/location/status"))["is_sharing"] is True

        assert data(alice.delete("/location"))["is_sharing"] is False
        response = bob.get("/location/partner")
        assert response.status_code == 404
        assert error_code(response) == "E_LOCATION_NOT_FOUND"

    def test_out_of_range_coordinates(self, alice, bob, couple_id):
        for person in (alice, bob):
            _enable(person, locationSharing=True)

        response = alice.put("/location", json={"latitude": 91, "longitude": 0})

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_COORDINATES"


class TestCompanionFlow:
    def test_chat(self, alice, bob, couple_id):
        sent = data(alice.post("/chat/messages", json={"body": " hello "}))
        assert sent["body"] == "hello"
        assert data(bob.get("/chat/unread"))["unread_count"] == 1

        page = data(bob.get("/chat/messages"))
        assert [m["body"] for m in page["messages"]] == ["hello"]
        assert page["unread_count"] == 1
        assert data(bob.post("/chat/read"))["marked"] == 1

        assert bob.delete(f"/chat/messages/{sent['id']}").status_code == 204
        assert data(bob.get("/chat/messages"))["total"] == 0
        assert data(alice.get("/chat/messages"))["total"] == 1

        response = alice.post("/chat/messages", json={"body": "x" * 5001})
        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_REQUEST"

    def test_moods(self, alice, bob, couple_id):
        assert data(bob.get("/moods/partner"))["mood"] is None

        created = alice.post("/moods", json={"mood": "excited", "note": "promotion!"})
        assert created.status_code == 201

        partner = data(bob.get("/moods/partner"))["mood"]
        assert (partner["mood"], partner["emoji"], partner["note"]) == (
            "excited",
            "🤩",
            "promotion!",
        )
        assert data(alice.get("/moods/history"))["total"] == 1
        assert len(data(alice.get("/moods/types"))) == 10

        response = alice.post("/moods", json={"mood": "hangry"})
        assert response.status_code == 400

    def test_mood_types_need_only_a_login(self, alice):
        assert data(alice.get("/moods/types"))[0]["value"] == "happy"

    def test_buzz_and_voice(self, alice, bob, couple_id):
        assert alice.post("/walkie/buzzes", json={"kind": "long"}).status_code == 201
        assert alice.post("/walkie/buzzes").status_code == 201
        status = data(bob.get("/walkie/status"))
        assert (status["pending_buzzes"], status["has_notifications"]) == (2, True)

        collected = data(bob.post("/walkie/buzzes/collect"))
        assert collected["count"] == 2
        assert data(bob.post("/walkie/buzzes/collect"))["count"] == 0

        upload = data(alice.post("/walkie/voice/uploads", json={"content_type": "audio/mp4"}))
        assert "/voice/" in upload["path"] and upload["path"].endswith(".m4a")
        sent = alice.post(
            "/walkie/voice", json={"content_ref": upload["path"], "duration_s": 12.5}
        )
        assert sent.status_code == 201
        message_id = data(sent)["id"]

        pending = data(bob.get("/walkie/voice"))["messages"]
        assert [m["id"] for m in pending] == [message_id]
        assert pending[0]["listen_url"]

        response = alice.post(f"/walkie/voice/{message_id}/listened")
        assert response.status_code == 403
        assert error_code(response) == "E_FORBIDDEN"
        assert data(bob.post(f"/walkie/voice/{message_id}/listened"))["listened_at"]
        assert data(bob.get("/walkie/status"))["has_notifications"] is False

    def test_voice_rejects_images_and_long_notes(self, alice, couple_id):
        response = alice.post("/walkie/voice/uploads", json={"content_type": "image/jpeg"})
        assert error_code(response) == "E_INVALID_CONTENT_TYPE"

        upload = data(alice.post("/walkie/voice/uploads", json={"content_type": "audio/mpeg"}))
        response = alice.post(
            "/walkie/voice", json={"content_ref": upload["path"], "duration_s": 61}
        )
        assert response.status_code == 400

    def test_calendar(self, alice, bob, couple_id):
        created = alice.post(
            "/calendar/dates",
            json={"title": "Anniversary", "date": "2025-02-14", "is_recurring": True},
        )
        assert created.status_code == 201
        date_id = data(created)["id"]

        calendar = data(bob.get("/calendar/dates"))
        assert [d["title"] for d in calendar["dates"]] == ["Anniversary"]
        assert calendar["dates"][0]["emoji"] == "❤️"

        assert bob.delete(f"/calendar/dates/{date_id}").status_code == 204
        response = alice.delete(f"/calendar/dates/{date_id}")
        assert response.status_code == 404
        assert error_code(response) == "E_DATE_NOT_FOUND"

    @pytest.mark.parametrize(
        "method,path",
        [
            ("get", "/chat/messages"),
            ("get", "/moods/partner"),
            ("post", "/walkie/buzzes"),
            ("get", "/calendar/dates"),
        ],
    )
    def test_single_user_is_turned_away(self, alice, method, path):
        response = getattr(alice, method)(path)

        assert response.status_code == 403
        assert error_code(response) == "E_NO_ACTIVE_RELATIONSHIP"


class TestDissolveFlow:
    def test_breakup_revokes_everything(self, alice, bob, couple_id):
        for person in (alice, bob):
            _enable(person, photoSharing=True, memoryAccess=True, locationSharing=True)

        result = data(
            alice.post("/couples/me/dissolve", json={"anonymous_note": "it was nice"})
        )

        assert result["couple_id"] == couple_id
        assert result["history_entry"]["initiated_breakup"] is True
        for person in (alice, bob):
            for path in (
                "/streaks",
                "/memories",
                "/location/partner",
                "/consent",
                "/chat/messages",
                "/walkie/status",
            ):
                response = person.get(path)
                assert response.status_code == 403
                assert error_code(response) == "E_NO_ACTIVE_RELATIONSHIP"

        profile = data(bob.get("/me"))
        assert profile["relationship_status"] == "single"
        assert profile["past_relationship_exists"] is True
        assert profile["relationship_history"][0]["initiated_breakup"] is False
        assert profile["relationship_history"][0]["partner_name"] == "Alice"

    def test_long_note_is_truncated_not_rejected(self, session_factory, alice, bob, couple_id):
        response = alice.post("/couples/me/dissolve", json={"anonymous_note": "y" * 2500})

        assert response.status_code == 200
        with session_factory() as db:
            assert db.scalar(select(AnonymousReview.review_text)) == "y" * 300

    def test_dissolve_without_body(self, alice, bob, couple_id):
        assert bob.post("/couples/me/dissolve").status_code == 200

        response = alice.post("/couples/me/dissolve")

        assert response.status_code == 403
        assert error_code(response) == "E_NO_ACTIVE_RELATIONSHIP"

    def test_can_pair_again_after_breakup(self, client, alice, bob, couple_id):
        alice.post("/couples/me/dissolve")
        carol = Person(client, "Carol")

        couple = data(alice.post("/couples/requests", json={"pairing_code": carol.pairing_code}))
        data(carol.post(f"/couples/requests/{couple['id']}/accept"))

        assert data(alice.get("/couples/me"))["partner"]["id"] == str(carol.id)
        assert data(alice.get("/consent"))["active_features"] == []


class TestRequestValidation:
    def test_missing_field(self, alice):
        response = alice.post("/couples/requests", json={})

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_REQUEST"

    def test_malformed_json(self, alice):
        response = alice.client.post(
            "/couples/requests",
            content="{not json",
            headers={**alice.headers, "content-type": "application/json"},
        )

        assert response.status_code == 400
        assert error_code(response) == "E_INVALID_REQUEST"

    def test_bad_path_uuid(self, alice):
        response = alice.post("/couples/requests/not-a-uuid/accept")

        assert response.status_code == 400
