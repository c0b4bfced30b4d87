"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth, internal-header and throttle failures
- Request ID in error response body
"""

from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from tandem.app import add_request_id_middleware, create_app
from tandem.config import clear_settings_cache
from tandem.middleware.request_id import is_valid_request_id, normalize_request_id
from tandem.services.rate_limit import RateLimiter
from tests.helpers import auth_headers, create_test_user_id
from tests.support.mock_verifier import MockJwtVerifier


class TestRequestIdMiddleware:
    def test_request_id_generated_when_missing(self, client: TestClient):
        response = client.get("/me", headers=auth_headers(create_test_user_id()))

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])

    def test_request_id_preserved_when_valid(self, client: TestClient):
        response = client.get(
            "/me",
            headers={**auth_headers(create_test_user_id()), "X-Request-ID": "abc_def-123"},
        )

        assert response.headers["X-Request-ID"] == "abc_def-123"

    def test_request_id_uuid_normalized_to_lowercase(self, client: TestClient):
        response = client.get(
            "/me",
            headers={
                **auth_headers(create_test_user_id()),
                "X-Request-ID": "550E8400-E29B-41D4-A716-446655440000",
            },
        )

        assert response.headers["X-Request-ID"] == "550e8400-e29b-41d4-a716-446655440000"

    @pytest.mark.parametrize("bad_id", ["bad id with spaces", "a" * 200])
    def test_request_id_replaced_when_invalid(self, client: TestClient, bad_id):
        response = client.get(
            "/me", headers={**auth_headers(create_test_user_id()), "X-Request-ID": bad_id}
        )

        assert response.status_code == 200
        assert response.headers["X-Request-ID"] != bad_id
        UUID(response.headers["X-Request-ID"])

    def test_request_id_present_on_auth_failure(self, client: TestClient):
        response = client.get("/me")

        assert response.status_code == 401
        assert "X-Request-ID" in response.headers

    def test_error_response_includes_request_id_in_body(self, client: TestClient):
        response = client.post(
            f"/couples/requests/{uuid4()}/accept", headers=auth_headers(create_test_user_id())
        )

        assert response.status_code == 404
        body = response.json()
        assert body["error"]["request_id"] == response.headers["X-Request-ID"]

    def test_request_id_present_on_internal_header_failure(self, session_factory, monkeypatch):
        monkeypatch.setenv("TANDEM_ENV", "staging")
        monkeypatch.setenv("TANDEM_INTERNAL_SECRET", "test-secret")
        clear_settings_cache()
        monkeypatch.setattr("tandem.app.get_session_factory", lambda: session_factory)
        app = create_app(token_verifier=MockJwtVerifier())
        add_request_id_middleware(app, log_requests=False)

        with TestClient(app) as client:
            response = client.get("/me", headers=auth_headers(create_test_user_id()))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "E_INTERNAL_ONLY"
        assert "X-Request-ID" in response.headers

    def test_request_id_present_when_throttled(self, client: TestClient, app):
        app.state.rate_limiter = RateLimiter(max_requests=1, window_seconds=60)
        headers = auth_headers(create_test_user_id())

        client.get("/me", headers=headers)
        response = client.get("/me", headers=headers)

        assert response.status_code == 429
        assert response.json()["error"]["request_id"] == response.headers["X-Request-ID"]


class TestRequestIdValidation:
    @pytest.mark.parametrize(
        "value",
        ["request.id.with.dots", "request_id_with_underscores", "request-id", "a" * 128],
    )
    def test_valid_ids(self, value):
        assert is_valid_request_id(value)
        assert normalize_request_id(value) == value

    @pytest.mark.parametrize("value", ["", "a" * 129, "semi;colon", "ünïcode"])
    def test_invalid_ids(self, value):
        assert not is_valid_request_id(value)
