"""Pytest configuration and fixtures for Tandem tests.

Test isolation strategy:
- Every test gets its own in-memory SQLite database built from the models
- The API under test shares that database through dependency overrides
- Tokens are minted with a local keypair and checked by MockJwtVerifier
- Content hosting is replaced by FakeStorageClient
"""

import os
import sys
from collections.abc import Generator
from pathlib import Path

# Settings are read lazily, but must be valid before anything asks for them
os.environ.setdefault("TANDEM_ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWKS_URL", "http://localhost:54321/auth/v1/.well-known/jwks.json")
os.environ.setdefault("SUPABASE_ISSUER", "test-issuer")
os.environ.setdefault("SUPABASE_AUDIENCES", "test-audience")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from tandem.api.deps import get_storage
from tandem.app import add_request_id_middleware, create_app
from tandem.config import clear_settings_cache
from tandem.db.engine import create_db_engine
from tandem.db.models import Base
from tandem.db.session import create_session_factory, get_db
from tandem.services.rate_limit import RateLimiter
from tandem.storage.client import FakeStorageClient
from tests.helpers import create_test_user_id
from tests.support.mock_verifier import MockJwtVerifier


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """A private database with the full schema.

    In-memory SQLite unless TANDEM_TEST_DATABASE_URL points at a scratch
    PostgreSQL database, which is emptied again after each test.
    """
    engine = create_db_engine(os.environ.get("TANDEM_TEST_DATABASE_URL", "sqlite://"))
    Base.metadata.create_all(engine)
    yield engine
    if engine.dialect.name != "sqlite":
        Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a database session for service-level tests."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def rate_limiter() -> RateLimiter:
    """Generous limiter so ordinary tests never trip it."""
    return RateLimiter(max_requests=10_000, window_seconds=900)


@pytest.fixture
def app(session_factory, storage, rate_limiter, monkeypatch):
    """The full application wired to the test database, verifier and storage.

    Middleware order matches production: request-id, rate limit, auth.
    """
    # User bootstrap in the auth middleware opens its own sessions
    monkeypatch.setattr("tandem.app.get_session_factory", lambda: session_factory)

    app = create_app(token_verifier=MockJwtVerifier(), rate_limiter=rate_limiter)
    add_request_id_middleware(app, log_requests=False)

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    return app


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Provide a FastAPI test client. Use auth_headers() for authenticated calls."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def test_user_id():
    """Generate a random UUID for a test user."""
    return create_test_user_id()
