"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth, rate-limit and request-id middleware,
and routes.

Token Verification:
- All environments (local, test, staging, prod) use SupabaseJwksVerifier
- Only env values change between environments; tests inject a verifier

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. RateLimitMiddleware (per-address throttle)
3. AuthMiddleware (verifies auth, bootstraps the user, sets viewer)
4. Route handler (consent gate runs as a dependency)
"""

import json
from contextlib import asynccontextmanager
from typing import Any
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tandem.api.routes import create_api_router
from tandem.auth.middleware import AuthMiddleware, display_name_from_claims
from tandem.auth.verifier import SupabaseJwksVerifier, TokenVerifier
from tandem.config import get_settings
from tandem.db.session import get_session_factory
from tandem.errors import ApiError, ApiErrorCode
from tandem.logging import configure_logging, get_logger
from tandem.middleware.rate_limit import RateLimitMiddleware
from tandem.middleware.request_id import RequestIDMiddleware
from tandem.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from tandem.services.bootstrap import ensure_user
from tandem.services.rate_limit import RateLimiter

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_bootstrap_callback():
    """Create a bootstrap callback that creates its own database session.

    The callback is called by the auth middleware for each authenticated request.
    It creates a fresh database session, ensures the user row exists, and closes it.
    """
    session_factory = get_session_factory()

    def bootstrap(user_id: UUID, claims: dict[str, Any]) -> None:
        db = session_factory()
        try:
            ensure_user(db, user_id, display_name=display_name_from_claims(claims))
        finally:
            db.close()

    return bootstrap


def create_token_verifier() -> SupabaseJwksVerifier:
    """Create the token verifier using Supabase JWKS."""
    settings = get_settings()

    return SupabaseJwksVerifier(
        jwks_url=settings.supabase_jwks_url,  # type: ignore
        issuer=settings.normalized_issuer,  # type: ignore
        audiences=settings.audience_list,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Attach Redis to the rate limiter when configured.

    Without Redis the limiter keeps its local, per-process table.
    """
    settings = get_settings()

    redis_client = None
    if settings.redis_url:
        try:
            import redis

            redis_client = redis.Redis.from_url(
                settings.redis_url, decode_responses=True, socket_timeout=5
            )
            redis_client.ping()
            app.state.rate_limiter.attach_redis(redis_client)
            logger.info("redis_client_initialized")
        except Exception as e:
            logger.warning("redis_client_init_failed", error=str(e))
            redis_client = None

    app.state.redis_client = redis_client

    yield

    if redis_client is not None:
        redis_client.close()
        logger.info("redis_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
    rate_limiter: RateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        rate_limiter: Optional limiter; defaults to one built from settings.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Tandem API",
        description="Backend API for Tandem - pairing, mutual consent and streaks for couples",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.rate_limiter = rate_limiter or RateLimiter(
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_s,
    )

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (body, path and query)."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request"),
        )

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Reject malformed JSON bodies before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return JSONResponse(
                            status_code=400,
                            content=error_response(
                                ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body"
                            ),
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        verifier = token_verifier or create_token_verifier()

        app.add_middleware(
            AuthMiddleware,
            verifier=verifier,
            requires_internal_header=settings.requires_internal_header,
            internal_secret=settings.tandem_internal_secret,
            bootstrap_callback=create_bootstrap_callback(),
        )

        logger.info(
            "auth_middleware_enabled",
            env=settings.tandem_env.value,
            internal_header_required=settings.requires_internal_header,
        )

    # Added after auth so it runs before it
    app.add_middleware(RateLimitMiddleware)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    This ensures every response includes X-Request-ID, including auth failures.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
