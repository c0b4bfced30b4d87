"""Bearer-token authentication for the HTTP surface.

The middleware only establishes identity. Whether the viewer may touch couple
content is decided later by the gate in ``tandem.auth.gate``.
"""

import hmac
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from tandem.auth.verifier import TokenVerifier
from tandem.errors import ApiError, ApiErrorCode
from tandem.logging import get_logger, user_id_var
from tandem.responses import api_error_json

logger = get_logger(__name__)

# Header names
AUTHORIZATION_HEADER = "authorization"
INTERNAL_HEADER = "x-tandem-internal"

# Paths that don't require authentication
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

# Bootstrap callback: (user_id, verified claims) -> None
BootstrapCallback = Callable[[UUID, dict[str, Any]], None]


@dataclass
class Viewer:
    """Authenticated viewer identity.

    Attributes:
        user_id: The viewer's user ID (from JWT sub claim).
    """

    user_id: UUID


def display_name_from_claims(claims: dict[str, Any]) -> str | None:
    """Pull a display name out of Supabase ``user_metadata`` if present."""
    metadata = claims.get("user_metadata")
    if not isinstance(metadata, dict):
        return None
    name = metadata.get("name") or metadata.get("full_name")
    if not isinstance(name, str) or not name.strip():
        return None
    return name.strip()[:100]


class AuthMiddleware(BaseHTTPMiddleware):
    """Turns a bearer token into a ``Viewer`` on ``request.state``.

    Public paths pass straight through. Everything else must carry the
    internal secret header when the deployment requires it, then a token the
    verifier accepts. The bootstrap callback runs before the route so every
    authenticated viewer has a user row and a pairing code.
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        requires_internal_header: bool = False,
        internal_secret: str | None = None,
        bootstrap_callback: BootstrapCallback | None = None,
    ):
        super().__init__(app)
        self.verifier = verifier
        self.requires_internal_header = requires_internal_header
        self.internal_secret = internal_secret
        self.bootstrap_callback = bootstrap_callback

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        try:
            if self.requires_internal_header:
                self._check_internal_header(request)
            claims = self.verifier.verify(self._bearer_token(request))
        except ApiError as e:
            return api_error_json(e)

        user_id = UUID(claims["sub"])

        if self.bootstrap_callback:
            try:
                self.bootstrap_callback(user_id, claims)
            except Exception:
                logger.exception("auth.bootstrap_failed", user_id=str(user_id))
                return api_error_json(ApiError(ApiErrorCode.E_INTERNAL, "Internal server error"))

        request.state.viewer = Viewer(user_id=user_id)
        user_id_var.set(str(user_id))

        return await call_next(request)

    def _check_internal_header(self, request: Request) -> None:
        """Compare the internal header to the shared secret in constant time.

        Raises:
            ApiError(E_INTERNAL_ONLY): Header missing or wrong.
            ApiError(E_INTERNAL): No secret configured on this side.
        """
        header_value = request.headers.get(INTERNAL_HEADER)
        if header_value is None:
            logger.warning("auth_failure", reason="internal_header_missing")
            raise ApiError(ApiErrorCode.E_INTERNAL_ONLY, "Internal API access required")

        if not self.internal_secret:
            # Settings refuse to load without it in staging/prod
            logger.error("auth.internal_secret_missing")
            raise ApiError(ApiErrorCode.E_INTERNAL, "Internal server error")

        if not hmac.compare_digest(header_value.encode(), self.internal_secret.encode()):
            logger.warning("auth_failure", reason="internal_header_mismatch")
            raise ApiError(ApiErrorCode.E_INTERNAL_ONLY, "Internal API access required")

    def _bearer_token(self, request: Request) -> str:
        """
        Raises:
            ApiError(E_UNAUTHENTICATED): Header missing, not ``Bearer``, or empty.
        """
        auth_header = request.headers.get(AUTHORIZATION_HEADER)
        if not auth_header:
            logger.warning("auth_failure", reason="missing_header")
            raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")

        scheme, _, token = auth_header.partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            logger.warning("auth_failure", reason="invalid_header_format")
            raise ApiError(
                ApiErrorCode.E_UNAUTHENTICATED, "Invalid authorization header format"
            )
        return token


def get_optional_viewer(request: Request) -> Viewer | None:
    """FastAPI dependency returning the viewer, or None if the request is anonymous."""
    return getattr(request.state, "viewer", None)


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency to get the authenticated viewer.

    Raises:
        ApiError: If viewer is not set (middleware didn't run or path is public).
    """
    viewer = get_optional_viewer(request)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer

