"""Per-address rate limiting middleware.

Runs after request-id (so throttled responses still carry X-Request-ID) and
before auth (so unauthenticated floods are throttled too). The limiter is
read from ``app.state.rate_limiter`` on each request.
"""

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from tandem.auth.middleware import PUBLIC_PATHS
from tandem.errors import RateLimitedError
from tandem.logging import get_logger
from tandem.responses import api_error_json

logger = get_logger(__name__)


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        limiter = getattr(request.app.state, "rate_limiter", None)
        if limiter is None or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        # Redis calls are blocking
        retry_after = await run_in_threadpool(limiter.hit, client_address(request))
        if retry_after is not None:
            logger.warning("rate_limit.blocked", backend=limiter.backend, retry_after=retry_after)
            return api_error_json(RateLimitedError(retry_after))

        return await call_next(request)
