"""Middleware modules for Tandem API."""

from tandem.middleware.rate_limit import RateLimitMiddleware
from tandem.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

__all__ = ["RateLimitMiddleware", "RequestIDMiddleware", "REQUEST_ID_HEADER"]
