"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
Domain services raise these directly; the exception handlers in
``tandem.responses`` turn them into the error envelope.
"""

from enum import Enum
from typing import Any


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization / relationship preconditions (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_INTERNAL_ONLY = "E_INTERNAL_ONLY"
    E_NO_ACTIVE_RELATIONSHIP = "E_NO_ACTIVE_RELATIONSHIP"
    E_RELATIONSHIP_NOT_ACTIVE = "E_RELATIONSHIP_NOT_ACTIVE"
    E_CONSENT_NOT_CONFIGURED = "E_CONSENT_NOT_CONFIGURED"
    E_CONSENT_REQUIRED = "E_CONSENT_REQUIRED"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_TARGET_NOT_FOUND = "E_TARGET_NOT_FOUND"
    E_REQUEST_NOT_FOUND = "E_REQUEST_NOT_FOUND"
    E_ITEM_NOT_FOUND = "E_ITEM_NOT_FOUND"
    E_MEMORY_NOT_FOUND = "E_MEMORY_NOT_FOUND"
    E_LOCATION_NOT_FOUND = "E_LOCATION_NOT_FOUND"
    E_MESSAGE_NOT_FOUND = "E_MESSAGE_NOT_FOUND"
    E_DATE_NOT_FOUND = "E_DATE_NOT_FOUND"

    # Conflicts (409)
    E_ALREADY_PAIRED = "E_ALREADY_PAIRED"
    E_SELF_PAIRING = "E_SELF_PAIRING"
    E_TARGET_ALREADY_PAIRED = "E_TARGET_ALREADY_PAIRED"
    E_DUPLICATE_REQUEST = "E_DUPLICATE_REQUEST"
    E_ITEM_LIMIT_REACHED = "E_ITEM_LIMIT_REACHED"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_DATE = "E_INVALID_DATE"
    E_INVALID_COORDINATES = "E_INVALID_COORDINATES"
    E_INVALID_CONTENT_REF = "E_INVALID_CONTENT_REF"
    E_INVALID_KIND = "E_INVALID_KIND"
    E_INVALID_CONTENT_TYPE = "E_INVALID_CONTENT_TYPE"
    E_CANNOT_VIEW_OWN_ITEM = "E_CANNOT_VIEW_OWN_ITEM"
    E_NAME_INVALID = "E_NAME_INVALID"

    # Throttling (429)
    E_RATE_LIMITED = "E_RATE_LIMITED"

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500
    E_SIGN_UPLOAD_FAILED = "E_SIGN_UPLOAD_FAILED"  # 500
    E_SIGN_DOWNLOAD_FAILED = "E_SIGN_DOWNLOAD_FAILED"  # 500
    E_STORAGE_ERROR = "E_STORAGE_ERROR"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_INTERNAL_ONLY: 403,
    ApiErrorCode.E_NO_ACTIVE_RELATIONSHIP: 403,
    ApiErrorCode.E_RELATIONSHIP_NOT_ACTIVE: 403,
    ApiErrorCode.E_CONSENT_NOT_CONFIGURED: 403,
    ApiErrorCode.E_CONSENT_REQUIRED: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_TARGET_NOT_FOUND: 404,
    ApiErrorCode.E_REQUEST_NOT_FOUND: 404,
    ApiErrorCode.E_ITEM_NOT_FOUND: 404,
    ApiErrorCode.E_MEMORY_NOT_FOUND: 404,
    ApiErrorCode.E_LOCATION_NOT_FOUND: 404,
    ApiErrorCode.E_MESSAGE_NOT_FOUND: 404,
    ApiErrorCode.E_DATE_NOT_FOUND: 404,
    ApiErrorCode.E_ALREADY_PAIRED: 409,
    ApiErrorCode.E_SELF_PAIRING: 409,
    ApiErrorCode.E_TARGET_ALREADY_PAIRED: 409,
    ApiErrorCode.E_DUPLICATE_REQUEST: 409,
    ApiErrorCode.E_ITEM_LIMIT_REACHED: 409,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_DATE: 400,
    ApiErrorCode.E_INVALID_COORDINATES: 400,
    ApiErrorCode.E_INVALID_CONTENT_REF: 400,
    ApiErrorCode.E_INVALID_KIND: 400,
    ApiErrorCode.E_INVALID_CONTENT_TYPE: 400,
    ApiErrorCode.E_CANNOT_VIEW_OWN_ITEM: 400,
    ApiErrorCode.E_NAME_INVALID: 400,
    ApiErrorCode.E_RATE_LIMITED: 429,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_SIGN_UPLOAD_FAILED: 500,
    ApiErrorCode.E_SIGN_DOWNLOAD_FAILED: 500,
    ApiErrorCode.E_STORAGE_ERROR: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
        details: Optional machine-readable context (e.g. the missing consent toggle)
    """

    def __init__(self, code: ApiErrorCode, message: str, details: dict[str, Any] | None = None):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class ConflictError(ApiError):
    """Uniqueness or exclusivity violation (pairing, item caps)."""

    def __init__(self, code: ApiErrorCode, message: str):
        super().__init__(code, message)


class ConsentRequiredError(ApiError):
    """A consent-gated feature is not active for the couple.

    The missing toggle is named in both the message and ``details`` so the
    client can prompt for exactly that consent.
    """

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(
            ApiErrorCode.E_CONSENT_REQUIRED,
            f"Both partners must enable {feature} to use this feature",
            details={"consent_required": feature},
        )


class RateLimitedError(ApiError):
    """Client address exceeded the request budget for the current window."""

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            ApiErrorCode.E_RATE_LIMITED,
            "Too many requests, please try again later",
            details={"retry_after": retry_after},
        )
