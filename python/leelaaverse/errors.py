"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum
from typing import Any


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_GENERATION_NOT_FOUND = "E_GENERATION_NOT_FOUND"
    E_POST_NOT_FOUND = "E_POST_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_PROMPT_REQUIRED = "E_PROMPT_REQUIRED"
    E_GENERATION_NOT_COMPLETED = "E_GENERATION_NOT_COMPLETED"
    E_MEDIA_REQUIRED = "E_MEDIA_REQUIRED"
    E_CAPTION_REQUIRED = "E_CAPTION_REQUIRED"

    # Conflicts (409)
    E_GENERATION_STATE_CONFLICT = "E_GENERATION_STATE_CONFLICT"
    E_GENERATION_ALREADY_POSTED = "E_GENERATION_ALREADY_POSTED"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500
    E_PROVIDER_ERROR = "E_PROVIDER_ERROR"  # 500
    E_UPLOAD_FAILED = "E_UPLOAD_FAILED"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_GENERATION_NOT_FOUND: 404,
    ApiErrorCode.E_POST_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_PROMPT_REQUIRED: 400,
    ApiErrorCode.E_GENERATION_NOT_COMPLETED: 400,
    ApiErrorCode.E_MEDIA_REQUIRED: 400,
    ApiErrorCode.E_CAPTION_REQUIRED: 400,
    ApiErrorCode.E_GENERATION_STATE_CONFLICT: 409,
    ApiErrorCode.E_GENERATION_ALREADY_POSTED: 409,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_PROVIDER_ERROR: 500,
    ApiErrorCode.E_UPLOAD_FAILED: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        details: Optional diagnostic payload (e.g. a provider's raw error body)
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str, details: Any = None):
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
    """Request conflicts with the current state of a resource."""

    def __init__(
        self,
        code: ApiErrorCode = ApiErrorCode.E_GENERATION_STATE_CONFLICT,
        message: str = "Conflict",
    ):
        super().__init__(code, message)
