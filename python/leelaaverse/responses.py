"""API response envelope helpers and exception handlers.

All API responses use a flat envelope:
- Success: { "success": true, ...fields }
- Error: { "success": false, "code": "E_...", "message": "...", "error": ..., "request_id": "..." }

``error`` is present only when the failure carries diagnostic details, such as the raw
body returned by the image generation provider.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from leelaaverse.errors import ApiError, ApiErrorCode
from leelaaverse.logging import get_logger, get_request_id

logger = get_logger(__name__)


def success_response(**fields: Any) -> dict[str, Any]:
    """Create a success response envelope.

    Args:
        **fields: Top-level response fields placed next to ``success``.

    Returns:
        Dict with ``success: True`` merged with the given fields.
    """
    return {"success": True, **fields}


def error_response(
    code: ApiErrorCode,
    message: str,
    details: Any = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        details: Optional diagnostic payload exposed under ``error``.
        request_id: Optional request ID for correlation (auto-populated from context if None).
    """
    if request_id is None:
        request_id = get_request_id()

    body: dict[str, Any] = {"success": False, "code": code.value, "message": message}
    if details is not None:
        body["error"] = details
    if request_id:
        body["request_id"] = request_id

    return body


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.details),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle FastAPI HTTPException and return proper JSON response."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        403: ApiErrorCode.E_FORBIDDEN,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_INVALID_REQUEST,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error=str(exc))

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
