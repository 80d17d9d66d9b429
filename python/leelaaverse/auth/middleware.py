"""Authentication middleware for FastAPI.

Provides:
- AuthMiddleware: Global middleware for bearer token verification
- get_viewer / get_optional_viewer: Dependencies for the viewer identity
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from leelaaverse.auth.verifier import TokenVerifier, user_id_from_claims
from leelaaverse.errors import ApiError, ApiErrorCode
from leelaaverse.logging import get_logger, set_user_id
from leelaaverse.responses import error_response

logger = get_logger(__name__)

AUTHORIZATION_HEADER = "authorization"

# Paths that never look at credentials
PUBLIC_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

# GET paths where a token is optional: a valid one attaches the viewer,
# no token means an anonymous viewer, a bad one is still rejected.
OPTIONAL_AUTH_GET_PATTERNS = (
    re.compile(r"^/api/posts/feed$"),
    re.compile(r"^/api/posts/user/[^/]+$"),
    re.compile(r"^/api/posts/(?!my-generations$)[^/]+$"),
)


@dataclass
class Viewer:
    """Authenticated viewer identity (user id from the token's sub claim)."""

    user_id: UUID


def is_optional_auth(method: str, path: str) -> bool:
    if method != "GET":
        return False
    return any(pattern.match(path) for pattern in OPTIONAL_AUTH_GET_PATTERNS)


class AuthMiddleware(BaseHTTPMiddleware):
    """Authentication middleware for FastAPI.

    Order of checks:
    1. Skip if public path
    2. Extract bearer token (missing token allowed on optional-auth paths)
    3. Verify token via TokenVerifier
    4. Call bootstrap callback to ensure the user row exists
    5. Attach Viewer to request state
    """

    def __init__(
        self,
        app: ASGIApp,
        verifier: TokenVerifier,
        bootstrap_callback: Callable[[UUID], None] | None = None,
    ):
        """Initialize the auth middleware.

        Args:
            app: The ASGI application.
            verifier: TokenVerifier implementation for JWT verification.
            bootstrap_callback: Function(user_id) called after successful auth
                to ensure the user exists.
        """
        super().__init__(app)
        self.verifier = verifier
        self.bootstrap_callback = bootstrap_callback

    async def dispatch(self, request: Request, call_next) -> JSONResponse:
        path = request.url.path
        if path in PUBLIC_PATHS:
            return await call_next(request)

        optional = is_optional_auth(request.method, path)
        auth_header = request.headers.get(AUTHORIZATION_HEADER)

        if not auth_header:
            if optional:
                request.state.viewer = None
                return await call_next(request)
            logger.warning("auth_failure", reason="missing_header", request_path=path)
            return self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED, "Authentication required", 401
            )

        token = self._extract_bearer_token(auth_header)
        if not token:
            logger.warning("auth_failure", reason="invalid_header_format", request_path=path)
            return self._error_json_response(
                ApiErrorCode.E_UNAUTHENTICATED, "Invalid authorization header format", 401
            )

        try:
            payload = self.verifier.verify(token)
            user_id = user_id_from_claims(payload)
        except ApiError as e:
            return self._error_json_response(e.code, e.message, e.status_code)

        if self.bootstrap_callback:
            try:
                self.bootstrap_callback(user_id)
            except Exception as e:
                logger.exception("bootstrap_failed", user_id=str(user_id), error=str(e))
                return self._error_json_response(
                    ApiErrorCode.E_INTERNAL, "Internal server error", 500
                )

        request.state.viewer = Viewer(user_id=user_id)
        set_user_id(str(user_id))

        return await call_next(request)

    @staticmethod
    def _extract_bearer_token(auth_header: str) -> str | None:
        """Return the token after a case-insensitive ``Bearer`` prefix, or None."""
        if not auth_header.lower().startswith("bearer "):
            return None
        return auth_header[7:].strip() or None

    def _error_json_response(
        self, code: ApiErrorCode, message: str, status_code: int
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=error_response(code, message),
        )


def get_viewer(request: Request) -> Viewer:
    """FastAPI dependency returning the authenticated viewer.

    Raises:
        ApiError: If no viewer is attached (anonymous request or middleware skipped).
    """
    viewer = getattr(request.state, "viewer", None)
    if viewer is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    return viewer


def get_optional_viewer(request: Request) -> Viewer | None:
    """FastAPI dependency returning the viewer, or None for anonymous requests."""
    return getattr(request.state, "viewer", None)
