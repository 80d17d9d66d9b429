"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Actual execution order per request:
1. RequestIDMiddleware (sets request_id, starts timer)
2. CORSMiddleware (when CORS_ORIGINS is set)
3. AuthMiddleware (verifies auth, sets viewer)
4. Route handler

Client Lifecycle:
- httpx.AsyncClient is created at startup, stored in app.state
- FalQueueClient wraps the shared client for connection pooling
- Client is closed at shutdown
"""

import json
from contextlib import asynccontextmanager
from uuid import UUID

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from leelaaverse.api.routes import create_api_router
from leelaaverse.auth.middleware import AuthMiddleware
from leelaaverse.auth.verifier import JwtSecretVerifier, TokenVerifier
from leelaaverse.config import get_settings
from leelaaverse.db.session import get_session_factory
from leelaaverse.errors import ApiError, ApiErrorCode
from leelaaverse.logging import configure_logging, get_logger
from leelaaverse.middleware.request_id import RequestIDMiddleware
from leelaaverse.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from leelaaverse.services.bootstrap import ensure_user
from leelaaverse.services.generation import FalQueueClient
from leelaaverse.storage.client import StorageClientBase, get_storage_client

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


def create_bootstrap_callback(session_factory=None):
    """Create a bootstrap callback that opens its own database session per call."""
    factory = session_factory or get_session_factory()

    def bootstrap(user_id: UUID) -> None:
        db = factory()
        try:
            ensure_user(db, user_id)
        finally:
            db.close()

    return bootstrap


def create_token_verifier() -> JwtSecretVerifier:
    settings = get_settings()
    return JwtSecretVerifier(settings.jwt_secret, settings.jwt_algorithm)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared httpx.AsyncClient and the FAL client; close on shutdown."""
    settings = get_settings()

    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(60.0, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )
    app.state.generation_client = FalQueueClient(
        app.state.httpx_client,
        api_key=settings.fal_key,
        base_url=settings.fal_queue_url,
        timeout_s=settings.fal_timeout_s,
    )
    logger.info("generation_client_initialized", fal_configured=bool(settings.fal_key))

    yield

    await app.state.httpx_client.aclose()
    logger.info("httpx_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
    storage_client: StorageClientBase | None = None,
    bootstrap_callback=None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        storage_client: Optional storage client (defaults to the configured one).
        bootstrap_callback: Optional user bootstrap (defaults to one using the
            application session factory).
    """
    settings = get_settings()

    app = FastAPI(
        title="Leelaaverse API",
        description="Backend API for Leelaaverse - AI image generation and sharing",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.storage_client = storage_client or get_storage_client()

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors (including malformed JSON)."""
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
        app.add_middleware(
            AuthMiddleware,
            verifier=token_verifier or create_token_verifier(),
            bootstrap_callback=bootstrap_callback or create_bootstrap_callback(),
        )
        logger.info("auth_middleware_enabled", env=settings.leelaaverse_env.value)

    cors_origins = settings.cors_origin_list
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
            expose_headers=["X-Request-ID"],
        )
        logger.info("cors_middleware_enabled", origins=cors_origins)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
