"""Tests for X-Request-ID middleware.

Tests cover:
- Request ID generation when missing
- Request ID preservation when valid
- Request ID normalization (UUID lowercase)
- Request ID replacement when invalid
- Request ID presence on auth failures and in error bodies
"""

from uuid import UUID

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from leelaaverse.app import add_request_id_middleware
from leelaaverse.middleware.request_id import resolve_request_id
from tests.helpers import auth_headers


@pytest.fixture
def rid_client(app: FastAPI):
    """Client whose app has request-id middleware outermost."""
    add_request_id_middleware(app, log_requests=False)
    with TestClient(app) as client:
        yield client


class TestResolveRequestId:
    def test_missing_generates_uuid(self):
        UUID(resolve_request_id(None))

    def test_uuid_lowercased(self):
        assert (
            resolve_request_id("550E8400-E29B-41D4-A716-446655440000")
            == "550e8400-e29b-41d4-a716-446655440000"
        )

    @pytest.mark.parametrize("bad", ["bad id with spaces", "a" * 200, "semi;colon"])
    def test_invalid_replaced(self, bad):
        resolved = resolve_request_id(bad)
        assert resolved != bad
        UUID(resolved)


class TestRequestIdMiddleware:
    def test_request_id_generated_when_missing(self, rid_client, test_user_id):
        """Request ID is generated when not provided."""
        response = rid_client.get("/api/posts/feed", headers=auth_headers(test_user_id))

        assert response.status_code == 200
        UUID(response.headers["X-Request-ID"])

    def test_request_id_preserved_when_valid(self, rid_client):
        """Valid non-UUID request IDs are preserved."""
        response = rid_client.get("/health", headers={"X-Request-ID": "abc_def-123"})

        assert response.headers["X-Request-ID"] == "abc_def-123"

    def test_request_id_present_on_auth_failure(self, rid_client):
        """Auth failures carry X-Request-ID in headers and body."""
        response = rid_client.get(
            "/api/posts/my-generations", headers={"X-Request-ID": "trace-401"}
        )

        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "trace-401"
        assert response.json()["request_id"] == "trace-401"

    def test_request_id_in_route_error_body(self, rid_client, test_user_id):
        """ApiErrors raised in routes carry the request ID."""
        response = rid_client.get(
            "/api/posts/generation/unknown-job",
            headers={**auth_headers(test_user_id), "X-Request-ID": "trace-404"},
        )

        assert response.status_code == 404
        assert response.json()["request_id"] == "trace-404"
