"""Pytest configuration and fixtures for Leelaaverse tests.

Test isolation strategy:
- Each test gets a fresh in-memory SQLite database (schema from the ORM models)
- All sessions share one connection through StaticPool, so route handlers and
  assertions see the same data
- Provider and media hosts are mocked with respx; no test touches the network
- DNS lookups resolve every hostname to a public address (PUBLIC_TEST_IP)
- Authenticated requests use HS256 tokens minted by tests.helpers
"""

import os
import socket
import sys
from collections.abc import Generator
from pathlib import Path
from uuid import UUID

# Settings are read at import time by leelaaverse.celery; give tests a complete env.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("LEELAAVERSE_ENV", "test")

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leelaaverse.api.deps import get_db, get_generation_client
from leelaaverse.app import create_app, create_bootstrap_callback
from leelaaverse.auth.verifier import JwtSecretVerifier
from leelaaverse.config import clear_settings_cache
from leelaaverse.db.models import Base
from leelaaverse.db.session import create_session_factory
from leelaaverse.services.generation import FalQueueClient
from leelaaverse.storage.client import FakeStorageClient
from tests.helpers import TEST_JWT_SECRET, create_test_user_id

FAL_BASE_URL = "https://queue.fal.test"
PUBLIC_TEST_IP = "93.184.216.34"


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Session for arranging and asserting on rows.

    Call ``db_session.expire_all()`` before reading rows a request has changed.
    """
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def fal_client() -> FalQueueClient:
    """FAL client with a test key; pair with respx routes on FAL_BASE_URL."""
    return FalQueueClient(httpx.AsyncClient(), api_key="test-key", base_url=FAL_BASE_URL)


@pytest.fixture
def app(
    session_factory: sessionmaker[Session],
    storage: FakeStorageClient,
    fal_client: FalQueueClient,
) -> FastAPI:
    """App with auth middleware, the fake storage and the test database."""
    app = create_app(
        token_verifier=JwtSecretVerifier(TEST_JWT_SECRET),
        storage_client=storage,
        bootstrap_callback=create_bootstrap_callback(session_factory),
    )

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_generation_client] = lambda: fal_client
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Test client for the authenticated app. Use auth_headers() for tokens."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def test_user_id() -> UUID:
    return create_test_user_id()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def public_dns(monkeypatch):
    """Resolve every hostname to PUBLIC_TEST_IP.

    Tests that need a host to resolve elsewhere patch ``socket.getaddrinfo`` again.
    """

    def fake_getaddrinfo(host, port, *args, **kwargs):
        return [(socket.AF_INET, socket.SOCK_STREAM, 0, "", (PUBLIC_TEST_IP, port or 0))]

    monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo)
