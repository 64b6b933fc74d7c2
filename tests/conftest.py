"""Pytest configuration and fixtures."""

import os

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# Set test environment variables before imports
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["ENCRYPTION_KEY_FILE"] = "/tmp/eventsync_test_encryption.key"
os.environ["PUBLIC_URL"] = "http://localhost:3000"
os.environ["SESSION_SECRET_KEY"] = "test-session-secret"
os.environ["GOOGLE_CLIENT_ID"] = "test-client.apps.googleusercontent.com"
os.environ["GOOGLE_CLIENT_SECRET"] = "test-client-secret"
os.environ["RATE_LIMIT_PER_MINUTE"] = "1000"


@pytest.fixture(autouse=True)
def test_encryption_key():
    """Install a fresh token encryption key for each test."""
    from eventsync.encryption import generate_encryption_key, init_cipher

    key = generate_encryption_key()
    init_cipher(key)
    yield key


@pytest_asyncio.fixture
async def test_db():
    """Create a test database."""
    from eventsync.database import close_database, get_database
    import eventsync.database as db_module

    # Reset the global connection
    db_module._db_connection = None

    db = await get_database()

    yield db

    await close_database()
    db_module._db_connection = None


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    from eventsync.main import app
    import eventsync.database as db_module

    db_module._db_connection = None
    with TestClient(app) as c:
        yield c
    db_module._db_connection = None


@pytest_asyncio.fixture
async def async_client(test_db):
    """Create an async test client sharing the test database."""
    from eventsync.main import app

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fake_google(monkeypatch):
    """Replace the Google Calendar API with an in-memory calendar."""
    from tests.fake_google import FakeCalendarService

    service = FakeCalendarService()
    monkeypatch.setattr(
        "eventsync.calendar.google_calendar.build",
        lambda *_args, **_kwargs: service,
    )
    return service
