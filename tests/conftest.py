# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.
"""

import pytest
from fastapi.testclient import TestClient
from typing import Generator

from backend.app.config import Settings, get_identity, get_settings, get_store
from backend.app.main import create_app
from backend.app.services.notifications import get_sink
from tests.fakes import HOOK_SECRET, FakeIdentity, FakeStore, RecordingSink


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        require_verified_email=True,
        hook_secret=HOOK_SECRET,
        reminders_enabled=False,
        app_base_url="https://planner.test",
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def identity() -> FakeIdentity:
    fake = FakeIdentity()
    fake.add_user("u1", "leader@example.com", display_name="Una")
    fake.add_user("u2", "editor@example.com", display_name="Eddie")
    fake.add_user("u3", "viewer@example.com", display_name="Vic")
    return fake


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture(scope="function")
def app(store, identity, sink, test_settings):
    """Create a test FastAPI application instance wired to the fakes."""
    application = create_app(test_settings, start_scheduler=False)
    application.dependency_overrides[get_store] = lambda: store
    application.dependency_overrides[get_identity] = lambda: identity
    application.dependency_overrides[get_sink] = lambda: sink
    application.dependency_overrides[get_settings] = lambda: test_settings
    return application


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client
