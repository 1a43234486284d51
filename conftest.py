"""
Shared fixtures for the Users Service tests.
"""
import pytest
from fastapi.testclient import TestClient

from auth import encode_token
from main import app
from models import SEED_USERS, users_db


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def token():
    """A well-formed token. Its signature is irrelevant in unverified mode."""
    return encode_token({"sub": "tester@techhive.com"}, "not-the-server-secret")


@pytest.fixture
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(autouse=True)
def reset_users_db():
    """Reset the users store and dependency overrides around each test."""
    users_db.reset(SEED_USERS)
    yield
    users_db.reset(SEED_USERS)
    app.dependency_overrides.clear()
