"""Pytest configuration and fixtures"""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET"] = "test-access-secret"
os.environ["JWT_REFRESH_SECRET"] = "test-refresh-secret"
os.environ["GOOGLE_CLIENT_ID"] = "test-client.apps.googleusercontent.com"
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from typing_api.database import Base, SessionLocal, engine, get_db
from typing_api.main import app
from typing_api.middleware.rate_limit import limiter, rate_limit_store

STRONG_PASSWORD = "Typist2024!x"
OTHER_PASSWORD = "Keyb0ardRuns#9"


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Every test starts with empty rate-limit counters"""
    rate_limit_store.clear()
    limiter.reset()
    yield
    rate_limit_store.clear()


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database session override"""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class BrokenSession:
    """Session stand-in whose every query fails"""

    def __init__(self):
        self.rolled_back = False
        self.closed = False

    def query(self, *args):
        raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


def register(client: TestClient, username: str = "typist_one", password: str = STRONG_PASSWORD) -> dict:
    """Register through the API and return the response ``data``"""
    response = client.post("/api/auth/register", json={"username": username, "password": password})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def registered_user(client: TestClient) -> dict:
    """A registered password account: ``{user, accessToken, refreshToken, ...}``"""
    return register(client)


@pytest.fixture
def auth_headers(registered_user: dict) -> dict:
    return bearer(registered_user["accessToken"])


@pytest.fixture
def google_payload() -> dict:
    """Claims as returned by a successful Google ID token verification"""
    return {
        "sub": "google-sub-123",
        "email": "jane.doe@example.com",
        "email_verified": True,
        "name": "Jane Doe",
        "picture": "https://lh3.googleusercontent.com/a/jane",
        "aud": "test-client.apps.googleusercontent.com",
        "iss": "https://accounts.google.com",
        "exp": 4102444800,
        "iat": 1700000000,
    }
