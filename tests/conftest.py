from typing import Generator
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pine_bridge.config import get_settings
from pine_bridge.db import Base, enable_sqlite_foreign_keys
from pine_bridge.main import app, get_db
from pine_bridge.rules import Role
from pine_bridge.schemas import RegisterRequest
from pine_bridge.storage import SqlStorage


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    enable_sqlite_foreign_keys(engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def storage(db_session):
    return SqlStorage(db_session)


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def user_payload(email: str, password: str = "secret1", **extra) -> dict:
    data = {
        "email": email,
        "password": password,
        "first_name": "Test",
        "last_name": "Trader",
        "country": "US",
    }
    data.update(extra)
    return data


def session_token(response) -> str:
    return response.cookies.get(get_settings().session_cookie)


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register(client):
    """Register a user through the API and return (user_json, auth_headers)."""
    def _register(email: str, password: str = "secret1"):
        r = client.post("/api/register", json=user_payload(email, password))
        assert r.status_code == 201, r.text
        return r.json(), bearer(session_token(r))
    return _register


@pytest.fixture
def admin(client, storage):
    """Create an admin directly in storage, log in, return (user_json, auth_headers)."""
    storage.create_user(
        RegisterRequest(**user_payload("admin@pinebridge.com", "admin123")), role=Role.ADMIN.value
    )
    r = client.post("/api/login", json={"email": "admin@pinebridge.com", "password": "admin123"})
    assert r.status_code == 201, r.text
    return r.json(), bearer(session_token(r))
