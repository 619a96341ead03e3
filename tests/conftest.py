"""
Shared pytest fixtures for the WorkTrack API tests.

Provides:
- An in-memory SQLite database, created fresh for every test
- A TestClient wired to that database
- Users holding roles at a given level, plus bearer headers for them
- A controllable clock for the session tracker
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from typing import Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.db.database import Base, get_db
from app import models  # noqa: F401
from app.models.user import User
from app.models.access import Role
from app.core import clock
from app.core.security import create_access_token
import main


# ============================================================================
# Database Fixtures
# ============================================================================

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; dropped afterwards."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield db

    main.app.dependency_overrides[get_db] = override_get_db
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Millisecond clock that only moves when a test advances it."""

    def __init__(self, now: int):
        self.now = now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now

    def __call__(self) -> int:
        return self.now


# 2024-03-15T10:00:00Z
BASE_TIME_MS = 1710496800000


@pytest.fixture
def fake_clock(monkeypatch) -> FakeClock:
    fake = FakeClock(BASE_TIME_MS)
    monkeypatch.setattr(clock, "current_time_ms", fake)
    return fake


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def make_user(db: Session):
    """Factory: user whose role has the given level (no role when level is None)."""
    counter = {"n": 0}

    def _make(level: Optional[str] = None, name: Optional[str] = None, company_id: Optional[str] = None) -> User:
        counter["n"] += 1
        role_id = None
        if level is not None:
            role = Role(name=f"{level}-role-{counter['n']}", level=level, permissions=[])
            db.add(role)
            db.flush()
            role_id = role.id
        user = User(
            name=name or f"User {counter['n']}",
            email=f"user{counter['n']}@example.com",
            password_hash="not-a-real-hash",
            role_id=role_id,
            company_id=company_id,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def admin_user(make_user) -> User:
    return make_user("admin", name="Admin")


@pytest.fixture
def writer_user(make_user) -> User:
    return make_user("write", name="Writer")


@pytest.fixture
def reader_user(make_user) -> User:
    return make_user("read", name="Reader")


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user) -> dict:
    return auth_headers(admin_user)


@pytest.fixture
def reader_headers(reader_user) -> dict:
    return auth_headers(reader_user)


@pytest.fixture
def headers_for():
    return auth_headers
