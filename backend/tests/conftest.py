"""Pytest configuration and shared fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator, Generator
from datetime import datetime, timedelta

# Settings and the engine are created at import time; point them at a
# throwaway SQLite file before anything from imtihon is imported.
_db_fd, _db_path = tempfile.mkstemp(suffix=".db")
os.close(_db_fd)
os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["EXAM_CONCURRENCY_POLICY"] = "multi_session"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

import imtihon.models  # noqa: E402, F401
from imtihon.core import clock  # noqa: E402
from imtihon.core.security import create_access_token  # noqa: E402
from imtihon.db.base import Base  # noqa: E402
from imtihon.db.engine import engine  # noqa: E402
from imtihon.db.session import SessionLocal, get_db  # noqa: E402
from imtihon.main import create_app  # noqa: E402
from imtihon.models.content import Question, Topic  # noqa: E402
from imtihon.models.user import User, UserRole  # noqa: E402
from tests.helpers.seed import create_questions, create_topic, create_user  # noqa: E402


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    if os.path.exists(_db_path):
        os.remove(_db_path)


class FakeClock:
    """Controllable replacement for ``clock.utcnow``."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; application code commits freely."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_clock(monkeypatch) -> FakeClock:
    """Freeze the engine clock at a fixed instant."""
    fake = FakeClock(datetime(2026, 3, 2, 9, 0, 0))
    monkeypatch.setattr(clock, "utcnow", fake)
    return fake


@pytest.fixture
def test_user(db) -> User:
    """Create a test student user."""
    return create_user(db, role=UserRole.STUDENT, full_name="Test Student")


@pytest.fixture
def other_user(db) -> User:
    """A second student, for ownership checks."""
    return create_user(db, role=UserRole.STUDENT, full_name="Other Student")


@pytest.fixture
def test_admin_user(db) -> User:
    """Create a test admin user."""
    return create_user(db, role=UserRole.ADMIN, full_name="Test Admin")


@pytest.fixture
def topic(db) -> Topic:
    return create_topic(db, code="SIGNS", name_uzl="Yo'l belgilari", name_ru="Дорожные знаки")


@pytest.fixture
def published_questions(db, topic) -> list[Question]:
    """30 active questions in one topic; correct index cycles 0..3."""
    return create_questions(db, topic, 30)


@pytest.fixture
def client(db) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database dependency override."""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close the session, it's managed by the db fixture

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
async def async_client(db) -> AsyncGenerator[AsyncClient, None]:
    """Create an async FastAPI test client with database dependency override."""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        try:
            yield ac
        finally:
            app.dependency_overrides.clear()


@pytest.fixture
def auth_headers_student(test_user) -> dict[str, str]:
    """Create Authorization header for student user."""
    token = create_access_token(user_id=str(test_user.id), role=test_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers_other(other_user) -> dict[str, str]:
    token = create_access_token(user_id=str(other_user.id), role=other_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers_admin(test_admin_user) -> dict[str, str]:
    """Create Authorization header for admin user."""
    token = create_access_token(user_id=str(test_admin_user.id), role=test_admin_user.role)
    return {"Authorization": f"Bearer {token}"}
