import os

# Settings are read at import time, so the test environment must be in place
# before anything from the application is imported.
os.environ["ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"
os.environ["TOKEN_SWEEP_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("LOG_DIR", "logs")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.context import RequestContext
from core.database import Base
from models.users import User
from utils.deps import get_db
from utils.hashing import hash_password
from tests.helpers import TEST_PASSWORD

# File-based SQLite so several connections (threads) can share it
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 10}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(session):
    """Factory for extra sessions on the test database (threads, scheduler jobs)."""
    return TestingSessionLocal


@pytest.fixture
async def client(session: Session):
    """
    Yields an HTTP client that interacts with the app using the test database.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def context() -> RequestContext:
    return RequestContext(request_id="test-request-id", ip="127.0.0.1", user_agent="pytest")


@pytest.fixture
def make_user(session):
    """Creates active users with TEST_PASSWORD."""
    def _make_user(email: str = "user@example.com", is_active: bool = True) -> User:
        user = User(
            email=email,
            name="Test User",
            hashed_password=hash_password(TEST_PASSWORD),
            is_active=is_active
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def user(make_user) -> User:
    return make_user()

