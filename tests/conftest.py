import os
import sys
from pathlib import Path

os.environ.setdefault("NOTIFIER_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).resolve().parents[1]))

from villa_booking.core.security import get_password_hash
from villa_booking.db.base import Base
from villa_booking.db.models import Booking, User, UserRole  # noqa: F401
from villa_booking.db.session import get_db
from villa_booking.main import app
from villa_booking.services.notification_service import notifier

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
TEST_PASSWORD = "StrongPass123"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def reset_database() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    notifier.reset()


@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> TestClient:
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user():
    """Insert a validated user directly and return its id."""

    def _make_user(
        email: str,
        firstname: str = "Test",
        lastname: str = "User",
        role: UserRole = UserRole.USER,
        admin_validated: bool = True,
    ) -> int:
        session = TestingSessionLocal()
        try:
            user = User(
                email=email,
                hashed_password=get_password_hash(TEST_PASSWORD),
                firstname=firstname,
                lastname=lastname,
                role=role.value,
                admin_validated=admin_validated,
            )
            session.add(user)
            session.commit()
            return user.id
        finally:
            session.close()

    return _make_user


@pytest.fixture()
def auth_headers(client, make_user):
    """Create a validated user, log in, and return bearer headers."""

    def _auth_headers(email: str, **kwargs) -> dict[str, str]:
        make_user(email, **kwargs)
        login = client.post("/auth/login", json={"email": email, "password": TEST_PASSWORD})
        return {"Authorization": f"Bearer {login.json()['access_token']}"}

    return _auth_headers
