"""Shared test fixtures for the OmniVault test suite.

All tests run against a throwaway SQLite file created for the session. Each
test starts from empty tables. Tables are created by the app on import
(``Base.metadata.create_all``), so nothing here builds schema.

Users are created through the real registration flow; the mailer dependency
is replaced by ``RecordingMailer`` so tests can read the verification token
and OTP that would have been emailed.
"""

import os
import tempfile

# Point the app at a temporary database before any app imports.
_DB_FILE = os.path.join(tempfile.mkdtemp(prefix="omnivault-tests-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["LOG_FORMAT"] = "text"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["REQUIRE_EMAIL_VERIFICATION"] = "true"
os.environ["RATE_LIMIT_PER_MINUTE"] = "0"
os.environ.pop("SMTP_HOST", None)

from dataclasses import dataclass
from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from omnivault.core.mailer import Mailer, get_mailer
from omnivault.database import Base, SessionLocal, engine, get_db
from omnivault.main import app
from omnivault.middleware.request_context import reset_rate_limits
from omnivault.services import auth_service

DEFAULT_PASSWORD = "correct-horse-battery"


@dataclass
class SentVerification:
    email: str
    username: str
    token: str
    otp: str


class RecordingMailer(Mailer):
    """Keeps every verification message instead of sending it."""

    def __init__(self):
        self.sent: List[SentVerification] = []

    def send_verification(self, email: str, username: str, token: str, otp: str) -> None:
        self.sent.append(SentVerification(email, username, token, otp))

    def last_for(self, email: str) -> SentVerification:
        return [m for m in self.sent if m.email == email][-1]


class FailingMailer(Mailer):
    def send_verification(self, email: str, username: str, token: str, otp: str) -> None:
        raise ConnectionRefusedError("SMTP server unreachable")


@pytest.fixture(autouse=True)
def _clean_tables():
    """Delete all rows before each test, children before parents.

    Runs before the test (not after) so failures leave data
    available for debugging.
    """
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    reset_rate_limits()
    yield


@pytest.fixture()
def db():
    """Per-test database session."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def client(db, mailer):
    """TestClient with the DB session and mailer dependencies overridden."""

    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def create_verified_user(
    db: Session,
    username: str = "alice",
    email: str = None,
    password: str = DEFAULT_PASSWORD,
):
    """Register and verify a user directly through the auth service."""
    recorder = RecordingMailer()
    user = auth_service.register_user(
        db, username, email or f"{username}@example.com", password, mailer=recorder
    )
    auth_service.verify_email(db, recorder.sent[-1].token)
    db.refresh(user)
    return user


def login_headers(client: TestClient, username: str, password: str = DEFAULT_PASSWORD) -> dict:
    resp = client.post("/api/auth/login", json={"username_or_email": username, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture()
def user(db):
    return create_verified_user(db, "alice")


@pytest.fixture()
def other_user(db):
    return create_verified_user(db, "bob")


@pytest.fixture()
def auth_headers(client, user) -> dict:
    """Bearer headers for ``alice``."""
    return login_headers(client, "alice")


@pytest.fixture()
def other_headers(client, other_user) -> dict:
    """Bearer headers for ``bob``."""
    return login_headers(client, "bob")


def make_text(title: str = "Test Note", text: str = "Hello world.", **overrides) -> dict:
    """Factory for text content creation payloads."""
    payload = {"title": title, "text_content": text}
    payload.update(overrides)
    return payload
