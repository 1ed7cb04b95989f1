"""Test fixtures for the backend."""
import os

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "1000")

from app.database import build_engine, get_session  # noqa: E402
from app.dependencies import (  # noqa: E402
    get_email_client,
    get_google_oauth_client,
    pending_repo,
    user_repo,
)
from app.main import app  # noqa: E402
from app.models import unverified_user as _unverified_user_models  # noqa: E402,F401
from app.models import user as _user_models  # noqa: E402,F401
from app.services.account_service import AccountService  # noqa: E402


class FakeEmailClient:
    """Records outgoing mail instead of sending it."""

    def __init__(self):
        self.sent: list[dict] = []

    def send_email(self, to_email, subject, text_body, html_body=None):
        self.sent.append(
            {"to": to_email, "subject": subject, "text": text_body, "html": html_body}
        )

    @property
    def last(self) -> dict:
        return self.sent[-1]


class FakeGoogleOAuthClient:
    """Stands in for GoogleOAuthClient; `identity` or `error` drives the outcome."""

    def __init__(self, identity=None, error: Exception | None = None):
        self.identity = identity
        self.error = error
        self.codes: list[str] = []

    def authenticate(self, code: str):
        self.codes.append(code)
        if self.error is not None:
            raise self.error
        return self.identity


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def email_client() -> FakeEmailClient:
    return FakeEmailClient()


@pytest.fixture
def google_client() -> FakeGoogleOAuthClient:
    return FakeGoogleOAuthClient()


@pytest.fixture
def service(email_client) -> AccountService:
    return AccountService(user_repo, pending_repo, email_client, "http://localhost:3000")


@pytest.fixture
def client(engine, email_client, google_client):
    """HTTP client wired to the test database and fake outbound clients."""

    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_email_client] = lambda: email_client
    app.dependency_overrides[get_google_oauth_client] = lambda: google_client
    yield TestClient(app)
    app.dependency_overrides.clear()
