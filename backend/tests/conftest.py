import os
import tempfile

# Settings are read at import time; point them at an in-memory database first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_INIT_MODE"] = "create_all"
os.environ["RUN_CLEANUP_WORKER"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "wordle-identity-tests.log"))

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from wordle_identity.api.deps import get_auth_service
from wordle_identity.core.database import Base, get_db
from wordle_identity.core.security import PasswordHasher
from wordle_identity.main import app
from wordle_identity.services.auth_service import AuthService
from wordle_identity.services.credential_store import AccountStore
from wordle_identity.services.oauth_client import OAuthClient
from wordle_identity.services.oauth_state_store import OAuthStateStore
from wordle_identity.services.rate_limiter import rate_limiter
from wordle_identity.services.session_store import SessionStore
from wordle_identity.services.token_service import TokenService

PROVIDER_BASE_URL = "https://gitlab.example.com"
REDIRECT_URI = "http://localhost:8003/api/v1/auth/oauth/callback"


class FakeProvider:
    """GitLab-shaped token and user-info endpoints behind httpx.MockTransport."""

    def __init__(self):
        self.token_status = 200
        self.token_body = {"access_token": "provider-access-token", "token_type": "bearer"}
        self.user_status = 200
        self.user = {
            "id": 4242,
            "username": "gl-alice",
            "email": "alice@example.com",
            "name": "Alice Liddell",
            "avatar_url": "https://gitlab.example.com/uploads/alice.png",
        }
        self.timeout = False
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            if self.timeout:
                raise httpx.ReadTimeout("timed out", request=request)
            if isinstance(self.token_body, bytes):
                return httpx.Response(self.token_status, content=self.token_body)
            return httpx.Response(self.token_status, json=self.token_body)
        if request.url.path == "/api/v4/user":
            return httpx.Response(self.user_status, json=self.user)
        return httpx.Response(404, json={"message": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_token_service(**overrides) -> TokenService:
    options = {
        "secret_key": "test-access-secret-0123456789abcdef0123",
        "refresh_secret_key": "test-refresh-secret-0123456789abcdef012",
    }
    options.update(overrides)
    return TokenService(**options)


def make_oauth_client(provider: FakeProvider, **overrides) -> OAuthClient:
    options = {
        "client_id": "client-id",
        "client_secret": "client-secret",
        "base_url": PROVIDER_BASE_URL,
        "redirect_uri": REDIRECT_URI,
        "state_store": OAuthStateStore(),
        "transport": provider.transport,
    }
    options.update(overrides)
    return OAuthClient(**options)


def make_auth_service(provider: FakeProvider, tokens: TokenService = None, **overrides) -> AuthService:
    options = {
        "accounts": AccountStore(),
        "sessions": SessionStore(),
        "tokens": tokens or make_token_service(),
        "hasher": PasswordHasher(rounds=4),
        "oauth": make_oauth_client(provider),
        "username_max_attempts": 5,
    }
    options.update(overrides)
    return AuthService(**options)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def tokens():
    return make_token_service()


@pytest.fixture
def service(provider, tokens):
    return make_auth_service(provider, tokens)


@pytest.fixture
def client(session_factory, service):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_auth_service] = lambda: service
    rate_limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        rate_limiter.reset()
