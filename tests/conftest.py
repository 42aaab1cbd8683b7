"""
tests/conftest.py -- Shared test fixtures for the identity service tests.

This module provides:
  - make_test_store(): an isolated named shared-memory SQLite UserStore
  - InMemoryDirectory / FailingDirectory: UserDirectory test doubles
  - manager / issuer fixtures wired at bcrypt's minimum cost (fast tests)
  - api_client: TestClient with a patched lifespan and isolated stores

Design: each test store gets its own named shared-memory SQLite URI so no two
stores share rows. TestClient runs sync route handlers in a thread pool;
UserStore gives in-memory URLs a single StaticPool connection so every worker
thread sees the same schema.

DEBUG must be set before any api/core import so get_settings() can
auto-generate JWT_SECRET instead of raising ValueError.
"""

from __future__ import annotations

import os
import threading
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate JWT_SECRET in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.credentials import CredentialManager
from auth.errors import DirectoryError, DuplicateRecordError, RecordNotFoundError
from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenConfig, TokenIssuer

TEST_SECRET = "test-signing-secret-0123456789abcdef"
TEST_ISSUER = "allin-tests"
TEST_TTL_MINUTES = 15
# bcrypt's minimum cost factor; production default is 12.
TEST_ROUNDS = 4


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_test_store(db_suffix: str | None = None) -> UserStore:
    """Create an isolated named shared-memory SQLite UserStore.

    Args:
        db_suffix: Unique string appended to the DB name. A random one is used
                   when omitted so every caller gets a fresh database.
    """
    suffix = db_suffix or uuid.uuid4().hex
    return UserStore(db_url=f"sqlite:///file:test_auth_{suffix}?mode=memory&cache=shared&uri=true")


# ---------------------------------------------------------------------------
# Directory test doubles
# ---------------------------------------------------------------------------


class InMemoryDirectory:
    """Dict-backed UserDirectory. A lock makes the uniqueness check atomic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: list[User] = []
        self.created: list[User] = []

    def create_user(self, user: User) -> User:
        with self._lock:
            for existing in self._users:
                if existing.username == user.username:
                    raise DuplicateRecordError("username")
                if existing.email == user.email:
                    raise DuplicateRecordError("email")
            stored = User(
                id=len(self._users) + 1,
                username=user.username,
                email=user.email,
                phone=user.phone,
                role=user.role,
                balance=user.balance,
                hashed_password=user.hashed_password,
                created_at=datetime.now(timezone.utc).isoformat(),
            )
            self._users.append(stored)
            self.created.append(stored)
            return stored

    def find_by_username_or_email(self, identifier: str) -> User:
        with self._lock:
            for user in self._users:
                if user.username == identifier:
                    return user
            for user in self._users:
                if user.email == identifier:
                    return user
        raise RecordNotFoundError(identifier)


class FailingDirectory:
    """UserDirectory whose every call fails with a storage error."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or DirectoryError("connection refused")
        self.calls = 0

    def create_user(self, user: User) -> User:
        self.calls += 1
        raise self.exc

    def find_by_username_or_email(self, identifier: str) -> User:
        self.calls += 1
        raise self.exc


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    """Fresh SQLite-backed UserStore per test."""
    s = make_test_store()
    yield s
    s.close()


@pytest.fixture
def manager(store: UserStore) -> CredentialManager:
    """CredentialManager over a fresh UserStore at minimum bcrypt cost."""
    return CredentialManager(store, rounds=TEST_ROUNDS)


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(secret=TEST_SECRET, issuer=TEST_ISSUER, ttl_minutes=TEST_TTL_MINUTES)


@pytest.fixture
def issuer(token_config: TokenConfig) -> TokenIssuer:
    return TokenIssuer(token_config)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(store: UserStore, credentials: CredentialManager, tokens: TokenIssuer):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test collaborators into app.state so TestClient routes
    see an isolated test DB rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.credentials = credentials
        app.state.tokens = tokens
        app.state.started_at = 0.0
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers and exception handlers but use an isolated
    in-memory store and a known signing secret.
    """
    user_store = make_test_store()
    credentials = CredentialManager(user_store, rounds=TEST_ROUNDS)
    tokens = TokenIssuer(TokenConfig(secret=TEST_SECRET, issuer=TEST_ISSUER, ttl_minutes=TEST_TTL_MINUTES))

    app.router.lifespan_context = _patch_lifespan(user_store, credentials, tokens)

    with TestClient(app, raise_server_exceptions=False) as client:
        yield client, user_store

    user_store.close()
