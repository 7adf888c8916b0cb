"""
tests/conftest.py -- Shared test fixtures for credcore.

This module provides:
  - InMemoryCredentialStore / StubTokenIssuer: test doubles for the two
    AuthService collaborators. Both record every call so tests can assert
    that a collaborator was (or was not) reached.
  - hasher: a low-cost PasswordHasher (bcrypt rounds=4) shared by the session.
  - service: AuthService wired to the doubles.
  - api_client: TestClient over the real FastAPI app with an isolated
    in-memory SQLite store, built through a patched lifespan.

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import dataclasses
import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

# CRITICAL: Set DEBUG before any core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from auth.errors import DuplicateEmailError, TokenError
from auth.models import User
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import SqlCredentialStore
from auth.tokens import JwtTokenIssuer

TEST_SECRET = "test-secret-key-0123456789abcdef-0123456789"

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class InMemoryCredentialStore:
    """CredentialStore double keyed by email.

    lookup_error / create_error, when set, are raised by the corresponding
    method. hide_existing makes get_user_by_email() report "not found" even
    for stored users -- it simulates a concurrent registration that lands
    between AuthService's existence check and its create call.
    """

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.calls: list[tuple[str, str]] = []
        self.lookup_error: Exception | None = None
        self.create_error: Exception | None = None
        self.hide_existing = False
        self._ids = itertools.count(1)

    def create_user(self, user: User) -> None:
        self.calls.append(("create_user", user.email))
        if self.create_error is not None:
            raise self.create_error
        if user.email in self.users:
            raise DuplicateEmailError(user.email)
        self.users[user.email] = dataclasses.replace(user, id=f"user-{next(self._ids)}")

    def get_user_by_email(self, email: str) -> User | None:
        self.calls.append(("get_user_by_email", email))
        if self.lookup_error is not None:
            raise self.lookup_error
        if self.hide_existing:
            return None
        return self.users.get(email)

    def seed(self, user: User) -> User:
        """Insert directly, bypassing call recording. Returns the stored record."""
        stored = dataclasses.replace(user, id=user.id or f"user-{next(self._ids)}")
        self.users[stored.email] = stored
        return stored

    def called(self, method: str) -> bool:
        return any(name == method for name, _ in self.calls)


class StubTokenIssuer:
    """TokenIssuer double returning a fixed access token."""

    def __init__(self, access_token: str = "tok-1") -> None:
        self.access_token = access_token
        self.fail_access = False
        self.fail_refresh = False
        self.calls: list[tuple[str, str]] = []
        self._refresh_ids = itertools.count(1)

    def generate_token(self, user_id: str) -> str:
        self.calls.append(("generate_token", user_id))
        if self.fail_access:
            raise TokenError("signing key unavailable")
        return self.access_token

    def generate_refresh_token(self, user_id: str) -> str:
        self.calls.append(("generate_refresh_token", user_id))
        if self.fail_refresh:
            raise TokenError("signing key unavailable")
        return f"refresh-{user_id}-{next(self._refresh_ids)}"

    def validate_token(self, token: str) -> bool:
        self.calls.append(("validate_token", token))
        return token == self.access_token


# ---------------------------------------------------------------------------
# Service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def issuer() -> StubTokenIssuer:
    return StubTokenIssuer()


@pytest.fixture
def service(store, issuer, hasher) -> AuthService:
    return AuthService(store, issuer, hasher)


@pytest.fixture
def existing_user(store, hasher) -> User:
    """a@x.com / secret123, already registered."""
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return store.seed(
        User(
            email="a@x.com",
            name="A",
            hashed_password=hasher.hash("secret123"),
            created_at=now,
            updated_at=now,
        )
    )


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(credential_store: SqlCredentialStore, token_issuer: JwtTokenIssuer, hasher: PasswordHasher):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test collaborators into app.state so TestClient routes see
    an isolated in-memory DB and a known signing key.
    """
    from core.config import get_settings

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.credential_store = credential_store
        app.state.token_issuer = token_issuer
        app.state.auth_service = AuthService(credential_store, token_issuer, hasher)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(hasher) -> Generator[tuple[TestClient, SqlCredentialStore, JwtTokenIssuer], None, None]:
    """Yield (client, store, issuer) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers, the real AuthService, the SQL store and the JWT
    issuer. One client per test module; tests use distinct emails.
    """
    from api.main import app

    db_url = f"sqlite:///file:test_auth_{os.getpid()}?mode=memory&cache=shared&uri=true"
    # One shared connection for every TestClient worker thread.
    credential_store = SqlCredentialStore(db_url, poolclass=StaticPool)
    token_issuer = JwtTokenIssuer(TEST_SECRET, access_expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(credential_store, token_issuer, hasher)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, credential_store, token_issuer

    credential_store.close()
