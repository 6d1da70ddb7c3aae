"""
tests/conftest.py -- Shared test fixtures for userauth.

This module provides:
  - database:    fresh in-memory Database per test (unit tests)
  - user_store / token_store / users / tokens / auth: stores and services on it
  - seeded_users: Alice User, Bob User (role user) and Charlie Admin, inserted
                  in that order so created_at ordering is deterministic
  - api_client:  TestClient on the real app with a patched lifespan, plus an
                 admin access token (integration tests)

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

DEBUG and RATE_LIMIT_ENABLED must be set before any project import so
get_settings() auto-generates SECRET_KEY and the shared limiter is built
disabled.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

# CRITICAL: Set env before any api/auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.roles import Role
from auth.service import AuthService, TokenManager
from auth.store import TokenStore, UserStore
from auth.tokens import hash_password
from auth.users import UserService
from core.config import Settings
from db.database import Database

PASSWORD = "password1"
# Hashed once; bcrypt per seeded user would dominate test run time.
_HASHED_PASSWORD = hash_password(PASSWORD)

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789"


def make_settings(**overrides) -> Settings:
    """Settings for tests, ignoring any .env file in the working directory."""
    values = {"debug": True, "secret_key": TEST_SECRET}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def insert_users(store: UserStore, specs: list[tuple[str, str, Role]]) -> list[User]:
    """Insert users in order and return the stored records."""
    created = []
    for name, email, role in specs:
        user_id = store.create_user(User(name=name, email=email, hashed_password=_HASHED_PASSWORD, role=role))
        created.append(store.get_by_id(user_id))
    return created


SEED_USERS: list[tuple[str, str, Role]] = [
    ("Alice User", "alice.user@example.com", Role.USER),
    ("Bob User", "bob.user@example.com", Role.USER),
    ("Charlie Admin", "charlie.admin@example.com", Role.ADMIN),
]


# ---------------------------------------------------------------------------
# Unit fixtures -- one fresh in-memory database per test
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def database() -> Generator[Database, None, None]:
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def user_store(database: Database) -> UserStore:
    return UserStore(database)


@pytest.fixture
def token_store(database: Database) -> TokenStore:
    return TokenStore(database)


@pytest.fixture
def users(user_store: UserStore) -> UserService:
    return UserService(user_store)


@pytest.fixture
def tokens(settings: Settings, token_store: TokenStore, user_store: UserStore) -> TokenManager:
    return TokenManager(settings, token_store, user_store)


@pytest.fixture
def auth(users: UserService, tokens: TokenManager) -> AuthService:
    return AuthService(users, tokens)


@pytest.fixture
def seeded_users(user_store: UserStore) -> dict[str, User]:
    """Insert Alice, Bob and Charlie. Keyed by first name, lowercased."""
    created = insert_users(user_store, SEED_USERS)
    return {u.name.split()[0].lower(): u for u in created}


# ---------------------------------------------------------------------------
# Integration fixture -- one TestClient per test module
# ---------------------------------------------------------------------------


def _patch_lifespan(database: Database, users: UserService, tokens: TokenManager):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test services into app.state so TestClient routes see an
    isolated test DB. Outbound email is an AsyncMock so tests can read the
    tokens that would have been mailed.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.database = database
        app.state.users = users
        app.state.tokens = tokens
        app.state.auth = AuthService(users, tokens)
        app.state.email = AsyncMock()
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The database name includes the test module name so modules never share
    state. The admin (admin@example.com / password1) is created before the
    client starts.
    """
    db_name = request.module.__name__.replace(".", "_")
    database = Database(f"sqlite:///file:test_{db_name}?mode=memory&cache=shared&uri=true")
    database.create_all()
    user_store = UserStore(database)
    users = UserService(user_store)
    tokens = TokenManager(make_settings(), TokenStore(database), user_store)

    admin = users.create_user(name="Test Admin", email="admin@example.com", password=PASSWORD, role=Role.ADMIN)
    token = tokens.generate_auth_tokens(admin).access.token

    app.router.lifespan_context = _patch_lifespan(database, users, tokens)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    database.close()
