"""
tests/conftest.py -- Shared test fixtures for User API tests.

This module provides:
  - fast_hasher: bcrypt at the minimum cost factor so tests stay quick
  - store: a connected UserStore on a private in-memory SQLite DB
  - token_service: a TokenService with a fixed test secret
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
api_client because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

DEBUG must be set before any api/core import so get_settings() auto-generates
SECRET_KEY in dev mode rather than raising. LOGIN_RATE_LIMIT is raised so the
whole suite can log in repeatedly from the single TestClient address.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any api/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.passwords import BcryptHasher
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"


@pytest.fixture(scope="session")
def fast_hasher() -> BcryptHasher:
    # rounds=4 is bcrypt's floor; production uses 12.
    return BcryptHasher(rounds=4)


@pytest.fixture
def store(fast_hasher: BcryptHasher) -> Generator[UserStore, None, None]:
    """Connected UserStore on a private in-memory database."""
    s = UserStore("sqlite:///:memory:", hasher=fast_hasher)
    s.connect()
    yield s
    s.close()


@pytest.fixture
def secret_key() -> str:
    return TEST_SECRET


@pytest.fixture
def token_service(secret_key: str) -> TokenService:
    return TokenService(secret_key)


def _patch_lifespan(user_store: UserStore, token_service: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test objects into app.state so TestClient routes see an
    isolated test DB rather than the configured database, and skips the
    connect-with-retry step.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.token_service = token_service
        app.state.user_store = user_store
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request, fast_hasher: BcryptHasher) -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, user_store) for API integration tests.

    One TestClient per test module; the DB name includes the module name so
    modules never see each other's users.
    """
    db_name = request.module.__name__.rsplit(".", 1)[-1]
    user_store = UserStore(
        f"sqlite:///file:{db_name}?mode=memory&cache=shared&uri=true",
        hasher=fast_hasher,
    )
    user_store.connect()

    app.router.lifespan_context = _patch_lifespan(user_store, TokenService(TEST_SECRET))
    limiter.reset()

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()
