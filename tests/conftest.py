"""
tests/conftest.py -- Shared test fixtures for NoteAuth.

This module provides:
  - hasher / signer: fast bcrypt (4 rounds) and a fixed-key TokenSigner
  - user_store / refresh_store / auth_service: file-backed SQLite in tmp_path
  - _make_test_stores(): isolated shared-memory DBs for API tests
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient against the real FastAPI app

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the API fixture because TestClient runs sync route handlers in a thread
pool. Plain :memory: DBs are per-connection and would present a blank schema
to each worker thread.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any auth/core import -- get_settings() is cached.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.service import AuthService
from auth.store import RefreshTokenStore, UserStore
from auth.tokens import PasswordHasher, TokenSigner
from notes.store import NoteStore

TEST_SECRET = "test-secret-key-0123456789abcdef0123456789"
TEST_PASSWORD = "Passw0rd!x"

# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def hasher() -> PasswordHasher:
    """bcrypt at the minimum cost factor -- same algorithm, fast tests."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def signer() -> TokenSigner:
    return TokenSigner(
        secret_key=TEST_SECRET,
        access_token_validity_ms=15 * 60 * 1000,
        refresh_token_validity_ms=7 * 24 * 60 * 60 * 1000,
    )


@pytest.fixture
def db_url(tmp_path) -> str:
    """File-backed SQLite so several threads can contend on real locks."""
    return f"sqlite:///{tmp_path / 'auth.db'}"


@pytest.fixture
def user_store(db_url: str) -> Generator[UserStore, None, None]:
    store = UserStore(db_url=db_url)
    yield store
    store.close()


@pytest.fixture
def refresh_store(db_url: str) -> Generator[RefreshTokenStore, None, None]:
    store = RefreshTokenStore(db_url=db_url)
    yield store
    store.close()


@pytest.fixture
def note_store(db_url: str) -> Generator[NoteStore, None, None]:
    store = NoteStore(db_url=db_url)
    yield store
    store.close()


@pytest.fixture
def auth_service(
    user_store: UserStore,
    refresh_store: RefreshTokenStore,
    hasher: PasswordHasher,
    signer: TokenSigner,
) -> AuthService:
    return AuthService(user_store, refresh_store, hasher=hasher, signer=signer)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, RefreshTokenStore, NoteStore]:
    """Create isolated named shared-memory SQLite stores for one test module.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = f"sqlite:///file:test_noteauth_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=url), RefreshTokenStore(db_url=url), NoteStore(db_url=url)


def _patch_lifespan(user_store: UserStore, refresh_store: RefreshTokenStore, note_store: NoteStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine that keeps asyncio happy
    (a real asyncio.Task is required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.refresh_token_store = refresh_store
        app.state.note_store = note_store
        app.state.auth_service = AuthService(
            user_store,
            refresh_store,
            hasher=PasswordHasher(rounds=4),
            signer=TokenSigner(secret_key=TEST_SECRET),
        )
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient for the real app wired to per-module in-memory stores."""
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, refresh_store, note_store = _make_test_stores(suffix)
    # Hold one connection open so the shared-memory DB outlives idle pool slots.
    keepalive = user_store.engine.connect()

    app.router.lifespan_context = _patch_lifespan(user_store, refresh_store, note_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    keepalive.close()
    note_store.close()
    refresh_store.close()
    user_store.close()


@pytest.fixture
def register_and_login(api_client: TestClient):
    """Return a helper that registers an account via the API and logs it in.

    The helper returns the login JSON body (access_token, refresh_token, ...).
    """

    def _register_and_login(email: str, password: str = TEST_PASSWORD) -> dict:
        resp = api_client.post("/api/v1/auth/register", json={"email": email, "password": password})
        assert resp.status_code == 201, resp.text
        resp = api_client.post("/api/v1/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _register_and_login
