"""
tests/conftest.py -- Shared test fixtures for SessionAuth.

This module provides:
  - FakeHasher: a cheap PasswordHasher so tests do not pay bcrypt's cost
  - engine / user_store / session_store: isolated in-memory DB per test
  - codec / directory / manager: the auth services wired by hand
  - api_client: TestClient over the real FastAPI app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each test gets its own uniquely named DB, so no state leaks between
tests.

DEBUG, ALLOWED_HOSTS and the rate limits must be set before any api/ import:
get_settings() is cached on first call and api/main.py calls it at import.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any api/core import so get_settings() picks them up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REFRESH_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app, attach_services
from auth.directory import IdentityDirectory
from auth.roles import Role
from auth.sessions import SessionManager
from auth.store import SessionStore, UserStore, open_engine
from auth.tokens import TokenCodec
from core.config import get_settings

ACCESS_SECRET = "test-access-secret-0123456789abcdef0123456789"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012345678"

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"


class FakeHasher:
    """PasswordHasher stand-in. Deterministic and fast; never use outside tests."""

    def hash(self, password: str) -> str:
        return f"fake${password[::-1]}"

    def verify(self, password: str, digest: str) -> bool:
        return digest == self.hash(password)


def _memory_db_url() -> str:
    return f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Service-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = open_engine(_memory_db_url())
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def session_store(engine: Engine) -> SessionStore:
    return SessionStore(engine)


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(access_secret=ACCESS_SECRET, refresh_secret=REFRESH_SECRET)


@pytest.fixture
def directory(user_store: UserStore, session_store: SessionStore) -> IdentityDirectory:
    return IdentityDirectory(user_store, session_store, FakeHasher())


@pytest.fixture
def manager(directory: IdentityDirectory, session_store: SessionStore, codec: TokenCodec) -> SessionManager:
    return SessionManager(directory, session_store, codec)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine):
    """Return an async context manager that replaces the real lifespan.

    Wires the test engine and FakeHasher into app.state through the same
    attach_services() the production lifespan uses.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        attach_services(app, engine, get_settings(), hasher=FakeHasher())
        yield

    return test_lifespan


@pytest.fixture
def api_client(engine: Engine) -> Generator[TestClient, None, None]:
    """Yield a TestClient with one ADMIN account (ADMIN_EMAIL / ADMIN_PASSWORD) pre-created.

    The client's cookie jar starts empty for every test.
    """
    app.router.lifespan_context = _patch_lifespan(engine)
    with TestClient(app, raise_server_exceptions=True) as client:
        app.state.directory.create_user(ADMIN_EMAIL, ADMIN_PASSWORD, "Admin", Role.ADMIN)
        yield client


def login(client: TestClient, email: str, password: str) -> dict:
    """POST /auth/login and return the JSON body. Clears the cookie jar afterwards
    so subsequent requests authenticate only through what the test passes explicitly.
    """
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return resp.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
