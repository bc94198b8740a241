"""
tests/conftest.py -- Shared test fixtures for AuthGate integration tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory credential store
  - _patch_lifespan(): wires test state into app.state, bypassing real startup
  - FakeClock: manual clock for SlidingWindowRateLimiter
  - api_client: TestClient plus admin JWT for API integration tests
  - web_client: TestClient with follow_redirects=False for guarded page tests
  - register_limiter: fresh registration limiter on a fake clock, per test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
BCRYPT_ROUNDS is lowered for the same reason: auth.tokens hashes its timing
dummy at import time.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any auth/core import (settings are cached on first use).
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from core.ratelimit import SlidingWindowRateLimiter

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1n!Passw0rd"
MEMBER_EMAIL = "member@example.com"
MEMBER_PASSWORD = "Memb3r!Passw0rd"

# Mount the web router once; include_router on an already-mounted router
# would register duplicate routes.
if not any(getattr(r, "path", None) == "/protected" for r in app.routes):
    from web.routes import router as web_router

    app.include_router(web_router, tags=["Web UI"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_test_store(db_suffix: str) -> UserStore:
    """Create an isolated named shared-memory SQLite credential store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api_test_health').
    """
    return UserStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return an async context manager that replaces the real lifespan.

    The sweep_task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.register_limiter = SlidingWindowRateLimiter(limit=30, window_seconds=60.0)
        app.state.sweep_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.sweep_task.cancel()

    return test_lifespan


def _seed_users(user_store: UserStore) -> tuple[int, int]:
    admin = user_store.create(ADMIN_EMAIL, hash_password(ADMIN_PASSWORD), name="Admin", role="admin")
    member = user_store.create(MEMBER_EMAIL, hash_password(MEMBER_PASSWORD), name="Member")
    return admin.id, member.id


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, UserStore], None, None]:
    """Yield (client, admin_token, store) for API integration tests.

    Tests hit the real route handlers with an isolated in-memory store. The
    store is yielded so tests can seed or inspect accounts directly.
    """
    user_store = _make_test_store(f"api_{request.module.__name__}")
    admin_id, _ = _seed_users(user_store)
    token = create_access_token(admin_id, ADMIN_EMAIL, "admin", expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, user_store

    user_store.close()


@pytest.fixture(scope="module")
def web_client(request) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, admin_token, member_token) for guarded page tests.

    follow_redirects=False is essential: tests assert on redirect locations,
    which are invisible once the client follows the redirect.
    """
    user_store = _make_test_store(f"web_{request.module.__name__}")
    admin_id, member_id = _seed_users(user_store)
    admin_token = create_access_token(admin_id, ADMIN_EMAIL, "admin", expire_seconds=3600)
    member_token = create_access_token(member_id, MEMBER_EMAIL, "user", expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, admin_token, member_token

    user_store.close()


# ---------------------------------------------------------------------------
# Function-scoped fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def register_limiter(api_client) -> Generator[tuple[SlidingWindowRateLimiter, FakeClock], None, None]:
    """Install a fresh registration limiter driven by a FakeClock."""
    clock = FakeClock()
    fresh = SlidingWindowRateLimiter(limit=30, window_seconds=60.0, clock=clock)
    previous = app.state.register_limiter
    app.state.register_limiter = fresh
    yield fresh, clock
    app.state.register_limiter = previous


@pytest.fixture(autouse=True)
def _reset_login_limiter() -> Generator[None, None, None]:
    """Clear slowapi counters so login tests don't throttle each other."""
    limiter.reset()
    yield
    limiter.reset()
