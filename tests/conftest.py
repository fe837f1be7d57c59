"""
tests/conftest.py -- Shared test fixtures for VoidRunner.

This module provides:
  - FakeClock: a controllable clock injected into TokenManager so expiry tests
    never sleep
  - hasher / token_manager / store / service: unit-level collaborators
  - api_client: TestClient against the real FastAPI app with a patched
    lifespan that wires an in-memory store, a low-cost hasher and a
    TokenManager driven by a FakeClock

The DEBUG env var must be set before any api/core import so get_settings()
auto-generates JWT_SECRET in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any core import so get_settings() can
# auto-generate JWT_SECRET in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import MemoryCredentialStore
from auth.tokens import TokenManager
from core.config import get_settings

TEST_SECRET = "test-secret-0123456789abcdef0123456789abcdef"

# bcrypt's minimum cost factor -- keeps the suite fast.
TEST_ROUNDS = 4


class FakeClock:
    """Callable clock returning a settable epoch-seconds value."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_ROUNDS)


@pytest.fixture
def token_manager(clock: FakeClock) -> TokenManager:
    """TokenManager with a 60 second expiry driven by the fake clock."""
    return TokenManager(secret=TEST_SECRET, expire_seconds=60, clock=clock)


@pytest.fixture
def store() -> Generator[MemoryCredentialStore, None, None]:
    s = MemoryCredentialStore()
    yield s
    s.close()


@pytest.fixture
def service(store: MemoryCredentialStore, token_manager: TokenManager, hasher: PasswordHasher) -> AuthService:
    return AuthService(store=store, token_manager=token_manager, hasher=hasher)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the pre-built service and its collaborators into app.state so
    routes see the test doubles. The purge_task is a long-sleeping coroutine
    because shutdown calls .cancel() on a real asyncio.Task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.settings = get_settings()
        app.state.credential_store = service.store
        app.state.token_manager = service.token_manager
        app.state.auth_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, FakeClock], None, None]:
    """Yield (client, clock) for API integration tests.

    One TestClient per test module. The store is shared across the module's
    tests, so each test registers its own usernames.
    """
    clock = FakeClock()
    tokens = TokenManager(secret=TEST_SECRET, expire_seconds=3600, clock=clock)
    svc = AuthService(
        store=MemoryCredentialStore(),
        token_manager=tokens,
        hasher=PasswordHasher(rounds=TEST_ROUNDS),
    )

    app.router.lifespan_context = _patch_lifespan(svc)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, clock

    svc.store.close()
