"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files: pytest discovers this by convention.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise

from app.deps import get_current_user, get_notifications_client, get_optional_user
from app.main import TORTOISE_MODULES
from app.routers import booking, listing, profile, role

from .factories import make_admin, make_subadmin, make_user

# ---------------------------------------------------------------------------
# Default no-op client mocks: prevent real HTTP calls in tests
# ---------------------------------------------------------------------------


def _noop_notifications_client():
    mock = MagicMock()
    mock.booking_requested = AsyncMock(return_value=True)
    mock.booking_decided = AsyncMock(return_value=True)
    return mock


def _bare_app() -> FastAPI:
    app = FastAPI()
    for module in (profile, role, listing, booking):
        app.include_router(module.router)
    return app


# ---------------------------------------------------------------------------
# App builder: used by all client fixtures
# ---------------------------------------------------------------------------


def build_app(current_user, notifications_client=None) -> FastAPI:
    """
    Fresh FastAPI app with the principal dependencies overridden to return
    `current_user` unconditionally (None means an anonymous caller).

    Pass `notifications_client` to inject a custom mock.
    """
    app = _bare_app()

    async def _user():
        return current_user

    app.dependency_overrides[get_current_user] = _user
    app.dependency_overrides[get_optional_user] = _user

    nc = (
        notifications_client
        if notifications_client is not None
        else _noop_notifications_client()
    )
    app.dependency_overrides[get_notifications_client] = lambda: nc

    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def user_client():
    return TestClient(build_app(make_user()), raise_server_exceptions=True)


@pytest.fixture()
def owner_client():
    return TestClient(build_app(make_subadmin()), raise_server_exceptions=True)


@pytest.fixture()
def admin_client():
    return TestClient(build_app(make_admin()), raise_server_exceptions=True)


@pytest.fixture()
def anon_client():
    """Caller without identity headers on routes that accept anonymous access."""
    return TestClient(build_app(None), raise_server_exceptions=True)


@pytest.fixture()
def anon_app():
    """
    Bare app with NO dependency overrides.
    Use this when you want the real header deps to run so you can assert 401/422.
    """
    return _bare_app()


@pytest.fixture()
def client_factory():
    def _make(current_user, notifications_client=None) -> TestClient:
        return TestClient(
            build_app(current_user, notifications_client=notifications_client),
            raise_server_exceptions=True,
        )

    return _make


# ---------------------------------------------------------------------------
# In-memory database for CRUD tests
# ---------------------------------------------------------------------------


@pytest.fixture()
def run_db():
    """
    Run an async scenario against a fresh in-memory SQLite schema.

    Redis is never touched: role-cache invalidation is patched out.
    """

    async def _with_db(scenario):
        await Tortoise.init(db_url="sqlite://:memory:", modules=TORTOISE_MODULES)
        await Tortoise.generate_schemas()
        try:
            return await scenario()
        finally:
            await Tortoise.close_connections()

    def _run(scenario):
        with patch("app.crud.invalidate_role_cache", AsyncMock()):
            return asyncio.run(_with_db(scenario))

    return _run
