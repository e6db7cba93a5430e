"""
Tests for app/deps.py: get_current_user, role resolution and NotificationsClient.
These tests use the real dep functions (no overrides) to get coverage.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import httpx
from fastapi import Depends
from fastapi.testclient import TestClient

from app.cache import RoleCacheEntry
from app.deps import (
    NotificationsClient,
    get_current_user,
    get_notifications_client,
    resolve_role,
)
from app.roles import Role
from app.schemas import BookingResponse

from .factories import REQUESTER_ID, booking_response, make_subadmin, make_user

BOOKING_CRUD_PATH = "app.routers.booking.booking_crud"
LISTING_CRUD_PATH = "app.routers.listing.listing_crud"


def _headers(user_id=REQUESTER_ID, email="ana@example.com") -> dict[str, str]:
    return {"X-User-Id": str(user_id), "X-User-Email": email}


class TestGetCurrentUser:
    def test_valid_headers_authenticate(self, anon_app):
        with (
            patch("app.deps.resolve_role", AsyncMock(return_value=Role.USER)),
            patch(BOOKING_CRUD_PATH) as mock_crud,
        ):
            mock_crud.list_for_requester = AsyncMock(return_value=[])
            with TestClient(anon_app) as c:
                resp = c.get("/bookings/mine", headers=_headers())
        assert resp.status_code == 200
        user, _ = mock_crud.list_for_requester.call_args[0]
        assert user.id == REQUESTER_ID
        assert user.email == "ana@example.com"
        assert user.role is Role.USER

    def test_invalid_user_id_returns_401(self, anon_app):
        with TestClient(anon_app) as c:
            resp = c.get("/bookings/mine", headers=_headers(user_id="not-a-uuid"))
        assert resp.status_code == 401

    def test_missing_headers_returns_422(self, anon_app):
        with TestClient(anon_app) as c:
            resp = c.get("/bookings/mine")
        assert resp.status_code == 422

    def test_role_comes_from_role_store(self, anon_app):
        captured = {}

        async def _capture(user=Depends(get_current_user)):
            captured["user"] = user
            return []

        anon_app.add_api_route("/whoami", _capture)
        with patch("app.deps.resolve_role", AsyncMock(return_value=Role.SUBADMIN)):
            with TestClient(anon_app) as c:
                c.get("/whoami", headers=_headers())
        assert captured["user"].role is Role.SUBADMIN
        assert not captured["user"].is_admin


class TestGetOptionalUser:
    def test_anonymous_is_none(self, anon_app):
        with patch(LISTING_CRUD_PATH) as mock_crud:
            mock_crud.list_active = AsyncMock(return_value=[])
            with TestClient(anon_app) as c:
                c.get("/listings")
        _, user = mock_crud.list_active.call_args[0]
        assert user is None

    def test_identified_caller_is_resolved(self, anon_app):
        with (
            patch("app.deps.resolve_role", AsyncMock(return_value=Role.ADMIN)),
            patch(LISTING_CRUD_PATH) as mock_crud,
        ):
            mock_crud.list_active = AsyncMock(return_value=[])
            with TestClient(anon_app) as c:
                c.get("/listings", headers=_headers())
        _, user = mock_crud.list_active.call_args[0]
        assert user.is_admin


class TestResolveRole:
    def test_cache_hit_skips_role_store(self):
        with (
            patch(
                "app.deps.get_role_cache",
                AsyncMock(return_value=RoleCacheEntry(3, Role.ADMIN)),
            ),
            patch("app.deps.role_crud") as mock_roles,
        ):
            mock_roles.effective_role = AsyncMock()
            role = asyncio.run(resolve_role(REQUESTER_ID))
        assert role is Role.ADMIN
        mock_roles.effective_role.assert_not_awaited()

    def test_cache_miss_reads_store_and_fills_cache(self):
        set_cache = AsyncMock()
        with (
            patch(
                "app.deps.get_role_cache",
                AsyncMock(return_value=RoleCacheEntry(3, None)),
            ),
            patch("app.deps.set_role_cache", set_cache),
            patch("app.deps.role_crud") as mock_roles,
        ):
            mock_roles.effective_role = AsyncMock(return_value=Role.SUBADMIN)
            role = asyncio.run(resolve_role(REQUESTER_ID))
        assert role is Role.SUBADMIN
        set_cache.assert_awaited_once_with(REQUESTER_ID, Role.SUBADMIN, 3)

    def test_redis_down_falls_back_to_store_without_writing(self):
        set_cache = AsyncMock()
        with (
            patch("app.deps.get_role_cache", AsyncMock(return_value=None)),
            patch("app.deps.set_role_cache", set_cache),
            patch("app.deps.role_crud") as mock_roles,
        ):
            mock_roles.effective_role = AsyncMock(return_value=Role.USER)
            role = asyncio.run(resolve_role(REQUESTER_ID))
        assert role is Role.USER
        set_cache.assert_not_awaited()


class TestNotificationsClient:
    def _run_with_transport(self, handler, call):
        http_client = httpx.AsyncClient(
            base_url="http://notifications.test", transport=httpx.MockTransport(handler)
        )
        with patch("app.deps._get_notifications_http_client", return_value=http_client):
            return asyncio.run(call(NotificationsClient()))

    def test_same_instance_returned_each_time(self):
        assert get_notifications_client() is get_notifications_client()

    def test_headers_built_from_current_user(self):
        user = make_user()
        headers = NotificationsClient()._headers(user)
        assert headers["X-User-Id"] == str(user.id)
        assert headers["X-User-Email"] == user.email

    def test_booking_requested_targets_listing_owner(self):
        seen = {}
        booking = BookingResponse(**booking_response())

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.read()
            return httpx.Response(202)

        ok = self._run_with_transport(
            handler, lambda nc: nc.booking_requested(booking, make_user())
        )
        assert ok is True
        assert b"booking.requested" in seen["body"]
        assert str(booking.listing_owner_id).encode() in seen["body"]

    def test_booking_decided_returns_false_on_error_status(self):
        booking = BookingResponse(**booking_response(status="accepted"))
        ok = self._run_with_transport(
            lambda request: httpx.Response(503),
            lambda nc: nc.booking_decided(booking, make_subadmin()),
        )
        assert ok is False

    def test_network_error_is_swallowed(self):
        booking = BookingResponse(**booking_response())

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        ok = self._run_with_transport(
            handler, lambda nc: nc.booking_requested(booking, make_user())
        )
        assert ok is False
