from dataclasses import dataclass
from functools import lru_cache
from uuid import UUID

import httpx
from fastapi import Header, HTTPException, status
from loguru import logger

from app import settings
from app.cache import get_role_cache, set_role_cache
from app.crud import role_crud
from app.roles import Role
from app.schemas import BookingResponse


@dataclass(frozen=True)
class CurrentUser:
    """
    The authenticated principal for one request.

    Passed explicitly into every CRUD call so the policy engine never reads
    an ambient "current user".
    """

    id: UUID
    email: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def _parse_user_id(raw: str) -> UUID:
    try:
        return UUID(raw)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None


async def resolve_role(user_id: UUID) -> Role:
    """Effective role from the Redis cache, falling back to the role store."""
    cached = await get_role_cache(user_id)
    if cached is not None and cached.role is not None:
        logger.debug("Cache hit for role: user_id={}", user_id)
        return cached.role

    logger.debug("Cache miss for role: user_id={}", user_id)
    role = await role_crud.effective_role(user_id)
    if cached is not None:
        await set_role_cache(user_id, role, cached.generation)
    return role


async def get_current_user(
    x_user_id: str = Header(...),
    x_user_email: str = Header(...),
) -> CurrentUser:
    """
    Reads the headers injected by the gateway after the identity provider
    verified the caller. The token is never seen here; we trust these headers.
    """
    user_id = _parse_user_id(x_user_id)
    role = await resolve_role(user_id)
    return CurrentUser(id=user_id, email=x_user_email, role=role)


async def get_optional_user(
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
) -> CurrentUser | None:
    """Same as get_current_user, but anonymous callers get None instead of 422."""
    if not x_user_id:
        return None
    user_id = _parse_user_id(x_user_id)
    role = await resolve_role(user_id)
    return CurrentUser(id=user_id, email=x_user_email or "", role=role)


# ---------------------------------------------------------------------------
# NotificationsClient: thin async wrapper around notifications-ms
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_notifications_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.notifications_ms_url,
        timeout=httpx.Timeout(5.0),
        follow_redirects=True,
    )


class NotificationsClient:
    """
    Thin async wrapper around the notifications-ms internal API.
    Tells listing owners about new requests and requesters about decisions.
    Failures are logged and swallowed: a lost email must not undo a booking.
    """

    @property
    def _client(self) -> httpx.AsyncClient:
        return _get_notifications_http_client()

    def _headers(self, user: CurrentUser) -> dict[str, str]:
        return {
            "X-User-Id": str(user.id),
            "X-User-Email": user.email,
        }

    async def _send(self, event: str, payload: dict, caller: CurrentUser) -> bool:
        try:
            resp = await self._client.post(
                "/notifications",
                json={"event": event, "payload": payload},
                headers=self._headers(caller),
            )
        except httpx.RequestError:
            logger.warning("Notification {} failed", event, exc_info=True)
            return False
        if resp.status_code >= 400:
            logger.warning(
                "notifications-ms returned {} for {}", resp.status_code, event
            )
            return False
        return True

    async def booking_requested(
        self, booking: BookingResponse, caller: CurrentUser
    ) -> bool:
        """Notify the listing owner that a new request is waiting."""
        return await self._send(
            "booking.requested",
            {
                "booking_id": str(booking.id),
                "listing_id": str(booking.listing_id),
                "recipient_id": str(booking.listing_owner_id),
            },
            caller,
        )

    async def booking_decided(
        self, booking: BookingResponse, caller: CurrentUser
    ) -> bool:
        """Notify the requester that their booking was accepted or rejected."""
        return await self._send(
            "booking.decided",
            {
                "booking_id": str(booking.id),
                "status": booking.status.value,
                "recipient_id": str(booking.user_id),
            },
            caller,
        )


_notifications_client = NotificationsClient()


def get_notifications_client() -> NotificationsClient:
    return _notifications_client
