"""
Access policy engine.

Every read or write performed by the CRUD layer is checked here, one row at a
time. Rules live in a single table keyed by (resource, action); each rule is a
predicate over the calling principal and the row it wants to touch.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from loguru import logger

from app.errors import PermissionDenied
from app.roles import LISTING_PUBLISHERS, Role

if TYPE_CHECKING:
    from app.deps import CurrentUser


class Resource(StrEnum):
    LISTING = "listing"
    BOOKING = "booking"
    ROLE_ASSIGNMENT = "role_assignment"
    PROFILE = "profile"
    DASHBOARD = "dashboard"


class Action(StrEnum):
    READ = "read"
    CREATE = "create"
    WRITE = "write"  # update / deactivate
    LIST_OWNED = "list_owned"
    UPDATE_STATUS = "update_status"
    MANAGE = "manage"


Predicate = Callable[["CurrentUser | None", Any], bool]


def _is_admin(user: CurrentUser | None) -> bool:
    return user is not None and user.role == Role.ADMIN


def _is(user: CurrentUser | None, principal_id: UUID | None) -> bool:
    return user is not None and principal_id is not None and user.id == principal_id


# Listing targets expose .owner_id / .is_active.
# Booking targets expose .user_id (requester) / .listing_owner_id.
# Owned-listing targets are the owner UUID being listed.
# Role-assignment targets are the UUID of the user whose roles are touched.
# Profile targets expose .user_id.
_POLICIES: dict[tuple[Resource, Action], Predicate] = {
    (Resource.LISTING, Action.READ): lambda u, t: (
        t.is_active or _is(u, t.owner_id) or _is_admin(u)
    ),
    (Resource.LISTING, Action.CREATE): lambda u, _: (
        u is not None and u.role in LISTING_PUBLISHERS
    ),
    (Resource.LISTING, Action.WRITE): lambda u, t: _is(u, t.owner_id) or _is_admin(u),
    (Resource.LISTING, Action.LIST_OWNED): lambda u, owner_id: (
        _is(u, owner_id) or _is_admin(u)
    ),
    (Resource.BOOKING, Action.READ): lambda u, t: (
        _is(u, t.user_id) or _is(u, t.listing_owner_id) or _is_admin(u)
    ),
    (Resource.BOOKING, Action.CREATE): lambda u, t: _is(u, t.user_id),
    (Resource.BOOKING, Action.UPDATE_STATUS): lambda u, t: (
        _is(u, t.listing_owner_id) or _is_admin(u)
    ),
    (Resource.ROLE_ASSIGNMENT, Action.READ): lambda u, t: _is(u, t) or _is_admin(u),
    (Resource.ROLE_ASSIGNMENT, Action.MANAGE): lambda u, _: _is_admin(u),
    (Resource.PROFILE, Action.READ): lambda u, t: _is(u, t.user_id),
    (Resource.PROFILE, Action.WRITE): lambda u, t: _is(u, t.user_id),
    (Resource.DASHBOARD, Action.READ): lambda u, _: (
        u is not None and u.role in LISTING_PUBLISHERS
    ),
}


def is_allowed(
    user: CurrentUser | None,
    resource: Resource,
    action: Action,
    target: Any = None,
) -> bool:
    """Evaluate the rule for (resource, action). Unknown pairs are denied."""
    predicate = _POLICIES.get((resource, action))
    if predicate is None:
        return False
    return bool(predicate(user, target))


def authorize(
    user: CurrentUser | None,
    resource: Resource,
    action: Action,
    target: Any = None,
) -> None:
    """Raise PermissionDenied unless the rule for (resource, action) holds."""
    if not is_allowed(user, resource, action, target):
        logger.info(
            "Denied {} {} for user_id={}",
            action,
            resource,
            user.id if user is not None else None,
        )
        raise PermissionDenied(f"Not allowed to {action} this {resource}")
