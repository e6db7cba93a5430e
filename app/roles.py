from collections.abc import Iterable
from enum import StrEnum


class Role(StrEnum):
    ADMIN = "admin"  # manages every listing, booking and role assignment
    SUBADMIN = "subadmin"  # lists properties and decides bookings on them
    USER = "user"  # browses listings and requests bookings

    @property
    def priority(self) -> int:
        """Lower rank wins when a user holds several roles."""
        return ROLE_PRIORITY[self]


ROLE_PRIORITY: dict[Role, int] = {
    Role.ADMIN: 1,
    Role.SUBADMIN: 2,
    Role.USER: 3,
}

# Roles allowed to publish listings
LISTING_PUBLISHERS = frozenset({Role.ADMIN, Role.SUBADMIN})


ROLE_DESCRIPTIONS: dict[str, str] = {
    Role.ADMIN: "Manage all listings, bookings and role assignments.",
    Role.SUBADMIN: "Publish listings and accept or reject their bookings.",
    Role.USER: "Browse active listings and request bookings.",
}


def effective_role(roles: Iterable[Role | str]) -> Role:
    """
    Return the single role that governs a user's permissions.

    The highest-priority assignment wins (admin > subadmin > user).
    A user with no assignments is treated as a plain ``user``.
    """
    assigned = {Role(r) for r in roles}
    if not assigned:
        return Role.USER
    return min(assigned, key=lambda r: r.priority)
