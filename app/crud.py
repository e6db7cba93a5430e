from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from loguru import logger
from tortoise import timezone
from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from app.cache import invalidate_role_cache
from app.errors import Conflict, InvalidTransition, NotFound, ValidationError
from app.models import Booking, BookingStatus, Listing, Profile, UserRole
from app.policy import Action, Resource, authorize, is_allowed
from app.roles import Role, effective_role
from app.schemas import (
    BookingCreate,
    BookingEnriched,
    BookingFilters,
    BookingResponse,
    BookingStatusUpdate,
    DashboardStats,
    ListingCreate,
    ListingFilters,
    ListingResponse,
    ListingUpdate,
    ProfileResponse,
    ProfileUpdate,
    UserRolesResponse,
)

if TYPE_CHECKING:
    from app.deps import CurrentUser

_DECISIONS = {BookingStatus.ACCEPTED, BookingStatus.REJECTED}
_REQUIRED_LISTING_FIELDS = ("type", "title", "price", "location")

_BOOKING_FIELDS = (
    "id",
    "listing_id",
    "user_id",
    "check_in",
    "check_out",
    "guests",
    "total_price",
    "status",
    "special_requests",
    "admin_notes",
    "created_at",
    "updated_at",
)


def booking_total(price: Decimal, check_in: date, check_out: date) -> Decimal:
    """
    Whole days between check-in and check-out times the listing price.

    Every listing type is billed per day, trips included.
    """
    days = (check_out - check_in).days
    return (Decimal(price) * days).quantize(Decimal("0.01"))


def _booking_response(inst: Booking) -> BookingResponse:
    """Requires inst.listing to be loaded (select_related or assigned on create)."""
    data = {name: getattr(inst, name) for name in _BOOKING_FIELDS}
    return BookingResponse(**data, listing_owner_id=inst.listing.owner_id)


@dataclass(frozen=True)
class _BookingDraft:
    """Policy target for a booking that is not persisted yet."""

    user_id: UUID
    listing_owner_id: UUID


# ---------------------------------------------------------------------------
# Role store
# ---------------------------------------------------------------------------


class RoleCRUD:
    async def roles_for(self, user_id: UUID) -> list[Role]:
        rows = await UserRole.filter(user_id=user_id).values_list("role", flat=True)
        return sorted((Role(r) for r in rows), key=lambda r: r.priority)

    async def effective_role(self, user_id: UUID) -> Role:
        return effective_role(await self.roles_for(user_id))

    async def assign_default_role(self, user_id: UUID) -> None:
        """Give a freshly registered user the plain ``user`` role. Idempotent."""
        _, created = await UserRole.get_or_create(user_id=user_id, role=Role.USER)
        if created:
            logger.info("Default role assigned: user_id={}", user_id)

    async def _snapshot(self, user_id: UUID) -> UserRolesResponse:
        roles = await self.roles_for(user_id)
        return UserRolesResponse(
            user_id=user_id, roles=roles, effective_role=effective_role(roles)
        )

    async def list_roles(self, actor: CurrentUser, user_id: UUID) -> UserRolesResponse:
        authorize(actor, Resource.ROLE_ASSIGNMENT, Action.READ, user_id)
        return await self._snapshot(user_id)

    async def assign_role(
        self, actor: CurrentUser, user_id: UUID, role: Role
    ) -> UserRolesResponse:
        authorize(actor, Resource.ROLE_ASSIGNMENT, Action.MANAGE, user_id)
        _, created = await UserRole.get_or_create(user_id=user_id, role=role)
        if created:
            logger.info(
                "Role {} assigned to user_id={} by {}", role, user_id, actor.id
            )
        await invalidate_role_cache(user_id)
        return await self._snapshot(user_id)

    async def revoke_role(
        self, actor: CurrentUser, user_id: UUID, role: Role
    ) -> UserRolesResponse:
        authorize(actor, Resource.ROLE_ASSIGNMENT, Action.MANAGE, user_id)
        deleted = await UserRole.filter(user_id=user_id, role=role).delete()
        if not deleted:
            raise NotFound(f"User does not hold the '{role}' role")
        logger.info("Role {} revoked from user_id={} by {}", role, user_id, actor.id)
        await invalidate_role_cache(user_id)
        return await self._snapshot(user_id)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


class ProfileCRUD:
    async def provision(
        self, user_id: UUID, email: str, full_name: str | None = None
    ) -> ProfileResponse:
        """
        Post-registration hook: one profile and the default role per user.
        Both rows are written in one transaction; repeated calls are no-ops.
        """
        async with in_transaction():
            inst, created = await Profile.get_or_create(
                user_id=user_id,
                defaults={"email": email, "full_name": full_name or "User"},
            )
            if created:
                await role_crud.assign_default_role(user_id)

        if created:
            logger.info("Profile provisioned: user_id={}", user_id)
        return ProfileResponse.model_validate(inst, from_attributes=True)

    async def _get_own(self, user: CurrentUser) -> Profile:
        inst = await Profile.get_or_none(user_id=user.id)
        if inst is None or not is_allowed(user, Resource.PROFILE, Action.READ, inst):
            raise NotFound("Profile not found")
        return inst

    async def get_profile(self, user: CurrentUser) -> ProfileResponse:
        inst = await self._get_own(user)
        return ProfileResponse.model_validate(inst, from_attributes=True)

    async def update_profile(
        self, user: CurrentUser, payload: ProfileUpdate
    ) -> ProfileResponse:
        inst = await self._get_own(user)
        authorize(user, Resource.PROFILE, Action.WRITE, inst)

        data = payload.model_dump(exclude_unset=True)
        if data.get("full_name", "") is None:
            raise ValidationError("full_name cannot be empty")
        inst.update_from_dict(data)
        await inst.save()
        return ProfileResponse.model_validate(inst, from_attributes=True)


# ---------------------------------------------------------------------------
# Listing registry
# ---------------------------------------------------------------------------


class ListingCRUD:
    def _visible(
        self, user: CurrentUser | None, rows: list[Listing]
    ) -> list[ListingResponse]:
        return [
            ListingResponse.model_validate(r, from_attributes=True)
            for r in rows
            if is_allowed(user, Resource.LISTING, Action.READ, r)
        ]

    async def create_listing(
        self, user: CurrentUser, payload: ListingCreate
    ) -> ListingResponse:
        authorize(user, Resource.LISTING, Action.CREATE)
        inst = await Listing.create(
            owner_id=user.id, is_active=True, **payload.model_dump()
        )
        logger.info("Listing created: id={} owner_id={}", inst.id, user.id)
        return ListingResponse.model_validate(inst, from_attributes=True)

    async def list_active(
        self, filters: ListingFilters, user: CurrentUser | None = None
    ) -> list[ListingResponse]:
        qs = Listing.filter(is_active=True)

        if filters.type is not None:
            qs = qs.filter(type=filters.type)
        if filters.search:
            qs = qs.filter(
                Q(title__icontains=filters.search)
                | Q(location__icontains=filters.search)
            )

        qs = qs.order_by("-created_at")
        if filters.page_size is not None:
            qs = qs.offset((filters.page - 1) * filters.page_size).limit(filters.page_size)
        return self._visible(user, await qs)

    async def list_for_owner(
        self, user: CurrentUser, owner_id: UUID | None = None
    ) -> list[ListingResponse]:
        """All of an owner's listings, active or not. Other owners: admin only."""
        owner_id = owner_id or user.id
        authorize(user, Resource.LISTING, Action.LIST_OWNED, owner_id)

        rows = await Listing.filter(owner_id=owner_id).order_by("-created_at")
        return self._visible(user, rows)

    async def _get_readable(
        self, user: CurrentUser | None, listing_id: UUID
    ) -> Listing:
        inst = await Listing.get_or_none(id=listing_id)
        if inst is None or not is_allowed(user, Resource.LISTING, Action.READ, inst):
            raise NotFound("Listing not found")
        return inst

    async def get_listing(
        self, user: CurrentUser | None, listing_id: UUID
    ) -> ListingResponse:
        inst = await self._get_readable(user, listing_id)
        return ListingResponse.model_validate(inst, from_attributes=True)

    async def update_listing(
        self, user: CurrentUser, listing_id: UUID, payload: ListingUpdate
    ) -> ListingResponse:
        inst = await self._get_readable(user, listing_id)
        authorize(user, Resource.LISTING, Action.WRITE, inst)

        data = payload.model_dump(exclude_unset=True)
        cleared = [f for f in _REQUIRED_LISTING_FIELDS if f in data and data[f] is None]
        if cleared:
            raise ValidationError(f"Required fields cannot be empty: {', '.join(cleared)}")

        available_from = data.get("available_from", inst.available_from)
        available_to = data.get("available_to", inst.available_to)
        if available_from and available_to and available_from > available_to:
            raise ValidationError("available_from must be on or before available_to")

        inst.update_from_dict(data)
        await inst.save()
        logger.info("Listing updated: id={} by {}", listing_id, user.id)
        return ListingResponse.model_validate(inst, from_attributes=True)

    async def deactivate(self, user: CurrentUser, listing_id: UUID) -> ListingResponse:
        """Hide a listing from public views. Listings are never hard-deleted."""
        inst = await self._get_readable(user, listing_id)
        authorize(user, Resource.LISTING, Action.WRITE, inst)

        inst.is_active = False
        await inst.save()
        logger.info("Listing deactivated: id={} by {}", listing_id, user.id)
        return ListingResponse.model_validate(inst, from_attributes=True)


# ---------------------------------------------------------------------------
# Booking lifecycle
# ---------------------------------------------------------------------------


class BookingCRUD:
    async def _load(self, booking_id: UUID) -> Booking | None:
        return (
            await Booking.filter(id=booking_id).select_related("listing").first()
        )

    async def _get_readable(
        self, user: CurrentUser, booking_id: UUID
    ) -> BookingResponse:
        inst = await self._load(booking_id)
        if inst is None:
            raise NotFound("Booking not found")
        booking = _booking_response(inst)
        if not is_allowed(user, Resource.BOOKING, Action.READ, booking):
            raise NotFound("Booking not found")
        return booking

    async def submit(self, user: CurrentUser, payload: BookingCreate) -> BookingResponse:
        """
        Request a booking. Validation and pricing happen before the single
        insert, so a rejected request never leaves a row behind.
        No overlap check is made against other bookings for the listing.
        """
        listing = await Listing.get_or_none(id=payload.listing_id, is_active=True)
        if listing is None:
            raise NotFound("Listing not found")

        if payload.guests < 1:
            raise ValidationError("At least one guest is required")
        if listing.max_guests is not None and payload.guests > listing.max_guests:
            raise ValidationError(
                f"This listing accepts at most {listing.max_guests} guests"
            )

        total_price = booking_total(listing.price, payload.check_in, payload.check_out)

        authorize(
            user,
            Resource.BOOKING,
            Action.CREATE,
            _BookingDraft(user_id=user.id, listing_owner_id=listing.owner_id),
        )

        inst = await Booking.create(
            user_id=user.id,
            listing=listing,
            check_in=payload.check_in,
            check_out=payload.check_out,
            guests=payload.guests,
            total_price=total_price,
            status=BookingStatus.PENDING,
            special_requests=payload.special_requests,
        )
        logger.info(
            "Booking submitted: id={} listing_id={} user_id={} total={}",
            inst.id,
            listing.id,
            user.id,
            total_price,
        )
        return _booking_response(inst)

    async def get_booking(self, user: CurrentUser, booking_id: UUID) -> BookingResponse:
        return await self._get_readable(user, booking_id)

    async def decide(
        self,
        user: CurrentUser,
        booking_id: UUID,
        payload: BookingStatusUpdate,
    ) -> BookingResponse:
        """
        Accept or reject a pending booking (listing owner or admin only).

        The write is a conditional update on status = 'pending'; when another
        request decided the booking first, zero rows match and Conflict is raised.
        """
        current = await self._get_readable(user, booking_id)
        authorize(user, Resource.BOOKING, Action.UPDATE_STATUS, current)

        if current.status != BookingStatus.PENDING:
            raise InvalidTransition(
                f"Cannot transition from '{current.status}' to '{payload.status}'. "
                "Decided bookings are final."
            )
        if payload.status not in _DECISIONS:
            raise ValidationError(
                f"A booking can only be decided as {sorted(s.value for s in _DECISIONS)}"
            )

        fields: dict = {"status": payload.status, "updated_at": timezone.now()}
        if payload.admin_notes is not None:
            fields["admin_notes"] = payload.admin_notes

        updated = await Booking.filter(
            id=booking_id, status=BookingStatus.PENDING
        ).update(**fields)
        if not updated:
            logger.warning("Concurrent decision lost: booking_id={}", booking_id)
            raise Conflict("Booking was decided by another request")

        logger.info(
            "Booking {} {} by user_id={}", booking_id, payload.status, user.id
        )
        inst = await self._load(booking_id)
        if inst is None:
            raise NotFound("Booking not found")
        return _booking_response(inst)

    async def _enrich(self, rows: list[Booking]) -> list[BookingEnriched]:
        """Join listing summary and requester display info onto each booking."""
        if not rows:
            return []

        requester_ids = {r.user_id for r in rows}
        profiles = await Profile.filter(user_id__in=list(requester_ids))
        profile_map = {p.user_id: p for p in profiles}

        result = []
        for r in rows:
            profile = profile_map.get(r.user_id)
            result.append(
                BookingEnriched(
                    **_booking_response(r).model_dump(),
                    listing_title=r.listing.title,
                    listing_type=r.listing.type,
                    listing_location=r.listing.location,
                    listing_image_url=r.listing.image_url,
                    requester_full_name=profile.full_name if profile else None,
                    requester_email=profile.email if profile else None,
                )
            )
        return result

    async def _visible(
        self, user: CurrentUser, qs, filters: BookingFilters
    ) -> list[BookingEnriched]:
        if filters.status is not None:
            qs = qs.filter(status=filters.status)

        offset = (filters.page - 1) * filters.page_size
        rows = await (
            qs.select_related("listing")
            .order_by("-created_at")
            .offset(offset)
            .limit(filters.page_size)
        )
        allowed = [
            r
            for r in rows
            if is_allowed(user, Resource.BOOKING, Action.READ, _booking_response(r))
        ]
        return await self._enrich(allowed)

    async def list_for_requester(
        self, user: CurrentUser, filters: BookingFilters
    ) -> list[BookingEnriched]:
        return await self._visible(user, Booking.filter(user_id=user.id), filters)

    async def list_for_owner_or_admin(
        self, user: CurrentUser, filters: BookingFilters
    ) -> list[BookingEnriched]:
        """Bookings on the caller's listings, or every booking for an admin."""
        qs = Booking.all()
        if not user.is_admin:
            qs = qs.filter(listing__owner_id=user.id)
        return await self._visible(user, qs, filters)

    async def dashboard_stats(self, user: CurrentUser) -> DashboardStats:
        authorize(user, Resource.DASHBOARD, Action.READ)

        listings_qs = Listing.all()
        bookings_qs = Booking.all().select_related("listing")
        if not user.is_admin:
            listings_qs = listings_qs.filter(owner_id=user.id)
            bookings_qs = bookings_qs.filter(listing__owner_id=user.id)

        listings = [
            r
            for r in await listings_qs
            if is_allowed(user, Resource.LISTING, Action.READ, r)
        ]
        bookings = [
            b
            for b in map(_booking_response, await bookings_qs)
            if is_allowed(user, Resource.BOOKING, Action.READ, b)
        ]

        return DashboardStats(
            total_listings=len(listings),
            total_bookings=len(bookings),
            pending_bookings=sum(
                1 for b in bookings if b.status == BookingStatus.PENDING
            ),
            total_revenue=sum((b.total_price for b in bookings), Decimal("0")),
        )


role_crud = RoleCRUD()
profile_crud = ProfileCRUD()
listing_crud = ListingCRUD()
booking_crud = BookingCRUD()
