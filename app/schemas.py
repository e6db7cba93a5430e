from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models import BookingStatus, ListingType
from app.roles import Role


def _normalize_amenities(tags: list[str] | None) -> list[str] | None:
    """Trim tags, drop blanks and duplicates while keeping the original order."""
    if tags is None:
        return None
    seen: list[str] = []
    for tag in tags:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen or None


def _check_window(available_from: date | None, available_to: date | None) -> None:
    if available_from and available_to and available_from > available_to:
        raise ValueError("available_from must be on or before available_to")


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


class ListingCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    type: ListingType
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    location: str = Field(min_length=1, max_length=255)
    image_url: str | None = Field(default=None, max_length=2048)
    amenities: list[str] | None = None
    available_from: date | None = None
    available_to: date | None = None
    max_guests: int | None = Field(default=None, gt=0)

    @field_validator("amenities", mode="after")
    @classmethod
    def clean_amenities(cls, v: list[str] | None) -> list[str] | None:
        return _normalize_amenities(v)

    @model_validator(mode="after")
    def validate_window(self) -> ListingCreate:
        _check_window(self.available_from, self.available_to)
        return self


class ListingUpdate(BaseModel):
    """Partial update; the merged availability window is re-checked in CRUD."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: ListingType | None = None
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    location: str | None = Field(default=None, min_length=1, max_length=255)
    image_url: str | None = Field(default=None, max_length=2048)
    amenities: list[str] | None = None
    available_from: date | None = None
    available_to: date | None = None
    max_guests: int | None = Field(default=None, gt=0)

    @field_validator("amenities", mode="after")
    @classmethod
    def clean_amenities(cls, v: list[str] | None) -> list[str] | None:
        return _normalize_amenities(v)


class ListingResponse(BaseModel):
    id: UUID
    owner_id: UUID
    type: ListingType
    title: str
    description: str | None
    price: Decimal
    location: str
    image_url: str | None
    amenities: list[str] | None
    available_from: date | None
    available_to: date | None
    max_guests: int | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ListingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(ListingFilters)."""

    type: ListingType | None = None
    search: str | None = Field(default=None, max_length=255)

    # Pagination
    page: int = Field(default=1, ge=1)
    page_size: int | None = Field(default=None, ge=1, le=100)  # None returns every row


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    listing_id: UUID
    check_in: date
    check_out: date
    guests: int = 1
    special_requests: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def validate_date_range(self) -> BookingCreate:
        if self.check_out < self.check_in:
            raise ValueError("check_out must be on or after check_in")
        return self


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    admin_notes: str | None = Field(default=None, max_length=2000)


class BookingResponse(BaseModel):
    id: UUID
    listing_id: UUID
    listing_owner_id: UUID
    user_id: UUID
    check_in: date
    check_out: date
    guests: int
    total_price: Decimal
    status: BookingStatus
    special_requests: str | None
    admin_notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BookingEnriched(BookingResponse):
    listing_title: str | None = None
    listing_type: ListingType | None = None
    listing_location: str | None = None
    listing_image_url: str | None = None
    requester_full_name: str | None = None
    requester_email: str | None = None


class BookingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(BookingFilters)."""

    status: BookingStatus | None = None

    # Pagination
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class DashboardStats(BaseModel):
    total_listings: int
    total_bookings: int
    pending_bookings: int
    total_revenue: Decimal


# ---------------------------------------------------------------------------
# Profiles & roles
# ---------------------------------------------------------------------------


class ProvisionRequest(BaseModel):
    full_name: str | None = Field(default=None, max_length=200)


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    phone: str | None = Field(default=None, max_length=30)


class ProfileResponse(BaseModel):
    id: UUID
    user_id: UUID
    full_name: str
    email: str
    phone: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleAssignment(BaseModel):
    user_id: UUID
    role: Role


class RoleInfo(BaseModel):
    role: Role
    priority: int
    description: str


class UserRolesResponse(BaseModel):
    user_id: UUID
    roles: list[Role]
    effective_role: Role
