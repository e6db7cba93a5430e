from enum import StrEnum

from tortoise import fields
from tortoise.models import Model

from app.roles import Role


class ListingType(StrEnum):
    HOTEL = "hotel"
    TRIP = "trip"
    CAR = "car"


class BookingStatus(StrEnum):
    PENDING = "pending"  # just requested, awaiting the listing owner
    ACCEPTED = "accepted"  # owner or admin approved
    REJECTED = "rejected"  # owner or admin refused


class TimestampedModel(Model):
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:  # type: ignore
        abstract = True


class Profile(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    user_id = fields.UUIDField(unique=True)  # identity-provider principal
    full_name = fields.CharField(max_length=200, default="User")
    email = fields.CharField(max_length=320)
    phone = fields.CharField(max_length=30, null=True)

    class Meta:  # type: ignore
        table = "profiles"


class UserRole(Model):
    id = fields.UUIDField(primary_key=True)
    user_id = fields.UUIDField(db_index=True)
    role = fields.CharEnumField(Role, default=Role.USER)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:  # type: ignore
        table = "user_roles"
        unique_together = (("user_id", "role"),)


class Listing(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    owner_id = fields.UUIDField(db_index=True)

    type = fields.CharEnumField(ListingType)
    title = fields.CharField(max_length=255)
    description = fields.TextField(null=True)
    price = fields.DecimalField(max_digits=10, decimal_places=2)
    location = fields.CharField(max_length=255)
    image_url = fields.CharField(max_length=2048, null=True)
    amenities = fields.JSONField(null=True)  # ordered list of tags

    available_from = fields.DateField(null=True)
    available_to = fields.DateField(null=True)
    max_guests = fields.IntField(null=True)

    is_active = fields.BooleanField(default=True)

    class Meta:  # type: ignore
        table = "listings"
        ordering = ["-created_at"]


class Booking(TimestampedModel):
    id = fields.UUIDField(primary_key=True)
    user_id = fields.UUIDField(db_index=True)  # the requester
    listing: fields.ForeignKeyRelation[Listing] = fields.ForeignKeyField(
        "models.Listing", related_name="bookings", on_delete=fields.CASCADE
    )

    check_in = fields.DateField()
    check_out = fields.DateField()
    guests = fields.IntField(default=1)

    total_price = fields.DecimalField(max_digits=10, decimal_places=2)  # computed
    status = fields.CharEnumField(BookingStatus, default=BookingStatus.PENDING)

    special_requests = fields.TextField(null=True)
    admin_notes = fields.TextField(null=True)  # owner / admin only

    class Meta:  # type: ignore
        table = "bookings"
        ordering = ["-created_at"]
