from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.crud import booking_crud
from app.deps import (
    CurrentUser,
    NotificationsClient,
    get_current_user,
    get_notifications_client,
)
from app.schemas import (
    BookingCreate,
    BookingEnriched,
    BookingFilters,
    BookingResponse,
    BookingStatusUpdate,
    DashboardStats,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def submit_booking(
    payload: BookingCreate,
    current_user: CurrentUser = Depends(get_current_user),
    notifications: NotificationsClient = Depends(get_notifications_client),
) -> BookingResponse:
    booking = await booking_crud.submit(current_user, payload)
    await notifications.booking_requested(booking, current_user)
    return booking


@router.get("/mine", response_model=list[BookingEnriched])
async def list_my_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[BookingEnriched]:
    return await booking_crud.list_for_requester(current_user, filters)


@router.get("/managed", response_model=list[BookingEnriched])
async def list_managed_bookings(
    filters: BookingFilters = Depends(),
    current_user: CurrentUser = Depends(get_current_user),
) -> list[BookingEnriched]:
    """Bookings on the caller's listings; admins see every booking."""
    return await booking_crud.list_for_owner_or_admin(current_user, filters)


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    current_user: CurrentUser = Depends(get_current_user),
) -> DashboardStats:
    return await booking_crud.dashboard_stats(current_user)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> BookingResponse:
    return await booking_crud.get_booking(current_user, booking_id)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def decide_booking(
    booking_id: UUID,
    payload: BookingStatusUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    notifications: NotificationsClient = Depends(get_notifications_client),
) -> BookingResponse:
    # Notification failure does not roll back the decision.
    booking = await booking_crud.decide(current_user, booking_id, payload)
    await notifications.booking_decided(booking, current_user)
    return booking
