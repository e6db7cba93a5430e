from uuid import UUID

from fastapi import APIRouter, Depends, status

from app.crud import listing_crud
from app.deps import CurrentUser, get_current_user, get_optional_user
from app.schemas import ListingCreate, ListingFilters, ListingResponse, ListingUpdate

router = APIRouter(prefix="/listings", tags=["listings"])


@router.get("/", response_model=list[ListingResponse])
async def list_active_listings(
    filters: ListingFilters = Depends(),
    current_user: CurrentUser | None = Depends(get_optional_user),
) -> list[ListingResponse]:
    """Public catalogue: active listings only, newest first."""
    return await listing_crud.list_active(filters, current_user)


@router.get("/mine", response_model=list[ListingResponse])
async def list_my_listings(
    owner_id: UUID | None = None,
    current_user: CurrentUser = Depends(get_current_user),
) -> list[ListingResponse]:
    """Owner dashboard: active and inactive listings. Admins may pass owner_id."""
    return await listing_crud.list_for_owner(current_user, owner_id)


@router.post("/", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    payload: ListingCreate,
    current_user: CurrentUser = Depends(get_current_user),
) -> ListingResponse:
    return await listing_crud.create_listing(current_user, payload)


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: UUID,
    current_user: CurrentUser | None = Depends(get_optional_user),
) -> ListingResponse:
    return await listing_crud.get_listing(current_user, listing_id)


@router.patch("/{listing_id}", response_model=ListingResponse)
async def update_listing(
    listing_id: UUID,
    payload: ListingUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> ListingResponse:
    return await listing_crud.update_listing(current_user, listing_id, payload)


@router.post("/{listing_id}/deactivate", response_model=ListingResponse)
async def deactivate_listing(
    listing_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> ListingResponse:
    return await listing_crud.deactivate(current_user, listing_id)
