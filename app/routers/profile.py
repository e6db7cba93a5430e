from fastapi import APIRouter, Depends

from app.crud import profile_crud
from app.deps import CurrentUser, get_current_user
from app.schemas import ProfileResponse, ProfileUpdate, ProvisionRequest

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("/provision", response_model=ProfileResponse)
async def provision_profile(
    payload: ProvisionRequest | None = None,
    current_user: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    """
    Called once after the identity provider registers a user.
    Creates the profile and the default role; safe to call again.
    """
    full_name = payload.full_name if payload else None
    return await profile_crud.provision(current_user.id, current_user.email, full_name)


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    current_user: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    return await profile_crud.get_profile(current_user)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    payload: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
) -> ProfileResponse:
    return await profile_crud.update_profile(current_user, payload)
