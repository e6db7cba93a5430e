from uuid import UUID

from fastapi import APIRouter, Depends

from app.crud import role_crud
from app.deps import CurrentUser, get_current_user
from app.roles import ROLE_DESCRIPTIONS, Role
from app.schemas import RoleAssignment, RoleInfo, UserRolesResponse

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("/", response_model=list[RoleInfo])
async def list_role_catalogue() -> list[RoleInfo]:
    """Every assignable role, highest priority first, for role pickers."""
    return [
        RoleInfo(role=r, priority=r.priority, description=ROLE_DESCRIPTIONS[r])
        for r in sorted(Role, key=lambda r: r.priority)
    ]


@router.get("/{user_id}", response_model=UserRolesResponse)
async def list_roles(
    user_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
) -> UserRolesResponse:
    return await role_crud.list_roles(current_user, user_id)


@router.post("/", response_model=UserRolesResponse)
async def assign_role(
    payload: RoleAssignment,
    current_user: CurrentUser = Depends(get_current_user),
) -> UserRolesResponse:
    return await role_crud.assign_role(current_user, payload.user_id, payload.role)


@router.delete("/{user_id}/{role}", response_model=UserRolesResponse)
async def revoke_role(
    user_id: UUID,
    role: Role,
    current_user: CurrentUser = Depends(get_current_user),
) -> UserRolesResponse:
    return await role_crud.revoke_role(current_user, user_id, role)
