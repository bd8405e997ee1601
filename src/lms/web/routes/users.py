"""User and account endpoints."""

from fastapi import APIRouter, Depends, Header, Query, status

from lms.core import accounts
from lms.db.profiles_repository import ProfileRecord
from lms.web.dependencies import USER_HEADER, get_current_user, require_admin
from lms.web.schemas import ProfileUpdate, UserListResponse, UserRegister, UserResponse

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: UserRegister,
    x_user_id: str | None = Header(default=None, alias=USER_HEADER),
) -> UserResponse:
    """Create the profile for a newly signed-up identity.

    Instructors start pending until an admin approves them.
    """
    user = accounts.register_user(body.email, body.full_name, role=body.role, user_id=x_user_id)
    return UserResponse.model_validate(user)


@router.get("/me", response_model=UserResponse)
async def get_me(user: ProfileRecord = Depends(get_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)


@router.patch("/me", response_model=UserResponse)
async def update_me(
    body: ProfileUpdate,
    user: ProfileRecord = Depends(get_current_user),
) -> UserResponse:
    return UserResponse.model_validate(accounts.update_profile(user, body.full_name))


@router.get("", response_model=UserListResponse)
async def list_users(
    role: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    admin: ProfileRecord = Depends(require_admin),
) -> UserListResponse:
    """List users (admin)."""
    users = [UserResponse.model_validate(u) for u in accounts.list_users(role=role, status=status_filter)]
    return UserListResponse(users=users, count=len(users))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, admin: ProfileRecord = Depends(require_admin)) -> UserResponse:
    return UserResponse.model_validate(accounts.get_user(user_id))


@router.post("/{user_id}/approve", response_model=UserResponse)
async def approve_user(user_id: str, admin: ProfileRecord = Depends(require_admin)) -> UserResponse:
    return UserResponse.model_validate(accounts.approve_user(admin, user_id))


@router.post("/{user_id}/reject", response_model=UserResponse)
async def reject_user(user_id: str, admin: ProfileRecord = Depends(require_admin)) -> UserResponse:
    return UserResponse.model_validate(accounts.reject_user(admin, user_id))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: str, admin: ProfileRecord = Depends(require_admin)) -> None:
    accounts.delete_user(admin, user_id)
