"""
Users Router

Endpoints:
- GET /users/me - The caller's profile
- PATCH /users/me - Update the caller's profile
- GET /users - List users (admin)
- POST /users - Create a user of any role (admin)
- GET /users/{id} - User detail (admin)
- PUT /users/{id} - Update a user's profile (admin)
- PATCH /users/{id}/password - Reset a user's password (admin)
- PATCH /users/{id}/toggle-status - Activate / deactivate (admin)
- DELETE /users/{id} - Delete a student or coordinator (admin)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.auth import CurrentUser, get_current_user
from app.modules.users.models import UserRole, UserStatus
from app.modules.users.schemas import PasswordReset, UserCreate, UserResponse, UserUpdate
from app.modules.users.service import AccountService, get_account_service

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    return UserResponse.model_validate(await accounts.get_profile(user))


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: UserUpdate,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    updated = await accounts.update_profile(user, data.model_dump(exclude_unset=True))
    return UserResponse.model_validate(updated)


@router.get("", response_model=list[UserResponse])
async def list_users(
    role: UserRole | None = Query(None),
    status_filter: UserStatus | None = Query(None, alias="status"),
    q: str | None = Query(None),
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> list[UserResponse]:
    users = await accounts.list_users(user, role=role, status=status_filter, search=q)
    return [UserResponse.model_validate(u) for u in users]


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    created = await accounts.create_user(
        user,
        name=data.name,
        email=data.email,
        password=data.password,
        role=data.role,
        student_number=data.student_number,
        department=data.department,
    )
    return UserResponse.model_validate(created)


@router.patch("/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(
    user_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    return UserResponse.model_validate(await accounts.toggle_status(user, user_id))


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    return UserResponse.model_validate(await accounts.get_user(user, user_id))


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    data: UserUpdate,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    updated = await accounts.update_user(user, user_id, data.model_dump(exclude_unset=True))
    return UserResponse.model_validate(updated)


@router.patch("/{user_id}/password", response_model=UserResponse, summary="Reset Password")
async def reset_password(
    user_id: UUID,
    data: PasswordReset,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> UserResponse:
    return UserResponse.model_validate(
        await accounts.reset_password(user, user_id, data.new_password)
    )


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete User",
)
async def delete_user(
    user_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> Response:
    await accounts.delete_user(user, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
