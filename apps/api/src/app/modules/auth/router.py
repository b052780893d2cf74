"""
Authentication Router

Endpoints:
- POST /auth/register - Student self-registration (rate limited)
- POST /auth/login - Email/password login (rate limited)
- POST /auth/change-password - Change password; revokes earlier tokens
"""

from fastapi import APIRouter, Depends, Request, status

from app.core.auth import CurrentUser, get_current_user
from app.core.config import settings
from app.core.rate_limit import client_key, enforce_rate_limit
from app.modules.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
)
from app.modules.users.schemas import UserResponse
from app.modules.users.service import AccountService, get_account_service

router = APIRouter()


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    request: Request,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """
    Register a student account and return an access token.

    Raises:
        409 EMAIL_ALREADY_EXISTS: Email already registered
        429 RATE_LIMIT_EXCEEDED: Too many attempts from this client
    """
    await enforce_rate_limit(
        client_key(request, "register"),
        settings.login_rate_limit,
        settings.login_rate_limit_window_seconds,
    )

    user, token = await accounts.register(
        name=data.name,
        email=data.email,
        password=data.password,
        student_number=data.student_number,
        department=data.department,
    )
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: LoginRequest,
    request: Request,
    accounts: AccountService = Depends(get_account_service),
) -> AuthResponse:
    """
    Authenticate user and return an access token.

    Raises:
        401 INVALID_CREDENTIALS: Unknown email or wrong password
        403 ACCOUNT_INACTIVE: Account deactivated
        429 RATE_LIMIT_EXCEEDED: Too many attempts for this client and email
    """
    await enforce_rate_limit(
        client_key(request, "login", credentials.email),
        settings.login_rate_limit,
        settings.login_rate_limit_window_seconds,
    )

    user, token = await accounts.login(credentials.email, credentials.password)
    return AuthResponse(access_token=token, user=UserResponse.model_validate(user))


@router.post("/change-password", response_model=TokenResponse)
async def change_password(
    data: ChangePasswordRequest,
    user: CurrentUser = Depends(get_current_user),
    accounts: AccountService = Depends(get_account_service),
) -> TokenResponse:
    """Change the caller's password. Every previously issued token stops working."""
    token = await accounts.change_password(user, data.current_password, data.new_password)
    return TokenResponse(access_token=token)
