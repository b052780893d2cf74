"""Authentication module."""

from app.modules.auth.router import router
from app.modules.auth.schemas import AuthResponse, LoginRequest, RegisterRequest, TokenResponse

__all__ = ["router", "AuthResponse", "LoginRequest", "RegisterRequest", "TokenResponse"]
