"""
Authentication Module

Token issuance and verification plus the FastAPI dependencies that resolve
the calling user.

A token is accepted only when:
- its signature and expiry verify,
- it is an access token with a well-formed subject and revocation epoch,
- the subject still exists, and
- the token's epoch equals the user's current revocation epoch.

A password change bumps the epoch, so every token issued earlier fails with
TOKEN_REVOKED even though it has not expired.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.errors import (
    IdentityNotFoundError,
    MissingTokenError,
    TokenExpiredError,
    TokenMalformedError,
    TokenRevokedError,
)
from app.core.security import ACCESS_TOKEN_TYPE, create_access_token, decode_token
from app.modules.users.models import User, UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation. Missing credentials are turned
# into MISSING_TOKEN by get_current_user rather than FastAPI's default 403.
security = HTTPBearer(
    auto_error=False,
    description="JWT Bearer token for authentication",
)


@dataclass
class CurrentUser:
    """
    The authenticated caller.

    Built from the stored user record after the token has been verified, so
    role and status reflect the database, not stale token claims.
    """

    id: UUID
    email: str
    role: UserRole
    name: str | None = None
    revocation_epoch: int = 1

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, email={self.email}, role={self.role.value})"

    @classmethod
    def from_user(cls, user: User) -> "CurrentUser":
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            name=user.name,
            revocation_epoch=user.revocation_epoch,
        )


class TokenAuthority:
    """Issues access tokens and verifies them against the user store."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def issue(user: User) -> str:
        """Issue an access token bound to the user's current revocation epoch."""
        return create_access_token(
            subject=str(user.id),
            revocation_epoch=user.revocation_epoch,
            additional_claims={"email": user.email, "role": user.role.value},
        )

    async def verify(self, token: str) -> CurrentUser:
        """
        Verify a bearer token and load the caller.

        Raises:
            TokenExpiredError: Signature valid but expired
            TokenMalformedError: Bad signature, structure or claims
            IdentityNotFoundError: Subject no longer exists
            TokenRevokedError: Epoch no longer matches the user's
        """
        try:
            payload = decode_token(token)
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.InvalidTokenError as e:
            logger.warning(f"Rejected malformed token: {e}")
            raise TokenMalformedError() from e

        if payload.get("type", ACCESS_TOKEN_TYPE) != ACCESS_TOKEN_TYPE:
            logger.warning(f"Invalid token type: {payload.get('type')}")
            raise TokenMalformedError("This endpoint requires an access token.")

        try:
            user_id = UUID(str(payload["sub"]))
            epoch = payload["epoch"]
        except (KeyError, ValueError) as e:
            logger.warning(f"Invalid token claims: {e}")
            raise TokenMalformedError("Token contains invalid or missing claims.") from e

        if not isinstance(epoch, int) or isinstance(epoch, bool):
            raise TokenMalformedError("Token contains invalid or missing claims.")

        user = await UserRepository.get_by_id(self.db, user_id)
        if user is None:
            raise IdentityNotFoundError()

        if epoch != user.revocation_epoch:
            logger.info(
                f"Revoked token presented for user {user.id}: "
                f"epoch {epoch} != {user.revocation_epoch}"
            )
            raise TokenRevokedError()

        return CurrentUser.from_user(user)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    FastAPI dependency that verifies the bearer token and returns the caller.

    Usage:
        @router.get("/me")
        async def me(user: CurrentUser = Depends(get_current_user)):
            ...

    Raises:
        MissingTokenError: No Authorization: Bearer header
        AuthenticationError subclasses from TokenAuthority.verify
    """
    if credentials is None or not credentials.credentials:
        raise MissingTokenError()

    user = await TokenAuthority(db).verify(credentials.credentials)
    logger.debug(f"Authenticated user: {user.id} ({user.role.value})")
    return user


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser | None:
    """
    Optional authentication dependency.

    Returns None when no token is sent. A token that is sent but invalid is
    still rejected.
    """
    if credentials is None or not credentials.credentials:
        return None
    return await TokenAuthority(db).verify(credentials.credentials)


__all__ = [
    "CurrentUser",
    "TokenAuthority",
    "get_current_user",
    "get_optional_user",
]
