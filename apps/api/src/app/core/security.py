"""
Security Utilities

Password hashing (bcrypt) and JWT encoding/decoding (PyJWT).

``decode_token`` lets PyJWT's exceptions propagate so callers can tell an
expired token from a malformed one.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.core.config import settings

ACCESS_TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    """Hash a password with bcrypt using the configured cost factor."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Check a password against its bcrypt hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(
    subject: str,
    revocation_epoch: int,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        subject: User ID placed in the ``sub`` claim
        revocation_epoch: The user's current revocation epoch (``epoch`` claim)
        additional_claims: Extra claims such as email and role
        expires_delta: Validity window, defaults to ACCESS_TOKEN_EXPIRE_DAYS

    Returns:
        Encoded JWT string
    """
    issued_at = datetime.now(UTC)
    expires_at = issued_at + (expires_delta or timedelta(days=settings.access_token_expire_days))

    payload: dict[str, Any] = {
        **(additional_claims or {}),
        "sub": subject,
        "epoch": revocation_epoch,
        "type": ACCESS_TOKEN_TYPE,
        "iat": issued_at,
        "exp": expires_at,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a JWT.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired
        jwt.InvalidTokenError: If the signature or structure is invalid
    """
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["sub", "exp", "iat"]},
    )
