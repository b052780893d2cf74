"""
User Repository

Database operations for user management. Methods flush but never commit;
the calling service owns the transaction.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.users.models import User, UserRole, UserStatus

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Emails are stored and compared trimmed and lower-cased."""
    return email.strip().lower()


class UserRepository:
    """Repository for user database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        name: str,
        role: UserRole,
        student_number: str | None = None,
        department: str | None = None,
        status: UserStatus = UserStatus.ACTIVE,
    ) -> User:
        """
        Create a new user record.

        Args:
            db: Database session
            email: Email address, normalized before storage
            password_hash: bcrypt hash
            name: Display name
            role: User's role
            student_number: Optional student number
            department: Optional department
            status: Initial account status

        Returns:
            Created User instance
        """
        user = User(
            email=normalize_email(email),
            password_hash=password_hash,
            name=name.strip(),
            role=role,
            student_number=student_number,
            department=department,
            status=status,
            revocation_epoch=1,
        )

        db.add(user)
        await db.flush()
        await db.refresh(user)

        logger.info(f"Created user: {user.id} - {user.email} ({user.role.value})")
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: UUID) -> User | None:
        """Get a user by ID."""
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Get a user by email address (case-insensitive)."""
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        """Check if an email address is already registered."""
        user = await UserRepository.get_by_email(db, email)
        return user is not None

    @staticmethod
    async def list_ids_by_role(
        db: AsyncSession,
        role: UserRole,
        active_only: bool = False,
    ) -> list[UUID]:
        """Return the ids of all users holding ``role``, oldest first."""
        query = select(User.id).where(User.role == role)
        if active_only:
            query = query.where(User.status == UserStatus.ACTIVE)
        result = await db.execute(query.order_by(User.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def list_users(
        db: AsyncSession,
        *,
        role: UserRole | None = None,
        status: UserStatus | None = None,
        search: str | None = None,
    ) -> list[User]:
        """List users, newest first, optionally filtered."""
        query = select(User)
        if role:
            query = query.where(User.role == role)
        if status:
            query = query.where(User.status == status)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    User.name.ilike(pattern),
                    User.email.ilike(pattern),
                    User.student_number.ilike(pattern),
                )
            )
        result = await db.execute(query.order_by(User.created_at.desc()))
        return list(result.scalars().all())

    @staticmethod
    async def update_password(db: AsyncSession, user: User, password_hash: str) -> User:
        """
        Replace the password hash and advance the revocation epoch.

        The epoch is incremented in SQL so two concurrent password changes
        can never land on the same value.
        """
        await db.execute(
            update(User)
            .where(User.id == user.id)
            .values(
                password_hash=password_hash,
                revocation_epoch=User.revocation_epoch + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def set_status(db: AsyncSession, user: User, status: UserStatus) -> User:
        """Set the account status."""
        user.status = status
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update_fields(db: AsyncSession, user: User, fields: dict[str, Any]) -> User:
        """Apply a validated profile patch. Email and name are normalized."""
        for key, value in fields.items():
            if key == "email":
                value = normalize_email(value)
            elif key == "name":
                value = value.strip()
            setattr(user, key, value)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def delete(db: AsyncSession, user_id: UUID) -> int:
        """Delete the user row. Dependents with RESTRICT keys must be gone already."""
        result = await db.execute(delete(User).where(User.id == user_id))
        await db.flush()
        return result.rowcount
