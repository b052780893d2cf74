"""
Account Service

Registration, login, password change and admin account management.

Security considerations:
- Emails are compared trimmed and lower-cased
- Unknown email and wrong password produce the same error
- A password change advances the revocation epoch, so every token issued
  before it stops working
- Passwords and tokens are never logged
"""

import logging
from typing import Any
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, TokenAuthority
from app.core.database import get_db
from app.core.errors import (
    AccountInactiveError,
    CannotDeactivateSelfError,
    CannotDeleteAdminError,
    CoordinatorOwnsActivitiesError,
    EmailAlreadyExistsError,
    InvalidCredentialsError,
    InvalidInputError,
    UserNotFoundError,
)
from app.core.policy import MANAGE_USERS
from app.core.security import hash_password, verify_password
from app.core.side_effects import BestEffortExecutor, get_side_effects
from app.modules.activities import repository as activities_repository
from app.modules.activities.capacity import CapacityLedger
from app.modules.applications import repository as applications_repository
from app.modules.attendance import repository as attendance_repository
from app.modules.audit_logs.models import AuditAction
from app.modules.audit_logs.recorder import AuditRecorder, get_audit_recorder
from app.modules.users.models import User, UserRole, UserStatus
from app.modules.users.repository import UserRepository, normalize_email

logger = logging.getLogger(__name__)


class AccountService:
    """Identity management on top of UserRepository and TokenAuthority."""

    def __init__(
        self,
        db: AsyncSession,
        audit: AuditRecorder,
        side_effects: BestEffortExecutor,
    ):
        self.db = db
        self.audit = audit
        self.side_effects = side_effects

    async def _audit(self, action: AuditAction, **fields) -> None:
        await self.side_effects.run(
            f"audit:{action.value}",
            lambda: self.audit.record(action, **fields),
        )

    async def _create(
        self,
        *,
        name: str,
        email: str,
        password: str,
        role: UserRole,
        student_number: str | None,
        department: str | None,
    ) -> User:
        if await UserRepository.email_exists(self.db, email):
            raise EmailAlreadyExistsError()

        try:
            user = await UserRepository.create(
                self.db,
                email=email,
                password_hash=hash_password(password),
                name=name,
                role=role,
                student_number=student_number,
                department=department,
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise EmailAlreadyExistsError() from e
        return user

    async def register(
        self,
        *,
        name: str,
        email: str,
        password: str,
        student_number: str | None = None,
        department: str | None = None,
    ) -> tuple[User, str]:
        """
        Self-registration. Always creates a student.

        Returns:
            The new user and an access token

        Raises:
            EmailAlreadyExistsError: Email already registered
        """
        user = await self._create(
            name=name,
            email=email,
            password=password,
            role=UserRole.STUDENT,
            student_number=student_number,
            department=department,
        )
        logger.info(f"Student registered: {user.id}")

        await self._audit(
            AuditAction.USER_REGISTER,
            actor_id=user.id,
            target_id=user.id,
            entity="User",
            entity_id=user.id,
            message=f"Registered {user.email}",
            metadata={"email": user.email, "role": user.role.value},
        )
        return user, TokenAuthority.issue(user)

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """
        Authenticate with email and password.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
            AccountInactiveError: Credentials valid but account deactivated
        """
        normalized = normalize_email(email)
        user = await UserRepository.get_by_email(self.db, normalized)

        if user is None or not verify_password(password, user.password_hash):
            reason = "unknown_email" if user is None else "invalid_password"
            logger.warning(f"Failed login ({reason})")
            await self._audit(
                AuditAction.LOGIN_FAILURE,
                actor_id=user.id if user else None,
                entity="User",
                entity_id=user.id if user else None,
                message="Login failed",
                metadata={"email": normalized, "reason": reason},
            )
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(f"Login attempt for inactive account: {user.id}")
            await self._audit(
                AuditAction.LOGIN_FAILURE,
                actor_id=user.id,
                entity="User",
                entity_id=user.id,
                message="Login refused for inactive account",
                metadata={"email": normalized, "reason": "inactive"},
            )
            raise AccountInactiveError()

        token = TokenAuthority.issue(user)
        logger.info(f"User logged in: {user.id} (role: {user.role.value})")

        await self._audit(
            AuditAction.LOGIN_SUCCESS,
            actor_id=user.id,
            entity="User",
            entity_id=user.id,
            message="Login succeeded",
            metadata={"email": normalized},
        )
        return user, token

    async def change_password(
        self,
        actor: CurrentUser,
        current_password: str,
        new_password: str,
    ) -> str:
        """
        Change the caller's password and revoke every earlier token.

        Returns:
            A fresh access token bound to the new epoch

        Raises:
            InvalidCredentialsError: current_password is wrong
        """
        user = await UserRepository.get_by_id(self.db, actor.id)
        if user is None:
            raise UserNotFoundError(actor.id)

        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError("Current password is incorrect.")

        user = await UserRepository.update_password(self.db, user, hash_password(new_password))
        await self.db.commit()
        logger.info(f"Password changed for {user.id}; epoch now {user.revocation_epoch}")

        await self._audit(
            AuditAction.PASSWORD_CHANGE,
            actor_id=user.id,
            target_id=user.id,
            entity="User",
            entity_id=user.id,
            message="Password changed",
            metadata={"revocationEpoch": user.revocation_epoch},
        )
        return TokenAuthority.issue(user)

    async def toggle_status(self, actor: CurrentUser, user_id: UUID) -> User:
        """
        Flip a user between active and inactive (admin only).

        Raises:
            UserNotFoundError: No such user
            CannotDeactivateSelfError: An admin targeting their own account
        """
        MANAGE_USERS.enforce(actor)

        user = await UserRepository.get_by_id(self.db, user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        if user.id == actor.id and user.is_active:
            raise CannotDeactivateSelfError()

        previous = user.status
        new_status = UserStatus.INACTIVE if user.is_active else UserStatus.ACTIVE
        user = await UserRepository.set_status(self.db, user, new_status)
        await self.db.commit()
        logger.info(f"User {user.id} status {previous.value} -> {new_status.value} by {actor.id}")

        await self._audit(
            AuditAction.USER_STATUS_TOGGLE,
            actor_id=actor.id,
            target_id=user.id,
            entity="User",
            entity_id=user.id,
            message=f"Status {previous.value} -> {new_status.value}",
            metadata={"from": previous.value, "to": new_status.value},
        )
        return user

    async def create_user(
        self,
        actor: CurrentUser,
        *,
        name: str,
        email: str,
        password: str,
        role: UserRole,
        student_number: str | None = None,
        department: str | None = None,
    ) -> User:
        """Create an account of any role (admin only)."""
        MANAGE_USERS.enforce(actor)

        user = await self._create(
            name=name,
            email=email,
            password=password,
            role=role,
            student_number=student_number,
            department=department,
        )
        logger.info(f"User {user.id} ({role.value}) created by {actor.id}")

        await self._audit(
            AuditAction.USER_CREATE,
            actor_id=actor.id,
            target_id=user.id,
            entity="User",
            entity_id=user.id,
            message=f"Created {role.value} {user.email}",
            metadata={"email": user.email, "role": role.value},
        )
        return user

    async def list_users(
        self,
        actor: CurrentUser,
        *,
        role: UserRole | None = None,
        status: UserStatus | None = None,
        search: str | None = None,
    ) -> list[User]:
        MANAGE_USERS.enforce(actor)
        return await UserRepository.list_users(self.db, role=role, status=status, search=search)

    async def get_profile(self, actor: CurrentUser) -> User:
        user = await UserRepository.get_by_id(self.db, actor.id)
        if user is None:
            raise UserNotFoundError(actor.id)
        return user

    async def get_user(self, actor: CurrentUser, user_id: UUID) -> User:
        MANAGE_USERS.enforce(actor)
        user = await UserRepository.get_by_id(self.db, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _update(self, user: User, fields: dict[str, Any]) -> User:
        for field in fields.keys() & {"name", "email"}:
            if fields[field] is None:
                raise InvalidInputError(f"{field} cannot be null.")

        email = fields.get("email")
        if email and normalize_email(email) != user.email:
            if await UserRepository.email_exists(self.db, email):
                raise EmailAlreadyExistsError()

        try:
            user = await UserRepository.update_fields(self.db, user, fields)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise EmailAlreadyExistsError() from e
        return user

    async def update_profile(self, actor: CurrentUser, patch: dict[str, Any]) -> User:
        """
        Patch the caller's own name, email, student number or department.

        Raises:
            InvalidInputError: name or email set to null
            EmailAlreadyExistsError: Email belongs to another account
        """
        user = await self.get_profile(actor)
        if not patch:
            return user

        user = await self._update(user, patch)
        changed = sorted(patch)
        logger.info(f"User {user.id} updated own profile: {changed}")

        await self._audit(
            AuditAction.USER_UPDATE,
            actor_id=actor.id,
            target_id=user.id,
            entity="User",
            entity_id=user.id,
            message="Updated own profile",
            metadata={"changes": changed},
        )
        return user

    async def update_user(self, actor: CurrentUser, user_id: UUID, patch: dict[str, Any]) -> User:
        """
        Patch any user's profile fields (admin only). Role and status are not editable here.

        Raises:
            UserNotFoundError: No such user
            InvalidInputError: name or email set to null
            EmailAlreadyExistsError: Email belongs to another account
        """
        user = await self.get_user(actor, user_id)
        if not patch:
            return user

        user = await self._update(user, patch)
        changed = sorted(patch)
        logger.info(f"User {user.id} updated by {actor.id}: {changed}")

        await self._audit(
            AuditAction.USER_UPDATE,
            actor_id=actor.id,
            target_id=user.id,
            entity="User",
            entity_id=user.id,
            message=f"Updated {user.email}",
            metadata={"changes": changed},
        )
        return user

    async def reset_password(self, actor: CurrentUser, user_id: UUID, new_password: str) -> User:
        """
        Set a user's password without the old one (admin only).

        The revocation epoch advances, so the user's existing tokens stop working.

        Raises:
            UserNotFoundError: No such user
        """
        user = await self.get_user(actor, user_id)

        user = await UserRepository.update_password(self.db, user, hash_password(new_password))
        await self.db.commit()
        logger.info(f"Password reset for {user.id} by {actor.id}; epoch {user.revocation_epoch}")

        await self._audit(
            AuditAction.PASSWORD_RESET,
            actor_id=actor.id,
            target_id=user.id,
            entity="User",
            entity_id=user.id,
            message=f"Password reset for {user.email}",
            metadata={"revocationEpoch": user.revocation_epoch},
        )
        return user

    async def delete_user(self, actor: CurrentUser, user_id: UUID) -> dict[str, int]:
        """
        Delete a student or coordinator account (admin only).

        A student's attendance and applications go with it, and every seat
        their approved applications held is released. Notifications are
        removed by the database.

        Returns:
            Row counts per table, and the number of seats released

        Raises:
            UserNotFoundError: No such user
            CannotDeleteAdminError: Target is an admin
            CoordinatorOwnsActivitiesError: Target still owns activities
        """
        user = await self.get_user(actor, user_id)
        if user.role == UserRole.ADMIN:
            raise CannotDeleteAdminError()

        owned = await activities_repository.count_by_coordinator(self.db, user_id)
        if owned:
            raise CoordinatorOwnsActivitiesError(owned)

        email, role = user.email, user.role
        ledger = CapacityLedger(self.db)
        try:
            attendance = await attendance_repository.delete_by_student(self.db, user_id)
            seats = await applications_repository.list_approved_activity_ids(self.db, user_id)
            for activity_id in seats:
                await ledger.decrement(activity_id)
            applications = await applications_repository.delete_by_student(self.db, user_id)
            await UserRepository.delete(self.db, user_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error(f"Delete of user {user_id} rolled back", exc_info=True)
            raise

        deleted = {
            "attendance": attendance,
            "applications": applications,
            "seatsReleased": len(seats),
        }
        logger.info(f"User {user_id} ({role.value}) deleted by {actor.id}: {deleted}")

        await self._audit(
            AuditAction.USER_DELETE,
            actor_id=actor.id,
            target_id=user_id,
            entity="User",
            entity_id=user_id,
            message=f"Deleted user: {email}",
            metadata={"role": role.value, "deleted": deleted},
        )
        return deleted


def get_account_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
    side_effects: BestEffortExecutor = Depends(get_side_effects),
) -> AccountService:
    """FastAPI dependency."""
    return AccountService(db, audit, side_effects)
