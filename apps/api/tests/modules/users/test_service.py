"""
Unit tests for the account service.

These tests cover:
- Login: unknown email, wrong password, inactive account, success
- Password change advances the revocation epoch and returns a fresh token
- Registration conflicts
- Admin status toggling
- Profile updates, admin password reset and user deletion
"""

from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.errors import (
    AccountInactiveError,
    CannotDeactivateSelfError,
    CannotDeleteAdminError,
    CoordinatorOwnsActivitiesError,
    EmailAlreadyExistsError,
    InsufficientRoleError,
    InvalidCredentialsError,
    InvalidInputError,
    UserNotFoundError,
)
from app.core.security import decode_token
from app.modules.audit_logs.models import AuditAction
from app.modules.users.models import UserRole, UserStatus
from app.modules.users.service import AccountService


@pytest.fixture
def accounts(mock_db, mock_audit, executor):
    return AccountService(mock_db, mock_audit, executor)


def _audited(mock_audit) -> list[AuditAction]:
    return [call.args[0] for call in mock_audit.record.call_args_list]


class TestLogin:
    """Tests for AccountService.login."""

    @pytest.mark.asyncio
    async def test_login_success(self, accounts, mock_audit, user_record):
        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.verify_password", return_value=True),
        ):
            mock_repo.get_by_email = AsyncMock(return_value=user_record)

            user, token = await accounts.login("  Student@JU.edu ", "secret123")

        assert user is user_record
        mock_repo.get_by_email.assert_awaited_once()
        assert mock_repo.get_by_email.call_args.args[1] == "student@ju.edu"
        assert decode_token(token)["sub"] == str(user_record.id)
        assert _audited(mock_audit) == [AuditAction.LOGIN_SUCCESS]

    @pytest.mark.asyncio
    async def test_unknown_email(self, accounts, mock_audit):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_email = AsyncMock(return_value=None)

            with pytest.raises(InvalidCredentialsError):
                await accounts.login("nobody@ju.edu", "secret123")

        assert _audited(mock_audit) == [AuditAction.LOGIN_FAILURE]
        assert mock_audit.record.call_args.kwargs["metadata"]["reason"] == "unknown_email"

    @pytest.mark.asyncio
    async def test_wrong_password_same_error(self, accounts, mock_audit, user_record):
        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.verify_password", return_value=False),
        ):
            mock_repo.get_by_email = AsyncMock(return_value=user_record)

            with pytest.raises(InvalidCredentialsError) as exc_info:
                await accounts.login(user_record.email, "wrong")

        assert exc_info.value.message == "Invalid email or password."
        assert mock_audit.record.call_args.kwargs["metadata"]["reason"] == "invalid_password"

    @pytest.mark.asyncio
    async def test_inactive_account(self, accounts, mock_audit, user_record):
        user_record.status = UserStatus.INACTIVE
        user_record.is_active = False

        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.verify_password", return_value=True),
        ):
            mock_repo.get_by_email = AsyncMock(return_value=user_record)

            with pytest.raises(AccountInactiveError) as exc_info:
                await accounts.login(user_record.email, "secret123")

        assert exc_info.value.status_code == 403
        assert _audited(mock_audit) == [AuditAction.LOGIN_FAILURE]

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_block_login(self, accounts, mock_audit, user_record):
        mock_audit.record.side_effect = RuntimeError("audit store down")

        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.verify_password", return_value=True),
        ):
            mock_repo.get_by_email = AsyncMock(return_value=user_record)

            user, _ = await accounts.login(user_record.email, "secret123")

        assert user is user_record


class TestChangePassword:
    """Tests for AccountService.change_password."""

    @pytest.mark.asyncio
    async def test_change_password_advances_epoch(
        self,
        accounts,
        mock_db,
        mock_audit,
        student,
        user_record,
    ):
        async def bump(_db, user, _hash):
            user.revocation_epoch += 1
            return user

        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.verify_password", return_value=True),
            patch("app.modules.users.service.hash_password", return_value="new-hash"),
        ):
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.update_password = AsyncMock(side_effect=bump)

            token = await accounts.change_password(student, "old-password", "new-password")

        mock_repo.update_password.assert_awaited_once_with(mock_db, user_record, "new-hash")
        mock_db.commit.assert_awaited_once()
        assert decode_token(token)["epoch"] == 2
        assert _audited(mock_audit) == [AuditAction.PASSWORD_CHANGE]

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, accounts, mock_db, student, user_record):
        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.verify_password", return_value=False),
        ):
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.update_password = AsyncMock()

            with pytest.raises(InvalidCredentialsError):
                await accounts.change_password(student, "wrong", "new-password")

            mock_repo.update_password.assert_not_called()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_user(self, accounts, student):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(UserNotFoundError):
                await accounts.change_password(student, "old", "new-password")


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_creates_student(self, accounts, mock_audit, user_record):
        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.hash_password", return_value="hash"),
        ):
            mock_repo.email_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(return_value=user_record)

            user, token = await accounts.register(
                name="Student", email="student@ju.edu", password="secret123"
            )

        assert user is user_record
        assert mock_repo.create.call_args.kwargs["role"] == UserRole.STUDENT
        assert decode_token(token)["sub"] == str(user_record.id)
        assert _audited(mock_audit) == [AuditAction.USER_REGISTER]

    @pytest.mark.asyncio
    async def test_existing_email(self, accounts):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.email_exists = AsyncMock(return_value=True)
            mock_repo.create = AsyncMock()

            with pytest.raises(EmailAlreadyExistsError):
                await accounts.register(name="S", email="student@ju.edu", password="secret123")

            mock_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_insert_race(self, accounts, mock_db):
        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.hash_password", return_value="hash"),
        ):
            mock_repo.email_exists = AsyncMock(return_value=False)
            mock_repo.create = AsyncMock(side_effect=IntegrityError("INSERT", {}, Exception("dup")))

            with pytest.raises(EmailAlreadyExistsError):
                await accounts.register(name="S", email="student@ju.edu", password="secret123")

        mock_db.rollback.assert_awaited_once()


class TestToggleStatus:
    """Tests for AccountService.toggle_status."""

    @pytest.mark.asyncio
    async def test_admin_deactivates_user(self, accounts, mock_audit, admin, user_record):
        async def set_status(_db, user, status):
            user.status = status
            user.is_active = status == UserStatus.ACTIVE
            return user

        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.set_status = AsyncMock(side_effect=set_status)

            user = await accounts.toggle_status(admin, user_record.id)

        assert user.status == UserStatus.INACTIVE
        metadata = mock_audit.record.call_args.kwargs["metadata"]
        assert metadata == {"from": "active", "to": "inactive"}

    @pytest.mark.asyncio
    async def test_admin_cannot_deactivate_self(self, accounts, admin, user_record):
        user_record.id = admin.id

        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.set_status = AsyncMock()

            with pytest.raises(CannotDeactivateSelfError):
                await accounts.toggle_status(admin, admin.id)

            mock_repo.set_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, accounts, coordinator):
        with pytest.raises(InsufficientRoleError):
            await accounts.toggle_status(coordinator, uuid4())

    @pytest.mark.asyncio
    async def test_missing_user(self, accounts, admin):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(UserNotFoundError):
                await accounts.toggle_status(admin, uuid4())


async def _apply_fields(_db, user, fields):
    for key, value in fields.items():
        setattr(user, key, value)
    return user


class TestUpdateProfile:
    """Tests for AccountService.update_profile and update_user."""

    @pytest.mark.asyncio
    async def test_user_updates_own_profile(
        self,
        accounts,
        mock_db,
        mock_audit,
        student,
        user_record,
    ):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.update_fields = AsyncMock(side_effect=_apply_fields)

            user = await accounts.update_profile(student, {"department": "Physics"})

        assert user.department == "Physics"
        mock_repo.get_by_id.assert_awaited_once_with(mock_db, student.id)
        mock_db.commit.assert_awaited_once()
        assert _audited(mock_audit) == [AuditAction.USER_UPDATE]
        assert mock_audit.record.call_args.kwargs["metadata"] == {"changes": ["department"]}

    @pytest.mark.asyncio
    async def test_email_taken_by_another_account(self, accounts, mock_db, student, user_record):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.email_exists = AsyncMock(return_value=True)
            mock_repo.update_fields = AsyncMock()

            with pytest.raises(EmailAlreadyExistsError):
                await accounts.update_profile(student, {"email": "taken@ju.edu"})

            mock_repo.update_fields.assert_not_called()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_same_email_in_other_case_is_allowed(self, accounts, student, user_record):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.email_exists = AsyncMock(return_value=True)
            mock_repo.update_fields = AsyncMock(side_effect=_apply_fields)

            await accounts.update_profile(student, {"email": " Student@JU.edu"})

            mock_repo.email_exists.assert_not_called()

    @pytest.mark.asyncio
    async def test_null_name_rejected(self, accounts, student, user_record):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=user_record)

            with pytest.raises(InvalidInputError):
                await accounts.update_profile(student, {"name": None})

    @pytest.mark.asyncio
    async def test_update_race_on_email(self, accounts, mock_db, student, user_record):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.email_exists = AsyncMock(return_value=False)
            mock_repo.update_fields = AsyncMock(
                side_effect=IntegrityError("UPDATE", {}, Exception("dup"))
            )

            with pytest.raises(EmailAlreadyExistsError):
                await accounts.update_profile(student, {"email": "new@ju.edu"})

        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_admin_updates_any_user(self, accounts, mock_audit, admin, user_record):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.update_fields = AsyncMock(side_effect=_apply_fields)

            user = await accounts.update_user(admin, user_record.id, {"name": "Renamed"})

        assert user.name == "Renamed"
        kwargs = mock_audit.record.call_args.kwargs
        assert kwargs["actor_id"] == admin.id
        assert kwargs["target_id"] == user_record.id

    @pytest.mark.asyncio
    async def test_non_admin_cannot_update_others(self, accounts, coordinator, user_record):
        with pytest.raises(InsufficientRoleError):
            await accounts.update_user(coordinator, user_record.id, {"name": "X"})


class TestResetPassword:
    """Tests for AccountService.reset_password."""

    @pytest.mark.asyncio
    async def test_reset_advances_epoch(self, accounts, mock_db, mock_audit, admin, user_record):
        async def bump(_db, user, _hash):
            user.revocation_epoch += 1
            return user

        with (
            patch("app.modules.users.service.UserRepository") as mock_repo,
            patch("app.modules.users.service.hash_password", return_value="reset-hash"),
        ):
            mock_repo.get_by_id = AsyncMock(return_value=user_record)
            mock_repo.update_password = AsyncMock(side_effect=bump)

            user = await accounts.reset_password(admin, user_record.id, "brand-new-pass")

        mock_repo.update_password.assert_awaited_once_with(mock_db, user_record, "reset-hash")
        mock_db.commit.assert_awaited_once()
        assert user.revocation_epoch == 2
        assert _audited(mock_audit) == [AuditAction.PASSWORD_RESET]
        assert mock_audit.record.call_args.kwargs["metadata"] == {"revocationEpoch": 2}

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, accounts, student, user_record):
        with pytest.raises(InsufficientRoleError):
            await accounts.reset_password(student, user_record.id, "brand-new-pass")

    @pytest.mark.asyncio
    async def test_missing_user(self, accounts, admin):
        with patch("app.modules.users.service.UserRepository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(UserNotFoundError):
                await accounts.reset_password(admin, uuid4(), "brand-new-pass")


class TestDeleteUser:
    """Tests for AccountService.delete_user."""

    @pytest.fixture
    def dependents(self):
        with (
            patch("app.modules.users.service.UserRepository") as mock_users,
            patch("app.modules.users.service.activities_repository") as mock_activities,
            patch("app.modules.users.service.applications_repository") as mock_applications,
            patch("app.modules.users.service.attendance_repository") as mock_attendance,
            patch("app.modules.users.service.CapacityLedger") as mock_ledger_cls,
        ):
            mock_activities.count_by_coordinator = AsyncMock(return_value=0)
            mock_attendance.delete_by_student = AsyncMock(return_value=3)
            mock_applications.list_approved_activity_ids = AsyncMock(return_value=[uuid4()])
            mock_applications.delete_by_student = AsyncMock(return_value=2)
            mock_users.delete = AsyncMock(return_value=1)
            ledger = mock_ledger_cls.return_value
            ledger.decrement = AsyncMock(return_value=0)
            yield mock_users, mock_activities, mock_applications, ledger

    @pytest.mark.asyncio
    async def test_student_deleted_with_seats_released(
        self,
        accounts,
        dependents,
        mock_db,
        mock_audit,
        admin,
        user_record,
    ):
        mock_users, _, mock_applications, ledger = dependents
        mock_users.get_by_id = AsyncMock(return_value=user_record)
        [seat] = mock_applications.list_approved_activity_ids.return_value

        deleted = await accounts.delete_user(admin, user_record.id)

        assert deleted == {"attendance": 3, "applications": 2, "seatsReleased": 1}
        ledger.decrement.assert_awaited_once_with(seat)
        mock_users.delete.assert_awaited_once_with(mock_db, user_record.id)
        mock_db.commit.assert_awaited_once()
        assert _audited(mock_audit) == [AuditAction.USER_DELETE]
        assert mock_audit.record.call_args.kwargs["metadata"]["role"] == "student"

    @pytest.mark.asyncio
    async def test_admin_account_refused(self, accounts, dependents, mock_db, admin, user_record):
        mock_users, *_ = dependents
        user_record.role = UserRole.ADMIN
        mock_users.get_by_id = AsyncMock(return_value=user_record)

        with pytest.raises(CannotDeleteAdminError):
            await accounts.delete_user(admin, user_record.id)

        mock_users.delete.assert_not_called()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_coordinator_with_activities_refused(
        self,
        accounts,
        dependents,
        admin,
        user_record,
    ):
        mock_users, mock_activities, _, _ = dependents
        user_record.role = UserRole.COORDINATOR
        mock_users.get_by_id = AsyncMock(return_value=user_record)
        mock_activities.count_by_coordinator.return_value = 2

        with pytest.raises(CoordinatorOwnsActivitiesError) as exc_info:
            await accounts.delete_user(admin, user_record.id)

        assert exc_info.value.activity_count == 2
        mock_users.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_rolls_back(self, accounts, dependents, mock_db, admin, user_record):
        mock_users, *_ = dependents
        mock_users.get_by_id = AsyncMock(return_value=user_record)
        mock_users.delete = AsyncMock(side_effect=RuntimeError("db down"))

        with pytest.raises(RuntimeError):
            await accounts.delete_user(admin, user_record.id)

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, accounts, coordinator):
        with pytest.raises(InsufficientRoleError):
            await accounts.delete_user(coordinator, uuid4())
