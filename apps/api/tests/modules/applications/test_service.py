"""
Unit tests for the application lifecycle.

These tests cover:
- The capacity effect of every status transition
- Submission checks (duplicate, completed, full, insert race)
- Status changes: ownership, seat accounting, rollback on CAPACITY_EXCEEDED
- Admin deletion
- Visibility of single applications
- Per-activity status counts and the approved roster
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.errors import (
    ActivityCompletedError,
    ActivityFullError,
    ActivityNotFoundError,
    ApplicationNotFoundError,
    CapacityExceededError,
    DuplicateApplicationError,
    InsufficientRoleError,
    NotOwnerError,
)
from app.modules.activities.models import ActivityStatus
from app.modules.applications.models import ApplicationStatus
from app.modules.applications.service import ApplicationLifecycle, capacity_effect
from app.modules.audit_logs.models import AuditAction

PENDING = ApplicationStatus.PENDING
APPROVED = ApplicationStatus.APPROVED
REJECTED = ApplicationStatus.REJECTED


@pytest.fixture
def lifecycle(mock_db, mock_fanout, mock_audit, executor):
    lifecycle = ApplicationLifecycle(mock_db, mock_fanout, mock_audit, executor)
    lifecycle.ledger = AsyncMock()
    lifecycle.ledger.increment = AsyncMock(return_value=3)
    lifecycle.ledger.decrement = AsyncMock(return_value=1)
    return lifecycle


@pytest.fixture
def repos(activity, application):
    """Patch both repositories the lifecycle reads through."""
    with (
        patch("app.modules.applications.service.repository") as mock_repo,
        patch("app.modules.applications.service.activities_repository") as mock_activities,
    ):
        mock_activities.get_by_id = AsyncMock(return_value=activity)
        mock_activities.get_for_update = AsyncMock(return_value=activity)
        mock_repo.get_by_id = AsyncMock(return_value=application)
        mock_repo.get_for_update = AsyncMock(return_value=application)
        mock_repo.get_by_student_and_activity = AsyncMock(return_value=None)
        mock_repo.create = AsyncMock(return_value=application)
        mock_repo.delete_with_attendance = AsyncMock(return_value=1)

        async def update_status(_db, app, status, *, reviewed_by, notes=None):
            app.status = status
            app.reviewed_by = reviewed_by
            if notes is not None:
                app.notes = notes
            return app

        mock_repo.update_status = AsyncMock(side_effect=update_status)
        yield mock_repo, mock_activities


class TestCapacityEffect:
    """Only crossing into or out of approved moves a seat."""

    @pytest.mark.parametrize(
        "old,new,delta",
        [
            (PENDING, APPROVED, 1),
            (REJECTED, APPROVED, 1),
            (APPROVED, PENDING, -1),
            (APPROVED, REJECTED, -1),
            (APPROVED, APPROVED, 0),
            (PENDING, REJECTED, 0),
            (REJECTED, PENDING, 0),
            (PENDING, PENDING, 0),
        ],
    )
    def test_transition(self, old, new, delta):
        assert capacity_effect(old, new) == delta


class TestSubmit:
    """Tests for ApplicationLifecycle.submit."""

    @pytest.mark.asyncio
    async def test_submit_success(
        self,
        lifecycle,
        repos,
        mock_db,
        mock_fanout,
        mock_audit,
        student,
        activity,
        application,
    ):
        mock_repo, mock_activities = repos

        result = await lifecycle.submit(student, activity.id, notes="Keen to join")

        assert result is application
        mock_repo.create.assert_awaited_once_with(
            mock_db, student_id=student.id, activity_id=activity.id, notes="Keen to join"
        )
        mock_db.commit.assert_awaited_once()
        lifecycle.ledger.increment.assert_not_called()
        mock_activities.get_for_update.assert_awaited_once_with(mock_db, activity.id, shared=True)

        kwargs = mock_fanout.application_submitted.call_args.kwargs
        assert kwargs["student_id"] == student.id
        assert kwargs["coordinator_id"] == activity.coordinator_id
        assert mock_audit.record.call_args.args[0] == AuditAction.APPLICATION_SUBMIT

    @pytest.mark.asyncio
    async def test_only_students_submit(self, lifecycle, repos, coordinator, activity):
        with pytest.raises(InsufficientRoleError):
            await lifecycle.submit(coordinator, activity.id)

    @pytest.mark.asyncio
    async def test_missing_activity(self, lifecycle, repos, student, activity):
        _, mock_activities = repos
        mock_activities.get_for_update.return_value = None

        with pytest.raises(ActivityNotFoundError):
            await lifecycle.submit(student, activity.id)

    @pytest.mark.asyncio
    async def test_duplicate(self, lifecycle, repos, student, activity, application):
        mock_repo, _ = repos
        mock_repo.get_by_student_and_activity.return_value = application

        with pytest.raises(DuplicateApplicationError):
            await lifecycle.submit(student, activity.id)
        mock_repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_completed_activity(self, lifecycle, repos, student, activity):
        activity.status = ActivityStatus.COMPLETED

        with pytest.raises(ActivityCompletedError):
            await lifecycle.submit(student, activity.id)

    @pytest.mark.asyncio
    async def test_full_activity(self, lifecycle, repos, student, activity):
        activity.enrolled = activity.capacity

        with pytest.raises(ActivityFullError) as exc_info:
            await lifecycle.submit(student, activity.id)
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_insert_race_is_duplicate(
        self,
        lifecycle,
        repos,
        mock_db,
        mock_audit,
        student,
        activity,
    ):
        mock_repo, _ = repos
        mock_repo.create.side_effect = IntegrityError("INSERT", {}, Exception("unique"))

        with pytest.raises(DuplicateApplicationError):
            await lifecycle.submit(student, activity.id)

        mock_db.rollback.assert_awaited_once()
        mock_audit.record.assert_not_called()


class TestSetStatus:
    """Tests for ApplicationLifecycle.set_status."""

    @pytest.mark.asyncio
    async def test_approve_takes_a_seat(
        self,
        lifecycle,
        repos,
        mock_db,
        mock_fanout,
        mock_audit,
        coordinator,
        activity,
        application,
    ):
        result = await lifecycle.set_status(coordinator, application.id, APPROVED, notes="Welcome")

        assert result.status == APPROVED
        assert result.notes == "Welcome"
        lifecycle.ledger.increment.assert_awaited_once_with(activity.id)
        mock_db.commit.assert_awaited_once()

        assert mock_fanout.application_decided.call_args.kwargs["status"] == APPROVED
        metadata = mock_audit.record.call_args.kwargs["metadata"]
        assert metadata["from"] == "pending"
        assert metadata["to"] == "approved"
        assert metadata["enrolledDelta"] == 1
        assert metadata["enrolled"] == 3

    @pytest.mark.asyncio
    async def test_approving_twice_counts_once(self, lifecycle, repos, coordinator, application):
        await lifecycle.set_status(coordinator, application.id, APPROVED)
        await lifecycle.set_status(coordinator, application.id, APPROVED)

        assert lifecycle.ledger.increment.await_count == 1
        lifecycle.ledger.decrement.assert_not_called()

    @pytest.mark.asyncio
    async def test_approve_then_reject_releases_seat(
        self,
        lifecycle,
        repos,
        coordinator,
        activity,
        application,
    ):
        await lifecycle.set_status(coordinator, application.id, APPROVED)
        await lifecycle.set_status(coordinator, application.id, REJECTED)

        lifecycle.ledger.increment.assert_awaited_once_with(activity.id)
        lifecycle.ledger.decrement.assert_awaited_once_with(activity.id)

    @pytest.mark.asyncio
    async def test_pending_to_rejected_leaves_capacity(
        self,
        lifecycle,
        repos,
        coordinator,
        application,
    ):
        await lifecycle.set_status(coordinator, application.id, REJECTED)

        lifecycle.ledger.increment.assert_not_called()
        lifecycle.ledger.decrement.assert_not_called()

    @pytest.mark.asyncio
    async def test_capacity_exceeded_rolls_back(
        self,
        lifecycle,
        repos,
        mock_db,
        mock_fanout,
        mock_audit,
        coordinator,
        activity,
        application,
    ):
        mock_repo, _ = repos
        lifecycle.ledger.increment.side_effect = CapacityExceededError(activity.id)

        with pytest.raises(CapacityExceededError):
            await lifecycle.set_status(coordinator, application.id, APPROVED)

        mock_repo.update_status.assert_not_called()
        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_called()
        mock_fanout.application_decided.assert_not_called()
        mock_audit.record.assert_not_called()
        assert application.status == PENDING

    @pytest.mark.asyncio
    async def test_other_coordinator_rejected(
        self,
        lifecycle,
        repos,
        other_coordinator,
        application,
    ):
        with pytest.raises(NotOwnerError):
            await lifecycle.set_status(other_coordinator, application.id, APPROVED)
        lifecycle.ledger.increment.assert_not_called()

    @pytest.mark.asyncio
    async def test_admin_decides_any(self, lifecycle, repos, admin, application):
        result = await lifecycle.set_status(admin, application.id, REJECTED)
        assert result.status == REJECTED

    @pytest.mark.asyncio
    async def test_student_cannot_decide(self, lifecycle, repos, student, application):
        with pytest.raises(InsufficientRoleError):
            await lifecycle.set_status(student, application.id, APPROVED)

    @pytest.mark.asyncio
    async def test_missing_application(self, lifecycle, repos, coordinator, application):
        mock_repo, _ = repos
        mock_repo.get_for_update.return_value = None

        with pytest.raises(ApplicationNotFoundError):
            await lifecycle.set_status(coordinator, application.id, APPROVED)

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_decision(
        self,
        lifecycle,
        repos,
        mock_db,
        mock_fanout,
        coordinator,
        application,
    ):
        mock_fanout.application_decided.side_effect = RuntimeError("notification store down")

        result = await lifecycle.set_status(coordinator, application.id, APPROVED)

        assert result.status == APPROVED
        mock_db.commit.assert_awaited_once()


class TestDelete:
    """Tests for ApplicationLifecycle.delete."""

    @pytest.mark.asyncio
    async def test_admin_deletes_approved_without_release(
        self,
        lifecycle,
        repos,
        mock_db,
        mock_audit,
        admin,
        application,
    ):
        mock_repo, _ = repos
        application.status = APPROVED

        await lifecycle.delete(admin, application.id)

        mock_repo.delete_with_attendance.assert_awaited_once_with(mock_db, application.id)
        mock_db.commit.assert_awaited_once()
        lifecycle.ledger.decrement.assert_not_called()

        assert mock_audit.record.call_args.args[0] == AuditAction.APPLICATION_DELETE
        metadata = mock_audit.record.call_args.kwargs["metadata"]
        assert metadata["status"] == "approved"
        assert metadata["enrolledReleased"] is False

    @pytest.mark.asyncio
    async def test_coordinator_cannot_delete(self, lifecycle, repos, coordinator, application):
        with pytest.raises(InsufficientRoleError):
            await lifecycle.delete(coordinator, application.id)

    @pytest.mark.asyncio
    async def test_missing_application(self, lifecycle, repos, admin, application):
        mock_repo, _ = repos
        mock_repo.get_by_id.return_value = None

        with pytest.raises(ApplicationNotFoundError):
            await lifecycle.delete(admin, application.id)


class TestGet:
    """Tests for ApplicationLifecycle.get."""

    @pytest.mark.asyncio
    async def test_student_sees_own(self, lifecycle, repos, student, application):
        assert await lifecycle.get(student, application.id) is application

    @pytest.mark.asyncio
    async def test_student_cannot_see_others(self, lifecycle, repos, other_student, application):
        with pytest.raises(NotOwnerError):
            await lifecycle.get(other_student, application.id)

    @pytest.mark.asyncio
    async def test_owning_coordinator(
        self,
        lifecycle,
        repos,
        coordinator,
        other_coordinator,
        application,
    ):
        assert await lifecycle.get(coordinator, application.id) is application
        with pytest.raises(NotOwnerError):
            await lifecycle.get(other_coordinator, application.id)


class TestListApplications:
    @pytest.mark.asyncio
    async def test_scoped_by_role(self, lifecycle, repos, mock_db, student, coordinator, admin):
        mock_repo, _ = repos
        mock_repo.list_applications = AsyncMock(return_value=[])

        await lifecycle.list_applications(student)
        assert mock_repo.list_applications.call_args.kwargs["student_id"] == student.id

        await lifecycle.list_applications(coordinator)
        assert mock_repo.list_applications.call_args.kwargs["coordinator_id"] == coordinator.id

        await lifecycle.list_applications(admin)
        kwargs = mock_repo.list_applications.call_args.kwargs
        assert kwargs["student_id"] is None
        assert kwargs["coordinator_id"] is None


class TestActivityStats:
    """Tests for ApplicationLifecycle.stats."""

    @pytest.mark.asyncio
    async def test_counts_are_zero_filled(self, lifecycle, repos, mock_db, coordinator, activity):
        mock_repo, _ = repos
        mock_repo.count_by_status = AsyncMock(return_value={PENDING: 2, APPROVED: 5})

        stats = await lifecycle.stats(coordinator, activity.id)

        assert stats == {"pending": 2, "approved": 5, "rejected": 0}
        mock_repo.count_by_status.assert_awaited_once_with(mock_db, activity.id)

    @pytest.mark.asyncio
    async def test_other_coordinator_rejected(
        self,
        lifecycle,
        repos,
        other_coordinator,
        activity,
    ):
        mock_repo, _ = repos
        mock_repo.count_by_status = AsyncMock()

        with pytest.raises(NotOwnerError):
            await lifecycle.stats(other_coordinator, activity.id)

        mock_repo.count_by_status.assert_not_called()

    @pytest.mark.asyncio
    async def test_student_rejected(self, lifecycle, repos, student, activity):
        with pytest.raises(InsufficientRoleError):
            await lifecycle.stats(student, activity.id)

    @pytest.mark.asyncio
    async def test_missing_activity(self, lifecycle, repos, admin):
        _, mock_activities = repos
        mock_activities.get_by_id.return_value = None

        with pytest.raises(ActivityNotFoundError):
            await lifecycle.stats(admin, uuid4())


class TestApprovedRoster:
    """Tests for ApplicationLifecycle.approved_roster."""

    @pytest.mark.asyncio
    async def test_owner_gets_roster(self, lifecycle, repos, mock_db, coordinator, activity):
        mock_repo, _ = repos
        entry = {
            "id": uuid4(),
            "student_id": uuid4(),
            "student_name": "Abebe",
            "applied_at": datetime.now(UTC),
        }
        mock_repo.list_approved_roster = AsyncMock(return_value=[entry])

        assert await lifecycle.approved_roster(coordinator, activity.id) == [entry]
        mock_repo.list_approved_roster.assert_awaited_once_with(mock_db, activity.id)

    @pytest.mark.asyncio
    async def test_admin_gets_any_roster(self, lifecycle, repos, admin, activity):
        mock_repo, _ = repos
        mock_repo.list_approved_roster = AsyncMock(return_value=[])

        assert await lifecycle.approved_roster(admin, activity.id) == []

    @pytest.mark.asyncio
    async def test_other_coordinator_rejected(
        self,
        lifecycle,
        repos,
        other_coordinator,
        activity,
    ):
        with pytest.raises(NotOwnerError):
            await lifecycle.approved_roster(other_coordinator, activity.id)

    @pytest.mark.asyncio
    async def test_student_rejected(self, lifecycle, repos, student, activity):
        with pytest.raises(InsufficientRoleError):
            await lifecycle.approved_roster(student, activity.id)
