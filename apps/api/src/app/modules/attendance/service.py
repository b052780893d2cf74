"""
Attendance Register

Marking and reading attendance for approved applications.

1. Mark / batch mark:
   - Owning coordinator or admin
   - Every application must belong to the activity and be approved; the
     student is taken from the application, never from the request
   - Applications are locked while they are checked, so a concurrent status
     change cannot un-approve one before the record is written
   - A batch is all-or-nothing

2. Read:
   - Students see only their own records
   - Coordinators see records of the activities they own
   - Admins see everything

Audit entries run after commit through the BestEffortExecutor.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.database import get_db
from app.core.errors import (
    ActivityNotFoundError,
    ApplicationNotFoundError,
    AttendanceNotFoundError,
    InvalidInputError,
)
from app.core.policy import MARK_ATTENDANCE, VIEW_ACTIVITY_STATS, VIEW_ATTENDANCE
from app.core.side_effects import BestEffortExecutor, get_side_effects
from app.modules.activities import repository as activities_repository
from app.modules.activities.models import Activity
from app.modules.applications import repository as applications_repository
from app.modules.applications.models import Application, ApplicationStatus
from app.modules.attendance import repository
from app.modules.attendance.models import Attendance, AttendanceStatus
from app.modules.attendance.schemas import AttendanceBatchMark, AttendanceMark
from app.modules.audit_logs.models import AuditAction
from app.modules.audit_logs.recorder import AuditRecorder, get_audit_recorder
from app.modules.users.models import UserRole

logger = logging.getLogger(__name__)


def check_markable(application: Application, activity_id: UUID) -> None:
    """Raise InvalidInputError unless ``application`` is approved for ``activity_id``."""
    if application.activity_id != activity_id:
        raise InvalidInputError(
            f"Application {application.id} does not belong to activity {activity_id}."
        )
    if application.status != ApplicationStatus.APPROVED:
        raise InvalidInputError(
            f"Attendance can only be marked for approved applications "
            f"(application {application.id} is {application.status.value})."
        )


class AttendanceRegister:
    """Mark, list and summarise attendance."""

    def __init__(
        self,
        db: AsyncSession,
        audit: AuditRecorder,
        side_effects: BestEffortExecutor,
    ):
        self.db = db
        self.audit = audit
        self.side_effects = side_effects

    async def _load_activity(self, activity_id: UUID) -> Activity:
        activity = await activities_repository.get_by_id(self.db, activity_id)
        if activity is None:
            raise ActivityNotFoundError(activity_id)
        return activity

    async def mark(self, actor: CurrentUser, data: AttendanceMark) -> Attendance:
        """
        Create or overwrite the attendance record of one application.

        Raises:
            InsufficientRoleError / NotOwnerError: Not the owning coordinator or an admin
            ActivityNotFoundError: No such activity
            ApplicationNotFoundError: No such application
            InvalidInputError: Application is for another activity or not approved
        """
        MARK_ATTENDANCE.check_role(actor)
        activity = await self._load_activity(data.activity_id)
        MARK_ATTENDANCE.check_owner(actor, activity.coordinator_id)

        application = await applications_repository.get_for_update(self.db, data.application_id)
        if application is None:
            raise ApplicationNotFoundError(data.application_id)
        check_markable(application, activity.id)

        record = await repository.upsert(
            self.db,
            activity_id=activity.id,
            application_id=application.id,
            student_id=application.student_id,
            status=data.status,
            marked_by=actor.id,
            marked_at=data.marked_at or datetime.now(UTC),
        )
        await self.db.commit()

        record_id, student_id = record.id, record.student_id
        title = activity.title
        logger.info(
            f"Attendance {record_id} marked {data.status.value} by {actor.id} "
            f"for application {application.id}"
        )

        await self.side_effects.run(
            f"audit:{AuditAction.ATTENDANCE_MARK.value}",
            lambda: self.audit.record(
                AuditAction.ATTENDANCE_MARK,
                actor_id=actor.id,
                target_id=student_id,
                entity="Attendance",
                entity_id=record_id,
                message=f"Marked {data.status.value} for {title}",
                metadata={
                    "activityId": str(data.activity_id),
                    "applicationId": str(data.application_id),
                    "status": data.status.value,
                },
            ),
        )
        return record

    async def batch_mark(self, actor: CurrentUser, data: AttendanceBatchMark) -> list[Attendance]:
        """
        Mark several applications of one activity in a single transaction.

        Nothing is written unless every entry is valid.

        Raises:
            InsufficientRoleError / NotOwnerError: Not the owning coordinator or an admin
            ActivityNotFoundError: No such activity
            ApplicationNotFoundError: An entry names no existing application
            InvalidInputError: Repeated application, or one not approved for the activity
        """
        MARK_ATTENDANCE.check_role(actor)
        activity = await self._load_activity(data.activity_id)
        MARK_ATTENDANCE.check_owner(actor, activity.coordinator_id)

        statuses = {entry.application_id: entry.status for entry in data.entries}
        if len(statuses) != len(data.entries):
            raise InvalidInputError("Each application may appear only once per batch.")

        applications = await applications_repository.list_for_update(self.db, list(statuses))
        found = {application.id: application for application in applications}
        for application_id in statuses:
            if application_id not in found:
                raise ApplicationNotFoundError(application_id)
            check_markable(found[application_id], activity.id)

        marked_at = data.marked_at or datetime.now(UTC)
        records = []
        for entry in data.entries:
            records.append(
                await repository.upsert(
                    self.db,
                    activity_id=activity.id,
                    application_id=entry.application_id,
                    student_id=found[entry.application_id].student_id,
                    status=entry.status,
                    marked_by=actor.id,
                    marked_at=marked_at,
                )
            )
        await self.db.commit()

        counts = {status.value: 0 for status in AttendanceStatus}
        for entry in data.entries:
            counts[entry.status.value] += 1
        activity_id, title = activity.id, activity.title
        coordinator_id = activity.coordinator_id
        logger.info(f"Attendance batch of {len(records)} for {activity_id} by {actor.id}")

        await self.side_effects.run(
            f"audit:{AuditAction.ATTENDANCE_MARK.value}",
            lambda: self.audit.record(
                AuditAction.ATTENDANCE_MARK,
                actor_id=actor.id,
                target_id=coordinator_id,
                entity="Activity",
                entity_id=activity_id,
                message=f"Marked attendance of {len(records)} student(s) for {title}",
                metadata={"activityId": str(activity_id), "batch": True, "counts": counts},
            ),
        )
        return records

    async def list_attendance(
        self,
        actor: CurrentUser,
        *,
        activity_id: UUID | None = None,
        student_id: UUID | None = None,
        status: AttendanceStatus | None = None,
    ) -> list[Attendance]:
        """
        List the records visible to ``actor``.

        A student's own id replaces any ``student_id`` filter. A coordinator
        filtering by activity must own it; without that filter the result is
        limited to the coordinator's activities.
        """
        VIEW_ATTENDANCE.check_role(actor)

        coordinator_id = None
        if actor.role == UserRole.STUDENT:
            student_id = actor.id
        elif actor.role == UserRole.COORDINATOR:
            if activity_id:
                activity = await self._load_activity(activity_id)
                VIEW_ATTENDANCE.check_owner(actor, activity.coordinator_id)
            else:
                coordinator_id = actor.id

        return await repository.list_attendance(
            self.db,
            activity_id=activity_id,
            student_id=student_id,
            status=status,
            coordinator_id=coordinator_id,
        )

    async def get(self, actor: CurrentUser, attendance_id: UUID) -> Attendance:
        """Fetch one record: the student's own, or one of the coordinator's activities."""
        VIEW_ATTENDANCE.check_role(actor)

        record = await repository.get_by_id(self.db, attendance_id)
        if record is None:
            raise AttendanceNotFoundError(attendance_id)

        if actor.role == UserRole.STUDENT:
            owner_id = record.student_id
        else:
            owner_id = (await self._load_activity(record.activity_id)).coordinator_id

        VIEW_ATTENDANCE.check_owner(actor, owner_id)
        return record

    async def stats(self, actor: CurrentUser, activity_id: UUID) -> dict[str, int]:
        """Record counts per attendance status for one activity, zero-filled."""
        VIEW_ACTIVITY_STATS.check_role(actor)
        activity = await self._load_activity(activity_id)
        VIEW_ACTIVITY_STATS.check_owner(actor, activity.coordinator_id)

        counts = await repository.count_by_status(self.db, activity_id)
        return {status.value: counts.get(status, 0) for status in AttendanceStatus}


def get_attendance_register(
    db: AsyncSession = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit_recorder),
    side_effects: BestEffortExecutor = Depends(get_side_effects),
) -> AttendanceRegister:
    """FastAPI dependency."""
    return AttendanceRegister(db, audit, side_effects)
