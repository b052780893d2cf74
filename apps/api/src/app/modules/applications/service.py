"""
Application Lifecycle

The state machine for student applications and its effect on activity
capacity.

States are pending (initial), approved and rejected. Any state may move to
any other; only crossing into or out of approved touches the capacity
ledger:

    non-approved -> approved   take a seat (may fail with CAPACITY_EXCEEDED)
    approved -> non-approved   release a seat
    anything else              no change

A status change locks the application row for the duration of its
transaction, so two concurrent calls on the same application cannot both
observe the same old status and apply the capacity effect twice.
A submission holds a shared lock on its activity row until it commits, so
an activity delete never removes an application submitted under it.

Notifications and audit entries run after commit through the
BestEffortExecutor.
"""

import logging
from uuid import UUID

from fastapi import Depends
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.database import get_db
from app.core.errors import (
    ActivityCompletedError,
    ActivityFullError,
    ActivityNotFoundError,
    ApplicationNotFoundError,
    DuplicateApplicationError,
    ServiceError,
)
from app.core.policy import (
    DELETE_APPLICATION,
    MARK_ATTENDANCE,
    SET_APPLICATION_STATUS,
    SUBMIT_APPLICATION,
    VIEW_ACTIVITY_STATS,
    VIEW_APPLICATION,
    AccessRule,
)
from app.core.side_effects import BestEffortExecutor, get_side_effects
from app.modules.activities import repository as activities_repository
from app.modules.activities.capacity import CapacityLedger
from app.modules.activities.models import Activity, ActivityStatus
from app.modules.applications import repository
from app.modules.applications.models import Application, ApplicationStatus
from app.modules.audit_logs.models import AuditAction
from app.modules.audit_logs.recorder import AuditRecorder, get_audit_recorder
from app.modules.notifications.fanout import NotificationFanout, get_notification_fanout
from app.modules.users.models import UserRole

logger = logging.getLogger(__name__)


def capacity_effect(old: ApplicationStatus, new: ApplicationStatus) -> int:
    """Seat change for a transition: +1, -1 or 0."""
    was_approved = old == ApplicationStatus.APPROVED
    is_approved = new == ApplicationStatus.APPROVED
    if is_approved and not was_approved:
        return 1
    if was_approved and not is_approved:
        return -1
    return 0


class ApplicationLifecycle:
    """Submit, decide, view and delete applications."""

    def __init__(
        self,
        db: AsyncSession,
        fanout: NotificationFanout,
        audit: AuditRecorder,
        side_effects: BestEffortExecutor,
    ):
        self.db = db
        self.fanout = fanout
        self.audit = audit
        self.side_effects = side_effects
        self.ledger = CapacityLedger(db)

    async def _load_activity(self, activity_id: UUID) -> Activity:
        activity = await activities_repository.get_by_id(self.db, activity_id)
        if activity is None:
            raise ActivityNotFoundError(activity_id)
        return activity

    async def submit(
        self,
        actor: CurrentUser,
        activity_id: UUID,
        notes: str | None = None,
    ) -> Application:
        """
        Apply to an activity. The application starts pending and takes no seat.

        Raises:
            InsufficientRoleError: Caller is not a student
            ActivityNotFoundError: No such activity
            DuplicateApplicationError: Already applied (also on a lost insert race)
            ActivityCompletedError: Activity is completed
            ActivityFullError: No seat left
        """
        SUBMIT_APPLICATION.enforce(actor)

        # shared lock: an activity delete cannot interleave with this submission
        activity = await activities_repository.get_for_update(self.db, activity_id, shared=True)
        if activity is None:
            raise ActivityNotFoundError(activity_id)

        if await repository.get_by_student_and_activity(self.db, actor.id, activity_id):
            raise DuplicateApplicationError()
        if activity.status == ActivityStatus.COMPLETED:
            raise ActivityCompletedError()
        if activity.enrolled >= activity.capacity:
            raise ActivityFullError()

        try:
            application = await repository.create(
                self.db, student_id=actor.id, activity_id=activity_id, notes=notes
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(f"Duplicate application race for {actor.id} on {activity_id}")
            raise DuplicateApplicationError() from e

        application_id = application.id
        coordinator_id, activity_title = activity.coordinator_id, activity.title
        logger.info(f"Application {application_id} submitted by {actor.id} for {activity_id}")

        await self.side_effects.run(
            "notify:application_submitted",
            lambda: self.fanout.application_submitted(
                student_id=actor.id,
                student_name=actor.name,
                coordinator_id=coordinator_id,
                activity_title=activity_title,
            ),
        )
        await self.side_effects.run(
            f"audit:{AuditAction.APPLICATION_SUBMIT.value}",
            lambda: self.audit.record(
                AuditAction.APPLICATION_SUBMIT,
                actor_id=actor.id,
                target_id=coordinator_id,
                entity="Application",
                entity_id=application_id,
                message=f"Applied to {activity_title}",
                metadata={"applicationId": str(application_id), "activityId": str(activity_id)},
            ),
        )
        return application

    async def set_status(
        self,
        actor: CurrentUser,
        application_id: UUID,
        status: ApplicationStatus,
        notes: str | None = None,
    ) -> Application:
        """
        Move an application to ``status`` and apply its capacity effect once.

        Raises:
            InsufficientRoleError: Caller is a student
            ApplicationNotFoundError: No such application
            NotOwnerError: Coordinator does not own the activity
            CapacityExceededError: Approving into a full activity
        """
        SET_APPLICATION_STATUS.check_role(actor)

        application = await repository.get_for_update(self.db, application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)

        activity = await self._load_activity(application.activity_id)
        SET_APPLICATION_STATUS.check_owner(actor, activity.coordinator_id)

        old_status = application.status
        delta = capacity_effect(old_status, status)
        enrolled: int | None = None

        try:
            if delta > 0:
                enrolled = await self.ledger.increment(activity.id)
            elif delta < 0:
                enrolled = await self.ledger.decrement(activity.id)

            application = await repository.update_status(
                self.db, application, status, reviewed_by=actor.id, notes=notes
            )
            await self.db.commit()
        except ServiceError:
            await self.db.rollback()
            raise

        logger.info(
            f"Application {application_id}: {old_status.value} -> {status.value} "
            f"by {actor.id} (seat delta {delta:+d})"
        )

        student_id, coordinator_id = application.student_id, activity.coordinator_id
        activity_id, activity_title = activity.id, activity.title
        saved_notes = application.notes

        await self.side_effects.run(
            "notify:application_decided",
            lambda: self.fanout.application_decided(
                student_id=student_id,
                coordinator_id=coordinator_id,
                activity_title=activity_title,
                status=status,
                notes=saved_notes,
                sender_role=actor.role.value,
            ),
        )
        await self.side_effects.run(
            f"audit:{AuditAction.APPLICATION_STATUS_UPDATE.value}",
            lambda: self.audit.record(
                AuditAction.APPLICATION_STATUS_UPDATE,
                actor_id=actor.id,
                target_id=student_id,
                entity="Application",
                entity_id=application_id,
                message=f"Application {old_status.value} -> {status.value}",
                metadata={
                    "applicationId": str(application_id),
                    "activityId": str(activity_id),
                    "from": old_status.value,
                    "to": status.value,
                    "enrolledDelta": delta,
                    "enrolled": enrolled,
                },
            ),
        )
        return application

    async def delete(self, actor: CurrentUser, application_id: UUID) -> None:
        """
        Hard-delete an application and its attendance rows (admin only).

        The activity's enrolled count is left unchanged, even for an
        approved application; the audit entry records this.

        Raises:
            InsufficientRoleError: Caller is not an admin
            ApplicationNotFoundError: No such application
        """
        DELETE_APPLICATION.enforce(actor)

        application = await repository.get_by_id(self.db, application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)

        status = application.status
        student_id, activity_id = application.student_id, application.activity_id

        await repository.delete_with_attendance(self.db, application_id)
        await self.db.commit()

        if status == ApplicationStatus.APPROVED:
            logger.warning(
                f"Deleted approved application {application_id}; "
                f"enrolled for activity {activity_id} was not released"
            )
        logger.info(f"Application {application_id} deleted by {actor.id}")

        await self.side_effects.run(
            f"audit:{AuditAction.APPLICATION_DELETE.value}",
            lambda: self.audit.record(
                AuditAction.APPLICATION_DELETE,
                actor_id=actor.id,
                target_id=student_id,
                entity="Application",
                entity_id=application_id,
                message=f"Deleted {status.value} application",
                metadata={
                    "applicationId": str(application_id),
                    "activityId": str(activity_id),
                    "status": status.value,
                    "enrolledReleased": False,
                },
            ),
        )

    async def get(self, actor: CurrentUser, application_id: UUID) -> Application:
        """
        Fetch one application.

        Students may view their own; coordinators those of activities they own.
        """
        VIEW_APPLICATION.check_role(actor)

        application = await repository.get_by_id(self.db, application_id)
        if application is None:
            raise ApplicationNotFoundError(application_id)

        if actor.role == UserRole.STUDENT:
            owner_id = application.student_id
        else:
            owner_id = (await self._load_activity(application.activity_id)).coordinator_id

        VIEW_APPLICATION.check_owner(actor, owner_id)
        return application

    async def list_applications(
        self,
        actor: CurrentUser,
        *,
        activity_id: UUID | None = None,
        status: ApplicationStatus | None = None,
    ) -> list[Application]:
        """List the applications visible to ``actor``."""
        VIEW_APPLICATION.check_role(actor)

        return await repository.list_applications(
            self.db,
            student_id=actor.id if actor.role == UserRole.STUDENT else None,
            coordinator_id=actor.id if actor.role == UserRole.COORDINATOR else None,
            activity_id=activity_id,
            status=status,
        )

    async def _load_owned_activity(
        self, rule: AccessRule, actor: CurrentUser, activity_id: UUID
    ) -> Activity:
        rule.check_role(actor)
        activity = await self._load_activity(activity_id)
        rule.check_owner(actor, activity.coordinator_id)
        return activity

    async def stats(self, actor: CurrentUser, activity_id: UUID) -> dict[str, int]:
        """
        Application counts per status for one activity, zero-filled.

        Raises:
            InsufficientRoleError / NotOwnerError: Not the owning coordinator or an admin
            ActivityNotFoundError: No such activity
        """
        await self._load_owned_activity(VIEW_ACTIVITY_STATS, actor, activity_id)
        counts = await repository.count_by_status(self.db, activity_id)
        return {status.value: counts.get(status, 0) for status in ApplicationStatus}

    async def approved_roster(self, actor: CurrentUser, activity_id: UUID) -> list[RowMapping]:
        """
        Approved applications of an activity, ordered by student name, for
        taking attendance.

        Raises:
            InsufficientRoleError / NotOwnerError: Not the owning coordinator or an admin
            ActivityNotFoundError: No such activity
        """
        await self._load_owned_activity(MARK_ATTENDANCE, actor, activity_id)
        return await repository.list_approved_roster(self.db, activity_id)


def get_application_lifecycle(
    db: AsyncSession = Depends(get_db),
    fanout: NotificationFanout = Depends(get_notification_fanout),
    audit: AuditRecorder = Depends(get_audit_recorder),
    side_effects: BestEffortExecutor = Depends(get_side_effects),
) -> ApplicationLifecycle:
    """FastAPI dependency."""
    return ApplicationLifecycle(db, fanout, audit, side_effects)
