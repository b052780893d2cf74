"""
Activity Lifecycle

Creation, update and deletion of activities.

1. Create:
   - Coordinators create for themselves; an admin may assign any coordinator
   - category, date and capacity are validated before anything is written
   - Every active student is notified, and the creation is audited

2. Update:
   - Owning coordinator or admin
   - ``enrolled`` is never patched; capacity may not drop below it

3. Delete:
   - Owning coordinator or admin
   - Non-admins cannot delete while any application is still pending; the
     activity row is locked first, so no submission can land between the
     check and the delete
   - Attendance, applications and the activity go in one transaction

Notifications and audit entries run after commit through the
BestEffortExecutor and cannot fail the operation.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.database import get_db
from app.core.errors import (
    ActivityNotFoundError,
    InvalidInputError,
    NotOwnerError,
    UnresolvedApplicationsError,
    UserNotFoundError,
)
from app.core.policy import CREATE_ACTIVITY, DELETE_ACTIVITY, UPDATE_ACTIVITY
from app.core.side_effects import BestEffortExecutor, get_side_effects
from app.modules.activities import repository
from app.modules.activities.models import Activity, ActivityCategory, ActivityStatus
from app.modules.activities.schemas import ActivityCreate, ActivityUpdate
from app.modules.audit_logs.models import AuditAction
from app.modules.audit_logs.recorder import AuditRecorder, get_audit_recorder
from app.modules.notifications.fanout import NotificationFanout, get_notification_fanout
from app.modules.users.models import UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {"title", "category", "date", "capacity", "status"}


# ============================================
# Validation
# ============================================


def parse_category(value: str) -> ActivityCategory:
    try:
        return ActivityCategory(value.strip().lower())
    except ValueError as e:
        allowed = ", ".join(c.value for c in ActivityCategory)
        raise InvalidInputError(f"Invalid category. Must be one of: {allowed}.") from e


def parse_status(value: str) -> ActivityStatus:
    try:
        return ActivityStatus(value.strip().lower())
    except ValueError as e:
        allowed = ", ".join(s.value for s in ActivityStatus)
        raise InvalidInputError(f"Invalid status. Must be one of: {allowed}.") from e


def parse_date(value: str) -> datetime:
    """Parse an ISO 8601 date or datetime. Naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as e:
        raise InvalidInputError("Invalid date.") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_capacity(value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInputError("Capacity must be a positive integer.")
    return value


# ============================================
# Lifecycle
# ============================================


class ActivityLifecycle:
    """Activity create/update/delete with notifications and audit."""

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

    async def _resolve_coordinator(self, actor: CurrentUser, requested: UUID | None) -> UUID:
        if requested is None or requested == actor.id:
            return actor.id

        if not actor.is_admin:
            raise NotOwnerError("Coordinators can only create activities for themselves.")

        coordinator = await UserRepository.get_by_id(self.db, requested)
        if coordinator is None:
            raise UserNotFoundError(requested)
        if coordinator.role != UserRole.COORDINATOR:
            raise InvalidInputError("Assigned user must be a coordinator.")
        return coordinator.id

    async def create(self, actor: CurrentUser, data: ActivityCreate) -> Activity:
        """
        Create an activity with ``enrolled = 0`` and status upcoming.

        Raises:
            InsufficientRoleError: Caller is a student
            InvalidInputError: Bad category, date or capacity
            NotOwnerError: A coordinator tried to assign someone else
            UserNotFoundError: Assigned coordinator does not exist
        """
        CREATE_ACTIVITY.enforce(actor)

        category = parse_category(data.category)
        date = parse_date(data.date)
        capacity = parse_capacity(data.capacity)
        coordinator_id = await self._resolve_coordinator(actor, data.coordinator_id)

        activity = await repository.create(
            self.db,
            title=data.title.strip(),
            description=data.description,
            category=category,
            date=date,
            time=data.time,
            location=data.location,
            capacity=capacity,
            status=ActivityStatus.UPCOMING,
            coordinator_id=coordinator_id,
        )
        await self.db.commit()

        activity_id, title = activity.id, activity.title
        logger.info(f"Activity {activity_id} created by {actor.id} (capacity {capacity})")

        await self.side_effects.run(
            "notify:activity_created",
            lambda: self.fanout.activity_created(
                title=title,
                date=date,
                location=data.location,
                sender_role=actor.role.value,
            ),
        )
        await self.side_effects.run(
            f"audit:{AuditAction.ACTIVITY_CREATE.value}",
            lambda: self.audit.record(
                AuditAction.ACTIVITY_CREATE,
                actor_id=actor.id,
                target_id=coordinator_id,
                entity="Activity",
                entity_id=activity_id,
                message=f"Created activity {title}",
                metadata={"activityId": str(activity_id), "title": title},
            ),
        )
        return activity

    async def _load(self, activity_id: UUID) -> Activity:
        activity = await repository.get_by_id(self.db, activity_id)
        if activity is None:
            raise ActivityNotFoundError(activity_id)
        return activity

    def _validate_patch(self, activity: Activity, patch: dict[str, Any]) -> dict[str, Any]:
        for field in REQUIRED_FIELDS & patch.keys():
            if patch[field] is None:
                raise InvalidInputError(f"{field} cannot be null.")

        fields: dict[str, Any] = {}
        for key, value in patch.items():
            if key == "category":
                fields[key] = parse_category(value)
            elif key == "status":
                fields[key] = parse_status(value)
            elif key == "date":
                fields[key] = parse_date(value)
            elif key == "capacity":
                fields[key] = parse_capacity(value)
            elif key == "title":
                fields[key] = value.strip()
            elif key == "description":
                fields[key] = value or ""
            else:
                fields[key] = value

        if "capacity" in fields and fields["capacity"] < activity.enrolled:
            raise InvalidInputError(
                f"Capacity cannot be below the current enrolment ({activity.enrolled})."
            )
        return fields

    async def update(
        self,
        actor: CurrentUser,
        activity_id: UUID,
        data: ActivityUpdate,
    ) -> Activity:
        """
        Patch an activity.

        Raises:
            InsufficientRoleError / NotOwnerError: Not the owning coordinator or an admin
            ActivityNotFoundError: No such activity
            InvalidInputError: Bad field value or capacity below enrolled
        """
        UPDATE_ACTIVITY.check_role(actor)
        activity = await self._load(activity_id)
        UPDATE_ACTIVITY.check_owner(actor, activity.coordinator_id)

        fields = self._validate_patch(activity, data.model_dump(exclude_unset=True))
        if not fields:
            return activity

        try:
            activity = await repository.update_fields(self.db, activity, fields)
            await self.db.commit()
        except IntegrityError as e:
            # enrolled grew past the new capacity between our check and the write
            await self.db.rollback()
            raise InvalidInputError("Capacity cannot be below the current enrolment.") from e

        changed = sorted(fields)
        coordinator_id = activity.coordinator_id
        logger.info(f"Activity {activity_id} updated by {actor.id}: {changed}")

        await self.side_effects.run(
            f"audit:{AuditAction.ACTIVITY_UPDATE.value}",
            lambda: self.audit.record(
                AuditAction.ACTIVITY_UPDATE,
                actor_id=actor.id,
                target_id=coordinator_id,
                entity="Activity",
                entity_id=activity_id,
                message=f"Updated activity {activity_id}",
                metadata={"activityId": str(activity_id), "changes": changed},
            ),
        )
        return activity

    async def delete(self, actor: CurrentUser, activity_id: UUID) -> dict[str, int]:
        """
        Delete an activity with its attendance and applications.

        Returns:
            Deleted row counts per table

        Raises:
            InsufficientRoleError / NotOwnerError: Not the owning coordinator or an admin
            ActivityNotFoundError: No such activity
            UnresolvedApplicationsError: Non-admin and pending applications remain
        """
        DELETE_ACTIVITY.check_role(actor)
        activity = await repository.get_for_update(self.db, activity_id)
        if activity is None:
            raise ActivityNotFoundError(activity_id)
        DELETE_ACTIVITY.check_owner(actor, activity.coordinator_id)

        if not actor.is_admin:
            pending = await repository.count_pending_applications(self.db, activity_id)
            if pending:
                logger.info(f"Refusing delete of activity {activity_id}: {pending} pending")
                raise UnresolvedApplicationsError(pending)

        title, coordinator_id = activity.title, activity.coordinator_id
        try:
            deleted = await repository.delete_with_dependents(self.db, activity_id)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error(f"Delete of activity {activity_id} rolled back", exc_info=True)
            raise

        logger.info(f"Activity {activity_id} deleted by {actor.id}: {deleted}")

        await self.side_effects.run(
            f"audit:{AuditAction.ACTIVITY_DELETE.value}",
            lambda: self.audit.record(
                AuditAction.ACTIVITY_DELETE,
                actor_id=actor.id,
                target_id=coordinator_id,
                entity="Activity",
                entity_id=activity_id,
                message=f"Deleted activity {title}",
                metadata={"activityId": str(activity_id), "title": title, "deleted": deleted},
            ),
        )
        return deleted

    async def get(self, activity_id: UUID) -> Activity:
        return await self._load(activity_id)

    async def list_activities(
        self,
        *,
        status: str | None = None,
        category: str | None = None,
        coordinator_id: UUID | None = None,
    ) -> list[Activity]:
        return await repository.list_activities(
            self.db,
            status=parse_status(status) if status else None,
            category=parse_category(category) if category else None,
            coordinator_id=coordinator_id,
        )


def get_activity_lifecycle(
    db: AsyncSession = Depends(get_db),
    fanout: NotificationFanout = Depends(get_notification_fanout),
    audit: AuditRecorder = Depends(get_audit_recorder),
    side_effects: BestEffortExecutor = Depends(get_side_effects),
) -> ActivityLifecycle:
    """FastAPI dependency."""
    return ActivityLifecycle(db, fanout, audit, side_effects)
