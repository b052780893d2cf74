"""
Notification Fan-out

Creates one Notification per recipient for lifecycle events. Each call runs
in its own session and transaction, separate from the request's, so callers
invoke it after their own commit (through the BestEffortExecutor) and a
failure here never rolls back the triggering change.

Recipient lists are de-duplicated before insertion. When a user appears in
several groups of one event, the first occurrence wins, so a recipient gets
exactly one notification per event.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import async_session_maker
from app.modules.applications.models import ApplicationStatus
from app.modules.notifications import repository
from app.modules.notifications.models import Notification, NotificationType
from app.modules.users.models import UserRole
from app.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    """What a group of recipients is told."""

    type: NotificationType
    title: str
    message: str
    sender_role: str | None = None


Delivery = tuple[NotificationEvent, Iterable[UUID | None]]


DECISION_TYPES: dict[ApplicationStatus, NotificationType] = {
    ApplicationStatus.APPROVED: NotificationType.APPROVAL,
    ApplicationStatus.REJECTED: NotificationType.REJECTION,
    ApplicationStatus.PENDING: NotificationType.ANNOUNCEMENT,
}

DECISION_TITLES: dict[ApplicationStatus, str] = {
    ApplicationStatus.APPROVED: "Application Approved",
    ApplicationStatus.REJECTED: "Application Rejected",
    ApplicationStatus.PENDING: "Application Returned to Pending",
}


def build_notifications(deliveries: Sequence[Delivery]) -> list[Notification]:
    """Expand deliveries into rows, dropping repeated and empty recipients."""
    seen: set[UUID] = set()
    notifications: list[Notification] = []

    for event, recipients in deliveries:
        for recipient_id in recipients:
            if recipient_id is None or recipient_id in seen:
                continue
            seen.add(recipient_id)
            notifications.append(
                Notification(
                    recipient_id=recipient_id,
                    type=event.type,
                    title=event.title,
                    message=event.message,
                    sender_role=event.sender_role,
                    read=False,
                )
            )

    return notifications


class NotificationFanout:
    """Multi-recipient notification writer."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_maker):
        self.session_factory = session_factory

    async def _insert(self, db: AsyncSession, deliveries: Sequence[Delivery]) -> int:
        notifications = build_notifications(deliveries)
        if not notifications:
            return 0

        await repository.create_many(db, notifications)
        await db.commit()

        kinds = ", ".join(sorted({n.type.value for n in notifications}))
        logger.info(f"Created {len(notifications)} notification(s) [{kinds}]")
        return len(notifications)

    async def _staff_ids(self, db: AsyncSession, coordinator_id: UUID | None) -> list[UUID | None]:
        admin_ids = await UserRepository.list_ids_by_role(db, UserRole.ADMIN, active_only=True)
        return [coordinator_id, *admin_ids]

    async def fanout(self, event: NotificationEvent, recipient_ids: Iterable[UUID | None]) -> int:
        """Send one event to a list of recipients. Returns the number created."""
        async with self.session_factory() as db:
            return await self._insert(db, [(event, recipient_ids)])

    async def activity_created(
        self,
        *,
        title: str,
        date: datetime,
        location: str | None,
        sender_role: str,
    ) -> int:
        """Announce a new activity to every active student."""
        where = f" at {location}" if location else ""
        event = NotificationEvent(
            type=NotificationType.ANNOUNCEMENT,
            title="New Activity Available",
            message=f"{title} on {date:%Y-%m-%d}{where}. Apply now!",
            sender_role=sender_role,
        )
        async with self.session_factory() as db:
            students = await UserRepository.list_ids_by_role(db, UserRole.STUDENT, active_only=True)
            return await self._insert(db, [(event, students)])

    async def application_submitted(
        self,
        *,
        student_id: UUID,
        student_name: str | None,
        coordinator_id: UUID,
        activity_title: str,
    ) -> int:
        """Confirm to the student; ask the coordinator and admins to review."""
        confirmation = NotificationEvent(
            type=NotificationType.ANNOUNCEMENT,
            title="Application Submitted",
            message=(
                f'Your application for "{activity_title}" has been submitted '
                "and is pending review."
            ),
            sender_role=UserRole.STUDENT.value,
        )
        review_needed = NotificationEvent(
            type=NotificationType.REMINDER,
            title="New application pending",
            message=f'{student_name or "A student"} applied for "{activity_title}".',
            sender_role=UserRole.STUDENT.value,
        )
        async with self.session_factory() as db:
            staff = await self._staff_ids(db, coordinator_id)
            return await self._insert(db, [(confirmation, [student_id]), (review_needed, staff)])

    async def application_decided(
        self,
        *,
        student_id: UUID,
        coordinator_id: UUID,
        activity_title: str,
        status: ApplicationStatus,
        notes: str | None,
        sender_role: str,
    ) -> int:
        """Tell the student and the activity's staff about a status decision."""
        notification_type = DECISION_TYPES[status]
        title = DECISION_TITLES[status]
        suffix = f" Notes: {notes}" if notes else ""

        to_student = NotificationEvent(
            type=notification_type,
            title=title,
            message=f'Your application for "{activity_title}" is now {status.value}.{suffix}',
            sender_role=sender_role,
        )
        to_staff = NotificationEvent(
            type=notification_type,
            title=f"{title} • {activity_title}",
            message=f'An application for "{activity_title}" was marked {status.value}.{suffix}',
            sender_role=sender_role,
        )
        async with self.session_factory() as db:
            staff = await self._staff_ids(db, coordinator_id)
            return await self._insert(db, [(to_student, [student_id]), (to_staff, staff)])

    async def activity_reminder(
        self,
        *,
        student_ids: Iterable[UUID],
        title: str,
        date: datetime,
        location: str | None,
    ) -> int:
        """Remind approved students that an activity is about to start."""
        where = f" at {location}" if location else ""
        event = NotificationEvent(
            type=NotificationType.REMINDER,
            title="Activity Reminder",
            message=f"{title} starts {date:%Y-%m-%d %H:%M} UTC{where}.",
            sender_role="system",
        )
        return await self.fanout(event, student_ids)


def get_notification_fanout() -> NotificationFanout:
    """FastAPI dependency."""
    return NotificationFanout()
