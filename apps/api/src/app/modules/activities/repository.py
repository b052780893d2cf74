"""
Activities Repository

Database operations for activities. Functions flush but never commit; the
calling service owns the transaction.

The enrolled counter is changed only through the two conditional UPDATE
statements below. The WHERE clause is evaluated by PostgreSQL under the
row lock taken by the UPDATE itself, so concurrent increments cannot push
``enrolled`` past ``capacity``.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, Update, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.activities.models import Activity, ActivityCategory, ActivityStatus
from app.modules.applications.models import Application, ApplicationStatus
from app.modules.attendance import repository as attendance_repository


async def create(db: AsyncSession, **fields: Any) -> Activity:
    """Create an activity with ``enrolled = 0``."""
    activity = Activity(**fields, enrolled=0)
    db.add(activity)
    await db.flush()
    await db.refresh(activity)
    return activity


async def get_by_id(db: AsyncSession, id: UUID) -> Activity | None:
    """Get activity by ID."""
    return await db.get(Activity, id)


def lock_activity_statement(activity_id: UUID, *, shared: bool = False) -> Select:
    """SELECT of one activity that locks its row: FOR SHARE if ``shared``, else FOR UPDATE."""
    return (
        select(Activity)
        .where(Activity.id == activity_id)
        .with_for_update(read=shared)
        .execution_options(populate_existing=True)
    )


async def get_for_update(db: AsyncSession, id: UUID, *, shared: bool = False) -> Activity | None:
    """
    Load an activity and lock its row until the transaction ends.

    Submissions take the shared lock and deletions the exclusive one, so a
    delete never runs between a submission's checks and its insert.
    """
    result = await db.execute(lock_activity_statement(id, shared=shared))
    return result.scalar_one_or_none()


async def exists(db: AsyncSession, id: UUID) -> bool:
    result = await db.execute(select(Activity.id).where(Activity.id == id))
    return result.scalar_one_or_none() is not None


async def list_activities(
    db: AsyncSession,
    *,
    status: ActivityStatus | None = None,
    category: ActivityCategory | None = None,
    coordinator_id: UUID | None = None,
) -> list[Activity]:
    """List activities ordered by date, optionally filtered."""
    query = select(Activity)
    if status:
        query = query.where(Activity.status == status)
    if category:
        query = query.where(Activity.category == category)
    if coordinator_id:
        query = query.where(Activity.coordinator_id == coordinator_id)

    result = await db.execute(query.order_by(Activity.date.asc()))
    return list(result.scalars().all())


async def update_fields(db: AsyncSession, activity: Activity, fields: dict[str, Any]) -> Activity:
    """Apply a validated patch. ``enrolled`` is never part of a patch."""
    for key, value in fields.items():
        setattr(activity, key, value)
    await db.flush()
    await db.refresh(activity)
    return activity


# ============================================
# Capacity counter
# ============================================


def increment_enrolled_statement(activity_id: UUID) -> Update:
    """UPDATE that takes one seat only while a seat is free."""
    return (
        update(Activity)
        .where(Activity.id == activity_id, Activity.enrolled < Activity.capacity)
        .values(enrolled=Activity.enrolled + 1)
        .returning(Activity.enrolled)
        .execution_options(synchronize_session=False)
    )


def decrement_enrolled_statement(activity_id: UUID) -> Update:
    """UPDATE that releases one seat, never going below zero."""
    return (
        update(Activity)
        .where(Activity.id == activity_id, Activity.enrolled > 0)
        .values(enrolled=Activity.enrolled - 1)
        .returning(Activity.enrolled)
        .execution_options(synchronize_session=False)
    )


async def try_increment_enrolled(db: AsyncSession, activity_id: UUID) -> int | None:
    """Take one seat. Returns the new count, or None if no row matched."""
    result = await db.execute(increment_enrolled_statement(activity_id))
    return result.scalar_one_or_none()


async def decrement_enrolled(db: AsyncSession, activity_id: UUID) -> int | None:
    """Release one seat. Returns the new count, or None if no row matched."""
    result = await db.execute(decrement_enrolled_statement(activity_id))
    return result.scalar_one_or_none()


# ============================================
# Deletion
# ============================================


async def count_pending_applications(db: AsyncSession, activity_id: UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Application)
        .where(
            Application.activity_id == activity_id,
            Application.status == ApplicationStatus.PENDING,
        )
    )
    return result.scalar_one()


async def delete_with_dependents(db: AsyncSession, activity_id: UUID) -> dict[str, int]:
    """
    Delete an activity and everything referencing it, in foreign-key order:
    attendance, then applications, then the activity.

    Returns:
        Row counts per table
    """
    attendance = await attendance_repository.delete_by_activity(db, activity_id)
    applications = await db.execute(
        delete(Application).where(Application.activity_id == activity_id)
    )
    activities = await db.execute(delete(Activity).where(Activity.id == activity_id))
    await db.flush()

    return {
        "attendance": attendance,
        "applications": applications.rowcount,
        "activities": activities.rowcount,
    }


# ============================================
# Reminders
# ============================================


async def list_due_for_reminder(
    db: AsyncSession,
    now: datetime,
    until: datetime,
) -> list[Activity]:
    """Upcoming activities starting in [now, until] that have not been reminded."""
    result = await db.execute(
        select(Activity)
        .where(
            Activity.status == ActivityStatus.UPCOMING,
            Activity.date >= now,
            Activity.date <= until,
            Activity.reminder_sent_at.is_(None),
        )
        .order_by(Activity.date.asc())
    )
    return list(result.scalars().all())


def claim_reminder_statement(activity_id: UUID, sent_at: datetime) -> Update:
    """UPDATE that stamps ``reminder_sent_at`` only while it is still unset."""
    return (
        update(Activity)
        .where(Activity.id == activity_id, Activity.reminder_sent_at.is_(None))
        .values(reminder_sent_at=sent_at)
        .returning(Activity.id)
        .execution_options(synchronize_session=False)
    )


async def claim_reminder(db: AsyncSession, activity_id: UUID, sent_at: datetime) -> bool:
    """Stamp the reminder. False if another run already claimed it."""
    result = await db.execute(claim_reminder_statement(activity_id, sent_at))
    await db.flush()
    return result.scalar_one_or_none() is not None


async def count_by_coordinator(db: AsyncSession, coordinator_id: UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(Activity).where(Activity.coordinator_id == coordinator_id)
    )
    return result.scalar_one()
