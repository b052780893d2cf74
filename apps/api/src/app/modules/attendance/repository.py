"""
Attendance Repository

Database operations for attendance. Functions flush but never commit.

A record is keyed on its application: marking the same application again
overwrites status, marker and time instead of adding a second row.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.activities.models import Activity
from app.modules.attendance.models import Attendance, AttendanceStatus


def upsert_statement(
    *,
    activity_id: UUID,
    application_id: UUID,
    student_id: UUID,
    status: AttendanceStatus,
    marked_by: UUID,
    marked_at: datetime,
) -> Insert:
    """INSERT ... ON CONFLICT (application_id) DO UPDATE returning the stored row."""
    statement = insert(Attendance).values(
        activity_id=activity_id,
        application_id=application_id,
        student_id=student_id,
        status=status,
        marked_by=marked_by,
        marked_at=marked_at,
    )
    return (
        statement.on_conflict_do_update(
            index_elements=[Attendance.application_id],
            set_={
                "status": statement.excluded.status,
                "marked_by": statement.excluded.marked_by,
                "marked_at": statement.excluded.marked_at,
                "updated_at": func.now(),
            },
        )
        .returning(Attendance)
        .execution_options(populate_existing=True)
    )


async def upsert(
    db: AsyncSession,
    *,
    activity_id: UUID,
    application_id: UUID,
    student_id: UUID,
    status: AttendanceStatus,
    marked_by: UUID,
    marked_at: datetime,
) -> Attendance:
    result = await db.execute(
        upsert_statement(
            activity_id=activity_id,
            application_id=application_id,
            student_id=student_id,
            status=status,
            marked_by=marked_by,
            marked_at=marked_at,
        )
    )
    await db.flush()
    return result.scalar_one()


async def get_by_id(db: AsyncSession, id: UUID) -> Attendance | None:
    return await db.get(Attendance, id)


async def list_attendance(
    db: AsyncSession,
    *,
    activity_id: UUID | None = None,
    student_id: UUID | None = None,
    status: AttendanceStatus | None = None,
    coordinator_id: UUID | None = None,
) -> list[Attendance]:
    """
    List attendance records, most recently marked first.

    ``coordinator_id`` restricts to records of activities that coordinator
    owns.
    """
    query = select(Attendance)
    if coordinator_id:
        query = query.join(Activity, Activity.id == Attendance.activity_id).where(
            Activity.coordinator_id == coordinator_id
        )
    if activity_id:
        query = query.where(Attendance.activity_id == activity_id)
    if student_id:
        query = query.where(Attendance.student_id == student_id)
    if status:
        query = query.where(Attendance.status == status)

    result = await db.execute(query.order_by(Attendance.marked_at.desc()))
    return list(result.scalars().all())


async def count_by_status(db: AsyncSession, activity_id: UUID) -> dict[AttendanceStatus, int]:
    """Record counts per status for one activity. Statuses with no rows are absent."""
    result = await db.execute(
        select(Attendance.status, func.count())
        .where(Attendance.activity_id == activity_id)
        .group_by(Attendance.status)
    )
    return {status: count for status, count in result.all()}


async def delete_by_activity(db: AsyncSession, activity_id: UUID) -> int:
    result = await db.execute(delete(Attendance).where(Attendance.activity_id == activity_id))
    return result.rowcount


async def delete_by_application(db: AsyncSession, application_id: UUID) -> int:
    result = await db.execute(delete(Attendance).where(Attendance.application_id == application_id))
    return result.rowcount


async def delete_by_student(db: AsyncSession, student_id: UUID) -> int:
    result = await db.execute(delete(Attendance).where(Attendance.student_id == student_id))
    return result.rowcount
