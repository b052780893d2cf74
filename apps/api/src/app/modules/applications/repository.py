"""
Applications Repository

Database operations for applications. Functions flush but never commit.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.activities.models import Activity
from app.modules.applications.models import Application, ApplicationStatus
from app.modules.attendance import repository as attendance_repository
from app.modules.users.models import User


async def create(
    db: AsyncSession,
    *,
    student_id: UUID,
    activity_id: UUID,
    notes: str | None = None,
) -> Application:
    """Create a pending application."""
    application = Application(
        student_id=student_id,
        activity_id=activity_id,
        status=ApplicationStatus.PENDING,
        notes=notes,
    )
    db.add(application)
    await db.flush()
    await db.refresh(application)
    return application


async def get_by_id(db: AsyncSession, id: UUID) -> Application | None:
    return await db.get(Application, id)


async def get_for_update(db: AsyncSession, id: UUID) -> Application | None:
    """Load an application and lock its row until the transaction ends."""
    result = await db.execute(
        select(Application)
        .where(Application.id == id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_by_student_and_activity(
    db: AsyncSession, student_id: UUID, activity_id: UUID
) -> Application | None:
    result = await db.execute(
        select(Application).where(
            Application.student_id == student_id,
            Application.activity_id == activity_id,
        )
    )
    return result.scalar_one_or_none()


async def list_applications(
    db: AsyncSession,
    *,
    student_id: UUID | None = None,
    coordinator_id: UUID | None = None,
    activity_id: UUID | None = None,
    status: ApplicationStatus | None = None,
) -> list[Application]:
    """
    List applications, newest first.

    ``coordinator_id`` restricts to applications for activities that
    coordinator owns.
    """
    query = select(Application)
    if coordinator_id:
        query = query.join(Activity, Activity.id == Application.activity_id).where(
            Activity.coordinator_id == coordinator_id
        )
    if student_id:
        query = query.where(Application.student_id == student_id)
    if activity_id:
        query = query.where(Application.activity_id == activity_id)
    if status:
        query = query.where(Application.status == status)

    result = await db.execute(query.order_by(Application.applied_at.desc()))
    return list(result.scalars().all())


async def list_student_ids(
    db: AsyncSession, activity_id: UUID, status: ApplicationStatus
) -> list[UUID]:
    """Student ids of an activity's applications in ``status``."""
    result = await db.execute(
        select(Application.student_id)
        .where(Application.activity_id == activity_id, Application.status == status)
        .order_by(Application.applied_at)
    )
    return list(result.scalars().all())


async def update_status(
    db: AsyncSession,
    application: Application,
    status: ApplicationStatus,
    *,
    reviewed_by: UUID,
    notes: str | None = None,
) -> Application:
    """Persist a status decision. ``notes=None`` keeps the existing notes."""
    application.status = status
    application.reviewed_by = reviewed_by
    application.reviewed_at = datetime.now(UTC)
    if notes is not None:
        application.notes = notes

    await db.flush()
    await db.refresh(application)
    return application


async def delete_with_attendance(db: AsyncSession, application_id: UUID) -> int:
    """Delete an application's attendance rows, then the application."""
    await attendance_repository.delete_by_application(db, application_id)
    result = await db.execute(delete(Application).where(Application.id == application_id))
    await db.flush()
    return result.rowcount


async def list_for_update(db: AsyncSession, ids: list[UUID]) -> list[Application]:
    """Load and lock several applications, in id order so concurrent callers cannot deadlock."""
    result = await db.execute(
        select(Application)
        .where(Application.id.in_(ids))
        .order_by(Application.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def list_approved_activity_ids(db: AsyncSession, student_id: UUID) -> list[UUID]:
    """Activities in which ``student_id`` holds a seat."""
    result = await db.execute(
        select(Application.activity_id).where(
            Application.student_id == student_id,
            Application.status == ApplicationStatus.APPROVED,
        )
    )
    return list(result.scalars().all())


async def delete_by_student(db: AsyncSession, student_id: UUID) -> int:
    result = await db.execute(delete(Application).where(Application.student_id == student_id))
    await db.flush()
    return result.rowcount


async def count_by_status(db: AsyncSession, activity_id: UUID) -> dict[ApplicationStatus, int]:
    """Application counts per status for one activity. Statuses with no rows are absent."""
    result = await db.execute(
        select(Application.status, func.count())
        .where(Application.activity_id == activity_id)
        .group_by(Application.status)
    )
    return {status: count for status, count in result.all()}


async def list_approved_roster(db: AsyncSession, activity_id: UUID) -> list[RowMapping]:
    """Approved applications of an activity with the student's name, ordered by name."""
    result = await db.execute(
        select(
            Application.id,
            Application.student_id,
            User.name.label("student_name"),
            Application.applied_at,
        )
        .join(User, User.id == Application.student_id)
        .where(
            Application.activity_id == activity_id,
            Application.status == ApplicationStatus.APPROVED,
        )
        .order_by(User.name.asc(), Application.applied_at.asc())
    )
    return list(result.mappings().all())
