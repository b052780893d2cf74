"""
Notifications Repository
"""

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.notifications.models import Notification, NotificationType


async def create_many(db: AsyncSession, notifications: list[Notification]) -> list[Notification]:
    """Insert a batch of notifications in one flush."""
    db.add_all(notifications)
    await db.flush()
    return notifications


async def get_by_id(db: AsyncSession, id: UUID) -> Notification | None:
    return await db.get(Notification, id)


async def list_notifications(
    db: AsyncSession,
    *,
    recipient_id: UUID | None = None,
    read: bool | None = None,
    type: NotificationType | None = None,
    limit: int = 100,
) -> list[Notification]:
    """List notifications, newest first."""
    query = select(Notification)
    if recipient_id:
        query = query.where(Notification.recipient_id == recipient_id)
    if read is not None:
        query = query.where(Notification.read == read)
    if type:
        query = query.where(Notification.type == type)

    result = await db.execute(query.order_by(Notification.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def count_unread(db: AsyncSession, recipient_id: UUID) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.recipient_id == recipient_id, Notification.read.is_(False))
    )
    return result.scalar_one()


async def mark_read(db: AsyncSession, notification: Notification) -> Notification:
    notification.read = True
    await db.flush()
    await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, recipient_id: UUID) -> int:
    """Mark every unread notification of a recipient as read. Returns the count."""
    result = await db.execute(
        update(Notification)
        .where(Notification.recipient_id == recipient_id, Notification.read.is_(False))
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount


async def delete_by_id(db: AsyncSession, id: UUID) -> int:
    result = await db.execute(delete(Notification).where(Notification.id == id))
    await db.flush()
    return result.rowcount
