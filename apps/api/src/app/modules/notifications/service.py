"""
Notification Inbox

Read side of notifications. Non-admins only ever see and modify their own
notifications; admins may look at another recipient's inbox.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.errors import NotificationNotFoundError
from app.core.policy import READ_NOTIFICATION
from app.modules.notifications import repository
from app.modules.notifications.models import Notification, NotificationType

logger = logging.getLogger(__name__)


def _scope_recipient(actor: CurrentUser, recipient_id: UUID | None) -> UUID | None:
    """Admins may pick any recipient (or all); everyone else gets themselves."""
    if actor.is_admin:
        return recipient_id
    return actor.id


async def list_notifications(
    db: AsyncSession,
    actor: CurrentUser,
    *,
    read: bool | None = None,
    type: NotificationType | None = None,
    recipient_id: UUID | None = None,
) -> list[Notification]:
    return await repository.list_notifications(
        db,
        recipient_id=_scope_recipient(actor, recipient_id),
        read=read,
        type=type,
    )


async def unread_count(db: AsyncSession, actor: CurrentUser) -> int:
    return await repository.count_unread(db, actor.id)


async def get_notification(
    db: AsyncSession, actor: CurrentUser, notification_id: UUID
) -> Notification:
    """
    Fetch one notification.

    Raises:
        NotificationNotFoundError: No such notification
        NotOwnerError: Caller is neither the recipient nor an admin
    """
    notification = await repository.get_by_id(db, notification_id)
    if notification is None:
        raise NotificationNotFoundError(notification_id)

    READ_NOTIFICATION.enforce(actor, owner_id=notification.recipient_id)
    return notification


async def mark_read(db: AsyncSession, actor: CurrentUser, notification_id: UUID) -> Notification:
    """Mark one notification read. Same checks as ``get_notification``."""
    notification = await get_notification(db, actor, notification_id)

    if notification.read:
        return notification

    notification = await repository.mark_read(db, notification)
    await db.commit()
    return notification


async def mark_all_read(db: AsyncSession, actor: CurrentUser) -> int:
    updated = await repository.mark_all_read(db, actor.id)
    await db.commit()
    logger.info(f"Marked {updated} notification(s) read for {actor.id}")
    return updated


async def delete_notification(db: AsyncSession, actor: CurrentUser, notification_id: UUID) -> None:
    """Delete one notification. Same checks as ``get_notification``."""
    notification = await get_notification(db, actor, notification_id)

    await repository.delete_by_id(db, notification.id)
    await db.commit()
    logger.info(f"Notification {notification_id} deleted by {actor.id}")
