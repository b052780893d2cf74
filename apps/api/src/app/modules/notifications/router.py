"""
Notifications Router

Endpoints:
- GET /notifications - List the caller's notifications
- GET /notifications/unread-count - Count unread notifications
- GET /notifications/{id} - One notification (recipient, admin)
- PATCH /notifications/{id}/read - Mark one notification read
- PATCH /notifications/read-all - Mark all of the caller's notifications read
- DELETE /notifications/{id} - Delete one notification (recipient, admin)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.core.database import get_db
from app.modules.notifications import service
from app.modules.notifications.models import NotificationType
from app.modules.notifications.schemas import (
    MarkAllReadResponse,
    NotificationResponse,
    UnreadCountResponse,
)

router = APIRouter()


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    read: bool | None = Query(None),
    type: NotificationType | None = Query(None),
    recipient_id: UUID | None = Query(None, description="Admins only"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[NotificationResponse]:
    notifications = await service.list_notifications(
        db, user, read=read, type=type, recipient_id=recipient_id
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread=await service.unread_count(db, user))


@router.patch("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    return MarkAllReadResponse(updated=await service.mark_all_read(db, user))


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    notification = await service.mark_read(db, user, notification_id)
    return NotificationResponse.model_validate(notification)


@router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    notification = await service.get_notification(db, user, notification_id)
    return NotificationResponse.model_validate(notification)


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete Notification",
)
async def delete_notification(
    notification_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await service.delete_notification(db, user, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
