"""
Audit Logs Router

Endpoints:
- GET /audit-logs - Filtered, paginated audit trail (admin only)
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.core.database import get_db
from app.modules.audit_logs import service
from app.modules.audit_logs.schemas import AuditLogListResponse

router = APIRouter()


@router.get("", response_model=AuditLogListResponse, summary="List Audit Logs")
async def list_audit_logs(
    q: str | None = Query(None, description="Free-text search"),
    action: str | None = Query(None),
    actor_id: UUID | None = Query(None),
    target_id: UUID | None = Query(None),
    date_from: datetime | None = Query(None),
    date_to: datetime | None = Query(None),
    skip: int = Query(0, ge=0),
    take: int | None = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AuditLogListResponse:
    return await service.list_audit_logs(
        db,
        user,
        search=q,
        action=action,
        actor_id=actor_id,
        target_id=target_id,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        take=take,
    )
