"""
Audit Logs Repository
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Select, String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.audit_logs.models import AuditLogEntry


async def create(
    db: AsyncSession,
    *,
    id: UUID,
    action: str,
    actor_id: UUID | None,
    target_id: UUID | None,
    entity: str | None,
    entity_id: str | None,
    message: str | None,
    metadata: dict[str, Any] | None,
) -> AuditLogEntry:
    entry = AuditLogEntry(
        id=id,
        action=action,
        actor_id=actor_id,
        target_id=target_id,
        entity=entity,
        entity_id=entity_id,
        message=message,
        metadata_=metadata,
    )
    db.add(entry)
    await db.flush()
    return entry


def _filtered(
    query: Select,
    *,
    search: str | None,
    action: str | None,
    actor_id: UUID | None,
    target_id: UUID | None,
    date_from: datetime | None,
    date_to: datetime | None,
) -> Select:
    if action:
        query = query.where(AuditLogEntry.action == action)
    if actor_id:
        query = query.where(AuditLogEntry.actor_id == actor_id)
    if target_id:
        query = query.where(AuditLogEntry.target_id == target_id)
    if date_from:
        query = query.where(AuditLogEntry.created_at >= date_from)
    if date_to:
        query = query.where(AuditLogEntry.created_at <= date_to)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                AuditLogEntry.action.ilike(pattern),
                AuditLogEntry.message.ilike(pattern),
                AuditLogEntry.entity.ilike(pattern),
                AuditLogEntry.entity_id.ilike(pattern),
                cast(AuditLogEntry.metadata_, String).ilike(pattern),
            )
        )
    return query


async def list_entries(
    db: AsyncSession,
    *,
    skip: int,
    take: int,
    search: str | None = None,
    action: str | None = None,
    actor_id: UUID | None = None,
    target_id: UUID | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> tuple[list[AuditLogEntry], int]:
    """Return one page of entries (newest first) and the total match count."""
    filters = {
        "search": search,
        "action": action,
        "actor_id": actor_id,
        "target_id": target_id,
        "date_from": date_from,
        "date_to": date_to,
    }

    total_result = await db.execute(
        _filtered(select(func.count()).select_from(AuditLogEntry), **filters)
    )
    page_result = await db.execute(
        _filtered(select(AuditLogEntry), **filters)
        .order_by(AuditLogEntry.created_at.desc())
        .offset(skip)
        .limit(take)
    )
    return list(page_result.scalars().all()), total_result.scalar_one()
