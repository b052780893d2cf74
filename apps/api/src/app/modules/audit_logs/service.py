"""
Audit Logs Service

Admin-only, filtered and paginated reads of the audit trail.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.errors import InvalidInputError
from app.core.policy import READ_AUDIT_LOG
from app.modules.audit_logs import repository
from app.modules.audit_logs.schemas import AuditLogListResponse, AuditLogResponse

MAX_PAGE_SIZE = 200
DEFAULT_PAGE_SIZE = 50


def clamp_take(take: int | None) -> int:
    if take is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(take, MAX_PAGE_SIZE))


async def list_audit_logs(
    db: AsyncSession,
    actor: CurrentUser,
    *,
    search: str | None = None,
    action: str | None = None,
    actor_id: UUID | None = None,
    target_id: UUID | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    skip: int = 0,
    take: int | None = None,
) -> AuditLogListResponse:
    """
    List audit entries, newest first.

    ``take`` is clamped to 1..200 and ``skip`` to >= 0.

    Raises:
        InsufficientRoleError: Caller is not an admin
        InvalidInputError: date_from is after date_to
    """
    READ_AUDIT_LOG.enforce(actor)

    if date_from and date_to and date_from > date_to:
        raise InvalidInputError("date_from must not be after date_to.")

    skip = max(0, skip)
    take = clamp_take(take)

    entries, total = await repository.list_entries(
        db,
        skip=skip,
        take=take,
        search=search,
        action=action.strip().upper() if action else None,
        actor_id=actor_id,
        target_id=target_id,
        date_from=date_from,
        date_to=date_to,
    )

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in entries],
        total=total,
        skip=skip,
        take=take,
    )
