"""
Audit Recorder

Best-effort audit trail writer. ``record`` generates the entry id itself,
writes in its own session and never raises: on any failure it logs and
returns a result whose id is None.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import async_session_maker
from app.modules.audit_logs import repository
from app.modules.audit_logs.models import AuditAction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditRecordResult:
    id: UUID | None

    @property
    def recorded(self) -> bool:
        return self.id is not None


class AuditRecorder:
    """Appends audit entries without ever failing the caller."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_maker):
        self.session_factory = session_factory

    async def record(
        self,
        action: AuditAction | str,
        *,
        actor_id: UUID | None = None,
        target_id: UUID | None = None,
        entity: str | None = None,
        entity_id: UUID | str | None = None,
        message: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AuditRecordResult:
        """Append one entry. Returns the new id, or None if the write failed."""
        action_name = action.value if isinstance(action, AuditAction) else action
        entry_id = uuid4()

        try:
            async with self.session_factory() as db:
                await repository.create(
                    db,
                    id=entry_id,
                    action=action_name,
                    actor_id=actor_id,
                    target_id=target_id,
                    entity=entity,
                    entity_id=str(entity_id) if entity_id is not None else None,
                    message=message,
                    metadata=metadata,
                )
                await db.commit()
        except Exception as e:
            logger.error(f"Failed to write audit entry {action_name}: {e}", exc_info=True)
            return AuditRecordResult(id=None)

        logger.debug(f"Audit {action_name} recorded as {entry_id}")
        return AuditRecordResult(id=entry_id)


def get_audit_recorder() -> AuditRecorder:
    """FastAPI dependency."""
    return AuditRecorder()
