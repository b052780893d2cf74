"""
Audit Log Models

Append-only audit trail. Actor and target ids carry no foreign keys so an
entry survives deletion of the users it mentions.
"""

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class AuditAction(str, enum.Enum):
    """Actions written by the service. Stored as plain text."""

    ACTIVITY_CREATE = "ACTIVITY_CREATE"
    ACTIVITY_UPDATE = "ACTIVITY_UPDATE"
    ACTIVITY_DELETE = "ACTIVITY_DELETE"
    APPLICATION_SUBMIT = "APPLICATION_SUBMIT"
    APPLICATION_STATUS_UPDATE = "APPLICATION_STATUS_UPDATE"
    APPLICATION_DELETE = "APPLICATION_DELETE"
    USER_CREATE = "USER_CREATE"
    USER_REGISTER = "USER_REGISTER"
    USER_UPDATE = "USER_UPDATE"
    USER_DELETE = "USER_DELETE"
    USER_STATUS_TOGGLE = "USER_STATUS_TOGGLE"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    PASSWORD_RESET = "PASSWORD_RESET"
    ATTENDANCE_MARK = "ATTENDANCE_MARK"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILURE = "LOGIN_FAILURE"


class AuditLogEntry(Base):
    """One audit entry. Never updated or deleted by the service."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_action_created_at", "action", "created_at"),
        Index("ix_audit_logs_actor_created_at", "actor_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    target_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    entity: Mapped[str | None] = mapped_column(String(64), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
