"""
Applications Schemas
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.modules.applications.models import ApplicationStatus


class ApplicationCreate(BaseModel):
    """Request body for POST /applications."""

    activity_id: UUID
    notes: str | None = Field(None, max_length=2000)


class ApplicationStatusUpdate(BaseModel):
    """Request body for PATCH /applications/{id}/status."""

    status: ApplicationStatus
    notes: str | None = Field(None, max_length=2000)


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    activity_id: UUID
    status: ApplicationStatus
    notes: str | None = None
    applied_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: UUID | None = None


class RosterEntry(BaseModel):
    """One approved application on an activity's attendance roster."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    student_name: str
    applied_at: datetime
