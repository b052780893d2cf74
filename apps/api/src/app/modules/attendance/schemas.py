"""
Attendance Schemas
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.modules.attendance.models import AttendanceStatus


class AttendanceMark(BaseModel):
    """Request body for POST /attendance."""

    activity_id: UUID
    application_id: UUID
    status: AttendanceStatus
    marked_at: datetime | None = None


class AttendanceBatchEntry(BaseModel):
    application_id: UUID
    status: AttendanceStatus


class AttendanceBatchMark(BaseModel):
    """Request body for POST /attendance/batch. All entries belong to one activity."""

    activity_id: UUID
    entries: list[AttendanceBatchEntry] = Field(..., min_length=1, max_length=500)
    marked_at: datetime | None = None


class AttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    activity_id: UUID
    application_id: UUID
    student_id: UUID
    status: AttendanceStatus
    marked_at: datetime
    marked_by: UUID | None = None
