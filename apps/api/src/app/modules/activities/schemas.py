"""
Activities Schemas

Category, date, capacity and status arrive as plain values and are
validated by the service, so bad values map to INVALID_INPUT (400) like
every other core validation failure.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.modules.activities.models import ActivityCategory, ActivityStatus


class ActivityCreate(BaseModel):
    """Request body for POST /activities."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=5000)
    category: str
    date: str = Field(..., description="ISO 8601 date or datetime; naive values are UTC")
    time: str | None = Field(None, max_length=20)
    location: str | None = Field(None, max_length=255)
    capacity: int
    coordinator_id: UUID | None = Field(None, description="Admins only: assign a coordinator")


class ActivityUpdate(BaseModel):
    """Request body for PATCH /activities/{id}. ``enrolled`` is not accepted."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    category: str | None = None
    date: str | None = None
    time: str | None = Field(None, max_length=20)
    location: str | None = Field(None, max_length=255)
    capacity: int | None = None
    status: str | None = None


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str
    category: ActivityCategory
    date: datetime
    time: str | None = None
    location: str | None = None
    capacity: int
    enrolled: int
    status: ActivityStatus
    coordinator_id: UUID
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def available_spots(self) -> int:
        return max(0, self.capacity - self.enrolled)


class ActivityDeleteResponse(BaseModel):
    id: UUID
    deleted: dict[str, int]
    message: str
