"""
Activity Models

Capacity-limited activities owned by a coordinator.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class ActivityCategory(str, enum.Enum):
    """Fixed activity categories."""

    WORKSHOP = "workshop"
    SEMINAR = "seminar"
    TRAINING = "training"
    EXTRACURRICULAR = "extracurricular"


class ActivityStatus(str, enum.Enum):
    """Lifecycle status of an activity."""

    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class Activity(BaseModel):
    """
    A capacity-limited activity.

    ``enrolled`` counts approved applications and is only ever changed by
    the capacity ledger's conditional updates. The CHECK constraints keep
    ``0 <= enrolled <= capacity`` true even against direct writes.
    """

    __tablename__ = "activities"
    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_activities_capacity_positive"),
        CheckConstraint("enrolled >= 0", name="ck_activities_enrolled_non_negative"),
        CheckConstraint("enrolled <= capacity", name="ck_activities_enrolled_within_capacity"),
        Index("ix_activities_status_date", "status", "date"),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[ActivityCategory] = mapped_column(
        Enum(
            ActivityCategory,
            name="activity_category",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )

    # Schedule
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    time: Mapped[str | None] = mapped_column(String(20), nullable=True)
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Capacity
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    enrolled: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    status: Mapped[ActivityStatus] = mapped_column(
        Enum(
            ActivityStatus,
            name="activity_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=ActivityStatus.UPCOMING,
    )

    # Owning coordinator
    coordinator_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Set by the reminder job so each activity is reminded once
    reminder_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, title={self.title}, {self.enrolled}/{self.capacity})>"

    @property
    def is_full(self) -> bool:
        return self.enrolled >= self.capacity
