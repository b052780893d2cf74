"""
User Models

Identity records for students, coordinators and admins.
"""

from enum import Enum

from sqlalchemy import CheckConstraint, Integer, String, Text
from sqlalchemy.dialects.postgresql import ENUM
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class UserRole(str, Enum):
    """User roles in the system."""

    STUDENT = "student"
    COORDINATOR = "coordinator"
    ADMIN = "admin"


class UserStatus(str, Enum):
    """Account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class User(BaseModel):
    """
    User model for authentication and authorization.

    ``revocation_epoch`` starts at 1 and only ever increases. Every access
    token embeds the epoch it was issued under; bumping it (on password
    change) invalidates all tokens issued before.
    """

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("revocation_epoch >= 1", name="ck_users_revocation_epoch"),)

    # Authentication fields
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    revocation_epoch: Mapped[int] = mapped_column(
        Integer,
        default=1,
        server_default="1",
        nullable=False,
    )

    # Profile fields
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    student_number: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    department: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    # Role and status
    role: Mapped[UserRole] = mapped_column(
        ENUM(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.STUDENT,
        index=True,
    )
    status: Mapped[UserStatus] = mapped_column(
        ENUM(UserStatus, name="user_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserStatus.ACTIVE,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
