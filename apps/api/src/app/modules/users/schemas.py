"""
User Schemas
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.modules.users.models import UserRole, UserStatus


class UserResponse(BaseModel):
    """Public view of a user. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    role: UserRole
    status: UserStatus
    student_number: str | None = None
    department: str | None = None
    created_at: datetime
    updated_at: datetime


class UserCreate(BaseModel):
    """Request body for POST /users (admin)."""

    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole
    student_number: str | None = Field(None, max_length=50)
    department: str | None = Field(None, max_length=200)


class UserUpdate(BaseModel):
    """Request body for PATCH /users/me and PUT /users/{id}. Unset fields are kept."""

    name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = None
    student_number: str | None = Field(None, max_length=50)
    department: str | None = Field(None, max_length=200)


class PasswordReset(BaseModel):
    """Request body for PATCH /users/{id}/password (admin)."""

    new_password: str = Field(..., min_length=8, max_length=128)
