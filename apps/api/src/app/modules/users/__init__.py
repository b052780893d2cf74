"""
Users module - Identity records and account management.
"""

from app.modules.users.models import User, UserRole, UserStatus
from app.modules.users.repository import UserRepository

__all__ = ["User", "UserRole", "UserStatus", "UserRepository"]
