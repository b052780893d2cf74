"""
Access Policy

Role- and ownership-based authorization. Every mutating operation declares
its requirement as one of the AccessRule constants below and checks it
before touching the store. Admins satisfy every role requirement and every
ownership check.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from app.core.auth import CurrentUser
from app.core.errors import InsufficientRoleError, NotOwnerError
from app.modules.users.models import UserRole

logger = logging.getLogger(__name__)


def require_role(user: CurrentUser, allowed: frozenset[UserRole]) -> None:
    """Raise InsufficientRoleError unless the user is admin or holds an allowed role."""
    if user.is_admin or user.role in allowed:
        return
    logger.warning(f"Access denied: user {user.id} has role '{user.role.value}'")
    raise InsufficientRoleError(user.role.value, [role.value for role in allowed])


def require_ownership(
    user: CurrentUser,
    owner_id: UUID | None,
    message: str | None = None,
) -> None:
    """Raise NotOwnerError unless the user is admin or owns the resource."""
    if user.is_admin or (owner_id is not None and user.id == owner_id):
        return
    logger.warning(f"Access denied: user {user.id} does not own resource (owner={owner_id})")
    raise NotOwnerError(message) if message else NotOwnerError()


@dataclass(frozen=True)
class AccessRule:
    """
    A statically declared access requirement.

    Attributes:
        name: Operation the rule guards (used in logs)
        roles: Roles permitted besides admin
        ownership: Whether the caller must also own the target resource
    """

    name: str
    roles: frozenset[UserRole]
    ownership: bool = False

    def check_role(self, user: CurrentUser) -> None:
        require_role(user, self.roles)

    def check_owner(self, user: CurrentUser, owner_id: UUID | None) -> None:
        if self.ownership:
            require_ownership(user, owner_id)

    def enforce(self, user: CurrentUser, owner_id: UUID | None = None) -> None:
        """Check role, then ownership when the rule requires it."""
        self.check_role(user)
        self.check_owner(user, owner_id)


_ANY_ROLE = frozenset(UserRole)

SUBMIT_APPLICATION = AccessRule("submit application", frozenset({UserRole.STUDENT}))
SET_APPLICATION_STATUS = AccessRule(
    "set application status", frozenset({UserRole.COORDINATOR}), ownership=True
)
DELETE_APPLICATION = AccessRule("delete application", frozenset({UserRole.ADMIN}))
VIEW_APPLICATION = AccessRule(
    "view application", frozenset({UserRole.STUDENT, UserRole.COORDINATOR}), ownership=True
)

CREATE_ACTIVITY = AccessRule("create activity", frozenset({UserRole.COORDINATOR}))
UPDATE_ACTIVITY = AccessRule("update activity", frozenset({UserRole.COORDINATOR}), ownership=True)
DELETE_ACTIVITY = AccessRule("delete activity", frozenset({UserRole.COORDINATOR}), ownership=True)
VIEW_ACTIVITY_STATS = AccessRule(
    "view activity stats", frozenset({UserRole.COORDINATOR}), ownership=True
)

MARK_ATTENDANCE = AccessRule("mark attendance", frozenset({UserRole.COORDINATOR}), ownership=True)
VIEW_ATTENDANCE = AccessRule(
    "view attendance", frozenset({UserRole.STUDENT, UserRole.COORDINATOR}), ownership=True
)

MANAGE_USERS = AccessRule("manage users", frozenset({UserRole.ADMIN}))
READ_AUDIT_LOG = AccessRule("read audit log", frozenset({UserRole.ADMIN}))

READ_NOTIFICATION = AccessRule("read notification", _ANY_ROLE, ownership=True)


__all__ = [
    "AccessRule",
    "require_role",
    "require_ownership",
    "SUBMIT_APPLICATION",
    "SET_APPLICATION_STATUS",
    "DELETE_APPLICATION",
    "VIEW_APPLICATION",
    "CREATE_ACTIVITY",
    "UPDATE_ACTIVITY",
    "DELETE_ACTIVITY",
    "VIEW_ACTIVITY_STATS",
    "MARK_ATTENDANCE",
    "VIEW_ATTENDANCE",
    "MANAGE_USERS",
    "READ_AUDIT_LOG",
    "READ_NOTIFICATION",
]
