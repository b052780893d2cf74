"""
Service Errors

Every error raised by the core carries an ``ErrorKind`` tag. The HTTP status
is derived from the kind, so routers never pick status codes themselves:

- VALIDATION      -> 400
- AUTHENTICATION  -> 401
- AUTHORIZATION   -> 403
- NOT_FOUND       -> 404
- CONFLICT        -> 409

A single exception handler (``register_exception_handlers``) converts
``ServiceError`` into the API's error body:
``{"detail": {"error": "<ERROR_CODE>", "message": "<text>"}}``.
"""

import enum
import logging
from uuid import UUID

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    """Categories of failure surfaced by core operations."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
}


class ServiceError(Exception):
    """Base exception for core service errors."""

    def __init__(self, message: str, error_code: str, kind: ErrorKind):
        self.message = message
        self.error_code = error_code
        self.kind = kind
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


# ============================================
# Validation
# ============================================


class InvalidInputError(ServiceError):
    """Raised when input fails validation before any mutation."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="INVALID_INPUT", kind=ErrorKind.VALIDATION)


# ============================================
# Authentication
# ============================================


class AuthenticationError(ServiceError):
    """Base class for 401 errors."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, kind=ErrorKind.AUTHENTICATION)


class MissingTokenError(AuthenticationError):
    def __init__(self):
        super().__init__("Missing Authorization Bearer token.", "MISSING_TOKEN")


class TokenMalformedError(AuthenticationError):
    def __init__(self, message: str = "Invalid authentication token."):
        super().__init__(message, "TOKEN_MALFORMED")


class TokenExpiredError(AuthenticationError):
    def __init__(self):
        super().__init__("Authentication token has expired.", "TOKEN_EXPIRED")


class TokenRevokedError(AuthenticationError):
    """Raised when the token's revocation epoch no longer matches the identity."""

    def __init__(self):
        super().__init__("Token is no longer valid. Please sign in again.", "TOKEN_REVOKED")


class IdentityNotFoundError(AuthenticationError):
    def __init__(self):
        super().__init__("Token subject no longer exists.", "IDENTITY_NOT_FOUND")


class InvalidCredentialsError(AuthenticationError):
    def __init__(self, message: str = "Invalid email or password."):
        super().__init__(message, "INVALID_CREDENTIALS")


# ============================================
# Authorization
# ============================================


class AuthorizationError(ServiceError):
    """Base class for 403 errors."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, kind=ErrorKind.AUTHORIZATION)


class InsufficientRoleError(AuthorizationError):
    def __init__(self, role: str, allowed: list[str]):
        self.role = role
        self.allowed = allowed
        super().__init__(
            f"Role '{role}' is not permitted. Required one of: {', '.join(sorted(allowed))}.",
            "INSUFFICIENT_ROLE",
        )


class NotOwnerError(AuthorizationError):
    def __init__(self, message: str = "You can only manage resources you own."):
        super().__init__(message, "NOT_OWNER")


class AccountInactiveError(AuthorizationError):
    def __init__(self):
        super().__init__("Your account has been deactivated.", "ACCOUNT_INACTIVE")


# ============================================
# Not found
# ============================================


class NotFoundError(ServiceError):
    """Base class for 404 errors."""

    def __init__(self, entity: str, entity_id: UUID | str | None = None):
        message = f"{entity} {entity_id} not found" if entity_id else f"{entity} not found"
        code = f"{entity.upper().replace(' ', '_')}_NOT_FOUND"
        super().__init__(message=message, error_code=code, kind=ErrorKind.NOT_FOUND)


class ActivityNotFoundError(NotFoundError):
    def __init__(self, activity_id: UUID | str | None = None):
        super().__init__("Activity", activity_id)


class ApplicationNotFoundError(NotFoundError):
    def __init__(self, application_id: UUID | str | None = None):
        super().__init__("Application", application_id)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: UUID | str | None = None):
        super().__init__("User", user_id)


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id: UUID | str | None = None):
        super().__init__("Notification", notification_id)


class AttendanceNotFoundError(NotFoundError):
    def __init__(self, attendance_id: UUID | str | None = None):
        super().__init__("Attendance", attendance_id)


# ============================================
# Conflict
# ============================================


class ConflictError(ServiceError):
    """Base class for 409 errors."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, kind=ErrorKind.CONFLICT)


class DuplicateApplicationError(ConflictError):
    def __init__(self):
        super().__init__("Already applied for this activity.", "DUPLICATE_APPLICATION")


class ActivityFullError(ConflictError):
    def __init__(self):
        super().__init__("Activity is at full capacity.", "ACTIVITY_FULL")


class CapacityExceededError(ConflictError):
    def __init__(self, activity_id: UUID | str):
        self.activity_id = activity_id
        super().__init__(
            f"Activity {activity_id} has no remaining capacity.",
            "CAPACITY_EXCEEDED",
        )


class ActivityCompletedError(ConflictError):
    def __init__(self):
        super().__init__(
            "Activity is completed. You can no longer apply.",
            "ACTIVITY_COMPLETED",
        )


class UnresolvedApplicationsError(ConflictError):
    def __init__(self, pending_count: int):
        self.pending_count = pending_count
        super().__init__(
            f"Please resolve {pending_count} pending application(s) before deleting this activity.",
            "UNRESOLVED_APPLICATIONS",
        )


class EmailAlreadyExistsError(ConflictError):
    def __init__(self):
        super().__init__("Email already exists.", "EMAIL_ALREADY_EXISTS")


class CannotDeactivateSelfError(ConflictError):
    def __init__(self):
        super().__init__("Admin cannot deactivate their own account.", "CANNOT_DEACTIVATE_SELF")


class CannotDeleteAdminError(ConflictError):
    def __init__(self):
        super().__init__("Admin accounts cannot be deleted.", "CANNOT_DELETE_ADMIN")


class CoordinatorOwnsActivitiesError(ConflictError):
    def __init__(self, activity_count: int):
        self.activity_count = activity_count
        super().__init__(
            f"Reassign or delete this coordinator's {activity_count} activity(ies) first.",
            "COORDINATOR_OWNS_ACTIVITIES",
        )


# ============================================
# HTTP mapping
# ============================================


def error_response(exc: ServiceError) -> JSONResponse:
    """Build the JSON error response for a service error."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind == ErrorKind.AUTHENTICATION else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"error": exc.error_code, "message": exc.message}},
        headers=headers,
    )


async def _service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    if exc.kind in (ErrorKind.AUTHENTICATION, ErrorKind.AUTHORIZATION):
        logger.warning(f"Access rejected: {exc.error_code} - {exc.message}")
    return error_response(exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the ServiceError -> HTTP response handler on the app."""
    app.add_exception_handler(ServiceError, _service_error_handler)
