"""
Shared fixtures.

Services are tested against a mocked AsyncSession with the repository
modules patched out. Notification fan-out and audit recording are replaced
with AsyncMocks and side effects run in "await" mode so their calls can be
asserted right after the operation returns.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.core.auth import CurrentUser
from app.core.side_effects import BestEffortExecutor
from app.modules.activities.models import ActivityCategory, ActivityStatus
from app.modules.applications.models import ApplicationStatus
from app.modules.users.models import UserRole, UserStatus


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.flush = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    return db


@pytest.fixture
def session_db():
    """The session handed out by ``session_factory``."""
    db = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    return db


@pytest.fixture
def session_factory(session_db):
    """Stand-in for ``async_session_maker``: ``async with factory() as db``."""
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=session_db)
    context.__aexit__ = AsyncMock(return_value=False)
    factory = MagicMock(return_value=context)
    return factory


@pytest.fixture
def executor():
    return BestEffortExecutor("await")


@pytest.fixture
def mock_fanout():
    return AsyncMock()


@pytest.fixture
def mock_audit():
    return AsyncMock()


def make_user(role: UserRole, name: str) -> CurrentUser:
    return CurrentUser(
        id=uuid4(),
        email=f"{name.lower()}@ju.edu",
        role=role,
        name=name,
        revocation_epoch=1,
    )


@pytest.fixture
def student():
    return make_user(UserRole.STUDENT, "Student")


@pytest.fixture
def other_student():
    return make_user(UserRole.STUDENT, "Other")


@pytest.fixture
def coordinator():
    return make_user(UserRole.COORDINATOR, "Coordinator")


@pytest.fixture
def other_coordinator():
    return make_user(UserRole.COORDINATOR, "Rival")


@pytest.fixture
def admin():
    return make_user(UserRole.ADMIN, "Admin")


@pytest.fixture
def user_record():
    """A stored user as returned by UserRepository."""
    user = MagicMock()
    user.id = uuid4()
    user.email = "student@ju.edu"
    user.name = "Student"
    user.password_hash = "$2b$12$hash"
    user.role = UserRole.STUDENT
    user.status = UserStatus.ACTIVE
    user.is_active = True
    user.revocation_epoch = 1
    return user


@pytest.fixture
def activity(coordinator):
    """An upcoming activity with free seats, owned by ``coordinator``."""
    activity = MagicMock()
    activity.id = uuid4()
    activity.title = "Python Workshop"
    activity.category = ActivityCategory.WORKSHOP
    activity.date = datetime.now(UTC) + timedelta(days=3)
    activity.location = "Hall A"
    activity.capacity = 10
    activity.enrolled = 2
    activity.status = ActivityStatus.UPCOMING
    activity.coordinator_id = coordinator.id
    return activity


@pytest.fixture
def application(student, activity):
    """A pending application by ``student`` for ``activity``."""
    application = MagicMock()
    application.id = uuid4()
    application.student_id = student.id
    application.activity_id = activity.id
    application.status = ApplicationStatus.PENDING
    application.notes = None
    return application
