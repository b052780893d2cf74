"""
Unit tests for the activity reminder job.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from app.core.config import settings
from app.modules.activities.jobs import (
    JOB_ID_SEND_REMINDERS,
    register_activity_jobs,
    send_activity_reminders,
)
from app.modules.applications.models import ApplicationStatus


def _activity(title: str) -> MagicMock:
    activity = MagicMock()
    activity.id = uuid4()
    activity.title = title
    activity.date = datetime.now(UTC) + timedelta(hours=5)
    activity.location = "Hall B"
    return activity


class TestSendActivityReminders:
    """Tests for send_activity_reminders."""

    @pytest.mark.asyncio
    async def test_reminds_approved_students(self, session_factory, session_db, mock_fanout):
        activity = _activity("Seminar")
        students = [uuid4(), uuid4()]
        mock_fanout.activity_reminder = AsyncMock(return_value=2)
        now = datetime.now(UTC)

        with (
            patch("app.modules.activities.jobs.async_session_maker", session_factory),
            patch("app.modules.activities.jobs.repository") as mock_repo,
            patch("app.modules.activities.jobs.applications_repository") as mock_apps,
        ):
            mock_repo.list_due_for_reminder = AsyncMock(return_value=[activity])
            mock_repo.claim_reminder = AsyncMock(return_value=True)
            mock_apps.list_student_ids = AsyncMock(return_value=students)

            result = await send_activity_reminders(fanout=mock_fanout, now=now)

        assert result["processed"] == 1
        assert result["failed"] == 0
        assert result["details"][0]["notifications"] == 2

        window_end = mock_repo.list_due_for_reminder.call_args.args[2]
        assert window_end == now + timedelta(hours=settings.activity_reminder_hours)
        assert mock_apps.list_student_ids.call_args.args[2] == ApplicationStatus.APPROVED
        assert mock_fanout.activity_reminder.call_args.kwargs["student_ids"] == students
        mock_repo.claim_reminder.assert_awaited_once()
        session_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_activity_without_approvals_is_still_claimed(self, session_factory, mock_fanout):
        activity = _activity("Empty")

        with (
            patch("app.modules.activities.jobs.async_session_maker", session_factory),
            patch("app.modules.activities.jobs.repository") as mock_repo,
            patch("app.modules.activities.jobs.applications_repository") as mock_apps,
        ):
            mock_repo.list_due_for_reminder = AsyncMock(return_value=[activity])
            mock_repo.claim_reminder = AsyncMock(return_value=True)
            mock_apps.list_student_ids = AsyncMock(return_value=[])

            result = await send_activity_reminders(fanout=mock_fanout)

        assert result["processed"] == 1
        mock_fanout.activity_reminder.assert_not_called()
        mock_repo.claim_reminder.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_run(
        self,
        session_factory,
        session_db,
        mock_fanout,
    ):
        broken, healthy = _activity("Broken"), _activity("Healthy")
        mock_fanout.activity_reminder = AsyncMock(return_value=1)

        async def student_ids(_db, activity_id, _status):
            if activity_id == broken.id:
                raise RuntimeError("connection reset")
            return [uuid4()]

        with (
            patch("app.modules.activities.jobs.async_session_maker", session_factory),
            patch("app.modules.activities.jobs.repository") as mock_repo,
            patch("app.modules.activities.jobs.applications_repository") as mock_apps,
        ):
            mock_repo.list_due_for_reminder = AsyncMock(return_value=[broken, healthy])
            mock_repo.claim_reminder = AsyncMock(return_value=True)
            mock_apps.list_student_ids = AsyncMock(side_effect=student_ids)

            result = await send_activity_reminders(fanout=mock_fanout)

        assert result["processed"] == 1
        assert result["failed"] == 1
        assert result["details"][0]["status"] == "error"
        assert "connection reset" in result["details"][0]["error"]
        assert result["details"][1]["status"] == "sent"
        # the broken activity's claim is rolled back with its session
        assert mock_repo.claim_reminder.await_count == 2
        session_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_claim_is_committed_before_notifying(
        self,
        session_factory,
        session_db,
        mock_fanout,
    ):
        activity = _activity("Lecture")

        async def notify(**_kwargs):
            session_db.commit.assert_awaited_once()
            return 1

        mock_fanout.activity_reminder = AsyncMock(side_effect=notify)

        with (
            patch("app.modules.activities.jobs.async_session_maker", session_factory),
            patch("app.modules.activities.jobs.repository") as mock_repo,
            patch("app.modules.activities.jobs.applications_repository") as mock_apps,
        ):
            mock_repo.list_due_for_reminder = AsyncMock(return_value=[activity])
            mock_repo.claim_reminder = AsyncMock(return_value=True)
            mock_apps.list_student_ids = AsyncMock(return_value=[uuid4()])

            result = await send_activity_reminders(fanout=mock_fanout)

        assert result["processed"] == 1
        mock_fanout.activity_reminder.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_already_claimed_activity_is_skipped(self, session_factory, mock_fanout):
        activity = _activity("Claimed elsewhere")

        with (
            patch("app.modules.activities.jobs.async_session_maker", session_factory),
            patch("app.modules.activities.jobs.repository") as mock_repo,
            patch("app.modules.activities.jobs.applications_repository") as mock_apps,
        ):
            mock_repo.list_due_for_reminder = AsyncMock(return_value=[activity])
            mock_repo.claim_reminder = AsyncMock(return_value=False)
            mock_apps.list_student_ids = AsyncMock()

            result = await send_activity_reminders(fanout=mock_fanout)

        assert result["processed"] == 0
        assert result["skipped"] == 1
        assert result["details"][0]["status"] == "skipped"
        mock_apps.list_student_ids.assert_not_called()
        mock_fanout.activity_reminder.assert_not_called()

    @pytest.mark.asyncio
    async def test_fanout_failure_is_not_retried(self, session_factory, session_db, mock_fanout):
        activity = _activity("Flaky")
        mock_fanout.activity_reminder = AsyncMock(side_effect=RuntimeError("store down"))

        with (
            patch("app.modules.activities.jobs.async_session_maker", session_factory),
            patch("app.modules.activities.jobs.repository") as mock_repo,
            patch("app.modules.activities.jobs.applications_repository") as mock_apps,
        ):
            mock_repo.list_due_for_reminder = AsyncMock(return_value=[activity])
            mock_repo.claim_reminder = AsyncMock(return_value=True)
            mock_apps.list_student_ids = AsyncMock(return_value=[uuid4()])

            result = await send_activity_reminders(fanout=mock_fanout)

        assert result["failed"] == 1
        session_db.commit.assert_awaited_once()


def test_register_activity_jobs():
    with patch("app.modules.activities.jobs.register_job") as mock_register:
        register_activity_jobs()

    assert mock_register.call_args.kwargs["job_id"] == JOB_ID_SEND_REMINDERS
    assert mock_register.call_args.kwargs["func"] is send_activity_reminders
