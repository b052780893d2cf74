"""
Activity Background Jobs

Hourly reminder for approved students of activities starting within
ACTIVITY_REMINDER_HOURS.

- Each activity is processed in its own session; one failure does not stop
  the run
- ``reminder_sent_at`` is claimed with a conditional UPDATE and committed
  before any notification is written, so neither a re-run nor a second
  worker reminds the same activity twice
- A fan-out failure after the claim is logged and not retried
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.scheduler import register_job
from app.modules.activities import repository
from app.modules.activities.models import Activity
from app.modules.applications import repository as applications_repository
from app.modules.applications.models import ApplicationStatus
from app.modules.notifications.fanout import NotificationFanout

logger = logging.getLogger(__name__)

JOB_ID_SEND_REMINDERS = "activities_send_reminders"


async def _remind(activity: Activity, fanout: NotificationFanout) -> dict[str, Any]:
    async with async_session_maker() as db:
        if not await repository.claim_reminder(db, activity.id, datetime.now(UTC)):
            return {"activity_id": str(activity.id), "status": "skipped"}

        student_ids = await applications_repository.list_student_ids(
            db, activity.id, ApplicationStatus.APPROVED
        )
        await db.commit()

    sent = 0
    if student_ids:
        sent = await fanout.activity_reminder(
            student_ids=student_ids,
            title=activity.title,
            date=activity.date,
            location=activity.location,
        )

    return {"activity_id": str(activity.id), "status": "sent", "notifications": sent}


async def send_activity_reminders(
    fanout: NotificationFanout | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Remind approved students of activities starting soon.

    Returns:
        Summary with processed/skipped/failed counts and per-activity results
    """
    fanout = fanout or NotificationFanout()
    now = now or datetime.now(UTC)
    until = now + timedelta(hours=settings.activity_reminder_hours)

    async with async_session_maker() as db:
        activities = await repository.list_due_for_reminder(db, now, until)

    logger.info(f"Found {len(activities)} activities due for a reminder")

    results: dict[str, Any] = {"processed": 0, "skipped": 0, "failed": 0, "details": []}
    for activity in activities:
        try:
            detail = await _remind(activity, fanout)
            results["skipped" if detail["status"] == "skipped" else "processed"] += 1
        except Exception as e:
            logger.error(f"Reminder for activity {activity.id} failed: {e}", exc_info=True)
            detail = {"activity_id": str(activity.id), "status": "error", "error": str(e)}
            results["failed"] += 1
        results["details"].append(detail)

    logger.info(
        f"Activity reminders complete: {results['processed']} processed, "
        f"{results['skipped']} skipped, {results['failed']} failed"
    )
    return results


def register_activity_jobs() -> None:
    """Register the activity jobs with the scheduler."""
    register_job(
        job_id=JOB_ID_SEND_REMINDERS,
        func=send_activity_reminders,
        trigger=IntervalTrigger(hours=1),
    )
