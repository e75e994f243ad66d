"""
Student Applications Background Jobs

Delivers the notification outbox. Workflow transitions only write an outbox
row in their own transaction; this job sends the emails afterwards.

- A row is retried on every run until it is delivered or has used up
  ``notification_max_attempts``
- Rows without a recipient address are marked delivered with a warning
- One failing row never stops the rest of the batch
"""

import logging
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from admissions.core.config import settings
from admissions.core.database import async_session_maker
from admissions.core.email import (
    send_application_approved,
    send_application_cancelled,
    send_application_rejected,
    send_application_resubmitted,
    send_application_submitted,
)
from admissions.core.scheduler import register_job
from admissions.modules.applications import repository
from admissions.modules.applications.models import NotificationEvent, NotificationOutbox

logger = logging.getLogger(__name__)

JOB_ID_DELIVER_NOTIFICATIONS = "applications_deliver_notifications"


async def _send(notification: NotificationOutbox) -> bool:
    """Send the email for one outbox row."""
    payload = notification.payload or {}
    common = {
        "to_email": notification.recipient_email,
        "applicant_name": payload.get("applicant_name"),
        "application_code": payload.get("application_code"),
    }

    match notification.event:
        case NotificationEvent.SUBMITTED:
            return await send_application_submitted(**common)
        case NotificationEvent.RESUBMITTED:
            return await send_application_resubmitted(
                **common, resubmission_count=payload.get("resubmission_count", 0)
            )
        case NotificationEvent.APPROVED:
            return await send_application_approved(**common)
        case NotificationEvent.REJECTED:
            return await send_application_rejected(
                **common,
                reason_title=payload.get("reason_title", ""),
                message=payload.get("message", ""),
                details=payload.get("details"),
            )
        case NotificationEvent.CANCELLED:
            return await send_application_cancelled(**common)

    raise ValueError(f"Unknown notification event: {notification.event}")


async def deliver_pending_notifications() -> dict[str, Any]:
    """
    Send pending applicant notifications.

    Returns:
        Dict with job execution summary:
        - delivered: Rows sent (or skipped for lack of a recipient)
        - failed: Rows whose send failed this run
        - results: Per-row outcome
    """
    results: dict[str, Any] = {"delivered": 0, "failed": 0, "results": []}

    async with async_session_maker() as db:
        pending = await repository.get_pending_notifications(
            db,
            limit=settings.notification_batch_size,
            max_attempts=settings.notification_max_attempts,
        )

        if pending:
            logger.info(f"Delivering {len(pending)} pending notifications")

        for notification in pending:
            row = {
                "notification_id": str(notification.id),
                "application_id": str(notification.application_id),
                "event": notification.event.value,
            }

            if not notification.recipient_email:
                logger.warning(
                    f"No recipient for {notification.event.value} notification "
                    f"on application {notification.application_id}, skipping"
                )
                await repository.mark_notification_delivered(db, notification)
                results["delivered"] += 1
                results["results"].append({**row, "status": "skipped", "reason": "no_recipient"})
                continue

            try:
                sent = await _send(notification)
            except Exception as e:
                logger.error(
                    f"Error delivering notification {notification.id}: {e}",
                    exc_info=True,
                )
                await repository.mark_notification_failed(db, notification, str(e))
                results["failed"] += 1
                results["results"].append({**row, "status": "error", "error": str(e)})
                continue

            if sent:
                await repository.mark_notification_delivered(db, notification)
                results["delivered"] += 1
                results["results"].append({**row, "status": "sent"})
            else:
                await repository.mark_notification_failed(db, notification, "send failed")
                results["failed"] += 1
                results["results"].append({**row, "status": "failed"})
                if notification.attempts >= settings.notification_max_attempts:
                    logger.error(
                        f"Giving up on notification {notification.id} after "
                        f"{notification.attempts} attempts"
                    )

    if pending:
        logger.info(
            f"Notification delivery completed. "
            f"Delivered: {results['delivered']}, Failed: {results['failed']}"
        )

    return results


def register_application_jobs() -> None:
    """Register the outbox delivery job. Call before the scheduler starts."""
    register_job(
        job_id=JOB_ID_DELIVER_NOTIFICATIONS,
        func=deliver_pending_notifications,
        trigger=IntervalTrigger(seconds=settings.notification_interval_seconds),
    )
    logger.info(
        f"Registered job: {JOB_ID_DELIVER_NOTIFICATIONS} "
        f"(interval: {settings.notification_interval_seconds}s)"
    )
