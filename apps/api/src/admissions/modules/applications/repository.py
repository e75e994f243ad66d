"""
Student Applications Repository

Database access for applications and the notification outbox.

Applications are loaded and saved as whole aggregates. ``save`` is the only
place a transition is committed; it turns a lost optimistic-lock race into
ConcurrentModificationError after rolling the session back.
"""

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from admissions.modules.applications.errors import ConcurrentModificationError
from admissions.modules.applications.models import (
    ApplicationStage,
    ApplicationStatus,
    NotificationOutbox,
    StudentApplication,
)

logger = logging.getLogger(__name__)


# ============================================
# Application Aggregate
# ============================================


async def get_by_id(db: AsyncSession, id: UUID) -> StudentApplication | None:
    result = await db.execute(select(StudentApplication).where(StudentApplication.id == id))
    return result.scalar_one_or_none()


async def application_code_exists(db: AsyncSession, code: str) -> bool:
    result = await db.execute(
        select(func.count())
        .select_from(StudentApplication)
        .where(StudentApplication.application_code == code)
    )
    return (result.scalar() or 0) > 0


def add(db: AsyncSession, application: StudentApplication) -> None:
    """Stage a new application for insert."""
    db.add(application)


def add_notification(db: AsyncSession, notification: NotificationOutbox) -> None:
    """Stage an outbox row in the current transaction."""
    db.add(notification)


async def save(db: AsyncSession, application: StudentApplication) -> StudentApplication:
    """
    Commit the current transaction and reload the application.

    The UPDATE carries the version the application was loaded at, so a
    concurrent writer that committed first makes this commit fail.

    Raises:
        ConcurrentModificationError: If the row changed since it was loaded,
            or a unique constraint on the row was hit concurrently
    """
    application_id = application.id
    loaded_version = application.version_id

    try:
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        logger.error(
            f"Lost update on application {application_id}: "
            f"loaded at version {loaded_version}, row changed before commit"
        )
        raise ConcurrentModificationError(application_id, "stale version") from e
    except IntegrityError as e:
        await db.rollback()
        logger.error(
            f"Integrity error committing application {application_id} "
            f"(version {loaded_version}): {e.orig}"
        )
        raise ConcurrentModificationError(application_id, "unique constraint") from e

    await db.refresh(application)
    return application


# ============================================
# Applicant Queries
# ============================================


async def _newest_first(
    db: AsyncSession, query, skip: int, limit: int
) -> tuple[list[StudentApplication], int]:
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(desc(StudentApplication.created_at)).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total


async def get_applications_for_owner(
    db: AsyncSession,
    owner_id: UUID,
    *,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[StudentApplication], int]:
    """Applications owned by an account, newest first, with the total count."""
    query = select(StudentApplication).where(StudentApplication.owner_id == owner_id)
    return await _newest_first(db, query, skip, limit)


async def get_applications_submitted_by(
    db: AsyncSession,
    actor_id: UUID,
    *,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[StudentApplication], int]:
    """
    Applications an account submitted, newest first, with the total count.

    Agents and staff submit on behalf of students, so this differs from
    ownership.
    """
    query = select(StudentApplication).where(StudentApplication.submitted_by == actor_id)
    return await _newest_first(db, query, skip, limit)


# ============================================
# Admin Queries
# ============================================


async def get_applications_for_admin(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    stage: ApplicationStage | None = None,
    search: str | None = None,
    sort_by: str = "submitted_at",
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[StudentApplication], int]:
    """
    Get applications with filters, sorting, and pagination.

    Args:
        db: Database session
        status: Filter by status (optional)
        stage: Filter by stage (optional)
        search: Case-insensitive match on application code, applicant
                name or contact email (optional)
        sort_by: submitted_at or created_at. Default: submitted_at
        sort_order: asc or desc. Default: asc (oldest first)
        skip: Records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (applications, total count matching filters)
    """
    query = select(StudentApplication)

    if status:
        query = query.where(StudentApplication.status == status)

    if stage:
        query = query.where(StudentApplication.stage == stage)

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                StudentApplication.application_code.ilike(pattern),
                StudentApplication.personal_details["full_name"].astext.ilike(pattern),
                StudentApplication.contact_details["email"].astext.ilike(pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    if sort_by not in {"submitted_at", "created_at"}:
        sort_by = "submitted_at"

    sort_column = getattr(StudentApplication, sort_by)
    order = desc(sort_column) if sort_order.lower() == "desc" else asc(sort_column)
    query = query.order_by(order).offset(skip).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_dashboard_stats(db: AsyncSession) -> dict:
    """
    Counts per status plus resubmission count.

    Returns:
        Dict with total, by_status, resubmitted and awaiting_review
    """
    rows = await db.execute(
        select(StudentApplication.status, func.count()).group_by(StudentApplication.status)
    )
    by_status = {status.value: 0 for status in ApplicationStatus}
    for status, count in rows.all():
        by_status[status.value] = count

    resubmitted = (
        await db.execute(
            select(func.count())
            .select_from(StudentApplication)
            .where(StudentApplication.resubmission_count > 0)
        )
    ).scalar() or 0

    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "resubmitted": resubmitted,
        "awaiting_review": by_status[ApplicationStatus.SUBMITTED.value]
        + by_status[ApplicationStatus.UNDER_REVIEW.value],
    }


# ============================================
# Notification Outbox
# ============================================


async def get_pending_notifications(
    db: AsyncSession,
    *,
    limit: int,
    max_attempts: int,
) -> list[NotificationOutbox]:
    """Undelivered outbox rows that still have attempts left, oldest first."""
    result = await db.execute(
        select(NotificationOutbox)
        .where(
            NotificationOutbox.delivered_at.is_(None),
            NotificationOutbox.attempts < max_attempts,
        )
        .order_by(asc(NotificationOutbox.created_at))
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_notification_delivered(db: AsyncSession, notification: NotificationOutbox) -> None:
    notification.delivered_at = datetime.now(UTC)
    notification.attempts = (notification.attempts or 0) + 1
    notification.last_error = None
    await db.commit()


async def mark_notification_failed(
    db: AsyncSession, notification: NotificationOutbox, error: str
) -> None:
    notification.attempts = (notification.attempts or 0) + 1
    notification.last_error = error[:2000]
    await db.commit()
