"""
Student Applications Service Layer

Orchestrates the workflow engine, the repository and the notification
outbox. Every mutating operation follows the same steps:

1. Load the aggregate (optionally checking the caller's expected version)
2. Verify the status/stage pairing and document aggregate of what was loaded
3. Apply the pure transition from ``workflow.py``
4. Stage an outbox row for the applicant notification, if any
5. Commit through ``repository.save``

The commit is guarded by the row's ``version_id``. Two reviewers that load
the same version and both try to decide it cannot both succeed; the loser
gets ConcurrentModificationError and must reload. Nothing here retries.

Notifications are delivered by the outbox job after the commit, so a mail
failure can never undo or corrupt a transition.
"""

import logging
import uuid
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.exceptions import ForbiddenError
from admissions.modules.applications import ledger, repository, workflow
from admissions.modules.applications.errors import (
    ApplicationNotFoundError,
    ConcurrentModificationError,
    InvariantViolationError,
)
from admissions.modules.applications.helpers import generate_application_code
from admissions.modules.applications.models import (
    DocumentStatus,
    NotificationEvent,
    NotificationOutbox,
    StudentApplication,
)
from admissions.modules.applications.schemas import (
    AdminNote,
    ApplicationCreate,
    ApplicationDocument,
    ApplicationUpdate,
    AttachDocumentRequest,
    ReferralInfo,
    RejectionDetailsResponse,
    RejectionReasonResponse,
)
from admissions.modules.referrals import service as referral_service
from admissions.modules.referrals.service import ReferralCodeNotFoundError
from admissions.modules.rejection_catalog import resolve as resolve_rejection_reason
from admissions.modules.shared import Actor

logger = logging.getLogger(__name__)

# Attempts at finding an unused application code
APPLICATION_CODE_ATTEMPTS = 5


def _now() -> datetime:
    return datetime.now(UTC)


# ============================================
# Internal Helpers
# ============================================


async def _load(
    db: AsyncSession,
    application_id: UUID,
    expected_version: int | None = None,
) -> StudentApplication:
    """
    Load an application and check the loaded state.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        ConcurrentModificationError: If expected_version is stale
        InvariantViolationError: If the stored aggregate is inconsistent
    """
    application = await repository.get_by_id(db, application_id)

    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    if expected_version is not None and application.version_id != expected_version:
        logger.error(
            f"Stale version for application {application_id}: "
            f"caller read {expected_version}, current is {application.version_id} "
            f"(status={application.status})"
        )
        raise ConcurrentModificationError(
            application_id,
            f"expected version {expected_version}, found {application.version_id}",
        )

    workflow.assert_status_stage(application)
    ledger.assert_consistent(application)
    return application


def _enqueue_notification(
    db: AsyncSession,
    application: StudentApplication,
    event: NotificationEvent,
    payload: dict[str, Any] | None = None,
) -> None:
    """Stage an applicant notification in the current transaction."""
    contact = application.contact_details or {}
    personal = application.personal_details or {}

    repository.add_notification(
        db,
        NotificationOutbox(
            id=uuid.uuid4(),
            application_id=application.id,
            event=event,
            recipient_email=contact.get("email"),
            payload={
                "application_code": application.application_code,
                "applicant_name": personal.get("full_name"),
                **(payload or {}),
            },
            attempts=0,
        ),
    )


async def _allocate_application_code(db: AsyncSession, now: datetime) -> str:
    """
    Raises:
        InvariantViolationError: If every attempt produced a taken code
    """
    for _ in range(APPLICATION_CODE_ATTEMPTS):
        code = generate_application_code(now)
        if not await repository.application_code_exists(db, code):
            return code

    logger.error(f"No free application code after {APPLICATION_CODE_ATTEMPTS} attempts")
    raise InvariantViolationError("Could not allocate an application code")


def _check_can_read(application: StudentApplication, actor: Actor) -> None:
    if actor.id != application.owner_id and not actor.is_reviewer:
        logger.warning(f"Actor {actor} denied access to application {application.id}")
        raise ForbiddenError()


# ============================================
# Applicant Operations
# ============================================


async def create_application(
    db: AsyncSession,
    owner: Actor,
    data: ApplicationCreate,
) -> StudentApplication:
    """
    Create a DRAFT application owned by ``owner``.

    An unknown referral code is logged and the draft is created without
    referral attribution.

    Args:
        db: Database session
        owner: Account creating the draft
        data: Initial payload sections and optional referral code

    Returns:
        The persisted draft
    """
    referral_info = None
    if data.referral_code:
        try:
            target = await referral_service.validate(db, data.referral_code)
        except ReferralCodeNotFoundError:
            logger.warning(
                f"Unknown referral code {data.referral_code!r} on new draft by {owner}"
            )
        else:
            referral_info = ReferralInfo(
                referral_code=target.code,
                referred_by=target.account_id,
                referral_type=target.role,
            )

    application = workflow.new_application(owner, data, _now(), referral_info=referral_info)
    repository.add(db, application)
    await repository.save(db, application)

    logger.info(f"Draft application {application.id} created by {owner}")
    return application


async def get_application(
    db: AsyncSession,
    application_id: UUID,
    actor: Actor,
) -> StudentApplication:
    """
    Get an application visible to the actor (its owner, or any reviewer).

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        ForbiddenError: If the actor may not see it
    """
    application = await _load(db, application_id)
    _check_can_read(application, actor)
    return application


async def list_my_applications(
    db: AsyncSession,
    actor: Actor,
    *,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[StudentApplication], int]:
    """The actor's own applications, newest first."""
    return await repository.get_applications_for_owner(db, actor.id, skip=skip, limit=limit)


async def list_submitted_by_me(
    db: AsyncSession,
    actor: Actor,
    *,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[StudentApplication], int]:
    """Applications the actor submitted, for themselves or on someone's behalf."""
    return await repository.get_applications_submitted_by(db, actor.id, skip=skip, limit=limit)


async def update_draft(
    db: AsyncSession,
    application_id: UUID,
    actor: Actor,
    data: ApplicationUpdate,
) -> StudentApplication:
    """Replace payload sections of a DRAFT or REJECTED application."""
    application = await _load(db, application_id, data.expected_version)
    updated = workflow.update_payload(application, actor, data)
    await repository.save(db, application)

    logger.info(f"Application {application_id} sections updated by {actor}: {updated}")
    return application


async def attach_document(
    db: AsyncSession,
    application_id: UUID,
    actor: Actor,
    data: AttachDocumentRequest,
    expected_version: int | None = None,
) -> ApplicationDocument:
    """
    Attach a document pointer to a DRAFT or REJECTED application.

    Returns:
        The attached document (status PENDING)
    """
    application = await _load(db, application_id, expected_version)
    document = workflow.attach_document(
        application,
        actor,
        document_type=data.document_type,
        file_ref=data.file_ref,
        file_name=data.file_name,
        now=_now(),
        replace=data.replace,
    )
    await repository.save(db, application)

    logger.info(f"Document {data.document_type} attached to application {application_id}")
    return document


async def submit_application(
    db: AsyncSession,
    application_id: UUID,
    actor: Actor,
    expected_version: int | None = None,
) -> StudentApplication:
    """
    Submit a draft for review.

    Args:
        db: Database session
        application_id: UUID of the application
        actor: Owner, or a reviewer submitting on the owner's behalf
        expected_version: Version the caller last read (optional)

    Returns:
        The SUBMITTED application

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidTransitionError: If the application is not a DRAFT
        IncompleteApplicationError: If sections or documents are missing
        ConcurrentModificationError: If another request changed it first
    """
    application = await _load(db, application_id, expected_version)
    now = _now()

    code = None
    if application.application_code is None:
        code = await _allocate_application_code(db, now)

    workflow.submit(application, actor, now, application_code=code)
    _enqueue_notification(db, application, NotificationEvent.SUBMITTED)
    await repository.save(db, application)

    logger.info(
        f"Application {application_id} submitted as {application.application_code} by {actor}"
    )
    return application


async def resubmit_application(
    db: AsyncSession,
    application_id: UUID,
    actor: Actor,
    reason: str | None = None,
    expected_version: int | None = None,
) -> StudentApplication:
    """
    Send a REJECTED application back for review.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        ForbiddenError: If the actor is not the owner
        InvalidTransitionError: If the application is not REJECTED
        ConcurrentModificationError: If another request changed it first
    """
    application = await _load(db, application_id, expected_version)
    workflow.resubmit(application, actor, _now(), reason=reason)
    _enqueue_notification(
        db,
        application,
        NotificationEvent.RESUBMITTED,
        {"resubmission_count": application.resubmission_count},
    )
    await repository.save(db, application)

    logger.info(
        f"Application {application_id} resubmitted by {actor} "
        f"(resubmission #{application.resubmission_count})"
    )
    return application


async def cancel_application(
    db: AsyncSession,
    application_id: UUID,
    actor: Actor,
    reason: str | None = None,
    expected_version: int | None = None,
) -> StudentApplication:
    """Cancel a DRAFT, SUBMITTED or UNDER_REVIEW application."""
    application = await _load(db, application_id, expected_version)
    workflow.cancel(application, actor, _now(), reason=reason)
    _enqueue_notification(db, application, NotificationEvent.CANCELLED)
    await repository.save(db, application)

    logger.info(f"Application {application_id} cancelled by {actor}")
    return application


async def get_rejection_details(
    db: AsyncSession,
    application_id: UUID,
    actor: Actor,
) -> RejectionDetailsResponse:
    """
    The rejection reason, message, details and notes of a REJECTED application.

    System generated resubmission notices are left out of the notes.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        ForbiddenError: If the actor is not the owner
        InvalidTransitionError: If the application is not REJECTED
    """
    application = await _load(db, application_id)
    workflow.check_can_view_rejection(application, actor)

    review_info = ledger.load_review_info(application)
    reason = (
        resolve_rejection_reason(review_info.rejection_reason)
        if review_info.rejection_reason
        else None
    )

    return RejectionDetailsResponse(
        application_id=application.id,
        status=application.status,
        rejection_reason=(
            RejectionReasonResponse(
                id=reason.id,
                title=reason.title,
                description=reason.description,
                examples=list(reason.examples),
            )
            if reason
            else None
        ),
        rejection_message=review_info.rejection_message,
        rejection_details=review_info.rejection_details,
        reviewed_at=review_info.reviewed_at,
        can_resubmit=review_info.can_resubmit,
        admin_notes=workflow.visible_rejection_notes(application),
    )


# ============================================
# Reviewer Operations
# ============================================


async def start_review(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Actor,
    expected_version: int | None = None,
) -> StudentApplication:
    """
    Move a SUBMITTED application to UNDER_REVIEW.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidTransitionError: If the application is not SUBMITTED
        ConcurrentModificationError: If another request changed it first
    """
    logger.info(f"Reviewer {reviewer} starting review of application {application_id}")

    application = await _load(db, application_id, expected_version)
    workflow.begin_review(application, reviewer, _now())
    await repository.save(db, application)

    logger.info(f"Application {application_id} now under review by {reviewer}")
    return application


async def set_document_status(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Actor,
    document_type: str,
    status: DocumentStatus,
    remarks: str | None = None,
    expected_version: int | None = None,
) -> StudentApplication:
    """
    Record a verdict on one document and recount the aggregate.

    Args:
        db: Database session
        application_id: UUID of the application
        reviewer: Reviewer recording the verdict
        document_type: Type of the attached document
        status: New document status
        remarks: Optional reviewer remarks
        expected_version: Version the caller last read (optional)

    Returns:
        The updated application

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        DocumentNotFoundError: If no document of that type is attached
        InvariantViolationError: If the recount does not add up
        ConcurrentModificationError: If another request changed it first
    """
    application = await _load(db, application_id, expected_version)
    counts = workflow.set_document_status(
        application,
        reviewer,
        document_type=document_type,
        status=status,
        remarks=remarks,
        now=_now(),
    )
    await repository.save(db, application)

    logger.info(
        f"Document {document_type} on application {application_id} set to {status.value} "
        f"by {reviewer}; counts={counts.model_dump()}"
    )
    return application


async def set_section_verification(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Actor,
    section: str,
    verified: bool,
    expected_version: int | None = None,
) -> StudentApplication:
    """Set a payload section's verification flag."""
    application = await _load(db, application_id, expected_version)
    workflow.set_section_verification(application, reviewer, section, verified)
    await repository.save(db, application)

    logger.info(f"Section {section} on application {application_id} verified={verified}")
    return application


async def approve_application(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Actor,
    expected_version: int | None = None,
) -> StudentApplication:
    """
    Approve an application whose required documents are all approved.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidTransitionError: If the application is not UNDER_REVIEW
        DocumentsNotVerifiedError: If a required document is missing or not approved
        ConcurrentModificationError: If another request changed it first
    """
    logger.info(f"Reviewer {reviewer} approving application {application_id}")

    application = await _load(db, application_id, expected_version)
    workflow.approve(application, reviewer, _now())
    _enqueue_notification(db, application, NotificationEvent.APPROVED)
    await repository.save(db, application)

    logger.info(f"Application {application_id} approved")
    return application


async def reject_application(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Actor,
    reason_code: str,
    message: str,
    details: list | None = None,
    expected_version: int | None = None,
) -> StudentApplication:
    """
    Reject an application with a catalog reason.

    Args:
        db: Database session
        application_id: UUID of the application
        reviewer: Reviewer rejecting it
        reason_code: Rejection catalog id
        message: Explanation for the applicant
        details: Structured or plain-string feedback items (may be empty)
        expected_version: Version the caller last read (optional)

    Returns:
        The REJECTED application

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidTransitionError: If the application is not UNDER_REVIEW
        UnknownRejectionReasonError: If reason_code is not in the catalog
        ConcurrentModificationError: If another request changed it first
    """
    logger.info(f"Reviewer {reviewer} rejecting application {application_id}: {reason_code}")

    application = await _load(db, application_id, expected_version)
    normalized = workflow.reject(
        application,
        reviewer,
        reason_code=reason_code,
        message=message,
        details=details,
        now=_now(),
    )
    reason = resolve_rejection_reason(reason_code)
    _enqueue_notification(
        db,
        application,
        NotificationEvent.REJECTED,
        {
            "reason_code": reason_code,
            "reason_title": reason.title if reason else reason_code,
            "message": message,
            "details": [detail.model_dump() for detail in normalized],
        },
    )
    await repository.save(db, application)

    logger.info(f"Application {application_id} rejected ({len(normalized)} details)")
    return application


async def add_admin_note(
    db: AsyncSession,
    application_id: UUID,
    reviewer: Actor,
    note: str,
) -> AdminNote:
    """Append a reviewer note to an application."""
    application = await _load(db, application_id)
    new_note = workflow.add_admin_note(application, reviewer, note, _now())
    await repository.save(db, application)

    logger.info(f"Note added to application {application_id} by {reviewer}")
    return new_note


async def admin_get_applications_list(
    db: AsyncSession,
    **filters: Any,
) -> tuple[list[StudentApplication], int]:
    """List applications for reviewers. See repository.get_applications_for_admin."""
    return await repository.get_applications_for_admin(db, **filters)


async def admin_get_dashboard_stats(db: AsyncSession) -> dict:
    return await repository.get_dashboard_stats(db)
