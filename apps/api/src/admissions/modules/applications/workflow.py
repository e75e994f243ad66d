"""
Application Workflow Engine

State machine for a student application:

    DRAFT -> SUBMITTED -> UNDER_REVIEW -> APPROVED
                                       -> REJECTED -> SUBMITTED (resubmission)
    DRAFT | SUBMITTED | UNDER_REVIEW -> CANCELLED

Every function here operates on an in-memory StudentApplication and follows
the same shape:

1. Check the actor and the current status (raise before touching anything)
2. Run any other validation (catalog lookup, completeness, readiness)
3. Mutate: status and stage together through ``_set_status``, then the
   history/notes/review info, each as a freshly built JSON container
4. Re-check the status/stage pairing and the document aggregate

A call that raises therefore leaves the application exactly as it was.
Locking, persistence and notifications are handled by ``service.py``.
"""

import logging
import uuid
from datetime import datetime

from admissions.core.exceptions import ForbiddenError
from admissions.modules.applications import ledger
from admissions.modules.applications.document_types import (
    REQUIRED_DOCUMENT_TYPES,
    is_known_document_type,
)
from admissions.modules.applications.errors import (
    DocumentsNotVerifiedError,
    IncompleteApplicationError,
    InvalidTransitionError,
    InvariantViolationError,
    UnknownDocumentTypeError,
    UnknownRejectionReasonError,
    UnknownSectionError,
)
from admissions.modules.applications.helpers import (
    PAYLOAD_SECTIONS,
    find_missing_parts,
    normalize_rejection_details,
)
from admissions.modules.applications.models import (
    STAGE_FOR_STATUS,
    ApplicationStatus,
    DocumentStatus,
    NoteKind,
    StudentApplication,
    WorkflowAction,
)
from admissions.modules.applications.schemas import (
    AdminNote,
    ApplicationDocument,
    ApplicationPayload,
    DocumentCounts,
    ReferralInfo,
    RejectionDetail,
    ReviewInfo,
    WorkflowHistoryEntry,
)
from admissions.modules.rejection_catalog import resolve as resolve_rejection_reason
from admissions.modules.shared import Actor

logger = logging.getLogger(__name__)

# ============================================
# State Machine
# ============================================

VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.DRAFT: {
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.CANCELLED,
    },
    ApplicationStatus.SUBMITTED: {
        ApplicationStatus.UNDER_REVIEW,
        ApplicationStatus.CANCELLED,
    },
    ApplicationStatus.UNDER_REVIEW: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.CANCELLED,
    },
    ApplicationStatus.REJECTED: {
        ApplicationStatus.SUBMITTED,  # resubmission
    },
    # Terminal states
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.CANCELLED: set(),
}

# Statuses in which the owner may edit payload and documents
EDITABLE_STATUSES = frozenset({ApplicationStatus.DRAFT, ApplicationStatus.REJECTED})

# Statuses in which reviewers may record document and section verdicts
REVIEWABLE_STATUSES = frozenset({ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW})

# Section name -> ReviewInfo flag
SECTION_VERIFICATION_FLAGS = {
    "personal_details": "personal_details_verified",
    "academic_details": "academic_details_verified",
    "guardian_details": "guardian_details_verified",
    "financial_details": "financial_details_verified",
}

RESUBMISSION_NOTE = "Application resubmitted by student after addressing rejection feedback"
RESUBMISSION_REMARKS = "Application resubmitted after addressing rejection feedback"


# ============================================
# Internal Helpers
# ============================================


def assert_status_stage(application: StudentApplication) -> None:
    """
    Raises:
        InvariantViolationError: If stage is not the one mapped to status
    """
    expected = STAGE_FOR_STATUS.get(application.status)
    if expected is None or application.stage != expected:
        logger.error(
            f"Status/stage mismatch on application {application.id}: "
            f"status={application.status} stage={application.stage} "
            f"version={application.version_id}"
        )
        raise InvariantViolationError(
            f"Application {application.id} has stage {application.stage} "
            f"for status {application.status}"
        )


def _set_status(application: StudentApplication, status: ApplicationStatus) -> None:
    application.status = status
    application.stage = STAGE_FOR_STATUS[status]


def _check_transition(
    application: StudentApplication, target: ApplicationStatus, action: str
) -> None:
    if target not in VALID_STATUS_TRANSITIONS.get(application.status, set()):
        raise InvalidTransitionError(application.status, action)


def _require_reviewer(actor: Actor) -> None:
    if not actor.is_reviewer:
        raise ForbiddenError("Only staff reviewers can perform this action")


def _require_owner(application: StudentApplication, actor: Actor) -> None:
    if actor.id != application.owner_id:
        raise ForbiddenError("Only the owner of this application can perform this action")


def _require_owner_or_reviewer(application: StudentApplication, actor: Actor) -> None:
    if actor.id != application.owner_id and not actor.is_reviewer:
        raise ForbiddenError()


def _append_history(
    application: StudentApplication,
    actor: Actor,
    action: WorkflowAction,
    remarks: str,
    now: datetime,
) -> None:
    entry = WorkflowHistoryEntry(
        stage=application.stage,
        status=application.status,
        actor=actor.id,
        actor_role=actor.role.value,
        action=action,
        remarks=remarks,
        timestamp=now,
    )
    application.workflow_history = [
        *(application.workflow_history or []),
        entry.model_dump(mode="json"),
    ]


def _append_note(
    application: StudentApplication,
    author: uuid.UUID,
    note: str,
    kind: NoteKind,
    now: datetime,
) -> AdminNote:
    new_note = AdminNote(note=note, author=author, timestamp=now, kind=kind)
    application.admin_notes = [
        *(application.admin_notes or []),
        new_note.model_dump(mode="json"),
    ]
    return new_note


def _store_review_info(application: StudentApplication, review_info: ReviewInfo) -> None:
    application.review_info = review_info.model_dump(mode="json")


def _finish(application: StudentApplication) -> None:
    assert_status_stage(application)
    ledger.assert_consistent(application)


# ============================================
# Draft Operations
# ============================================


def new_application(
    owner: Actor,
    payload: ApplicationPayload,
    now: datetime,
    referral_info: ReferralInfo | None = None,
) -> StudentApplication:
    """
    Build a new DRAFT application.

    Every column is set explicitly so the instance is consistent before
    it is flushed.
    """
    application = StudentApplication(
        id=uuid.uuid4(),
        owner_id=owner.id,
        status=ApplicationStatus.DRAFT,
        stage=STAGE_FOR_STATUS[ApplicationStatus.DRAFT],
        documents=[],
        document_counts=DocumentCounts().model_dump(),
        review_info=ReviewInfo().model_dump(mode="json"),
        workflow_history=[],
        admin_notes=[],
        referral_info=referral_info.model_dump(mode="json") if referral_info else None,
        resubmission_count=0,
        created_at=now,
        updated_at=now,
    )
    for section in PAYLOAD_SECTIONS:
        value = getattr(payload, section)
        setattr(application, section, value.model_dump(mode="json") if value else None)

    _finish(application)
    return application


def update_payload(
    application: StudentApplication,
    actor: Actor,
    payload: ApplicationPayload,
) -> list[str]:
    """
    Replace the sections present in ``payload``.

    Returns:
        Names of the sections that were replaced

    Raises:
        ForbiddenError: If the actor is not the owner
        InvalidTransitionError: If the application is not editable
    """
    _require_owner(application, actor)
    if application.status not in EDITABLE_STATUSES:
        raise InvalidTransitionError(application.status, "edit")

    updated = []
    for section in PAYLOAD_SECTIONS:
        if section not in payload.model_fields_set:
            continue
        value = getattr(payload, section)
        setattr(application, section, value.model_dump(mode="json") if value else None)
        updated.append(section)

    _finish(application)
    return updated


def attach_document(
    application: StudentApplication,
    actor: Actor,
    *,
    document_type: str,
    file_ref: str,
    file_name: str | None,
    now: datetime,
    replace: bool = False,
) -> ApplicationDocument:
    """
    Attach (or replace) a document on an editable application.

    Raises:
        ForbiddenError: If the actor is not the owner
        InvalidTransitionError: If the application is not editable
        UnknownDocumentTypeError: If the type is not configured
        DuplicateDocumentError: If the type is attached and replace is False
    """
    _require_owner(application, actor)
    if application.status not in EDITABLE_STATUSES:
        raise InvalidTransitionError(application.status, "attach documents to")
    if not is_known_document_type(document_type):
        raise UnknownDocumentTypeError(document_type)

    document = ledger.attach_document(
        application,
        document_type=document_type,
        file_ref=file_ref,
        file_name=file_name,
        now=now,
        replace=replace,
    )
    _finish(application)
    return document


# ============================================
# Transitions
# ============================================


def submit(
    application: StudentApplication,
    actor: Actor,
    now: datetime,
    application_code: str | None = None,
) -> None:
    """
    DRAFT -> SUBMITTED.

    Args:
        application: Draft to submit
        actor: Owner, or a reviewer submitting on the owner's behalf
        now: Submission timestamp
        application_code: Code to assign if the application has none yet

    Raises:
        ForbiddenError: If the actor is neither owner nor reviewer
        InvalidTransitionError: If the application is not a DRAFT
        IncompleteApplicationError: If required sections or documents are missing
    """
    _require_owner_or_reviewer(application, actor)
    if application.status != ApplicationStatus.DRAFT:
        raise InvalidTransitionError(application.status, "submit")

    missing = find_missing_parts(application)
    if missing:
        raise IncompleteApplicationError(missing)

    if application.application_code is None:
        application.application_code = application_code
    application.submitted_by = actor.id
    application.submitter_role = actor.role.value
    application.submitted_at = now

    _set_status(application, ApplicationStatus.SUBMITTED)
    _append_history(application, actor, WorkflowAction.SUBMIT, "Application submitted", now)
    _finish(application)


def begin_review(application: StudentApplication, reviewer: Actor, now: datetime) -> None:
    """
    SUBMITTED -> UNDER_REVIEW.

    Raises:
        ForbiddenError: If the actor is not a reviewer
        InvalidTransitionError: If the application is not SUBMITTED
    """
    _require_reviewer(reviewer)
    _check_transition(application, ApplicationStatus.UNDER_REVIEW, "begin review of")

    _set_status(application, ApplicationStatus.UNDER_REVIEW)
    _append_history(application, reviewer, WorkflowAction.BEGIN_REVIEW, "Review started", now)
    _finish(application)


def set_document_status(
    application: StudentApplication,
    reviewer: Actor,
    *,
    document_type: str,
    status: DocumentStatus,
    remarks: str | None,
    now: datetime,
) -> DocumentCounts:
    """
    Record a document verdict while the application is in review.

    Raises:
        ForbiddenError: If the actor is not a reviewer
        InvalidTransitionError: If the application is not SUBMITTED or UNDER_REVIEW
        DocumentNotFoundError: If no document of that type is attached
        InvariantViolationError: If the aggregate does not add up afterwards
    """
    _require_reviewer(reviewer)
    if application.status not in REVIEWABLE_STATUSES:
        raise InvalidTransitionError(application.status, "review documents of")

    counts = ledger.set_document_status(
        application,
        document_type=document_type,
        status=status,
        reviewer=reviewer,
        remarks=remarks,
        now=now,
    )
    _finish(application)
    return counts


def set_section_verification(
    application: StudentApplication,
    reviewer: Actor,
    section: str,
    verified: bool,
) -> ReviewInfo:
    """
    Mark a payload section as verified or not.

    Raises:
        ForbiddenError: If the actor is not a reviewer
        InvalidTransitionError: If the application is not SUBMITTED or UNDER_REVIEW
        UnknownSectionError: If the section has no verification flag
    """
    _require_reviewer(reviewer)
    if application.status not in REVIEWABLE_STATUSES:
        raise InvalidTransitionError(application.status, "verify sections of")

    flag = SECTION_VERIFICATION_FLAGS.get(section)
    if flag is None:
        raise UnknownSectionError(section)

    review_info = ledger.load_review_info(application)
    setattr(review_info, flag, verified)
    _store_review_info(application, review_info)
    _finish(application)
    return review_info


def approve(
    application: StudentApplication,
    reviewer: Actor,
    now: datetime,
    required_document_types: frozenset[str] = REQUIRED_DOCUMENT_TYPES,
) -> None:
    """
    UNDER_REVIEW -> APPROVED.

    Raises:
        ForbiddenError: If the actor is not a reviewer
        InvalidTransitionError: If the application is not UNDER_REVIEW
        DocumentsNotVerifiedError: If any required document is missing or not APPROVED
    """
    _require_reviewer(reviewer)
    _check_transition(application, ApplicationStatus.APPROVED, "approve")

    blockers = ledger.approval_blockers(application, required_document_types)
    if blockers:
        raise DocumentsNotVerifiedError(blockers)

    review_info = ledger.load_review_info(application)
    review_info.reviewed_by = reviewer.id
    review_info.reviewed_at = now
    review_info.overall_approved = True
    review_info.can_resubmit = False
    # Earlier rejections stay in the workflow history
    review_info.rejection_reason = None
    review_info.rejection_message = None
    review_info.rejection_details = []

    _set_status(application, ApplicationStatus.APPROVED)
    _store_review_info(application, review_info)
    _append_history(application, reviewer, WorkflowAction.APPROVE, "Application approved", now)
    _finish(application)


def reject(
    application: StudentApplication,
    reviewer: Actor,
    *,
    reason_code: str,
    message: str,
    details: list | None,
    now: datetime,
) -> list[RejectionDetail]:
    """
    UNDER_REVIEW -> REJECTED.

    Args:
        application: Application under review
        reviewer: Reviewer rejecting it
        reason_code: Rejection catalog id
        message: Free-text explanation for the applicant
        details: Structured or plain-string feedback items (may be empty)
        now: Review timestamp

    Returns:
        The normalized rejection details

    Raises:
        ForbiddenError: If the actor is not a reviewer
        InvalidTransitionError: If the application is not UNDER_REVIEW
        UnknownRejectionReasonError: If reason_code is not in the catalog
        InvalidRejectionDetailError: If a detail entry cannot be normalized
    """
    _require_reviewer(reviewer)
    _check_transition(application, ApplicationStatus.REJECTED, "reject")

    reason = resolve_rejection_reason(reason_code)
    if reason is None:
        raise UnknownRejectionReasonError(reason_code)

    normalized = normalize_rejection_details(details)

    review_info = ledger.load_review_info(application)
    review_info.reviewed_by = reviewer.id
    review_info.reviewed_at = now
    review_info.rejection_reason = reason.id
    review_info.rejection_message = message
    review_info.rejection_details = normalized
    review_info.can_resubmit = True
    review_info.overall_approved = False

    _set_status(application, ApplicationStatus.REJECTED)
    _store_review_info(application, review_info)
    _append_history(
        application, reviewer, WorkflowAction.REJECT, f"{reason.id}: {message}", now
    )
    _finish(application)
    return normalized


def resubmit(
    application: StudentApplication,
    actor: Actor,
    now: datetime,
    reason: str | None = None,
) -> None:
    """
    REJECTED -> SUBMITTED, keeping the same id, code and history.

    Raises:
        ForbiddenError: If the actor is not the owner
        InvalidTransitionError: If the application is not REJECTED
    """
    _require_owner(application, actor)
    if application.status != ApplicationStatus.REJECTED:
        raise InvalidTransitionError(application.status, "resubmit")

    review_info = ledger.load_review_info(application)
    review_info.can_resubmit = False

    application.submitted_at = now
    application.last_resubmitted_at = now
    application.resubmission_count = (application.resubmission_count or 0) + 1

    remarks = RESUBMISSION_REMARKS if not reason else f"{RESUBMISSION_REMARKS}: {reason}"

    _set_status(application, ApplicationStatus.SUBMITTED)
    _store_review_info(application, review_info)
    _append_note(application, actor.id, RESUBMISSION_NOTE, NoteKind.RESUBMISSION, now)
    _append_history(application, actor, WorkflowAction.RESUBMIT, remarks, now)
    _finish(application)


def cancel(
    application: StudentApplication,
    actor: Actor,
    now: datetime,
    reason: str | None = None,
) -> None:
    """
    DRAFT | SUBMITTED | UNDER_REVIEW -> CANCELLED.

    Raises:
        ForbiddenError: If the actor is neither owner nor reviewer
        InvalidTransitionError: From APPROVED, REJECTED or CANCELLED
    """
    _require_owner_or_reviewer(application, actor)
    _check_transition(application, ApplicationStatus.CANCELLED, "cancel")

    application.cancelled_at = now

    _set_status(application, ApplicationStatus.CANCELLED)
    _append_history(
        application, actor, WorkflowAction.CANCEL, reason or "Application cancelled", now
    )
    _finish(application)


# ============================================
# Notes and Views
# ============================================


def add_admin_note(
    application: StudentApplication,
    author: Actor,
    note: str,
    now: datetime,
) -> AdminNote:
    """
    Append a reviewer note. Allowed in any status.

    Raises:
        ForbiddenError: If the actor is not a reviewer
    """
    _require_reviewer(author)
    new_note = _append_note(application, author.id, note, NoteKind.NOTE, now)
    _finish(application)
    return new_note


def visible_rejection_notes(application: StudentApplication) -> list[AdminNote]:
    """Admin notes shown with rejection details: system notices are left out."""
    notes = [AdminNote.model_validate(note) for note in application.admin_notes or []]
    return [note for note in notes if note.kind != NoteKind.RESUBMISSION]


def check_can_view_rejection(application: StudentApplication, actor: Actor) -> None:
    """
    Raises:
        ForbiddenError: If the actor is not the owner
        InvalidTransitionError: If the application is not REJECTED
    """
    _require_owner(application, actor)
    if application.status != ApplicationStatus.REJECTED:
        raise InvalidTransitionError(application.status, "view rejection details of")
