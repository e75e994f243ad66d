"""
Student Applications Models

Database models for admission applications and the notification outbox.

A StudentApplication is stored as a single aggregate row: its documents,
review info, workflow history and admin notes are embedded JSON columns.
They are never read or written as separate records, because the aggregate
count and status/stage invariants are defined over the row as a whole.

Concurrent writers are serialized by SQLAlchemy optimistic versioning on
``version_id``: every UPDATE is issued as ``... WHERE version_id = :loaded``
and a writer that lost the race gets a StaleDataError on commit.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSON, UUID
from sqlalchemy.orm import Mapped, mapped_column

from admissions.modules.shared import BaseModel


class ApplicationStatus(str, enum.Enum):
    """Workflow status of an application."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class ApplicationStage(str, enum.Enum):
    """Display/progress label. Always derived from the status."""

    REGISTRATION = "registration"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


# One stage per status, never set independently
STAGE_FOR_STATUS: dict[ApplicationStatus, ApplicationStage] = {
    ApplicationStatus.DRAFT: ApplicationStage.REGISTRATION,
    ApplicationStatus.SUBMITTED: ApplicationStage.SUBMITTED,
    ApplicationStatus.UNDER_REVIEW: ApplicationStage.UNDER_REVIEW,
    ApplicationStatus.APPROVED: ApplicationStage.APPROVED,
    ApplicationStatus.REJECTED: ApplicationStage.REJECTED,
    ApplicationStatus.CANCELLED: ApplicationStage.CANCELLED,
}


class DocumentStatus(str, enum.Enum):
    """Verification status of a single document."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OverallDocumentStatus(str, enum.Enum):
    """Summary of all document statuses on an application."""

    NOT_VERIFIED = "not_verified"
    PARTIALLY_APPROVED = "partially_approved"
    ALL_APPROVED = "all_approved"
    ALL_REJECTED = "all_rejected"


class WorkflowAction(str, enum.Enum):
    """Actions recorded in the workflow history."""

    SUBMIT = "submit"
    BEGIN_REVIEW = "begin_review"
    APPROVE = "approve"
    REJECT = "reject"
    RESUBMIT = "resubmit"
    CANCEL = "cancel"


class NoteKind(str, enum.Enum):
    """Kinds of admin notes."""

    NOTE = "note"
    RESUBMISSION = "resubmission"


class NotificationEvent(str, enum.Enum):
    """Events that produce an applicant notification."""

    SUBMITTED = "submitted"
    RESUBMITTED = "resubmitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class StudentApplication(BaseModel):
    """
    Student admission application.

    Created in DRAFT by its owner and moved through the workflow by the
    transition functions in ``workflow.py`` only.
    """

    __tablename__ = "student_applications"

    # Human readable code, assigned at first submission
    application_code: Mapped[str | None] = mapped_column(String(16), nullable=True, unique=True)

    # Ownership
    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    submitted_by: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    submitter_role: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Workflow state
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.DRAFT,
    )
    stage: Mapped[ApplicationStage] = mapped_column(
        Enum(ApplicationStage, name="application_stage"),
        nullable=False,
        default=ApplicationStage.REGISTRATION,
    )

    # Payload sections
    personal_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    contact_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    course_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    guardian_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    financial_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Embedded aggregate parts
    documents: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    document_counts: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    review_info: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    workflow_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    admin_notes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    referral_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Resubmission tracking
    resubmission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_resubmitted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic lock
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        Index("ix_student_applications_owner_id", "owner_id"),
        Index("ix_student_applications_status", "status"),
        Index("ix_student_applications_submitted_at", "submitted_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<StudentApplication(id={self.id}, code={self.application_code}, "
            f"status={self.status}, version={self.version_id})>"
        )


class NotificationOutbox(BaseModel):
    """
    Pending applicant notification.

    Rows are written in the same transaction as the workflow transition that
    produced them and delivered later by the outbox job.
    """

    __tablename__ = "notification_outbox"

    application_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    event: Mapped[NotificationEvent] = mapped_column(
        Enum(NotificationEvent, name="notification_event"), nullable=False
    )
    recipient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_notification_outbox_pending", "delivered_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<NotificationOutbox(id={self.id}, event={self.event}, attempts={self.attempts})>"
