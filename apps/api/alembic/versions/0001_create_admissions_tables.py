"""create admissions tables

Revision ID: 0001_admissions
Revises:
Create Date: 2026-10-19 12:00:00.000000

This migration creates:
1. student_applications - the application aggregate, with embedded JSON
   documents, review info, history and notes, and a version_id column
   for optimistic locking
2. notification_outbox - applicant notifications awaiting delivery
3. referral_codes - one referral code per account, unique codes
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_admissions"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

STATUS_VALUES = ("draft", "submitted", "under_review", "approved", "rejected", "cancelled")
STAGE_VALUES = ("registration", "submitted", "under_review", "approved", "rejected", "cancelled")
EVENT_VALUES = ("submitted", "resubmitted", "approved", "rejected", "cancelled")


def _base_columns() -> list[sa.Column]:
    """Primary key and timestamps (from BaseModel)."""
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create the admissions tables."""
    status_enum = postgresql.ENUM(*STATUS_VALUES, name="application_status", create_type=False)
    stage_enum = postgresql.ENUM(*STAGE_VALUES, name="application_stage", create_type=False)
    event_enum = postgresql.ENUM(*EVENT_VALUES, name="notification_event", create_type=False)
    status_enum.create(op.get_bind(), checkfirst=True)
    stage_enum.create(op.get_bind(), checkfirst=True)
    event_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "student_applications",
        *_base_columns(),
        sa.Column("application_code", sa.String(length=16), nullable=True),
        # Ownership
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("submitted_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("submitter_role", sa.String(length=20), nullable=True),
        # Workflow state
        sa.Column("status", status_enum, nullable=False, server_default="draft"),
        sa.Column("stage", stage_enum, nullable=False, server_default="registration"),
        # Payload sections
        sa.Column("personal_details", postgresql.JSON(), nullable=True),
        sa.Column("contact_details", postgresql.JSON(), nullable=True),
        sa.Column("course_details", postgresql.JSON(), nullable=True),
        sa.Column("guardian_details", postgresql.JSON(), nullable=True),
        sa.Column("financial_details", postgresql.JSON(), nullable=True),
        # Embedded aggregate parts
        sa.Column("documents", postgresql.JSON(), nullable=False),
        sa.Column("document_counts", postgresql.JSON(), nullable=False),
        sa.Column("review_info", postgresql.JSON(), nullable=False),
        sa.Column("workflow_history", postgresql.JSON(), nullable=False),
        sa.Column("admin_notes", postgresql.JSON(), nullable=False),
        sa.Column("referral_info", postgresql.JSON(), nullable=True),
        # Resubmission tracking
        sa.Column("resubmission_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_resubmitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        # Optimistic lock
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("application_code"),
    )
    op.create_index("ix_student_applications_owner_id", "student_applications", ["owner_id"])
    op.create_index("ix_student_applications_status", "student_applications", ["status"])
    op.create_index(
        "ix_student_applications_submitted_at", "student_applications", ["submitted_at"]
    )

    op.create_table(
        "notification_outbox",
        *_base_columns(),
        sa.Column("application_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event", event_enum, nullable=False),
        sa.Column("recipient_email", sa.String(length=255), nullable=True),
        sa.Column("payload", postgresql.JSON(), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_outbox_pending",
        "notification_outbox",
        ["delivered_at", "created_at"],
    )

    op.create_table(
        "referral_codes",
        *_base_columns(),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_referral_codes_code"),
        sa.UniqueConstraint("account_id", name="uq_referral_codes_account_id"),
    )


def downgrade() -> None:
    """Drop the admissions tables and enum types."""
    op.drop_table("referral_codes")
    op.drop_index("ix_notification_outbox_pending", table_name="notification_outbox")
    op.drop_table("notification_outbox")
    op.drop_index("ix_student_applications_submitted_at", table_name="student_applications")
    op.drop_index("ix_student_applications_status", table_name="student_applications")
    op.drop_index("ix_student_applications_owner_id", table_name="student_applications")
    op.drop_table("student_applications")

    op.execute("DROP TYPE IF EXISTS notification_event")
    op.execute("DROP TYPE IF EXISTS application_stage")
    op.execute("DROP TYPE IF EXISTS application_status")
