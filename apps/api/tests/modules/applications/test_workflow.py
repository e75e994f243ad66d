"""
Unit tests for the application workflow engine.

These tests cover:
- The status transition table
- Each transition's success path and its failure kinds
- Status/stage pairing, including after failed transitions
- Append-only workflow history
- End-to-end approve, reject/resubmit and incomplete-draft scenarios
"""

import json
import secrets
from datetime import timedelta

import pytest

from admissions.core.exceptions import ForbiddenError
from admissions.modules.applications import workflow
from admissions.modules.applications.document_types import REQUIRED_DOCUMENT_TYPES
from admissions.modules.applications.errors import (
    DocumentsNotVerifiedError,
    IncompleteApplicationError,
    InvalidTransitionError,
    InvariantViolationError,
    UnknownRejectionReasonError,
    UnknownSectionError,
)
from admissions.modules.applications.models import (
    STAGE_FOR_STATUS,
    ApplicationStage,
    ApplicationStatus,
    DocumentStatus,
    NoteKind,
    WorkflowAction,
)
from admissions.modules.applications.schemas import ApplicationUpdate, CourseDetails
from admissions.modules.rejection_catalog.catalog import all_reason_ids


def _history_actions(application):
    return [entry["action"] for entry in application.workflow_history]


def _approve_required_documents(application, reviewer, now, skip=()):
    for document_type in sorted(REQUIRED_DOCUMENT_TYPES):
        if document_type in skip:
            continue
        workflow.set_document_status(
            application,
            reviewer,
            document_type=document_type,
            status=DocumentStatus.APPROVED,
            remarks="Looks good",
            now=now,
        )


class TestStatusTransitions:
    """Tests for the transition table."""

    def test_terminal_states_have_no_transitions(self):
        assert workflow.VALID_STATUS_TRANSITIONS[ApplicationStatus.APPROVED] == set()
        assert workflow.VALID_STATUS_TRANSITIONS[ApplicationStatus.CANCELLED] == set()

    def test_rejected_only_goes_back_to_submitted(self):
        assert workflow.VALID_STATUS_TRANSITIONS[ApplicationStatus.REJECTED] == {
            ApplicationStatus.SUBMITTED
        }

    def test_every_status_has_a_stage(self):
        for status in ApplicationStatus:
            assert status in STAGE_FOR_STATUS
            assert status in workflow.VALID_STATUS_TRANSITIONS


class TestNewApplication:
    """Tests for creating drafts."""

    def test_new_application_is_consistent_draft(self, owner, complete_payload, now):
        application = workflow.new_application(owner, complete_payload, now)

        assert application.status == ApplicationStatus.DRAFT
        assert application.stage == ApplicationStage.REGISTRATION
        assert application.owner_id == owner.id
        assert application.documents == []
        assert application.document_counts == {
            "total": 0,
            "approved": 0,
            "rejected": 0,
            "pending": 0,
        }
        assert application.workflow_history == []
        assert application.application_code is None
        assert application.personal_details["full_name"] == "Priya Sharma"
        assert application.financial_details is None


class TestUpdatePayload:
    """Tests for editing drafts."""

    def test_only_sections_in_request_are_replaced(self, draft_application, owner):
        updated = workflow.update_payload(
            draft_application,
            owner,
            ApplicationUpdate(course_details=CourseDetails(selected_course="B.Pharm")),
        )

        assert updated == ["course_details"]
        assert draft_application.course_details["selected_course"] == "B.Pharm"
        assert draft_application.personal_details["full_name"] == "Priya Sharma"

    def test_non_owner_cannot_edit(self, draft_application, other_student):
        with pytest.raises(ForbiddenError):
            workflow.update_payload(draft_application, other_student, ApplicationUpdate())

    def test_cannot_edit_submitted_application(self, draft_application, owner, advance):
        advance(draft_application, ApplicationStatus.SUBMITTED)

        with pytest.raises(InvalidTransitionError):
            workflow.update_payload(draft_application, owner, ApplicationUpdate())


class TestSubmit:
    """Tests for submit."""

    def test_submit_success(self, draft_application, owner, now):
        workflow.submit(draft_application, owner, now, application_code="APP24123456")

        assert draft_application.status == ApplicationStatus.SUBMITTED
        assert draft_application.stage == ApplicationStage.SUBMITTED
        assert draft_application.submitted_at == now
        assert draft_application.submitted_by == owner.id
        assert draft_application.application_code == "APP24123456"
        assert _history_actions(draft_application) == [WorkflowAction.SUBMIT.value]
        assert draft_application.workflow_history[0]["remarks"] == "Application submitted"

    def test_reviewer_can_submit_on_behalf_of_owner(self, draft_application, reviewer, now):
        workflow.submit(draft_application, reviewer, now)

        assert draft_application.status == ApplicationStatus.SUBMITTED
        assert draft_application.submitted_by == reviewer.id
        assert draft_application.submitter_role == "staff"

    def test_other_student_cannot_submit(self, draft_application, other_student, now):
        with pytest.raises(ForbiddenError):
            workflow.submit(draft_application, other_student, now)

        assert draft_application.status == ApplicationStatus.DRAFT

    def test_submit_without_documents_fails(self, owner, complete_payload, now):
        application = workflow.new_application(owner, complete_payload, now)

        with pytest.raises(IncompleteApplicationError) as exc_info:
            workflow.submit(application, owner, now)

        assert exc_info.value.missing == ["documents"]
        assert application.status == ApplicationStatus.DRAFT

    def test_missing_guardian_details_blocks_submit(self, owner, complete_payload, now):
        """Submitting a draft without guardian details leaves it a DRAFT."""
        complete_payload.guardian_details = None
        application = workflow.new_application(owner, complete_payload, now)
        workflow.attach_document(
            application,
            owner,
            document_type="passport_photo",
            file_ref="uploads/photo.jpg",
            file_name="photo.jpg",
            now=now,
        )

        with pytest.raises(IncompleteApplicationError) as exc_info:
            workflow.submit(application, owner, now)

        assert "guardian_details" in exc_info.value.missing
        assert application.status == ApplicationStatus.DRAFT
        assert application.stage == ApplicationStage.REGISTRATION
        assert application.workflow_history == []
        assert application.submitted_at is None

    def test_blank_required_field_is_reported(self, owner, complete_payload, now):
        complete_payload.contact_details.primary_phone = "   "
        application = workflow.new_application(owner, complete_payload, now)

        with pytest.raises(IncompleteApplicationError) as exc_info:
            workflow.submit(application, owner, now)

        assert "contact_details.primary_phone" in exc_info.value.missing

    @pytest.mark.parametrize(
        "status",
        [
            ApplicationStatus.SUBMITTED,
            ApplicationStatus.UNDER_REVIEW,
            ApplicationStatus.APPROVED,
            ApplicationStatus.REJECTED,
            ApplicationStatus.CANCELLED,
        ],
    )
    def test_submit_only_from_draft(self, draft_application, owner, now, advance, status):
        advance(draft_application, status)
        history_before = list(draft_application.workflow_history)

        with pytest.raises(InvalidTransitionError):
            workflow.submit(draft_application, owner, now + timedelta(days=1))

        assert draft_application.status == status
        assert draft_application.workflow_history == history_before

    def test_existing_code_is_kept(self, draft_application, owner, now):
        draft_application.application_code = "APP24000099"

        workflow.submit(draft_application, owner, now, application_code="APP24999999")

        assert draft_application.application_code == "APP24000099"


class TestBeginReview:
    """Tests for begin_review."""

    def test_begin_review_success(self, draft_application, reviewer, now, advance):
        advance(draft_application, ApplicationStatus.SUBMITTED)

        workflow.begin_review(draft_application, reviewer, now)

        assert draft_application.status == ApplicationStatus.UNDER_REVIEW
        assert draft_application.stage == ApplicationStage.UNDER_REVIEW
        assert _history_actions(draft_application)[-1] == WorkflowAction.BEGIN_REVIEW.value

    def test_begin_review_from_draft_fails(self, draft_application, reviewer, now):
        with pytest.raises(InvalidTransitionError):
            workflow.begin_review(draft_application, reviewer, now)

    def test_begin_review_twice_fails(self, draft_application, reviewer, now, advance):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)

        with pytest.raises(InvalidTransitionError):
            workflow.begin_review(draft_application, reviewer, now)

    def test_student_cannot_begin_review(self, draft_application, owner, now, advance):
        advance(draft_application, ApplicationStatus.SUBMITTED)

        with pytest.raises(ForbiddenError):
            workflow.begin_review(draft_application, owner, now)


class TestSetDocumentStatus:
    """Tests for document verdicts through the workflow."""

    def test_counts_follow_every_verdict(self, draft_application, reviewer, now, advance):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)
        total = len(REQUIRED_DOCUMENT_TYPES)

        counts = workflow.set_document_status(
            draft_application,
            reviewer,
            document_type="aadhar_card",
            status=DocumentStatus.REJECTED,
            remarks="Number not visible",
            now=now,
        )

        assert counts.total == total
        assert counts.rejected == 1
        assert counts.pending == total - 1
        assert counts.approved + counts.rejected + counts.pending == counts.total

    def test_not_allowed_on_draft(self, draft_application, reviewer, now):
        with pytest.raises(InvalidTransitionError):
            workflow.set_document_status(
                draft_application,
                reviewer,
                document_type="aadhar_card",
                status=DocumentStatus.APPROVED,
                remarks=None,
                now=now,
            )

    def test_student_cannot_review_documents(self, draft_application, owner, now, advance):
        advance(draft_application, ApplicationStatus.SUBMITTED)

        with pytest.raises(ForbiddenError):
            workflow.set_document_status(
                draft_application,
                owner,
                document_type="aadhar_card",
                status=DocumentStatus.APPROVED,
                remarks=None,
                now=now,
            )


class TestSectionVerification:
    """Tests for section verification flags."""

    def test_sets_flag(self, draft_application, reviewer, advance):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)

        review_info = workflow.set_section_verification(
            draft_application, reviewer, "guardian_details", True
        )

        assert review_info.guardian_details_verified is True
        assert draft_application.review_info["guardian_details_verified"] is True

    def test_unknown_section(self, draft_application, reviewer, advance):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)

        with pytest.raises(UnknownSectionError):
            workflow.set_section_verification(draft_application, reviewer, "hobbies", True)


class TestApprove:
    """Tests for approve."""

    def test_full_approval(self, draft_application, owner, reviewer, now):
        """submit -> begin_review -> approve every required document -> approve."""
        workflow.submit(draft_application, owner, now)
        workflow.begin_review(draft_application, reviewer, now + timedelta(minutes=1))
        _approve_required_documents(draft_application, reviewer, now + timedelta(minutes=2))

        workflow.approve(draft_application, reviewer, now + timedelta(minutes=3))

        assert draft_application.status == ApplicationStatus.APPROVED
        assert draft_application.stage == ApplicationStage.APPROVED
        review_info = draft_application.review_info
        assert review_info["overall_approved"] is True
        assert review_info["documents_verified"] is True
        assert review_info["overall_document_status"] == "all_approved"
        assert review_info["reviewed_by"] == str(reviewer.id)
        assert _history_actions(draft_application) == [
            WorkflowAction.SUBMIT.value,
            WorkflowAction.BEGIN_REVIEW.value,
            WorkflowAction.APPROVE.value,
        ]

    def test_one_pending_required_document_blocks_approval(
        self, draft_application, reviewer, now, advance
    ):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)
        _approve_required_documents(draft_application, reviewer, now, skip={"caste_certificate"})
        history_before = list(draft_application.workflow_history)

        with pytest.raises(DocumentsNotVerifiedError) as exc_info:
            workflow.approve(draft_application, reviewer, now)

        assert exc_info.value.blockers == {"caste_certificate": "pending"}
        assert draft_application.status == ApplicationStatus.UNDER_REVIEW
        assert draft_application.stage == ApplicationStage.UNDER_REVIEW
        assert draft_application.review_info["overall_approved"] is False
        assert draft_application.workflow_history == history_before

    def test_rejected_required_document_blocks_approval(
        self, draft_application, reviewer, now, advance
    ):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)
        _approve_required_documents(draft_application, reviewer, now)
        workflow.set_document_status(
            draft_application,
            reviewer,
            document_type="passport_photo",
            status=DocumentStatus.REJECTED,
            remarks="Face not visible",
            now=now,
        )

        with pytest.raises(DocumentsNotVerifiedError) as exc_info:
            workflow.approve(draft_application, reviewer, now)

        assert exc_info.value.blockers == {"passport_photo": "rejected"}

    def test_missing_required_document_blocks_approval(
        self, owner, reviewer, complete_payload, now
    ):
        application = workflow.new_application(owner, complete_payload, now)
        application.version_id = 1
        workflow.attach_document(
            application,
            owner,
            document_type="passport_photo",
            file_ref="uploads/photo.jpg",
            file_name=None,
            now=now,
        )
        workflow.submit(application, owner, now)
        workflow.begin_review(application, reviewer, now)
        workflow.set_document_status(
            application,
            reviewer,
            document_type="passport_photo",
            status=DocumentStatus.APPROVED,
            remarks=None,
            now=now,
        )

        with pytest.raises(DocumentsNotVerifiedError) as exc_info:
            workflow.approve(application, reviewer, now)

        assert exc_info.value.blockers["aadhar_card"] == "missing"
        assert "passport_photo" not in exc_info.value.blockers

    def test_optional_documents_do_not_block(self, draft_application, owner, reviewer, now):
        workflow.attach_document(
            draft_application,
            owner,
            document_type="twelfth_marksheet",
            file_ref="uploads/12th.pdf",
            file_name=None,
            now=now,
        )
        workflow.submit(draft_application, owner, now)
        workflow.begin_review(draft_application, reviewer, now)
        _approve_required_documents(draft_application, reviewer, now)

        workflow.approve(draft_application, reviewer, now)

        assert draft_application.status == ApplicationStatus.APPROVED

    def test_approve_from_submitted_fails(self, draft_application, reviewer, now, advance):
        advance(draft_application, ApplicationStatus.SUBMITTED)

        with pytest.raises(InvalidTransitionError):
            workflow.approve(draft_application, reviewer, now)

    def test_agent_cannot_approve(self, draft_application, agent, now, advance):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)

        with pytest.raises(ForbiddenError):
            workflow.approve(draft_application, agent, now)


class TestReject:
    """Tests for reject."""

    @pytest.mark.parametrize(
        "reason_code",
        [
            secrets.token_hex(6),
            secrets.token_urlsafe(10),
            "missing_document",
            "MISSING DOCUMENT",
            "",
            "OTHER",
        ],
    )
    def test_unknown_reason_code_is_rejected(
        self, draft_application, reviewer, now, advance, reason_code
    ):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)
        review_before = dict(draft_application.review_info)

        with pytest.raises(UnknownRejectionReasonError):
            workflow.reject(
                draft_application,
                reviewer,
                reason_code=reason_code,
                message="Please fix",
                details=[],
                now=now,
            )

        assert draft_application.status == ApplicationStatus.UNDER_REVIEW
        assert draft_application.stage == ApplicationStage.UNDER_REVIEW
        assert draft_application.review_info == review_before

    def test_random_codes_outside_catalog_never_resolve(
        self, draft_application, reviewer, now, advance
    ):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)
        known = all_reason_ids()

        for _ in range(50):
            code = secrets.token_hex(4).upper()
            if code in known:
                continue
            with pytest.raises(UnknownRejectionReasonError):
                workflow.reject(
                    draft_application,
                    reviewer,
                    reason_code=code,
                    message="x",
                    details=None,
                    now=now,
                )

        assert draft_application.status == ApplicationStatus.UNDER_REVIEW

    def test_reject_normalizes_details(self, draft_application, reviewer, now, advance):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)

        normalized = workflow.reject(
            draft_application,
            reviewer,
            reason_code="DOCUMENT_BLURRY",
            message="Documents are unreadable",
            details=[
                "Photo is blurry",
                {"documentType": "Income Certificate", "issue": "Cut off at bottom"},
            ],
            now=now,
        )

        assert normalized[0].document_type == "General"
        assert normalized[0].priority == "High"
        assert normalized[0].action_required == "Please address the mentioned issue"
        assert normalized[1].document_type == "Income Certificate"
        assert normalized[1].action_required == "Please provide correct document"

        review_info = draft_application.review_info
        assert draft_application.status == ApplicationStatus.REJECTED
        assert draft_application.stage == ApplicationStage.REJECTED
        assert review_info["rejection_reason"] == "DOCUMENT_BLURRY"
        assert review_info["rejection_message"] == "Documents are unreadable"
        assert review_info["can_resubmit"] is True
        assert len(review_info["rejection_details"]) == 2
        assert draft_application.workflow_history[-1]["remarks"] == (
            "DOCUMENT_BLURRY: Documents are unreadable"
        )

    def test_reject_with_empty_details_is_allowed(
        self, draft_application, reviewer, now, advance
    ):
        advance(draft_application, ApplicationStatus.UNDER_REVIEW)

        normalized = workflow.reject(
            draft_application,
            reviewer,
            reason_code="DUPLICATE_APPLICATION",
            message="You already applied",
            details=[],
            now=now,
        )

        assert normalized == []
        assert draft_application.status == ApplicationStatus.REJECTED

    def test_reject_from_submitted_fails(self, draft_application, reviewer, now, advance):
        advance(draft_application, ApplicationStatus.SUBMITTED)

        with pytest.raises(InvalidTransitionError):
            workflow.reject(
                draft_application,
                reviewer,
                reason_code="MISSING_DOCUMENT",
                message="x",
                details=[],
                now=now,
            )


class TestResubmit:
    """Tests for resubmit."""

    def test_reject_then_resubmit(self, draft_application, owner, reviewer, now):
        """submit -> begin_review -> reject -> resubmit by the owner."""
        workflow.submit(draft_application, owner, now)
        workflow.begin_review(draft_application, reviewer, now + timedelta(minutes=1))
        workflow.reject(
            draft_application,
            reviewer,
            reason_code="MISSING_DOCUMENT",
            message="Aadhar card is missing",
            details=[{"documentType": "Aadhar Card", "issue": "not uploaded"}],
            now=now + timedelta(minutes=2),
        )
        assert draft_application.status == ApplicationStatus.REJECTED

        resubmitted_at = now + timedelta(days=1)
        workflow.resubmit(draft_application, owner, resubmitted_at)

        assert draft_application.status == ApplicationStatus.SUBMITTED
        assert draft_application.stage == ApplicationStage.SUBMITTED
        assert draft_application.submitted_at == resubmitted_at
        assert draft_application.last_resubmitted_at == resubmitted_at
        assert draft_application.resubmission_count == 1
        assert _history_actions(draft_application) == [
            WorkflowAction.SUBMIT.value,
            WorkflowAction.BEGIN_REVIEW.value,
            WorkflowAction.REJECT.value,
            WorkflowAction.RESUBMIT.value,
        ]
        assert len(draft_application.admin_notes) == 1
        assert draft_application.admin_notes[0]["kind"] == NoteKind.RESUBMISSION.value

        # The rejection stays on record
        review_info = draft_application.review_info
        assert review_info["rejection_reason"] == "MISSING_DOCUMENT"
        assert review_info["rejection_details"][0]["document_type"] == "Aadhar Card"
        assert review_info["can_resubmit"] is False

    def test_history_prefix_is_unchanged(self, draft_application, owner, advance, now):
        advance(draft_application, ApplicationStatus.REJECTED)
        prefix = json.dumps(draft_application.workflow_history, sort_keys=True)
        length_before = len(draft_application.workflow_history)

        workflow.resubmit(draft_application, owner, now + timedelta(days=2), reason="Re-uploaded")

        history = draft_application.workflow_history
        assert len(history) > length_before
        assert json.dumps(history[:length_before], sort_keys=True) == prefix
        assert history[-1]["remarks"].endswith(": Re-uploaded")

    def test_reviewer_cannot_resubmit(self, draft_application, reviewer, advance, now):
        advance(draft_application, ApplicationStatus.REJECTED)

        with pytest.raises(ForbiddenError):
            workflow.resubmit(draft_application, reviewer, now)

        assert draft_application.status == ApplicationStatus.REJECTED
        assert draft_application.admin_notes == []

    @pytest.mark.parametrize(
        "status",
        [
            ApplicationStatus.DRAFT,
            ApplicationStatus.SUBMITTED,
            ApplicationStatus.UNDER_REVIEW,
            ApplicationStatus.APPROVED,
            ApplicationStatus.CANCELLED,
        ],
    )
    def test_owner_can_only_resubmit_rejected(
        self, draft_application, owner, advance, now, status
    ):
        advance(draft_application, status)

        with pytest.raises(InvalidTransitionError):
            workflow.resubmit(draft_application, owner, now)

        assert draft_application.status == status

    def test_ownership_is_checked_before_status(self, draft_application, other_student, now):
        with pytest.raises(ForbiddenError):
            workflow.resubmit(draft_application, other_student, now)

    def test_resubmitted_application_can_be_approved(
        self, draft_application, owner, reviewer, second_reviewer, advance, now
    ):
        advance(draft_application, ApplicationStatus.REJECTED)
        workflow.resubmit(draft_application, owner, now + timedelta(days=1))
        workflow.begin_review(draft_application, second_reviewer, now + timedelta(days=2))
        _approve_required_documents(draft_application, second_reviewer, now + timedelta(days=2))

        workflow.approve(draft_application, second_reviewer, now + timedelta(days=2))

        review_info = draft_application.review_info
        assert draft_application.status == ApplicationStatus.APPROVED
        assert review_info["rejection_reason"] is None
        assert review_info["rejection_details"] == []
        assert WorkflowAction.REJECT.value in _history_actions(draft_application)


class TestCancel:
    """Tests for cancel."""

    @pytest.mark.parametrize(
        "status",
        [ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW],
    )
    def test_cancel_from_open_states(self, draft_application, owner, advance, now, status):
        advance(draft_application, status)

        workflow.cancel(draft_application, owner, now, reason="Joined another college")

        assert draft_application.status == ApplicationStatus.CANCELLED
        assert draft_application.stage == ApplicationStage.CANCELLED
        assert draft_application.cancelled_at == now
        assert draft_application.workflow_history[-1]["remarks"] == "Joined another college"

    @pytest.mark.parametrize(
        "status",
        [ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.CANCELLED],
    )
    def test_cancel_from_closed_states_fails(self, draft_application, owner, advance, now, status):
        advance(draft_application, status)

        with pytest.raises(InvalidTransitionError):
            workflow.cancel(draft_application, owner, now)

        assert draft_application.status == status

    def test_other_student_cannot_cancel(self, draft_application, other_student, now):
        with pytest.raises(ForbiddenError):
            workflow.cancel(draft_application, other_student, now)


class TestStatusStagePairing:
    """status and stage never disagree, whether a transition succeeds or fails."""

    @pytest.mark.parametrize("status", list(ApplicationStatus))
    @pytest.mark.parametrize(
        "action", ["submit", "begin_review", "approve", "reject", "resubmit", "cancel"]
    )
    def test_pairing_holds_after_any_attempt(
        self, draft_application, owner, reviewer, advance, now, status, action
    ):
        advance(draft_application, status)
        attempts = {
            "submit": lambda: workflow.submit(draft_application, owner, now),
            "begin_review": lambda: workflow.begin_review(draft_application, reviewer, now),
            "approve": lambda: workflow.approve(draft_application, reviewer, now),
            "reject": lambda: workflow.reject(
                draft_application,
                reviewer,
                reason_code="WRONG_DOCUMENT",
                message="Wrong file",
                details=[],
                now=now,
            ),
            "resubmit": lambda: workflow.resubmit(draft_application, owner, now),
            "cancel": lambda: workflow.cancel(draft_application, owner, now),
        }

        try:
            attempts[action]()
        except (InvalidTransitionError, DocumentsNotVerifiedError):
            pass

        assert draft_application.stage == STAGE_FOR_STATUS[draft_application.status]
        workflow.assert_status_stage(draft_application)

    def test_mismatched_pair_is_an_invariant_violation(self, draft_application):
        draft_application.stage = ApplicationStage.APPROVED

        with pytest.raises(InvariantViolationError):
            workflow.assert_status_stage(draft_application)


class TestAdminNotes:
    """Tests for admin notes and rejection visibility."""

    def test_only_reviewers_add_notes(self, draft_application, owner, reviewer, now):
        note = workflow.add_admin_note(draft_application, reviewer, "Called the applicant", now)

        assert note.kind == NoteKind.NOTE
        assert draft_application.admin_notes[-1]["note"] == "Called the applicant"

        with pytest.raises(ForbiddenError):
            workflow.add_admin_note(draft_application, owner, "Hi", now)

    def test_visible_notes_exclude_resubmission_notices(
        self, draft_application, owner, reviewer, advance, now
    ):
        advance(draft_application, ApplicationStatus.REJECTED)
        workflow.add_admin_note(draft_application, reviewer, "Photo must be recent", now)
        workflow.resubmit(draft_application, owner, now)

        notes = workflow.visible_rejection_notes(draft_application)

        assert [note.note for note in notes] == ["Photo must be recent"]

    def test_rejection_view_requires_rejected_status(
        self, draft_application, owner, other_student, advance
    ):
        with pytest.raises(InvalidTransitionError):
            workflow.check_can_view_rejection(draft_application, owner)

        advance(draft_application, ApplicationStatus.REJECTED)
        workflow.check_can_view_rejection(draft_application, owner)

        with pytest.raises(ForbiddenError):
            workflow.check_can_view_rejection(draft_application, other_student)

    def test_rejection_view_is_owner_only(self, draft_application, reviewer, advance):
        advance(draft_application, ApplicationStatus.REJECTED)

        with pytest.raises(ForbiddenError):
            workflow.check_can_view_rejection(draft_application, reviewer)
