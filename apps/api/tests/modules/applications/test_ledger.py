"""
Unit tests for the document review ledger.
"""

from datetime import timedelta

import pytest

from admissions.modules.applications import ledger
from admissions.modules.applications.document_types import REQUIRED_DOCUMENT_TYPES
from admissions.modules.applications.errors import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    InvariantViolationError,
)
from admissions.modules.applications.models import DocumentStatus, OverallDocumentStatus
from admissions.modules.applications.schemas import ApplicationDocument, DocumentCounts


def _doc(document_type, status=DocumentStatus.PENDING, now=None):
    return ApplicationDocument(
        document_type=document_type,
        file_ref=f"uploads/{document_type}",
        status=status,
        uploaded_at=now,
    )


def _assert_aggregate_holds(application):
    counts = application.document_counts
    assert counts["total"] == len(application.documents)
    assert counts["approved"] + counts["rejected"] + counts["pending"] == counts["total"]


class TestRecount:
    """Tests for the counting helpers."""

    def test_recount_by_status(self, now):
        counts = ledger.recount(
            [
                _doc("a", DocumentStatus.APPROVED, now),
                _doc("b", DocumentStatus.REJECTED, now),
                _doc("c", DocumentStatus.PENDING, now),
                _doc("d", DocumentStatus.APPROVED, now),
            ]
        )

        assert counts == DocumentCounts(total=4, approved=2, rejected=1, pending=1)

    def test_recount_empty(self):
        assert ledger.recount([]) == DocumentCounts()

    @pytest.mark.parametrize(
        "counts,expected",
        [
            (DocumentCounts(), OverallDocumentStatus.NOT_VERIFIED),
            (DocumentCounts(total=2, pending=2), OverallDocumentStatus.NOT_VERIFIED),
            (DocumentCounts(total=2, approved=2), OverallDocumentStatus.ALL_APPROVED),
            (DocumentCounts(total=2, rejected=2), OverallDocumentStatus.ALL_REJECTED),
            (
                DocumentCounts(total=3, approved=1, rejected=1, pending=1),
                OverallDocumentStatus.PARTIALLY_APPROVED,
            ),
            (DocumentCounts(total=2, rejected=1, pending=1), OverallDocumentStatus.NOT_VERIFIED),
        ],
    )
    def test_overall_document_status(self, counts, expected):
        assert ledger.overall_document_status(counts) == expected


class TestAttachDocument:
    """Tests for attaching documents."""

    def test_attach_updates_counts(self, draft_application, now):
        before = draft_application.document_counts["total"]

        ledger.attach_document(
            draft_application,
            document_type="twelfth_marksheet",
            file_ref="uploads/12th.pdf",
            file_name="12th.pdf",
            now=now,
        )

        assert draft_application.document_counts["total"] == before + 1
        assert draft_application.document_counts["pending"] == before + 1
        _assert_aggregate_holds(draft_application)

    def test_duplicate_type_is_rejected(self, draft_application, now):
        documents_before = list(draft_application.documents)

        with pytest.raises(DuplicateDocumentError):
            ledger.attach_document(
                draft_application,
                document_type="aadhar_card",
                file_ref="uploads/again.pdf",
                file_name=None,
                now=now,
            )

        assert draft_application.documents == documents_before

    def test_replace_resets_review(self, draft_application, reviewer, now):
        ledger.set_document_status(
            draft_application,
            document_type="aadhar_card",
            status=DocumentStatus.REJECTED,
            reviewer=reviewer,
            remarks="Expired",
            now=now,
        )

        replaced = ledger.attach_document(
            draft_application,
            document_type="aadhar_card",
            file_ref="uploads/aadhar-new.pdf",
            file_name="aadhar-new.pdf",
            now=now + timedelta(days=1),
            replace=True,
        )

        assert replaced.status == DocumentStatus.PENDING
        assert replaced.remarks is None
        assert replaced.reviewed_by is None
        assert len(draft_application.documents) == len(REQUIRED_DOCUMENT_TYPES)
        assert draft_application.document_counts["rejected"] == 0
        _assert_aggregate_holds(draft_application)


class TestSetDocumentStatus:
    """Tests for recording document verdicts."""

    def test_sets_reviewer_metadata(self, draft_application, reviewer, now):
        counts = ledger.set_document_status(
            draft_application,
            document_type="tenth_marksheet",
            status=DocumentStatus.APPROVED,
            reviewer=reviewer,
            remarks="Verified with board",
            now=now,
        )

        doc = ledger.find_document(ledger.load_documents(draft_application), "tenth_marksheet")
        assert doc.status == DocumentStatus.APPROVED
        assert doc.reviewed_by == reviewer.id
        assert doc.reviewed_at == now
        assert doc.remarks == "Verified with board"
        assert counts.approved == 1

    def test_unknown_document(self, draft_application, reviewer, now):
        with pytest.raises(DocumentNotFoundError):
            ledger.set_document_status(
                draft_application,
                document_type="graduation_marksheet",
                status=DocumentStatus.APPROVED,
                reviewer=reviewer,
                remarks=None,
                now=now,
            )

    def test_aggregate_holds_after_every_change(self, draft_application, reviewer, now):
        sequence = [
            ("aadhar_card", DocumentStatus.APPROVED),
            ("passport_photo", DocumentStatus.REJECTED),
            ("aadhar_card", DocumentStatus.REJECTED),
            ("passport_photo", DocumentStatus.PENDING),
            ("income_certificate", DocumentStatus.APPROVED),
            ("aadhar_card", DocumentStatus.APPROVED),
        ]

        for document_type, status in sequence:
            counts = ledger.set_document_status(
                draft_application,
                document_type=document_type,
                status=status,
                reviewer=reviewer,
                remarks=None,
                now=now,
            )
            _assert_aggregate_holds(draft_application)
            assert counts == ledger.recount(ledger.load_documents(draft_application))

        assert draft_application.document_counts["approved"] == 2
        assert draft_application.document_counts["rejected"] == 0

    def test_review_flags_follow_counts(self, draft_application, reviewer, now):
        for document_type in REQUIRED_DOCUMENT_TYPES:
            ledger.set_document_status(
                draft_application,
                document_type=document_type,
                status=DocumentStatus.APPROVED,
                reviewer=reviewer,
                remarks=None,
                now=now,
            )

        assert draft_application.review_info["documents_verified"] is True
        assert draft_application.review_info["overall_document_status"] == "all_approved"

        ledger.set_document_status(
            draft_application,
            document_type="aadhar_card",
            status=DocumentStatus.REJECTED,
            reviewer=reviewer,
            remarks=None,
            now=now,
        )

        assert draft_application.review_info["documents_verified"] is False
        assert draft_application.review_info["overall_document_status"] == "partially_approved"


class TestAssertConsistent:
    """Tests for the aggregate check."""

    def test_consistent_application_passes(self, draft_application):
        counts = ledger.assert_consistent(draft_application)

        assert counts.total == len(REQUIRED_DOCUMENT_TYPES)

    def test_tampered_total_is_a_violation(self, draft_application):
        draft_application.document_counts = {
            **draft_application.document_counts,
            "total": 99,
        }

        with pytest.raises(InvariantViolationError):
            ledger.assert_consistent(draft_application)

    def test_counts_that_do_not_match_statuses_are_a_violation(self, draft_application):
        total = draft_application.document_counts["total"]
        draft_application.document_counts = {
            "total": total,
            "approved": total,
            "rejected": 0,
            "pending": 0,
        }

        with pytest.raises(InvariantViolationError):
            ledger.assert_consistent(draft_application)


class TestApprovalBlockers:
    """Tests for approval readiness."""

    def test_all_pending(self, draft_application):
        blockers = ledger.approval_blockers(draft_application)

        assert blockers == {document_type: "pending" for document_type in REQUIRED_DOCUMENT_TYPES}

    def test_custom_required_types(self, draft_application, reviewer, now):
        ledger.set_document_status(
            draft_application,
            document_type="passport_photo",
            status=DocumentStatus.APPROVED,
            reviewer=reviewer,
            remarks=None,
            now=now,
        )

        assert ledger.approval_blockers(draft_application, {"passport_photo"}) == {}
        assert ledger.approval_blockers(draft_application, {"residence_certificate"}) == {
            "residence_certificate": "missing"
        }
