"""
Document Review Ledger

Per-document verification state of an application and its aggregate
counts. The aggregate is never adjusted incrementally: every mutation goes
through ``_store_documents``, which writes the document list, recounts it
from scratch, refreshes the derived review flags and then checks

    counts.total == len(documents)
    counts.approved + counts.rejected + counts.pending == counts.total

A failed check is a programming error and raises InvariantViolationError.

All functions here are synchronous and operate on an in-memory
StudentApplication. Persistence and the per-application lock are the
service layer's job.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from admissions.modules.applications.document_types import REQUIRED_DOCUMENT_TYPES
from admissions.modules.applications.errors import (
    DocumentNotFoundError,
    DuplicateDocumentError,
    InvariantViolationError,
)
from admissions.modules.applications.models import (
    DocumentStatus,
    OverallDocumentStatus,
    StudentApplication,
)
from admissions.modules.applications.schemas import (
    ApplicationDocument,
    DocumentCounts,
    ReviewInfo,
)
from admissions.modules.shared import Actor

logger = logging.getLogger(__name__)


def load_documents(application: StudentApplication) -> list[ApplicationDocument]:
    return [ApplicationDocument.model_validate(doc) for doc in application.documents or []]


def load_review_info(application: StudentApplication) -> ReviewInfo:
    return ReviewInfo.model_validate(application.review_info or {})


def recount(documents: Iterable[ApplicationDocument]) -> DocumentCounts:
    """Count documents by status."""
    counts = DocumentCounts()
    for doc in documents:
        counts.total += 1
        if doc.status == DocumentStatus.APPROVED:
            counts.approved += 1
        elif doc.status == DocumentStatus.REJECTED:
            counts.rejected += 1
        else:
            counts.pending += 1
    return counts


def overall_document_status(counts: DocumentCounts) -> OverallDocumentStatus:
    """Summarize the counts into a single review state."""
    if counts.total == 0:
        return OverallDocumentStatus.NOT_VERIFIED
    if counts.approved == counts.total:
        return OverallDocumentStatus.ALL_APPROVED
    if counts.rejected == counts.total:
        return OverallDocumentStatus.ALL_REJECTED
    if counts.approved > 0:
        return OverallDocumentStatus.PARTIALLY_APPROVED
    return OverallDocumentStatus.NOT_VERIFIED


def assert_consistent(application: StudentApplication) -> DocumentCounts:
    """
    Check the stored aggregate against the stored documents.

    Returns:
        The stored counts

    Raises:
        InvariantViolationError: If the counts do not describe the documents
    """
    documents = application.documents or []
    stored = DocumentCounts.model_validate(application.document_counts or {})
    expected = recount(load_documents(application))

    if (
        stored.total != len(documents)
        or stored.approved + stored.rejected + stored.pending != stored.total
        or stored != expected
    ):
        logger.error(
            f"Document aggregate mismatch on application {application.id}: "
            f"stored={stored.model_dump()} expected={expected.model_dump()} "
            f"documents={len(documents)} status={application.status} "
            f"version={application.version_id}"
        )
        raise InvariantViolationError(
            f"Document counts for application {application.id} do not match its documents"
        )

    return stored


def _store_documents(
    application: StudentApplication, documents: list[ApplicationDocument]
) -> DocumentCounts:
    counts = recount(documents)

    review_info = load_review_info(application)
    review_info.overall_document_status = overall_document_status(counts)
    review_info.documents_verified = (
        review_info.overall_document_status == OverallDocumentStatus.ALL_APPROVED
    )

    # New containers so SQLAlchemy sees the change
    application.documents = [doc.model_dump(mode="json") for doc in documents]
    application.document_counts = counts.model_dump()
    application.review_info = review_info.model_dump(mode="json")

    return assert_consistent(application)


def find_document(
    documents: list[ApplicationDocument], document_type: str
) -> ApplicationDocument | None:
    for doc in documents:
        if doc.document_type == document_type:
            return doc
    return None


def attach_document(
    application: StudentApplication,
    *,
    document_type: str,
    file_ref: str,
    file_name: str | None,
    now: datetime,
    replace: bool = False,
) -> ApplicationDocument:
    """
    Attach a document, or replace the one of the same type.

    A replaced document starts over as PENDING with no review metadata.

    Raises:
        DuplicateDocumentError: If the type is already attached and replace is False
    """
    documents = load_documents(application)
    existing = find_document(documents, document_type)

    if existing is not None and not replace:
        raise DuplicateDocumentError(document_type)

    new_doc = ApplicationDocument(
        document_type=document_type,
        file_ref=file_ref,
        file_name=file_name,
        uploaded_at=now,
    )

    if existing is None:
        documents.append(new_doc)
    else:
        documents = [new_doc if doc is existing else doc for doc in documents]

    _store_documents(application, documents)
    return new_doc


def set_document_status(
    application: StudentApplication,
    *,
    document_type: str,
    status: DocumentStatus,
    reviewer: Actor,
    remarks: str | None,
    now: datetime,
) -> DocumentCounts:
    """
    Record a reviewer's verdict on one document and recount.

    Args:
        application: Application holding the document
        document_type: Type of the document to update
        status: New document status
        reviewer: Reviewer making the change
        remarks: Optional reviewer remarks
        now: Review timestamp

    Returns:
        The recomputed aggregate counts

    Raises:
        DocumentNotFoundError: If no document of that type is attached
        InvariantViolationError: If the recount does not add up
    """
    documents = load_documents(application)
    doc = find_document(documents, document_type)

    if doc is None:
        raise DocumentNotFoundError(document_type)

    doc.status = status
    doc.remarks = remarks
    doc.reviewed_by = reviewer.id
    doc.reviewed_at = now

    return _store_documents(application, documents)


def approval_blockers(
    application: StudentApplication,
    required_types: Iterable[str] = REQUIRED_DOCUMENT_TYPES,
) -> dict[str, str]:
    """
    Required documents that stand in the way of approval.

    Returns:
        Mapping of document type to its status, or "missing" if it was
        never attached. Empty when the application is ready for approval.
    """
    by_type = {doc.document_type: doc for doc in load_documents(application)}
    blockers = {}

    for document_type in sorted(required_types):
        doc = by_type.get(document_type)
        if doc is None:
            blockers[document_type] = "missing"
        elif doc.status != DocumentStatus.APPROVED:
            blockers[document_type] = doc.status.value

    return blockers
