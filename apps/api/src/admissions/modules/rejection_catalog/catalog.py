"""
Rejection Catalog

Fixed taxonomy of reasons a reviewer can give when rejecting an
application. Entries are grouped by category and identified by a stable id
that is stored on the application as ``review_info.rejection_reason``.

The catalog is code, not data: changing it means changing this module and
bumping ``CATALOG_VERSION``.
"""

from dataclasses import dataclass

CATALOG_VERSION = "2024.1"


@dataclass(frozen=True)
class RejectionReason:
    """A single catalog entry."""

    id: str
    category: str
    title: str
    description: str
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class RejectionCategory:
    """A named group of rejection reasons."""

    key: str
    title: str
    reasons: tuple[RejectionReason, ...]


def _category(key: str, title: str, *entries: tuple[str, str, str, tuple[str, ...]]):
    return RejectionCategory(
        key=key,
        title=title,
        reasons=tuple(
            RejectionReason(
                id=reason_id,
                category=key,
                title=reason_title,
                description=description,
                examples=examples,
            )
            for reason_id, reason_title, description, examples in entries
        ),
    )


CATEGORIES: tuple[RejectionCategory, ...] = (
    _category(
        "document_issues",
        "Document Issues",
        (
            "MISSING_DOCUMENT",
            "Missing Document",
            "Required document is not uploaded",
            ("10th Grade Certificate not uploaded", "Aadhar Card missing"),
        ),
        (
            "DOCUMENT_EXPIRED",
            "Document Expired",
            "Document has expired and needs renewal",
            ("Medical certificate expired", "Income certificate expired"),
        ),
        (
            "DOCUMENT_OLD",
            "Document Too Old",
            "Document is too old, need recent/current version",
            ("Birth certificate too old", "Address proof outdated"),
        ),
        (
            "DOCUMENT_BLURRY",
            "Document Not Clear",
            "Document image is blurry or unclear",
            ("Certificate image is blurry", "Document not readable"),
        ),
        (
            "DOCUMENT_CUT_OFF",
            "Document Cut Off",
            "Document image is incomplete or cut off",
            ("Certificate edges cut off", "Document partially visible"),
        ),
        (
            "WRONG_DOCUMENT",
            "Wrong Document Type",
            "Uploaded document is not the required type",
            ("Uploaded mark sheet instead of certificate", "Wrong document uploaded"),
        ),
        (
            "DOCUMENT_DAMAGED",
            "Document Damaged",
            "Document is damaged or torn",
            ("Certificate is torn", "Document has stains"),
        ),
    ),
    _category(
        "personal_info_issues",
        "Personal Information Issues",
        (
            "NAME_MISMATCH",
            "Name Mismatch",
            "Name in documents doesn't match application",
            ("Name spelling different", "Name format mismatch"),
        ),
        (
            "DATE_MISMATCH",
            "Date Mismatch",
            "Date of birth or other dates don't match",
            ("DOB mismatch", "Certificate date mismatch"),
        ),
        (
            "INCOMPLETE_INFO",
            "Incomplete Information",
            "Required personal information is missing",
            ("Father's name missing", "Address incomplete"),
        ),
    ),
    _category(
        "academic_issues",
        "Academic Issues",
        (
            "GRADE_INSUFFICIENT",
            "Insufficient Grades",
            "Academic performance doesn't meet requirements",
            ("Marks below minimum requirement", "Grade not eligible"),
        ),
        (
            "COURSE_MISMATCH",
            "Course Mismatch",
            "Selected course doesn't match qualifications",
            ("Course not suitable for qualification", "Wrong course selected"),
        ),
    ),
    _category(
        "other_issues",
        "Other Issues",
        (
            "FRAUD_DETECTED",
            "Fraud Detected",
            "Suspected fraudulent documents",
            ("Fake certificate detected", "Forged document"),
        ),
        (
            "INCOMPLETE_APPLICATION",
            "Incomplete Application",
            "Application form is incomplete",
            ("Required fields missing", "Form not fully filled"),
        ),
        (
            "DUPLICATE_APPLICATION",
            "Duplicate Application",
            "Multiple applications found",
            ("Already applied", "Duplicate submission"),
        ),
    ),
)

_REASONS_BY_ID: dict[str, RejectionReason] = {
    reason.id: reason for category in CATEGORIES for reason in category.reasons
}


def resolve(reason_code: str) -> RejectionReason | None:
    """
    Look up a rejection reason by id.

    Lookup is exact; ids are upper-case constants.

    Returns:
        The catalog entry, or None if the code is not in the catalog
    """
    return _REASONS_BY_ID.get(reason_code)


def list_categories() -> tuple[RejectionCategory, ...]:
    """All categories in display order."""
    return CATEGORIES


def all_reason_ids() -> frozenset[str]:
    return frozenset(_REASONS_BY_ID)
