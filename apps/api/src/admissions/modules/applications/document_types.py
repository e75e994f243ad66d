"""
Document type configuration.

Which documents an applicant may upload and which of them must be approved
before an application can be approved.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class DocumentTypeConfig:
    id: str
    name: str
    category: str
    required: bool


DOCUMENT_TYPES: tuple[DocumentTypeConfig, ...] = (
    # Compulsory
    DocumentTypeConfig("passport_photo", "Passport Size Photo", "identity", True),
    DocumentTypeConfig("aadhar_card", "Aadhar Card", "identity", True),
    DocumentTypeConfig("tenth_marksheet", "10th Marksheet cum Certificate", "academic", True),
    DocumentTypeConfig("caste_certificate", "Caste Certificate", "category", True),
    DocumentTypeConfig("income_certificate", "Income Certificate", "financial", True),
    # Optional
    DocumentTypeConfig("residence_certificate", "Residence Certificate", "identity", False),
    DocumentTypeConfig("pm_kisan_enrollment", "PM Kisan Enrollment Certificate", "financial", False),
    DocumentTypeConfig("cm_kisan_enrollment", "CM Kisan Enrollment Certificate", "financial", False),
    DocumentTypeConfig("twelfth_marksheet", "12th Marksheet", "academic", False),
    DocumentTypeConfig("graduation_marksheet", "Graduation Marksheet", "academic", False),
)

_BY_ID = {doc_type.id: doc_type for doc_type in DOCUMENT_TYPES}

REQUIRED_DOCUMENT_TYPES: frozenset[str] = frozenset(
    doc_type.id for doc_type in DOCUMENT_TYPES if doc_type.required
)


def is_known_document_type(document_type: str) -> bool:
    return document_type in _BY_ID
