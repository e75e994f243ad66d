"""
Helper functions for student applications.
"""

import secrets
from collections.abc import Mapping
from datetime import datetime

from pydantic import ValidationError

from admissions.modules.applications.errors import InvalidRejectionDetailError
from admissions.modules.applications.models import StudentApplication
from admissions.modules.applications.schemas import RejectionDetail

# Required fields per payload section. financial_details is optional.
REQUIRED_SECTION_FIELDS: dict[str, tuple[str, ...]] = {
    "personal_details": ("full_name", "fathers_name", "date_of_birth", "gender"),
    "contact_details": ("primary_phone", "email"),
    "course_details": ("selected_course",),
    "guardian_details": ("guardian_name", "relationship", "guardian_phone"),
}

PAYLOAD_SECTIONS = (
    "personal_details",
    "contact_details",
    "course_details",
    "guardian_details",
    "financial_details",
)

# Defaults applied to rejection details
DEFAULT_DETAIL_DOCUMENT_TYPE = "General"
DEFAULT_DETAIL_PRIORITY = "High"
DEFAULT_ACTION_FOR_TEXT = "Please address the mentioned issue"


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def find_missing_parts(application: StudentApplication) -> list[str]:
    """
    List what is missing before an application can be submitted.

    Only presence is checked. Field contents were validated by the request
    schemas when the draft was saved.

    Returns:
        Section names for absent sections, ``section.field`` for blank
        required fields, and ``documents`` if nothing is attached.
        Empty if the application is complete.
    """
    missing = []

    for section, fields in REQUIRED_SECTION_FIELDS.items():
        data = getattr(application, section)
        if not data:
            missing.append(section)
            continue
        missing.extend(f"{section}.{field}" for field in fields if _is_blank(data.get(field)))

    if not application.documents:
        missing.append("documents")

    return missing


def generate_application_code(now: datetime) -> str:
    """Random application code: ``APP`` + 2-digit year + 6 digits."""
    return f"APP{now.year % 100:02d}{secrets.randbelow(1_000_000):06d}"


def normalize_rejection_details(
    details: list[RejectionDetail | Mapping | str] | None,
) -> list[RejectionDetail]:
    """
    Bring rejection details into the structured shape.

    A plain string becomes the ``issue`` of a General, High priority
    detail. Mappings get defaults for anything they leave out.

    Raises:
        InvalidRejectionDetailError: If an entry is neither a non-empty
            string nor a mapping with an ``issue``
    """
    normalized = []

    for detail in details or []:
        if isinstance(detail, RejectionDetail):
            normalized.append(detail)
        elif isinstance(detail, str):
            if not detail.strip():
                raise InvalidRejectionDetailError(detail)
            normalized.append(
                RejectionDetail(
                    issue=detail.strip(),
                    document_type=DEFAULT_DETAIL_DOCUMENT_TYPE,
                    action_required=DEFAULT_ACTION_FOR_TEXT,
                    priority=DEFAULT_DETAIL_PRIORITY,
                )
            )
        elif isinstance(detail, Mapping):
            try:
                normalized.append(RejectionDetail.model_validate(dict(detail)))
            except ValidationError as e:
                raise InvalidRejectionDetailError(detail) from e
        else:
            raise InvalidRejectionDetailError(detail)

    return normalized
