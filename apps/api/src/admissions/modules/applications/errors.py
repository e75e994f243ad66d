"""
Student Applications Errors

Caller errors subclass ServiceError and are surfaced verbatim.
Invariant failures subclass InvariantFailure and are surfaced generically.
"""

from uuid import UUID

from admissions.core.exceptions import InvariantFailure, ServiceError
from admissions.modules.applications.models import ApplicationStatus

# ============================================
# Caller Errors
# ============================================


class ApplicationNotFoundError(ServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class IncompleteApplicationError(ServiceError):
    """Raised when a draft is submitted with required parts missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            message=f"Application is incomplete. Missing: {', '.join(missing)}",
            error_code="INCOMPLETE_APPLICATION",
            status_code=422,
        )


class InvalidTransitionError(ServiceError):
    """Raised when an operation is not allowed from the current status."""

    def __init__(self, current_status: ApplicationStatus, action: str):
        self.current_status = current_status
        self.action = action
        super().__init__(
            message=f"Cannot {action} an application with status '{current_status.value}'",
            error_code="INVALID_TRANSITION",
            status_code=409,
        )


class UnknownRejectionReasonError(ServiceError):
    """Raised when a rejection reason code is not in the catalog."""

    def __init__(self, reason_code: str):
        self.reason_code = reason_code
        super().__init__(
            message=f"Unknown rejection reason: {reason_code!r}",
            error_code="UNKNOWN_REJECTION_REASON",
            status_code=400,
        )


class InvalidRejectionDetailError(ServiceError):
    """Raised when a rejection detail entry cannot be normalized."""

    def __init__(self, detail: object):
        super().__init__(
            message=f"Rejection detail must be a string or contain an 'issue': {detail!r}",
            error_code="INVALID_REJECTION_DETAIL",
            status_code=422,
        )


class DocumentNotFoundError(ServiceError):
    """Raised when no document of the given type is attached."""

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(
            message=f"No '{document_type}' document is attached to this application",
            error_code="DOCUMENT_NOT_FOUND",
            status_code=404,
        )


class DuplicateDocumentError(ServiceError):
    """Raised when a document type is attached twice without replace."""

    def __init__(self, document_type: str):
        super().__init__(
            message=f"A '{document_type}' document is already attached. Use replace to swap it.",
            error_code="DUPLICATE_DOCUMENT",
            status_code=409,
        )


class UnknownDocumentTypeError(ServiceError):
    """Raised when a document type is not configured."""

    def __init__(self, document_type: str):
        super().__init__(
            message=f"Unknown document type: {document_type!r}",
            error_code="UNKNOWN_DOCUMENT_TYPE",
            status_code=400,
        )


class DocumentsNotVerifiedError(ServiceError):
    """Raised when approving with required documents not yet approved."""

    def __init__(self, blockers: dict[str, str]):
        self.blockers = blockers
        summary = ", ".join(f"{doc_type} ({state})" for doc_type, state in blockers.items())
        super().__init__(
            message=f"All required documents must be approved first: {summary}",
            error_code="DOCUMENTS_NOT_VERIFIED",
            status_code=409,
        )


class UnknownSectionError(ServiceError):
    """Raised when a verification flag is set for an unknown section."""

    def __init__(self, section: str):
        super().__init__(
            message=f"Unknown section: {section!r}",
            error_code="UNKNOWN_SECTION",
            status_code=400,
        )


# ============================================
# Invariant Failures
# ============================================


class InvariantViolationError(InvariantFailure):
    """Raised when the aggregate is found in an impossible state."""

    def __init__(self, message: str):
        super().__init__(message=message, error_code="INVARIANT_VIOLATION")


class ConcurrentModificationError(InvariantFailure):
    """Raised when a transition lost an optimistic-lock race."""

    public_message = "The application was modified by another request. Reload and retry."

    def __init__(self, application_id: UUID, detail: str = ""):
        self.application_id = application_id
        message = f"Application {application_id} was modified concurrently"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            message=message,
            error_code="CONCURRENT_MODIFICATION",
            status_code=409,
        )
