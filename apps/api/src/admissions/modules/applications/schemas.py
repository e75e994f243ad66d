"""
Student Applications Schemas

Pydantic schemas for the embedded parts of the application aggregate,
request validation and response serialization.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field

from admissions.modules.applications.models import (
    ApplicationStage,
    ApplicationStatus,
    DocumentStatus,
    NoteKind,
    OverallDocumentStatus,
    WorkflowAction,
)

# ============================================
# Payload Sections
# ============================================
# All fields are optional so drafts can be saved partially filled.
# Submission checks presence of the required ones (see helpers.py).


class Address(BaseModel):
    street: str | None = Field(None, max_length=300)
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    pincode: str | None = Field(None, max_length=10)
    country: str | None = Field("India", max_length=100)


class PersonalDetails(BaseModel):
    """Applicant's personal information."""

    full_name: str | None = Field(None, max_length=200)
    fathers_name: str | None = Field(None, max_length=200)
    mothers_name: str | None = Field(None, max_length=200)
    date_of_birth: date | None = None
    gender: str | None = Field(None, max_length=20)
    aadhar_number: str | None = Field(None, max_length=12)


class ContactDetails(BaseModel):
    """How to reach the applicant."""

    primary_phone: str | None = Field(None, max_length=20)
    whatsapp_number: str | None = Field(None, max_length=20)
    email: EmailStr | None = None
    permanent_address: Address | None = None


class CourseDetails(BaseModel):
    """Course the applicant is applying for."""

    selected_course: str | None = Field(None, max_length=200)
    custom_course: str | None = Field(None, max_length=200)
    stream: str | None = Field(None, max_length=100)
    campus: str | None = Field(None, max_length=100)


class GuardianDetails(BaseModel):
    """Parent or guardian contact."""

    guardian_name: str | None = Field(None, max_length=200)
    relationship: str | None = Field(None, max_length=50)
    guardian_phone: str | None = Field(None, max_length=20)
    guardian_email: EmailStr | None = None


class FinancialDetails(BaseModel):
    """Bank details for scholarship disbursement. Optional section."""

    bank_name: str | None = Field(None, max_length=200)
    account_holder_name: str | None = Field(None, max_length=200)
    account_number: str | None = Field(None, max_length=30)
    ifsc_code: str | None = Field(None, max_length=11)


class ApplicationPayload(BaseModel):
    """The applicant supplied sections of an application."""

    personal_details: PersonalDetails | None = None
    contact_details: ContactDetails | None = None
    course_details: CourseDetails | None = None
    guardian_details: GuardianDetails | None = None
    financial_details: FinancialDetails | None = None


# ============================================
# Embedded Aggregate Records
# ============================================


class ApplicationDocument(BaseModel):
    """
    A document attached to an application.

    The file itself is held by the storage service; ``file_ref`` is the
    pointer it handed back.
    """

    document_type: str
    file_ref: str
    file_name: str | None = None
    status: DocumentStatus = DocumentStatus.PENDING
    remarks: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    uploaded_at: datetime


class DocumentCounts(BaseModel):
    """Aggregate of document statuses. Always a full recount."""

    total: int = 0
    approved: int = 0
    rejected: int = 0
    pending: int = 0


class RejectionDetail(BaseModel):
    """One structured item of rejection feedback."""

    model_config = ConfigDict(populate_by_name=True)

    issue: str = Field(..., min_length=1, max_length=500)
    document_type: str = Field(
        "General", validation_alias=AliasChoices("document_type", "documentType")
    )
    action_required: str = Field(
        "Please provide correct document",
        validation_alias=AliasChoices("action_required", "actionRequired"),
    )
    priority: str = "High"
    specific_feedback: str = Field(
        "", validation_alias=AliasChoices("specific_feedback", "specificFeedback")
    )


class ReviewInfo(BaseModel):
    """Reviewer decision and verification flags."""

    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None

    rejection_reason: str | None = None
    rejection_message: str | None = None
    rejection_details: list[RejectionDetail] = Field(default_factory=list)
    can_resubmit: bool = False

    documents_verified: bool = False
    personal_details_verified: bool = False
    academic_details_verified: bool = False
    guardian_details_verified: bool = False
    financial_details_verified: bool = False
    overall_document_status: OverallDocumentStatus = OverallDocumentStatus.NOT_VERIFIED

    overall_approved: bool = False


class WorkflowHistoryEntry(BaseModel):
    """One append-only workflow history entry."""

    stage: ApplicationStage
    status: ApplicationStatus
    actor: UUID
    actor_role: str
    action: WorkflowAction
    remarks: str = ""
    timestamp: datetime


class AdminNote(BaseModel):
    """One append-only admin note."""

    note: str
    author: UUID
    timestamp: datetime
    kind: NoteKind = NoteKind.NOTE


class ReferralInfo(BaseModel):
    """Referral attribution recorded on the application."""

    referral_code: str
    referred_by: UUID
    referral_type: str


# ============================================
# Applicant Requests
# ============================================


class ApplicationCreate(ApplicationPayload):
    """Create a draft application."""

    referral_code: str | None = Field(None, max_length=16)


class ApplicationUpdate(ApplicationPayload):
    """Replace one or more sections of a draft."""

    expected_version: int | None = None


class AttachDocumentRequest(BaseModel):
    document_type: str = Field(..., min_length=1, max_length=50)
    file_ref: str = Field(..., min_length=1, max_length=500)
    file_name: str | None = Field(None, max_length=255)
    replace: bool = False


class TransitionRequest(BaseModel):
    """Body for transitions without extra input."""

    expected_version: int | None = Field(
        None, description="Version the caller last read; mismatch means reload and retry"
    )


class ResubmitRequest(TransitionRequest):
    reason: str | None = Field(None, max_length=1000)


class CancelRequest(TransitionRequest):
    reason: str | None = Field(None, max_length=1000)


# ============================================
# Reviewer Requests
# ============================================


class SetDocumentStatusRequest(TransitionRequest):
    status: DocumentStatus
    remarks: str | None = Field(None, max_length=1000)


class SectionVerificationRequest(TransitionRequest):
    verified: bool


class RejectRequest(TransitionRequest):
    """Reject an application with a catalog reason."""

    reason_code: str = Field(..., min_length=1, max_length=50)
    message: str = Field(..., min_length=1, max_length=2000)
    details: list[RejectionDetail | str] = Field(default_factory=list)


class AddNoteRequest(BaseModel):
    note: str = Field(..., min_length=1, max_length=2000)


# ============================================
# Responses
# ============================================


class ApplicationResponse(BaseModel):
    """Full application view."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_code: str | None
    owner_id: UUID
    submitted_by: UUID | None
    status: ApplicationStatus
    stage: ApplicationStage
    version_id: int

    personal_details: PersonalDetails | None
    contact_details: ContactDetails | None
    course_details: CourseDetails | None
    guardian_details: GuardianDetails | None
    financial_details: FinancialDetails | None

    documents: list[ApplicationDocument]
    document_counts: DocumentCounts
    review_info: ReviewInfo
    workflow_history: list[WorkflowHistoryEntry]
    referral_info: ReferralInfo | None

    resubmission_count: int
    submitted_at: datetime | None
    last_resubmitted_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class AdminApplicationResponse(ApplicationResponse):
    """Reviewer view: includes admin notes."""

    admin_notes: list[AdminNote]


class ApplicationListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    application_code: str | None
    owner_id: UUID
    status: ApplicationStatus
    stage: ApplicationStage
    document_counts: DocumentCounts
    resubmission_count: int
    submitted_at: datetime | None
    created_at: datetime


class ApplicationListResponse(BaseModel):
    items: list[ApplicationListItem]
    total: int
    skip: int
    limit: int


class DashboardStats(BaseModel):
    """Counts for the reviewer dashboard."""

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    resubmitted: int = 0
    awaiting_review: int = Field(0, description="submitted + under_review")


class RejectionReasonResponse(BaseModel):
    id: str
    title: str
    description: str
    examples: list[str]


class RejectionCategoryResponse(BaseModel):
    key: str
    title: str
    reasons: list[RejectionReasonResponse]


class RejectionCatalogResponse(BaseModel):
    version: str
    categories: list[RejectionCategoryResponse]


class RejectionDetailsResponse(BaseModel):
    """What the applicant sees about a rejection."""

    application_id: UUID
    status: ApplicationStatus
    rejection_reason: RejectionReasonResponse | None
    rejection_message: str | None
    rejection_details: list[RejectionDetail]
    reviewed_at: datetime | None
    can_resubmit: bool
    admin_notes: list[AdminNote]


class AddNoteResponse(BaseModel):
    application_id: UUID
    note: AdminNote


class DocumentTypeResponse(BaseModel):
    id: str
    name: str
    category: str
    required: bool


class DocumentStatusResponse(BaseModel):
    application_id: UUID
    document: ApplicationDocument
    document_counts: DocumentCounts
    overall_document_status: OverallDocumentStatus
    version_id: int
