"""
Student Applications Admin Router

Reviewer endpoints. All require a staff or super_admin account.

Endpoints:
- GET /admin/applications - List applications with filters and pagination
- GET /admin/applications/stats - Dashboard statistics
- GET /admin/applications/rejection-reasons - Rejection catalog
- GET /admin/applications/{id} - Application details including admin notes
- POST /admin/applications/{id}/start-review - Start reviewing
- PUT /admin/applications/{id}/documents/{document_type} - Record a document verdict
- PUT /admin/applications/{id}/sections/{section} - Record a section verification
- POST /admin/applications/{id}/approve - Approve
- POST /admin/applications/{id}/reject - Reject with a catalog reason
- POST /admin/applications/{id}/cancel - Cancel on the applicant's behalf
- POST /admin/applications/{id}/notes - Add an admin note

Every state changing endpoint accepts ``expected_version``. A 409 with
CONCURRENT_MODIFICATION means another reviewer got there first: reload
and decide again.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import CurrentUser, get_current_reviewer
from admissions.core.database import get_db
from admissions.core.exceptions import ServiceError, handle_service_error
from admissions.modules.applications import ledger, service
from admissions.modules.applications.models import ApplicationStage, ApplicationStatus
from admissions.modules.applications.schemas import (
    AddNoteRequest,
    AddNoteResponse,
    AdminApplicationResponse,
    ApplicationListItem,
    ApplicationListResponse,
    CancelRequest,
    DashboardStats,
    DocumentStatusResponse,
    RejectionCatalogResponse,
    RejectRequest,
    SectionVerificationRequest,
    SetDocumentStatusRequest,
    TransitionRequest,
)
from admissions.modules.applications.router import rejection_catalog_response

logger = logging.getLogger(__name__)

router = APIRouter()


def _internal_error(e: Exception, context: str) -> HTTPException:
    logger.exception(f"Error {context}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


# ============================================
# List & Stats Endpoints
# ============================================


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List Applications",
    description="""
Get paginated list of applications with optional filters.

**Filters:**
- `status`: Filter by application status
- `stage`: Filter by application stage
- `search`: Search in application number, applicant name and email

**Sorting:**
- `sort_by`: submitted_at or created_at. Default: submitted_at
- `sort_order`: asc or desc. Default: asc (oldest first for fairness)

**Access:** Staff and super admins only
""",
)
async def list_applications(
    status: ApplicationStatus | None = Query(None, description="Filter by status"),
    stage: ApplicationStage | None = Query(None, description="Filter by stage"),
    search: str | None = Query(None, min_length=1, max_length=100),
    sort_by: str = Query("submitted_at", description="Column to sort by"),
    sort_order: str = Query("asc", description="Sort direction (asc/desc)"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> ApplicationListResponse:
    try:
        applications, total = await service.admin_get_applications_list(
            db,
            status=status,
            stage=stage,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )

        logger.info(
            f"Reviewer {reviewer.id} listed applications: "
            f"total={total}, returned={len(applications)}"
        )

        return ApplicationListResponse(
            items=[ApplicationListItem.model_validate(app) for app in applications],
            total=total,
            skip=skip,
            limit=limit,
        )
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, "listing applications") from e


@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Get Dashboard Statistics",
)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> DashboardStats:
    """Counts per status, resubmitted applications and the review queue size."""
    try:
        stats = await service.admin_get_dashboard_stats(db)
        logger.info(f"Reviewer {reviewer.id} fetched dashboard stats")
        return DashboardStats(**stats)
    except Exception as e:
        raise _internal_error(e, "getting dashboard stats") from e


@router.get(
    "/rejection-reasons",
    response_model=RejectionCatalogResponse,
    summary="Rejection Catalog",
)
async def get_rejection_reasons(
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> RejectionCatalogResponse:
    return rejection_catalog_response()


# ============================================
# Detail & Review Endpoints
# ============================================


@router.get(
    "/{application_id}",
    response_model=AdminApplicationResponse,
    summary="Get Application Details",
)
async def get_application_detail(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> AdminApplicationResponse:
    try:
        application = await service.get_application(db, application_id, reviewer.as_actor())
        logger.info(f"Reviewer {reviewer.id} viewed application {application_id}")
        return AdminApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)


@router.post(
    "/{application_id}/start-review",
    response_model=AdminApplicationResponse,
    summary="Start Review",
    responses={
        409: {"description": "Not submitted, or modified concurrently"},
    },
)
async def start_review(
    application_id: UUID,
    data: TransitionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> AdminApplicationResponse:
    """Move a SUBMITTED application to UNDER_REVIEW."""
    try:
        application = await service.start_review(
            db,
            application_id,
            reviewer.as_actor(),
            expected_version=data.expected_version if data else None,
        )
        return AdminApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"starting review of {application_id}") from e


@router.put(
    "/{application_id}/documents/{document_type}",
    response_model=DocumentStatusResponse,
    summary="Set Document Status",
    responses={
        404: {"description": "Application or document not found"},
        409: {"description": "Not in review, or modified concurrently"},
    },
)
async def set_document_status(
    application_id: UUID,
    document_type: str,
    data: SetDocumentStatusRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> DocumentStatusResponse:
    """
    Approve or reject a single document.

    The response carries the recomputed document counts and overall
    document status.
    """
    try:
        application = await service.set_document_status(
            db,
            application_id,
            reviewer.as_actor(),
            document_type=document_type,
            status=data.status,
            remarks=data.remarks,
            expected_version=data.expected_version,
        )
        review_info = ledger.load_review_info(application)
        return DocumentStatusResponse(
            application_id=application.id,
            document=ledger.find_document(ledger.load_documents(application), document_type),
            document_counts=application.document_counts,
            overall_document_status=review_info.overall_document_status,
            version_id=application.version_id,
        )
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"setting document status on {application_id}") from e


@router.put(
    "/{application_id}/sections/{section}",
    response_model=AdminApplicationResponse,
    summary="Set Section Verification",
)
async def set_section_verification(
    application_id: UUID,
    section: str,
    data: SectionVerificationRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> AdminApplicationResponse:
    """Sections: personal_details, academic_details, guardian_details, financial_details."""
    try:
        application = await service.set_section_verification(
            db,
            application_id,
            reviewer.as_actor(),
            section=section,
            verified=data.verified,
            expected_version=data.expected_version,
        )
        return AdminApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"verifying section {section} on {application_id}") from e


# ============================================
# Decision Endpoints
# ============================================


@router.post(
    "/{application_id}/approve",
    response_model=AdminApplicationResponse,
    summary="Approve Application",
    responses={
        409: {
            "description": (
                "Not under review, required documents not approved, "
                "or modified concurrently"
            )
        },
    },
)
async def approve_application(
    application_id: UUID,
    data: TransitionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> AdminApplicationResponse:
    """
    Approve an application under review.

    Every required document must be attached and APPROVED. The 409 detail
    for DOCUMENTS_NOT_VERIFIED lists the blocking documents.
    """
    try:
        application = await service.approve_application(
            db,
            application_id,
            reviewer.as_actor(),
            expected_version=data.expected_version if data else None,
        )
        return AdminApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"approving application {application_id}") from e


@router.post(
    "/{application_id}/reject",
    response_model=AdminApplicationResponse,
    summary="Reject Application",
    responses={
        400: {"description": "Unknown rejection reason"},
        409: {"description": "Not under review, or modified concurrently"},
    },
)
async def reject_application(
    application_id: UUID,
    data: RejectRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> AdminApplicationResponse:
    """
    Reject an application under review.

    ``reason_code`` must be an id from GET /admin/applications/rejection-reasons.
    ``details`` items may be structured objects or plain strings.
    """
    try:
        application = await service.reject_application(
            db,
            application_id,
            reviewer.as_actor(),
            reason_code=data.reason_code,
            message=data.message,
            details=data.details,
            expected_version=data.expected_version,
        )
        return AdminApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"rejecting application {application_id}") from e


@router.post(
    "/{application_id}/cancel",
    response_model=AdminApplicationResponse,
    summary="Cancel Application",
    responses={
        409: {"description": "Already decided or cancelled, or modified concurrently"},
    },
)
async def cancel_application(
    application_id: UUID,
    data: CancelRequest | None = None,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> AdminApplicationResponse:
    """Cancel a draft, submitted or under review application on the applicant's behalf."""
    try:
        application = await service.cancel_application(
            db,
            application_id,
            reviewer.as_actor(),
            reason=data.reason if data else None,
            expected_version=data.expected_version if data else None,
        )
        return AdminApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"cancelling application {application_id}") from e


@router.post(
    "/{application_id}/notes",
    response_model=AddNoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Admin Note",
)
async def add_note(
    application_id: UUID,
    data: AddNoteRequest,
    db: AsyncSession = Depends(get_db),
    reviewer: CurrentUser = Depends(get_current_reviewer),
) -> AddNoteResponse:
    try:
        note = await service.add_admin_note(db, application_id, reviewer.as_actor(), data.note)
        return AddNoteResponse(application_id=application_id, note=note)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"adding note to {application_id}") from e
