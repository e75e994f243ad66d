"""
Student Applications Router

Applicant facing endpoints. All require an authenticated account; the
service layer decides whether that account may act on a given application.

Endpoints:
- GET /applications/rejection-reasons - Rejection catalog
- GET /applications/document-types - Configured document types
- GET /applications - My applications
- GET /applications/submitted-by-me - Applications I submitted
- POST /applications - Create a draft
- GET /applications/{id} - Get an application
- PATCH /applications/{id} - Update draft sections
- POST /applications/{id}/documents - Attach a document
- POST /applications/{id}/submit - Submit for review
- POST /applications/{id}/resubmit - Resubmit after rejection
- POST /applications/{id}/cancel - Cancel
- GET /applications/{id}/rejection-details - Why it was rejected
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import CurrentUser, get_current_user
from admissions.core.database import get_db
from admissions.core.exceptions import ServiceError, handle_service_error
from admissions.modules.applications import service
from admissions.modules.applications.document_types import DOCUMENT_TYPES
from admissions.modules.applications.schemas import (
    ApplicationCreate,
    ApplicationDocument,
    ApplicationListItem,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationUpdate,
    AttachDocumentRequest,
    CancelRequest,
    DocumentTypeResponse,
    RejectionCatalogResponse,
    RejectionCategoryResponse,
    RejectionDetailsResponse,
    RejectionReasonResponse,
    ResubmitRequest,
    TransitionRequest,
)
from admissions.modules.rejection_catalog import CATALOG_VERSION, list_categories

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
# Reference Data
# ============================================


def rejection_catalog_response() -> RejectionCatalogResponse:
    return RejectionCatalogResponse(
        version=CATALOG_VERSION,
        categories=[
            RejectionCategoryResponse(
                key=category.key,
                title=category.title,
                reasons=[
                    RejectionReasonResponse(
                        id=reason.id,
                        title=reason.title,
                        description=reason.description,
                        examples=list(reason.examples),
                    )
                    for reason in category.reasons
                ],
            )
            for category in list_categories()
        ],
    )


@router.get(
    "/rejection-reasons",
    response_model=RejectionCatalogResponse,
    summary="Rejection Catalog",
)
async def get_rejection_reasons() -> RejectionCatalogResponse:
    """The categorized rejection reasons reviewers choose from."""
    return rejection_catalog_response()


@router.get(
    "/document-types",
    response_model=list[DocumentTypeResponse],
    summary="Document Types",
)
async def get_document_types() -> list[DocumentTypeResponse]:
    return [
        DocumentTypeResponse(
            id=doc_type.id,
            name=doc_type.name,
            category=doc_type.category,
            required=doc_type.required,
        )
        for doc_type in DOCUMENT_TYPES
    ]


# ============================================
# Listing Endpoints
# ============================================


def _list_response(
    applications: list, total: int, skip: int, limit: int
) -> ApplicationListResponse:
    return ApplicationListResponse(
        items=[ApplicationListItem.model_validate(app) for app in applications],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="My Applications",
)
async def list_my_applications(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationListResponse:
    """Applications owned by the caller, newest first."""
    try:
        applications, total = await service.list_my_applications(
            db, user.as_actor(), skip=skip, limit=limit
        )
        return _list_response(applications, total, skip, limit)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, "listing own applications") from e


@router.get(
    "/submitted-by-me",
    response_model=ApplicationListResponse,
    summary="Applications Submitted By Me",
)
async def list_submitted_by_me(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationListResponse:
    """
    Applications the caller submitted, newest first.

    Includes applications an agent or staff member submitted on a
    student's behalf.
    """
    try:
        applications, total = await service.list_submitted_by_me(
            db, user.as_actor(), skip=skip, limit=limit
        )
        return _list_response(applications, total, skip, limit)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, "listing submitted applications") from e


# ============================================
# Draft Endpoints
# ============================================


@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Draft Application",
    responses={
        201: {"description": "Draft created"},
    },
)
async def create_application(
    data: ApplicationCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationResponse:
    """
    Create a draft owned by the caller.

    Sections may be partially filled. A ``referral_code`` that resolves to a
    bound code attributes the draft; an unknown one is ignored.
    """
    try:
        application = await service.create_application(db, user.as_actor(), data)
        return ApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, "creating application") from e


@router.get(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Get Application",
)
async def get_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationResponse:
    try:
        application = await service.get_application(db, application_id, user.as_actor())
        return ApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"getting application {application_id}") from e


@router.patch(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Update Draft",
    responses={
        403: {"description": "Not the owner"},
        409: {"description": "Not editable, or modified concurrently"},
    },
)
async def update_application(
    application_id: UUID,
    data: ApplicationUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationResponse:
    """Replace the sections present in the body. Allowed in DRAFT and REJECTED."""
    try:
        application = await service.update_draft(db, application_id, user.as_actor(), data)
        return ApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"updating application {application_id}") from e


@router.post(
    "/{application_id}/documents",
    response_model=ApplicationDocument,
    status_code=status.HTTP_201_CREATED,
    summary="Attach Document",
    responses={
        400: {"description": "Unknown document type"},
        409: {"description": "Already attached, not editable, or modified concurrently"},
    },
)
async def attach_document(
    application_id: UUID,
    data: AttachDocumentRequest,
    expected_version: int | None = Query(None, description="Version the caller last read"),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationDocument:
    """
    Attach a stored file to the application.

    Set ``replace`` to swap an existing document of the same type; the
    replacement starts over as PENDING.
    """
    try:
        return await service.attach_document(
            db, application_id, user.as_actor(), data, expected_version=expected_version
        )
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"attaching document to {application_id}") from e


# ============================================
# Transition Endpoints
# ============================================


@router.post(
    "/{application_id}/submit",
    response_model=ApplicationResponse,
    summary="Submit Application",
    responses={
        409: {"description": "Not a draft, or modified concurrently"},
        422: {"description": "Required sections or documents missing"},
    },
)
async def submit_application(
    application_id: UUID,
    data: TransitionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationResponse:
    """Submit a complete draft for review. Assigns the application number."""
    try:
        application = await service.submit_application(
            db,
            application_id,
            user.as_actor(),
            expected_version=data.expected_version if data else None,
        )
        return ApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"submitting application {application_id}") from e


@router.post(
    "/{application_id}/resubmit",
    response_model=ApplicationResponse,
    summary="Resubmit Application",
    responses={
        403: {"description": "Not the owner"},
        409: {"description": "Not rejected, or modified concurrently"},
    },
)
async def resubmit_application(
    application_id: UUID,
    data: ResubmitRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationResponse:
    """Send a rejected application back for review after fixing it."""
    try:
        application = await service.resubmit_application(
            db,
            application_id,
            user.as_actor(),
            reason=data.reason if data else None,
            expected_version=data.expected_version if data else None,
        )
        return ApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"resubmitting application {application_id}") from e


@router.post(
    "/{application_id}/cancel",
    response_model=ApplicationResponse,
    summary="Cancel Application",
)
async def cancel_application(
    application_id: UUID,
    data: CancelRequest | None = None,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ApplicationResponse:
    try:
        application = await service.cancel_application(
            db,
            application_id,
            user.as_actor(),
            reason=data.reason if data else None,
            expected_version=data.expected_version if data else None,
        )
        return ApplicationResponse.model_validate(application)
    except ServiceError as e:
        handle_service_error(e)
    except Exception as e:
        raise _internal_error(e, f"cancelling application {application_id}") from e


@router.get(
    "/{application_id}/rejection-details",
    response_model=RejectionDetailsResponse,
    summary="Get Rejection Details",
    responses={
        409: {"description": "Application is not rejected"},
    },
)
async def get_rejection_details(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> RejectionDetailsResponse:
    """Reason, message, structured feedback and reviewer notes for a rejection."""
    try:
        return await service.get_rejection_details(db, application_id, user.as_actor())
    except ServiceError as e:
        handle_service_error(e)
