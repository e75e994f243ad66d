"""
Fixtures for student applications tests.
"""

from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from admissions.modules.applications import workflow
from admissions.modules.applications.document_types import REQUIRED_DOCUMENT_TYPES
from admissions.modules.applications.models import ApplicationStatus, DocumentStatus
from admissions.modules.applications.schemas import (
    ApplicationCreate,
    ContactDetails,
    CourseDetails,
    GuardianDetails,
    PersonalDetails,
)
from admissions.modules.shared import Actor, ActorRole

NOW = datetime(2024, 7, 1, 9, 30, tzinfo=UTC)


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def owner():
    return Actor(id=uuid4(), role=ActorRole.STUDENT)


@pytest.fixture
def other_student():
    return Actor(id=uuid4(), role=ActorRole.STUDENT)


@pytest.fixture
def agent():
    return Actor(id=uuid4(), role=ActorRole.AGENT)


@pytest.fixture
def reviewer():
    return Actor(id=uuid4(), role=ActorRole.STAFF)


@pytest.fixture
def second_reviewer():
    return Actor(id=uuid4(), role=ActorRole.SUPER_ADMIN)


@pytest.fixture
def complete_payload():
    """Every required section filled in."""
    return ApplicationCreate(
        personal_details=PersonalDetails(
            full_name="Priya Sharma",
            fathers_name="Rajesh Sharma",
            mothers_name="Sunita Sharma",
            date_of_birth=date(2006, 3, 14),
            gender="female",
        ),
        contact_details=ContactDetails(
            primary_phone="+919876543245",
            email="priya@example.com",
        ),
        course_details=CourseDetails(selected_course="B.Sc Nursing"),
        guardian_details=GuardianDetails(
            guardian_name="Rajesh Sharma",
            relationship="father",
            guardian_phone="+919876500000",
        ),
    )


@pytest.fixture
def draft_application(owner, complete_payload, now):
    """A complete draft with every required document attached."""
    application = workflow.new_application(owner, complete_payload, now)
    for document_type in sorted(REQUIRED_DOCUMENT_TYPES):
        workflow.attach_document(
            application,
            owner,
            document_type=document_type,
            file_ref=f"uploads/{application.id}/{document_type}.pdf",
            file_name=f"{document_type}.pdf",
            now=now,
        )
    # Assigned by the mapper on flush
    application.version_id = 1
    return application


@pytest.fixture
def advance(owner, reviewer, now):
    """
    Move an application forward to a target status through the real
    transition functions.
    """

    def _advance(application, target: ApplicationStatus):
        step = now

        def tick():
            nonlocal step
            step = step + timedelta(minutes=5)
            return step

        if target == ApplicationStatus.DRAFT:
            return application
        if target == ApplicationStatus.CANCELLED:
            workflow.cancel(application, owner, tick())
            return application

        workflow.submit(application, owner, tick(), application_code="APP24000001")
        if target == ApplicationStatus.SUBMITTED:
            return application

        workflow.begin_review(application, reviewer, tick())
        if target == ApplicationStatus.UNDER_REVIEW:
            return application

        if target == ApplicationStatus.APPROVED:
            for document_type in sorted(REQUIRED_DOCUMENT_TYPES):
                workflow.set_document_status(
                    application,
                    reviewer,
                    document_type=document_type,
                    status=DocumentStatus.APPROVED,
                    remarks=None,
                    now=tick(),
                )
            workflow.approve(application, reviewer, tick())
            return application

        if target == ApplicationStatus.REJECTED:
            workflow.reject(
                application,
                reviewer,
                reason_code="DOCUMENT_BLURRY",
                message="Income certificate is not readable",
                details=["Income certificate is blurry"],
                now=tick(),
            )
            return application

        raise ValueError(f"Unhandled target status: {target}")

    return _advance
