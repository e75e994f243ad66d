"""
Student Applications Module

Admission applications and their review workflow:
1. Applicant creates a draft, fills sections and attaches documents
2. Draft is submitted and gets an application number
3. Reviewers verify documents and sections, then approve or reject
4. Rejected applications can be corrected and resubmitted
5. Applicant notifications go through an outbox delivered by a background job

API Endpoints:
- /applications - Applicant endpoints (see router.py)
- /admin/applications - Reviewer endpoints (see admin_router.py)

Background Jobs (via APScheduler):
- deliver_pending_notifications: Sends outbox emails every
  NOTIFICATION_INTERVAL_SECONDS
"""

from .admin_router import router as admin_router
from .jobs import register_application_jobs
from .router import router

__all__ = ["router", "admin_router", "register_application_jobs"]
