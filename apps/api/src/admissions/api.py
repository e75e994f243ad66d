from fastapi import APIRouter

from admissions.modules.applications import admin_router as admin_applications_router
from admissions.modules.applications import router as applications_router
from admissions.modules.referrals import router as referrals_router

api_router = APIRouter()

api_router.include_router(applications_router, prefix="/applications", tags=["Applications"])

api_router.include_router(
    admin_applications_router,
    prefix="/admin/applications",
    tags=["Admin - Applications"],
)

api_router.include_router(referrals_router, prefix="/referrals", tags=["Referrals"])
