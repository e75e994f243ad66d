"""
Referral Codes Router

Endpoints:
- POST /referrals/me - Get or create the current account's referral code
- GET /referrals/{code} - Resolve a referral code to its account
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.auth import CurrentUser, get_current_user
from admissions.core.database import get_db
from admissions.core.exceptions import ServiceError, handle_service_error
from admissions.modules.referrals import service
from admissions.modules.referrals.schemas import (
    AssignCodeRequest,
    ReferralCodeResponse,
    ReferralTarget,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/me",
    response_model=ReferralCodeResponse,
    summary="Get or Create My Referral Code",
)
async def assign_my_code(
    data: AssignCodeRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ReferralCodeResponse:
    """
    Return the caller's referral code, generating and binding one on first use.

    The code is derived from the display name, phone number and role, so the
    same details always produce the same code unless it is already taken.
    """
    try:
        record = await service.assign_code(
            db,
            account_id=user.id,
            display_name=data.display_name,
            phone_number=data.phone_number,
            role=user.role,
        )
    except ServiceError as e:
        handle_service_error(e)

    return ReferralCodeResponse.model_validate(record)


@router.get(
    "/{code}",
    response_model=ReferralTarget,
    summary="Validate Referral Code",
)
async def validate_code(
    code: str,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> ReferralTarget:
    """Resolve a referral code to the account it attributes to."""
    try:
        return await service.validate(db, code)
    except ServiceError as e:
        handle_service_error(e)
