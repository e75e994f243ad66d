"""
Referral Codes Schemas
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReferralTarget(BaseModel):
    """The account a referral code attributes to."""

    code: str
    account_id: UUID
    role: str


class AssignCodeRequest(BaseModel):
    """Details the code is derived from."""

    display_name: str = Field(..., min_length=1, max_length=200)
    phone_number: str | None = Field(None, max_length=20)


class ReferralCodeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    account_id: UUID
    role: str
    created_at: datetime
