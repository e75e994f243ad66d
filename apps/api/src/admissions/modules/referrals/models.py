"""
Referral Code Models

One row per account that has a referral code. Both columns are unique, so
inserting a row is the atomic bind: the database rejects a second account
claiming a code and a second code for an account.
"""

import uuid

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from admissions.modules.shared import BaseModel


class ReferralCode(BaseModel):
    """A referral code bound to exactly one account."""

    __tablename__ = "referral_codes"

    code: Mapped[str] = mapped_column(String(16), nullable=False)
    account_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    __table_args__ = (
        UniqueConstraint("code", name="uq_referral_codes_code"),
        UniqueConstraint("account_id", name="uq_referral_codes_account_id"),
    )

    def __repr__(self) -> str:
        return f"<ReferralCode(code={self.code}, account_id={self.account_id})>"
