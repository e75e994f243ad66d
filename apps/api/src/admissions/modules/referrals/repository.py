"""
Referral Codes Repository
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.modules.referrals.models import ReferralCode


async def get_by_code(db: AsyncSession, code: str) -> ReferralCode | None:
    result = await db.execute(select(ReferralCode).where(ReferralCode.code == code))
    return result.scalar_one_or_none()


async def get_by_account(db: AsyncSession, account_id: UUID) -> ReferralCode | None:
    result = await db.execute(select(ReferralCode).where(ReferralCode.account_id == account_id))
    return result.scalar_one_or_none()


async def insert(db: AsyncSession, account_id: UUID, code: str, role: str) -> ReferralCode:
    """
    Insert and commit a binding.

    Raises:
        IntegrityError: If the code or the account is already bound.
            The session must be rolled back by the caller.
    """
    record = ReferralCode(account_id=account_id, code=code, role=role)
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record
