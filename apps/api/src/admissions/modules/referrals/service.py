"""
Referral Attribution Service

Generates, binds and validates referral codes.

Binding relies on the unique constraints of ``referral_codes``: the INSERT
either commits or fails with an IntegrityError, so two accounts racing for
the same code can never both win, whatever the number of API workers.
Generation walks the fixed candidate sequence from ``codes.py`` and binds
each candidate in turn until one succeeds.

Validation is a pure read, cached in Redis. Bindings are never reassigned,
so a cached entry cannot go stale.
"""

import json
import logging
import time
from datetime import UTC, datetime
from uuid import UUID

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from admissions.core.config import settings
from admissions.core.exceptions import InvariantFailure, ServiceError
from admissions.core.redis import get_redis
from admissions.modules.referrals import repository
from admissions.modules.referrals.codes import (
    MAX_DETERMINISTIC_VARIATIONS,
    MAX_FALLBACK_ATTEMPTS,
    candidate_codes,
    is_well_formed,
    normalize_code,
)
from admissions.modules.referrals.models import ReferralCode
from admissions.modules.referrals.schemas import ReferralTarget

logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "referral:code:"


class CodeAlreadyInUseError(ServiceError):
    """Raised when a code is already bound to a different account."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(
            message=f"Referral code '{code}' is already in use",
            error_code="CODE_ALREADY_IN_USE",
            status_code=409,
        )


class ReferralCodeAlreadyAssignedError(ServiceError):
    """Raised when an account that already has a code tries to bind another."""

    def __init__(self, account_id: UUID, existing_code: str):
        self.existing_code = existing_code
        super().__init__(
            message=f"Account {account_id} already has referral code '{existing_code}'",
            error_code="REFERRAL_CODE_ALREADY_ASSIGNED",
            status_code=409,
        )


class ReferralCodeNotFoundError(ServiceError):
    """Raised when a referral code is not bound to any account."""

    def __init__(self, code: str):
        super().__init__(
            message=f"Referral code '{code}' not found",
            error_code="REFERRAL_CODE_NOT_FOUND",
            status_code=404,
        )


class CodeGenerationExhaustedError(InvariantFailure):
    """Raised when every candidate code, fallbacks included, was taken."""

    def __init__(self, account_id: UUID, attempts: int):
        super().__init__(
            message=f"No free referral code for account {account_id} after {attempts} attempts",
            error_code="CODE_GENERATION_EXHAUSTED",
            status_code=503,
        )


def _role_value(role) -> str:
    return getattr(role, "value", role)


async def bind(db: AsyncSession, account_id: UUID, code: str, role) -> ReferralCode:
    """
    Bind a code to an account, atomically.

    Binding the code an account already holds is a no-op that returns the
    existing binding.

    Args:
        db: Database session
        account_id: Account to bind
        code: Code to bind
        role: Account role, stored with the binding

    Returns:
        The binding

    Raises:
        CodeAlreadyInUseError: If another account holds the code
        ReferralCodeAlreadyAssignedError: If the account holds a different code
    """
    code = normalize_code(code)

    try:
        record = await repository.insert(db, account_id, code, _role_value(role))
    except IntegrityError:
        await db.rollback()

        holder = await repository.get_by_code(db, code)
        if holder is not None:
            if holder.account_id == account_id:
                return holder
            logger.info(f"Referral code {code} already bound to another account")
            raise CodeAlreadyInUseError(code) from None

        current = await repository.get_by_account(db, account_id)
        if current is not None:
            raise ReferralCodeAlreadyAssignedError(account_id, current.code) from None

        raise

    logger.info(f"Bound referral code {code} to account {account_id}")
    return record


async def assign_code(
    db: AsyncSession,
    account_id: UUID,
    display_name: str | None,
    phone_number: str | None,
    role,
    year: int | None = None,
    timestamp_ms: int | None = None,
) -> ReferralCode:
    """
    Generate and bind a referral code for an account.

    Returns the account's existing code if it already has one.

    Args:
        db: Database session
        account_id: Account to assign a code to
        display_name: Source of the three letter prefix
        phone_number: Source of the two digit phone part
        role: Account role, source of the role tag
        year: Year suffix source, defaults to the current year
        timestamp_ms: Fallback seed, defaults to the current time

    Returns:
        The binding

    Raises:
        CodeGenerationExhaustedError: If every candidate is taken
    """
    existing = await repository.get_by_account(db, account_id)
    if existing is not None:
        return existing

    if year is None:
        year = datetime.now(UTC).year
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    attempts = 0
    for candidate in candidate_codes(display_name, phone_number, role, year, timestamp_ms):
        attempts += 1
        try:
            return await bind(db, account_id, candidate, role)
        except CodeAlreadyInUseError:
            continue
        except ReferralCodeAlreadyAssignedError:
            # Bound concurrently by another request for the same account
            return await repository.get_by_account(db, account_id)

    logger.error(
        f"Referral code space exhausted for account {account_id} "
        f"(name={display_name!r}, role={_role_value(role)}, year={year}): "
        f"{attempts} candidates tried, budget "
        f"1 + {MAX_DETERMINISTIC_VARIATIONS} + {MAX_FALLBACK_ATTEMPTS}"
    )
    raise CodeGenerationExhaustedError(account_id, attempts)


async def validate(db: AsyncSession, code: str) -> ReferralTarget:
    """
    Resolve a referral code to its account.

    Malformed codes are rejected without a cache or database lookup.

    Raises:
        ReferralCodeNotFoundError: If no account holds the code
    """
    code = normalize_code(code)
    if not is_well_formed(code):
        raise ReferralCodeNotFoundError(code)

    redis = await get_redis()
    cache_key = f"{CACHE_KEY_PREFIX}{code}"

    if redis is not None:
        try:
            cached = await redis.get(cache_key)
            if cached:
                return ReferralTarget.model_validate(json.loads(cached))
        except RedisError as e:
            logger.warning(f"Referral cache read failed, using database: {e}")

    record = await repository.get_by_code(db, code)
    if record is None:
        raise ReferralCodeNotFoundError(code)

    target = ReferralTarget(code=record.code, account_id=record.account_id, role=record.role)

    if redis is not None:
        try:
            await redis.set(
                cache_key, target.model_dump_json(), ex=settings.referral_cache_ttl_seconds
            )
        except RedisError as e:
            logger.warning(f"Referral cache write failed: {e}")

    return target
