"""
JWT token helpers.

Tokens are issued by the identity service; this API only verifies them.
``create_access_token`` exists for local tooling and tests.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from admissions.core.config import settings

logger = logging.getLogger(__name__)


def create_access_token(
    subject: str,
    claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a signed access token.

    Args:
        subject: Value of the ``sub`` claim (the account id)
        claims: Extra claims to embed (email, role, name)
        expires_delta: Token lifetime, defaults to the configured value

    Returns:
        Encoded JWT
    """
    expire = datetime.now(UTC) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {**(claims or {}), "sub": subject, "exp": expire, "type": "access"}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and verify a JWT.

    Returns:
        The token payload, or None if the signature, algorithm or expiry
        check fails.
    """
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None
