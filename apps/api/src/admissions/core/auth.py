"""
Authentication dependencies.

Accounts live in the identity service. This API verifies the bearer token,
turns its claims into a CurrentUser and checks the reviewer role. Whether
an account may act on a particular application is decided by the service
layer, not here.

SECURITY NOTE: the fixed development tokens (dev-reviewer, dev-student)
are accepted only when PYTHON_ENV=development.
"""

import logging
import os
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from admissions.core.config import settings
from admissions.core.security import decode_token
from admissions.modules.shared import Actor, ActorRole

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI documentation
security = HTTPBearer(
    auto_error=True,
    description="JWT Bearer token for authentication",
)


@dataclass
class CurrentUser:
    """
    Represents an authenticated account.

    Populated from JWT claims after token validation.

    Attributes:
        id: Account's unique identifier (UUID)
        email: Account's email address
        role: One of student, agent, staff, super_admin
        name: Display name (optional)
    """

    id: UUID
    email: str
    role: ActorRole
    name: str | None = None

    def as_actor(self) -> Actor:
        return Actor(id=self.id, role=self.role)

    def __str__(self) -> str:
        return f"CurrentUser(id={self.id}, email={self.email}, role={self.role.value})"


def _is_dev_mode_safe() -> bool:
    """
    Development tokens are accepted only when the settings say development
    and the raw PYTHON_ENV variable is not production or staging.
    """
    env_var = os.getenv("PYTHON_ENV", "").lower()

    is_safe = (
        settings.is_development
        and not settings.is_production
        and env_var != "production"
        and env_var != "staging"
    )

    if is_safe:
        logger.warning(
            "SECURITY: Development auth mode is ENABLED. This MUST NOT be used in production!"
        )

    return is_safe


_DEVELOPMENT_MODE = _is_dev_mode_safe()

# Fixed development identities, keyed by test token
_DEV_USERS = {
    "dev-reviewer": CurrentUser(
        id=UUID("00000000-0000-0000-0000-000000000001"),
        email="reviewer@admissions.dev",
        role=ActorRole.STAFF,
        name="Development Reviewer",
    ),
    "dev-student": CurrentUser(
        id=UUID("00000000-0000-0000-0000-000000000002"),
        email="student@admissions.dev",
        role=ActorRole.STUDENT,
        name="Development Student",
    ),
}


def _unauthorized(error: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": error, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _validate_jwt_token(token: str) -> CurrentUser:
    """
    Validate JWT token and extract account claims.

    Args:
        token: JWT token string from Authorization header

    Returns:
        CurrentUser built from the token claims

    Raises:
        HTTPException 401: If token is invalid, expired, or has bad claims
    """
    if _DEVELOPMENT_MODE and token in _DEV_USERS:
        logger.debug("Development mode: Using test token")
        return _DEV_USERS[token]

    payload = decode_token(token)

    if payload is None:
        logger.warning("Invalid or expired JWT token")
        raise _unauthorized("INVALID_TOKEN", "Invalid or expired authentication token.")

    token_type = payload.get("type", "access")
    if token_type != "access":
        logger.warning(f"Invalid token type: {token_type}")
        raise _unauthorized("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    try:
        user_id_str = payload.get("sub")
        if not user_id_str:
            raise ValueError("Missing 'sub' claim in token")

        return CurrentUser(
            id=UUID(user_id_str),
            email=payload.get("email", ""),
            role=ActorRole(payload.get("role", "")),
            name=payload.get("name"),
        )
    except ValueError as e:
        logger.warning(f"Invalid token claims: {e}")
        raise _unauthorized(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """
    FastAPI dependency that validates the JWT token and returns the account.

    Usage:
        @router.get("/endpoint")
        async def endpoint(user: CurrentUser = Depends(get_current_user)):
            ...

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
    """
    user = await _validate_jwt_token(credentials.credentials)
    logger.debug(f"Authenticated user: {user.id} ({user.role.value})")
    return user


async def get_current_reviewer(
    user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """
    FastAPI dependency for reviewer endpoints.

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
        HTTPException 403: If the account is not staff or super_admin
    """
    if not user.as_actor().is_reviewer:
        logger.warning(
            f"Access denied: User {user.id} ({user.email}) has role '{user.role.value}', "
            "but a reviewer role is required"
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "REVIEWER_ACCESS_REQUIRED",
                "message": "Reviewer access is required for this endpoint.",
            },
        )

    return user


__all__ = [
    "CurrentUser",
    "get_current_user",
    "get_current_reviewer",
]
