"""
Service Error Hierarchy

Two tiers of errors are raised by the service layer:

1. ``ServiceError`` - caller errors. Expected and recoverable by the caller
   (corrected input, or reload and retry). Routers surface the message and
   error code verbatim.

2. ``InvariantFailure`` - conditions that should not occur under correct
   usage (broken aggregate, lost optimistic-lock race, exhausted code space).
   They are logged with full context where raised and surfaced to callers as
   a generic failure. They are never swallowed.
"""

import logging
from typing import NoReturn

from fastapi import HTTPException

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class InvariantFailure(ServiceError):
    """Base exception for invariant failures."""

    # Message shown to callers instead of the internal one
    public_message = "An unexpected error occurred."

    def __init__(self, message: str, error_code: str, status_code: int = 500):
        super().__init__(message=message, error_code=error_code, status_code=status_code)


class ForbiddenError(ServiceError):
    """Raised when the actor may not perform the requested operation."""

    def __init__(self, message: str = "You are not allowed to perform this action"):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
        )


def handle_service_error(e: ServiceError) -> NoReturn:
    """
    Convert service errors to HTTPExceptions.

    Caller errors keep their message. Invariant failures are logged with the
    internal message and traceback, and the caller only sees the public one.
    """
    if isinstance(e, InvariantFailure):
        logger.error(f"{e.error_code}: {e.message}", exc_info=e)
        raise HTTPException(
            status_code=e.status_code,
            detail={
                "error": e.error_code if e.status_code < 500 else "INTERNAL_ERROR",
                "message": e.public_message,
            },
        ) from e

    raise HTTPException(
        status_code=e.status_code,
        detail={
            "error": e.error_code,
            "message": e.message,
        },
    ) from e
