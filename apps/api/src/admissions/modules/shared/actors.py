"""
Actors

The identity on whose behalf a service operation runs. Accounts themselves
live in the identity service; this API only sees the id and role carried in
the access token.
"""

import enum
from dataclasses import dataclass
from uuid import UUID


class ActorRole(str, enum.Enum):
    """Account roles known to the admissions workflow."""

    STUDENT = "student"
    AGENT = "agent"
    STAFF = "staff"
    SUPER_ADMIN = "super_admin"


# Roles allowed to review, approve and reject applications
REVIEWER_ROLES = frozenset({ActorRole.STAFF, ActorRole.SUPER_ADMIN})


@dataclass(frozen=True)
class Actor:
    """An authenticated account acting on an application."""

    id: UUID
    role: ActorRole

    @property
    def is_reviewer(self) -> bool:
        return self.role in REVIEWER_ROLES

    def __str__(self) -> str:
        return f"{self.role.value}:{self.id}"
