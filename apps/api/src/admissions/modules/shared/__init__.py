"""
Shared module - Base model and actor types used across modules.
"""

from admissions.modules.shared.actors import REVIEWER_ROLES, Actor, ActorRole
from admissions.modules.shared.models import BaseModel

__all__ = ["BaseModel", "Actor", "ActorRole", "REVIEWER_ROLES"]
