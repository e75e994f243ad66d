"""
Referral Codes Module

Short human-readable codes that attribute an application to the agent or
staff member who referred it.

API Endpoints:
- POST /referrals/me - Get or create the caller's code
- GET /referrals/{code} - Validate a code
"""

from .router import router

__all__ = ["router"]
