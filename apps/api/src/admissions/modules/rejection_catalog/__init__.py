"""
Rejection Catalog Module

Static, versioned taxonomy of rejection reasons used by the applications
workflow when a reviewer rejects an application.
"""

from .catalog import (
    CATALOG_VERSION,
    RejectionCategory,
    RejectionReason,
    list_categories,
    resolve,
)

__all__ = [
    "CATALOG_VERSION",
    "RejectionCategory",
    "RejectionReason",
    "list_categories",
    "resolve",
]
