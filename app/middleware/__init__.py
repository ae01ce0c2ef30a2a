"""
Middleware package for the TenantMate API.
Provides request validation and request logging.
"""

from .validation import ValidationMiddleware

__all__ = [
    "ValidationMiddleware",
]
