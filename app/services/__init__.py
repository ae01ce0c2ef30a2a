"""
Service layer for business logic implementation.
Contains services for authentication, properties, leases, applicants, payments,
messaging, maintenance and the payment/e-signature provider integrations.
"""

from .auth import AuthService
from .property import PropertyService
from .lease import LeaseService
from .payment import PaymentService
from .error_handler import ErrorHandlerService

__all__ = [
    "AuthService",
    "PropertyService",
    "LeaseService",
    "PaymentService",
    "ErrorHandlerService"
]
