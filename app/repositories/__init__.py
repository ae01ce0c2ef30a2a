"""
Repository layer for data access operations.
Each repository wraps one aggregate and commits its own writes.
"""

from app.repositories.base import BaseRepository
from app.repositories.user import UserRepository
from app.repositories.property import PropertyRepository, PropertySearchFilters
from app.repositories.lease import LeaseRepository
from app.repositories.applicant import ApplicantRepository
from app.repositories.inspection import InspectionRepository
from app.repositories.expense import ExpenseRepository, ExpenseFilters
from app.repositories.messaging import ConversationRepository
from app.repositories.maintenance import MaintenanceRepository
from app.repositories.notification import NotificationRepository
from app.repositories.payment import (
    RentPaymentRepository,
    PaymentMethodRepository,
    PaymentConfigRepository,
    StripeAccountRepository,
)
from app.repositories.ach import PaymentProcessorRepository, DwollaTransferRepository
from app.repositories.webhook import WebhookEventRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "PropertyRepository",
    "PropertySearchFilters",
    "LeaseRepository",
    "ApplicantRepository",
    "InspectionRepository",
    "ExpenseRepository",
    "ExpenseFilters",
    "ConversationRepository",
    "MaintenanceRepository",
    "NotificationRepository",
    "RentPaymentRepository",
    "PaymentMethodRepository",
    "PaymentConfigRepository",
    "StripeAccountRepository",
    "PaymentProcessorRepository",
    "DwollaTransferRepository",
    "WebhookEventRepository",
]
