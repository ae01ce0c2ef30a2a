"""
Database models for the TenantMate API.
Importing this package registers every table on Base.metadata.
"""

from app.models.user import User, UserRole, OnboardingStatus
from app.models.property import Property, PropertyType, Unit, UnitStatus, TenantUnit, AssignmentStatus
from app.models.lease import Lease, LeaseStatus, SignatureStatus
from app.models.applicant import (
    Applicant,
    ApplicantStatus,
    ScreeningReport,
    ScreeningType,
    ScreeningRecommendation,
)
from app.models.inspection import Inspection, InspectionItem, InspectionType, InspectionStatus, ConditionRating
from app.models.expense import Expense, ExpenseCategory
from app.models.messaging import Conversation, Message, MessageType
from app.models.maintenance import MaintenanceRequest, MaintenanceStatus, MaintenancePriority
from app.models.notification import Notification
from app.models.payment import (
    RentPayment,
    RentPaymentStatus,
    PaymentMethodKind,
    PaymentTransaction,
    TransactionStatus,
    PaymentMethod,
    StoredMethodType,
    StoredMethodStatus,
    PaymentReceipt,
    PaymentAuditLog,
    PaymentConfig,
    PropertyStripeAccount,
    ConnectAccountStatus,
    VerificationStatus,
)
from app.models.ach import PaymentProcessor, ProcessorStatus, DwollaTransfer, TransferStatus
from app.models.webhook import WebhookEvent, WebhookProvider

__all__ = [
    "User",
    "UserRole",
    "OnboardingStatus",
    "Property",
    "PropertyType",
    "Unit",
    "UnitStatus",
    "TenantUnit",
    "AssignmentStatus",
    "Lease",
    "LeaseStatus",
    "SignatureStatus",
    "Applicant",
    "ApplicantStatus",
    "ScreeningReport",
    "ScreeningType",
    "ScreeningRecommendation",
    "Inspection",
    "InspectionItem",
    "InspectionType",
    "InspectionStatus",
    "ConditionRating",
    "Expense",
    "ExpenseCategory",
    "Conversation",
    "Message",
    "MessageType",
    "MaintenanceRequest",
    "MaintenanceStatus",
    "MaintenancePriority",
    "Notification",
    "RentPayment",
    "RentPaymentStatus",
    "PaymentMethodKind",
    "PaymentTransaction",
    "TransactionStatus",
    "PaymentMethod",
    "StoredMethodType",
    "StoredMethodStatus",
    "PaymentReceipt",
    "PaymentAuditLog",
    "PaymentConfig",
    "PropertyStripeAccount",
    "ConnectAccountStatus",
    "VerificationStatus",
    "PaymentProcessor",
    "ProcessorStatus",
    "DwollaTransfer",
    "TransferStatus",
    "WebhookEvent",
    "WebhookProvider",
]
