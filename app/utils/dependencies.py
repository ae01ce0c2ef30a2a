"""
FastAPI dependency injection utilities for authentication, services and provider clients.
Provides reusable dependencies for route protection and user extraction.
"""

from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from app.clients.dropbox_sign import DropboxSignClient
from app.clients.dwolla import DwollaClient
from app.clients.stripe import StripeClient
from app.config import settings
from app.database import get_db
from app.models.user import User, UserRole
from app.services.ach import ACHService, DwollaWebhookService
from app.services.applicant import ApplicantService
from app.services.auth import AuthService
from app.services.dashboard import DashboardService
from app.services.email import EmailService
from app.services.esignature import ESignatureService
from app.services.expense import ExpenseService
from app.services.inspection import InspectionService
from app.services.late_fee import LateFeeService
from app.services.lease import LeaseService
from app.services.maintenance import MaintenanceService
from app.services.messaging import MessagingService
from app.services.notification import NotificationService
from app.services.payment import PaymentService
from app.services.property import PropertyService
from app.services.screening import ScreeningService
from app.services.stripe_connect import StripeConnectService
from app.services.stripe_webhook import StripeWebhookService
from app.utils.exceptions import (
    UnauthorizedError,
    InvalidTokenError,
    TokenExpiredError,
    InactiveUserError,
    InsufficientPermissionsError,
    RateLimitExceededError
)
from app.utils.security import RateLimiter


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)

payment_rate_limiter = RateLimiter(
    max_requests=settings.payment_rate_limit_requests,
    window_seconds=settings.payment_rate_limit_window
)


# Provider clients

def get_stripe_client() -> StripeClient:
    return StripeClient()


def get_dwolla_client() -> DwollaClient:
    return DwollaClient()


def get_dropbox_sign_client() -> DropboxSignClient:
    return DropboxSignClient()


def get_email_service() -> EmailService:
    return EmailService()


# Services

async def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    """
    Get authentication service instance.

    Args:
        db: Database session

    Returns:
        AuthService instance
    """
    return AuthService(db)


async def get_property_service(
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
) -> PropertyService:
    """
    Get property service instance.

    Args:
        db: Database session
        email_service: Outbound email sender

    Returns:
        PropertyService instance
    """
    return PropertyService(db, email_service=email_service)


async def get_lease_service(
    db: AsyncSession = Depends(get_db),
    property_service: PropertyService = Depends(get_property_service)
) -> LeaseService:
    return LeaseService(db, property_service=property_service)


async def get_late_fee_service(
    db: AsyncSession = Depends(get_db),
    property_service: PropertyService = Depends(get_property_service)
) -> LateFeeService:
    return LateFeeService(db, property_service=property_service)


async def get_applicant_service(
    db: AsyncSession = Depends(get_db),
    property_service: PropertyService = Depends(get_property_service),
    email_service: EmailService = Depends(get_email_service)
) -> ApplicantService:
    return ApplicantService(db, property_service=property_service, email_service=email_service)


async def get_screening_service(
    db: AsyncSession = Depends(get_db),
    applicant_service: ApplicantService = Depends(get_applicant_service)
) -> ScreeningService:
    return ScreeningService(db, applicant_service=applicant_service)


async def get_inspection_service(
    db: AsyncSession = Depends(get_db),
    property_service: PropertyService = Depends(get_property_service)
) -> InspectionService:
    return InspectionService(db, property_service=property_service)


async def get_expense_service(
    db: AsyncSession = Depends(get_db),
    property_service: PropertyService = Depends(get_property_service)
) -> ExpenseService:
    return ExpenseService(db, property_service=property_service)


async def get_messaging_service(db: AsyncSession = Depends(get_db)) -> MessagingService:
    return MessagingService(db)


async def get_maintenance_service(
    db: AsyncSession = Depends(get_db),
    property_service: PropertyService = Depends(get_property_service),
    email_service: EmailService = Depends(get_email_service)
) -> MaintenanceService:
    return MaintenanceService(db, property_service=property_service, email_service=email_service)


async def get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


async def get_payment_service(
    db: AsyncSession = Depends(get_db),
    stripe_client: StripeClient = Depends(get_stripe_client),
    property_service: PropertyService = Depends(get_property_service)
) -> PaymentService:
    return PaymentService(db, stripe_client=stripe_client, property_service=property_service)


async def get_stripe_connect_service(
    db: AsyncSession = Depends(get_db),
    stripe_client: StripeClient = Depends(get_stripe_client)
) -> StripeConnectService:
    return StripeConnectService(db, stripe_client=stripe_client)


async def get_stripe_webhook_service(
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service)
) -> StripeWebhookService:
    return StripeWebhookService(db, email_service=email_service)


async def get_ach_service(
    db: AsyncSession = Depends(get_db),
    dwolla_client: DwollaClient = Depends(get_dwolla_client)
) -> ACHService:
    return ACHService(db, dwolla_client=dwolla_client)


async def get_dwolla_webhook_service(
    db: AsyncSession = Depends(get_db),
    dwolla_client: DwollaClient = Depends(get_dwolla_client)
) -> DwollaWebhookService:
    return DwollaWebhookService(db, dwolla_client=dwolla_client)


async def get_esignature_service(
    db: AsyncSession = Depends(get_db),
    client: DropboxSignClient = Depends(get_dropbox_sign_client),
    property_service: PropertyService = Depends(get_property_service)
) -> ESignatureService:
    return ESignatureService(db, client=client, property_service=property_service)


async def get_dashboard_service(
    db: AsyncSession = Depends(get_db),
    property_service: PropertyService = Depends(get_property_service)
) -> DashboardService:
    return DashboardService(db, property_service=property_service)


# Authentication

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> User:
    """
    Get current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer credentials
        auth_service: Authentication service

    Returns:
        Current User object

    Raises:
        UnauthorizedError: If no token provided or token is invalid
        TokenExpiredError: If token is expired
        InactiveUserError: If user account is inactive
    """
    if not credentials:
        raise UnauthorizedError("Authentication token required")

    try:
        user = await auth_service.get_current_user(credentials.credentials)
        return user
    except (InvalidTokenError, TokenExpiredError, InactiveUserError):
        raise
    except Exception as e:
        raise UnauthorizedError(f"Authentication failed: {str(e)}")


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Get current active user (additional check for user status).

    Raises:
        InactiveUserError: If user account is inactive
    """
    if not current_user.is_active:
        raise InactiveUserError()

    return current_user


async def get_current_admin_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    if current_user.role != UserRole.ADMIN:
        raise InsufficientPermissionsError("access admin resources")

    return current_user


async def get_current_manager_user(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Get current user with property manager role (or admin).

    Raises:
        ForbiddenError: If user is a tenant
    """
    if current_user.role not in [UserRole.PROPERTY_MANAGER, UserRole.ADMIN]:
        raise InsufficientPermissionsError("access property manager resources")

    return current_user


def require_roles(*roles: UserRole):
    """
    Create a dependency that requires one of the given roles. Admins always pass.

    Args:
        roles: Accepted user roles

    Returns:
        Dependency function
    """
    async def role_dependency(
        current_user: User = Depends(get_current_active_user)
    ) -> User:
        if current_user.role not in roles and current_user.role != UserRole.ADMIN:
            allowed = ", ".join(role.value for role in roles)
            raise InsufficientPermissionsError(f"access {allowed} resources")
        return current_user

    return role_dependency


async def enforce_payment_rate_limit(
    current_user: User = Depends(get_current_active_user)
) -> User:
    """
    Per-user limit on payment-creating endpoints.

    Raises:
        RateLimitExceededError: With Retry-After when the window is exhausted
    """
    allowed, retry_after = payment_rate_limiter.check(str(current_user.id))
    if not allowed:
        raise RateLimitExceededError(retry_after)
    return current_user


def get_request_origin(request: Request) -> Optional[str]:
    return request.headers.get("origin")


def get_client_ip(request: Request) -> Optional[str]:
    """First address of X-Forwarded-For, else the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None
