"""
Test configuration and fixtures for the TenantMate API.
Provides database fixtures, test data factories, and common test utilities.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "testing"
os.environ["RESEND_API_KEY"] = ""
os.environ["STRIPE_WEBHOOK_SECRET"] = ""
os.environ["DWOLLA_WEBHOOK_SECRET"] = ""
os.environ["DROPBOX_SIGN_API_KEY"] = ""

import pytest
import uuid
import json
from datetime import date, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Callable, Dict, List, Optional
import httpx
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db, enable_sqlite_foreign_keys
from app.models.user import User, UserRole
from app.models.property import Property, Unit, TenantUnit, PropertyType, UnitStatus, AssignmentStatus
from app.models.payment import (
    RentPayment,
    RentPaymentStatus,
    PaymentMethodKind,
    PropertyStripeAccount,
    ConnectAccountStatus,
    VerificationStatus,
)
from app.models.ach import PaymentProcessor, ProcessorStatus
from app.models.lease import Lease, LeaseStatus, SignatureStatus
from app.repositories.user import UserRepository
from app.repositories.property import PropertyRepository
from app.repositories.payment import RentPaymentRepository, StripeAccountRepository
from app.repositories.ach import PaymentProcessorRepository
from app.repositories.lease import LeaseRepository
from app.services.auth import AuthService
from app.services.property import PropertyService
from app.utils.dependencies import payment_rate_limiter


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_factory = async_sessionmaker(bind=test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database session override."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    payment_rate_limiter.reset()
    yield
    payment_rate_limiter.reset()


# Repository fixtures
@pytest.fixture
def user_repository(db_session: AsyncSession) -> UserRepository:
    return UserRepository(db_session)


@pytest.fixture
def property_repository(db_session: AsyncSession) -> PropertyRepository:
    return PropertyRepository(db_session)


@pytest.fixture
def payment_repository(db_session: AsyncSession) -> RentPaymentRepository:
    return RentPaymentRepository(db_session)


# Service fixtures
@pytest.fixture
def auth_service(db_session: AsyncSession) -> AuthService:
    return AuthService(db_session)


@pytest.fixture
def property_service(db_session: AsyncSession) -> PropertyService:
    return PropertyService(db_session)


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    def create_user_data(
        email: str = None,
        password: str = "testpassword123",
        first_name: str = "Test",
        last_name: str = "User",
        role: UserRole = UserRole.TENANT,
        is_active: bool = True
    ) -> dict:
        return {
            "email": email or f"test{uuid.uuid4().hex[:8]}@example.com",
            "password": password,
            "first_name": first_name,
            "last_name": last_name,
            "role": role,
            "is_active": is_active
        }

    @staticmethod
    async def create_user(
        user_repo: UserRepository,
        email: str = None,
        password: str = "testpassword123",
        first_name: str = "Test",
        last_name: str = "User",
        role: UserRole = UserRole.TENANT,
        is_active: bool = True
    ) -> User:
        user_data = UserFactory.create_user_data(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=is_active
        )
        return await user_repo.create_user(user_data)


class PropertyFactory:
    """Factory for properties, units and tenant assignments."""

    @staticmethod
    async def create_property(
        property_repo: PropertyRepository,
        manager_id: uuid.UUID,
        name: str = "Maple Court",
        address: str = "12 Maple St",
        city: str = "Austin",
        state: str = "TX",
        zip_code: str = "73301",
        property_type: PropertyType = PropertyType.APARTMENT
    ) -> Property:
        return await property_repo.create({
            "name": name,
            "address": address,
            "city": city,
            "state": state,
            "zip_code": zip_code,
            "property_type": property_type,
            "created_by": manager_id,
            "property_manager_id": manager_id,
        })

    @staticmethod
    async def create_unit(
        property_repo: PropertyRepository,
        property_id: uuid.UUID,
        unit_number: str = "1A",
        rent_amount: Decimal = Decimal("1500.00"),
        status: UnitStatus = UnitStatus.AVAILABLE
    ) -> Unit:
        return await property_repo.create_unit({
            "property_id": property_id,
            "unit_number": unit_number,
            "bedrooms": 2,
            "bathrooms": Decimal("1"),
            "rent_amount": rent_amount,
            "status": status,
        })

    @staticmethod
    async def assign_tenant(
        property_repo: PropertyRepository,
        tenant_id: uuid.UUID,
        unit_id: uuid.UUID,
        rent_amount: Decimal = Decimal("1500.00"),
        lease_start: Optional[date] = None
    ) -> TenantUnit:
        return await property_repo.create_assignment({
            "tenant_id": tenant_id,
            "unit_id": unit_id,
            "lease_start": lease_start or date.today() - timedelta(days=30),
            "rent_amount": rent_amount,
            "status": AssignmentStatus.ACTIVE,
        })


class PaymentFactory:
    """Factory for rent payments and provider accounts."""

    @staticmethod
    async def create_rent_payment(
        payment_repo: RentPaymentRepository,
        tenant_id: uuid.UUID,
        unit_id: uuid.UUID,
        amount: Decimal = Decimal("1500.00"),
        status: RentPaymentStatus = RentPaymentStatus.PENDING,
        payment_method: PaymentMethodKind = PaymentMethodKind.CARD
    ) -> RentPayment:
        return await payment_repo.create({
            "tenant_id": tenant_id,
            "unit_id": unit_id,
            "amount": amount,
            "due_date": date.today(),
            "status": status,
            "payment_method": payment_method,
            "invoice_number": f"INV-{uuid.uuid4().hex[:10].upper()}",
        })

    @staticmethod
    async def link_stripe_account(
        db_session: AsyncSession,
        property_id: uuid.UUID,
        stripe_account_id: str = "acct_test123",
        verified: bool = True
    ) -> PropertyStripeAccount:
        return await StripeAccountRepository(db_session).create({
            "property_id": property_id,
            "stripe_account_id": stripe_account_id,
            "is_active": True,
            "account_status": ConnectAccountStatus.COMPLETED if verified else ConnectAccountStatus.PENDING,
            "verification_status": VerificationStatus.VERIFIED if verified else VerificationStatus.PENDING,
        })

    @staticmethod
    async def create_processor(
        db_session: AsyncSession,
        user_id: uuid.UUID,
        customer_id: str = None,
        with_funding_source: bool = True
    ) -> PaymentProcessor:
        customer_id = customer_id or f"cust-{uuid.uuid4().hex[:8]}"
        funding_source_id = f"fs-{uuid.uuid4().hex[:8]}"
        return await PaymentProcessorRepository(db_session).create({
            "user_id": user_id,
            "customer_id": customer_id,
            "customer_url": f"https://api-sandbox.dwolla.com/customers/{customer_id}",
            "funding_source_id": funding_source_id if with_funding_source else None,
            "funding_source_url": (
                f"https://api-sandbox.dwolla.com/funding-sources/{funding_source_id}"
                if with_funding_source else None
            ),
            "verification_status": "verified",
            "status": ProcessorStatus.ACTIVE if with_funding_source else ProcessorStatus.PENDING,
        })


class LeaseFactory:

    @staticmethod
    async def create_lease(
        db_session: AsyncSession,
        property_id: uuid.UUID,
        unit_id: uuid.UUID,
        tenant_id: uuid.UUID,
        signature_request_id: Optional[str] = None,
        signature_status: SignatureStatus = SignatureStatus.NOT_SENT
    ) -> Lease:
        return await LeaseRepository(db_session).create({
            "property_id": property_id,
            "unit_id": unit_id,
            "tenant_id": tenant_id,
            "start_date": date.today(),
            "end_date": date.today() + timedelta(days=365),
            "rent_amount": Decimal("1500.00"),
            "status": LeaseStatus.PENDING if signature_request_id else LeaseStatus.DRAFT,
            "signature_status": signature_status,
            "signature_request_id": signature_request_id,
        })


def auth_headers(auth_service: AuthService, user: User) -> Dict[str, str]:
    """Bearer header for a user without going through the login endpoint."""
    access_token, _ = auth_service.create_tokens(user)
    return {"Authorization": f"Bearer {access_token}"}


def mock_transport(handler: Callable[[httpx.Request], httpx.Response], calls: Optional[List[httpx.Request]] = None):
    """httpx.MockTransport that also records every request it sees."""
    def _handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return handler(request)
    return httpx.MockTransport(_handler)


def json_response(status_code: int, body: dict, headers: Optional[dict] = None) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body).encode(), headers={
        "Content-Type": "application/json",
        **(headers or {})
    })


# Common test fixtures
@pytest.fixture
async def test_manager(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="manager@test.com",
        first_name="Morgan",
        last_name="Manager",
        role=UserRole.PROPERTY_MANAGER
    )


@pytest.fixture
async def other_manager(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="other.manager@test.com",
        first_name="Riley",
        last_name="Other",
        role=UserRole.PROPERTY_MANAGER
    )


@pytest.fixture
async def test_tenant(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="tenant@test.com",
        first_name="Taylor",
        last_name="Tenant",
        role=UserRole.TENANT
    )


@pytest.fixture
async def test_admin(user_repository: UserRepository) -> User:
    return await UserFactory.create_user(
        user_repository,
        email="admin@test.com",
        first_name="Alex",
        last_name="Admin",
        role=UserRole.ADMIN
    )


@pytest.fixture
async def test_property(property_repository: PropertyRepository, test_manager: User) -> Property:
    return await PropertyFactory.create_property(property_repository, manager_id=test_manager.id)


@pytest.fixture
async def test_unit(property_repository: PropertyRepository, test_property: Property) -> Unit:
    return await PropertyFactory.create_unit(property_repository, test_property.id)


@pytest.fixture
async def test_assignment(
    property_repository: PropertyRepository,
    test_tenant: User,
    test_unit: Unit
) -> TenantUnit:
    return await PropertyFactory.assign_tenant(property_repository, test_tenant.id, test_unit.id)


@pytest.fixture
def manager_headers(auth_service: AuthService, test_manager: User) -> Dict[str, str]:
    return auth_headers(auth_service, test_manager)


@pytest.fixture
def tenant_headers(auth_service: AuthService, test_tenant: User) -> Dict[str, str]:
    return auth_headers(auth_service, test_tenant)
