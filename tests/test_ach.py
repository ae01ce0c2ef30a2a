"""
Tests for ACH rent payments through Dwolla and the Dwolla webhook handler.
"""

import json
import pytest
from decimal import Decimal

from app.clients.dwolla import DwollaClient, resource_id_from_url
from app.config import settings
from app.models.ach import ProcessorStatus, TransferStatus
from app.models.payment import RentPaymentStatus, PaymentMethodKind
from app.repositories.ach import DwollaTransferRepository
from app.repositories.payment import PaymentMethodRepository
from app.services.ach import ACHService, DwollaWebhookService, generate_correlation_id, LANDLORD_NOT_READY_MESSAGE
from app.utils.exceptions import (
    BadRequestError,
    ExternalServiceError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    WebhookSignatureError,
)
from app.utils.security import compute_hmac_sha256
from tests.conftest import PaymentFactory, mock_transport, json_response

DWOLLA_BASE = "https://api-sandbox.dwolla.com"


def dwolla_handler(request):
    """Minimal Dwolla API returning resource URLs in Location headers."""
    path = request.url.path
    if path == "/token":
        return json_response(200, {"access_token": "dwolla-token", "expires_in": 3600})
    if path == "/customers":
        return json_response(201, {}, {"Location": f"{DWOLLA_BASE}/customers/cust-abc"})
    if path.endswith("/funding-sources"):
        return json_response(201, {}, {"Location": f"{DWOLLA_BASE}/funding-sources/fs-new"})
    if path.endswith("/micro-deposits"):
        return json_response(201, {})
    if path == "/transfers":
        return json_response(201, {}, {"Location": f"{DWOLLA_BASE}/transfers/tr-123"})
    return json_response(404, {"code": "NotFound", "message": "Not found"})


@pytest.fixture
def dwolla_calls():
    return []


@pytest.fixture
def ach_service(db_session, dwolla_calls) -> ACHService:
    client = DwollaClient(key="key", secret="secret", base_url=DWOLLA_BASE,
                          transport=mock_transport(dwolla_handler, dwolla_calls))
    return ACHService(db_session, dwolla_client=client)


class TestHelpers:

    def test_resource_id_from_url(self):
        assert resource_id_from_url(f"{DWOLLA_BASE}/transfers/tr-123") == "tr-123"
        assert resource_id_from_url(f"{DWOLLA_BASE}/customers/abc/") == "abc"
        assert resource_id_from_url(None) is None

    def test_correlation_id(self):
        correlation_id = generate_correlation_id(now_ms=1700000000000)
        prefix, millis, suffix = correlation_id.split("-")
        assert (prefix, millis) == ("tm", "1700000000000")
        assert len(suffix) == 9


class TestDwollaClient:

    async def test_token_is_cached(self, dwolla_calls):
        client = DwollaClient(key="key", secret="secret", base_url=DWOLLA_BASE,
                              transport=mock_transport(dwolla_handler, dwolla_calls))

        await client.create_customer("Jo", "Tenant", "jo@test.com")
        await client.create_customer("Jo", "Tenant", "jo@test.com")

        assert [r.url.path for r in dwolla_calls].count("/token") == 1
        assert dwolla_calls[0].headers["Authorization"].startswith("Basic ")
        assert dwolla_calls[1].headers["Authorization"] == "Bearer dwolla-token"
        assert dwolla_calls[1].headers["Accept"] == "application/vnd.dwolla.v1.hal+json"

    async def test_transfer_sends_idempotency_key(self, dwolla_calls):
        client = DwollaClient(key="key", secret="secret", base_url=DWOLLA_BASE,
                              transport=mock_transport(dwolla_handler, dwolla_calls))

        url = await client.create_transfer("src", "dst", 1450, "tm-1-abc")

        assert url == f"{DWOLLA_BASE}/transfers/tr-123"
        request = dwolla_calls[-1]
        assert request.headers["Idempotency-Key"] == "tm-1-abc"
        body = json.loads(request.content)
        assert body["amount"] == {"currency": "USD", "value": "1450.00"}
        assert body["_links"]["destination"]["href"] == "dst"

    async def test_micro_deposit_refusal_is_not_fatal(self):
        client = DwollaClient(
            key="key", secret="secret", base_url=DWOLLA_BASE,
            transport=mock_transport(lambda request: (
                json_response(200, {"access_token": "t", "expires_in": 3600}) if request.url.path == "/token"
                else json_response(400, {"code": "InvalidResourceState", "message": "Already initiated"})
            ))
        )
        assert await client.initiate_micro_deposits(f"{DWOLLA_BASE}/funding-sources/fs-1") is False


class TestCustomerAndFundingSource:
    """Test Dwolla customer onboarding and bank accounts."""

    async def test_create_customer_is_idempotent(self, ach_service, dwolla_calls, test_tenant):
        processor, created = await ach_service.create_customer(test_tenant, ip_address="10.0.0.1")

        assert created is True
        assert processor.customer_id == "cust-abc"
        assert processor.status == ProcessorStatus.PENDING
        body = json.loads([r for r in dwolla_calls if r.url.path == "/customers"][0].content)
        assert body["email"] == test_tenant.email
        assert body["ipAddress"] == "10.0.0.1"

        again, created = await ach_service.create_customer(test_tenant)
        assert created is False
        assert again.id == processor.id
        assert len([r for r in dwolla_calls if r.url.path == "/customers"]) == 1

    async def test_sandbox_funding_source_is_verified(self, db_session, ach_service, dwolla_calls, test_tenant):
        await ach_service.create_customer(test_tenant)

        result = await ach_service.add_funding_source(test_tenant, "222222226", "123456789", "checking", "Chase")

        assert result["funding_source_id"] == "fs-new"
        assert result["name"] == "Chase ****6789"
        assert result["status"] == "verified"
        assert result["processor"].status == ProcessorStatus.ACTIVE
        assert result["processor"].can_transfer
        assert not [r for r in dwolla_calls if r.url.path.endswith("/micro-deposits")]

        method = await PaymentMethodRepository(db_session).get_by_provider_id("fs-new")
        assert method.last4 == "6789"

    async def test_production_starts_micro_deposits(self, monkeypatch, ach_service, dwolla_calls, test_tenant):
        monkeypatch.setattr(settings, "dwolla_environment", "production")
        await ach_service.create_customer(test_tenant)

        result = await ach_service.add_funding_source(test_tenant, "222222226", "123456789", "checking", "Chase")

        assert result["status"] == "pending_verification"
        assert result["processor"].status == ProcessorStatus.PENDING
        assert [r for r in dwolla_calls if r.url.path.endswith("/micro-deposits")]

    @pytest.mark.parametrize("routing,account", [
        ("12345678", "123456789"),
        ("12345678a", "123456789"),
        ("222222226", "123"),
        ("222222226", "1" * 18),
    ])
    async def test_rejects_bad_bank_numbers(self, ach_service, test_tenant, routing, account):
        with pytest.raises(ValidationError):
            await ach_service.add_funding_source(test_tenant, routing, account, "checking", "Chase")

    async def test_funding_source_requires_customer(self, ach_service, test_tenant):
        with pytest.raises(NotFoundError):
            await ach_service.add_funding_source(test_tenant, "222222226", "123456789", "checking", "Chase")


class TestInitiateTransfer:
    """Test tenant to landlord ACH transfers."""

    async def test_transfer_success(
        self, db_session, ach_service, dwolla_calls, payment_repository, test_unit, test_tenant, test_manager
    ):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        tenant_processor = await PaymentFactory.create_processor(db_session, test_tenant.id)
        landlord_processor = await PaymentFactory.create_processor(db_session, test_manager.id)

        transfer = await ach_service.initiate_transfer(test_tenant, str(payment.id))

        assert transfer.transfer_id == "tr-123"
        assert transfer.status == TransferStatus.PENDING
        assert transfer.amount == Decimal("1500.00")
        assert transfer.fee == Decimal("0.25")
        assert transfer.net_amount == Decimal("1499.75")
        assert transfer.correlation_id.startswith("tm-")

        body = json.loads([r for r in dwolla_calls if r.url.path == "/transfers"][0].content)
        assert body["_links"]["source"]["href"] == tenant_processor.funding_source_url
        assert body["_links"]["destination"]["href"] == landlord_processor.funding_source_url

        assert payment.status == RentPaymentStatus.PROCESSING
        assert payment.payment_method == PaymentMethodKind.ACH

    async def test_tenant_needs_bank_account(self, db_session, ach_service, payment_repository, test_unit, test_tenant):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        await PaymentFactory.create_processor(db_session, test_tenant.id, with_funding_source=False)

        with pytest.raises(BadRequestError) as exc_info:
            await ach_service.initiate_transfer(test_tenant, str(payment.id))
        assert exc_info.value.detail == "Please link a bank account first"

    async def test_landlord_not_ready(self, db_session, ach_service, dwolla_calls, payment_repository, test_unit,
                                      test_tenant):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        await PaymentFactory.create_processor(db_session, test_tenant.id)

        with pytest.raises(BadRequestError) as exc_info:
            await ach_service.initiate_transfer(test_tenant, str(payment.id))
        assert exc_info.value.detail == LANDLORD_NOT_READY_MESSAGE
        assert dwolla_calls == []

    async def test_only_own_payments(self, ach_service, payment_repository, test_unit, test_tenant, test_manager):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)

        with pytest.raises(ForbiddenError):
            await ach_service.initiate_transfer(test_manager, str(payment.id))

    async def test_paid_payment_rejected(self, ach_service, payment_repository, test_unit, test_tenant):
        payment = await PaymentFactory.create_rent_payment(
            payment_repository, test_tenant.id, test_unit.id, status=RentPaymentStatus.PAID
        )

        with pytest.raises(BadRequestError):
            await ach_service.initiate_transfer(test_tenant, str(payment.id))

    async def test_provider_error_leaves_failed_record(
        self, db_session, payment_repository, test_unit, test_tenant, test_manager
    ):
        def handler(request):
            if request.url.path == "/transfers":
                return json_response(500, {"code": "ServerError", "message": "Unavailable"})
            return dwolla_handler(request)

        client = DwollaClient(key="key", secret="secret", base_url=DWOLLA_BASE, transport=mock_transport(handler))
        service = ACHService(db_session, dwolla_client=client)
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        await PaymentFactory.create_processor(db_session, test_tenant.id)
        await PaymentFactory.create_processor(db_session, test_manager.id)

        with pytest.raises(ExternalServiceError):
            await service.initiate_transfer(test_tenant, str(payment.id))

        transfers = await DwollaTransferRepository(db_session).list_for_payment(payment.id)
        assert len(transfers) == 1
        assert transfers[0].status == TransferStatus.FAILED
        assert transfers[0].transfer_id is None
        assert transfers[0].correlation_id.startswith("tm-")
        assert payment.status == RentPaymentStatus.PENDING

    async def test_record_failure_after_transfer_keeps_correlation(
        self, monkeypatch, db_session, ach_service, dwolla_calls, payment_repository, test_unit, test_tenant,
        test_manager
    ):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        await PaymentFactory.create_processor(db_session, test_tenant.id)
        await PaymentFactory.create_processor(db_session, test_manager.id)

        async def broken_save(obj):
            raise RuntimeError("database unavailable")

        monkeypatch.setattr(ach_service.payment_repo, "save", broken_save)

        with pytest.raises(BadRequestError):
            await ach_service.initiate_transfer(test_tenant, str(payment.id))

        sent = json.loads([r for r in dwolla_calls if r.url.path == "/transfers"][0].content)
        transfers = await DwollaTransferRepository(db_session).list_for_payment(payment.id)
        assert len(transfers) == 1
        assert transfers[0].correlation_id == sent["correlationId"]


class TestDwollaWebhook:
    """Test Dwolla webhook processing."""

    async def _pending_transfer(self, db_session, payment_repository, test_unit, test_tenant):
        payment = await PaymentFactory.create_rent_payment(
            payment_repository, test_tenant.id, test_unit.id,
            status=RentPaymentStatus.PROCESSING, payment_method=PaymentMethodKind.ACH
        )
        transfer = await DwollaTransferRepository(db_session).create({
            "rent_payment_id": payment.id,
            "transfer_id": "tr-123",
            "transfer_url": f"{DWOLLA_BASE}/transfers/tr-123",
            "correlation_id": "tm-1-abc",
            "source_funding_source": f"{DWOLLA_BASE}/funding-sources/fs-tenant",
            "destination_funding_source": f"{DWOLLA_BASE}/funding-sources/fs-landlord",
            "amount": Decimal("1500.00"),
            "fee": Decimal("0.25"),
            "net_amount": Decimal("1499.75"),
            "status": TransferStatus.PENDING,
        })
        return payment, transfer

    def _event(self, topic, resource_url, event_id="evt-1", **extra) -> bytes:
        return json.dumps({
            "id": event_id,
            "topic": topic,
            "_links": {"resource": {"href": resource_url}},
            **extra
        }).encode()

    async def test_transfer_completed_marks_paid(self, db_session, payment_repository, test_unit, test_tenant):
        payment, transfer = await self._pending_transfer(db_session, payment_repository, test_unit, test_tenant)

        result = await DwollaWebhookService(db_session).handle(
            self._event("transfer_completed", f"{DWOLLA_BASE}/transfers/tr-123"), None
        )

        assert result == {"received": True}
        assert transfer.status == TransferStatus.COMPLETED
        assert transfer.completed_at is not None
        assert payment.status == RentPaymentStatus.PAID
        assert payment.paid_at is not None

    async def test_transfer_failed(self, db_session, payment_repository, test_unit, test_tenant):
        payment, transfer = await self._pending_transfer(db_session, payment_repository, test_unit, test_tenant)

        await DwollaWebhookService(db_session).handle(
            self._event(
                "customer_transfer_failed",
                f"{DWOLLA_BASE}/transfers/tr-123",
                _embedded={"failure": {"code": "R01", "description": "Insufficient Funds"}}
            ),
            None
        )

        assert transfer.status == TransferStatus.FAILED
        assert transfer.failure_reason == "Insufficient Funds"
        assert payment.status == RentPaymentStatus.FAILED

    async def test_duplicate_event_is_skipped(self, db_session, payment_repository, test_unit, test_tenant):
        payment, transfer = await self._pending_transfer(db_session, payment_repository, test_unit, test_tenant)
        service = DwollaWebhookService(db_session)
        body = self._event("transfer_completed", f"{DWOLLA_BASE}/transfers/tr-123")

        await service.handle(body, None)
        payment.status = RentPaymentStatus.PROCESSING
        await payment_repository.save(payment)

        assert await service.handle(body, None) == {"received": True}
        assert payment.status == RentPaymentStatus.PROCESSING

    async def test_funding_source_removed(self, db_session, test_tenant):
        processor = await PaymentFactory.create_processor(db_session, test_tenant.id)

        await DwollaWebhookService(db_session).handle(
            self._event("customer_funding_source_removed", processor.funding_source_url), None
        )

        assert processor.funding_source_url is None
        assert processor.status == ProcessorStatus.PENDING

    async def test_transfer_cancelled_returns_payment_to_pending(
        self, db_session, payment_repository, test_unit, test_tenant
    ):
        payment, transfer = await self._pending_transfer(db_session, payment_repository, test_unit, test_tenant)

        result = await DwollaWebhookService(db_session).handle(
            self._event("customer_transfer_cancelled", f"{DWOLLA_BASE}/transfers/tr-123"), None
        )

        assert result == {"received": True}
        assert transfer.status == TransferStatus.CANCELLED
        assert payment.status == RentPaymentStatus.PENDING

    async def test_transfer_matched_by_correlation_id(self, db_session, payment_repository, test_unit, test_tenant):
        payment, transfer = await self._pending_transfer(db_session, payment_repository, test_unit, test_tenant)
        transfer.transfer_id = None
        transfer.transfer_url = None
        await DwollaTransferRepository(db_session).save(transfer)

        def handler(request):
            if request.url.path == "/token":
                return json_response(200, {"access_token": "dwolla-token", "expires_in": 3600})
            if request.url.path == "/transfers/tr-999":
                return json_response(200, {"id": "tr-999", "correlationId": "tm-1-abc"})
            return json_response(404, {"code": "NotFound", "message": "Not found"})

        client = DwollaClient(key="key", secret="secret", base_url=DWOLLA_BASE, transport=mock_transport(handler))
        result = await DwollaWebhookService(db_session, dwolla_client=client).handle(
            self._event("transfer_completed", f"{DWOLLA_BASE}/transfers/tr-999"), None
        )

        assert result == {"received": True}
        assert transfer.transfer_id == "tr-999"
        assert transfer.transfer_url == f"{DWOLLA_BASE}/transfers/tr-999"
        assert transfer.status == TransferStatus.COMPLETED
        assert payment.status == RentPaymentStatus.PAID

    async def test_customer_suspended(self, db_session, test_tenant):
        processor = await PaymentFactory.create_processor(db_session, test_tenant.id)

        await DwollaWebhookService(db_session).handle(
            self._event("customer_suspended", processor.customer_url), None
        )

        assert processor.status == ProcessorStatus.SUSPENDED

    async def test_malformed_payload(self, db_session):
        result = await DwollaWebhookService(db_session).handle(b"not json", None)
        assert result == {"received": True, "error": "Processing error"}

    async def test_signature_checked_when_secret_set(self, monkeypatch, db_session):
        monkeypatch.setattr(settings, "dwolla_webhook_secret", "whsec")
        service = DwollaWebhookService(db_session)
        body = self._event("customer_verified", f"{DWOLLA_BASE}/customers/cust-1")

        with pytest.raises(WebhookSignatureError):
            await service.handle(body, "bad-signature")

        result = await service.handle(body, compute_hmac_sha256("whsec", body))
        assert result == {"received": True}
