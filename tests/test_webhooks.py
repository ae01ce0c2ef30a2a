"""
Tests for Stripe webhook verification and processing, and Dropbox Sign
callbacks applied to leases.
"""

import json
import httpx
import time
import pytest
from decimal import Decimal

from app.clients.dropbox_sign import DropboxSignClient
from app.config import settings
from app.models.lease import LeaseStatus, SignatureStatus
from app.models.payment import (
    RentPaymentStatus,
    TransactionStatus,
    StoredMethodStatus,
    StoredMethodType,
    ConnectAccountStatus,
)
from app.models.user import OnboardingStatus
from app.repositories.payment import PaymentMethodRepository
from app.repositories.webhook import WebhookEventRepository
from app.models.webhook import WebhookProvider
from app.services.esignature import ESignatureService, CALLBACK_ACK
from app.services.stripe_webhook import StripeWebhookService, parse_signature_header, verify_stripe_signature
from app.utils.exceptions import (
    BadRequestError,
    InternalServerError,
    ServiceNotConfiguredError,
    WebhookSignatureError,
)
from app.utils.security import compute_hmac_sha256
from tests.conftest import PaymentFactory, LeaseFactory, mock_transport
from tests.test_applicants import RecordingEmailService

WEBHOOK_SECRET = "whsec_test"


class FailingOnceEmailService(RecordingEmailService):
    """Raises on the first send, records afterwards."""

    def __init__(self):
        super().__init__()
        self.failures = 1

    async def send_template(self, to, template, data=None):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("Resend unavailable")
        return await super().send_template(to, template, data)


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = compute_hmac_sha256(secret, f"{timestamp}.".encode() + payload)
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_1") -> bytes:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode()


class TestStripeSignature:
    """Test Stripe-Signature header verification."""

    def test_parse_header(self):
        assert parse_signature_header("t=123,v1=abc,v0=zzz,v1=def") == (123, ["abc", "def"])
        assert parse_signature_header("garbage") == (None, [])

    def test_valid_signature(self):
        payload = b'{"id": "evt_1"}'
        verify_stripe_signature(payload, sign(payload, timestamp=1000), WEBHOOK_SECRET, now=1100)

    def test_missing_header(self):
        with pytest.raises(BadRequestError) as exc_info:
            verify_stripe_signature(b"{}", None, WEBHOOK_SECRET)
        assert exc_info.value.detail == "No signature"

    def test_wrong_secret(self):
        payload = b"{}"
        with pytest.raises(BadRequestError):
            verify_stripe_signature(payload, sign(payload, secret="other", timestamp=1000), WEBHOOK_SECRET, now=1000)

    def test_tampered_payload(self):
        header = sign(b'{"amount": 1}', timestamp=1000)
        with pytest.raises(BadRequestError):
            verify_stripe_signature(b'{"amount": 2}', header, WEBHOOK_SECRET, now=1000)

    def test_stale_timestamp(self):
        payload = b"{}"
        with pytest.raises(BadRequestError):
            verify_stripe_signature(payload, sign(payload, timestamp=1000), WEBHOOK_SECRET, tolerance=300, now=1301)


class TestStripeWebhookService:
    """Test Stripe event processing."""

    @pytest.fixture(autouse=True)
    def webhook_secret(self, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)

    @pytest.fixture
    def email_service(self) -> RecordingEmailService:
        return RecordingEmailService()

    @pytest.fixture
    def webhook_service(self, db_session, email_service) -> StripeWebhookService:
        return StripeWebhookService(db_session, email_service=email_service)

    async def _transaction(self, db_session, payment_repository, test_unit, test_tenant, intent_id="pi_123"):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        transaction = await payment_repository.create_transaction({
            "rent_payment_id": payment.id,
            "amount": payment.amount,
            "platform_fee": Decimal("75.00"),
            "stripe_session_id": "cs_123",
            "stripe_payment_intent_id": intent_id,
        })
        return payment, transaction

    async def _deliver(self, service, payload: bytes):
        return await service.handle(payload, sign(payload))

    async def test_not_configured(self, monkeypatch, webhook_service):
        monkeypatch.setattr(settings, "stripe_webhook_secret", None)
        with pytest.raises(ServiceNotConfiguredError):
            await webhook_service.handle(b"{}", "t=1,v1=abc")

    async def test_bad_signature_rejected(self, webhook_service):
        payload = stripe_event("payment_intent.succeeded", {"id": "pi_123"})
        with pytest.raises(BadRequestError):
            await webhook_service.handle(payload, sign(payload, secret="wrong"))

    async def test_payment_succeeded(
        self, db_session, webhook_service, email_service, payment_repository, test_unit, test_tenant, test_manager
    ):
        payment, transaction = await self._transaction(db_session, payment_repository, test_unit, test_tenant)

        result = await self._deliver(
            webhook_service, stripe_event("payment_intent.succeeded", {"id": "pi_123", "amount": 150000})
        )

        assert result == {"received": True}
        assert transaction.status == TransactionStatus.SUCCEEDED
        assert transaction.validation_status == "validated"
        assert payment.status == RentPaymentStatus.PAID
        assert payment.paid_at is not None

        to, template, data = email_service.sent[0]
        assert to == test_manager.email
        assert template == "payment_received"
        assert data["invoiceNumber"] == payment.invoice_number

        audit = await payment_repository.list_audit_entries(str(payment.id))
        assert [entry.event_type for entry in audit] == ["payment_succeeded"]

    async def test_duplicate_event_processed_once(
        self, db_session, webhook_service, email_service, payment_repository, test_unit, test_tenant
    ):
        await self._transaction(db_session, payment_repository, test_unit, test_tenant)
        payload = stripe_event("payment_intent.succeeded", {"id": "pi_123"})

        await self._deliver(webhook_service, payload)
        result = await self._deliver(webhook_service, payload)

        assert result == {"received": True}
        assert len(email_service.sent) == 1

        stored = await WebhookEventRepository(db_session).get_event(WebhookProvider.STRIPE, "evt_1")
        assert stored.processed is True

    async def test_payment_failed(self, db_session, webhook_service, payment_repository, test_unit, test_tenant):
        payment, transaction = await self._transaction(db_session, payment_repository, test_unit, test_tenant)

        await self._deliver(webhook_service, stripe_event("payment_intent.payment_failed", {
            "id": "pi_123",
            "last_payment_error": {"message": "Your card was declined.", "code": "card_declined"},
        }))

        assert transaction.status == TransactionStatus.FAILED
        assert transaction.validation_errors == {"message": "Your card was declined.", "code": "card_declined"}
        assert payment.status == RentPaymentStatus.FAILED

    async def test_checkout_completed_stores_intent(
        self, db_session, webhook_service, payment_repository, test_unit, test_tenant
    ):
        payment, transaction = await self._transaction(
            db_session, payment_repository, test_unit, test_tenant, intent_id=None
        )

        await self._deliver(webhook_service, stripe_event("checkout.session.completed", {
            "id": "cs_123",
            "payment_intent": "pi_new",
        }))

        assert transaction.stripe_payment_intent_id == "pi_new"

    async def test_unknown_event_acknowledged(self, webhook_service):
        result = await self._deliver(webhook_service, stripe_event("invoice.created", {"id": "in_1"}))
        assert result == {"received": True}

    async def test_account_updated(self, db_session, webhook_service, test_manager, test_property):
        link = await PaymentFactory.link_stripe_account(db_session, test_property.id, verified=False)
        test_manager.stripe_connect_account_id = "acct_test123"

        await self._deliver(webhook_service, stripe_event("account.updated", {
            "id": "acct_test123",
            "charges_enabled": True,
            "payouts_enabled": True,
            "details_submitted": True,
        }))

        assert link.is_ready_for_payments
        assert test_manager.stripe_onboarding_status == OnboardingStatus.COMPLETED

    async def test_account_deauthorized(self, db_session, webhook_service, test_manager, test_property):
        link = await PaymentFactory.link_stripe_account(db_session, test_property.id)
        test_manager.stripe_connect_account_id = "acct_test123"

        await self._deliver(webhook_service, stripe_event("account.application.deauthorized", {"id": "acct_test123"}))

        assert link.is_active is False
        assert link.account_status == ConnectAccountStatus.INACTIVE
        assert test_manager.stripe_connect_account_id is None

    async def test_payment_method_lifecycle(self, db_session, webhook_service, test_tenant):
        test_tenant.stripe_customer_id = "cus_123"
        card = {
            "id": "pm_1",
            "type": "card",
            "customer": "cus_123",
            "card": {"brand": "visa", "last4": "4242", "exp_month": 12, "exp_year": 2030},
        }

        await self._deliver(webhook_service, stripe_event("payment_method.attached", card, event_id="evt_a"))
        method = await PaymentMethodRepository(db_session).get_by_provider_id("pm_1")
        assert method.method_type == StoredMethodType.CARD
        assert method.last4 == "4242"
        assert method.status == StoredMethodStatus.ACTIVE

        await self._deliver(webhook_service, stripe_event("payment_method.detached", card, event_id="evt_b"))
        assert method.status == StoredMethodStatus.REMOVED

    async def test_handler_error_is_recorded_and_retried(
        self, db_session, payment_repository, test_unit, test_tenant, test_manager
    ):
        email_service = FailingOnceEmailService()
        service = StripeWebhookService(db_session, email_service=email_service)
        payment, _ = await self._transaction(db_session, payment_repository, test_unit, test_tenant)
        payload = stripe_event("payment_intent.succeeded", {"id": "pi_123"}, event_id="evt_retry")

        with pytest.raises(InternalServerError):
            await self._deliver(service, payload)

        stored = await WebhookEventRepository(db_session).get_event(WebhookProvider.STRIPE, "evt_retry")
        assert stored.processed is False
        assert stored.error == "Resend unavailable"

        result = await self._deliver(service, payload)

        assert result == {"received": True}
        assert [to for to, _, _ in email_service.sent] == [test_manager.email]
        assert payment.status == RentPaymentStatus.PAID
        assert stored.processed is True
        assert stored.error is None

    async def test_intent_before_session_uses_metadata(
        self, db_session, webhook_service, payment_repository, test_unit, test_tenant
    ):
        payment, transaction = await self._transaction(
            db_session, payment_repository, test_unit, test_tenant, intent_id=None
        )

        await self._deliver(webhook_service, stripe_event("payment_intent.succeeded", {
            "id": "pi_9",
            "metadata": {"transaction_id": str(transaction.id), "payment_id": str(payment.id)},
        }, event_id="evt_a"))

        assert transaction.stripe_payment_intent_id == "pi_9"
        assert transaction.status == TransactionStatus.SUCCEEDED
        assert payment.status == RentPaymentStatus.PAID

        await self._deliver(webhook_service, stripe_event("checkout.session.completed", {
            "id": "cs_123",
            "payment_intent": "pi_9",
        }, event_id="evt_b"))
        assert payment.status == RentPaymentStatus.PAID

    async def test_unmatched_intent_is_retried_after_session(
        self, db_session, webhook_service, payment_repository, test_unit, test_tenant
    ):
        payment, transaction = await self._transaction(
            db_session, payment_repository, test_unit, test_tenant, intent_id=None
        )
        succeeded = stripe_event("payment_intent.succeeded", {"id": "pi_9"}, event_id="evt_a")

        with pytest.raises(InternalServerError):
            await self._deliver(webhook_service, succeeded)
        assert payment.status == RentPaymentStatus.PENDING

        await self._deliver(webhook_service, stripe_event("checkout.session.completed", {
            "id": "cs_123",
            "payment_intent": "pi_9",
        }, event_id="evt_b"))
        await self._deliver(webhook_service, succeeded)

        assert transaction.status == TransactionStatus.SUCCEEDED
        assert payment.status == RentPaymentStatus.PAID

    async def test_handler_error_returns_500(self, monkeypatch, async_client):
        monkeypatch.setattr(settings, "stripe_webhook_secret", WEBHOOK_SECRET)
        payload = stripe_event("payment_intent.payment_failed", {"id": "pi_missing"}, event_id="evt_500")

        response = await async_client.post(
            f"{settings.api_v1_prefix}/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": sign(payload), "Content-Type": "application/json"},
        )

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_SERVER_ERROR"


class TestDropboxSignCallbacks:
    """Test e-signature callbacks applied to leases."""

    def _callback(self, event_type, lease_id, event_time="1700000000", api_key="", **request_fields) -> dict:
        event = {"event_type": event_type, "event_time": event_time}
        if api_key:
            event["event_hash"] = compute_hmac_sha256(api_key, f"{event_time}{event_type}".encode())
        return {
            "event": event,
            "signature_request": {
                "signature_request_id": "sr_1",
                "metadata": {"lease_id": str(lease_id)},
                **request_fields
            },
        }

    async def _lease(self, db_session, test_property, test_unit, test_tenant, status=SignatureStatus.SENT):
        return await LeaseFactory.create_lease(
            db_session, test_property.id, test_unit.id, test_tenant.id,
            signature_request_id="sr_1", signature_status=status
        )

    def _service(self, db_session, api_key="", transport=None) -> ESignatureService:
        client = DropboxSignClient(api_key=api_key, client_id="client" if api_key else "",
                                   base_url="https://dropbox.test/v3", transport=transport)
        return ESignatureService(db_session, client=client)

    async def test_callback_test_acknowledged(self, db_session):
        result = await self._service(db_session).handle_callback({"event": {"event_type": "callback_test"}})
        assert result == CALLBACK_ACK == "Hello API Event Received"

    async def test_viewed(self, db_session, test_property, test_unit, test_tenant):
        lease = await self._lease(db_session, test_property, test_unit, test_tenant)

        await self._service(db_session).handle_callback(self._callback("signature_request_viewed", lease.id))

        assert lease.signature_status == SignatureStatus.VIEWED

    async def test_viewed_does_not_regress(self, db_session, test_property, test_unit, test_tenant):
        lease = await self._lease(db_session, test_property, test_unit, test_tenant,
                                  status=SignatureStatus.PARTIALLY_SIGNED)

        await self._service(db_session).handle_callback(self._callback("signature_request_viewed", lease.id))

        assert lease.signature_status == SignatureStatus.PARTIALLY_SIGNED

    async def test_all_signed_stores_document(self, monkeypatch, tmp_path, db_session, test_property, test_unit,
                                              test_tenant):
        monkeypatch.setattr(settings, "document_storage_dir", str(tmp_path))
        lease = await self._lease(db_session, test_property, test_unit, test_tenant)
        transport = mock_transport(lambda request: httpx.Response(200, content=b"%PDF-1.4 signed"))
        service = self._service(db_session, api_key="ds_key", transport=transport)

        result = await service.handle_callback(self._callback(
            "signature_request_all_signed", lease.id, api_key="ds_key",
            signatures=[{"signature_id": "sig_1", "signed_at": 1700000000}]
        ))

        assert result == CALLBACK_ACK
        assert lease.signature_status == SignatureStatus.COMPLETED
        assert lease.status == LeaseStatus.SIGNED
        assert lease.tenant_signed_at.year == 2023
        assert lease.signed_document_path.startswith(f"leases/{lease.id}/signed-")
        assert (tmp_path / lease.signed_document_path).read_bytes() == b"%PDF-1.4 signed"

    async def test_failed_download_still_completes(self, monkeypatch, tmp_path, db_session, test_property,
                                                   test_unit, test_tenant):
        monkeypatch.setattr(settings, "document_storage_dir", str(tmp_path))
        lease = await self._lease(db_session, test_property, test_unit, test_tenant)
        transport = mock_transport(lambda request: httpx.Response(500, content=b"oops"))
        service = self._service(db_session, api_key="ds_key", transport=transport)

        await service.handle_callback(self._callback("signature_request_all_signed", lease.id, api_key="ds_key"))

        assert lease.signature_status == SignatureStatus.COMPLETED
        assert lease.signed_document_path is None

    async def test_declined(self, db_session, test_property, test_unit, test_tenant):
        lease = await self._lease(db_session, test_property, test_unit, test_tenant)

        await self._service(db_session).handle_callback(self._callback("signature_request_declined", lease.id))

        assert lease.signature_status == SignatureStatus.DECLINED
        assert lease.status == LeaseStatus.DRAFT

    async def test_expired(self, db_session, test_property, test_unit, test_tenant):
        lease = await self._lease(db_session, test_property, test_unit, test_tenant)
        lease.status = LeaseStatus.PENDING

        await self._service(db_session).handle_callback(self._callback("signature_request_expired", lease.id))

        assert lease.signature_status == SignatureStatus.EXPIRED
        assert lease.status == LeaseStatus.DRAFT
        assert lease.signature_request_id == "sr_1"

    async def test_canceled_clears_request(self, db_session, test_property, test_unit, test_tenant):
        lease = await self._lease(db_session, test_property, test_unit, test_tenant)
        lease.status = LeaseStatus.PENDING

        await self._service(db_session).handle_callback(self._callback("signature_request_canceled", lease.id))

        assert lease.signature_status == SignatureStatus.NOT_SENT
        assert lease.status == LeaseStatus.DRAFT
        assert lease.signature_request_id is None

    async def test_bad_event_hash(self, db_session, test_property, test_unit, test_tenant):
        lease = await self._lease(db_session, test_property, test_unit, test_tenant)
        callback = self._callback("signature_request_viewed", lease.id, api_key="other_key")

        with pytest.raises(WebhookSignatureError):
            await self._service(db_session, api_key="ds_key").handle_callback(callback)
        assert lease.signature_status == SignatureStatus.SENT

    async def test_unknown_lease_is_acknowledged(self, db_session):
        callback = self._callback("signature_request_viewed", "00000000-0000-0000-0000-000000000000")
        assert await self._service(db_session).handle_callback(callback) == CALLBACK_ACK
