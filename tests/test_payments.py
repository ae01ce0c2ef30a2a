"""
Tests for card rent payments through Stripe Checkout, receipts,
billing portal sessions and Stripe Connect onboarding.
"""

import pytest
import uuid
from decimal import Decimal
from urllib.parse import parse_qs

from app.clients.stripe import StripeClient, encode_form
from app.models.payment import RentPaymentStatus, PaymentMethodKind, ConnectAccountStatus, VerificationStatus
from app.models.user import OnboardingStatus
from app.repositories.payment import RentPaymentRepository, StripeAccountRepository
from app.services.payment import PaymentService
from app.services.stripe_connect import StripeConnectService
from app.utils.exceptions import (
    BadRequestError,
    ForbiddenError,
    PaymentValidationError,
    ExternalServiceError,
    ServiceNotConfiguredError,
    InsufficientPermissionsError,
)
from tests.conftest import PaymentFactory, mock_transport, json_response


def _form(request) -> dict:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def stripe_handler(request):
    """Minimal Stripe API: no existing customers, echo a checkout session."""
    path = request.url.path
    if request.method == "GET" and path == "/v1/customers":
        return json_response(200, {"object": "list", "data": []})
    if request.method == "POST" and path == "/v1/customers":
        return json_response(200, {"id": "cus_new123", "email": _form(request).get("email")})
    if path == "/v1/checkout/sessions":
        return json_response(200, {
            "id": "cs_test_abc",
            "url": "https://checkout.stripe.com/c/pay/cs_test_abc",
            "payment_intent": "pi_test_abc",
        })
    if path == "/v1/billing_portal/sessions":
        return json_response(200, {"id": "bps_1", "url": "https://billing.stripe.com/session/bps_1"})
    return json_response(404, {"error": {"message": f"No such route {path}"}})


class TestEncodeForm:

    def test_nested_params(self):
        pairs = encode_form({
            "mode": "payment",
            "line_items": [{"price_data": {"unit_amount": 145000}, "quantity": 1}],
            "metadata": {"payment_id": "p1"},
            "skip": None,
            "livemode": False,
        })

        assert pairs == [
            ("mode", "payment"),
            ("line_items[0][price_data][unit_amount]", "145000"),
            ("line_items[0][quantity]", "1"),
            ("metadata[payment_id]", "p1"),
            ("livemode", "false"),
        ]


class TestCheckoutSession:
    """Test Stripe Checkout session creation for rent."""

    @pytest.fixture
    def stripe_calls(self):
        return []

    @pytest.fixture
    def payment_service(self, db_session, property_service, stripe_calls) -> PaymentService:
        client = StripeClient(
            api_key="sk_test_123",
            base_url="https://stripe.test",
            transport=mock_transport(stripe_handler, stripe_calls)
        )
        return PaymentService(db_session, stripe_client=client, property_service=property_service, retry_delay=0)

    async def test_creates_session_with_platform_fee(
        self, db_session, payment_service, stripe_calls, test_property, test_unit, test_assignment, test_tenant
    ):
        await PaymentFactory.link_stripe_account(db_session, test_property.id)

        result = await payment_service.create_checkout_session(
            test_tenant, str(test_unit.id), 1450, origin="http://localhost:5173"
        )

        assert result["url"] == "https://checkout.stripe.com/c/pay/cs_test_abc"

        session_request = [r for r in stripe_calls if r.url.path == "/v1/checkout/sessions"][0]
        assert session_request.headers["Authorization"] == "Bearer sk_test_123"
        params = _form(session_request)
        assert params["customer"] == "cus_new123"
        assert params["line_items[0][price_data][unit_amount]"] == "145000"
        assert params["payment_intent_data[application_fee_amount]"] == "7250"
        assert params["payment_intent_data[transfer_data][destination]"] == "acct_test123"
        assert params["success_url"] == "http://localhost:5173/payments?success=true"
        assert params["metadata[payment_id]"] == result["payment_id"]
        assert params["payment_intent_data[metadata][transaction_id]"] == result["transaction_id"]
        assert params["payment_intent_data[metadata][payment_id]"] == result["payment_id"]

        repo = RentPaymentRepository(db_session)
        payment = await repo.get_by_id(uuid.UUID(result["payment_id"]))
        assert payment.status == RentPaymentStatus.PENDING
        assert payment.payment_method == PaymentMethodKind.CARD
        assert payment.amount == Decimal("1450.00")

        transaction = await repo.get_transaction_by_session("cs_test_abc")
        assert str(transaction.id) == result["transaction_id"]
        assert transaction.platform_fee == Decimal("72.50")
        assert transaction.stripe_payment_intent_id == "pi_test_abc"

        assert test_tenant.stripe_customer_id == "cus_new123"
        audit = await repo.list_audit_entries(result["payment_id"])
        assert [entry.event_type for entry in audit] == ["checkout_session_created"]

    async def test_existing_customer_is_reused(
        self, db_session, payment_service, stripe_calls, test_property, test_unit, test_assignment, test_tenant
    ):
        await PaymentFactory.link_stripe_account(db_session, test_property.id)
        test_tenant.stripe_customer_id = "cus_existing"

        await payment_service.create_checkout_session(test_tenant, str(test_unit.id), 100)

        assert not [r for r in stripe_calls if r.url.path == "/v1/customers"]
        session_request = [r for r in stripe_calls if r.url.path == "/v1/checkout/sessions"][0]
        assert _form(session_request)["customer"] == "cus_existing"

    async def test_invalid_amount(self, payment_service, test_unit, test_tenant, stripe_calls):
        with pytest.raises(PaymentValidationError):
            await payment_service.create_checkout_session(test_tenant, str(test_unit.id), -10)
        assert stripe_calls == []

    async def test_unit_required(self, payment_service, test_tenant):
        with pytest.raises(BadRequestError) as exc_info:
            await payment_service.create_checkout_session(test_tenant, "", 100)
        assert exc_info.value.detail == "Unit ID is required"

    async def test_requires_assignment(self, payment_service, test_unit, test_tenant):
        with pytest.raises(ForbiddenError) as exc_info:
            await payment_service.create_checkout_session(test_tenant, str(test_unit.id), 100)
        assert exc_info.value.detail == "No active tenant assignment found for this unit"

    async def test_requires_stripe_account(self, payment_service, test_unit, test_assignment, test_tenant):
        with pytest.raises(BadRequestError) as exc_info:
            await payment_service.create_checkout_session(test_tenant, str(test_unit.id), 100)
        assert exc_info.value.detail == "Property manager has not set up payments"

    async def test_requires_verified_account(
        self, db_session, payment_service, stripe_calls, test_property, test_unit, test_assignment, test_tenant
    ):
        await PaymentFactory.link_stripe_account(db_session, test_property.id, verified=False)

        with pytest.raises(BadRequestError) as exc_info:
            await payment_service.create_checkout_session(test_tenant, str(test_unit.id), 100)
        assert exc_info.value.detail == "Property manager's Stripe account is not fully verified"
        assert stripe_calls == []

    async def test_stripe_not_configured(self, db_session, property_service, test_property, test_unit,
                                         test_assignment, test_tenant):
        await PaymentFactory.link_stripe_account(db_session, test_property.id)
        service = PaymentService(db_session, stripe_client=StripeClient(api_key=""), property_service=property_service)

        with pytest.raises(ServiceNotConfiguredError):
            await service.create_checkout_session(test_tenant, str(test_unit.id), 100)


class TestPortalSession:

    async def test_returns_portal_url(self, db_session, property_service, test_tenant):
        client = StripeClient(api_key="sk_test_123", base_url="https://stripe.test",
                              transport=mock_transport(stripe_handler))
        service = PaymentService(db_session, stripe_client=client, property_service=property_service, retry_delay=0)

        result = await service.create_portal_session(test_tenant, "http://localhost:5173/payments")

        assert result == {"url": "https://billing.stripe.com/session/bps_1"}

    async def test_return_url_required(self, db_session, test_tenant):
        service = PaymentService(db_session, stripe_client=StripeClient(api_key="sk_test_123"))

        with pytest.raises(BadRequestError) as exc_info:
            await service.create_portal_session(test_tenant, " ")
        assert exc_info.value.detail == "Return URL is required"

        with pytest.raises(BadRequestError) as exc_info:
            await service.create_portal_session(test_tenant, "not a url")
        assert exc_info.value.detail == "Invalid return URL"

    async def test_customer_lookup_is_retried(self, db_session, property_service, test_tenant):
        calls = []
        client = StripeClient(
            api_key="sk_test_123",
            base_url="https://stripe.test",
            transport=mock_transport(lambda request: json_response(500, {"error": {"message": "boom"}}), calls)
        )
        service = PaymentService(db_session, stripe_client=client, property_service=property_service, retry_delay=0)

        with pytest.raises(ExternalServiceError):
            await service.create_portal_session(test_tenant, "http://localhost:5173/payments")
        assert len(calls) == 3


class TestReceipts:
    """Test receipt generation."""

    async def test_tenant_receipt(self, db_session, payment_repository, test_unit, test_tenant):
        payment = await PaymentFactory.create_rent_payment(
            payment_repository, test_tenant.id, test_unit.id, amount=Decimal("1450.00"), status=RentPaymentStatus.PAID
        )
        service = PaymentService(db_session, stripe_client=StripeClient(api_key=""))

        html, receipt = await service.generate_receipt(payment.id, test_tenant)

        assert receipt.receipt_number == f"RCP-{payment.invoice_number}"
        assert "$1450.00" in html
        assert "Maple Court" in html
        assert "card" in html

        _, again = await service.generate_receipt(payment.id, test_tenant)
        assert again.id == receipt.id

    async def test_manager_can_view(self, db_session, payment_repository, test_unit, test_tenant, test_manager):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        service = PaymentService(db_session, stripe_client=StripeClient(api_key=""))

        html, _ = await service.generate_receipt(payment.id, test_manager)
        assert "Payment Receipt" in html

    async def test_other_manager_forbidden(self, db_session, payment_repository, test_unit, test_tenant, other_manager):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        service = PaymentService(db_session, stripe_client=StripeClient(api_key=""))

        with pytest.raises(ForbiddenError):
            await service.generate_receipt(payment.id, other_manager)


class TestPaymentHistory:

    async def test_scoped_by_role(self, db_session, payment_repository, test_unit, test_tenant, test_manager,
                                  other_manager):
        await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)
        service = PaymentService(db_session, stripe_client=StripeClient(api_key=""))

        _, tenant_total = await service.get_payment_history(test_tenant)
        _, manager_total = await service.get_payment_history(test_manager)
        _, other_total = await service.get_payment_history(other_manager)

        assert (tenant_total, manager_total, other_total) == (1, 1, 0)


def connect_handler(ready: bool):
    def handler(request):
        path = request.url.path
        if path == "/oauth/token":
            return json_response(200, {"stripe_user_id": "acct_connected"})
        if path.startswith("/v1/accounts/"):
            return json_response(200, {
                "id": "acct_connected",
                "charges_enabled": ready,
                "payouts_enabled": ready,
                "details_submitted": ready,
                "requirements": {"currently_due": [] if ready else ["external_account"]},
            })
        if path == "/v1/account_links":
            return json_response(200, {"url": "https://connect.stripe.com/setup/abc"})
        return json_response(404, {"error": {"message": "unknown"}})
    return handler


class TestStripeConnect:
    """Test Connect OAuth completion and account status."""

    def _service(self, db_session, ready=True, calls=None) -> StripeConnectService:
        client = StripeClient(
            api_key="sk_test_123",
            base_url="https://stripe.test",
            connect_base_url="https://connect.stripe.test",
            transport=mock_transport(connect_handler(ready), calls)
        )
        return StripeConnectService(db_session, stripe_client=client)

    async def test_complete_oauth_links_all_properties(self, db_session, test_manager, test_property):
        result = await self._service(db_session).complete_oauth(test_manager, "ac_code")

        assert result == {"account_id": "acct_connected", "onboarding_status": "completed", "linked_properties": 1}
        assert test_manager.stripe_connect_account_id == "acct_connected"
        assert test_manager.stripe_onboarding_status == OnboardingStatus.COMPLETED

        link = await StripeAccountRepository(db_session).get_active_for_property(test_property.id)
        assert link.stripe_account_id == "acct_connected"
        assert link.account_status == ConnectAccountStatus.COMPLETED
        assert link.verification_status == VerificationStatus.VERIFIED
        assert link.is_ready_for_payments

    async def test_new_account_replaces_active_link(self, db_session, test_manager, test_property):
        old = await PaymentFactory.link_stripe_account(db_session, test_property.id, stripe_account_id="acct_old")

        await self._service(db_session, ready=False).complete_oauth(test_manager, "ac_code")

        await db_session.refresh(old)
        assert old.is_active is False
        link = await StripeAccountRepository(db_session).get_active_for_property(test_property.id)
        assert link.stripe_account_id == "acct_connected"
        assert link.is_ready_for_payments is False

    async def test_tenant_cannot_connect(self, db_session, test_tenant):
        with pytest.raises(InsufficientPermissionsError):
            await self._service(db_session).complete_oauth(test_tenant, "ac_code")

    async def test_account_status_with_remediation_link(self, db_session, test_manager):
        test_manager.stripe_connect_account_id = "acct_connected"

        status = await self._service(db_session, ready=False).get_account_status(test_manager)

        assert status["charges_enabled"] is False
        assert status["remediation_link"] == "https://connect.stripe.com/setup/abc"

    async def test_account_status_without_requirements(self, db_session, test_manager):
        calls = []
        test_manager.stripe_connect_account_id = "acct_connected"

        status = await self._service(db_session, ready=True, calls=calls).get_account_status(test_manager)

        assert status["remediation_link"] is None
        assert [r.url.path for r in calls] == ["/v1/accounts/acct_connected"]
