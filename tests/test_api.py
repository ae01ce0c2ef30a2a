"""
End-to-end API tests through the ASGI app: authentication, properties,
payments, dashboard, health and webhook endpoints.
"""

import json
import pytest
from httpx import AsyncClient

from app.clients.stripe import StripeClient
from app.config import settings
from app.main import app
from app.utils.dependencies import get_stripe_client
from tests.conftest import PaymentFactory, mock_transport, json_response

API = settings.api_v1_prefix


class TestAuthAPI:
    """Test registration, login and the caller's profile."""

    async def test_register_and_me(self, async_client: AsyncClient):
        response = await async_client.post(f"{API}/auth/register", json={
            "email": "New.Manager@Example.com",
            "password": "password123",
            "first_name": "New",
            "last_name": "Manager",
            "role": "property_manager",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "new.manager@example.com"
        assert body["user"]["role"] == "property_manager"

        me = await async_client.get(
            f"{API}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
        )
        assert me.status_code == 200
        assert me.json()["first_name"] == "New"

    async def test_register_admin_rejected(self, async_client: AsyncClient):
        response = await async_client.post(f"{API}/auth/register", json={
            "email": "boss@example.com",
            "password": "password123",
            "first_name": "Boss",
            "last_name": "Admin",
            "role": "admin",
        })
        assert response.status_code == 422

    async def test_duplicate_email_conflicts(self, async_client: AsyncClient, test_tenant):
        response = await async_client.post(f"{API}/auth/register", json={
            "email": test_tenant.email,
            "password": "password123",
            "first_name": "Dup",
            "last_name": "User",
        })
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    async def test_login(self, async_client: AsyncClient, test_tenant):
        response = await async_client.post(f"{API}/auth/login", json={
            "email": test_tenant.email,
            "password": "testpassword123",
        })

        assert response.status_code == 200
        assert response.json()["user"]["id"] == str(test_tenant.id)

    async def test_login_wrong_password(self, async_client: AsyncClient, test_tenant):
        response = await async_client.post(f"{API}/auth/login", json={
            "email": test_tenant.email,
            "password": "wrongpassword1",
        })
        assert response.status_code == 401

    async def test_missing_token_error_shape(self, async_client: AsyncClient):
        response = await async_client.get(f"{API}/auth/me")

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["code"] == "UNAUTHORIZED"
        assert error["message"] == "Authentication token required"
        assert error["timestamp"].endswith("Z")

    async def test_weak_password_is_422(self, async_client: AsyncClient):
        response = await async_client.post(f"{API}/auth/register", json={
            "email": "weak@example.com",
            "password": "onlyletters",
            "first_name": "Weak",
            "last_name": "Password",
        })
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestPropertyAPI:
    """Test property and unit endpoints."""

    async def test_property_crud(self, async_client: AsyncClient, manager_headers):
        created = await async_client.post(f"{API}/properties", headers=manager_headers, json={
            "name": "Oak Villas",
            "address": "5 Oak Ave",
            "city": "Denver",
            "state": "CO",
            "zip_code": "80202",
        })
        assert created.status_code == 201
        property_id = created.json()["id"]

        unit = await async_client.post(f"{API}/properties/{property_id}/units", headers=manager_headers, json={
            "unit_number": "2B",
            "rent_amount": 1450,
        })
        assert unit.status_code == 201

        listed = await async_client.get(f"{API}/properties", headers=manager_headers)
        assert listed.status_code == 200
        assert listed.json()["total"] == 1
        assert listed.json()["properties"][0]["unit_count"] == 1

        updated = await async_client.put(
            f"{API}/properties/{property_id}", headers=manager_headers, json={"name": "Oak Villas East"}
        )
        assert updated.json()["name"] == "Oak Villas East"

        deleted = await async_client.delete(f"{API}/properties/{property_id}", headers=manager_headers)
        assert deleted.status_code == 204

        missing = await async_client.get(f"{API}/properties/{property_id}", headers=manager_headers)
        assert missing.status_code == 404

    async def test_tenant_cannot_create(self, async_client: AsyncClient, tenant_headers):
        response = await async_client.post(f"{API}/properties", headers=tenant_headers, json={
            "name": "Nope",
            "address": "1 Nope St",
            "city": "Austin",
            "state": "TX",
            "zip_code": "73301",
        })
        assert response.status_code == 403

    async def test_invalid_uuid_is_422(self, async_client: AsyncClient, manager_headers):
        response = await async_client.get(f"{API}/properties/not-a-uuid", headers=manager_headers)
        assert response.status_code == 422


class TestPaymentAPI:
    """Test payment endpoints, including rate limiting."""

    @pytest.fixture(autouse=True)
    def stripe_override(self):
        client = StripeClient(
            api_key="sk_test_123",
            base_url="https://stripe.test",
            transport=mock_transport(lambda request: json_response(500, {"error": {"message": "unexpected"}}))
        )
        app.dependency_overrides[get_stripe_client] = lambda: client
        yield
        app.dependency_overrides.pop(get_stripe_client, None)

    async def test_checkout_without_connected_account(
        self, async_client: AsyncClient, tenant_headers, test_unit, test_assignment
    ):
        response = await async_client.post(
            f"{API}/payments/checkout-session",
            headers=tenant_headers,
            json={"unit_id": str(test_unit.id), "amount": 1500},
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Property manager has not set up payments"

    async def test_invalid_amount(self, async_client: AsyncClient, tenant_headers, test_unit):
        response = await async_client.post(
            f"{API}/payments/checkout-session",
            headers=tenant_headers,
            json={"unit_id": str(test_unit.id), "amount": "abc"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "PAYMENT_VALIDATION_ERROR"

    async def test_rate_limited(self, async_client: AsyncClient, tenant_headers, test_unit):
        payload = {"unit_id": str(test_unit.id), "amount": 100}
        for _ in range(settings.payment_rate_limit_requests):
            response = await async_client.post(
                f"{API}/payments/checkout-session", headers=tenant_headers, json=payload
            )
            assert response.status_code != 429

        response = await async_client.post(f"{API}/payments/checkout-session", headers=tenant_headers, json=payload)

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["error"]["code"] == "RATE_LIMIT_EXCEEDED"

    async def test_history_and_receipt(
        self, async_client: AsyncClient, tenant_headers, payment_repository, test_unit, test_tenant
    ):
        payment = await PaymentFactory.create_rent_payment(payment_repository, test_tenant.id, test_unit.id)

        history = await async_client.get(f"{API}/payments", headers=tenant_headers)
        assert history.status_code == 200
        assert history.json()["total"] == 1

        receipt = await async_client.get(f"{API}/payments/{payment.id}/receipt", headers=tenant_headers)
        assert receipt.status_code == 200
        assert receipt.headers["content-type"].startswith("text/html")
        assert f"RCP-{payment.invoice_number}" in receipt.text

    async def test_late_fee(self, async_client: AsyncClient, tenant_headers, test_property, test_assignment):
        response = await async_client.post(f"{API}/payments/late-fee", headers=tenant_headers, json={
            "payment_amount": 1500,
            "due_date": "2024-03-01",
            "property_id": str(test_property.id),
            "as_of": "2024-03-10",
        })

        assert response.status_code == 200
        assert response.json()["late_fee"] == 75.0
        assert response.json()["total_due"] == 1575.0


class TestDashboardAPI:

    async def test_manager_dashboard(self, async_client: AsyncClient, manager_headers, test_unit, test_assignment):
        response = await async_client.get(f"{API}/dashboard", headers=manager_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "property_manager"
        assert body["property_count"] == 1
        assert body["unit_count"] == 1
        assert body["active_tenants"] == 1

    async def test_tenant_dashboard(self, async_client: AsyncClient, tenant_headers, test_assignment):
        response = await async_client.get(f"{API}/dashboard", headers=tenant_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "tenant"
        assert body["units"] == 1
        assert "property_count" not in body


class TestHealthAPI:

    async def test_root(self, async_client: AsyncClient):
        response = await async_client.get("/")

        assert response.status_code == 200
        assert response.json()["api_prefix"] == API

    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"


class TestWebhookAPI:
    """Test the unauthenticated provider callbacks."""

    async def test_stripe_without_secret_is_503(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=abc"}
        )
        assert response.status_code == 503

    async def test_dwolla_malformed_payload_acknowledged(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/webhooks/dwolla", content=b"not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "error": "Processing error"}

    async def test_dwolla_bad_signature_is_401(self, monkeypatch, async_client: AsyncClient):
        monkeypatch.setattr(settings, "dwolla_webhook_secret", "whsec")

        response = await async_client.post(
            f"{API}/webhooks/dwolla",
            content=json.dumps({"id": "evt", "topic": "customer_verified"}).encode(),
            headers={"Content-Type": "application/json", "X-Request-Signature-SHA-256": "bad"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_SIGNATURE"

    async def test_dropbox_sign_callback_test_multipart(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/webhooks/dropbox-sign",
            files={"json": (None, json.dumps({"event": {"event_type": "callback_test"}}))},
        )

        assert response.status_code == 200
        assert response.text == "Hello API Event Received"

    async def test_dropbox_sign_invalid_payload(self, async_client: AsyncClient):
        response = await async_client.post(
            f"{API}/webhooks/dropbox-sign", content=b"[1, 2]", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
