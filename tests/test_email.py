"""
Tests for email templates and the Resend-backed email service.
"""

import json
import pytest
import httpx

from app.clients.resend import ResendClient
from app.services.email import EmailService, render_email, format_status, get_status_color, EMAIL_TEMPLATES
from app.utils.exceptions import ValidationError
from tests.conftest import mock_transport, json_response


class TestTemplateHelpers:

    def test_format_status(self):
        assert format_status("in_progress") == "In Progress"
        assert format_status("pending") == "Pending"
        assert format_status("") == ""

    def test_status_color_has_default(self):
        assert get_status_color("no-such-status").startswith("#")


class TestRenderEmail:
    """Test template rendering."""

    def test_all_templates_render(self):
        for template in EMAIL_TEMPLATES:
            subject, html = render_email(template, {})
            assert subject
            assert html.startswith("<!DOCTYPE html>")

    def test_payment_received(self):
        subject, html = render_email("payment_received", {
            "amount": 1450,
            "propertyName": "Maple Court",
            "unitNumber": "1A",
        })

        assert "1450.00" in html
        assert "Maple Court" in html

    def test_values_are_escaped(self):
        subject, html = render_email("maintenance_created", {
            "title": "<script>alert(1)</script>",
            "description": "Leaky & loud",
        })

        assert "<script>" not in subject
        assert "&lt;script&gt;" in subject
        assert "<script>" not in html
        assert "Leaky &amp; loud" in html

    def test_applicant_invited_includes_link(self):
        subject, html = render_email("applicant_invited", {
            "propertyName": "Maple Court",
            "propertyAddress": "12 Maple St",
            "applicationUrl": "https://tenant-mate.vercel.app/apply/abc",
        })

        assert subject == "You're Invited to Apply at Maple Court"
        assert "https://tenant-mate.vercel.app/apply/abc" in html

    def test_unknown_template(self):
        with pytest.raises(ValidationError):
            render_email("nope", {})


class TestEmailService:
    """Test sending through Resend."""

    async def test_not_configured(self):
        service = EmailService(ResendClient(api_key=""))

        result = await service.send_template("tenant@test.com", "payment_received", {"amount": 10})

        assert result == {"success": False, "error": "Email service not configured"}

    async def test_unknown_template_raises_even_when_unconfigured(self):
        service = EmailService(ResendClient(api_key=""))
        with pytest.raises(ValidationError):
            await service.send_template("tenant@test.com", "nope", {})

    async def test_sends_rendered_email(self):
        calls = []
        transport = mock_transport(lambda request: json_response(200, {"id": "email_123"}), calls)
        service = EmailService(ResendClient(api_key="re_test", api_url="https://resend.test/emails", transport=transport))

        result = await service.send_template("tenant@test.com", "tenant_assigned", {"propertyName": "Maple Court"})

        assert result == {"success": True, "id": "email_123"}
        assert len(calls) == 1
        request = calls[0]
        assert request.headers["Authorization"] == "Bearer re_test"
        body = json.loads(request.content)
        assert body["to"] == ["tenant@test.com"]
        assert "Maple Court" in body["html"]
        assert body["from"].endswith(">")

    async def test_provider_failure_is_reported(self):
        transport = httpx.MockTransport(lambda request: json_response(422, {"message": "Invalid to"}))
        service = EmailService(ResendClient(api_key="re_test", api_url="https://resend.test/emails", transport=transport))

        result = await service.send_template("tenant@test.com", "payment_received", {"amount": 10})

        assert result == {"success": False, "error": "Failed to send email"}
