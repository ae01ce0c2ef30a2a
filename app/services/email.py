"""
Templated transactional email sent through Resend.
Every value interpolated into a template is HTML-escaped.
"""

from typing import Any, Callable, Dict, Optional, Tuple
import re
import logging

from app.clients.resend import ResendClient
from app.config import settings
from app.utils.exceptions import ExternalServiceError, ValidationError
from app.utils.security import escape_html

logger = logging.getLogger(__name__)

APP_NAME = "TenantMate"
NOT_CONFIGURED_ERROR = "Email service not configured"

STATUS_COLORS = {
    "pending": "#f59e0b",
    "in_progress": "#3b82f6",
    "completed": "#22c55e",
    "cancelled": "#6b7280",
}
DEFAULT_STATUS_COLOR = "#6b7280"

BOX_STYLE = "background: #f5f5f5; padding: 16px; border-radius: 8px; margin: 16px 0;"
BUTTON_STYLE = (
    "display: inline-block; background: linear-gradient(135deg, #9b87f5 0%, #7c3aed 100%); "
    "color: white; text-decoration: none; padding: 14px 32px; border-radius: 8px; "
    "font-weight: 600; font-size: 16px;"
)


def get_status_color(status: str) -> str:
    return STATUS_COLORS.get(status, DEFAULT_STATUS_COLOR)


def format_status(status: str) -> str:
    """'in_progress' -> 'In Progress'."""
    return re.sub(r"\b\w", lambda match: match.group().upper(), (status or "").replace("_", " ", 1))


def _value(data: Dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    return escape_html(default if value is None or value == "" else value)


def _money(data: Dict[str, Any], key: str) -> str:
    try:
        return f"{float(data.get(key) or 0):.2f}"
    except (TypeError, ValueError):
        return "0.00"


def _maintenance_created(data: Dict[str, Any]) -> Tuple[str, str]:
    subject = f"New Maintenance Request: {_value(data, 'title')}"
    html = f"""
      <h2>New Maintenance Request Submitted</h2>
      <p>A new maintenance request has been submitted for your property.</p>
      <div style="{BOX_STYLE}">
        <p><strong>Title:</strong> {_value(data, 'title')}</p>
        <p><strong>Description:</strong> {_value(data, 'description')}</p>
        <p><strong>Priority:</strong> {_value(data, 'priority')}</p>
        <p><strong>Property:</strong> {_value(data, 'propertyName')}</p>
        <p><strong>Unit:</strong> {_value(data, 'unitNumber')}</p>
        <p><strong>Submitted by:</strong> {_value(data, 'tenantName')}</p>
      </div>
      <p>Please log in to your dashboard to review and respond to this request.</p>
    """
    return subject, html


def _maintenance_status_changed(data: Dict[str, Any]) -> Tuple[str, str]:
    status = str(data.get("status") or "")
    subject = f"Maintenance Request Update: {_value(data, 'title')}"
    html = f"""
      <h2>Maintenance Request Status Updated</h2>
      <p>Your maintenance request status has been updated.</p>
      <div style="{BOX_STYLE}">
        <p><strong>Title:</strong> {_value(data, 'title')}</p>
        <p><strong>New Status:</strong> <span style="color: {get_status_color(status)}; font-weight: bold;">{escape_html(format_status(status))}</span></p>
        <p><strong>Property:</strong> {_value(data, 'propertyName')}</p>
        <p><strong>Unit:</strong> {_value(data, 'unitNumber')}</p>
      </div>
      <p>Log in to your dashboard to view more details.</p>
    """
    return subject, html


def _payment_received(data: Dict[str, Any]) -> Tuple[str, str]:
    amount = _money(data, "amount")
    subject = f"Payment Received - ${amount}"
    html = f"""
      <h2>Payment Confirmation</h2>
      <p>We have received your rent payment. Thank you!</p>
      <div style="{BOX_STYLE}">
        <p><strong>Amount:</strong> ${amount}</p>
        <p><strong>Payment Date:</strong> {_value(data, 'paymentDate')}</p>
        <p><strong>Property:</strong> {_value(data, 'propertyName')}</p>
        <p><strong>Unit:</strong> {_value(data, 'unitNumber')}</p>
        <p><strong>Invoice #:</strong> {_value(data, 'invoiceNumber', 'N/A')}</p>
      </div>
      <p>A receipt has been generated and is available in your dashboard.</p>
    """
    return subject, html


def _tenant_assigned(data: Dict[str, Any]) -> Tuple[str, str]:
    subject = f"Welcome to {_value(data, 'propertyName')}!"
    html = f"""
      <h2>Welcome to Your New Home!</h2>
      <p>You have been assigned to a new unit. Here are your details:</p>
      <div style="{BOX_STYLE}">
        <p><strong>Property:</strong> {_value(data, 'propertyName')}</p>
        <p><strong>Unit:</strong> {_value(data, 'unitNumber')}</p>
        <p><strong>Monthly Rent:</strong> ${_money(data, 'monthlyRent')}</p>
        <p><strong>Lease Start:</strong> {_value(data, 'leaseStart')}</p>
        <p><strong>Lease End:</strong> {_value(data, 'leaseEnd')}</p>
      </div>
      <p>Log in to your tenant portal to:</p>
      <ul>
        <li>View your lease details</li>
        <li>Submit maintenance requests</li>
        <li>Make rent payments</li>
        <li>Access important documents</li>
      </ul>
    """
    return subject, html


def _applicant_invited(data: Dict[str, Any]) -> Tuple[str, str]:
    unit_line = ""
    if data.get("unitNumber"):
        unit_line = f"<p><strong>Unit:</strong> {_value(data, 'unitNumber')}</p>"

    subject = f"You're Invited to Apply at {_value(data, 'propertyName')}"
    html = f"""
      <h2>You're Invited to Apply!</h2>
      <p>Great news! You've been invited to apply for a rental property.</p>
      <div style="{BOX_STYLE}">
        <p><strong>Property:</strong> {_value(data, 'propertyName')}</p>
        <p><strong>Address:</strong> {_value(data, 'propertyAddress')}</p>
        {unit_line}
      </div>
      <p>Click the button below to complete your application:</p>
      <div style="text-align: center; margin: 24px 0;">
        <a href="{_value(data, 'applicationUrl', '#')}" style="{BUTTON_STYLE}">
          Start Application
        </a>
      </div>
      <p style="color: #6b7280; font-size: 14px;">If the button doesn't work, copy and paste this link into your browser:</p>
      <p style="word-break: break-all; color: #6b7280; font-size: 14px;">{_value(data, 'applicationUrl')}</p>
    """
    return subject, html


EMAIL_TEMPLATES: Dict[str, Callable[[Dict[str, Any]], Tuple[str, str]]] = {
    "maintenance_created": _maintenance_created,
    "maintenance_status_changed": _maintenance_status_changed,
    "payment_received": _payment_received,
    "tenant_assigned": _tenant_assigned,
    "applicant_invited": _applicant_invited,
}


def wrap_layout(body: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: linear-gradient(135deg, #9b87f5 0%, #7c3aed 100%); padding: 24px; border-radius: 8px 8px 0 0; text-align: center;">
    <h1 style="color: white; margin: 0; font-size: 24px;">{APP_NAME}</h1>
  </div>
  <div style="background: white; padding: 24px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 8px 8px;">
    {body}
  </div>
  <div style="text-align: center; padding: 16px; color: #6b7280; font-size: 12px;">
    <p>This email was sent by {APP_NAME}. Please do not reply to this email.</p>
  </div>
</body>
</html>"""


def render_email(template: str, data: Optional[Dict[str, Any]] = None) -> Tuple[str, str]:
    """
    Render a template to (subject, full_html).

    Raises:
        ValidationError: If the template name is unknown
    """
    renderer = EMAIL_TEMPLATES.get(template)
    if renderer is None:
        raise ValidationError(
            f"Unknown email template: {template}",
            field_errors=[{"field": "template", "message": f"Must be one of: {', '.join(EMAIL_TEMPLATES)}"}]
        )
    subject, body = renderer(data or {})
    return subject, wrap_layout(body)


class EmailService:
    """Sends templated email. Delivery failures are reported, not raised."""

    def __init__(self, client: Optional[ResendClient] = None):
        self.client = client or ResendClient()

    @property
    def sender(self) -> str:
        return f"{APP_NAME} <{settings.from_email}>"

    async def send_template(self, to: str, template: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Render and send one email.

        Returns:
            {"success": True, "id": ...} or {"success": False, "error": ...}

        Raises:
            ValidationError: If the template name is unknown
        """
        subject, html = render_email(template, data)

        if not self.client.enabled():
            logger.info(f"Email '{template}' to {to} skipped: {NOT_CONFIGURED_ERROR}")
            return {"success": False, "error": NOT_CONFIGURED_ERROR}

        try:
            result = await self.client.send(self.sender, to, subject, html)
        except ExternalServiceError as e:
            logger.error(f"Failed to send '{template}' email to {to}: {e.detail}")
            return {"success": False, "error": "Failed to send email"}

        logger.info(f"Sent '{template}' email to {to}")
        return {"success": True, "id": result.get("id")}
