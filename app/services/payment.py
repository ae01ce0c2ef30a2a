"""
Rent payment service: Stripe Checkout and billing portal sessions,
payment history, HTML receipts and the payment audit log.
"""

from typing import Any, Dict, List, Optional, Tuple
from datetime import date, datetime, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from app.clients.stripe import StripeClient
from app.config import settings
from app.repositories.payment import RentPaymentRepository, StripeAccountRepository
from app.models.payment import (
    RentPayment,
    RentPaymentStatus,
    PaymentMethodKind,
    PaymentAuditLog,
    PaymentReceipt,
)
from app.models.user import User
from app.services.property import PropertyService
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    BadRequestError,
    ExternalServiceError
)
from app.utils.security import escape_html, resolve_origin, to_cents, validate_payment_amount
from app.utils.validators import ValidationUtils
import asyncio
import uuid
import logging

logger = logging.getLogger(__name__)

CUSTOMER_LOOKUP_ATTEMPTS = 3


def generate_invoice_number(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"INV-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def render_receipt_html(
    receipt_number: str,
    property_name: str,
    unit_number: str,
    payment_date: date,
    payment_method: Optional[str],
    amount: Any
) -> str:
    """Standalone HTML receipt. Every interpolated value is escaped."""
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="UTF-8">
    <title>Payment Receipt</title>
    <style>
      body {{ font-family: Arial, sans-serif; max-width: 800px; margin: 0 auto; padding: 20px; }}
      .receipt {{ border: 1px solid #ddd; padding: 20px; margin-top: 20px; }}
      .header {{ text-align: center; margin-bottom: 20px; }}
      .details {{ margin-bottom: 20px; }}
      .amount {{ font-size: 24px; font-weight: bold; text-align: center; margin: 20px 0; }}
    </style>
  </head>
  <body>
    <div class="receipt">
      <div class="header">
        <h1>Payment Receipt</h1>
        <p>Receipt #: {escape_html(receipt_number)}</p>
      </div>
      <div class="details">
        <p><strong>Property:</strong> {escape_html(property_name)}</p>
        <p><strong>Unit:</strong> {escape_html(unit_number)}</p>
        <p><strong>Date:</strong> {escape_html(payment_date.strftime('%m/%d/%Y'))}</p>
        <p><strong>Payment Method:</strong> {escape_html(payment_method or 'N/A')}</p>
      </div>
      <div class="amount">
        Amount Paid: ${escape_html(f'{Decimal(str(amount)):.2f}')}
      </div>
      <hr>
      <div style="text-align: center; margin-top: 20px;">
        <p>Thank you for your payment!</p>
      </div>
    </div>
  </body>
</html>
"""


class PaymentService:

    def __init__(
        self,
        db_session: AsyncSession,
        stripe_client: Optional[StripeClient] = None,
        property_service: Optional[PropertyService] = None,
        retry_delay: float = 1.0
    ):
        self.db = db_session
        self.payment_repo = RentPaymentRepository(db_session)
        self.stripe_account_repo = StripeAccountRepository(db_session)
        self.stripe = stripe_client or StripeClient()
        self.property_service = property_service or PropertyService(db_session)
        self.retry_delay = retry_delay

    async def log_payment_event(
        self,
        user_id: Optional[uuid.UUID],
        event_type: str,
        entity_type: str,
        entity_id: Any,
        changes: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None
    ) -> PaymentAuditLog:
        entry = await self.payment_repo.add_audit_entry({
            "user_id": user_id,
            "event_type": event_type,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "changes": changes,
            "ip_address": ip_address,
        })
        logger.info(f"Payment audit: {event_type} on {entity_type} {entity_id}")
        return entry

    async def get_or_create_customer(self, user: User) -> str:
        """Stripe customer id for the user, looked up by email or created, and stored on the user."""
        if user.stripe_customer_id:
            return user.stripe_customer_id

        customer = await self.stripe.find_customer_by_email(user.email)
        if customer:
            logger.info(f"Found existing Stripe customer {customer['id']} for {user.email}")
        else:
            customer = await self.stripe.create_customer(user.email, {"tenant_id": str(user.id)})
            logger.info(f"Created Stripe customer {customer['id']} for {user.email}")

        user.stripe_customer_id = customer["id"]
        await self.property_service.user_repo.save(user)
        return customer["id"]

    async def create_checkout_session(
        self,
        current_user: User,
        unit_id: str,
        amount: Any,
        origin: Optional[str] = None,
        due_date: Optional[date] = None,
        ip_address: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Start a card payment of rent through Stripe Checkout, routed to the
        property's connected account minus the platform fee.

        Returns:
            Dict with url, payment_id and transaction_id

        Raises:
            PaymentValidationError: If the amount is invalid
            ForbiddenError: If the caller has no active assignment on the unit
            BadRequestError: If the property can't take card payments yet
        """
        amount = validate_payment_amount(amount)
        if not unit_id:
            raise BadRequestError("Unit ID is required")
        unit_uuid = ValidationUtils.validate_uuid(unit_id, "unit_id")

        assignment = await self.property_service.property_repo.get_tenant_assignment(current_user.id, unit_uuid)
        if not assignment:
            raise ForbiddenError("No active tenant assignment found for this unit")

        row = await self.property_service.property_repo.get_unit_with_property(unit_uuid)
        if not row:
            raise NotFoundError("Unit", unit_id)
        unit, property_obj = row

        stripe_account = await self.stripe_account_repo.get_active_for_property(property_obj.id)
        if not stripe_account:
            raise BadRequestError("Property manager has not set up payments")
        if not stripe_account.is_ready_for_payments:
            logger.warning(
                f"Stripe account {stripe_account.stripe_account_id} not ready: "
                f"{stripe_account.account_status.value}/{stripe_account.verification_status.value}"
            )
            raise BadRequestError("Property manager's Stripe account is not fully verified")

        try:
            customer_id = await self.get_or_create_customer(current_user)

            payment = await self.payment_repo.create({
                "tenant_id": current_user.id,
                "unit_id": unit_uuid,
                "amount": Decimal(str(amount)),
                "due_date": due_date or date.today(),
                "status": RentPaymentStatus.PENDING,
                "payment_method": PaymentMethodKind.CARD,
                "invoice_number": generate_invoice_number(),
            })

            fee_cents = to_cents(amount * settings.platform_fee_percent / 100)
            transaction = await self.payment_repo.create_transaction({
                "rent_payment_id": payment.id,
                "amount": Decimal(str(amount)),
                "platform_fee": Decimal(fee_cents) / 100,
                "validation_status": "pending",
            })

            base_url = resolve_origin(origin)
            session = await self.stripe.create_checkout_session({
                "customer": customer_id,
                "payment_method_types": ["card"],
                "line_items": [{
                    "price_data": {
                        "currency": "usd",
                        "product_data": {
                            "name": "Rent Payment",
                            "description": f"Rent payment for {property_obj.name} unit {unit.unit_number}",
                        },
                        "unit_amount": to_cents(amount),
                    },
                    "quantity": 1,
                }],
                "mode": "payment",
                "success_url": f"{base_url}/payments?success=true",
                "cancel_url": f"{base_url}/payments?canceled=true",
                "metadata": {
                    "payment_id": str(payment.id),
                    "transaction_id": str(transaction.id),
                    "tenant_id": str(current_user.id),
                    "unit_id": str(unit_uuid),
                },
                "payment_intent_data": {
                    "application_fee_amount": fee_cents,
                    "transfer_data": {"destination": stripe_account.stripe_account_id},
                    "metadata": {
                        "payment_id": str(payment.id),
                        "transaction_id": str(transaction.id),
                    },
                },
            })

            transaction.stripe_session_id = session.get("id")
            if isinstance(session.get("payment_intent"), str):
                transaction.stripe_payment_intent_id = session["payment_intent"]
            await self.payment_repo.save(transaction)

            await self.log_payment_event(
                current_user.id,
                "checkout_session_created",
                "rent_payment",
                payment.id,
                {"amount": amount, "session_id": session.get("id"), "transaction_id": str(transaction.id)},
                ip_address,
            )
            logger.info(f"Checkout session {session.get('id')} created for payment {payment.id}")

            return {
                "url": session["url"],
                "payment_id": str(payment.id),
                "transaction_id": str(transaction.id),
            }
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Checkout session creation failed for {current_user.id}: {e}")
            raise BadRequestError(f"Failed to create checkout session: {str(e)}")

    async def create_portal_session(self, current_user: User, return_url: Optional[str]) -> Dict[str, str]:
        """
        Billing portal session for the caller's Stripe customer.
        The customer lookup is retried before giving up.
        """
        if not return_url or not str(return_url).strip():
            raise BadRequestError("Return URL is required")
        try:
            return_url = ValidationUtils.validate_http_url(return_url, "return_url")
        except APIException:
            raise BadRequestError("Invalid return URL")

        customer_id = None
        for attempt in range(1, CUSTOMER_LOOKUP_ATTEMPTS + 1):
            try:
                customer_id = await self.get_or_create_customer(current_user)
                break
            except ExternalServiceError as e:
                if attempt == CUSTOMER_LOOKUP_ATTEMPTS:
                    logger.error(f"All retries failed for customer lookup of {current_user.email}: {e.detail}")
                    raise
                logger.warning(f"Retry attempt {attempt} for customer lookup of {current_user.email}")
                await asyncio.sleep(self.retry_delay)

        session = await self.stripe.create_portal_session(
            customer_id,
            return_url,
            settings.stripe_portal_configuration_id,
        )
        logger.info(f"Portal session created for {current_user.email}")
        return {"url": session["url"]}

    async def get_payment_history(
        self,
        current_user: User,
        status: Optional[RentPaymentStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> Tuple[List[RentPayment], int]:
        skip, limit = ValidationUtils.validate_pagination(page, page_size)
        if current_user.is_tenant:
            return await self.payment_repo.history(None, current_user.id, status, skip, limit)
        property_ids = await self.property_service.managed_property_ids(current_user)
        return await self.payment_repo.history(property_ids, None, status, skip, limit)

    async def get_payment(self, payment_id: uuid.UUID, current_user: User) -> RentPayment:
        """
        Raises:
            NotFoundError: If the payment doesn't exist
            ForbiddenError: If the caller is neither the paying tenant nor the property's manager
        """
        payment = await self.payment_repo.get_by_id(payment_id)
        if not payment:
            raise NotFoundError("Payment", str(payment_id))
        if payment.tenant_id == current_user.id:
            return payment

        row = await self.property_service.property_repo.get_unit_with_property(payment.unit_id)
        if not row or not current_user.can_manage_property(row[1].property_manager_id):
            raise ForbiddenError("Unauthorized")
        return payment

    async def generate_receipt(self, payment_id: uuid.UUID, current_user: User) -> Tuple[str, PaymentReceipt]:
        """
        Render the receipt HTML and record the receipt, numbered RCP-{invoice}.

        Returns:
            Tuple of (html, receipt)
        """
        payment = await self.get_payment(payment_id, current_user)
        row = await self.property_service.property_repo.get_unit_with_property(payment.unit_id)
        unit, property_obj = row

        receipt_number = f"RCP-{payment.invoice_number}"
        paid_on = (payment.paid_at or payment.created_at).date()
        html = render_receipt_html(
            receipt_number,
            property_obj.name,
            unit.unit_number,
            paid_on,
            payment.payment_method.value if payment.payment_method else None,
            payment.amount,
        )

        receipt = await self.payment_repo.get_receipt(payment.id)
        if not receipt:
            receipt = await self.payment_repo.create_receipt({
                "rent_payment_id": payment.id,
                "receipt_number": receipt_number,
                "generated_by": current_user.id,
            })
            logger.info(f"Receipt {receipt_number} generated by {current_user.email}")

        return html, receipt
