"""
Stripe webhook processing.

Events are verified against the Stripe-Signature header, stored once per
event id and dispatched by type. Redelivered events are acknowledged without
being processed again; events whose processing failed are retried on
redelivery.
"""

from typing import Any, Callable, Dict, Optional, Tuple
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.repositories.payment import RentPaymentRepository, PaymentMethodRepository, StripeAccountRepository
from app.repositories.property import PropertyRepository
from app.repositories.user import UserRepository
from app.repositories.webhook import WebhookEventRepository
from app.models.payment import (
    PaymentTransaction,
    RentPaymentStatus,
    TransactionStatus,
    StoredMethodType,
    StoredMethodStatus,
    ConnectAccountStatus,
    VerificationStatus,
)
from app.models.user import OnboardingStatus
from app.models.webhook import WebhookProvider
from app.services.email import EmailService
from app.services.stripe_connect import apply_account_state
from app.utils.exceptions import BadRequestError, InternalServerError, NotFoundError, ServiceNotConfiguredError
from app.utils.security import compute_hmac_sha256
import hmac
import json
import time
import uuid
import logging

logger = logging.getLogger(__name__)

STRIPE_PROVIDER = "stripe"


def parse_signature_header(header: str) -> Tuple[Optional[int], list]:
    """Split 't=...,v1=...,v1=...' into (timestamp, [v1 signatures])."""
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                timestamp = None
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


def verify_stripe_signature(
    payload: bytes,
    header: Optional[str],
    secret: str,
    tolerance: int = 300,
    now: Optional[float] = None
) -> None:
    """
    Check a Stripe-Signature header: HMAC-SHA256 of '{t}.{body}' under the
    endpoint secret, with t no further than tolerance seconds from now.

    Raises:
        BadRequestError: If the header is missing, malformed, stale or doesn't match
    """
    if not header:
        raise BadRequestError("No signature")

    timestamp, signatures = parse_signature_header(header)
    if timestamp is None or not signatures:
        raise BadRequestError("Webhook Error: Unable to extract timestamp and signatures from header")

    signed_payload = f"{timestamp}.".encode("utf-8") + payload
    expected = compute_hmac_sha256(secret, signed_payload)
    if not any(hmac.compare_digest(expected, signature) for signature in signatures):
        raise BadRequestError("Webhook Error: No signatures found matching the expected signature for payload")

    now = time.time() if now is None else now
    if abs(now - timestamp) > tolerance:
        raise BadRequestError("Webhook Error: Timestamp outside the tolerance zone")


class StripeWebhookService:

    def __init__(self, db_session: AsyncSession, email_service: Optional[EmailService] = None):
        self.db = db_session
        self.event_repo = WebhookEventRepository(db_session)
        self.payment_repo = RentPaymentRepository(db_session)
        self.method_repo = PaymentMethodRepository(db_session)
        self.stripe_account_repo = StripeAccountRepository(db_session)
        self.property_repo = PropertyRepository(db_session)
        self.user_repo = UserRepository(db_session)
        self.email_service = email_service or EmailService()

        self.handlers: Dict[str, Callable] = {
            "account.updated": self._account_updated,
            "account.application.deauthorized": self._account_deauthorized,
            "checkout.session.completed": self._checkout_completed,
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "payment_method.attached": self._method_attached,
            "payment_method.detached": self._method_detached,
            "payment_method.updated": self._method_updated,
        }

    async def handle(self, payload: bytes, signature_header: Optional[str], now: Optional[float] = None) -> Dict[str, Any]:
        """
        Verify, store and dispatch one delivery.

        Raises:
            ServiceNotConfiguredError: If no webhook secret is configured
            BadRequestError: If the signature can't be verified or the body isn't an event
            InternalServerError: If processing the event failed
        """
        if not settings.stripe_webhook_secret:
            raise ServiceNotConfiguredError("Stripe webhooks")

        verify_stripe_signature(
            payload,
            signature_header,
            settings.stripe_webhook_secret,
            settings.stripe_webhook_tolerance_seconds,
            now,
        )

        try:
            event = json.loads(payload)
        except ValueError:
            raise BadRequestError("Invalid webhook payload")
        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise BadRequestError("Invalid webhook payload")

        event_type = event["type"]
        obj = (event.get("data") or {}).get("object") or {}
        stored, created = await self.event_repo.record_event(
            WebhookProvider.STRIPE, event["id"], event_type, event, obj.get("id")
        )
        if not created and stored.processed:
            logger.info(f"Stripe event {event['id']} already processed, skipping")
            return {"received": True}

        handler = self.handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled Stripe event type: {event_type}")
            await self.event_repo.mark_processed(stored)
            return {"received": True}

        try:
            await handler(obj)
        except Exception as e:
            logger.error(f"Error processing Stripe event {event['id']} ({event_type}): {e}")
            await self.event_repo.mark_processed(stored, error=str(e))
            raise InternalServerError("Webhook processing failed")

        await self.event_repo.mark_processed(stored)
        logger.info(f"Processed Stripe event {event['id']} ({event_type})")
        return {"received": True}

    async def _audit(self, event_type: str, entity_type: str, entity_id: Any, changes: Dict[str, Any], user_id=None):
        await self.payment_repo.add_audit_entry({
            "user_id": user_id,
            "event_type": event_type,
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "changes": changes,
        })

    # Connect accounts

    async def _account_updated(self, account: Dict[str, Any]) -> None:
        account_id = account["id"]
        for link in await self.stripe_account_repo.list_by_account(account_id):
            apply_account_state(link, account)
            await self.stripe_account_repo.save(link)

        manager = await self.user_repo.get_by_connect_account(account_id)
        if manager:
            manager.stripe_onboarding_status = (
                OnboardingStatus.COMPLETED if account.get("charges_enabled") else OnboardingStatus.IN_PROGRESS
            )
            await self.user_repo.save(manager)

        await self._audit("account.updated", "stripe_account", account_id, {
            "charges_enabled": account.get("charges_enabled"),
            "payouts_enabled": account.get("payouts_enabled"),
            "details_submitted": account.get("details_submitted"),
            "requirements": account.get("requirements"),
        }, manager.id if manager else None)

    async def _account_deauthorized(self, account: Dict[str, Any]) -> None:
        account_id = account["id"]
        for link in await self.stripe_account_repo.list_by_account(account_id):
            link.is_active = False
            link.account_status = ConnectAccountStatus.INACTIVE
            link.verification_status = VerificationStatus.PENDING
            await self.stripe_account_repo.save(link)

        manager = await self.user_repo.get_by_connect_account(account_id)
        if manager:
            manager.stripe_connect_account_id = None
            manager.stripe_onboarding_status = OnboardingStatus.PENDING
            await self.user_repo.save(manager)

        await self._audit("account.deauthorized", "stripe_account", account_id, {
            "stripe_connect_account_id": None,
            "deauthorized_at": datetime.now(timezone.utc).isoformat(),
        }, manager.id if manager else None)

    # Payments

    async def _checkout_completed(self, session: Dict[str, Any]) -> None:
        transaction = await self.payment_repo.get_transaction_by_session(session["id"])
        if not transaction:
            transaction_id = _as_uuid((session.get("metadata") or {}).get("transaction_id"))
            if transaction_id:
                transaction = await self.payment_repo.get_transaction(transaction_id)
        if not transaction:
            logger.warning(f"No transaction for checkout session {session['id']}")
            return

        if session.get("payment_intent"):
            transaction.stripe_payment_intent_id = session["payment_intent"]
        transaction.stripe_session_id = session["id"]
        await self.payment_repo.save(transaction)

        await self._audit("checkout.session.completed", "payment", transaction.rent_payment_id, {
            "session_id": session["id"],
            "payment_intent_id": session.get("payment_intent"),
        })

    async def _transaction_for_intent(self, intent: Dict[str, Any]) -> PaymentTransaction:
        """
        Resolve the transaction by intent id, falling back to the transaction_id
        metadata set at checkout when checkout.session.completed hasn't linked it yet.

        Raises:
            NotFoundError: If neither lookup finds a transaction, so the event is retried
        """
        transaction = await self.payment_repo.get_transaction_by_intent(intent["id"])
        if transaction:
            return transaction

        transaction_id = _as_uuid((intent.get("metadata") or {}).get("transaction_id"))
        if transaction_id:
            transaction = await self.payment_repo.get_transaction(transaction_id)
        if not transaction:
            logger.warning(f"No transaction for payment intent {intent['id']}")
            raise NotFoundError("Transaction for payment intent", intent["id"])

        transaction.stripe_payment_intent_id = intent["id"]
        return transaction

    async def _payment_succeeded(self, intent: Dict[str, Any]) -> None:
        transaction = await self._transaction_for_intent(intent)

        transaction.status = TransactionStatus.SUCCEEDED
        transaction.validation_status = "validated"
        await self.payment_repo.save(transaction)

        payment = await self.payment_repo.get_by_id(transaction.rent_payment_id)
        payment.status = RentPaymentStatus.PAID
        payment.paid_at = datetime.now(timezone.utc)
        payment = await self.payment_repo.save(payment)

        await self._audit("payment_succeeded", "payment", payment.id, {
            "payment_intent_id": intent["id"],
            "amount": intent.get("amount"),
            "status": "succeeded",
        }, payment.tenant_id)

        row = await self.property_repo.get_unit_with_property(payment.unit_id)
        if row:
            unit, property_obj = row
            landlord = await self.user_repo.get_by_id(property_obj.property_manager_id)
            if landlord:
                await self.email_service.send_template(landlord.email, "payment_received", {
                    "amount": float(payment.amount),
                    "paymentDate": payment.paid_at.date().isoformat(),
                    "propertyName": property_obj.name,
                    "unitNumber": unit.unit_number,
                    "invoiceNumber": payment.invoice_number,
                })

    async def _payment_failed(self, intent: Dict[str, Any]) -> None:
        transaction = await self._transaction_for_intent(intent)

        last_error = intent.get("last_payment_error") or {}
        transaction.status = TransactionStatus.FAILED
        transaction.validation_errors = {
            "message": last_error.get("message") or "Payment failed",
            "code": last_error.get("code") or "unknown",
        }
        await self.payment_repo.save(transaction)

        payment = await self.payment_repo.get_by_id(transaction.rent_payment_id)
        payment.status = RentPaymentStatus.FAILED
        await self.payment_repo.save(payment)

        await self._audit("payment_failed", "payment", payment.id, {
            "payment_intent_id": intent["id"],
            "error": transaction.validation_errors,
            "status": "failed",
        }, payment.tenant_id)

    # Stored payment methods

    async def _method_attached(self, method: Dict[str, Any]) -> None:
        user = await self.user_repo.get_by_stripe_customer(method.get("customer") or "")
        if not user:
            logger.warning(f"No user for Stripe customer {method.get('customer')}")
            return

        stored = await self.method_repo.get_by_provider_id(method["id"])
        values = _card_fields(method)
        values["status"] = StoredMethodStatus.ACTIVE
        if stored:
            for field, value in values.items():
                setattr(stored, field, value)
            stored = await self.method_repo.save(stored)
        else:
            stored = await self.method_repo.create({
                "user_id": user.id,
                "provider": STRIPE_PROVIDER,
                "provider_method_id": method["id"],
                "is_default": False,
                **values,
            })

        await self._audit("payment_method.attached", "payment_method", stored.id, {
            "payment_method_id": method["id"],
            "type": method.get("type"),
        }, user.id)

    async def _method_detached(self, method: Dict[str, Any]) -> None:
        stored = await self.method_repo.get_by_provider_id(method["id"])
        if not stored:
            logger.warning(f"Detached payment method {method['id']} is not stored")
            return

        stored.status = StoredMethodStatus.REMOVED
        stored.is_default = False
        await self.method_repo.save(stored)
        await self._audit("payment_method.detached", "payment_method", stored.id, {
            "payment_method_id": method["id"],
            "detached_at": datetime.now(timezone.utc).isoformat(),
        }, stored.user_id)

    async def _method_updated(self, method: Dict[str, Any]) -> None:
        stored = await self.method_repo.get_by_provider_id(method["id"])
        if not stored:
            logger.warning(f"Updated payment method {method['id']} is not stored")
            return

        for field, value in _card_fields(method).items():
            setattr(stored, field, value)
        await self.method_repo.save(stored)
        await self._audit("payment_method.updated", "payment_method", stored.id, {
            "payment_method_id": method["id"],
            "type": method.get("type"),
        }, stored.user_id)


def _card_fields(method: Dict[str, Any]) -> Dict[str, Any]:
    card = method.get("card") or {}
    bank = method.get("us_bank_account") or {}
    method_type = StoredMethodType.CARD if method.get("type", "card") == "card" else StoredMethodType.BANK_ACCOUNT
    return {
        "method_type": method_type,
        "last4": card.get("last4") or bank.get("last4"),
        "brand": card.get("brand"),
        "exp_month": card.get("exp_month"),
        "exp_year": card.get("exp_year"),
        "bank_name": bank.get("bank_name"),
    }


def _as_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None
