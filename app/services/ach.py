"""
ACH rent payments through Dwolla: customer onboarding, bank funding sources,
transfers from tenant to landlord and Dwolla webhook handling.
"""

from typing import Any, Dict, Optional, Tuple
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from app.clients.dwolla import DwollaClient, resource_id_from_url
from app.config import settings
from app.repositories.ach import PaymentProcessorRepository, DwollaTransferRepository
from app.repositories.payment import RentPaymentRepository, PaymentMethodRepository
from app.repositories.property import PropertyRepository
from app.repositories.webhook import WebhookEventRepository
from app.models.ach import PaymentProcessor, ProcessorStatus, DwollaTransfer, TransferStatus
from app.models.payment import RentPaymentStatus, PaymentMethodKind, StoredMethodType, StoredMethodStatus
from app.models.user import User
from app.models.webhook import WebhookProvider
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    ForbiddenError,
    BadRequestError,
    WebhookSignatureError
)
from app.utils.security import validate_payment_amount, verify_hmac_signature
from app.utils.validators import ValidationUtils
import json
import random
import time
import uuid
import logging

logger = logging.getLogger(__name__)

DWOLLA_PROVIDER = "dwolla"
TRANSFER_INITIATED_MESSAGE = "ACH transfer initiated. Funds typically arrive in 1-2 business days."
LANDLORD_NOT_READY_MESSAGE = "Landlord has not set up Dwolla. Please use card payment."


def generate_correlation_id(now_ms: Optional[int] = None) -> str:
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=9))
    return f"tm-{now_ms}-{suffix}"


class ACHService:

    def __init__(self, db_session: AsyncSession, dwolla_client: Optional[DwollaClient] = None):
        self.db = db_session
        self.dwolla = dwolla_client or DwollaClient()
        self.processor_repo = PaymentProcessorRepository(db_session)
        self.transfer_repo = DwollaTransferRepository(db_session)
        self.payment_repo = RentPaymentRepository(db_session)
        self.method_repo = PaymentMethodRepository(db_session)
        self.property_repo = PropertyRepository(db_session)

    async def get_processor(self, current_user: User) -> PaymentProcessor:
        processor = await self.processor_repo.get_for_user(current_user.id)
        if not processor:
            raise NotFoundError("Dwolla customer")
        return processor

    async def create_customer(
        self,
        current_user: User,
        customer_type: str = "personal",
        ip_address: Optional[str] = None
    ) -> Tuple[PaymentProcessor, bool]:
        """
        Create the caller's Dwolla customer. Calling again returns the existing one.

        Returns:
            Tuple of (processor, created)
        """
        existing = await self.processor_repo.get_for_user(current_user.id)
        if existing:
            logger.info(f"Dwolla customer already exists for {current_user.email}")
            return existing, False

        customer_url = await self.dwolla.create_customer(
            current_user.first_name,
            current_user.last_name,
            current_user.email,
            customer_type=customer_type,
            ip_address=ip_address,
            business_name=current_user.full_name if customer_type == "business" else None,
        )
        processor = await self.processor_repo.upsert_for_user(current_user.id, {
            "customer_id": resource_id_from_url(customer_url),
            "customer_url": customer_url,
            "customer_type": customer_type,
            "status": ProcessorStatus.PENDING,
            "verification_status": "unverified",
        })
        logger.info(f"Dwolla customer {processor.customer_id} created for {current_user.email}")
        return processor, True

    async def add_funding_source(
        self,
        current_user: User,
        routing_number: str,
        account_number: str,
        bank_account_type: str,
        name: str
    ) -> Dict[str, Any]:
        """
        Attach a bank account. Sandbox sources are treated as verified; elsewhere
        micro-deposits are started and the source stays pending until verified.
        """
        routing_number = ValidationUtils.validate_routing_number(routing_number)
        account_number = ValidationUtils.validate_account_number(account_number)
        processor = await self.get_processor(current_user)

        try:
            last4 = account_number[-4:]
            source_name = f"{name} ****{last4}"
            funding_source_url = await self.dwolla.create_funding_source(
                processor.customer_url, routing_number, account_number, bank_account_type, source_name
            )
            funding_source_id = resource_id_from_url(funding_source_url)

            sandbox = settings.is_dwolla_sandbox
            if not sandbox:
                await self.dwolla.initiate_micro_deposits(funding_source_url)

            processor = await self.processor_repo.upsert_for_user(current_user.id, {
                "funding_source_id": funding_source_id,
                "funding_source_url": funding_source_url,
                "funding_source_name": source_name,
                "verification_status": "verified" if sandbox else "pending",
                "status": ProcessorStatus.ACTIVE if sandbox else ProcessorStatus.PENDING,
            })

            if current_user.is_tenant:
                await self.method_repo.create({
                    "user_id": current_user.id,
                    "method_type": StoredMethodType.BANK_ACCOUNT,
                    "provider": DWOLLA_PROVIDER,
                    "provider_method_id": funding_source_id,
                    "last4": last4,
                    "bank_name": name,
                    "status": StoredMethodStatus.VERIFIED if sandbox else StoredMethodStatus.PENDING,
                })

            status = "verified" if sandbox else "pending_verification"
            logger.info(f"Funding source {funding_source_id} added for {current_user.email} ({status})")
            return {
                "funding_source_id": funding_source_id,
                "name": source_name,
                "status": status,
                "processor": processor,
            }
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to add funding source for {current_user.id}: {e}")
            raise BadRequestError(f"Failed to add funding source: {str(e)}")

    async def initiate_transfer(self, current_user: User, rent_payment_id: str) -> DwollaTransfer:
        """
        Pull the rent from the tenant's bank into the landlord's, less the ACH fee.

        Raises:
            ForbiddenError: If the caller isn't the payment's tenant
            BadRequestError: If either side isn't ready for ACH or the payment is settled
        """
        payment_id = ValidationUtils.validate_uuid(rent_payment_id, "rent_payment_id")
        payment = await self.payment_repo.get_by_id(payment_id)
        if not payment:
            raise NotFoundError("Payment", rent_payment_id)
        if payment.tenant_id != current_user.id:
            raise ForbiddenError("Unauthorized")
        if payment.status in (RentPaymentStatus.PAID, RentPaymentStatus.PROCESSING):
            raise BadRequestError(f"Payment is already {payment.status.value}")

        tenant_processor = await self.processor_repo.get_for_user(current_user.id)
        if not tenant_processor or not tenant_processor.can_transfer:
            raise BadRequestError("Please link a bank account first")

        row = await self.property_repo.get_unit_with_property(payment.unit_id)
        if not row:
            raise NotFoundError("Unit", str(payment.unit_id))
        _, property_obj = row
        landlord_processor = await self.processor_repo.get_for_user(property_obj.property_manager_id)
        if not landlord_processor or not landlord_processor.can_transfer:
            raise BadRequestError(LANDLORD_NOT_READY_MESSAGE)

        amount = Decimal(str(validate_payment_amount(payment.amount)))
        fee = Decimal(str(settings.dwolla_transfer_fee))
        correlation_id = generate_correlation_id()

        # Recorded before Dwolla moves any money; the webhook can find it by correlation id.
        transfer = await self.transfer_repo.create({
            "rent_payment_id": payment.id,
            "correlation_id": correlation_id,
            "source_funding_source": tenant_processor.funding_source_url,
            "destination_funding_source": landlord_processor.funding_source_url,
            "amount": amount,
            "fee": fee,
            "net_amount": amount - fee,
            "status": TransferStatus.PENDING,
        })

        try:
            transfer_url = await self.dwolla.create_transfer(
                tenant_processor.funding_source_url,
                landlord_processor.funding_source_url,
                float(amount),
                correlation_id,
            )
        except APIException as e:
            transfer.status = TransferStatus.FAILED
            transfer.failure_reason = str(e.detail)[:500]
            await self.transfer_repo.save(transfer)
            raise

        try:
            transfer.transfer_id = resource_id_from_url(transfer_url)
            transfer.transfer_url = transfer_url
            transfer = await self.transfer_repo.save(transfer)

            payment.status = RentPaymentStatus.PROCESSING
            payment.payment_method = PaymentMethodKind.ACH
            await self.payment_repo.save(payment)

            await self.payment_repo.add_audit_entry({
                "user_id": current_user.id,
                "event_type": "ach_transfer_initiated",
                "entity_type": "rent_payment",
                "entity_id": str(payment.id),
                "changes": {"transfer_id": transfer.transfer_id, "amount": float(amount), "fee": float(fee)},
            })
            logger.info(f"ACH transfer {transfer.transfer_id} initiated for payment {payment.id}")
            return transfer
        except APIException:
            raise
        except Exception as e:
            logger.error(
                f"Dwolla transfer {transfer_url} created but not fully recorded for payment {payment_id} "
                f"(correlation {correlation_id}): {e}"
            )
            raise BadRequestError(f"Failed to initiate transfer: {str(e)}")


class DwollaWebhookService:

    def __init__(self, db_session: AsyncSession, dwolla_client: Optional[DwollaClient] = None):
        self.db = db_session
        self.dwolla = dwolla_client or DwollaClient()
        self.event_repo = WebhookEventRepository(db_session)
        self.processor_repo = PaymentProcessorRepository(db_session)
        self.transfer_repo = DwollaTransferRepository(db_session)
        self.payment_repo = RentPaymentRepository(db_session)
        self.method_repo = PaymentMethodRepository(db_session)

        self.handlers = {
            "transfer_completed": self._transfer_completed,
            "customer_transfer_completed": self._transfer_completed,
            "transfer_failed": self._transfer_failed,
            "customer_transfer_failed": self._transfer_failed,
            "transfer_cancelled": self._transfer_cancelled,
            "customer_transfer_cancelled": self._transfer_cancelled,
            "customer_funding_source_verified": self._funding_source_verified,
            "customer_funding_source_removed": self._funding_source_removed,
            "customer_verified": self._customer_verified,
            "customer_suspended": self._customer_suspended,
        }

    def verify_signature(self, payload: bytes, signature: Optional[str]) -> None:
        """
        Raises:
            WebhookSignatureError: If a secret is configured and the signature doesn't match
        """
        secret = settings.dwolla_webhook_secret
        if not secret:
            logger.warning("DWOLLA_WEBHOOK_SECRET not set, skipping signature verification")
            return
        if not verify_hmac_signature(secret, payload, signature):
            logger.error("Invalid Dwolla webhook signature")
            raise WebhookSignatureError()

    async def handle(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Process one Dwolla notification. Processing failures are recorded on the
        stored event and reported in the body; Dwolla always gets a 200.
        """
        self.verify_signature(payload, signature)

        try:
            event = json.loads(payload)
            event_id = event["id"]
            topic = event["topic"]
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Malformed Dwolla webhook: {e}")
            return {"received": True, "error": "Processing error"}

        resource_url = ((event.get("_links") or {}).get("resource") or {}).get("href")
        resource_id = resource_id_from_url(resource_url) or event.get("resourceId")

        stored, created = await self.event_repo.record_event(
            WebhookProvider.DWOLLA, event_id, topic, event, resource_id
        )
        if not created and stored.processed:
            logger.info(f"Dwolla event {event_id} already processed")
            return {"received": True}

        handler = self.handlers.get(topic)
        try:
            if handler is None:
                logger.info(f"Unhandled Dwolla topic: {topic}")
            else:
                await handler(resource_id, event)
        except Exception as e:
            logger.error(f"Error processing Dwolla event {event_id} ({topic}): {e}")
            await self.event_repo.mark_processed(stored, error=str(e))
            return {"received": True, "error": "Processing error"}

        await self.event_repo.mark_processed(stored)
        return {"received": True}

    async def _transfer(self, transfer_id: Optional[str], event: Dict[str, Any]) -> Optional[DwollaTransfer]:
        """
        Local transfer for a Dwolla transfer id. A transfer recorded without its
        Dwolla id is matched through the correlation id on the Dwolla resource.
        """
        transfer = await self.transfer_repo.get_by_transfer_id(transfer_id) if transfer_id else None
        if transfer:
            return transfer

        resource_url = ((event.get("_links") or {}).get("resource") or {}).get("href")
        if transfer_id and resource_url and self.dwolla.enabled():
            resource = await self.dwolla.get(resource_url)
            correlation_id = resource.get("correlationId")
            transfer = await self.transfer_repo.get_by_correlation_id(correlation_id) if correlation_id else None
            if transfer:
                transfer.transfer_id = transfer_id
                transfer.transfer_url = resource_url
                logger.info(f"Matched Dwolla transfer {transfer_id} by correlation id {correlation_id}")
                return transfer

        logger.warning(f"Unknown Dwolla transfer {transfer_id}")
        return None

    async def _set_payment_status(self, rent_payment_id: uuid.UUID, status: RentPaymentStatus) -> None:
        payment = await self.payment_repo.get_by_id(rent_payment_id)
        if not payment:
            return
        payment.status = status
        if status == RentPaymentStatus.PAID:
            payment.paid_at = datetime.now(timezone.utc)
        await self.payment_repo.save(payment)

    async def _transfer_completed(self, transfer_id: Optional[str], event: Dict[str, Any]) -> None:
        transfer = await self._transfer(transfer_id, event)
        if not transfer:
            return
        transfer.status = TransferStatus.COMPLETED
        transfer.completed_at = datetime.now(timezone.utc)
        await self.transfer_repo.save(transfer)
        await self._set_payment_status(transfer.rent_payment_id, RentPaymentStatus.PAID)
        logger.info(f"Dwolla transfer {transfer_id} completed")

    async def _transfer_failed(self, transfer_id: Optional[str], event: Dict[str, Any]) -> None:
        transfer = await self._transfer(transfer_id, event)
        if not transfer:
            return
        failure = (event.get("_embedded") or {}).get("failure") or {}
        transfer.status = TransferStatus.FAILED
        transfer.failure_reason = (failure.get("description") or failure.get("code") or "Transfer failed")[:500]
        await self.transfer_repo.save(transfer)
        await self._set_payment_status(transfer.rent_payment_id, RentPaymentStatus.FAILED)
        logger.info(f"Dwolla transfer {transfer_id} failed: {transfer.failure_reason}")

    async def _transfer_cancelled(self, transfer_id: Optional[str], event: Dict[str, Any]) -> None:
        transfer = await self._transfer(transfer_id, event)
        if not transfer:
            return
        transfer.status = TransferStatus.CANCELLED
        await self.transfer_repo.save(transfer)
        await self._set_payment_status(transfer.rent_payment_id, RentPaymentStatus.PENDING)

    async def _funding_source_verified(self, funding_source_id: Optional[str], event: Dict[str, Any]) -> None:
        processor = await self.processor_repo.get_by_funding_source(funding_source_id) if funding_source_id else None
        if processor:
            processor.verification_status = "verified"
            processor.status = ProcessorStatus.ACTIVE
            await self.processor_repo.save(processor)

        method = await self.method_repo.get_by_provider_id(funding_source_id) if funding_source_id else None
        if method:
            method.status = StoredMethodStatus.VERIFIED
            await self.method_repo.save(method)

    async def _funding_source_removed(self, funding_source_id: Optional[str], event: Dict[str, Any]) -> None:
        processor = await self.processor_repo.get_by_funding_source(funding_source_id) if funding_source_id else None
        if processor:
            processor.funding_source_id = None
            processor.funding_source_url = None
            processor.funding_source_name = None
            processor.status = ProcessorStatus.PENDING
            await self.processor_repo.save(processor)

        method = await self.method_repo.get_by_provider_id(funding_source_id) if funding_source_id else None
        if method:
            method.status = StoredMethodStatus.REMOVED
            await self.method_repo.save(method)

    async def _customer_verified(self, customer_id: Optional[str], event: Dict[str, Any]) -> None:
        processor = await self.processor_repo.get_by_customer(customer_id) if customer_id else None
        if processor:
            processor.verification_status = "verified"
            await self.processor_repo.save(processor)

    async def _customer_suspended(self, customer_id: Optional[str], event: Dict[str, Any]) -> None:
        processor = await self.processor_repo.get_by_customer(customer_id) if customer_id else None
        if processor:
            processor.status = ProcessorStatus.SUSPENDED
            await self.processor_repo.save(processor)
