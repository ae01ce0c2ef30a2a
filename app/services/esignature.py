"""
Lease e-signature through Dropbox Sign: sending embedded signature requests,
issuing signing URLs and applying Dropbox Sign callbacks to leases.
"""

from typing import Any, Dict, Optional
from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy.ext.asyncio import AsyncSession
from app.clients.dropbox_sign import DropboxSignClient, extract_signatures
from app.config import settings
from app.repositories.lease import LeaseRepository
from app.repositories.webhook import WebhookEventRepository
from app.models.lease import Lease, LeaseStatus, SignatureStatus
from app.models.user import User
from app.models.webhook import WebhookProvider
from app.schemas.lease import SignatureRequestCreate
from app.services.property import PropertyService
from app.utils.exceptions import (
    APIException,
    NotFoundError,
    BadRequestError,
    InsufficientPermissionsError,
    WebhookSignatureError
)
from app.utils.security import verify_hmac_signature
from app.utils.validators import ValidationUtils
import aiofiles
import time
import uuid
import logging

logger = logging.getLogger(__name__)

CALLBACK_ACK = "Hello API Event Received"


def generate_lease_document(lease: Lease, property_name: str, property_address: str,
                            unit_number: Optional[str], tenant: Optional[User]) -> str:
    tenant_name = f"{tenant.first_name} {tenant.last_name}" if tenant else ""
    return "\n".join([
        "RESIDENTIAL LEASE AGREEMENT",
        "",
        f"Property: {property_name}",
        f"Address: {property_address}",
        f"Unit: {unit_number or 'N/A'}",
        f"Tenant: {tenant_name}",
        "",
        "LEASE TERMS:",
        f"- Start Date: {lease.start_date.isoformat()}",
        f"- End Date: {lease.end_date.isoformat()}",
        f"- Monthly Rent: ${float(lease.rent_amount):.2f}",
        f"- Security Deposit: ${float(lease.security_deposit):.2f}",
        f"- Late Fee: ${float(lease.late_fee):.2f}",
        f"- Grace Period: {lease.grace_period_days} days",
        "",
        "By signing below, the tenant agrees to the terms and conditions of this lease agreement.",
        "",
        "Tenant Signature: ____________________    Date: ____________",
    ])


def _signed_at(timestamp: Optional[int]) -> Optional[datetime]:
    if not timestamp:
        return None
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc)


class ESignatureService:

    def __init__(
        self,
        db_session: AsyncSession,
        client: Optional[DropboxSignClient] = None,
        property_service: Optional[PropertyService] = None
    ):
        self.db = db_session
        self.client = client or DropboxSignClient()
        self.lease_repo = LeaseRepository(db_session)
        self.event_repo = WebhookEventRepository(db_session)
        self.property_service = property_service or PropertyService(db_session)

    async def send_for_signature(
        self,
        lease_id: str,
        request: SignatureRequestCreate,
        current_user: User
    ) -> Dict[str, Any]:
        """
        Create an embedded signature request for the lease's tenant and mark
        the lease as pending signature.

        Raises:
            ForbiddenError: If the caller doesn't manage the lease's property
            BadRequestError: If the lease is already signed
        """
        if current_user.is_tenant:
            raise InsufficientPermissionsError("send signature requests")

        lease_uuid = ValidationUtils.validate_uuid(lease_id, "lease_id")
        lease = await self.lease_repo.get_by_id(lease_uuid)
        if not lease:
            raise NotFoundError("Lease", lease_id)
        property_obj = await self.property_service.get_managed_property(lease.property_id, current_user)

        if lease.signature_status == SignatureStatus.COMPLETED:
            raise BadRequestError("Lease has already been signed")

        try:
            unit = await self.property_service.property_repo.get_unit(lease.unit_id)
            tenant = await self.property_service.user_repo.get_by_id(lease.tenant_id)

            signer_email = request.signer_email or (tenant.email if tenant else None)
            signer_name = request.signer_name or (tenant.full_name if tenant else None)
            if not signer_email or not signer_name:
                raise BadRequestError("signer_email and signer_name are required")

            unit_number = unit.unit_number if unit else ""
            title = request.title or f"Lease Agreement - {property_obj.name} Unit {unit_number}"
            message = request.message or f"Please review and sign your lease agreement for {property_obj.address}."
            document = lease.content or generate_lease_document(
                lease, property_obj.name, property_obj.address, unit_number, tenant
            )

            signature_request = await self.client.create_embedded_request(
                title,
                message,
                signer_email,
                signer_name,
                document,
                metadata={
                    "lease_id": str(lease.id),
                    "property_id": str(lease.property_id),
                    "tenant_id": str(lease.tenant_id),
                },
            )
            request_id = signature_request.get("signature_request_id")
            if not request_id:
                raise BadRequestError("No signature request ID returned from Dropbox Sign")

            lease.signature_request_id = request_id
            lease.signature_status = SignatureStatus.SENT
            lease.status = LeaseStatus.PENDING
            await self.lease_repo.save(lease)

            created, _ = await self.event_repo.record_event(
                WebhookProvider.DROPBOX_SIGN,
                f"{request_id}:signature_request_created",
                "signature_request_created",
                signature_request,
                str(lease.id),
            )
            await self.event_repo.mark_processed(created)

            logger.info(f"Signature request {request_id} sent for lease {lease.id} by {current_user.email}")
            return {
                "signature_request_id": request_id,
                "title": signature_request.get("title") or title,
                "signatures": extract_signatures(signature_request),
            }
        except APIException:
            raise
        except Exception as e:
            logger.error(f"Failed to send lease {lease_id} for signature: {e}")
            raise BadRequestError(f"Failed to send signature request: {str(e)}")

    async def get_sign_url(self, signature_id: str) -> Dict[str, Any]:
        if not signature_id:
            raise BadRequestError("signature_id is required")
        embedded = await self.client.get_sign_url(signature_id)
        sign_url = embedded.get("sign_url")
        if not sign_url:
            raise BadRequestError("No sign URL returned from Dropbox Sign")
        return {"sign_url": sign_url, "expires_at": embedded.get("expires_at")}

    def verify_event_hash(self, event: Dict[str, Any]) -> None:
        """
        Raises:
            WebhookSignatureError: If the event_hash doesn't match HMAC(api_key, event_time + event_type)
        """
        api_key = self.client.api_key
        if not api_key:
            logger.warning("DROPBOX_SIGN_API_KEY not set, skipping event hash verification")
            return
        message = f"{event.get('event_time', '')}{event.get('event_type', '')}".encode("utf-8")
        if not verify_hmac_signature(api_key, message, event.get("event_hash")):
            logger.error("Invalid Dropbox Sign event hash")
            raise WebhookSignatureError("Invalid event hash")

    async def handle_callback(self, event_data: Dict[str, Any]) -> str:
        """
        Apply one Dropbox Sign callback. Dropbox Sign expects the literal
        acknowledgement string back, so processing errors are only logged.
        """
        event = event_data.get("event") or {}
        event_type = event.get("event_type")
        logger.info(f"Dropbox Sign webhook received: {event_type}")

        if event_type == "callback_test":
            return CALLBACK_ACK

        self.verify_event_hash(event)

        signature_request = event_data.get("signature_request")
        if not signature_request:
            return CALLBACK_ACK

        request_id = signature_request.get("signature_request_id")
        lease_id = (signature_request.get("metadata") or {}).get("lease_id")
        stored, created = await self.event_repo.record_event(
            WebhookProvider.DROPBOX_SIGN,
            f"{request_id}:{event_type}:{event.get('event_time')}",
            event_type,
            event_data,
            lease_id,
        )
        if not created and stored.processed:
            return CALLBACK_ACK

        try:
            lease = await self._lease(lease_id)
            if lease is not None:
                await self._apply(lease, event_type, event, signature_request)
            await self.event_repo.mark_processed(stored)
        except Exception as e:
            logger.error(f"Error processing Dropbox Sign event {event_type} for lease {lease_id}: {e}")
            await self.event_repo.mark_processed(stored, error=str(e))

        return CALLBACK_ACK

    async def _lease(self, lease_id: Optional[str]) -> Optional[Lease]:
        if not lease_id:
            return None
        try:
            lease_uuid = uuid.UUID(str(lease_id))
        except ValueError:
            logger.warning(f"Dropbox Sign callback with invalid lease_id {lease_id}")
            return None
        lease = await self.lease_repo.get_by_id(lease_uuid)
        if not lease:
            logger.warning(f"Dropbox Sign callback for unknown lease {lease_id}")
        return lease

    async def _apply(
        self,
        lease: Lease,
        event_type: str,
        event: Dict[str, Any],
        signature_request: Dict[str, Any]
    ) -> None:
        signatures = signature_request.get("signatures") or []

        if event_type == "signature_request_viewed":
            if lease.signature_status != SignatureStatus.SENT:
                return
            lease.signature_status = SignatureStatus.VIEWED

        elif event_type == "signature_request_signed":
            related_id = (event.get("event_metadata") or {}).get("related_signature_id")
            signed = next((s for s in signatures if s.get("signature_id") == related_id), None)
            lease.signature_status = SignatureStatus.PARTIALLY_SIGNED
            signed_at = _signed_at(signed.get("signed_at")) if signed else None
            if signed_at:
                lease.tenant_signed_at = signed_at

        elif event_type == "signature_request_all_signed":
            first = signatures[0] if signatures else {}
            lease.signature_status = SignatureStatus.COMPLETED
            lease.status = LeaseStatus.SIGNED
            lease.tenant_signed_at = _signed_at(first.get("signed_at")) or datetime.now(timezone.utc)
            path = await self._store_signed_document(lease.id, signature_request.get("signature_request_id"))
            if path:
                lease.signed_document_path = path

        elif event_type == "signature_request_declined":
            lease.signature_status = SignatureStatus.DECLINED
            lease.status = LeaseStatus.DRAFT

        elif event_type == "signature_request_expired":
            lease.signature_status = SignatureStatus.EXPIRED
            lease.status = LeaseStatus.DRAFT

        elif event_type == "signature_request_canceled":
            lease.signature_status = SignatureStatus.NOT_SENT
            lease.status = LeaseStatus.DRAFT
            lease.signature_request_id = None

        else:
            logger.info(f"Unhandled Dropbox Sign event type: {event_type}")
            return

        await self.lease_repo.save(lease)
        logger.info(f"Lease {lease.id} signature status is now {lease.signature_status.value}")

    async def _store_signed_document(self, lease_id: uuid.UUID, request_id: Optional[str]) -> Optional[str]:
        """
        Download the signed PDF into document storage.

        Returns:
            Path relative to the storage directory, or None if the download failed
        """
        if not request_id or not self.client.enabled():
            return None

        relative_path = f"leases/{lease_id}/signed-{int(time.time() * 1000)}.pdf"
        file_path = Path(settings.document_storage_dir) / relative_path
        try:
            content = await self.client.download_files(request_id)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(content)
        except Exception as e:
            logger.error(f"Failed to download signed document for lease {lease_id}: {e}")
            if file_path.exists():
                file_path.unlink()
            return None

        return relative_path
