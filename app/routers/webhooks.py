"""
Inbound provider webhooks: Stripe, Dwolla and Dropbox Sign.
These endpoints are unauthenticated; each payload is verified against the
provider's signature scheme instead.
"""

from fastapi import APIRouter, Depends, Request, Header
from fastapi.responses import PlainTextResponse
from typing import Optional
import json
import logging

from app.services.ach import DwollaWebhookService
from app.services.esignature import ESignatureService, CALLBACK_ACK
from app.services.stripe_webhook import StripeWebhookService
from app.schemas.payment import WebhookAck
from app.schemas.error import get_error_responses
from app.utils.dependencies import (
    get_stripe_webhook_service,
    get_dwolla_webhook_service,
    get_esignature_service
)
from app.utils.exceptions import BadRequestError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post(
    "/stripe",
    response_model=WebhookAck,
    response_model_exclude_none=True,
    summary="Stripe webhook",
    responses=get_error_responses(400, 500, 503)
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    webhook_service: StripeWebhookService = Depends(get_stripe_webhook_service)
) -> WebhookAck:
    payload = await request.body()
    result = await webhook_service.handle(payload, stripe_signature)
    return WebhookAck(**result)


@router.post(
    "/dwolla",
    response_model=WebhookAck,
    response_model_exclude_none=True,
    summary="Dwolla webhook",
    description="Always acknowledged once the signature checks out; failures are reported in the body",
    responses=get_error_responses(401)
)
async def dwolla_webhook(
    request: Request,
    signature: Optional[str] = Header(None, alias="X-Request-Signature-SHA-256"),
    webhook_service: DwollaWebhookService = Depends(get_dwolla_webhook_service)
) -> WebhookAck:
    payload = await request.body()
    result = await webhook_service.handle(payload, signature)
    return WebhookAck(**result)


async def _read_callback(request: Request) -> dict:
    """Dropbox Sign posts the event as a multipart `json` field; tests and relays may send raw JSON."""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("multipart/form-data") or content_type.startswith("application/x-www-form-urlencoded"):
            form = await request.form()
            raw = form.get("json")
            if raw is None:
                raise BadRequestError("Missing json field")
            data = json.loads(raw)
        else:
            data = json.loads(await request.body())
    except ValueError:
        raise BadRequestError("Invalid callback payload")

    if not isinstance(data, dict):
        raise BadRequestError("Invalid callback payload")
    return data


@router.post(
    "/dropbox-sign",
    response_class=PlainTextResponse,
    summary="Dropbox Sign callback",
    description="Answers with the literal acknowledgement string Dropbox Sign expects",
    responses=get_error_responses(400, 401)
)
async def dropbox_sign_webhook(
    request: Request,
    esignature_service: ESignatureService = Depends(get_esignature_service)
) -> PlainTextResponse:
    event_data = await _read_callback(request)
    ack = await esignature_service.handle_callback(event_data)
    return PlainTextResponse(content=ack or CALLBACK_ACK)
