"""
Dwolla ACH client. Authenticates with the client_credentials grant and
caches the access token until shortly before it expires.
"""

from typing import Any, Dict, Optional
import base64
import time
import httpx
import logging

from app.clients.base import ProviderClient
from app.config import settings
from app.utils.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

HAL_JSON = "application/vnd.dwolla.v1.hal+json"
TOKEN_EXPIRY_MARGIN_SECONDS = 60


def resource_id_from_url(url: Optional[str]) -> Optional[str]:
    """Last path segment of a Dwolla resource URL."""
    if not url:
        return None
    return url.rstrip("/").split("/")[-1]


class DwollaClient(ProviderClient):
    service_name = "Dwolla"

    def __init__(
        self,
        key: Optional[str] = None,
        secret: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(base_url or settings.dwolla_api_url, transport=transport)
        self.key = key if key is not None else settings.dwolla_key
        self.secret = secret if secret is not None else settings.dwolla_secret
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    def enabled(self) -> bool:
        return bool(self.key and self.secret)

    async def get_access_token(self) -> str:
        self.ensure_enabled()
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token

        credentials = base64.b64encode(f"{self.key}:{self.secret}".encode()).decode()
        response = await self._send(
            "POST",
            "/token",
            headers={
                "Authorization": f"Basic {credentials}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            content=b"grant_type=client_credentials",
        )
        data = self._json(response)
        self._token = data["access_token"]
        expires_in = int(data.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        logger.debug("Obtained Dwolla access token")
        return self._token

    async def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {await self.get_access_token()}",
            "Content-Type": HAL_JSON,
            "Accept": HAL_JSON,
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _create(self, path: str, body: Optional[Dict[str, Any]], idempotency_key: Optional[str] = None) -> str:
        """POST a resource and return the URL from the Location header."""
        response = await self._send("POST", path, headers=await self._headers(idempotency_key), json=body)
        location = response.headers.get("Location")
        if not location:
            raise ExternalServiceError(self.service_name, f"No resource URL returned for {path}")
        return location

    async def get(self, url: str) -> Dict[str, Any]:
        response = await self._send("GET", url, headers=await self._headers())
        return self._json(response)

    async def create_customer(
        self,
        first_name: str,
        last_name: str,
        email: str,
        customer_type: str = "personal",
        ip_address: Optional[str] = None,
        business_name: Optional[str] = None
    ) -> str:
        body: Dict[str, Any] = {
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "type": customer_type,
        }
        if business_name:
            body["businessName"] = business_name
        if ip_address:
            body["ipAddress"] = ip_address
        return await self._create("/customers", body)

    async def create_funding_source(
        self,
        customer_url: str,
        routing_number: str,
        account_number: str,
        bank_account_type: str,
        name: str
    ) -> str:
        return await self._create(f"{customer_url}/funding-sources", {
            "routingNumber": routing_number,
            "accountNumber": account_number,
            "bankAccountType": bank_account_type,
            "name": name,
        })

    async def initiate_micro_deposits(self, funding_source_url: str) -> bool:
        """Returns False when Dwolla refuses, e.g. deposits already initiated."""
        try:
            await self._send("POST", f"{funding_source_url}/micro-deposits", headers=await self._headers())
            return True
        except ExternalServiceError as e:
            logger.warning(f"Micro-deposits may already be initiated or not required: {e}")
            return False

    async def create_transfer(
        self,
        source_url: str,
        destination_url: str,
        amount: float,
        correlation_id: str
    ) -> str:
        return await self._create("/transfers", {
            "_links": {
                "source": {"href": source_url},
                "destination": {"href": destination_url},
            },
            "amount": {"currency": "USD", "value": f"{amount:.2f}"},
            "correlationId": correlation_id,
        }, idempotency_key=correlation_id)

