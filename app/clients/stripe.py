"""
Stripe REST client: customers, Checkout and billing portal sessions,
Connect accounts, account links and the Connect OAuth token exchange.
"""

from typing import Any, Dict, List, Optional, Tuple
import httpx

from app.clients.base import ProviderClient
from app.config import settings


def encode_form(data: Dict[str, Any], prefix: Optional[str] = None) -> List[Tuple[str, str]]:
    """
    Flatten nested params into Stripe's bracketed form encoding.
    {"a": {"b": 1}, "c": [{"d": 2}]} -> [("a[b]", "1"), ("c[0][d]", "2")]
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}[{index}]"
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, item_name))
                else:
                    pairs.append((item_name, str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


class StripeClient(ProviderClient):
    service_name = "Stripe"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        connect_base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(base_url or settings.stripe_api_base, transport=transport)
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.connect_base = (connect_base_url or settings.stripe_connect_base).rstrip("/")

    def enabled(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.ensure_enabled()
        response = await self._send(
            "GET", path, headers=self._headers(), params=encode_form(params or {})
        )
        return self._json(response)

    async def _post(self, path: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        self.ensure_enabled()
        response = await self._send(
            "POST", path, headers=self._headers(), data=dict(encode_form(data or {}))
        )
        return self._json(response)

    # Customers

    async def find_customer_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        result = await self._get("/v1/customers", {"email": email, "limit": 1})
        customers = result.get("data") or []
        return customers[0] if customers else None

    async def create_customer(self, email: str, metadata: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        return await self._post("/v1/customers", {"email": email, "metadata": metadata or {}})

    # Sessions

    async def create_checkout_session(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return await self._post("/v1/checkout/sessions", params)

    async def create_portal_session(
        self,
        customer_id: str,
        return_url: str,
        configuration: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._post("/v1/billing_portal/sessions", {
            "customer": customer_id,
            "return_url": return_url,
            "configuration": configuration,
        })

    # Connect

    async def retrieve_account(self, account_id: str) -> Dict[str, Any]:
        return await self._get(f"/v1/accounts/{account_id}")

    async def create_account_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
        collect: str = "eventually_due"
    ) -> Dict[str, Any]:
        return await self._post("/v1/account_links", {
            "account": account_id,
            "refresh_url": refresh_url,
            "return_url": return_url,
            "type": "account_onboarding",
            "collect": collect,
        })

    async def exchange_oauth_code(self, code: str) -> Dict[str, Any]:
        """Connect OAuth: trade an authorization code for the connected account id."""
        self.ensure_enabled()
        response = await self._send(
            "POST",
            f"{self.connect_base}/oauth/token",
            headers=self._headers(),
            data={"grant_type": "authorization_code", "code": code},
        )
        return self._json(response)
