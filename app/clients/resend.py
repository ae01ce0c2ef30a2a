"""
Resend transactional email client.
"""

from typing import Any, Dict, List, Optional, Union
import httpx

from app.clients.base import ProviderClient
from app.config import settings


class ResendClient(ProviderClient):
    service_name = "Resend"

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(api_url or settings.resend_api_url, transport=transport)
        self.api_key = api_key if api_key is not None else settings.resend_api_key

    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(
        self,
        sender: str,
        to: Union[str, List[str]],
        subject: str,
        html: str
    ) -> Dict[str, Any]:
        self.ensure_enabled()
        response = await self._send(
            "POST",
            self.base,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "from": sender,
                "to": [to] if isinstance(to, str) else list(to),
                "subject": subject,
                "html": html,
            },
        )
        return self._json(response)
