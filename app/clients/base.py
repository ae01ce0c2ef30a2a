"""
Shared plumbing for the third-party HTTP clients.
Every call opens a short-lived httpx.AsyncClient; tests inject an httpx.MockTransport.
"""

from typing import Any, Dict, Optional
import httpx
import logging

from app.config import settings
from app.utils.exceptions import ExternalServiceError, ServiceNotConfiguredError

logger = logging.getLogger(__name__)


class ProviderClient:
    """Base class for provider API clients."""

    service_name = "provider"

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None
    ):
        self.base = base_url.rstrip("/")
        self.transport = transport
        self.timeout = timeout or settings.provider_timeout_seconds

    def enabled(self) -> bool:
        return True

    def ensure_enabled(self) -> None:
        if not self.enabled():
            raise ServiceNotConfiguredError(self.service_name)

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base}/{path.lstrip('/')}"

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send one request and return the response.

        Raises:
            ExternalServiceError: On transport failure or an error status from the provider
        """
        url = self._url(path)
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{self.service_name} request {method} {url} failed: {e}")
            raise ExternalServiceError(self.service_name, str(e))

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(
                f"{self.service_name} returned {response.status_code} for {method} {url}: {message}",
                extra={"upstream_status": response.status_code}
            )
            raise ExternalServiceError(self.service_name, message, status_code=response.status_code)

        return response

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return error.get("message") or str(error)
            if error:
                return str(error)
            return body.get("message") or str(body)
        return str(body)

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        return response.json()
