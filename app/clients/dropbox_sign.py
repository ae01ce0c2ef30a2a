"""
Dropbox Sign (HelloSign) client for embedded lease signing.
"""

from typing import Any, Dict, List, Optional
import base64
import json
import httpx

from app.clients.base import ProviderClient
from app.config import settings

# Signature and date boxes placed on the first page of the generated agreement
DEFAULT_FORM_FIELDS = [[
    {
        "api_id": "signature_1",
        "type": "signature",
        "x": 72,
        "y": 700,
        "width": 200,
        "height": 30,
        "required": True,
        "signer": 0,
        "page": 1,
    },
    {
        "api_id": "date_1",
        "type": "date_signed",
        "x": 300,
        "y": 700,
        "width": 150,
        "height": 20,
        "required": True,
        "signer": 0,
        "page": 1,
    },
]]


class DropboxSignClient(ProviderClient):
    service_name = "Dropbox Sign"

    def __init__(
        self,
        api_key: Optional[str] = None,
        client_id: Optional[str] = None,
        base_url: Optional[str] = None,
        test_mode: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__(base_url or settings.dropbox_sign_api_base, transport=transport)
        self.api_key = api_key if api_key is not None else settings.dropbox_sign_api_key
        self.client_id = client_id if client_id is not None else settings.dropbox_sign_client_id
        self.test_mode = settings.dropbox_sign_test_mode if test_mode is None else test_mode

    def enabled(self) -> bool:
        return bool(self.api_key and self.client_id)

    def _headers(self) -> Dict[str, str]:
        credentials = base64.b64encode(f"{self.api_key}:".encode()).decode()
        return {"Authorization": f"Basic {credentials}"}

    async def create_embedded_request(
        self,
        title: str,
        message: str,
        signer_email: str,
        signer_name: str,
        document: str,
        metadata: Dict[str, str],
        filename: str = "lease-agreement.txt"
    ) -> Dict[str, Any]:
        """
        Create an embedded signature request for a single signer.

        Returns:
            The signature_request object from the response
        """
        self.ensure_enabled()
        fields: Dict[str, Any] = {
            "client_id": self.client_id,
            "title": title,
            "subject": title,
            "message": message,
            "signers[0][email_address]": signer_email,
            "signers[0][name]": signer_name,
            "signers[0][order]": "0",
            "test_mode": "1" if self.test_mode else "0",
            "form_fields_per_document": json.dumps(DEFAULT_FORM_FIELDS),
        }
        for key, value in metadata.items():
            fields[f"metadata[{key}]"] = str(value)

        files = {"files[0]": (filename, document.encode("utf-8"), "text/plain")}
        response = await self._send(
            "POST",
            "/signature_request/create_embedded",
            headers=self._headers(),
            data=fields,
            files=files,
        )
        return self._json(response).get("signature_request", {})

    async def get_sign_url(self, signature_id: str) -> Dict[str, Any]:
        """Returns the embedded object: {sign_url, expires_at}."""
        self.ensure_enabled()
        response = await self._send("GET", f"/embedded/sign_url/{signature_id}", headers=self._headers())
        return self._json(response).get("embedded", {})

    async def download_files(self, signature_request_id: str) -> bytes:
        """Signed document as a PDF."""
        self.ensure_enabled()
        response = await self._send(
            "GET",
            f"/signature_request/files/{signature_request_id}",
            headers=self._headers(),
            params={"file_type": "pdf"},
        )
        return response.content


def extract_signatures(signature_request: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {
            "signature_id": signature.get("signature_id"),
            "signer_email": signature.get("signer_email_address"),
            "status": signature.get("status_code"),
        }
        for signature in signature_request.get("signatures") or []
    ]
