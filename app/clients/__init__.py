"""
HTTP clients for the payment, ACH, e-signature and email providers.
"""

from .base import ProviderClient
from .stripe import StripeClient, encode_form
from .dwolla import DwollaClient, resource_id_from_url
from .dropbox_sign import DropboxSignClient, extract_signatures
from .resend import ResendClient

__all__ = [
    "ProviderClient",
    "StripeClient",
    "encode_form",
    "DwollaClient",
    "resource_id_from_url",
    "DropboxSignClient",
    "extract_signatures",
    "ResendClient",
]
