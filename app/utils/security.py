"""
Security helpers shared by payment, email and webhook code paths.
HTML escaping, payment amount validation, per-user rate limiting, client-safe
error messages, CORS origin resolution and webhook signature checks.
"""

from typing import Any, Dict, Deque, Optional, Tuple
from collections import defaultdict, deque
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import hashlib
import hmac
import math
import time

from app.config import settings
from app.utils.exceptions import PaymentValidationError


_HTML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#039;",
}

GENERIC_ERROR_MESSAGE = "An error occurred processing your request"

# Messages that are safe to return to clients verbatim
SAFE_ERROR_MESSAGES = frozenset({
    "Payment amount is required",
    "Payment amount must be a valid number",
    "Payment amount must be greater than zero",
    "Payment amount exceeds maximum allowed",
    "Unit ID is required",
    "Unauthorized",
    "No active tenant assignment found for this unit",
    "Property manager's Stripe account is not fully verified",
    "Property manager has not set up payments",
    "Return URL is required",
    "Invalid return URL",
    "Rate limit exceeded",
    "Landlord has not set up Dwolla. Please use card payment.",
    "Please link a bank account first",
})


def escape_html(text: Any) -> str:
    """Escape the five HTML-significant characters. None renders as an empty string."""
    if text is None:
        return ""
    return "".join(_HTML_ESCAPES.get(char, char) for char in str(text))


def validate_payment_amount(amount: Any, max_amount: Optional[float] = None) -> float:
    """
    Validate a payment amount and round it to cents.

    Args:
        amount: Raw amount from the request (number or numeric string)
        max_amount: Upper bound, defaults to settings.max_payment_amount

    Returns:
        Amount rounded to two decimal places

    Raises:
        PaymentValidationError: If the amount is missing, not numeric, not positive or too large
    """
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        raise PaymentValidationError("Payment amount is required")

    if isinstance(amount, bool):
        raise PaymentValidationError("Payment amount must be a valid number")

    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise PaymentValidationError("Payment amount must be a valid number")

    if not value.is_finite():
        raise PaymentValidationError("Payment amount must be a valid number")

    if value <= 0:
        raise PaymentValidationError("Payment amount must be greater than zero")

    limit = settings.max_payment_amount if max_amount is None else max_amount
    if value > Decimal(str(limit)):
        raise PaymentValidationError("Payment amount exceeds maximum allowed")

    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_cents(amount: float) -> int:
    """Convert a dollar amount to integer cents with half-up rounding."""
    cents = Decimal(str(amount)) * 100
    return int(cents.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_safe_error_message(error: Any) -> str:
    """Return the error's message when whitelisted, otherwise a generic message."""
    message = getattr(error, "detail", None) or str(error)
    if message in SAFE_ERROR_MESSAGES:
        return message
    return GENERIC_ERROR_MESSAGE


def resolve_origin(origin: Optional[str]) -> str:
    """
    Pick the origin used for CORS echoing and redirect URLs.
    Allowed origins are returned unchanged, anything else falls back to the first allowed origin.
    """
    allowed = settings.cors_origins
    if origin and origin.rstrip("/") in allowed:
        return origin.rstrip("/")
    return allowed[0]


class RateLimiter:
    """
    In-memory sliding-window rate limiter keyed by user id.
    State is per process; a multi-worker deployment gets one window per worker.
    """

    def __init__(self, max_requests: int = 10, window_seconds: int = 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)

    def check(self, key: str, now: Optional[float] = None) -> Tuple[bool, int]:
        """
        Record a hit for key when allowed.

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        now = time.monotonic() if now is None else now
        hits = self._hits[key]

        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

        if len(hits) >= self.max_requests:
            retry_after = max(1, math.ceil(self.window_seconds - (now - hits[0])))
            return False, retry_after

        hits.append(now)
        return True, 0

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._hits.clear()
        else:
            self._hits.pop(key, None)


def compute_hmac_sha256(secret: str, message: bytes) -> str:
    """Hex HMAC-SHA256 digest of message."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_hmac_signature(secret: str, message: bytes, signature: Optional[str]) -> bool:
    """Constant-time comparison of a hex HMAC-SHA256 signature."""
    if not secret or not signature:
        return False
    expected = compute_hmac_sha256(secret, message)
    return hmac.compare_digest(expected, signature.strip().lower())
