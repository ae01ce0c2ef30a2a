"""
Tests for the shared security helpers: escaping, amount validation,
rate limiting, safe error messages, origin resolution and HMAC checks.
"""

import pytest

from app.config import settings
from app.utils.exceptions import PaymentValidationError, BadRequestError, NotFoundError
from app.utils.security import (
    escape_html,
    validate_payment_amount,
    to_cents,
    get_safe_error_message,
    resolve_origin,
    RateLimiter,
    compute_hmac_sha256,
    verify_hmac_signature,
    GENERIC_ERROR_MESSAGE,
)


class TestEscapeHtml:
    """Test HTML escaping."""

    def test_escapes_markup_characters(self):
        assert escape_html('<a href="x">Tom & Jerry\'s</a>') == (
            "&lt;a href=&quot;x&quot;&gt;Tom &amp; Jerry&#039;s&lt;/a&gt;"
        )

    def test_none_is_empty(self):
        assert escape_html(None) == ""

    def test_non_strings_are_stringified(self):
        assert escape_html(42) == "42"


class TestValidatePaymentAmount:
    """Test payment amount validation."""

    def test_rounds_to_cents(self):
        assert validate_payment_amount("1450.005") == 1450.01
        assert validate_payment_amount(99.994) == 99.99

    def test_accepts_numeric_string(self):
        assert validate_payment_amount("1200") == 1200.0

    @pytest.mark.parametrize("amount,message", [
        (None, "Payment amount is required"),
        ("", "Payment amount is required"),
        ("abc", "Payment amount must be a valid number"),
        ("NaN", "Payment amount must be a valid number"),
        (True, "Payment amount must be a valid number"),
        (0, "Payment amount must be greater than zero"),
        (-5, "Payment amount must be greater than zero"),
    ])
    def test_rejects_invalid_amounts(self, amount, message):
        with pytest.raises(PaymentValidationError) as exc_info:
            validate_payment_amount(amount)
        assert exc_info.value.detail == message
        assert exc_info.value.status_code == 400

    def test_rejects_amount_over_maximum(self):
        with pytest.raises(PaymentValidationError) as exc_info:
            validate_payment_amount(settings.max_payment_amount + 1)
        assert exc_info.value.detail == "Payment amount exceeds maximum allowed"

    def test_custom_maximum(self):
        assert validate_payment_amount(50, max_amount=50) == 50.0
        with pytest.raises(PaymentValidationError):
            validate_payment_amount(50.01, max_amount=50)

    def test_to_cents(self):
        assert to_cents(1450.0) == 145000
        assert to_cents(0.1) == 10
        assert to_cents(72.5) == 7250


class TestSafeErrorMessage:
    """Test client-safe error messages."""

    def test_whitelisted_message_passes_through(self):
        error = BadRequestError("Property manager has not set up payments")
        assert get_safe_error_message(error) == "Property manager has not set up payments"

    def test_other_messages_are_generic(self):
        assert get_safe_error_message(NotFoundError("Payment", "123")) == GENERIC_ERROR_MESSAGE
        assert get_safe_error_message(ValueError("stack trace details")) == GENERIC_ERROR_MESSAGE


class TestResolveOrigin:
    """Test origin resolution for redirects and CORS."""

    def test_allowed_origin_is_echoed(self):
        assert resolve_origin("http://localhost:5173") == "http://localhost:5173"

    def test_trailing_slash_is_ignored(self):
        assert resolve_origin("http://localhost:5173/") == "http://localhost:5173"

    def test_unknown_origin_falls_back_to_first_allowed(self):
        assert resolve_origin("https://evil.example.com") == settings.cors_origins[0]

    def test_missing_origin_falls_back_to_first_allowed(self):
        assert resolve_origin(None) == settings.cors_origins[0]


class TestRateLimiter:
    """Test the sliding-window rate limiter."""

    def test_allows_up_to_limit(self):
        limiter = RateLimiter(max_requests=3, window_seconds=60)
        results = [limiter.check("user-1", now=100.0 + i) for i in range(3)]
        assert all(allowed for allowed, _ in results)

    def test_blocks_over_limit_with_retry_after(self):
        limiter = RateLimiter(max_requests=2, window_seconds=60)
        limiter.check("user-1", now=100.0)
        limiter.check("user-1", now=110.0)

        allowed, retry_after = limiter.check("user-1", now=120.0)

        assert allowed is False
        assert retry_after == 40

    def test_window_slides(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.check("user-1", now=100.0)[0] is True
        assert limiter.check("user-1", now=159.0)[0] is False
        assert limiter.check("user-1", now=160.0)[0] is True

    def test_keys_are_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        assert limiter.check("user-1", now=100.0)[0] is True
        assert limiter.check("user-2", now=100.0)[0] is True

    def test_blocked_hits_are_not_recorded(self):
        limiter = RateLimiter(max_requests=1, window_seconds=10)
        limiter.check("user-1", now=0.0)
        limiter.check("user-1", now=5.0)
        assert limiter.check("user-1", now=10.0)[0] is True

    def test_reset(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        limiter.check("user-1", now=100.0)
        limiter.reset("user-1")
        assert limiter.check("user-1", now=101.0)[0] is True


class TestHmacSignatures:
    """Test HMAC-SHA256 signature verification."""

    def test_valid_signature(self):
        signature = compute_hmac_sha256("secret", b"payload")
        assert verify_hmac_signature("secret", b"payload", signature) is True

    def test_signature_is_case_insensitive(self):
        signature = compute_hmac_sha256("secret", b"payload").upper()
        assert verify_hmac_signature("secret", b"payload", signature) is True

    def test_wrong_secret_fails(self):
        signature = compute_hmac_sha256("other", b"payload")
        assert verify_hmac_signature("secret", b"payload", signature) is False

    def test_missing_signature_fails(self):
        assert verify_hmac_signature("secret", b"payload", None) is False
        assert verify_hmac_signature("", b"payload", "abc") is False
