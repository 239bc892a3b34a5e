"""Webhook signature verification for Shopify callbacks.

Shopify signs each delivery with HMAC-SHA256 over the exact raw body and
sends the base64 digest in ``X-Shopify-Hmac-Sha256``. Comparison is
constant-time via ``hmac.compare_digest`` and every failure path returns
False instead of raising.

When no real secret is configured (unset or the placeholder value) the
verifier runs in bypass mode: deliveries are accepted with a warning. Bypass
is a development convenience only; ``validate_settings`` refuses it in
production.
"""

import base64
import binascii
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

PLACEHOLDER_WEBHOOK_SECRET = "your-webhook-secret"


def is_placeholder_secret(secret: str | None) -> bool:
    """True when ``secret`` is unset, blank or the placeholder value."""
    value = (secret or "").strip()
    return not value or value == PLACEHOLDER_WEBHOOK_SECRET


def compute_signature(raw_body: bytes, shared_secret: str) -> str:
    """Base64 HMAC-SHA256 of ``raw_body`` keyed by ``shared_secret``."""
    digest = hmac.new(shared_secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(raw_body: bytes, signature_header: str | None, shared_secret: str) -> bool:
    """Verify a Shopify webhook signature.

    Args:
        raw_body: Request body bytes exactly as received.
        signature_header: Value of X-Shopify-Hmac-Sha256.
        shared_secret: Webhook secret configured for the app.

    Returns:
        True only when the header is a well-formed base64 digest equal to the
        expected one.
    """
    if not shared_secret or not signature_header:
        return False
    if not isinstance(signature_header, str):
        return False

    candidate = signature_header.strip()
    try:
        decoded = base64.b64decode(candidate, validate=True)
    except (binascii.Error, ValueError):
        return False
    if len(decoded) != hashlib.sha256().digest_size:
        return False

    expected = compute_signature(raw_body, shared_secret)
    return hmac.compare_digest(expected.encode("ascii"), candidate.encode("ascii"))


class WebhookVerifier:
    """Holds the configured secret and applies bypass mode.

    Built once by the app factory and stored on ``app.state``.

    Args:
        shared_secret: Configured webhook secret (may be unset/placeholder).
    """

    def __init__(self, shared_secret: str | None) -> None:
        self._secret = (shared_secret or "").strip()
        self.bypass = is_placeholder_secret(self._secret)
        if self.bypass:
            logger.warning(
                "SHOPIFY_WEBHOOK_SECRET is not configured; webhook signatures "
                "will NOT be verified (development bypass mode)"
            )

    def verify(self, raw_body: bytes, signature_header: str | None) -> bool:
        if self.bypass:
            logger.warning("Webhook accepted without signature verification (bypass mode)")
            return True
        return verify_signature(raw_body, signature_header, self._secret)
