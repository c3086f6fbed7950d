"""
Webhook Security Module

This module verifies that webhook deliveries genuinely come from GitHub
and remembers recent delivery IDs so redelivered events are dropped.

Design Decisions:
- Use constant-time comparison to prevent timing attacks
- Verify signature before any payload processing
- Support both SHA-1 and SHA-256 signatures (SHA-256 preferred)
"""

import hashlib
import hmac
import time
from typing import Callable, Dict, Optional

from review_relay.logging_config import get_logger

logger = get_logger(__name__)


class WebhookSignatureError(Exception):
    """Raised when a delivery's signature is missing or does not match."""
    pass


def verify_signature(
    secret: str,
    raw_body: bytes,
    signature_256: Optional[str],
    signature_1: Optional[str] = None
) -> None:
    """
    Verify a GitHub webhook signature.

    GitHub signs the raw body with the webhook secret and sends the
    digest in X-Hub-Signature-256 (and the legacy X-Hub-Signature).

    Args:
        secret: Shared webhook secret
        raw_body: Raw request body bytes
        signature_256: Value of the X-Hub-Signature-256 header
        signature_1: Value of the X-Hub-Signature header

    Raises:
        WebhookSignatureError: If the signature is missing or invalid
    """
    signature_header = signature_256
    algorithm = "sha256"

    if not signature_header:
        signature_header = signature_1
        algorithm = "sha1"

    if not signature_header:
        raise WebhookSignatureError("Missing webhook signature")

    prefix, _, signature = signature_header.partition("=")
    if prefix != algorithm or not signature:
        raise WebhookSignatureError("Invalid signature format")

    hash_func = hashlib.sha256 if algorithm == "sha256" else hashlib.sha1
    expected_signature = hmac.new(secret.encode(), raw_body, hash_func).hexdigest()

    if not hmac.compare_digest(signature, expected_signature):
        raise WebhookSignatureError("Invalid webhook signature")

    logger.debug("Webhook signature verified successfully", algorithm=algorithm)


def sign_payload(secret: str, raw_body: bytes) -> str:
    """Build an X-Hub-Signature-256 header value for a body."""
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class DeliveryDeduplicator:
    """
    Remembers delivery IDs for a fixed window.

    GitHub may redeliver an event (for instance after a timeout); the
    second delivery carries the same X-GitHub-Delivery value.

    Usage:
        dedup = DeliveryDeduplicator(ttl_seconds=600)
        if dedup.seen(delivery_id):
            return
    """

    def __init__(self, ttl_seconds: int, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._expires_at: Dict[str, float] = {}

    def _purge(self, now: float) -> None:
        expired = [key for key, expires in self._expires_at.items() if expires <= now]
        for key in expired:
            del self._expires_at[key]

    def seen(self, delivery_id: Optional[str]) -> bool:
        """
        Record a delivery and report whether it was already recorded.

        Deliveries without an ID are never treated as duplicates.
        """
        if not delivery_id or self.ttl_seconds <= 0:
            return False

        now = self._clock()
        self._purge(now)

        if delivery_id in self._expires_at:
            return True

        self._expires_at[delivery_id] = now + self.ttl_seconds
        return False

    def __len__(self) -> int:
        return len(self._expires_at)
