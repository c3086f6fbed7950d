"""
Tests for Webhook Security

Tests signature verification and the redelivery guard.
"""

import hashlib
import hmac

import pytest

from review_relay.webhook.security import (
    DeliveryDeduplicator,
    WebhookSignatureError,
    sign_payload,
    verify_signature,
)

SECRET = "test_secret"
BODY = b'{"action": "opened"}'


class TestVerifySignature:

    def test_valid_sha256_signature(self):
        """Test that a valid sha256 signature passes."""
        verify_signature(SECRET, BODY, sign_payload(SECRET, BODY))

    def test_valid_sha1_fallback(self):
        """Test that a sha1 signature is accepted when sha256 is absent."""
        digest = hmac.new(SECRET.encode(), BODY, hashlib.sha1).hexdigest()

        verify_signature(SECRET, BODY, None, f"sha1={digest}")

    def test_missing_signature(self):
        """Test that a missing signature is rejected."""
        with pytest.raises(WebhookSignatureError, match="Missing"):
            verify_signature(SECRET, BODY, None)

    def test_wrong_secret(self):
        """Test that a signature made with another secret is rejected."""
        with pytest.raises(WebhookSignatureError, match="Invalid webhook signature"):
            verify_signature(SECRET, BODY, sign_payload("other", BODY))

    def test_tampered_body(self):
        """Test that a modified body is rejected."""
        with pytest.raises(WebhookSignatureError):
            verify_signature(SECRET, BODY + b" ", sign_payload(SECRET, BODY))

    @pytest.mark.parametrize("header", ["sha256", "md5=abc", "sha1=abc", "sha256="])
    def test_malformed_header(self, header):
        """Test that malformed signature headers are rejected."""
        with pytest.raises(WebhookSignatureError):
            verify_signature(SECRET, BODY, header)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestDeliveryDeduplicator:

    def test_second_delivery_is_duplicate(self):
        """Test that a repeated delivery ID is reported as seen."""
        dedup = DeliveryDeduplicator(ttl_seconds=60)

        assert dedup.seen("delivery-1") is False
        assert dedup.seen("delivery-1") is True
        assert dedup.seen("delivery-2") is False

    def test_entries_expire(self):
        """Test that delivery IDs are forgotten after the TTL."""
        clock = FakeClock()
        dedup = DeliveryDeduplicator(ttl_seconds=60, clock=clock)

        dedup.seen("delivery-1")
        clock.now += 61

        assert dedup.seen("delivery-1") is False
        assert len(dedup) == 1

    def test_missing_delivery_id_never_duplicate(self):
        """Test that deliveries without an ID are never duplicates."""
        dedup = DeliveryDeduplicator(ttl_seconds=60)

        assert dedup.seen(None) is False
        assert dedup.seen(None) is False
        assert len(dedup) == 0

    def test_zero_ttl_disables_guard(self):
        """Test that a zero TTL disables the guard."""
        dedup = DeliveryDeduplicator(ttl_seconds=0)

        assert dedup.seen("delivery-1") is False
        assert dedup.seen("delivery-1") is False
