"""Unit tests for HMAC signature helpers."""

import hashlib
import hmac

from src.core.signatures import (
    compute_body_signature,
    compute_payment_signature,
    verify_body_signature,
    verify_payment_signature,
)

SECRET = "test-payment-signature-secret"


class TestPaymentSignature:
    def test_signature_is_hmac_of_order_and_payment(self) -> None:
        expected = hmac.new(SECRET.encode(), b"pi_123|ch_456", hashlib.sha256).hexdigest()

        assert compute_payment_signature("pi_123", "ch_456", SECRET) == expected

    def test_valid_signature_verifies(self) -> None:
        signature = compute_payment_signature("pi_123", "ch_456", SECRET)

        assert verify_payment_signature("pi_123", "ch_456", signature, SECRET) is True

    def test_swapped_ids_do_not_verify(self) -> None:
        signature = compute_payment_signature("pi_123", "ch_456", SECRET)

        assert verify_payment_signature("ch_456", "pi_123", signature, SECRET) is False

    def test_empty_secret_never_verifies(self) -> None:
        signature = compute_payment_signature("pi_123", "ch_456", "")

        assert verify_payment_signature("pi_123", "ch_456", signature, "") is False

    def test_empty_signature_never_verifies(self) -> None:
        assert verify_payment_signature("pi_123", "ch_456", "", SECRET) is False


class TestBodySignature:
    def test_round_trip(self) -> None:
        body = b'{"awb":"AWB1","current_status":"DELIVERED"}'

        assert verify_body_signature(body, compute_body_signature(body, "whsec"), "whsec") is True

    def test_tampered_body_fails(self) -> None:
        signature = compute_body_signature(b'{"awb":"AWB1"}', "whsec")

        assert verify_body_signature(b'{"awb":"AWB2"}', signature, "whsec") is False

    def test_missing_header_fails(self) -> None:
        assert verify_body_signature(b"{}", None, "whsec") is False
