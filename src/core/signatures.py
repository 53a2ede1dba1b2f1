"""HMAC-SHA256 helpers for payment confirmation and carrier webhook signatures."""

import hashlib
import hmac


def compute_payment_signature(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    """Compute the hex signature the client must echo back after payment.

    Args:
        gateway_order_id: Gateway-side order (PaymentIntent) identifier.
        gateway_payment_id: Gateway-side payment (charge) identifier.
        secret: Shared signing secret.

    Returns:
        str: Lowercase hex HMAC-SHA256 of ``"{order_id}|{payment_id}"``.
    """
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    gateway_order_id: str,
    gateway_payment_id: str,
    signature: str,
    secret: str,
) -> bool:
    """Constant-time check of a payment confirmation signature."""
    if not secret or not signature:
        return False
    expected = compute_payment_signature(gateway_order_id, gateway_payment_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def compute_body_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 over a raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_body_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Check a raw-body webhook signature.

    Args:
        body: Raw request body exactly as received.
        signature: Value of the signature header, may be None.
        secret: Shared webhook secret.

    Returns:
        bool: True only when the header is present and matches.
    """
    if not signature:
        return False
    expected = compute_body_signature(body, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().encode("utf-8"))
