"""Payment gateway wrapper over Stripe PaymentIntents, Charges and Refunds.

A gateway "order" is a PaymentIntent and a gateway "payment" is the Charge
that settles it. Callers only see plain dicts, never Stripe objects.
"""

import logging
from typing import Any

import stripe

from src.core.exceptions import GatewayUnavailable
from src.core.stripe import get_stripe

logger = logging.getLogger(__name__)


def _classify(error: stripe.StripeError) -> GatewayUnavailable:
    """Map a Stripe error to GatewayUnavailable with the right retryability."""
    if isinstance(error, (stripe.APIConnectionError, stripe.RateLimitError)):
        return GatewayUnavailable("Payment gateway did not respond, please retry", retryable=True)
    status_code = getattr(error, "http_status", None)
    if status_code is not None and status_code >= 500:
        return GatewayUnavailable("Payment gateway error, please retry", retryable=True)
    return GatewayUnavailable(f"Payment gateway rejected the request: {error.user_message or error}", retryable=False)


class PaymentGateway:
    """Thin, dict-returning facade over the Stripe SDK."""

    def __init__(self) -> None:
        self.stripe = get_stripe()

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        metadata: dict[str, str],
    ) -> dict[str, Any]:
        """Create a gateway order for the client to pay.

        Args:
            amount_minor: Amount in the currency's minor unit (paise, cents).
            currency: ISO currency code.
            receipt: Local receipt reference, also used as idempotency key.
            metadata: Correlation tags (user id, coupon code).

        Returns:
            dict: ``id``, ``amount``, ``currency``, ``client_secret``, ``status``.

        Raises:
            GatewayUnavailable: If Stripe is unreachable or rejects the request.
        """
        try:
            intent = self.stripe.PaymentIntent.create(
                amount=amount_minor,
                currency=currency,
                metadata={**metadata, "receipt": receipt},
                automatic_payment_methods={"enabled": True},
                idempotency_key=receipt,
            )
        except stripe.StripeError as e:
            logger.error("Gateway order creation failed for receipt %s: %s", receipt, str(e))
            raise _classify(e) from e

        logger.info("Created gateway order %s for %d %s", intent.id, amount_minor, currency)
        return {
            "id": intent.id,
            "amount": intent.amount,
            "currency": intent.currency,
            "client_secret": intent.client_secret,
            "status": intent.status,
        }

    def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        """Retrieve a payment (charge) by id.

        Raises:
            GatewayUnavailable: If Stripe is unreachable or the id is unknown.
        """
        try:
            charge = self.stripe.Charge.retrieve(payment_id)
        except stripe.StripeError as e:
            logger.error("Failed to fetch payment %s: %s", payment_id, str(e))
            raise _classify(e) from e

        method_details = getattr(charge, "payment_method_details", None)
        return {
            "id": charge.id,
            "status": charge.status,
            "amount": charge.amount,
            "amount_refunded": charge.amount_refunded,
            "currency": charge.currency,
            "method": getattr(method_details, "type", None) if method_details else None,
            "order_id": charge.payment_intent,
            "captured": charge.captured,
        }

    def refund(
        self,
        payment_id: str,
        amount_minor: int,
        notes: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        """Refund part or all of a payment.

        Args:
            payment_id: Charge id to refund.
            amount_minor: Amount to refund in minor units.
            notes: Metadata attached to the refund (return id, return number).
            idempotency_key: Key that makes a retried refund a no-op on Stripe's side.

        Returns:
            dict: ``id``, ``status``, ``amount``.

        Raises:
            GatewayUnavailable: If Stripe is unreachable or rejects the refund.
        """
        try:
            refund = self.stripe.Refund.create(
                charge=payment_id,
                amount=amount_minor,
                metadata=notes,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error("Refund of %d on payment %s failed: %s", amount_minor, payment_id, str(e))
            raise _classify(e) from e

        logger.info("Refund %s created for payment %s (%d)", refund.id, payment_id, amount_minor)
        return {"id": refund.id, "status": refund.status, "amount": refund.amount}


def get_payment_gateway() -> PaymentGateway:
    """Create a payment gateway facade bound to the configured Stripe module."""
    return PaymentGateway()
