"""Payment reconciliation: verify payments, finalize orders and apply gateway webhooks."""

import logging
from typing import Any
from uuid import UUID

import stripe
from postgrest.exceptions import APIError as PostgrestAPIError

from src.core.config import get_settings
from src.core.exceptions import GatewayUnavailable, NoPendingOrder, SignatureMismatch
from src.core.outcome import Outcome
from src.core.payment_gateway import get_payment_gateway
from src.core.signatures import verify_payment_signature
from src.core.stripe import get_stripe
from src.core.supabase import get_supabase_client
from src.services.catalog_service import CatalogService
from src.services.coupon_service import REDEEMED, CouponService
from src.services.email_service import EmailService
from src.services.numbering_service import NumberingService
from src.services.order_ledger import OrderLedger
from src.services.pending_checkout_service import PendingCheckoutService
from src.services.pricing_service import from_minor_units, to_minor_units

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
GATEWAY_ORDER_CONSTRAINT = "orders_gateway_order_id_key"
ORDER_NUMBER_CONSTRAINT = "orders_order_number_key"
MAX_NUMBERING_ATTEMPTS = 3

CAPTURED_EVENTS = frozenset({"payment.captured", "order.paid", "payment_intent.succeeded"})
FAILED_EVENTS = frozenset({"payment.failed", "payment_intent.payment_failed"})
REFUND_EVENTS = frozenset({"refund.created", "charge.refunded"})


def _gateway_order_id(entity: dict[str, Any]) -> str | None:
    """Extract the PaymentIntent id from a webhook entity of any kind."""
    if entity.get("object") == "payment_intent":
        return entity.get("id")
    return entity.get("payment_intent") or entity.get("order_id")


class ReconciliationService:
    """Service that turns verified payments into orders and keeps them in sync with the gateway."""

    def __init__(self) -> None:
        """Initialize reconciliation service with clients."""
        self.client = get_supabase_client()
        self.stripe = get_stripe()
        self.settings = get_settings()
        self.gateway = get_payment_gateway()
        self.ledger = OrderLedger()
        self.catalog = CatalogService()
        self.coupons = CouponService()
        self.staging = PendingCheckoutService()
        self.numbering = NumberingService()
        self.email = EmailService()

    async def verify_and_finalize(
        self,
        user_id: UUID,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> dict[str, Any]:
        """Verify a client-reported payment and materialize the order.

        Args:
            user_id: Buyer whose staged checkout is being finalized.
            gateway_order_id: PaymentIntent id from checkout.
            gateway_payment_id: Charge id that settled it.
            signature: Hex HMAC-SHA256 of ``order_id|payment_id``.

        Returns:
            dict: The persisted order.

        Raises:
            SignatureMismatch: If the signature does not verify, or the gateway
                does not report a captured payment matching the stage; no state
                is touched.
            NoPendingOrder: If there is no live stage for this gateway order,
                including a replay after the order was already created.
            GatewayUnavailable: If the gateway could not be asked (retryable).
        """
        if not verify_payment_signature(
            gateway_order_id,
            gateway_payment_id,
            signature,
            self.settings.payment_signature_secret,
        ):
            logger.warning(
                "Payment signature mismatch: user=%s gateway_order=%s gateway_payment=%s",
                user_id,
                gateway_order_id,
                gateway_payment_id,
            )
            raise SignatureMismatch()

        stage = await self.staging.get_active(user_id)
        if not stage or stage.get("gateway_order_id") != gateway_order_id:
            logger.warning(
                "No pending checkout for user %s and gateway order %s",
                user_id,
                gateway_order_id,
            )
            raise NoPendingOrder()

        self._confirm_captured_payment(user_id, stage, gateway_payment_id)

        order = await self._materialize(user_id, stage, gateway_payment_id, signature)
        if order is None:
            raise NoPendingOrder("Order already finalized for this payment")
        return order

    def _confirm_captured_payment(
        self,
        user_id: UUID | str,
        stage: dict[str, Any],
        gateway_payment_id: str,
    ) -> None:
        """Ask the gateway whether the payment really settled the staged order.

        The charge must have succeeded and been captured, belong to the staged
        gateway order, and match the staged total and currency.

        Raises:
            SignatureMismatch: If the charge is unknown or does not match.
            GatewayUnavailable: If the gateway could not be reached.
        """
        try:
            payment = self.gateway.fetch_payment(gateway_payment_id)
        except GatewayUnavailable as e:
            if e.retryable:
                raise
            logger.warning(
                "Payment %s for user %s unknown to the gateway: %s",
                gateway_payment_id,
                user_id,
                e.message,
            )
            raise SignatureMismatch() from e

        expected_amount = to_minor_units(stage["pricing"]["total"])
        problems = []
        if payment.get("status") != "succeeded" or not payment.get("captured"):
            problems.append(f"status={payment.get('status')} captured={payment.get('captured')}")
        if payment.get("order_id") != stage["gateway_order_id"]:
            problems.append(f"gateway_order={payment.get('order_id')}")
        if payment.get("amount") != expected_amount:
            problems.append(f"amount={payment.get('amount')} expected={expected_amount}")
        if str(payment.get("currency") or "").lower() != self.settings.payment_currency.lower():
            problems.append(f"currency={payment.get('currency')}")

        if problems:
            logger.warning(
                "Payment %s does not settle gateway order %s for user %s: %s",
                gateway_payment_id,
                stage["gateway_order_id"],
                user_id,
                ", ".join(problems),
            )
            raise SignatureMismatch()

    async def _materialize(
        self,
        user_id: UUID | str,
        stage: dict[str, Any],
        gateway_payment_id: str | None,
        signature: str | None,
    ) -> dict[str, Any] | None:
        """Persist a confirmed order from a stage and apply its side effects.

        Returns None when an order for this gateway order already exists (the
        unique constraint on ``gateway_order_id`` makes finalization happen once).
        """
        pricing = stage["pricing"]
        coupon = stage.get("coupon")

        record = {
            "user_id": str(user_id),
            "items": stage["items"],
            "shipping_address": stage["shipping_address"],
            "customer_email": stage.get("customer_email"),
            "gateway_order_id": stage["gateway_order_id"],
            "gateway_payment_id": gateway_payment_id,
            "gateway_signature": signature,
            "payment_method": "gateway",
            "payment_status": "completed",
            "status": "confirmed",
            "subtotal": pricing["subtotal"],
            "shipping_charges": pricing["shipping_charges"],
            "tax": pricing["tax"],
            "discount": pricing["discount"],
            "total": pricing["total"],
            "coupon": coupon,
        }

        order = await self._insert_order(record)
        if order is None:
            return None
        order_number = order["order_number"]
        logger.info(
            "Order %s created for user %s (gateway order %s, total %s)",
            order_number,
            user_id,
            stage["gateway_order_id"],
            pricing["total"],
        )

        await self.catalog.decrement_for_items(order["items"], order_number)

        if coupon:
            order = await self._commit_coupon(order, coupon, user_id)

        try:
            await self.staging.clear_cart(user_id)
        except Exception as e:
            logger.error("Failed to clear cart for user %s after order %s: %s", user_id, order_number, str(e))

        if order.get("customer_email"):
            await self.email.send_order_confirmation(order["customer_email"], order)

        return order

    async def _insert_order(self, record: dict[str, Any]) -> dict[str, Any] | None:
        """Insert the order row under a freshly allocated order number.

        Returns None only when the gateway order already has an order. An
        order number collision allocates a new number and tries again; any
        other failure propagates.
        """
        for attempt in range(1, MAX_NUMBERING_ATTEMPTS + 1):
            record["order_number"] = await self.numbering.next_order_number()
            try:
                response = self.client.table("orders").insert(record).execute()
            except PostgrestAPIError as e:
                if e.code != UNIQUE_VIOLATION:
                    raise
                violated = f"{e.message or ''} {e.details or ''}"
                if GATEWAY_ORDER_CONSTRAINT in violated:
                    logger.info("Order for gateway order %s already exists", record["gateway_order_id"])
                    return None
                if ORDER_NUMBER_CONSTRAINT in violated and attempt < MAX_NUMBERING_ATTEMPTS:
                    logger.error(
                        "Order number %s already taken (attempt %d), allocating another",
                        record["order_number"],
                        attempt,
                    )
                    continue
                logger.error(
                    "Order insert for gateway order %s failed on a unique constraint: %s",
                    record["gateway_order_id"],
                    violated.strip(),
                )
                raise
            return response.data[0]
        return None

    async def _commit_coupon(
        self,
        order: dict[str, Any],
        coupon: dict[str, Any],
        user_id: UUID | str,
    ) -> dict[str, Any]:
        """Commit the previewed coupon once, recording the result on the order.

        A refused commit (limit reached since the preview) keeps the order and
        its price; the snapshot is flagged ``redeemed=False`` for follow-up.
        """
        try:
            result = await self.coupons.commit_redemption(coupon["coupon_id"], user_id)
        except Exception as e:
            logger.error("Coupon commit failed for order %s: %s", order["order_number"], str(e))
            result = "commit_failed"

        snapshot = {**coupon, "redeemed": result == REDEEMED}
        if result != REDEEMED:
            snapshot["error"] = result
            logger.warning(
                "Discount on order %s applied without redemption (%s): coupon %s",
                order["order_number"],
                result,
                coupon.get("code"),
            )

        updated = await self.ledger.update_fields(order["id"], {"coupon": snapshot})
        return updated or {**order, "coupon": snapshot}

    # Gateway webhooks

    def verify_webhook_signature(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify Stripe webhook signature and construct event.

        Args:
            payload: Raw request body.
            sig_header: Stripe-Signature header value.

        Returns:
            dict: Verified Stripe event.

        Raises:
            ValueError: If signature is invalid or the payload is malformed.
        """
        try:
            event = self.stripe.Webhook.construct_event(
                payload,
                sig_header,
                self.settings.stripe_webhook_secret,
            )
        except stripe.SignatureVerificationError as e:
            raise ValueError("Invalid webhook signature") from e
        return event

    async def handle_gateway_event(self, event: dict[str, Any]) -> Outcome:
        """Dispatch a verified gateway event to its idempotent handler.

        Unexpected errors become a retryable outcome so the gateway redelivers.
        """
        event_type = event.get("type", "")
        entity = (event.get("data") or {}).get("object") or {}

        try:
            if event_type in CAPTURED_EVENTS:
                return await self.handle_payment_captured(entity)
            if event_type in FAILED_EVENTS:
                return await self.handle_payment_failed(entity)
            if event_type in REFUND_EVENTS:
                return await self.handle_refund(entity)
        except Exception as e:
            logger.exception("Gateway event %s (%s) failed", event.get("id"), event_type)
            return Outcome.retryable(str(e))

        logger.debug("Unhandled gateway event type: %s", event_type)
        return Outcome.ok("ignored")

    async def handle_payment_captured(self, entity: dict[str, Any]) -> Outcome:
        """Confirm the order for a captured payment.

        If the client never called verify-payment, the staged checkout named in
        the gateway metadata is finalized here instead.
        """
        gateway_order_id = _gateway_order_id(entity)
        if not gateway_order_id:
            return Outcome.fatal("missing_gateway_order_id")

        payment_id = entity.get("latest_charge") or (entity.get("id") if entity.get("object") == "charge" else None)
        order = await self.ledger.get_by_gateway_order_id(gateway_order_id)

        if not order:
            user_id = (entity.get("metadata") or {}).get("user_id")
            stage = await self.staging.get_active(user_id) if user_id else None
            if stage and stage.get("gateway_order_id") == gateway_order_id:
                created = await self._materialize(user_id, stage, payment_id, None)
                if created:
                    logger.info("Order %s finalized from gateway webhook", created["order_number"])
                    return Outcome.ok(
                        "order_created",
                        order_id=str(created["id"]),
                        customer_email=created.get("customer_email"),
                    )
                return Outcome.ok("already_confirmed")
            logger.warning("Captured payment for unknown gateway order %s", gateway_order_id)
            return Outcome.ok("no_order")

        if order["status"] != "pending":
            return Outcome.ok("already_confirmed", status=order["status"])

        updated = await self.ledger.compare_and_set(
            order["id"],
            "pending",
            {"status": "confirmed", "payment_status": "completed", "gateway_payment_id": payment_id},
        )
        return Outcome.ok("confirmed" if updated else "already_confirmed")

    async def handle_payment_failed(self, entity: dict[str, Any]) -> Outcome:
        """Cancel the order for a failed payment and return its stock once."""
        gateway_order_id = _gateway_order_id(entity)
        if not gateway_order_id:
            return Outcome.fatal("missing_gateway_order_id")

        order = await self.ledger.get_by_gateway_order_id(gateway_order_id)
        if not order:
            logger.info("Payment failed for gateway order %s with no order", gateway_order_id)
            return Outcome.ok("no_order")

        if order["status"] == "cancelled" or order.get("payment_status") == "failed":
            return Outcome.ok("already_failed")

        if order["status"] not in ("pending", "confirmed"):
            logger.error(
                "Payment failure for order %s in status %s needs manual review",
                order["order_number"],
                order["status"],
            )
            return Outcome.fatal("order_beyond_cancellable", status=order["status"])

        cancelled = await self.ledger.cancel_and_restore(
            order,
            reason="Payment failed",
            extra={"payment_status": "failed"},
        )
        return Outcome.ok("cancelled" if cancelled else "already_failed")

    async def handle_refund(self, entity: dict[str, Any]) -> Outcome:
        """Mark refunds completed and the order refunded once fully covered."""
        if entity.get("object") == "refund":
            refund_ids = [entity["id"]]
            charge_id = entity.get("charge")
            amount_refunded = None
        else:
            refund_ids = [r["id"] for r in (entity.get("refunds") or {}).get("data", []) if r.get("id")]
            charge_id = entity.get("id")
            amount_refunded = entity.get("amount_refunded")

        gateway_order_id = _gateway_order_id(entity)
        order = await self.ledger.get_by_gateway_order_id(gateway_order_id) if gateway_order_id else None
        if not order and charge_id:
            order = await self.ledger.get_by_gateway_payment_id(charge_id)
        if not order:
            logger.warning("Refund event for unknown payment %s", charge_id or gateway_order_id)
            return Outcome.ok("no_order")

        if refund_ids:
            self.client.table("returns").update({"refund_status": "completed"}).eq(
                "order_id", str(order["id"])
            ).in_("refund_id", refund_ids).neq("refund_status", "completed").execute()

        if amount_refunded is None and charge_id:
            amount_refunded = self.gateway.fetch_payment(charge_id)["amount_refunded"]

        if amount_refunded is None or amount_refunded < to_minor_units(order["total"]):
            return Outcome.ok("partial_refund")

        logger.info(
            "Order %s fully refunded by gateway (%s of %s)",
            order["order_number"],
            from_minor_units(amount_refunded),
            order["total"],
        )
        if order["status"] == "delivered":
            await self.ledger.compare_and_set(
                order["id"],
                "delivered",
                {"status": "refunded", "payment_status": "refunded"},
            )
        elif order.get("payment_status") != "refunded":
            await self.ledger.update_fields(order["id"], {"payment_status": "refunded"})
        return Outcome.ok("refunded")
