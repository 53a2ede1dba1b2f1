"""Fulfillment bridge: carrier shipment creation, tracking, cancellation and webhook ingestion."""

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from fastapi.concurrency import run_in_threadpool

from src.core.clock import parse_timestamp, utc_now
from src.core.exceptions import FulfillmentUnavailable
from src.core.outcome import Outcome
from src.core.shiprocket import get_shiprocket_client, tracking_url
from src.models.order import CARRIER_CANCELLABLE_STATUSES, FORWARD_RANK
from src.services.order_ledger import OrderLedger

logger = logging.getLogger(__name__)

CARRIER_NAME = "Shiprocket"
ESTIMATED_DELIVERY_DAYS = 7

_CARRIER_STATUS_MAP = {
    "shipped": "shipped",
    "in transit": "shipped",
    "out for delivery": "out_for_delivery",
    "delivered": "delivered",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "rto": "cancelled",
}


def map_carrier_status(carrier_status: str | None) -> str:
    """Translate a carrier status string into an order status.

    Unrecognized values map to ``processing``.
    """
    normalized = " ".join(str(carrier_status or "").replace("_", " ").lower().split())
    if normalized.startswith("rto"):
        return "cancelled"
    return _CARRIER_STATUS_MAP.get(normalized, "processing")


class FulfillmentService:
    """Service that bridges orders to the shipping carrier."""

    def __init__(self) -> None:
        self.carrier = get_shiprocket_client()
        self.ledger = OrderLedger()

    async def create_shipment(self, order: dict[str, Any], customer_email: str | None = None) -> dict[str, Any]:
        """Register an order with the carrier and store its tracking info.

        Args:
            order: Persisted order row.
            customer_email: Billing email passed to the carrier.

        Returns:
            dict: ``tracking_number``, ``tracking_url``, ``estimated_delivery``,
            ``carrier_order_id`` and ``shipment_id``.

        Raises:
            FulfillmentUnavailable: If the carrier is unreachable or rejects the order.
        """
        payload = self.carrier.build_order_payload(order, customer_email)
        response = await run_in_threadpool(self.carrier.create_order, payload)

        awb_code = response.get("awb_code") or None
        tracking = {
            "tracking_number": awb_code,
            "carrier": CARRIER_NAME,
            "tracking_url": tracking_url(awb_code) if awb_code else None,
            "carrier_order_id": str(response.get("order_id") or ""),
            "shipment_id": str(response.get("shipment_id") or ""),
            "estimated_delivery": (utc_now() + timedelta(days=ESTIMATED_DELIVERY_DAYS)).isoformat(),
        }

        await self.ledger.update_fields(
            order["id"],
            {"tracking_info": tracking, "tracking_number": awb_code},
        )
        logger.info(
            "Shipment created for order %s (carrier order %s, awb %s)",
            order.get("order_number"),
            tracking["carrier_order_id"],
            awb_code,
        )
        return tracking

    async def schedule_shipment(self, order_id: UUID | str, customer_email: str | None = None) -> Outcome:
        """Background entry point: create a shipment without failing the caller.

        Returns:
            Outcome: ok on success or when already shipped, retryable on carrier failure.
        """
        order = await self.ledger.get_order(order_id)
        if not order:
            logger.warning("Shipment requested for unknown order %s", order_id)
            return Outcome.fatal("order_not_found")

        if (order.get("tracking_info") or {}).get("carrier_order_id"):
            return Outcome.ok("already_shipped")

        if order["status"] not in ("confirmed", "processing"):
            return Outcome.fatal(f"not_shippable:{order['status']}")

        try:
            tracking = await self.create_shipment(order, customer_email)
        except FulfillmentUnavailable as e:
            logger.error("Shipment creation failed for order %s: %s", order.get("order_number"), e.message)
            return Outcome.retryable(e.message)
        return Outcome.ok("shipment_created", **tracking)

    async def track(self, tracking_number: str) -> dict[str, Any] | None:
        """Live carrier tracking, or None when the carrier cannot answer."""
        try:
            return await run_in_threadpool(self.carrier.track_shipment, tracking_number)
        except FulfillmentUnavailable as e:
            logger.warning("Tracking lookup failed for %s: %s", tracking_number, e.message)
            return None

    async def cancel_shipment(self, tracking_number: str | None) -> bool:
        """Best-effort carrier cancellation. Never raises.

        Returns:
            bool: True if the carrier acknowledged the cancellation.
        """
        if not tracking_number:
            return False
        try:
            await run_in_threadpool(self.carrier.cancel_shipment, tracking_number)
        except FulfillmentUnavailable as e:
            logger.error("Carrier cancellation failed for %s: %s", tracking_number, e.message)
            return False
        logger.info("Carrier shipment %s cancelled", tracking_number)
        return True

    async def ingest_carrier_webhook(self, payload: dict[str, Any]) -> Outcome:
        """Apply a carrier status update to the matching order.

        Updates are forward-only: a stale or replayed event that would move the
        order backwards is ignored. Cancellation from the carrier (cancelled or
        RTO) restores stock through the compare-and-set winner only.

        Args:
            payload: Carrier webhook body with ``awb`` and ``current_status``.

        Returns:
            Outcome: ok (applied or ignored), fatal for malformed payloads.
        """
        awb = payload.get("awb") or payload.get("awb_code")
        carrier_status = payload.get("current_status") or payload.get("shipment_status")
        if not awb or not carrier_status:
            logger.warning("Carrier webhook missing awb or status: %s", payload)
            return Outcome.fatal("missing_awb_or_status")

        order = await self.ledger.get_by_tracking_number(str(awb))
        if not order:
            logger.warning("Carrier webhook for unknown AWB %s (%s)", awb, carrier_status)
            return Outcome.ok("unknown_awb")

        target = map_carrier_status(carrier_status)
        current = order["status"]
        tracking = {
            **(order.get("tracking_info") or {}),
            "last_status": str(carrier_status),
            "last_event_at": utc_now().isoformat(),
        }

        if target == "cancelled":
            if current not in CARRIER_CANCELLABLE_STATUSES:
                return Outcome.ok("ignored", current=current, target=target)
            cancelled = await self.ledger.cancel_and_restore(
                order,
                reason=f"Carrier reported {carrier_status}",
                extra={"tracking_info": tracking},
            )
            return Outcome.ok("cancelled" if cancelled else "lost_race", current=current)

        if current not in FORWARD_RANK or FORWARD_RANK[target] <= FORWARD_RANK[current]:
            logger.info(
                "Ignoring carrier status %s for order %s in status %s",
                carrier_status,
                order.get("order_number"),
                current,
            )
            return Outcome.ok("ignored", current=current, target=target)

        updates: dict[str, Any] = {"status": target, "tracking_info": tracking}
        if target == "delivered":
            try:
                delivered_at = parse_timestamp(payload.get("delivered_date")) or utc_now()
            except ValueError:
                logger.warning("Unparseable delivered_date %r for AWB %s", payload.get("delivered_date"), awb)
                delivered_at = utc_now()
            updates["delivered_at"] = delivered_at.isoformat()

        updated = await self.ledger.compare_and_set(order["id"], current, updates)
        if not updated:
            return Outcome.ok("lost_race", current=current)

        logger.info("Order %s moved %s -> %s by carrier", order.get("order_number"), current, target)
        return Outcome.ok("updated", status=target)


async def create_shipment_in_background(order_id: str, customer_email: str | None) -> None:
    """Background task run after an order is created, by verify-payment or the gateway webhook."""
    outcome = await FulfillmentService().schedule_shipment(order_id, customer_email)
    if not outcome.is_ok:
        logger.warning("Shipment for order %s not created: %s", order_id, outcome.reason)
