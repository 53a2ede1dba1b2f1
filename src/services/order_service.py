"""Customer and admin order operations: queries, tracking, cancellation and status updates."""

import logging
from typing import Any
from uuid import UUID

from src.core.clock import utc_now
from src.core.exceptions import FulfillmentUnavailable, InvalidOrderState, OrderNotFound
from src.core.shiprocket import tracking_url
from src.models.order import USER_CANCELLABLE_STATUSES, can_transition
from src.services.fulfillment_service import CARRIER_NAME, FulfillmentService
from src.services.order_ledger import OrderLedger

logger = logging.getLogger(__name__)


class OrderService:
    """Service for order lifecycle actions initiated by customers and admins."""

    def __init__(self) -> None:
        self.ledger = OrderLedger()
        self.fulfillment = FulfillmentService()

    async def list_user_orders(self, user_id: UUID) -> list[dict[str, Any]]:
        return await self.ledger.list_for_user(user_id)

    async def get_user_order(self, order_id: UUID, user_id: UUID) -> dict[str, Any]:
        """Get an order owned by the user.

        Raises:
            OrderNotFound: If the order does not exist or belongs to someone else.
        """
        order = await self.ledger.get_order_for_user(order_id, user_id)
        if not order:
            raise OrderNotFound(str(order_id))
        return order

    async def track_order(self, order_id: UUID, user_id: UUID) -> dict[str, Any]:
        """Stored status plus live carrier tracking when a tracking number exists."""
        order = await self.get_user_order(order_id, user_id)
        tracking_info = order.get("tracking_info") or {}
        live = None
        if tracking_info.get("tracking_number"):
            live = await self.fulfillment.track(tracking_info["tracking_number"])
        return {
            "order_id": order["id"],
            "order_number": order["order_number"],
            "status": order["status"],
            "tracking_info": tracking_info or None,
            "live_tracking": live,
            "delivered_at": order.get("delivered_at"),
        }

    async def cancel_order(self, order_id: UUID, user_id: UUID, reason: str) -> dict[str, Any]:
        """Cancel a customer's order and return its stock.

        Args:
            order_id: Order to cancel.
            user_id: Must own the order.
            reason: Customer-supplied reason.

        Returns:
            dict: The cancelled order.

        Raises:
            OrderNotFound: If the order is not the user's.
            InvalidOrderState: Unless the order is confirmed or processing.
        """
        order = await self.get_user_order(order_id, user_id)
        if order["status"] not in USER_CANCELLABLE_STATUSES:
            raise InvalidOrderState(
                order["status"],
                "cancelled",
                message=f"Order cannot be cancelled while {order['status']}",
            )

        await self.fulfillment.cancel_shipment((order.get("tracking_info") or {}).get("tracking_number"))

        cancelled = await self.ledger.cancel_and_restore(order, reason)
        if not cancelled:
            current = await self.ledger.get_order(order_id)
            raise InvalidOrderState(current["status"] if current else "unknown", "cancelled")
        return cancelled

    # Administration

    async def list_orders(self, status: str | None = None, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        return await self.ledger.list_orders(status=status, limit=limit, offset=offset)

    async def update_order_status(
        self,
        order_id: UUID,
        status: str,
        tracking_number: str | None = None,
        carrier: str | None = None,
        note: str | None = None,
    ) -> dict[str, Any]:
        """Move an order along its lifecycle on an admin's behalf.

        Raises:
            OrderNotFound: If the order does not exist.
            InvalidOrderState: If the transition is not allowed or lost a race.
        """
        order = await self.ledger.get_order(order_id)
        if not order:
            raise OrderNotFound(str(order_id))

        current = order["status"]
        if not can_transition(current, status):
            raise InvalidOrderState(current, status)

        if status == "cancelled":
            await self.fulfillment.cancel_shipment((order.get("tracking_info") or {}).get("tracking_number"))
            cancelled = await self.ledger.cancel_and_restore(order, note or "Cancelled by admin")
            if not cancelled:
                raise InvalidOrderState(current, status, message="Order status changed concurrently, reload and retry")
            return cancelled

        updates: dict[str, Any] = {"status": status}
        if status == "shipped" and tracking_number:
            updates["tracking_number"] = tracking_number
            updates["tracking_info"] = {
                **(order.get("tracking_info") or {}),
                "tracking_number": tracking_number,
                "carrier": carrier or CARRIER_NAME,
                "tracking_url": tracking_url(tracking_number),
            }
        if status == "delivered":
            updates["delivered_at"] = utc_now().isoformat()
        if status == "refunded":
            updates["payment_status"] = "refunded"

        updated = await self.ledger.compare_and_set(order_id, current, updates)
        if not updated:
            raise InvalidOrderState(current, status, message="Order status changed concurrently, reload and retry")

        logger.info("Order %s moved %s -> %s by admin", order["order_number"], current, status)
        return updated

    async def retry_shipment(self, order_id: UUID) -> dict[str, Any]:
        """Create the carrier shipment for an order that has none.

        Raises:
            OrderNotFound: If the order does not exist.
            InvalidOrderState: If the order is not in a shippable status.
            FulfillmentUnavailable: If the carrier call fails.
        """
        order = await self.ledger.get_order(order_id)
        if not order:
            raise OrderNotFound(str(order_id))

        outcome = await self.fulfillment.schedule_shipment(order_id, order.get("customer_email"))
        if outcome.is_retryable:
            raise FulfillmentUnavailable(outcome.reason or "Shipping carrier unavailable")
        if not outcome.is_ok:
            raise InvalidOrderState(order["status"], message=f"Shipment not created: {outcome.reason}")

        refreshed = await self.ledger.get_order(order_id)
        return refreshed or order
