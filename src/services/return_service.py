"""Return requests: creation within the return window, admin status workflow and refunds."""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from src.core.clock import parse_timestamp, utc_now
from src.core.config import get_settings
from src.core.exceptions import (
    ConflictError,
    GatewayUnavailable,
    InvalidOrderState,
    OrderNotFound,
    ReturnNotFound,
    ReturnWindowExpired,
    ValidationError,
)
from src.core.payment_gateway import get_payment_gateway
from src.core.supabase import get_supabase_client
from src.models.return_request import ACTIVE_RETURN_STATUSES, RETURN_TRANSITIONS, ReturnRequest
from src.services.email_service import EmailService
from src.services.numbering_service import NumberingService
from src.services.order_ledger import OrderLedger
from src.services.pricing_service import to_decimal, to_minor_units

logger = logging.getLogger(__name__)


class ReturnService:
    """Service for the return/refund side of the order ledger."""

    def __init__(self) -> None:
        """Initialize return service with clients."""
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.gateway = get_payment_gateway()
        self.ledger = OrderLedger()
        self.numbering = NumberingService()
        self.email = EmailService()

    async def get_return(self, return_id: UUID | str) -> ReturnRequest | None:
        response = (
            self.client.table("returns")
            .select("*")
            .eq("id", str(return_id))
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_user_return(self, return_id: UUID, user_id: UUID) -> dict[str, Any]:
        return_request = await self.get_return(return_id)
        if not return_request or str(return_request["user_id"]) != str(user_id):
            raise ReturnNotFound(str(return_id))
        return return_request

    async def list_user_returns(self, user_id: UUID) -> list[dict[str, Any]]:
        response = (
            self.client.table("returns")
            .select("*")
            .eq("user_id", str(user_id))
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def list_returns(self, status: str | None = None, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        query = self.client.table("returns").select("*")
        if status:
            query = query.eq("status", status)
        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return response.data or []

    async def _returns_for_order(self, order_id: UUID | str) -> list[dict[str, Any]]:
        response = (
            self.client.table("returns")
            .select("*")
            .eq("order_id", str(order_id))
            .execute()
        )
        return response.data or []

    async def create_return_request(
        self,
        user_id: UUID,
        order_id: UUID,
        return_type: str,
        items: list[dict[str, Any]],
        reason: str,
        description: str | None = None,
        images: list[str] | None = None,
        customer_email: str | None = None,
    ) -> dict[str, Any]:
        """Open a return for items of a delivered order.

        Args:
            user_id: Must own the order.
            order_id: Delivered order.
            return_type: ``return``, ``exchange`` or ``refund``.
            items: ``item_id``, ``quantity`` and optional per-item ``reason``.
            reason: Overall reason.
            description: Free-text description.
            images: Evidence image URLs.
            customer_email: Address for status update emails.

        Returns:
            dict: The created return request.

        Raises:
            OrderNotFound: If the order is not the user's.
            InvalidOrderState: If the order is not delivered.
            ReturnWindowExpired: If delivery was more than the window ago.
            ValidationError: If an item is unknown or over-returned.
        """
        order = await self.ledger.get_order_for_user(order_id, user_id)
        if not order:
            raise OrderNotFound(str(order_id))

        if order["status"] != "delivered":
            raise InvalidOrderState(order["status"], message="Order must be delivered to request return")

        delivered_at = parse_timestamp(order.get("delivered_at")) or parse_timestamp(order.get("created_at"))
        window = timedelta(days=self.settings.return_window_days)
        if delivered_at and utc_now() - delivered_at > window:
            raise ReturnWindowExpired(self.settings.return_window_days)

        if not items:
            raise ValidationError("At least one item is required")

        claimed: dict[str, int] = {}
        for existing in await self._returns_for_order(order["id"]):
            if existing["status"] in ACTIVE_RETURN_STATUSES:
                for returned in existing.get("items", []):
                    claimed[returned["item_id"]] = claimed.get(returned["item_id"], 0) + int(returned["quantity"])

        order_items = {item["item_id"]: item for item in order.get("items", [])}
        return_items = []
        refund_amount = Decimal("0")
        for requested in items:
            order_item = order_items.get(requested["item_id"])
            if not order_item:
                raise ValidationError("Invalid order item")

            quantity = int(requested["quantity"])
            already = claimed.get(order_item["item_id"], 0)
            if quantity < 1 or quantity + already > int(order_item["quantity"]):
                raise ValidationError(f"Cannot return more than ordered quantity for {order_item['name']}")
            claimed[order_item["item_id"]] = already + quantity

            refund_amount += to_decimal(order_item["price"]) * quantity
            return_items.append(
                {
                    "item_id": order_item["item_id"],
                    "product_id": order_item["product_id"],
                    "name": order_item["name"],
                    "price": str(order_item["price"]),
                    "quantity": quantity,
                    "size": order_item.get("size"),
                    "reason": requested.get("reason") or reason,
                }
            )

        return_number = await self.numbering.next_return_number()
        record = {
            "user_id": str(user_id),
            "order_id": str(order["id"]),
            "return_number": return_number,
            "items": return_items,
            "return_reason": reason,
            "return_description": description,
            "images": images or [],
            "type": return_type,
            "status": "pending",
            "refund_amount": str(refund_amount),
            "refund_status": "pending",
            "customer_email": customer_email,
        }
        response = self.client.table("returns").insert(record).execute()
        return_request = response.data[0]

        logger.info(
            "Return %s created for order %s (%s, refund %s)",
            return_number,
            order["order_number"],
            return_type,
            refund_amount,
        )
        await self.email.send_return_created_notice(return_request, order["order_number"])
        return return_request

    async def update_return_status(
        self,
        return_id: UUID,
        status: str,
        admin_id: UUID,
        admin_notes: str | None = None,
    ) -> dict[str, Any]:
        """Move a return through its workflow on an admin's behalf.

        Approving a refund-type return issues the gateway refund immediately.

        Raises:
            ReturnNotFound: If the return does not exist.
            InvalidOrderState: If the transition is not allowed.
            GatewayUnavailable: If the refund call fails; the return keeps its
                new status with ``refund_status=failed`` and can be retried.
        """
        return_request = await self.get_return(return_id)
        if not return_request:
            raise ReturnNotFound(str(return_id))

        current = return_request["status"]
        if status not in RETURN_TRANSITIONS.get(current, frozenset()):
            raise InvalidOrderState(current, status)

        now = utc_now().isoformat()
        updates: dict[str, Any] = {
            "status": status,
            "admin_notes": admin_notes,
            "processed_by": str(admin_id),
            "processed_at": now,
            "updated_at": now,
        }
        if status == "completed":
            updates["completed_at"] = now
        issue_refund = status == "approved" and return_request["type"] == "refund"
        if issue_refund:
            updates["refund_status"] = "processing"

        response = (
            self.client.table("returns")
            .update(updates)
            .eq("id", str(return_id))
            .eq("status", current)
            .execute()
        )
        if not response.data:
            raise InvalidOrderState(current, status, message="Return status changed concurrently, reload and retry")
        updated = response.data[0]
        logger.info("Return %s moved %s -> %s", updated["return_number"], current, status)

        if updated.get("customer_email"):
            await self.email.send_return_status_update(updated["customer_email"], updated)

        if issue_refund:
            updated = await self.process_refund(updated)
        return updated

    async def retry_refund(self, return_id: UUID) -> dict[str, Any]:
        """Re-issue a refund that failed or never completed.

        Raises:
            ReturnNotFound: If the return does not exist.
            ConflictError: If the return is not an approved refund awaiting payment.
        """
        return_request = await self.get_return(return_id)
        if not return_request:
            raise ReturnNotFound(str(return_id))
        if return_request["type"] != "refund" or return_request["status"] not in ("approved", "processing", "completed"):
            raise ConflictError("Only approved refund requests can be refunded")
        if return_request.get("refund_status") == "completed":
            raise ConflictError("Refund already completed")
        return await self.process_refund(return_request)

    async def process_refund(self, return_request: dict[str, Any]) -> dict[str, Any]:
        """Refund a return through the gateway and settle the order if fully refunded.

        The refund is capped at what the order has not already refunded, and
        uses an idempotency key per return so a retried call cannot refund twice.
        """
        order = await self.ledger.get_order(return_request["order_id"])
        if not order:
            raise OrderNotFound(str(return_request["order_id"]))
        if not order.get("gateway_payment_id"):
            raise ConflictError("Order has no captured payment to refund")

        siblings = await self._returns_for_order(order["id"])
        already_refunded = sum(
            (to_decimal(r["refund_amount"]) for r in siblings
             if r["id"] != return_request["id"] and r.get("refund_status") == "completed"),
            Decimal("0"),
        )
        order_total = to_decimal(order["total"])
        amount = min(to_decimal(return_request["refund_amount"]), order_total - already_refunded)
        if amount <= 0:
            raise ConflictError("Order has already been fully refunded")

        try:
            refund = self.gateway.refund(
                order["gateway_payment_id"],
                to_minor_units(amount),
                notes={
                    "return_id": str(return_request["id"]),
                    "return_number": return_request["return_number"],
                },
                idempotency_key=f"return-{return_request['id']}-refund",
            )
        except GatewayUnavailable:
            self.client.table("returns").update({"refund_status": "failed"}).eq(
                "id", str(return_request["id"])
            ).execute()
            logger.error("Refund for return %s failed", return_request["return_number"])
            raise

        response = (
            self.client.table("returns")
            .update({"refund_status": "completed", "refund_id": refund["id"], "refund_amount": str(amount)})
            .eq("id", str(return_request["id"]))
            .execute()
        )
        updated = response.data[0] if response.data else {**return_request, "refund_status": "completed"}

        if to_minor_units(already_refunded + amount) >= to_minor_units(order_total):
            if order["status"] == "delivered":
                await self.ledger.compare_and_set(
                    order["id"],
                    "delivered",
                    {"status": "refunded", "payment_status": "refunded"},
                )
                logger.info("Order %s fully refunded", order["order_number"])
            else:
                await self.ledger.update_fields(order["id"], {"payment_status": "refunded"})
        return updated
