"""Persistence primitives for orders: lookups and compare-and-set status transitions.

Every status write is conditional on the status the caller read
(``.eq("status", current)``). Concurrent or replayed updates therefore apply
at most once, and the caller that wins the transition is the only one that
performs its side effects (such as restoring stock).
"""

import logging
from typing import Any
from uuid import UUID

from src.core.clock import utc_now
from src.core.supabase import get_supabase_client
from src.models.order import Order
from src.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class OrderLedger:
    """Service for reading orders and applying guarded status transitions."""

    def __init__(self) -> None:
        self.client = get_supabase_client()
        self.catalog = CatalogService()

    async def get_order(self, order_id: UUID | str) -> Order | None:
        response = (
            self.client.table("orders")
            .select("*")
            .eq("id", str(order_id))
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_order_for_user(self, order_id: UUID | str, user_id: UUID | str) -> Order | None:
        """Get an order only if it belongs to ``user_id``."""
        response = (
            self.client.table("orders")
            .select("*")
            .eq("id", str(order_id))
            .eq("user_id", str(user_id))
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_by_gateway_order_id(self, gateway_order_id: str) -> Order | None:
        response = (
            self.client.table("orders")
            .select("*")
            .eq("gateway_order_id", gateway_order_id)
            .execute()
        )
        return response.data[0] if response.data else None

    async def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Order | None:
        response = (
            self.client.table("orders")
            .select("*")
            .eq("gateway_payment_id", gateway_payment_id)
            .execute()
        )
        return response.data[0] if response.data else None

    async def get_by_tracking_number(self, tracking_number: str) -> Order | None:
        response = (
            self.client.table("orders")
            .select("*")
            .eq("tracking_number", tracking_number)
            .execute()
        )
        return response.data[0] if response.data else None

    async def list_for_user(self, user_id: UUID | str) -> list[dict[str, Any]]:
        response = (
            self.client.table("orders")
            .select("*")
            .eq("user_id", str(user_id))
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def list_orders(self, status: str | None = None, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        query = self.client.table("orders").select("*")
        if status:
            query = query.eq("status", status)
        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return response.data or []

    async def compare_and_set(
        self,
        order_id: UUID | str,
        expected_status: str,
        updates: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Apply ``updates`` only if the order is still in ``expected_status``.

        Returns:
            dict | None: The updated row, or None if another writer got there first.
        """
        response = (
            self.client.table("orders")
            .update({**updates, "updated_at": utc_now().isoformat()})
            .eq("id", str(order_id))
            .eq("status", expected_status)
            .execute()
        )
        return response.data[0] if response.data else None

    async def update_fields(self, order_id: UUID | str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Unconditional update for fields that are not part of the status machine."""
        response = (
            self.client.table("orders")
            .update({**updates, "updated_at": utc_now().isoformat()})
            .eq("id", str(order_id))
            .execute()
        )
        return response.data[0] if response.data else None

    async def cancel_and_restore(
        self,
        order: dict[str, Any],
        reason: str,
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Cancel an order from its current status and return its stock.

        Stock is restored only when this call wins the transition, so a
        replayed cancellation never restores twice.

        Args:
            order: Order row as last read.
            reason: Stored as ``cancellation_reason``.
            extra: Additional fields to set (e.g. ``payment_status``).

        Returns:
            dict | None: The cancelled order, or None if the status changed underneath.
        """
        updates = {
            "status": "cancelled",
            "cancellation_reason": reason,
            "cancelled_at": utc_now().isoformat(),
            **(extra or {}),
        }
        cancelled = await self.compare_and_set(order["id"], order["status"], updates)
        if not cancelled:
            logger.info(
                "Cancellation of order %s skipped: status moved from %s",
                order.get("order_number"),
                order["status"],
            )
            return None

        # Pending orders never had stock taken
        if order["status"] != "pending":
            await self.catalog.restore_for_items(order.get("items", []), order.get("order_number", str(order["id"])))
        logger.info("Order %s cancelled: %s", order.get("order_number"), reason)
        return cancelled
