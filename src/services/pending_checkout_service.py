"""Single-slot checkout staging keyed by user.

Each user has at most one staged checkout. A new checkout overwrites the
previous stage (last writer wins); a stage older than its ``expires_at`` is
treated as absent.
"""

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from src.core.clock import parse_timestamp, utc_now
from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.order import PendingCheckout

logger = logging.getLogger(__name__)


class PendingCheckoutService:
    """Service for the pending_checkouts staging table and the cart it snapshots."""

    def __init__(self) -> None:
        self.client = get_supabase_client()
        self.settings = get_settings()

    async def stage(self, user_id: UUID | str, snapshot: dict[str, Any]) -> dict[str, Any]:
        """Write the user's staged checkout, replacing any earlier one.

        Args:
            user_id: Owner of the stage.
            snapshot: Items, address, pricing, coupon preview and gateway order id.

        Returns:
            dict: The stored row.
        """
        now = utc_now()
        record = {
            **snapshot,
            "user_id": str(user_id),
            "status": "pending",
            "created_at": now.isoformat(),
            "expires_at": (now + timedelta(minutes=self.settings.pending_checkout_ttl_minutes)).isoformat(),
        }
        response = (
            self.client.table("pending_checkouts")
            .upsert(record, on_conflict="user_id")
            .execute()
        )
        logger.info("Staged checkout for user %s (gateway order %s)", user_id, snapshot.get("gateway_order_id"))
        return response.data[0] if response.data else record

    async def get_active(self, user_id: UUID | str) -> PendingCheckout | None:
        """Return the user's stage if present and not expired."""
        response = (
            self.client.table("pending_checkouts")
            .select("*")
            .eq("user_id", str(user_id))
            .execute()
        )
        if not response.data:
            return None

        stage = response.data[0]
        expires_at = parse_timestamp(stage.get("expires_at"))
        if expires_at and expires_at < utc_now():
            logger.info("Staged checkout for user %s expired at %s", user_id, expires_at.isoformat())
            return None
        return stage

    async def clear(self, user_id: UUID | str, gateway_order_id: str | None = None) -> None:
        """Remove the user's stage.

        When ``gateway_order_id`` is given, only a stage for that gateway order
        is removed, so a newer checkout started in another tab survives.
        """
        query = self.client.table("pending_checkouts").delete().eq("user_id", str(user_id))
        if gateway_order_id:
            query = query.eq("gateway_order_id", gateway_order_id)
        query.execute()

    async def clear_cart(self, user_id: UUID | str) -> None:
        """Empty the user's cart and drop the stage that was priced from it."""
        self.client.table("cart_items").delete().eq("user_id", str(user_id)).execute()
        await self.clear(user_id)
