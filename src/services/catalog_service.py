"""Catalog store access: product lookup and atomic stock adjustments."""

import logging
from typing import Any, Iterable

from src.core.supabase import get_supabase_client
from src.models.product import Product

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for reading products and adjusting their stock counters."""

    def __init__(self) -> None:
        """Initialize catalog service with Supabase client."""
        self.client = get_supabase_client()

    async def get_products(self, product_ids: Iterable[str]) -> dict[str, Product]:
        """Fetch live product rows keyed by id.

        Args:
            product_ids: Product ids to load. Duplicates are collapsed.

        Returns:
            dict: Mapping of product id to row; missing ids are absent.
        """
        ids = sorted({str(pid) for pid in product_ids})
        if not ids:
            return {}

        response = (
            self.client.table("products")
            .select("id, name, price, original_price, images, sizes, colors, stock, is_active")
            .in_("id", ids)
            .execute()
        )
        return {str(row["id"]): row for row in response.data or []}

    async def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Atomically decrement stock if at least ``quantity`` units remain.

        Args:
            product_id: Product to decrement.
            quantity: Units sold.

        Returns:
            bool: True if the decrement applied, False if stock was insufficient
            or the product no longer exists.
        """
        response = self.client.rpc(
            "decrement_product_stock",
            {"p_product_id": str(product_id), "p_quantity": quantity},
        ).execute()
        return bool(response.data)

    async def increment_stock(self, product_id: str, quantity: int) -> bool:
        """Return ``quantity`` units to stock."""
        response = self.client.rpc(
            "increment_product_stock",
            {"p_product_id": str(product_id), "p_quantity": quantity},
        ).execute()
        return bool(response.data)

    async def decrement_for_items(self, items: Iterable[dict[str, Any]], order_ref: str) -> list[str]:
        """Decrement stock for each line item, best-effort.

        A failed decrement is logged and skipped; the order stands.

        Returns:
            list[str]: Product ids whose decrement did not apply.
        """
        failed: list[str] = []
        for item in items:
            product_id = str(item["product_id"])
            try:
                applied = await self.decrement_stock(product_id, item["quantity"])
            except Exception as e:
                logger.error(
                    "Stock decrement error for product %s on order %s: %s",
                    product_id,
                    order_ref,
                    str(e),
                )
                failed.append(product_id)
                continue
            if not applied:
                logger.warning(
                    "Stock decrement not applied for product %s on order %s (insufficient stock)",
                    product_id,
                    order_ref,
                )
                failed.append(product_id)
        return failed

    async def restore_for_items(self, items: Iterable[dict[str, Any]], order_ref: str) -> list[str]:
        """Return stock for each line item, best-effort.

        Returns:
            list[str]: Product ids whose restore did not apply.
        """
        failed: list[str] = []
        for item in items:
            product_id = str(item["product_id"])
            try:
                applied = await self.increment_stock(product_id, item["quantity"])
            except Exception as e:
                logger.error(
                    "Stock restore error for product %s on order %s: %s",
                    product_id,
                    order_ref,
                    str(e),
                )
                failed.append(product_id)
                continue
            if not applied:
                logger.warning("Stock restore skipped for missing product %s on order %s", product_id, order_ref)
                failed.append(product_id)
        if not failed:
            logger.info("Stock restored for order %s", order_ref)
        return failed
