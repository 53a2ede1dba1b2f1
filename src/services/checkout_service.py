"""Checkout orchestration: cart validation, pricing, gateway order creation and staging."""

import logging
import time
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from src.core.config import get_settings
from src.core.exceptions import (
    CouponIneligible,
    InsufficientStock,
    InvalidLineItem,
    InvalidSize,
    ProductInactive,
    ProductNotFound,
)
from src.core.payment_gateway import get_payment_gateway
from src.services.catalog_service import CatalogService
from src.services.coupon_service import CouponService
from src.services.pending_checkout_service import PendingCheckoutService
from src.services.pricing_service import PricingService, compute_subtotal, to_minor_units

logger = logging.getLogger(__name__)


class CheckoutService:
    """Service that turns a cart into a staged checkout and a gateway order.

    Nothing durable changes here beyond the staging slot and the gateway-side
    order: stock and coupon usage are only touched once payment is verified.
    """

    def __init__(self) -> None:
        """Initialize checkout service with clients."""
        self.settings = get_settings()
        self.gateway = get_payment_gateway()
        self.catalog = CatalogService()
        self.coupons = CouponService()
        self.staging = PendingCheckoutService()
        self.pricing = PricingService.from_settings(self.settings)

    async def build_line_items(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Validate requested items against live products and snapshot them.

        Args:
            items: Requested items with ``product_id``, ``quantity`` and
                optional ``size`` and ``color``.

        Returns:
            list[dict]: Immutable line-item snapshots (name, price and image as of now).

        Raises:
            InvalidLineItem: If the cart is empty or a quantity is below 1.
            ProductNotFound: If a product does not exist.
            ProductInactive: If a product is no longer sold.
            InvalidSize: If a requested size is not among the product's sizes.
            InsufficientStock: If total requested units exceed stock.
        """
        if not items:
            raise InvalidLineItem("Cart is empty")

        products = await self.catalog.get_products(item["product_id"] for item in items)

        requested: dict[str, int] = {}
        snapshots: list[dict[str, Any]] = []
        for index, item in enumerate(items):
            product_id = str(item["product_id"])
            quantity = item.get("quantity")
            if not isinstance(quantity, int) or quantity < 1:
                raise InvalidLineItem(f"Quantity must be at least 1 (item {index})")

            product = products.get(product_id)
            if not product:
                raise ProductNotFound(product_id)
            if not product.get("is_active", False):
                raise ProductInactive(product_id, product.get("name"))

            size = item.get("size")
            if size:
                declared = {entry.get("size") for entry in product.get("sizes") or []}
                if size not in declared:
                    raise InvalidSize(product["name"], size)

            requested[product_id] = requested.get(product_id, 0) + quantity
            images = product.get("images") or []
            snapshots.append(
                {
                    "item_id": uuid4().hex,
                    "product_id": product_id,
                    "name": product["name"],
                    "price": str(product["price"]),
                    "quantity": quantity,
                    "size": size,
                    "color": item.get("color"),
                    "image": images[0] if images else None,
                }
            )

        for product_id, quantity in requested.items():
            product = products[product_id]
            available = int(product.get("stock") or 0)
            if available < quantity:
                raise InsufficientStock(product_id, product["name"], available, quantity)

        return snapshots

    async def initiate_checkout(
        self,
        user_id: UUID,
        items: list[dict[str, Any]],
        shipping_address: dict[str, Any],
        coupon_code: str | None = None,
        customer_email: str | None = None,
    ) -> dict[str, Any]:
        """Validate and price a cart, open a gateway order and stage the checkout.

        Args:
            user_id: Buyer.
            items: Requested items.
            shipping_address: Delivery address.
            coupon_code: Optional coupon to preview (not committed).
            customer_email: Address for the confirmation email.

        Returns:
            dict: ``gateway_order_id``, ``amount`` (minor units), ``currency``,
            ``client_secret`` and the price breakdown.

        Raises:
            CouponNotFound: If ``coupon_code`` does not exist.
            CouponIneligible: If the coupon cannot be applied.
            GatewayUnavailable: If the gateway order could not be created.
        """
        line_items = await self.build_line_items(items)
        subtotal = compute_subtotal(line_items)

        discount = Decimal("0")
        coupon_snapshot = None
        if coupon_code:
            coupon, eligibility, discount = await self.coupons.validate_code(coupon_code, user_id, subtotal)
            if not eligibility.valid:
                raise CouponIneligible(coupon["code"], eligibility.reason or "Coupon cannot be applied")
            coupon_snapshot = {
                "coupon_id": str(coupon["id"]),
                "code": coupon["code"],
                "discount": str(discount),
            }

        breakdown = self.pricing.price(line_items, discount)
        amount_minor = to_minor_units(breakdown.total)
        receipt = f"receipt_{user_id.hex[:12]}_{int(time.time() * 1000)}"

        gateway_order = self.gateway.create_order(
            amount_minor=amount_minor,
            currency=self.settings.payment_currency,
            receipt=receipt,
            metadata={
                "user_id": str(user_id),
                "coupon_code": coupon_snapshot["code"] if coupon_snapshot else "",
            },
        )

        await self.staging.stage(
            user_id,
            {
                "gateway_order_id": gateway_order["id"],
                "items": line_items,
                "shipping_address": shipping_address,
                "pricing": breakdown.to_record(),
                "coupon": coupon_snapshot,
                "customer_email": customer_email,
            },
        )

        logger.info(
            "Checkout initiated for user %s: gateway order %s, total %s",
            user_id,
            gateway_order["id"],
            breakdown.total,
        )

        return {
            "gateway_order_id": gateway_order["id"],
            "amount": gateway_order["amount"],
            "currency": gateway_order["currency"],
            "client_secret": gateway_order.get("client_secret"),
            "pricing": breakdown,
        }
