"""Database model type definitions."""

from src.models.coupon import Coupon, CouponRedemption, CouponSnapshot
from src.models.order import Order, OrderLineItem, PendingCheckout
from src.models.product import Product
from src.models.return_request import ReturnRequest

__all__ = [
    "Coupon",
    "CouponRedemption",
    "CouponSnapshot",
    "Order",
    "OrderLineItem",
    "PendingCheckout",
    "Product",
    "ReturnRequest",
]
