"""Coupon model type definitions for database operations."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID


DiscountType = Literal["flat", "percentage"]

# Result strings returned by the redeem_coupon database function
RedemptionResult = Literal["redeemed", "coupon_limit_reached", "user_limit_reached", "coupon_not_found"]


class Coupon(TypedDict):
    """Coupon table row representation.

    Invariant: ``used_count <= max_uses`` whenever ``max_uses`` is set.
    """

    id: UUID
    code: str
    description: str | None
    discount_type: DiscountType
    discount_value: str
    min_order_value: str
    max_discount_amount: str | None
    max_uses: int | None
    max_uses_per_user: int
    used_count: int
    valid_from: datetime
    valid_until: datetime
    is_active: bool
    created_by: UUID | None
    created_at: datetime
    updated_at: datetime


class CouponRedemption(TypedDict):
    """coupon_redemptions table row: one per (coupon, user) pair."""

    coupon_id: UUID
    user_id: UUID
    used_count: int
    last_used: datetime


class CouponSnapshot(TypedDict, total=False):
    """Coupon as applied to an order, stored on orders.coupon."""

    coupon_id: str
    code: str
    discount: str
    redeemed: bool
    error: str
