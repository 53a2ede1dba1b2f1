"""Coupon Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.coupon import DiscountType


class ValidateCouponRequest(BaseModel):
    """Schema for POST /coupons/validate."""

    model_config = ConfigDict(from_attributes=True)

    code: str = Field(..., min_length=1, max_length=50, description="Coupon code, case-insensitive")
    order_value: Decimal = Field(..., ge=0, description="Cart subtotal the coupon would apply to")


class ValidateCouponResponse(BaseModel):
    """Preview of a coupon against an order value. Nothing is redeemed."""

    model_config = ConfigDict(from_attributes=True)

    valid: bool = Field(description="Whether the coupon can be applied")
    code: str = Field(description="Normalized coupon code")
    discount: Decimal = Field(default=Decimal("0"), description="Discount the coupon would give")
    message: str | None = Field(default=None, description="Why the coupon cannot be applied")
    coupon_id: UUID | None = Field(default=None, description="Coupon id when valid")


class CouponResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Coupon id")
    code: str = Field(description="Coupon code")
    description: str | None = Field(default=None, description="Description")
    discount_type: DiscountType = Field(description="flat or percentage")
    discount_value: Decimal = Field(description="Amount or percent")
    min_order_value: Decimal = Field(default=Decimal("0"), description="Minimum order value")
    max_discount_amount: Decimal | None = Field(default=None, description="Cap for percentage discounts")
    max_uses: int | None = Field(default=None, description="Global redemption limit")
    max_uses_per_user: int = Field(default=1, description="Per-user redemption limit")
    used_count: int = Field(default=0, description="Redemptions so far")
    valid_from: datetime = Field(description="Start of validity")
    valid_until: datetime = Field(description="End of validity")
    is_active: bool = Field(description="Whether the coupon is active")


class CouponListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    items: list[CouponResponse] = Field(description="Coupons")


class CouponCreate(BaseModel):
    """Schema for POST /admin/coupons."""

    model_config = ConfigDict(from_attributes=True)

    code: str = Field(..., min_length=3, max_length=50, description="Coupon code")
    description: str | None = Field(default=None, max_length=500, description="Description")
    discount_type: DiscountType = Field(description="flat or percentage")
    discount_value: Decimal = Field(..., gt=0, description="Amount or percent")
    min_order_value: Decimal = Field(default=Decimal("0"), ge=0, description="Minimum order value")
    max_discount_amount: Decimal | None = Field(default=None, gt=0, description="Cap for percentage discounts")
    max_uses: int | None = Field(default=None, ge=1, description="Global redemption limit")
    max_uses_per_user: int = Field(default=1, ge=1, description="Per-user redemption limit")
    valid_from: datetime = Field(description="Start of validity")
    valid_until: datetime = Field(description="End of validity")
    is_active: bool = Field(default=True, description="Whether the coupon is active")


class CouponUpdate(BaseModel):
    """Schema for PUT /admin/coupons/{coupon_id}. All fields optional."""

    model_config = ConfigDict(from_attributes=True)

    code: str | None = Field(default=None, min_length=3, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = Field(default=None, gt=0)
    min_order_value: Decimal | None = Field(default=None, ge=0)
    max_discount_amount: Decimal | None = Field(default=None, gt=0)
    max_uses: int | None = Field(default=None, ge=1)
    max_uses_per_user: int | None = Field(default=None, ge=1)
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool | None = None
