"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.order import OrderStatus, PaymentStatus


class OrderItemSchema(BaseModel):
    """Line item snapshot as stored on the order."""

    model_config = ConfigDict(from_attributes=True)

    item_id: str = Field(description="Line item identifier, referenced by returns")
    product_id: str = Field(description="Product UUID")
    name: str = Field(description="Product name at purchase time")
    price: Decimal = Field(description="Unit price at purchase time")
    quantity: int = Field(description="Units purchased")
    size: str | None = Field(default=None, description="Size")
    color: str | None = Field(default=None, description="Color")
    image: str | None = Field(default=None, description="Image URL")


class TrackingInfoSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tracking_number: str | None = Field(default=None, description="Carrier AWB")
    carrier: str | None = Field(default=None, description="Carrier name")
    tracking_url: str | None = Field(default=None, description="Public tracking page")
    estimated_delivery: datetime | None = Field(default=None, description="Estimated delivery date")
    last_status: str | None = Field(default=None, description="Latest raw carrier status")


class CouponSnapshotSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str = Field(description="Coupon code")
    discount: Decimal = Field(description="Discount applied")
    redeemed: bool | None = Field(default=None, description="Whether usage was recorded against the coupon")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order unique identifier")
    order_number: str = Field(description="Human-readable order number")
    user_id: UUID = Field(description="Buyer")
    status: OrderStatus = Field(description="Order status")
    payment_status: PaymentStatus = Field(description="Payment status")
    items: list[OrderItemSchema] = Field(description="Purchased items")
    shipping_address: dict[str, Any] = Field(description="Delivery address")
    subtotal: Decimal = Field(description="Subtotal")
    shipping_charges: Decimal = Field(description="Shipping charges")
    tax: Decimal = Field(description="Tax")
    discount: Decimal = Field(description="Discount")
    total: Decimal = Field(description="Total charged")
    coupon: CouponSnapshotSchema | None = Field(default=None, description="Applied coupon")
    gateway_order_id: str | None = Field(default=None, description="Gateway order id")
    gateway_payment_id: str | None = Field(default=None, description="Gateway payment id")
    tracking_info: TrackingInfoSchema | None = Field(default=None, description="Carrier tracking")
    cancellation_reason: str | None = Field(default=None, description="Why the order was cancelled")
    cancelled_at: datetime | None = Field(default=None, description="Cancellation timestamp")
    delivered_at: datetime | None = Field(default=None, description="Delivery timestamp")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class OrderListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="List of orders")


class CancelOrderRequest(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reason: str = Field(default="Cancelled by customer", max_length=500, description="Cancellation reason")


class TrackOrderResponse(BaseModel):
    """Stored order status alongside live carrier tracking."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Order id")
    order_number: str = Field(description="Order number")
    status: OrderStatus = Field(description="Order status")
    tracking_info: TrackingInfoSchema | None = Field(default=None, description="Stored tracking info")
    live_tracking: dict[str, Any] | None = Field(default=None, description="Carrier response, when reachable")
    delivered_at: datetime | None = Field(default=None, description="Delivery timestamp")


class UpdateOrderStatusRequest(BaseModel):
    """Schema for PUT /admin/orders/{order_id}/status."""

    model_config = ConfigDict(from_attributes=True)

    status: OrderStatus = Field(description="Target status")
    tracking_number: str | None = Field(default=None, max_length=100, description="AWB when marking shipped")
    carrier: str | None = Field(default=None, max_length=100, description="Carrier name when marking shipped")
    note: str | None = Field(default=None, max_length=500, description="Admin note, used as cancellation reason")


class PaymentDetailsResponse(BaseModel):
    """Gateway view of a payment."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(description="Gateway payment id")
    status: str | None = Field(default=None, description="Gateway payment status")
    amount: int = Field(description="Amount in minor units")
    amount_refunded: int = Field(default=0, description="Refunded amount in minor units")
    currency: str | None = Field(default=None, description="Currency")
    method: str | None = Field(default=None, description="Payment method type")
    order_id: str | None = Field(default=None, description="Gateway order id")
    captured: bool | None = Field(default=None, description="Whether funds were captured")
