"""Checkout Pydantic schemas: gateway order creation and payment verification."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CartItemRequest(BaseModel):
    """A product the buyer wants to purchase."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID = Field(description="Product UUID")
    quantity: int = Field(ge=1, description="Units requested")
    size: str | None = Field(default=None, max_length=20, description="Size label, must be one the product offers")
    color: str | None = Field(default=None, max_length=50, description="Color preference")


class ShippingAddressSchema(BaseModel):
    """Delivery address captured at checkout."""

    model_config = ConfigDict(from_attributes=True)

    full_name: str = Field(..., min_length=1, max_length=255, description="Recipient name")
    phone_number: str = Field(..., min_length=6, max_length=20, description="Recipient phone")
    address_line1: str = Field(..., min_length=1, max_length=255, description="Street address")
    address_line2: str | None = Field(default=None, max_length=255, description="Apartment, suite, etc.")
    city: str = Field(..., min_length=1, max_length=100, description="City")
    state: str = Field(..., min_length=1, max_length=100, description="State")
    pin_code: str = Field(..., min_length=3, max_length=12, description="Postal code")
    country: str = Field(default="India", max_length=100, description="Country")


class PricingSchema(BaseModel):
    """Server-computed price breakdown."""

    model_config = ConfigDict(from_attributes=True)

    subtotal: Decimal = Field(description="Sum of price x quantity")
    shipping_charges: Decimal = Field(description="Flat fee below the free-shipping threshold, else 0")
    tax: Decimal = Field(description="Tax on subtotal minus discount")
    discount: Decimal = Field(description="Coupon discount applied")
    total: Decimal = Field(description="Amount charged")


class CreateGatewayOrderRequest(BaseModel):
    """Schema for POST /orders/create-gateway-order."""

    model_config = ConfigDict(from_attributes=True)

    items: list[CartItemRequest] = Field(..., min_length=1, description="Items to purchase")
    shipping_address: ShippingAddressSchema = Field(description="Delivery address")
    coupon_code: str | None = Field(default=None, max_length=50, description="Coupon to apply")


class CreateGatewayOrderResponse(BaseModel):
    """Gateway order the client completes payment against."""

    model_config = ConfigDict(from_attributes=True)

    gateway_order_id: str = Field(description="Gateway-side order id")
    amount: int = Field(description="Amount in minor currency units")
    currency: str = Field(description="ISO currency code")
    client_secret: str | None = Field(default=None, description="Secret the client SDK confirms the payment with")
    pricing: PricingSchema = Field(description="Price breakdown the amount was derived from")


class VerifyPaymentRequest(BaseModel):
    """Schema for POST /orders/verify-payment."""

    model_config = ConfigDict(from_attributes=True)

    gateway_order_id: str = Field(..., min_length=1, description="Gateway order id from checkout")
    gateway_payment_id: str = Field(..., min_length=1, description="Gateway payment id")
    signature: str = Field(..., min_length=1, description="Hex HMAC-SHA256 of 'order_id|payment_id'")
