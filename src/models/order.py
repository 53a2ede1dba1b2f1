"""Order model type definitions and lifecycle rules."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID

from src.models.coupon import CouponSnapshot


# Order status enum values matching database enum
OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "out_for_delivery",
    "delivered",
    "cancelled",
    "refunded",
]

PaymentStatus = Literal["pending", "completed", "failed", "refunded"]

ORDER_STATUSES: tuple[str, ...] = (
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "out_for_delivery",
    "delivered",
    "cancelled",
    "refunded",
)

# Forward-only lifecycle plus the explicit cancel and refund branches
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"processing", "shipped", "out_for_delivery", "delivered", "cancelled"}),
    "processing": frozenset({"shipped", "out_for_delivery", "delivered", "cancelled"}),
    "shipped": frozenset({"out_for_delivery", "delivered"}),
    "out_for_delivery": frozenset({"delivered"}),
    "delivered": frozenset({"refunded"}),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}

# Statuses a customer may cancel from
USER_CANCELLABLE_STATUSES = frozenset({"confirmed", "processing"})

# Statuses from which a carrier cancellation or RTO may cancel the order
CARRIER_CANCELLABLE_STATUSES = frozenset({"confirmed", "processing", "shipped", "out_for_delivery"})

# Position in the forward lifecycle, used to ignore stale carrier events
FORWARD_RANK: dict[str, int] = {
    "pending": 0,
    "confirmed": 1,
    "processing": 2,
    "shipped": 3,
    "out_for_delivery": 4,
    "delivered": 5,
}


def can_transition(current: str, target: str) -> bool:
    """Check whether an order may move from ``current`` to ``target``."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


class OrderLineItem(TypedDict):
    """Immutable snapshot of a purchased item, stored in orders.items JSONB."""

    item_id: str
    product_id: str
    name: str
    price: str
    quantity: int
    size: str | None
    color: str | None
    image: str | None


class ShippingAddress(TypedDict, total=False):
    full_name: str
    phone_number: str
    address_line1: str
    address_line2: str | None
    city: str
    state: str
    pin_code: str
    country: str


class TrackingInfo(TypedDict, total=False):
    """Carrier correlation stored in orders.tracking_info JSONB."""

    tracking_number: str
    carrier: str
    tracking_url: str
    carrier_order_id: str
    shipment_id: str
    estimated_delivery: str
    last_status: str
    last_event_at: str


class Order(TypedDict):
    """Order table row representation."""

    id: UUID
    user_id: UUID
    order_number: str
    items: list[OrderLineItem]
    shipping_address: ShippingAddress
    gateway_order_id: str
    gateway_payment_id: str | None
    gateway_signature: str | None
    payment_method: str
    payment_status: PaymentStatus
    subtotal: str
    shipping_charges: str
    tax: str
    discount: str
    total: str
    coupon: CouponSnapshot | None
    status: OrderStatus
    tracking_info: TrackingInfo | None
    cancellation_reason: str | None
    cancelled_at: datetime | None
    delivered_at: datetime | None
    created_at: datetime
    updated_at: datetime


class PendingCheckout(TypedDict):
    """pending_checkouts table row: the single staging slot per user."""

    user_id: UUID
    gateway_order_id: str
    items: list[OrderLineItem]
    shipping_address: ShippingAddress
    pricing: dict[str, str]
    coupon: CouponSnapshot | None
    status: Literal["pending"]
    expires_at: datetime
    created_at: datetime
