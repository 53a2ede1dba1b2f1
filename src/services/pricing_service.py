"""Pricing engine: turns validated line items and a discount into a breakdown.

Pure computation, no I/O. Amounts are ``Decimal`` in whole currency units;
tax is rounded half-up to a whole unit.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from src.core.exceptions import InvalidLineItem

FREE_SHIPPING_THRESHOLD = Decimal("999")
SHIPPING_FEE = Decimal("99")
TAX_RATE = Decimal("0.18")

_WHOLE_UNIT = Decimal("1")
_MINOR_UNITS = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Coerce a stored amount (str, int, float, Decimal) to Decimal."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def round_currency(value: Decimal) -> Decimal:
    """Round half-up to a whole currency unit."""
    return value.quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to the gateway's minor unit (paise, cents)."""
    return int((to_decimal(amount) * _MINOR_UNITS).quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int) -> Decimal:
    return Decimal(amount_minor) / _MINOR_UNITS


@dataclass(frozen=True)
class PriceBreakdown:
    """Result of pricing a cart.

    Invariant: ``total == subtotal + shipping_charges + tax - discount``.
    """

    subtotal: Decimal
    shipping_charges: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal

    def to_record(self) -> dict[str, str]:
        """Serialize for JSON/NUMERIC columns without float drift."""
        return {
            "subtotal": str(self.subtotal),
            "shipping_charges": str(self.shipping_charges),
            "tax": str(self.tax),
            "discount": str(self.discount),
            "total": str(self.total),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "PriceBreakdown":
        return cls(
            subtotal=to_decimal(record["subtotal"]),
            shipping_charges=to_decimal(record["shipping_charges"]),
            tax=to_decimal(record["tax"]),
            discount=to_decimal(record["discount"]),
            total=to_decimal(record["total"]),
        )


def compute_subtotal(items: Iterable[dict[str, Any]]) -> Decimal:
    """Sum ``price * quantity`` over line items.

    Raises:
        InvalidLineItem: If any quantity is below 1 or any price is negative.
    """
    subtotal = Decimal("0")
    for index, item in enumerate(items):
        quantity = item.get("quantity")
        price = to_decimal(item.get("price"))
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise InvalidLineItem(
                f"Quantity must be at least 1 (item {index})",
                details=[{"loc": ["items", str(index), "quantity"], "msg": str(quantity), "type": "invalid_quantity"}],
            )
        if price < 0:
            raise InvalidLineItem(
                f"Unit price cannot be negative (item {index})",
                details=[{"loc": ["items", str(index), "price"], "msg": str(price), "type": "invalid_price"}],
            )
        subtotal += price * quantity
    return subtotal


def calculate_pricing(
    items: Iterable[dict[str, Any]],
    discount: Decimal = Decimal("0"),
    free_shipping_threshold: Decimal = FREE_SHIPPING_THRESHOLD,
    shipping_fee: Decimal = SHIPPING_FEE,
    tax_rate: Decimal = TAX_RATE,
) -> PriceBreakdown:
    """Price a set of line items.

    Args:
        items: Dicts with ``price`` and ``quantity``.
        discount: Previewed coupon discount; clamped to ``[0, subtotal]``.
        free_shipping_threshold: Subtotal at or above which shipping is free.
        shipping_fee: Flat fee below the threshold.
        tax_rate: Rate applied to ``subtotal - discount``.

    Returns:
        PriceBreakdown: The five-field breakdown.

    Raises:
        InvalidLineItem: If any line item is malformed.
    """
    subtotal = compute_subtotal(items)
    discount = min(max(to_decimal(discount), Decimal("0")), subtotal)
    shipping_charges = Decimal("0") if subtotal >= free_shipping_threshold else shipping_fee
    tax = round_currency((subtotal - discount) * tax_rate)
    total = subtotal + shipping_charges + tax - discount
    return PriceBreakdown(
        subtotal=subtotal,
        shipping_charges=shipping_charges,
        tax=tax,
        discount=discount,
        total=total,
    )


class PricingService:
    """Pricing engine bound to the configured shipping and tax constants."""

    def __init__(
        self,
        free_shipping_threshold: Decimal = FREE_SHIPPING_THRESHOLD,
        shipping_fee: Decimal = SHIPPING_FEE,
        tax_rate: Decimal = TAX_RATE,
    ) -> None:
        self.free_shipping_threshold = free_shipping_threshold
        self.shipping_fee = shipping_fee
        self.tax_rate = tax_rate

    @classmethod
    def from_settings(cls, settings: Any) -> "PricingService":
        return cls(
            free_shipping_threshold=to_decimal(settings.free_shipping_threshold),
            shipping_fee=to_decimal(settings.shipping_fee),
            tax_rate=to_decimal(settings.tax_rate),
        )

    def price(self, items: Iterable[dict[str, Any]], discount: Decimal = Decimal("0")) -> PriceBreakdown:
        return calculate_pricing(
            items,
            discount=discount,
            free_shipping_threshold=self.free_shipping_threshold,
            shipping_fee=self.shipping_fee,
            tax_rate=self.tax_rate,
        )
