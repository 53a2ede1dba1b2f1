"""Domain errors raised by the pricing, checkout, payment and fulfillment services.

Each error subclasses one of the API error categories so that the error
handler middleware can render it without per-route mapping.
"""

from typing import Any

from src.api.middleware.error_handler import (
    APIError,
    AuthenticationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "APIError",
    "AuthenticationError",
    "ConflictError",
    "CouponIneligible",
    "CouponNotFound",
    "ExternalServiceError",
    "FulfillmentUnavailable",
    "GatewayUnavailable",
    "InsufficientStock",
    "InvalidLineItem",
    "InvalidOrderState",
    "InvalidSize",
    "NoPendingOrder",
    "NotFoundError",
    "OrderNotFound",
    "ProductInactive",
    "ProductNotFound",
    "ReturnNotFound",
    "ReturnWindowExpired",
    "SignatureMismatch",
    "ValidationError",
]


class InvalidLineItem(ValidationError):
    """A line item has a non-positive quantity or a negative price."""


class ProductNotFound(NotFoundError):
    def __init__(self, product_id: str) -> None:
        super().__init__(
            message=f"Product not found: {product_id}",
            details=[{"loc": ["items", "product_id"], "msg": product_id, "type": "product_not_found"}],
        )
        self.product_id = product_id


class ProductInactive(ConflictError):
    def __init__(self, product_id: str, name: str | None = None) -> None:
        super().__init__(message=f"Product {name or product_id} is no longer available")
        self.product_id = product_id


class InsufficientStock(ConflictError):
    """Requested quantity exceeds the product's available stock."""

    def __init__(self, product_id: str, name: str, available: int, requested: int) -> None:
        super().__init__(
            message=f"Insufficient stock for {name}: {available} available, {requested} requested",
            details=[
                {
                    "loc": ["items", product_id],
                    "msg": f"available={available}",
                    "type": "insufficient_stock",
                }
            ],
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class InvalidSize(ValidationError):
    def __init__(self, name: str, size: str) -> None:
        super().__init__(message=f"Size {size} is not available for {name}")
        self.size = size


class CouponNotFound(NotFoundError):
    def __init__(self, code: str) -> None:
        super().__init__(message=f"Coupon {code} not found")
        self.code = code


class CouponIneligible(ConflictError):
    """Coupon exists but cannot be applied for this user and order value."""

    def __init__(self, code: str, reason: str) -> None:
        super().__init__(message=reason)
        self.code = code
        self.reason = reason


class SignatureMismatch(AuthenticationError):
    """Payment confirmation signature did not match.

    The client-facing message stays generic on purpose.
    """

    def __init__(self, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message="Payment verification failed", details=details)
        self.status_code = 400
        self.error_type = "payment_verification_failed"


class NoPendingOrder(ConflictError):
    def __init__(self, message: str = "No pending order found for this payment") -> None:
        super().__init__(message=message)


class OrderNotFound(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(message="Order not found")
        self.order_id = order_id


class ReturnNotFound(NotFoundError):
    def __init__(self, return_id: str) -> None:
        super().__init__(message="Return request not found")
        self.return_id = return_id


class InvalidOrderState(ConflictError):
    """Requested transition is not allowed from the record's current status."""

    def __init__(self, current: str, target: str | None = None, message: str | None = None) -> None:
        if message is None:
            if target:
                message = f"Cannot change status from {current} to {target}"
            else:
                message = f"Operation not allowed while status is {current}"
        super().__init__(message=message)
        self.current = current
        self.target = target


class ReturnWindowExpired(ConflictError):
    def __init__(self, window_days: int) -> None:
        super().__init__(message=f"Return window of {window_days} days has expired")
        self.window_days = window_days


class GatewayUnavailable(ExternalServiceError):
    """Payment gateway call failed.

    A timeout or connection error is retryable, an API rejection is not.
    """

    def __init__(self, message: str = "Payment gateway unavailable", retryable: bool = True) -> None:
        super().__init__(message=message, retryable=retryable)


class FulfillmentUnavailable(ExternalServiceError):
    def __init__(self, message: str = "Shipping carrier unavailable", retryable: bool = True) -> None:
        super().__init__(message=message, retryable=retryable)
