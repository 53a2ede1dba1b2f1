"""Order API routes: checkout, payment verification, queries and cancellation."""

import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, status

from src.api.deps import Customer
from src.schemas.checkout import (
    CreateGatewayOrderRequest,
    CreateGatewayOrderResponse,
    PricingSchema,
    VerifyPaymentRequest,
)
from src.schemas.order import (
    CancelOrderRequest,
    OrderListResponse,
    OrderResponse,
    TrackOrderResponse,
)
from src.services.checkout_service import CheckoutService
from src.services.fulfillment_service import create_shipment_in_background
from src.services.order_service import OrderService
from src.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "/create-gateway-order",
    response_model=CreateGatewayOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start checkout",
    description="Validates the cart against live stock, prices it server-side and opens a gateway order.",
)
async def create_gateway_order(
    data: CreateGatewayOrderRequest,
    user: Customer,
) -> CreateGatewayOrderResponse:
    """Validate, price and stage a checkout.

    Stock and coupon usage are not touched until payment is verified.

    Raises:
        ValidationError: 400 for invalid items or sizes.
        ConflictError: 409 for inactive products, insufficient stock or an
            ineligible coupon.
        ExternalServiceError: 503 if the gateway is unavailable.
    """
    service = CheckoutService()
    result = await service.initiate_checkout(
        user_id=user.user_id,
        items=[item.model_dump(mode="json") for item in data.items],
        shipping_address=data.shipping_address.model_dump(mode="json"),
        coupon_code=data.coupon_code,
        customer_email=user.email,
    )
    return CreateGatewayOrderResponse(
        gateway_order_id=result["gateway_order_id"],
        amount=result["amount"],
        currency=result["currency"],
        client_secret=result.get("client_secret"),
        pricing=PricingSchema.model_validate(result["pricing"]),
    )


@router.post(
    "/verify-payment",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Verify payment and place order",
    description="Verifies the payment signature and turns the staged checkout into a confirmed order.",
)
async def verify_payment(
    data: VerifyPaymentRequest,
    user: Customer,
    background_tasks: BackgroundTasks,
) -> OrderResponse:
    """Verify a client-reported payment and create the order.

    Shipment creation runs after the response is sent; a carrier failure
    leaves tracking empty and does not affect the order.

    Raises:
        AuthenticationError: 400 "Payment verification failed" on a bad signature.
        ConflictError: 409 if there is no pending checkout for this payment.
        ExternalServiceError: 503 if the gateway could not confirm the payment.
    """
    service = ReconciliationService()
    order = await service.verify_and_finalize(
        user_id=user.user_id,
        gateway_order_id=data.gateway_order_id,
        gateway_payment_id=data.gateway_payment_id,
        signature=data.signature,
    )
    background_tasks.add_task(create_shipment_in_background, str(order["id"]), order.get("customer_email"))
    return OrderResponse(**order)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders",
)
async def list_orders(user: Customer) -> OrderListResponse:
    service = OrderService()
    orders = await service.list_user_orders(user.user_id)
    return OrderListResponse(items=[OrderResponse(**order) for order in orders])


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order. Only accessible by the order owner.",
)
async def get_order(order_id: UUID, user: Customer) -> OrderResponse:
    service = OrderService()
    order = await service.get_user_order(order_id, user.user_id)
    return OrderResponse(**order)


@router.get(
    "/{order_id}/track",
    response_model=TrackOrderResponse,
    summary="Track order",
    description="Stored order status plus live carrier tracking when a tracking number exists.",
)
async def track_order(order_id: UUID, user: Customer) -> TrackOrderResponse:
    service = OrderService()
    result = await service.track_order(order_id, user.user_id)
    return TrackOrderResponse(**result)


@router.put(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
    description="Cancels a confirmed or processing order and restores its stock.",
)
async def cancel_order(
    order_id: UUID,
    user: Customer,
    data: CancelOrderRequest | None = None,
) -> OrderResponse:
    """Cancel the user's order.

    Raises:
        NotFoundError: 404 if the order is not the user's.
        ConflictError: 409 if the order has already shipped or is closed.
    """
    service = OrderService()
    reason = data.reason if data else CancelOrderRequest().reason
    order = await service.cancel_order(order_id, user.user_id, reason)
    return OrderResponse(**order)
