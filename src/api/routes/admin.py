"""Admin API routes: order, return, coupon and payment management."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.api.deps import CouponAdmin, CouponViewer, OrderAdmin, PaymentViewer, ReturnAdmin
from src.core.exceptions import NotFoundError
from src.core.payment_gateway import get_payment_gateway
from src.models.order import OrderStatus
from src.models.return_request import ReturnStatus
from src.schemas.coupon import CouponCreate, CouponListResponse, CouponResponse, CouponUpdate
from src.schemas.order import (
    OrderListResponse,
    OrderResponse,
    PaymentDetailsResponse,
    UpdateOrderStatusRequest,
)
from src.schemas.returns import ReturnListResponse, ReturnResponse, UpdateReturnStatusRequest
from src.services.coupon_service import CouponService
from src.services.order_service import OrderService
from src.services.return_service import ReturnService

router = APIRouter(prefix="/admin", tags=["admin"])


# Orders


@router.get("/orders", response_model=OrderListResponse, summary="List all orders")
async def list_orders(
    admin: OrderAdmin,
    order_status: OrderStatus | None = Query(default=None, alias="status", description="Filter by status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> OrderListResponse:
    service = OrderService()
    orders = await service.list_orders(status=order_status, limit=limit, offset=offset)
    return OrderListResponse(items=[OrderResponse(**order) for order in orders])


@router.put(
    "/orders/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Moves an order forward in its lifecycle. Cancelling restores stock.",
)
async def update_order_status(
    order_id: UUID,
    data: UpdateOrderStatusRequest,
    admin: OrderAdmin,
) -> OrderResponse:
    """Apply an admin status change.

    Raises:
        NotFoundError: 404 if the order does not exist.
        ConflictError: 409 if the transition is not allowed.
    """
    service = OrderService()
    order = await service.update_order_status(
        order_id,
        data.status,
        tracking_number=data.tracking_number,
        carrier=data.carrier,
        note=data.note,
    )
    return OrderResponse(**order)


@router.post(
    "/orders/{order_id}/shipment",
    response_model=OrderResponse,
    summary="Create carrier shipment",
    description="Creates the carrier shipment for an order whose automatic creation failed.",
)
async def create_shipment(order_id: UUID, admin: OrderAdmin) -> OrderResponse:
    service = OrderService()
    order = await service.retry_shipment(order_id)
    return OrderResponse(**order)


# Returns


@router.get("/returns", response_model=ReturnListResponse, summary="List return requests")
async def list_returns(
    admin: ReturnAdmin,
    return_status: ReturnStatus | None = Query(default=None, alias="status", description="Filter by status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> ReturnListResponse:
    service = ReturnService()
    returns = await service.list_returns(status=return_status, limit=limit, offset=offset)
    return ReturnListResponse(items=[ReturnResponse(**r) for r in returns])


@router.put(
    "/returns/{return_id}/status",
    response_model=ReturnResponse,
    summary="Update return status",
    description="Approves, rejects or completes a return. Approving a refund-type return issues the refund.",
)
async def update_return_status(
    return_id: UUID,
    data: UpdateReturnStatusRequest,
    admin: ReturnAdmin,
) -> ReturnResponse:
    """Apply an admin decision to a return.

    Raises:
        NotFoundError: 404 if the return does not exist.
        ConflictError: 409 if the transition is not allowed.
        ExternalServiceError: 502/503 if the refund failed; the status change
            is kept and the refund can be retried.
    """
    service = ReturnService()
    return_request = await service.update_return_status(
        return_id,
        data.status,
        admin_id=admin.user_id,
        admin_notes=data.admin_notes,
    )
    return ReturnResponse(**return_request)


@router.post(
    "/returns/{return_id}/refund",
    response_model=ReturnResponse,
    summary="Retry refund",
    description="Re-issues the gateway refund for an approved refund request.",
)
async def retry_refund(return_id: UUID, admin: ReturnAdmin) -> ReturnResponse:
    service = ReturnService()
    return_request = await service.retry_refund(return_id)
    return ReturnResponse(**return_request)


# Coupons


@router.get("/coupons", response_model=CouponListResponse, summary="List coupons")
async def list_coupons(
    viewer: CouponViewer,
    is_active: bool | None = Query(default=None, description="Filter by active flag"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> CouponListResponse:
    service = CouponService()
    coupons = await service.list_coupons(is_active=is_active, limit=limit, offset=offset)
    return CouponListResponse(items=[CouponResponse(**coupon) for coupon in coupons])


@router.post(
    "/coupons",
    response_model=CouponResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create coupon",
)
async def create_coupon(data: CouponCreate, admin: CouponAdmin) -> CouponResponse:
    """Create a coupon. The code is stored uppercase.

    Raises:
        ConflictError: 409 if the code already exists.
        ValidationError: 400 for an inconsistent definition.
    """
    service = CouponService()
    coupon = await service.create_coupon(data.model_dump(mode="json"), created_by=admin.user_id)
    return CouponResponse(**coupon)


@router.put("/coupons/{coupon_id}", response_model=CouponResponse, summary="Update coupon")
async def update_coupon(coupon_id: UUID, data: CouponUpdate, admin: CouponAdmin) -> CouponResponse:
    service = CouponService()
    coupon = await service.update_coupon(coupon_id, data.model_dump(mode="json", exclude_unset=True))
    if not coupon:
        raise NotFoundError("Coupon not found")
    return CouponResponse(**coupon)


@router.delete(
    "/coupons/{coupon_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete coupon",
)
async def delete_coupon(coupon_id: UUID, admin: CouponAdmin) -> None:
    service = CouponService()
    if not await service.delete_coupon(coupon_id):
        raise NotFoundError("Coupon not found")


# Payments


@router.get(
    "/payments/{payment_id}",
    response_model=PaymentDetailsResponse,
    summary="Get payment details",
    description="Fetches a payment from the gateway.",
)
async def get_payment(payment_id: str, admin: PaymentViewer) -> PaymentDetailsResponse:
    payment = get_payment_gateway().fetch_payment(payment_id)
    return PaymentDetailsResponse(**payment)
