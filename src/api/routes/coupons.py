"""Coupon API routes for customers: preview and discovery."""

from fastapi import APIRouter

from src.api.deps import Customer
from src.schemas.coupon import (
    CouponListResponse,
    CouponResponse,
    ValidateCouponRequest,
    ValidateCouponResponse,
)
from src.services.coupon_service import CouponService

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post(
    "/validate",
    response_model=ValidateCouponResponse,
    summary="Preview a coupon",
    description="Checks a coupon against an order value and returns the discount. Nothing is redeemed.",
)
async def validate_coupon(data: ValidateCouponRequest, user: Customer) -> ValidateCouponResponse:
    """Preview a coupon discount.

    An ineligible coupon is a successful response with ``valid=false`` and the
    reason in ``message``.

    Raises:
        NotFoundError: 404 if the code does not exist.
    """
    service = CouponService()
    coupon, eligibility, discount = await service.validate_code(data.code, user.user_id, data.order_value)
    return ValidateCouponResponse(
        valid=eligibility.valid,
        code=coupon["code"],
        discount=discount,
        message=eligibility.reason,
        coupon_id=coupon["id"] if eligibility.valid else None,
    )


@router.get(
    "/available",
    response_model=CouponListResponse,
    summary="List coupons I can use",
)
async def list_available_coupons(user: Customer) -> CouponListResponse:
    service = CouponService()
    coupons = await service.list_available(user.user_id)
    return CouponListResponse(items=[CouponResponse(**coupon) for coupon in coupons])
