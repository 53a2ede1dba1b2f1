"""Coupon ledger: eligibility checks, discount preview, atomic redemption and admin CRUD."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from postgrest.exceptions import APIError as PostgrestAPIError

from src.core.clock import parse_timestamp, utc_now
from src.core.exceptions import ConflictError, CouponNotFound, ValidationError
from src.core.supabase import get_supabase_client
from src.models.coupon import Coupon
from src.services.pricing_service import to_decimal

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

REDEEMED = "redeemed"


@dataclass(frozen=True)
class Eligibility:
    """Outcome of an eligibility check. ``reason`` is set only when invalid."""

    valid: bool
    reason: str | None = None


def evaluate_eligibility(
    coupon: dict[str, Any],
    user_used_count: int,
    order_value: Decimal,
    now: datetime | None = None,
) -> Eligibility:
    """Pure eligibility rules for a coupon.

    Checks, in order: active flag and validity window, global usage limit,
    per-user usage limit, minimum order value.

    Args:
        coupon: Coupon row.
        user_used_count: How many times this user has already redeemed it.
        order_value: Subtotal the coupon would apply to.
        now: Evaluation time, defaults to the current UTC time.

    Returns:
        Eligibility: ``valid`` plus a user-facing reason when invalid.
    """
    now = now or utc_now()
    valid_from = parse_timestamp(coupon.get("valid_from"))
    valid_until = parse_timestamp(coupon.get("valid_until"))

    if not coupon.get("is_active", False):
        return Eligibility(False, "Coupon is not valid or has expired")
    if (valid_from and now < valid_from) or (valid_until and now > valid_until):
        return Eligibility(False, "Coupon is not valid or has expired")

    max_uses = coupon.get("max_uses")
    if max_uses is not None and int(coupon.get("used_count") or 0) >= int(max_uses):
        return Eligibility(False, "Coupon usage limit exceeded")

    max_per_user = int(coupon.get("max_uses_per_user") or 1)
    if user_used_count >= max_per_user:
        return Eligibility(False, "You have already used this coupon maximum times")

    min_order_value = to_decimal(coupon.get("min_order_value"))
    if to_decimal(order_value) < min_order_value:
        return Eligibility(False, f"Minimum order value for this coupon is {min_order_value}")

    return Eligibility(True)


def preview_discount(coupon: dict[str, Any], order_value: Decimal) -> Decimal:
    """Compute the discount a coupon would give on ``order_value``.

    flat: ``min(value, order_value)``.
    percentage: ``min(order_value * value / 100, cap, order_value)``.

    Returns:
        Decimal: Discount, never negative and never above ``order_value``.
    """
    order_value = max(to_decimal(order_value), Decimal("0"))
    value = max(to_decimal(coupon.get("discount_value")), Decimal("0"))

    if coupon.get("discount_type") == "percentage":
        discount = order_value * value / Decimal("100")
    else:
        discount = value

    cap = coupon.get("max_discount_amount")
    if cap is not None:
        discount = min(discount, to_decimal(cap))

    return max(min(discount, order_value), Decimal("0"))


class CouponService:
    """Service for coupon eligibility, redemption and administration."""

    def __init__(self) -> None:
        """Initialize coupon service with Supabase client."""
        self.client = get_supabase_client()

    async def get_coupon_by_code(self, code: str) -> Coupon | None:
        """Get a coupon by its (case-insensitive) code."""
        response = (
            self.client.table("coupons")
            .select("*")
            .eq("code", code.strip().upper())
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_coupon(self, coupon_id: UUID | str) -> Coupon | None:
        response = (
            self.client.table("coupons")
            .select("*")
            .eq("id", str(coupon_id))
            .maybe_single()
            .execute()
        )
        return response.data if response and response.data else None

    async def get_user_usage(self, coupon_id: str, user_id: UUID | str) -> int:
        """How many times a user has redeemed a coupon."""
        response = (
            self.client.table("coupon_redemptions")
            .select("used_count")
            .eq("coupon_id", str(coupon_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        if not response.data:
            return 0
        return int(response.data[0].get("used_count") or 0)

    async def check_eligibility(
        self,
        coupon: dict[str, Any],
        user_id: UUID | str,
        order_value: Decimal,
    ) -> Eligibility:
        """Check whether ``user_id`` may apply ``coupon`` to ``order_value``.

        Fails closed: a lookup error yields an invalid result, never an exception.
        """
        try:
            used = await self.get_user_usage(coupon["id"], user_id)
        except Exception as e:
            logger.error("Coupon usage lookup failed for %s: %s", coupon.get("code"), str(e))
            return Eligibility(False, "Unable to verify coupon eligibility right now")
        return evaluate_eligibility(coupon, used, order_value)

    async def validate_code(
        self,
        code: str,
        user_id: UUID | str,
        order_value: Decimal,
    ) -> tuple[dict[str, Any], Eligibility, Decimal]:
        """Look up a code and preview its discount without committing.

        Returns:
            tuple: The coupon row, the eligibility result and the previewed
            discount (zero when ineligible).

        Raises:
            CouponNotFound: If no coupon has this code.
        """
        coupon = await self.get_coupon_by_code(code)
        if not coupon:
            raise CouponNotFound(code.strip().upper())

        eligibility = await self.check_eligibility(coupon, user_id, order_value)
        if not eligibility.valid:
            return coupon, eligibility, Decimal("0")
        return coupon, eligibility, preview_discount(coupon, order_value)

    async def commit_redemption(self, coupon_id: str, user_id: UUID | str) -> str:
        """Atomically record one redemption.

        The ``redeem_coupon`` database function locks the coupon row, re-checks
        both limits and increments the global and per-user counters only if
        both are still under their limits.

        Returns:
            str: ``redeemed`` or the limit that blocked the redemption
            (``coupon_limit_reached``, ``user_limit_reached``, ``coupon_not_found``).
        """
        response = self.client.rpc(
            "redeem_coupon",
            {"p_coupon_id": str(coupon_id), "p_user_id": str(user_id)},
        ).execute()
        result = response.data if isinstance(response.data, str) else str(response.data)
        if result == REDEEMED:
            logger.info("Coupon %s redeemed by user %s", coupon_id, user_id)
        else:
            logger.warning("Coupon %s redemption refused for user %s: %s", coupon_id, user_id, result)
        return result

    async def list_available(self, user_id: UUID | str) -> list[dict[str, Any]]:
        """Active, in-window coupons the user can still redeem."""
        now = utc_now().isoformat()
        response = (
            self.client.table("coupons")
            .select("*")
            .eq("is_active", True)
            .lte("valid_from", now)
            .gte("valid_until", now)
            .execute()
        )
        coupons = response.data or []
        if not coupons:
            return []

        usage_response = (
            self.client.table("coupon_redemptions")
            .select("coupon_id, used_count")
            .eq("user_id", str(user_id))
            .execute()
        )
        usage = {str(row["coupon_id"]): int(row.get("used_count") or 0) for row in usage_response.data or []}

        available = []
        for coupon in coupons:
            max_uses = coupon.get("max_uses")
            if max_uses is not None and int(coupon.get("used_count") or 0) >= int(max_uses):
                continue
            if usage.get(str(coupon["id"]), 0) >= int(coupon.get("max_uses_per_user") or 1):
                continue
            available.append(coupon)
        return available

    # Administration

    async def list_coupons(self, is_active: bool | None = None, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        query = self.client.table("coupons").select("*")
        if is_active is not None:
            query = query.eq("is_active", is_active)
        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return response.data or []

    async def create_coupon(self, data: dict[str, Any], created_by: UUID | str) -> dict[str, Any]:
        """Create a coupon. The code is stored uppercase.

        Raises:
            ConflictError: If the code already exists.
            ValidationError: If the definition is inconsistent.
        """
        _validate_definition(data)
        record = {
            **data,
            "code": data["code"].strip().upper(),
            "used_count": 0,
            "created_by": str(created_by),
        }
        if await self.get_coupon_by_code(record["code"]):
            raise ConflictError("Coupon code already exists")

        try:
            response = self.client.table("coupons").insert(record).execute()
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictError("Coupon code already exists") from e
            raise

        logger.info("Coupon %s created by %s", record["code"], created_by)
        return response.data[0]

    async def update_coupon(self, coupon_id: UUID | str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Update definition fields. Usage counters are never writable here."""
        updates = {k: v for k, v in updates.items() if k not in ("used_count", "id", "created_by")}
        if "code" in updates:
            updates["code"] = updates["code"].strip().upper()
        if not updates:
            return await self.get_coupon(coupon_id)

        existing = await self.get_coupon(coupon_id)
        if not existing:
            return None
        _validate_definition({**existing, **updates})

        try:
            response = (
                self.client.table("coupons")
                .update(updates)
                .eq("id", str(coupon_id))
                .execute()
            )
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ConflictError("Coupon code already exists") from e
            raise
        return response.data[0] if response.data else None

    async def delete_coupon(self, coupon_id: UUID | str) -> bool:
        response = self.client.table("coupons").delete().eq("id", str(coupon_id)).execute()
        deleted = bool(response.data)
        if deleted:
            logger.info("Coupon %s deleted", coupon_id)
        return deleted


def _validate_definition(data: dict[str, Any]) -> None:
    """Reject coupon definitions that could never be applied sensibly."""
    if data.get("discount_type") not in ("flat", "percentage"):
        raise ValidationError("discount_type must be 'flat' or 'percentage'")
    value = to_decimal(data.get("discount_value"))
    if value <= 0:
        raise ValidationError("discount_value must be positive")
    if data.get("discount_type") == "percentage" and value > 100:
        raise ValidationError("Percentage discount cannot exceed 100")
    valid_from = parse_timestamp(data.get("valid_from"))
    valid_until = parse_timestamp(data.get("valid_until"))
    if valid_from and valid_until and valid_until <= valid_from:
        raise ValidationError("valid_until must be after valid_from")
