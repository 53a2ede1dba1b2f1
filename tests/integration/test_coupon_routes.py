"""Integration tests for customer coupon endpoints."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from src.core.exceptions import CouponNotFound
from src.services.coupon_service import Eligibility

COUPON_ID = "cc0e8400-e29b-41d4-a716-446655440000"


def make_coupon(**extra) -> dict:
    return {
        "id": COUPON_ID,
        "code": "SAVE10",
        "description": "10% off",
        "discount_type": "percentage",
        "discount_value": "10",
        "min_order_value": "500",
        "max_discount_amount": "200",
        "max_uses": 100,
        "max_uses_per_user": 1,
        "used_count": 3,
        "valid_from": "2025-01-01T00:00:00+00:00",
        "valid_until": "2025-12-31T23:59:59+00:00",
        "is_active": True,
        **extra,
    }


class TestValidateCoupon:
    """Tests for POST /api/v1/coupons/validate."""

    @patch("src.api.routes.coupons.CouponService")
    def test_valid_coupon_returns_discount(
        self, mock_service_cls: MagicMock, client: TestClient, customer_headers: dict
    ) -> None:
        mock_service_cls.return_value.validate_code = AsyncMock(
            return_value=(make_coupon(), Eligibility(valid=True), Decimal("80"))
        )

        response = client.post(
            "/api/v1/coupons/validate",
            json={"code": "save10", "order_value": "800"},
            headers=customer_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["code"] == "SAVE10"
        assert Decimal(data["discount"]) == Decimal("80")
        assert data["coupon_id"] == COUPON_ID
        assert data["message"] is None

    @patch("src.api.routes.coupons.CouponService")
    def test_ineligible_coupon_is_not_an_error(
        self, mock_service_cls: MagicMock, client: TestClient, customer_headers: dict
    ) -> None:
        mock_service_cls.return_value.validate_code = AsyncMock(
            return_value=(
                make_coupon(),
                Eligibility(valid=False, reason="Minimum order value of 500 required"),
                Decimal("0"),
            )
        )

        response = client.post(
            "/api/v1/coupons/validate",
            json={"code": "SAVE10", "order_value": "300"},
            headers=customer_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert data["message"] == "Minimum order value of 500 required"
        assert data["coupon_id"] is None

    @patch("src.api.routes.coupons.CouponService")
    def test_unknown_code_is_404(self, mock_service_cls: MagicMock, client: TestClient, customer_headers: dict) -> None:
        mock_service_cls.return_value.validate_code = AsyncMock(side_effect=CouponNotFound("NOPE"))

        response = client.post(
            "/api/v1/coupons/validate",
            json={"code": "NOPE", "order_value": "800"},
            headers=customer_headers,
        )

        assert response.status_code == 404
        assert response.json()["message"] == "Coupon NOPE not found"

    def test_negative_order_value_is_422(self, client: TestClient, customer_headers: dict) -> None:
        response = client.post(
            "/api/v1/coupons/validate",
            json={"code": "SAVE10", "order_value": "-1"},
            headers=customer_headers,
        )

        assert response.status_code == 422


class TestAvailableCoupons:
    @patch("src.api.routes.coupons.CouponService")
    def test_lists_available(self, mock_service_cls: MagicMock, client: TestClient, customer_headers: dict) -> None:
        mock_service_cls.return_value.list_available = AsyncMock(return_value=[make_coupon()])

        response = client.get("/api/v1/coupons/available", headers=customer_headers)

        assert response.status_code == 200
        items = response.json()["items"]
        assert [item["code"] for item in items] == ["SAVE10"]
