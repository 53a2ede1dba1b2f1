"""Unit tests for OrderService."""

from unittest.mock import AsyncMock, patch
from uuid import UUID

import pytest

from src.core.exceptions import FulfillmentUnavailable, InvalidOrderState, OrderNotFound
from src.core.outcome import Outcome
from src.services.order_service import OrderService

USER_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
ORDER_ID = UUID("770e8400-e29b-41d4-a716-446655440000")


@pytest.fixture
def service() -> OrderService:
    with patch("src.services.order_service.OrderLedger") as ledger_cls, \
         patch("src.services.order_service.FulfillmentService") as fulfillment_cls:
        ledger = ledger_cls.return_value
        ledger.get_order = AsyncMock(return_value=None)
        ledger.get_order_for_user = AsyncMock(return_value=None)
        ledger.list_for_user = AsyncMock(return_value=[])
        ledger.list_orders = AsyncMock(return_value=[])
        ledger.compare_and_set = AsyncMock()
        ledger.cancel_and_restore = AsyncMock()
        fulfillment = fulfillment_cls.return_value
        fulfillment.cancel_shipment = AsyncMock(return_value=True)
        fulfillment.track = AsyncMock(return_value=None)
        fulfillment.schedule_shipment = AsyncMock()
        return OrderService()


def _order(status: str, **extra) -> dict:
    return {
        "id": str(ORDER_ID),
        "order_number": "ORD20250615000001",
        "user_id": str(USER_ID),
        "status": status,
        "items": [{"product_id": "p1", "quantity": 2}],
        "tracking_info": {"tracking_number": "AWB123"},
        **extra,
    }


class TestCustomerCancel:
    """Tests for cancel_order."""

    @pytest.mark.asyncio
    async def test_cancels_confirmed_order(self, service: OrderService) -> None:
        order = _order("confirmed")
        service.ledger.get_order_for_user.return_value = order
        service.ledger.cancel_and_restore.return_value = {**order, "status": "cancelled"}

        result = await service.cancel_order(ORDER_ID, USER_ID, "Changed my mind")

        assert result["status"] == "cancelled"
        service.fulfillment.cancel_shipment.assert_awaited_once_with("AWB123")
        service.ledger.cancel_and_restore.assert_awaited_once_with(order, "Changed my mind")

    @pytest.mark.asyncio
    async def test_shipped_order_cannot_be_cancelled(self, service: OrderService) -> None:
        service.ledger.get_order_for_user.return_value = _order("shipped")

        with pytest.raises(InvalidOrderState) as exc_info:
            await service.cancel_order(ORDER_ID, USER_ID, "Too slow")

        assert exc_info.value.status_code == 409
        assert exc_info.value.message == "Order cannot be cancelled while shipped"
        service.ledger.cancel_and_restore.assert_not_called()
        service.fulfillment.cancel_shipment.assert_not_called()

    @pytest.mark.asyncio
    async def test_someone_elses_order_is_not_found(self, service: OrderService) -> None:
        with pytest.raises(OrderNotFound):
            await service.cancel_order(ORDER_ID, USER_ID, "reason")

    @pytest.mark.asyncio
    async def test_concurrent_cancel_loses(self, service: OrderService) -> None:
        service.ledger.get_order_for_user.return_value = _order("confirmed")
        service.ledger.cancel_and_restore.return_value = None
        service.ledger.get_order.return_value = _order("cancelled")

        with pytest.raises(InvalidOrderState) as exc_info:
            await service.cancel_order(ORDER_ID, USER_ID, "reason")

        assert exc_info.value.current == "cancelled"


class TestTracking:
    @pytest.mark.asyncio
    async def test_includes_live_tracking(self, service: OrderService) -> None:
        service.ledger.get_order_for_user.return_value = _order("shipped")
        service.fulfillment.track.return_value = {"tracking_data": {"shipment_status": 6}}

        result = await service.track_order(ORDER_ID, USER_ID)

        assert result["status"] == "shipped"
        assert result["live_tracking"] == {"tracking_data": {"shipment_status": 6}}
        service.fulfillment.track.assert_awaited_once_with("AWB123")

    @pytest.mark.asyncio
    async def test_no_tracking_number_skips_carrier(self, service: OrderService) -> None:
        service.ledger.get_order_for_user.return_value = _order("confirmed", tracking_info=None)

        result = await service.track_order(ORDER_ID, USER_ID)

        assert result["tracking_info"] is None
        assert result["live_tracking"] is None
        service.fulfillment.track.assert_not_called()


class TestAdminStatusUpdate:
    """Tests for update_order_status."""

    @pytest.mark.asyncio
    async def test_ship_with_tracking_number(self, service: OrderService) -> None:
        service.ledger.get_order.return_value = _order("processing", tracking_info=None)
        service.ledger.compare_and_set.return_value = _order("shipped")

        await service.update_order_status(ORDER_ID, "shipped", tracking_number="AWB999", carrier="Delhivery")

        order_id, expected, updates = service.ledger.compare_and_set.call_args.args
        assert expected == "processing"
        assert updates["tracking_number"] == "AWB999"
        assert updates["tracking_info"]["carrier"] == "Delhivery"
        assert updates["tracking_info"]["tracking_url"].endswith("AWB999")

    @pytest.mark.asyncio
    async def test_delivered_stamps_time(self, service: OrderService) -> None:
        service.ledger.get_order.return_value = _order("out_for_delivery")
        service.ledger.compare_and_set.return_value = _order("delivered")

        await service.update_order_status(ORDER_ID, "delivered")

        assert "delivered_at" in service.ledger.compare_and_set.call_args.args[2]

    @pytest.mark.asyncio
    async def test_backwards_transition_rejected(self, service: OrderService) -> None:
        service.ledger.get_order.return_value = _order("delivered")

        with pytest.raises(InvalidOrderState) as exc_info:
            await service.update_order_status(ORDER_ID, "shipped")

        assert exc_info.value.message == "Cannot change status from delivered to shipped"
        service.ledger.compare_and_set.assert_not_called()

    @pytest.mark.asyncio
    async def test_admin_cancel_restores_through_ledger(self, service: OrderService) -> None:
        order = _order("processing")
        service.ledger.get_order.return_value = order
        service.ledger.cancel_and_restore.return_value = {**order, "status": "cancelled"}

        result = await service.update_order_status(ORDER_ID, "cancelled", note="Out of stock at warehouse")

        assert result["status"] == "cancelled"
        service.ledger.cancel_and_restore.assert_awaited_once_with(order, "Out of stock at warehouse")

    @pytest.mark.asyncio
    async def test_lost_race_is_conflict(self, service: OrderService) -> None:
        service.ledger.get_order.return_value = _order("confirmed")
        service.ledger.compare_and_set.return_value = None

        with pytest.raises(InvalidOrderState):
            await service.update_order_status(ORDER_ID, "processing")

    @pytest.mark.asyncio
    async def test_unknown_order(self, service: OrderService) -> None:
        with pytest.raises(OrderNotFound):
            await service.update_order_status(ORDER_ID, "processing")


class TestRetryShipment:
    @pytest.mark.asyncio
    async def test_returns_refreshed_order(self, service: OrderService) -> None:
        shipped = _order("confirmed", tracking_info={"carrier_order_id": "991"})
        service.ledger.get_order.side_effect = [_order("confirmed", tracking_info=None), shipped]
        service.fulfillment.schedule_shipment.return_value = Outcome.ok("shipment_created")

        result = await service.retry_shipment(ORDER_ID)

        assert result is shipped

    @pytest.mark.asyncio
    async def test_carrier_failure_raises(self, service: OrderService) -> None:
        service.ledger.get_order.return_value = _order("confirmed", tracking_info=None)
        service.fulfillment.schedule_shipment.return_value = Outcome.retryable("carrier timed out")

        with pytest.raises(FulfillmentUnavailable):
            await service.retry_shipment(ORDER_ID)

    @pytest.mark.asyncio
    async def test_unshippable_status_is_conflict(self, service: OrderService) -> None:
        service.ledger.get_order.return_value = _order("cancelled", tracking_info=None)
        service.fulfillment.schedule_shipment.return_value = Outcome.fatal("not_shippable:cancelled")

        with pytest.raises(InvalidOrderState):
            await service.retry_shipment(ORDER_ID)
