"""Unit tests for FulfillmentService."""

import threading
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.core.exceptions import FulfillmentUnavailable
from src.services.fulfillment_service import CARRIER_NAME, FulfillmentService, map_carrier_status


@pytest.fixture
def service() -> FulfillmentService:
    with patch("src.services.fulfillment_service.get_shiprocket_client") as carrier_factory, \
         patch("src.services.fulfillment_service.OrderLedger") as ledger_cls:
        carrier_factory.return_value = MagicMock()
        ledger = ledger_cls.return_value
        ledger.get_order = AsyncMock(return_value=None)
        ledger.get_by_tracking_number = AsyncMock(return_value=None)
        ledger.compare_and_set = AsyncMock(return_value={"id": "order-1"})
        ledger.update_fields = AsyncMock(return_value={"id": "order-1"})
        ledger.cancel_and_restore = AsyncMock(return_value={"id": "order-1", "status": "cancelled"})
        return FulfillmentService()


def _order(status: str, **extra) -> dict:
    return {
        "id": "order-1",
        "order_number": "ORD20250615000001",
        "status": status,
        "tracking_info": {"tracking_number": "AWB123"},
        "items": [],
        **extra,
    }


class TestMapCarrierStatus:
    @pytest.mark.parametrize(
        "carrier_status,expected",
        [
            ("Shipped", "shipped"),
            ("IN TRANSIT", "shipped"),
            ("in_transit", "shipped"),
            ("Out For Delivery", "out_for_delivery"),
            ("DELIVERED", "delivered"),
            ("Canceled", "cancelled"),
            ("RTO Initiated", "cancelled"),
            ("Pickup Scheduled", "processing"),
            (None, "processing"),
        ],
    )
    def test_mapping(self, carrier_status, expected) -> None:
        assert map_carrier_status(carrier_status) == expected


class TestCreateShipment:
    @pytest.mark.asyncio
    async def test_stores_tracking_info(self, service: FulfillmentService) -> None:
        service.carrier.build_order_payload.return_value = {"order_id": "ORD1"}
        service.carrier.create_order.return_value = {"order_id": 991, "shipment_id": 772, "awb_code": "AWB123"}

        tracking = await service.create_shipment(_order("confirmed"), "buyer@example.com")

        assert tracking["tracking_number"] == "AWB123"
        assert tracking["carrier"] == CARRIER_NAME
        assert tracking["carrier_order_id"] == "991"
        assert tracking["shipment_id"] == "772"
        assert tracking["tracking_url"].endswith("AWB123")
        service.ledger.update_fields.assert_awaited_once()
        _, updates = service.ledger.update_fields.call_args.args
        assert updates["tracking_number"] == "AWB123"

    @pytest.mark.asyncio
    async def test_carrier_calls_run_off_the_event_loop_thread(self, service: FulfillmentService) -> None:
        loop_thread = threading.get_ident()
        carrier_threads: list[int] = []

        def create_order(payload: dict) -> dict:
            carrier_threads.append(threading.get_ident())
            return {"order_id": 991, "shipment_id": 772, "awb_code": "AWB123"}

        def track_shipment(awb_code: str) -> dict:
            carrier_threads.append(threading.get_ident())
            return {"awb_code": awb_code}

        service.carrier.create_order.side_effect = create_order
        service.carrier.track_shipment.side_effect = track_shipment

        await service.create_shipment(_order("confirmed"))
        await service.track("AWB123")

        assert len(carrier_threads) == 2
        assert loop_thread not in carrier_threads

    @pytest.mark.asyncio
    async def test_schedule_turns_carrier_failure_into_retryable(self, service: FulfillmentService) -> None:
        service.ledger.get_order.return_value = _order("confirmed", tracking_info=None)
        service.carrier.create_order.side_effect = FulfillmentUnavailable("carrier down")

        outcome = await service.schedule_shipment("order-1")

        assert outcome.is_retryable
        service.ledger.update_fields.assert_not_called()

    @pytest.mark.asyncio
    async def test_schedule_skips_orders_already_shipped(self, service: FulfillmentService) -> None:
        service.ledger.get_order.return_value = _order(
            "processing", tracking_info={"carrier_order_id": "991", "tracking_number": "AWB123"}
        )

        outcome = await service.schedule_shipment("order-1")

        assert outcome.reason == "already_shipped"
        service.carrier.create_order.assert_not_called()


class TestTrackAndCancel:
    @pytest.mark.asyncio
    async def test_track_returns_none_on_carrier_failure(self, service: FulfillmentService) -> None:
        service.carrier.track_shipment.side_effect = FulfillmentUnavailable("timeout")

        assert await service.track("AWB123") is None

    @pytest.mark.asyncio
    async def test_cancel_without_tracking_number(self, service: FulfillmentService) -> None:
        assert await service.cancel_shipment(None) is False
        service.carrier.cancel_shipment.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_swallows_carrier_failure(self, service: FulfillmentService) -> None:
        service.carrier.cancel_shipment.side_effect = FulfillmentUnavailable("rejected")

        assert await service.cancel_shipment("AWB123") is False


class TestCarrierWebhook:
    """Tests for ingest_carrier_webhook."""

    @pytest.mark.asyncio
    async def test_missing_fields_is_fatal(self, service: FulfillmentService) -> None:
        outcome = await service.ingest_carrier_webhook({"current_status": "Delivered"})

        assert outcome.reason == "missing_awb_or_status"
        assert not outcome.is_ok

    @pytest.mark.asyncio
    async def test_unknown_awb_is_acknowledged(self, service: FulfillmentService) -> None:
        outcome = await service.ingest_carrier_webhook({"awb": "NOPE", "current_status": "Delivered"})

        assert outcome.is_ok
        assert outcome.reason == "unknown_awb"
        service.ledger.compare_and_set.assert_not_called()

    @pytest.mark.asyncio
    async def test_moves_forward(self, service: FulfillmentService) -> None:
        service.ledger.get_by_tracking_number.return_value = _order("processing")

        outcome = await service.ingest_carrier_webhook({"awb": "AWB123", "current_status": "In Transit"})

        assert outcome.reason == "updated"
        order_id, expected, updates = service.ledger.compare_and_set.call_args.args
        assert (order_id, expected, updates["status"]) == ("order-1", "processing", "shipped")
        assert updates["tracking_info"]["last_status"] == "In Transit"

    @pytest.mark.asyncio
    async def test_stale_event_never_moves_backwards(self, service: FulfillmentService) -> None:
        service.ledger.get_by_tracking_number.return_value = _order("out_for_delivery")

        outcome = await service.ingest_carrier_webhook({"awb": "AWB123", "current_status": "Shipped"})

        assert outcome.reason == "ignored"
        service.ledger.compare_and_set.assert_not_called()

    @pytest.mark.asyncio
    async def test_replayed_delivery_is_ignored(self, service: FulfillmentService) -> None:
        service.ledger.get_by_tracking_number.return_value = _order("delivered")

        outcome = await service.ingest_carrier_webhook({"awb": "AWB123", "current_status": "Delivered"})

        assert outcome.reason == "ignored"

    @pytest.mark.asyncio
    async def test_delivery_stamps_delivered_at(self, service: FulfillmentService) -> None:
        service.ledger.get_by_tracking_number.return_value = _order("out_for_delivery")

        await service.ingest_carrier_webhook(
            {"awb": "AWB123", "current_status": "DELIVERED", "delivered_date": "2025-06-15T10:30:00Z"}
        )

        updates = service.ledger.compare_and_set.call_args.args[2]
        assert updates["status"] == "delivered"
        assert updates["delivered_at"].startswith("2025-06-15T10:30:00")

    @pytest.mark.asyncio
    async def test_unparseable_delivery_date_uses_now(self, service: FulfillmentService) -> None:
        service.ledger.get_by_tracking_number.return_value = _order("shipped")

        outcome = await service.ingest_carrier_webhook(
            {"awb": "AWB123", "current_status": "Delivered", "delivered_date": "yesterday-ish"}
        )

        assert outcome.reason == "updated"
        assert "delivered_at" in service.ledger.compare_and_set.call_args.args[2]

    @pytest.mark.asyncio
    async def test_rto_cancels_and_restores_through_ledger(self, service: FulfillmentService) -> None:
        order = _order("shipped")
        service.ledger.get_by_tracking_number.return_value = order

        outcome = await service.ingest_carrier_webhook({"awb": "AWB123", "current_status": "RTO Delivered"})

        assert outcome.reason == "cancelled"
        service.ledger.cancel_and_restore.assert_awaited_once()
        assert service.ledger.cancel_and_restore.call_args.args[0] is order

    @pytest.mark.asyncio
    async def test_cancel_after_delivery_is_ignored(self, service: FulfillmentService) -> None:
        service.ledger.get_by_tracking_number.return_value = _order("delivered")

        outcome = await service.ingest_carrier_webhook({"awb": "AWB123", "current_status": "Cancelled"})

        assert outcome.reason == "ignored"
        service.ledger.cancel_and_restore.assert_not_called()

    @pytest.mark.asyncio
    async def test_losing_cancel_race_reports_lost_race(self, service: FulfillmentService) -> None:
        service.ledger.get_by_tracking_number.return_value = _order("shipped")
        service.ledger.cancel_and_restore.return_value = None

        outcome = await service.ingest_carrier_webhook({"awb": "AWB123", "current_status": "Cancelled"})

        assert outcome.reason == "lost_race"
