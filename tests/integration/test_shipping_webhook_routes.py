"""Integration tests for the shipping carrier webhook endpoint."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from src.core.outcome import Outcome
from src.core.signatures import compute_body_signature

WEBHOOK_SECRET = "carrier-webhook-secret"
BODY = json.dumps({"awb": "AWB123", "current_status": "DELIVERED"}).encode()


class TestShippingWebhook:
    """Tests for POST /api/v1/shipping/webhook."""

    @patch("src.api.routes.shipping.FulfillmentService")
    @patch("src.api.routes.shipping.get_settings")
    def test_unsigned_webhook_accepted_without_secret(
        self, mock_settings: MagicMock, mock_service_cls: MagicMock, client: TestClient
    ) -> None:
        mock_settings.return_value.shiprocket_webhook_secret = ""
        mock_service_cls.return_value.ingest_carrier_webhook = AsyncMock(return_value=Outcome.ok("updated"))

        response = client.post("/api/v1/shipping/webhook", content=BODY)

        assert response.status_code == 200
        assert response.json() == {"status": "received"}
        mock_service_cls.return_value.ingest_carrier_webhook.assert_awaited_once_with(
            {"awb": "AWB123", "current_status": "DELIVERED"}
        )

    @patch("src.api.routes.shipping.FulfillmentService")
    @patch("src.api.routes.shipping.get_settings")
    def test_signed_webhook_accepted(
        self, mock_settings: MagicMock, mock_service_cls: MagicMock, client: TestClient
    ) -> None:
        mock_settings.return_value.shiprocket_webhook_secret = WEBHOOK_SECRET
        mock_service_cls.return_value.ingest_carrier_webhook = AsyncMock(return_value=Outcome.ok("updated"))

        response = client.post(
            "/api/v1/shipping/webhook",
            content=BODY,
            headers={"x-shiprocket-signature": compute_body_signature(BODY, WEBHOOK_SECRET)},
        )

        assert response.status_code == 200

    @patch("src.api.routes.shipping.FulfillmentService")
    @patch("src.api.routes.shipping.get_settings")
    def test_bad_signature_is_401(
        self, mock_settings: MagicMock, mock_service_cls: MagicMock, client: TestClient
    ) -> None:
        mock_settings.return_value.shiprocket_webhook_secret = WEBHOOK_SECRET
        mock_service_cls.return_value.ingest_carrier_webhook = AsyncMock()

        response = client.post(
            "/api/v1/shipping/webhook",
            content=BODY,
            headers={"x-shiprocket-signature": "0" * 64},
        )

        assert response.status_code == 401
        mock_service_cls.return_value.ingest_carrier_webhook.assert_not_called()

    @patch("src.api.routes.shipping.FulfillmentService")
    @patch("src.api.routes.shipping.get_settings")
    def test_unknown_awb_is_acknowledged(
        self, mock_settings: MagicMock, mock_service_cls: MagicMock, client: TestClient
    ) -> None:
        mock_settings.return_value.shiprocket_webhook_secret = ""
        mock_service_cls.return_value.ingest_carrier_webhook = AsyncMock(return_value=Outcome.ok("unknown_awb"))

        response = client.post("/api/v1/shipping/webhook", content=b'{"awb": "NOPE", "current_status": "Shipped"}')

        assert response.status_code == 200

    @patch("src.api.routes.shipping.get_settings")
    def test_malformed_body_is_400(self, mock_settings: MagicMock, client: TestClient) -> None:
        mock_settings.return_value.shiprocket_webhook_secret = ""

        assert client.post("/api/v1/shipping/webhook", content=b"not json").status_code == 400
        assert client.post("/api/v1/shipping/webhook", content=b"[1, 2]").status_code == 400
