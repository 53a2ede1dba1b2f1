"""Shiprocket carrier API client with token caching, timeouts and retry logic."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.config import get_settings
from src.core.exceptions import FulfillmentUnavailable

logger = logging.getLogger(__name__)

# Retry configuration for idempotent carrier calls
MAX_RETRIES = 3
MIN_WAIT_SECONDS = 1
MAX_WAIT_SECONDS = 8

# Refresh the bearer token this long before it actually expires
TOKEN_REFRESH_MARGIN = timedelta(minutes=10)

TRACKING_URL_TEMPLATE = "https://shiprocket.co/tracking/{awb}"

# Default parcel used when products carry no shipping dimensions
DEFAULT_PARCEL = {"length": 10, "breadth": 15, "height": 20, "weight": 0.5}
DEFAULT_HSN = 441122

_TRANSIENT_ERRORS = (requests.Timeout, requests.ConnectionError)


class ShiprocketClient:
    """Client for the Shiprocket external API.

    The bearer token is cached on the instance and refreshed when it is
    within ``TOKEN_REFRESH_MARGIN`` of expiry or when the API answers 401.
    """

    def __init__(self, session: requests.Session | None = None) -> None:
        settings = get_settings()
        self.base_url = settings.shiprocket_base_url.rstrip("/")
        self.email = settings.shiprocket_email
        self.password = settings.shiprocket_password
        self.pickup_location = settings.shiprocket_pickup_location
        self.timeout = settings.external_timeout_seconds
        self.token_ttl = timedelta(hours=settings.shiprocket_token_ttl_hours)
        self.session = session or requests.Session()
        self._token: str | None = None
        self._token_expires_at: datetime | None = None
        self._lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.email and self.password)

    def _token_valid(self) -> bool:
        if not self._token or not self._token_expires_at:
            return False
        return datetime.now(timezone.utc) < self._token_expires_at - TOKEN_REFRESH_MARGIN

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        reraise=True,
    )
    def _login(self) -> requests.Response:
        return self.session.post(
            f"{self.base_url}/auth/login",
            json={"email": self.email, "password": self.password},
            timeout=self.timeout,
        )

    def authenticate(self, force: bool = False) -> str:
        """Return a bearer token, logging in when the cached one is stale.

        Args:
            force: Discard the cached token and log in again.

        Returns:
            str: Bearer token.

        Raises:
            FulfillmentUnavailable: If credentials are missing or login fails.
        """
        with self._lock:
            if not force and self._token_valid():
                return self._token

            if not self.configured:
                raise FulfillmentUnavailable("Shipping carrier is not configured", retryable=False)

            try:
                response = self._login()
            except _TRANSIENT_ERRORS as e:
                logger.error("Shiprocket authentication timed out: %s", str(e))
                raise FulfillmentUnavailable("Shipping carrier authentication timed out") from e

            if response.status_code != 200:
                logger.error(
                    "Shiprocket authentication failed (%s): %s",
                    response.status_code,
                    response.text[:200],
                )
                raise FulfillmentUnavailable("Failed to authenticate with shipping carrier", retryable=False)

            token = response.json().get("token")
            if not token:
                raise FulfillmentUnavailable("Shipping carrier returned no token", retryable=False)

            self._token = token
            self._token_expires_at = datetime.now(timezone.utc) + self.token_ttl
            logger.info("Authenticated with Shiprocket, token valid until %s", self._token_expires_at.isoformat())
            return token

    def _send(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        """Send an authenticated request, re-authenticating once on 401."""
        url = f"{self.base_url}{path}"
        token = self.authenticate()
        response = self.session.request(
            method,
            url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.timeout,
            **kwargs,
        )
        if response.status_code == 401:
            logger.info("Shiprocket token rejected, re-authenticating")
            token = self.authenticate(force=True)
            response = self.session.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.timeout,
                **kwargs,
            )
        return response

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
        reraise=True,
    )
    def _send_with_retry(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        return self._send(method, path, **kwargs)

    def _call(self, method: str, path: str, idempotent: bool, action: str, **kwargs: Any) -> dict[str, Any]:
        try:
            if idempotent:
                response = self._send_with_retry(method, path, **kwargs)
            else:
                response = self._send(method, path, **kwargs)
        except _TRANSIENT_ERRORS as e:
            logger.error("Shiprocket %s timed out: %s", action, str(e))
            raise FulfillmentUnavailable(f"Shipping carrier timed out during {action}") from e

        if response.status_code >= 400:
            logger.error(
                "Shiprocket %s failed (%s): %s",
                action,
                response.status_code,
                response.text[:500],
            )
            raise FulfillmentUnavailable(
                f"Shipping carrier rejected {action}",
                retryable=response.status_code >= 500,
            )
        return response.json()

    def build_order_payload(self, order: dict[str, Any], customer_email: str | None = None) -> dict[str, Any]:
        """Translate a persisted order into the carrier's adhoc order payload."""
        address = order.get("shipping_address") or {}
        created_at = str(order.get("created_at") or datetime.now(timezone.utc).isoformat())
        phone = str(address.get("phone_number", "")).replace("+91", "").strip()

        return {
            "order_id": order["order_number"],
            "order_date": created_at[:10],
            "pickup_location": self.pickup_location,
            "billing_customer_name": address.get("full_name", ""),
            "billing_last_name": "",
            "billing_address": address.get("address_line1", ""),
            "billing_address_2": address.get("address_line2") or "",
            "billing_city": address.get("city", ""),
            "billing_pincode": address.get("pin_code", ""),
            "billing_state": address.get("state", ""),
            "billing_country": address.get("country") or "India",
            "billing_email": customer_email or "",
            "billing_phone": phone,
            "shipping_is_billing": True,
            "order_items": [
                {
                    "name": item["name"],
                    "sku": f"{item['product_id']}-{item.get('size') or 'default'}",
                    "units": item["quantity"],
                    "selling_price": str(item["price"]),
                    "discount": "",
                    "tax": "",
                    "hsn": DEFAULT_HSN,
                }
                for item in order.get("items", [])
            ],
            "payment_method": "Prepaid",
            "shipping_charges": str(order.get("shipping_charges", 0)),
            "giftwrap_charges": 0,
            "transaction_charges": 0,
            "total_discount": str(order.get("discount", 0)),
            "sub_total": str(order.get("subtotal", 0)),
            **DEFAULT_PARCEL,
        }

    def create_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Submit an adhoc order. Not retried: the carrier may have accepted it.

        Returns:
            dict: Carrier response with ``order_id``, ``shipment_id``, ``awb_code``.

        Raises:
            FulfillmentUnavailable: On timeout or carrier rejection.
        """
        return self._call("POST", "/orders/create/adhoc", idempotent=False, action="order creation", json=payload)

    def track_shipment(self, awb_code: str) -> dict[str, Any]:
        """Fetch live tracking data for an AWB."""
        return self._call("GET", f"/courier/track/awb/{awb_code}", idempotent=True, action="tracking")

    def cancel_shipment(self, awb_code: str) -> dict[str, Any]:
        """Cancel the carrier shipment for an AWB."""
        return self._call(
            "POST",
            "/orders/cancel",
            idempotent=True,
            action="cancellation",
            json={"awbs": [awb_code]},
        )


def tracking_url(awb_code: str) -> str:
    """Public tracking page for an AWB."""
    return TRACKING_URL_TEMPLATE.format(awb=awb_code)


@lru_cache
def get_shiprocket_client() -> ShiprocketClient:
    """Get the cached carrier client so the bearer token is shared."""
    return ShiprocketClient()
