"""Shipping carrier webhook route."""

import json
import logging

from fastapi import APIRouter, HTTPException, Request, status

from src.core.config import get_settings
from src.core.signatures import verify_body_signature
from src.services.fulfillment_service import FulfillmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipping", tags=["shipping"])

SIGNATURE_HEADER = "x-shiprocket-signature"


@router.post(
    "/webhook",
    status_code=status.HTTP_200_OK,
    summary="Handle carrier status webhooks",
    description="Receives shipment status updates. Signed with HMAC-SHA256 when a webhook secret is configured.",
)
async def shipping_webhook(request: Request) -> dict[str, str]:
    """Apply a carrier status update.

    Unknown tracking numbers and stale statuses are acknowledged without
    changes.

    Raises:
        HTTPException: 401 on a bad signature, 400 on a malformed body.
    """
    body = await request.body()
    settings = get_settings()

    if settings.shiprocket_webhook_secret:
        signature = request.headers.get(SIGNATURE_HEADER)
        if not verify_body_signature(body, signature, settings.shiprocket_webhook_secret):
            logger.warning("Invalid carrier webhook signature")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid signature",
            )

    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed webhook body",
        ) from e
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed webhook body",
        )

    outcome = await FulfillmentService().ingest_carrier_webhook(payload)
    logger.info("Carrier webhook handled: %s %s", outcome.kind.value, outcome.reason)
    return {"status": "received"}
