"""Payment gateway webhook route."""

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

from src.core.exceptions import GatewayUnavailable
from src.services.fulfillment_service import create_shipment_in_background
from src.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "/webhook",
    status_code=status.HTTP_200_OK,
    summary="Handle payment gateway webhooks",
    description="Receives gateway events. Requires a valid Stripe-Signature header.",
)
async def payment_webhook(request: Request, background_tasks: BackgroundTasks) -> dict[str, str]:
    """Verify and apply a gateway event.

    Handles:
    - payment_intent.succeeded: confirms (or finalizes) the order
    - payment_intent.payment_failed: cancels the order and restores stock once
    - charge.refunded: completes matching refunds, marks the order refunded

    Every handler is idempotent, so redelivered events are acknowledged
    without repeating side effects. An order finalized here gets its
    shipment scheduled after the response, as with verify-payment.

    Returns:
        dict: Acknowledgment message.

    Raises:
        HTTPException: 400 if the signature is missing or invalid.
        GatewayUnavailable: 503 if processing failed transiently, so the
            gateway redelivers.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.error("Missing Stripe-Signature header in webhook request")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    service = ReconciliationService()
    try:
        event = service.verify_webhook_signature(payload, sig_header)
    except ValueError as e:
        logger.warning("Invalid gateway webhook signature: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e

    event_type = event.get("type", "")
    logger.info("Processing gateway webhook event %s (%s)", event.get("id"), event_type)

    outcome = await service.handle_gateway_event(event)
    if outcome.is_retryable:
        raise GatewayUnavailable(f"Webhook processing failed, retry later: {outcome.reason}")

    logger.info("Gateway event %s handled: %s %s", event.get("id"), outcome.kind.value, outcome.reason)
    if outcome.reason == "order_created":
        background_tasks.add_task(
            create_shipment_in_background,
            outcome.data["order_id"],
            outcome.data.get("customer_email"),
        )
    return {"status": "received"}
