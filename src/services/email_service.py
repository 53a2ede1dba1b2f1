"""Email service using Resend for transactional emails."""

import logging
from typing import Any

import resend

from src.core.config import get_settings

logger = logging.getLogger(__name__)

_WRAPPER = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #be185d; padding: 30px; border-radius: 10px 10px 0 0; text-align: center;">
        <h1 style="color: white; margin: 0; font-size: 24px;">{title}</h1>
    </div>
    <div style="background: #f9fafb; padding: 30px; border: 1px solid #e5e7eb; border-top: none; border-radius: 0 0 10px 10px;">
        {body}
    </div>
</body>
</html>
"""


class EmailService:
    """Service for sending transactional emails via Resend.

    Every method returns ``{"success": bool, ...}`` and never raises: email
    is a notification side channel and must not fail the caller's operation.
    """

    def __init__(self) -> None:
        """Initialize email service with Resend API key."""
        settings = get_settings()
        resend.api_key = settings.resend_api_key
        self.from_email = settings.email_from_address
        self.frontend_url = settings.frontend_url
        self.admin_email = settings.admin_email

    def _send(self, to_email: str, subject: str, title: str, body_html: str, text: str) -> dict[str, Any]:
        try:
            response = resend.Emails.send({
                "from": self.from_email,
                "to": [to_email],
                "subject": subject,
                "html": _WRAPPER.format(title=title, body=body_html),
                "text": text,
            })
            logger.info("Email '%s' sent to %s, id: %s", subject, to_email, response.get("id"))
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error("Failed to send email '%s' to %s: %s", subject, to_email, str(e))
            return {"success": False, "error": str(e)}

    async def send_order_confirmation(self, to_email: str, order: dict[str, Any]) -> dict[str, Any]:
        """Send the order-placed confirmation.

        Args:
            to_email: Customer email address.
            order: Persisted order row.

        Returns:
            dict: ``success`` and the Resend email id or error.
        """
        order_url = f"{self.frontend_url}/orders/{order['id']}"
        rows = "".join(
            f"<tr><td>{item['name']}{' (' + item['size'] + ')' if item.get('size') else ''}</td>"
            f"<td style=\"text-align:center;\">{item['quantity']}</td>"
            f"<td style=\"text-align:right;\">{item['price']}</td></tr>"
            for item in order.get("items", [])
        )
        body = f"""
        <p>Thank you for your order <strong>{order['order_number']}</strong>.</p>
        <table style="width:100%; border-collapse: collapse;">{rows}</table>
        <p>Subtotal: {order['subtotal']}<br>
           Shipping: {order['shipping_charges']}<br>
           Tax: {order['tax']}<br>
           Discount: -{order['discount']}<br>
           <strong>Total: {order['total']}</strong></p>
        <p><a href="{order_url}">View your order</a></p>
        """
        text = (
            f"Thank you for your order {order['order_number']}.\n"
            f"Total: {order['total']}\n"
            f"View your order: {order_url}\n"
        )
        return self._send(to_email, f"Order Confirmed - {order['order_number']}", "Order Confirmed", body, text)

    async def send_return_created_notice(self, return_request: dict[str, Any], order_number: str) -> dict[str, Any]:
        """Notify the store admin inbox that a return was requested."""
        if not self.admin_email:
            logger.debug("Admin email not configured, skipping return notice for %s", return_request["return_number"])
            return {"success": False, "error": "admin email not configured"}

        body = f"""
        <p>A new {return_request['type']} request <strong>{return_request['return_number']}</strong>
        was submitted for order {order_number}.</p>
        <p>Reason: {return_request['return_reason']}<br>
           Refund amount: {return_request['refund_amount']}</p>
        """
        text = (
            f"New {return_request['type']} request {return_request['return_number']} for order {order_number}.\n"
            f"Reason: {return_request['return_reason']}\n"
            f"Refund amount: {return_request['refund_amount']}\n"
        )
        return self._send(
            self.admin_email,
            f"New Return Request - {return_request['return_number']}",
            "New Return Request",
            body,
            text,
        )

    async def send_return_status_update(self, to_email: str, return_request: dict[str, Any]) -> dict[str, Any]:
        """Tell the customer their return moved to a new status."""
        status_label = str(return_request["status"]).replace("_", " ").title()
        notes = return_request.get("admin_notes")
        body = f"""
        <p>Your return request <strong>{return_request['return_number']}</strong> is now
        <strong>{status_label}</strong>.</p>
        {f'<p>Notes: {notes}</p>' if notes else ''}
        <p>Refund status: {return_request.get('refund_status', 'pending')}</p>
        """
        text = (
            f"Your return request {return_request['return_number']} is now {status_label}.\n"
            + (f"Notes: {notes}\n" if notes else "")
        )
        return self._send(
            to_email,
            f"Return {return_request['return_number']} - {status_label}",
            "Return Update",
            body,
            text,
        )
