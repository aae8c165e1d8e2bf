"""
Notification Service

Emails the customer and the operator about each fulfilment outcome via
SendGrid's v3 mail/send API.

Sending is best-effort: missing configuration, a missing recipient or a
transport failure is logged and returned as a failed Outcome. A failed
email must never abort the payment flow that triggered it.
"""
import json
import logging
from html import escape
from typing import Any, Dict, Optional

import httpx

from ..models.outcome import Outcome
from ..models.transactions import ProviderInfo, TransactionRecord

logger = logging.getLogger(__name__)


def _row(label: str, value: Any, emphasis: bool = False, last: bool = False) -> str:
    border = "" if last else ' style="border-bottom: 1px solid #d1d5db;"'
    weight = " font-weight: 600;" if emphasis else ""
    return (
        f"<tr{border}>"
        f'<td style="padding: 10px 0; color: #6b7280; font-weight: 600;">{escape(label)}:</td>'
        f'<td style="padding: 10px 0; color: #111827;{weight}">{escape(str(value))}</td>'
        f"</tr>"
    )


def render_customer_email(
    transaction: TransactionRecord,
    provider: Optional[ProviderInfo],
    error: Optional[str],
    shop_name: str
) -> Dict[str, str]:
    """
    Build subject and HTML body for the customer.

    Returns:
        {"subject": str, "html": str}
    """
    subject = "❌ Data Order Failed" if error else "✅ Data Order Successful"
    color = "#dc2626" if error else "#059669"
    order = transaction.order

    rows = [
        _row("Reference", transaction.reference or "N/A"),
        _row("Network", order.network or "N/A"),
        _row("Phone", order.phone_number or "N/A"),
        _row("Data Amount", f"{order.data_amount}GB" if order.data_amount else "N/A"),
        _row("Amount Paid", f"GH₵{transaction.payment.amount:.2f}"),
    ]
    if provider is not None:
        if provider.order_id:
            rows.append(_row("Order ID", provider.order_id, emphasis=True))
        if provider.status:
            rows.append(_row("Status", provider.status))
        if provider.expected_delivery:
            rows.append(_row("Delivery Time", provider.expected_delivery))
        if provider.remaining_balance:
            rows.append(_row("Remaining Balance", provider.remaining_balance, emphasis=True, last=True))

    sections = [
        f'<h2 style="color: {color}; margin-bottom: 20px;">{escape(subject)}</h2>',
        '<div style="background: #f3f4f6; padding: 15px; border-radius: 8px; margin-bottom: 20px;">'
        '<h3 style="margin: 0 0 15px 0; color: #374151;">Order Details</h3>'
        f'<table style="width: 100%; border-collapse: collapse;">{"".join(rows)}</table>'
        "</div>",
    ]
    if error:
        sections.append(
            '<div style="background: #fee2e2; padding: 15px; border-radius: 8px; '
            'margin-bottom: 20px; border-left: 4px solid #dc2626;">'
            '<h3 style="margin: 0 0 10px 0; color: #991b1b;">Error Details</h3>'
            f'<p style="margin: 0; color: #7f1d1d;">{escape(error)}</p>'
            "</div>"
        )
    if provider is not None and provider.note:
        sections.append(
            '<div style="background: #dbeafe; padding: 15px; border-radius: 8px; margin-bottom: 20px;">'
            f'<p style="margin: 0; color: #1e40af;">{escape(provider.note)}</p>'
            "</div>"
        )
    sections.append(
        '<div style="border-top: 2px solid #e5e7eb; padding-top: 20px; margin-top: 20px;">'
        f'<p style="color: #6b7280; font-size: 12px; margin: 0;">This is an automated email from '
        f"{escape(shop_name)}. If you have any questions, please contact our support team.</p>"
        "</div>"
    )

    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        + "".join(sections)
        + "</div>"
    )
    return {"subject": subject, "html": html}


def render_operator_email(
    transaction: TransactionRecord,
    provider: Optional[ProviderInfo],
    error: Optional[str]
) -> Dict[str, str]:
    """Operator mail: same outcome, full JSON dump for manual remediation."""
    subject = (
        "⚠️ Data Order Failed - Manual Review Needed" if error
        else "📊 New Data Order Completed"
    )
    dump = json.dumps(
        {
            "transaction": transaction.model_dump(mode="json"),
            "instantData": provider.model_dump(mode="json") if provider else {},
            "error": error,
        },
        indent=2,
    )
    html = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<h2 style="margin-bottom: 20px;">{escape(subject)}</h2>'
        '<div style="background: #f3f4f6; padding: 15px; border-radius: 8px; margin-bottom: 20px;">'
        '<h3 style="margin: 0 0 15px 0; color: #374151;">Complete Transaction Data</h3>'
        '<pre style="background: #fff; padding: 10px; border-radius: 4px; overflow-x: auto; font-size: 12px;">'
        f"{escape(dump)}</pre>"
        "</div>"
        '<p style="color: #6b7280; font-size: 12px;">'
        "Log in to your admin dashboard to view full details and take action if needed.</p>"
        "</div>"
    )
    return {"subject": subject, "html": html}


class NotificationDispatcher:
    """SendGrid mailer for fulfilment outcomes."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Optional[str],
        from_email: Optional[str],
        operator_email: Optional[str],
        api_url: str = "https://api.sendgrid.com/v3/mail/send",
        shop_name: str = "Exclusave Shop"
    ):
        self.http = http
        self.api_key = api_key
        self.from_email = from_email
        self.operator_email = operator_email
        self.api_url = api_url
        self.shop_name = shop_name

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    async def _send(self, to_email: str, subject: str, html: str, sender_name: str) -> Outcome:
        payload = {
            "personalizations": [{"to": [{"email": to_email}], "subject": subject}],
            "from": {"email": self.from_email, "name": sender_name},
            "content": [{"type": "text/html", "value": html}],
        }
        try:
            response = await self.http.post(
                self.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"[EmailService] Failed to send email to {to_email}: {e}")
            return Outcome.failure(str(e) or type(e).__name__)

        logger.info(f"[EmailService] Email sent to {to_email}: {subject}")
        return Outcome.success()

    async def notify_customer(
        self,
        email: Optional[str],
        transaction: TransactionRecord,
        provider: Optional[ProviderInfo],
        error: Optional[str] = None
    ) -> Outcome:
        if not self.configured:
            logger.warning("[EmailService] SendGrid not configured, skipping email")
            return Outcome.failure("email not configured")
        if not email:
            logger.warning("[EmailService] No customer email provided")
            return Outcome.failure("missing recipient")

        message = render_customer_email(transaction, provider, error, self.shop_name)
        return await self._send(email, message["subject"], message["html"], self.shop_name)

    async def notify_operator(
        self,
        transaction: TransactionRecord,
        provider: Optional[ProviderInfo],
        error: Optional[str] = None
    ) -> Outcome:
        if not self.configured:
            logger.warning("[EmailService] SendGrid not configured, skipping admin email")
            return Outcome.failure("email not configured")
        if not self.operator_email:
            logger.warning("[EmailService] No operator email configured")
            return Outcome.failure("missing recipient")

        message = render_operator_email(transaction, provider, error)
        return await self._send(
            self.operator_email, message["subject"], message["html"], f"{self.shop_name} Admin"
        )
