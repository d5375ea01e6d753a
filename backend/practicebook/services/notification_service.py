# backend/practicebook/services/notification_service.py
"""
Client notifications (payment requests, cancellations).

Sends through Resend, or logs to the console when ``EMAIL_PROVIDER=console``.
Failures are reported as ``AdapterResult`` values; callers decide whether to
surface them.
"""

from datetime import datetime
from decimal import Decimal
import re
from typing import Any, Dict

import resend
from sqlalchemy.orm import Session

from ..core.config import settings
from ..integrations.adapters import AdapterResult
from .base import BaseService


def _format_amount(amount: Decimal, currency: str) -> str:
    return f"{Decimal(amount):.2f} {currency.upper()}"


def _format_start(start_utc: datetime) -> str:
    return start_utc.strftime("%A %d %B %Y, %H:%M UTC")


class NotificationService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.provider = settings.email_provider
        self.from_email = settings.from_email
        if self.provider == "resend":
            if not settings.resend_api_key:
                self.logger.warning("Resend selected but RESEND_API_KEY missing; using console")
                self.provider = "console"
            else:
                resend.api_key = settings.resend_api_key

    @staticmethod
    def _html_to_text(html_content: str) -> str:
        text = re.sub(r"<[^>]+>", "", html_content)
        return re.sub(r"\s+", " ", text).strip()

    @BaseService.measure_operation("send_email")
    def send_email(self, to_email: str, subject: str, html_content: str) -> AdapterResult[str]:
        if self.provider == "console":
            self.logger.info(
                "[console email] to=%s subject=%s body=%s",
                to_email,
                subject,
                self._html_to_text(html_content),
            )
            return AdapterResult.success("console")

        email_data: Dict[str, Any] = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": self._html_to_text(html_content),
        }
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            self.logger.error(f"Failed to send email to {to_email}: {str(e)}")
            self.log_operation("email_failed", to_email=to_email, subject=subject)
            return AdapterResult.failure(f"Email sending failed: {str(e)}")

        self.log_operation("email_sent", to_email=to_email, subject=subject)
        message_id = response.get("id") if isinstance(response, dict) else None
        return AdapterResult.success(message_id or "sent")

    def send_payment_request(
        self,
        to_email: str,
        client_name: str,
        amount: Decimal,
        currency: str,
        start_utc: datetime,
        payment_url: str,
    ) -> AdapterResult[str]:
        html = (
            f"<p>Hi {client_name},</p>"
            f"<p>Your appointment on {_format_start(start_utc)} is reserved. "
            f"Please complete the payment of {_format_amount(amount, currency)} "
            f'to confirm it: <a href="{payment_url}">{payment_url}</a></p>'
        )
        return self.send_email(to_email, "Payment request for your appointment", html)

    def send_cancellation(
        self,
        to_email: str,
        client_name: str,
        start_utc: datetime,
        refunded: bool,
    ) -> AdapterResult[str]:
        html = f"<p>Hi {client_name},</p><p>Your appointment on {_format_start(start_utc)} was canceled.</p>"
        if refunded:
            html += "<p>Your payment has been refunded to the original payment method.</p>"
        return self.send_email(to_email, "Your appointment was canceled", html)
