# backend/practicebook/services/bill_notification_service.py
"""
Due payment-request emails.

Bills scheduled for a later email (series occurrences, "24h before" and
"after the session" policies) are picked up here in small claimed batches.
The claim is committed before any email goes out and released afterwards
whatever the outcome, so a failed bill is retried on the next run.
"""

from dataclasses import asdict, dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import RepositoryException, ServiceException
from ..core.timezone_utils import ensure_utc, utc_now
from ..integrations.adapters import NotificationAdapter, PaymentAdapter
from ..models.bill import Bill, BillStatus
from ..models.booking import BookingStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_orchestrator import payment_link


@dataclass
class NotificationRunSummary:
    picked: int = 0
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class BillNotificationService(BaseService):
    def __init__(
        self,
        db: Session,
        payments: PaymentAdapter,
        notifications: NotificationAdapter,
        batch_size: Optional[int] = None,
        stale_after: Optional[timedelta] = None,
    ):
        super().__init__(db)
        self.payments = payments
        self.notifications = notifications
        self.batch_size = batch_size or settings.bill_claim_batch_size
        self.stale_after = stale_after or timedelta(minutes=settings.bill_claim_stale_minutes)
        self.bill_repository = RepositoryFactory.create_bill_repository(db)
        self.payment_session_repository = RepositoryFactory.create_payment_session_repository(db)

    @BaseService.measure_operation("send_due_bills")
    def send_due_bills(self) -> NotificationRunSummary:
        now = utc_now()
        with self.transaction():
            bills = self.bill_repository.claim_due_for_notification(
                now, self.batch_size, self.stale_after
            )

        summary = NotificationRunSummary(picked=len(bills))
        for bill in bills:
            try:
                delivered = self._send(bill)
            except (ServiceException, RepositoryException) as exc:
                self.logger.error(f"Bill {bill.id} could not be processed: {str(exc)}")
                delivered = False
            finally:
                with self.transaction():
                    self.bill_repository.release_claim(bill.id)
            if delivered is None:
                continue
            if delivered:
                summary.sent += 1
                prometheus_metrics.record_bill_notification("sent")
            else:
                summary.failed += 1
                prometheus_metrics.record_bill_notification("failed")

        self.log_operation(
            "due_bills_processed",
            bills_picked=summary.picked,
            bills_sent=summary.sent,
            bills_failed=summary.failed,
        )
        return summary

    def _send(self, bill: Bill) -> Optional[bool]:
        """Send one bill. Returns None when the bill no longer needs an email."""
        booking = bill.booking
        if booking is None or booking.status == BookingStatus.CANCELED.value:
            with self.transaction():
                bill.status = BillStatus.CANCELED.value
            self.logger.info("Bill %s belongs to a canceled booking; not sent", bill.id)
            return None

        client = booking.client
        if client is None or not client.email:
            self.logger.warning("Bill %s has no client email address", bill.id)
            return False

        if not self.payment_session_repository.list_open_for_booking(booking.id):
            with self.transaction():
                session = self.payments.create_session(
                    booking.id, Decimal(bill.amount), bill.currency, client.email, bill_id=bill.id
                )
            if not session.ok:
                self.logger.warning("No payment session for bill %s: %s", bill.id, session.error)
                return False

        result = self.notifications.send_payment_request(
            client.email,
            client.name,
            Decimal(bill.amount),
            bill.currency,
            ensure_utc(booking.start_time),
            payment_link(booking.id),
        )
        if not result.ok:
            self.logger.warning("Payment email for bill %s failed: %s", bill.id, result.error)
            return False

        with self.transaction():
            bill.status = BillStatus.SENT.value
            bill.sent_at = utc_now()
        return True
