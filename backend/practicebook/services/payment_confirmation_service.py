# backend/practicebook/services/payment_confirmation_service.py
"""
Stripe webhook handling.

``checkout.session.completed`` marks the session and its bill as paid and
confirms the reservation. A payment that lands after the booking was
canceled is refunded straight away.
"""

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.timezone_utils import utc_now
from ..models.bill import Bill, BillStatus
from ..models.booking import BookingStatus
from ..models.payment_session import PaymentSession, PaymentSessionStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_orchestrator import BookingOrchestrator

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"


class PaymentConfirmationService(BaseService):
    def __init__(self, db: Session, orchestrator: BookingOrchestrator):
        super().__init__(db)
        self.orchestrator = orchestrator
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.bill_repository = RepositoryFactory.create_bill_repository(db)
        self.payment_session_repository = RepositoryFactory.create_payment_session_repository(db)

    @BaseService.measure_operation("handle_stripe_event")
    def handle_event(self, event: Dict[str, Any]) -> Dict[str, Any]:
        event_type = event.get("type")
        payload = (event.get("data") or {}).get("object") or {}

        if event_type == CHECKOUT_COMPLETED:
            return self._checkout_completed(payload)
        if event_type == CHECKOUT_EXPIRED:
            return self._checkout_expired(payload)

        self.logger.debug("Ignoring Stripe event %s", event_type)
        return {"handled": False, "event_type": event_type}

    def _checkout_expired(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        payment_session = self.payment_session_repository.get_by_stripe_session_id(payload.get("id"))
        if payment_session is not None and payment_session.status == PaymentSessionStatus.OPEN.value:
            with self.transaction():
                payment_session.status = PaymentSessionStatus.EXPIRED.value
        return {"handled": True, "event_type": CHECKOUT_EXPIRED}

    def _checkout_completed(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        metadata = payload.get("metadata") or {}
        payment_session = self.payment_session_repository.get_by_stripe_session_id(payload.get("id"))
        booking_id = metadata.get("booking_id") or (
            payment_session.booking_id if payment_session is not None else None
        )
        if not booking_id:
            self.logger.warning("Checkout session %s carries no booking reference", payload.get("id"))
            return {"handled": False, "event_type": CHECKOUT_COMPLETED}

        if payment_session is not None and payment_session.status == PaymentSessionStatus.COMPLETED.value:
            # Stripe redelivers events
            return {"handled": True, "event_type": CHECKOUT_COMPLETED, "duplicate": True}

        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            self.logger.error("Payment received for unknown booking %s", booking_id)
            return {"handled": False, "event_type": CHECKOUT_COMPLETED}

        bill = self._bill_for(booking_id, metadata.get("bill_id"), payment_session)
        with self.transaction():
            if payment_session is not None:
                payment_session.status = PaymentSessionStatus.COMPLETED.value
                payment_session.payment_intent_id = payload.get("payment_intent")
            if bill is not None:
                bill.status = BillStatus.PAID.value
                bill.paid_at = utc_now()

        if booking.status == BookingStatus.CANCELED.value:
            return self._refund_late_payment(booking.id, bill)

        warnings = self.orchestrator.confirm_reservation(booking.id)
        self.log_operation("payment_confirmed", booking_id=booking.id, warning_count=len(warnings))
        return {"handled": True, "event_type": CHECKOUT_COMPLETED, "booking_id": booking.id}

    def _bill_for(
        self,
        booking_id: str,
        bill_id: Optional[str],
        payment_session: Optional[PaymentSession],
    ) -> Optional[Bill]:
        bill_id = bill_id or (payment_session.bill_id if payment_session is not None else None)
        if bill_id:
            bill = self.bill_repository.get_by_id(bill_id)
            if bill is not None:
                return bill
        return self.bill_repository.get_open_for_booking(booking_id)

    def _refund_late_payment(self, booking_id: str, bill: Optional[Bill]) -> Dict[str, Any]:
        refund = self.orchestrator.payments.refund(booking_id, "booking_already_canceled")
        if not refund.ok:
            prometheus_metrics.record_refund("error")
            self.logger.error(
                "Payment for canceled booking %s could not be refunded: %s", booking_id, refund.error
            )
            return {"handled": True, "event_type": CHECKOUT_COMPLETED, "refunded": False}

        prometheus_metrics.record_refund("success")
        if bill is not None:
            with self.transaction():
                bill.status = BillStatus.REFUNDED.value
                bill.refund_id = refund.value
        self.logger.info("Refunded late payment for canceled booking %s", booking_id)
        return {"handled": True, "event_type": CHECKOUT_COMPLETED, "refunded": True}
