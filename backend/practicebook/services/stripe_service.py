"""
Stripe payment adapter.

Implements the payment side of booking orchestration with Stripe Checkout:
creating a checkout session for a bill, expiring outstanding sessions when a
booking is canceled and refunding a captured payment. Every adapter call
returns an ``AdapterResult`` so the orchestrator decides what a failure
means; Stripe exceptions never escape these methods.

Session rows are flushed but not committed; the caller owns the transaction.
"""

from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    PaymentGatewayException,
    ServiceException,
    ValidationException,
)
from ..integrations.adapters import AdapterResult
from ..models.booking import BookingStatus
from ..models.payment_session import PaymentSessionStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger: logging.Logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePaymentService(BaseService):
    """Stripe Checkout implementation of the payment adapter."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.payment_session_repository = RepositoryFactory.create_payment_session_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.bill_repository = RepositoryFactory.create_bill_repository(db)

        self.stripe_configured = False
        if settings.stripe_secret_key:
            stripe.api_key = settings.stripe_secret_key.get_secret_value()
            stripe.max_network_retries = 1
            self.stripe_configured = True
        else:
            self.logger.warning("Stripe secret key not configured; payment calls will fail")

    def _checkout_urls(self, booking_id: str) -> Dict[str, str]:
        base = settings.public_base_url
        return {
            "success_url": f"{base}/payments/success?booking_id={booking_id}",
            "cancel_url": f"{base}/payments/cancelled?booking_id={booking_id}",
        }

    @BaseService.measure_operation("stripe_create_session")
    def create_session(
        self,
        booking_id: str,
        amount: Decimal,
        currency: str,
        payer_email: Optional[str],
        bill_id: Optional[str] = None,
    ) -> AdapterResult[str]:
        if not self.stripe_configured:
            return AdapterResult.failure("Stripe is not configured")
        if Decimal(amount) <= 0:
            return AdapterResult.failure("Cannot open a checkout session for a zero amount")

        metadata = {"booking_id": booking_id}
        if bill_id:
            metadata["bill_id"] = bill_id
        params: Dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency.lower(),
                        "unit_amount": to_minor_units(amount),
                        "product_data": {"name": "Consultation"},
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            **self._checkout_urls(booking_id),
        }
        if payer_email:
            params["customer_email"] = payer_email

        try:
            checkout = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            self.logger.error(f"Stripe checkout session failed for booking {booking_id}: {str(e)}")
            return AdapterResult.failure(f"Payment session could not be created: {str(e)}")

        self.payment_session_repository.create(
            booking_id=booking_id,
            bill_id=bill_id,
            stripe_session_id=checkout.id,
            url=checkout.url,
            status=PaymentSessionStatus.OPEN.value,
            amount=Decimal(amount),
            currency=currency.lower(),
        )
        self.log_operation("payment_session_created", booking_id=booking_id, session=checkout.id)
        return AdapterResult.success(checkout.url)

    @BaseService.measure_operation("stripe_cancel_sessions")
    def cancel_sessions_for_booking(self, booking_id: str) -> AdapterResult[None]:
        """Expire every open checkout session of a booking."""
        open_sessions = self.payment_session_repository.list_open_for_booking(booking_id)
        if not open_sessions:
            return AdapterResult.success()
        if not self.stripe_configured:
            return AdapterResult.failure("Stripe is not configured")

        errors = []
        for payment_session in open_sessions:
            try:
                stripe.checkout.Session.expire(payment_session.stripe_session_id)
            except stripe.InvalidRequestError as e:
                # Already expired or completed on Stripe's side
                self.logger.info(
                    f"Checkout session {payment_session.stripe_session_id} not expirable: {str(e)}"
                )
            except stripe.StripeError as e:
                errors.append(f"{payment_session.stripe_session_id}: {str(e)}")
                continue
            payment_session.status = PaymentSessionStatus.EXPIRED.value

        self.payment_session_repository.flush()
        if errors:
            return AdapterResult.failure("; ".join(errors))
        return AdapterResult.success()

    @BaseService.measure_operation("stripe_refund")
    def refund(self, booking_id: str, reason: str) -> AdapterResult[str]:
        if not self.stripe_configured:
            return AdapterResult.failure("Stripe is not configured")
        payment_session = self.payment_session_repository.get_completed_for_booking(booking_id)
        if payment_session is None:
            return AdapterResult.failure(f"No captured payment found for booking {booking_id}")

        try:
            refund = stripe.Refund.create(
                payment_intent=payment_session.payment_intent_id,
                reason="requested_by_customer",
                metadata={"booking_id": booking_id, "reason": reason},
                idempotency_key=f"refund-{booking_id}-{payment_session.payment_intent_id}",
            )
        except stripe.StripeError as e:
            self.logger.error(f"Stripe refund failed for booking {booking_id}: {str(e)}")
            return AdapterResult.failure(str(e))

        if getattr(refund, "status", None) in ("failed", "canceled"):
            return AdapterResult.failure(f"Refund {refund.id} ended in status {refund.status}")
        self.log_operation("payment_refunded", booking_id=booking_id, refund_id=refund.id)
        return AdapterResult.success(refund.id)

    def get_open_session_url(self, booking_id: str) -> Optional[str]:
        for payment_session in self.payment_session_repository.list_open_for_booking(booking_id):
            if payment_session.url:
                return payment_session.url
        return None

    @BaseService.measure_operation("stripe_checkout_url")
    def get_or_create_checkout_url(self, booking_id: str) -> str:
        """
        Checkout URL behind the stable payment link sent to clients.

        Reuses the newest open session of the booking; otherwise opens a new
        one for the booking's outstanding bill.
        """
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException(f"Booking {booking_id} not found", code="BOOKING_NOT_FOUND")
        if booking.status == BookingStatus.CANCELED.value:
            raise BusinessRuleException("This booking was canceled", code="BOOKING_CANCELED")

        bill = self.bill_repository.get_open_for_booking(booking_id)
        if bill is None:
            if self.bill_repository.get_paid_for_booking(booking_id) is not None:
                raise BusinessRuleException("This booking is already paid", code="ALREADY_PAID")
            raise NotFoundException("Nothing to pay for this booking", code="NO_OPEN_BILL")

        url = self.get_open_session_url(booking_id)
        if url:
            return url

        client = booking.client
        with self.transaction():
            result = self.create_session(
                booking_id,
                Decimal(bill.amount),
                bill.currency,
                client.email if client is not None else None,
                bill_id=bill.id,
            )
        if not result.ok:
            raise PaymentGatewayException(result.error or "Payment session could not be created")
        return result.value

    def construct_webhook_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe signature and return the decoded event."""
        webhook_secret = settings.stripe_webhook_secret
        if not webhook_secret:
            raise ServiceException("Webhook secret not configured")
        if not signature:
            raise ValidationException("Missing Stripe signature", code="INVALID_SIGNATURE")
        try:
            event = stripe.Webhook.construct_event(
                payload, signature, webhook_secret.get_secret_value()
            )
        except stripe.SignatureVerificationError:
            self.logger.warning("Invalid webhook signature")
            raise ValidationException("Invalid Stripe signature", code="INVALID_SIGNATURE")
        except ValueError as e:
            raise ValidationException(f"Malformed webhook payload: {str(e)}")
        return event.to_dict() if hasattr(event, "to_dict") else dict(event)
