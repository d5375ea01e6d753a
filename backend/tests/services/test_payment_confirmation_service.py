# backend/tests/services/test_payment_confirmation_service.py
import pytest

from practicebook.integrations.adapters import EventKind
from practicebook.models.bill import BillStatus
from practicebook.models.booking import BookingStatus
from practicebook.models.calendar_event import CalendarEventType
from practicebook.models.payment_session import PaymentSessionStatus
from practicebook.services.payment_confirmation_service import PaymentConfirmationService


def checkout_event(event_type, session_id="cs_test_existing", booking_id=None, intent="pi_123"):
    payload = {"id": session_id, "payment_intent": intent, "metadata": {}}
    if booking_id:
        payload["metadata"]["booking_id"] = booking_id
    return {"type": event_type, "data": {"object": payload}}


@pytest.fixture
def service(db, orchestrator):
    return PaymentConfirmationService(db, orchestrator)


@pytest.fixture
def reservation(make_client, make_booking, make_bill, make_payment_session, future_slot):
    start, _ = future_slot
    booking = make_booking(
        make_client(),
        start,
        status=BookingStatus.PENDING,
        event_id="evt_placeholder",
        event_type=CalendarEventType.PENDING,
    )
    bill = make_bill(booking, status=BillStatus.SENT)
    session = make_payment_session(booking, bill)
    return booking, bill, session


class TestCheckoutCompleted:
    def test_payment_confirms_reservation(self, db, service, reservation, calendar):
        booking, bill, session = reservation

        result = service.handle_event(checkout_event("checkout.session.completed", booking_id=booking.id))

        assert result == {
            "handled": True,
            "event_type": "checkout.session.completed",
            "booking_id": booking.id,
        }
        db.refresh(booking)
        db.refresh(bill)
        db.refresh(session)
        assert booking.status == BookingStatus.SCHEDULED.value
        assert bill.status == BillStatus.PAID.value
        assert bill.paid_at is not None
        assert session.status == PaymentSessionStatus.COMPLETED.value
        assert session.payment_intent_id == "pi_123"
        # Placeholder hold replaced by the real invitation
        assert calendar.calls_to("delete_event") == [("evt_placeholder",)]
        ((kind, *_),) = calendar.calls_to("create_event")
        assert kind == EventKind.FULL

    def test_booking_found_through_session_without_metadata(self, db, service, reservation):
        booking, _, _ = reservation

        result = service.handle_event(checkout_event("checkout.session.completed"))

        assert result["booking_id"] == booking.id
        db.refresh(booking)
        assert booking.status == BookingStatus.SCHEDULED.value

    def test_redelivered_event_is_a_noop(self, service, reservation, calendar):
        booking, _, _ = reservation
        event = checkout_event("checkout.session.completed", booking_id=booking.id)
        service.handle_event(event)
        calendar.calls.clear()

        result = service.handle_event(event)

        assert result["duplicate"] is True
        assert calendar.calls == []

    def test_late_payment_for_canceled_booking_is_refunded(self, db, service, reservation, payments):
        booking, bill, _ = reservation
        booking.status = BookingStatus.CANCELED.value
        bill.status = BillStatus.CANCELED.value
        db.commit()

        result = service.handle_event(checkout_event("checkout.session.completed", booking_id=booking.id))

        assert result["refunded"] is True
        assert payments.refunds == [(booking.id, "booking_already_canceled")]
        db.refresh(bill)
        db.refresh(booking)
        assert bill.status == BillStatus.REFUNDED.value
        assert bill.refund_id == "re_1"
        assert booking.status == BookingStatus.CANCELED.value

    def test_failed_late_refund_leaves_bill_paid(self, db, service, reservation, payments):
        booking, bill, _ = reservation
        booking.status = BookingStatus.CANCELED.value
        db.commit()
        payments.refund_error = "card_declined"

        result = service.handle_event(checkout_event("checkout.session.completed", booking_id=booking.id))

        assert result["refunded"] is False
        db.refresh(bill)
        assert bill.status == BillStatus.PAID.value

    def test_unknown_booking_is_not_handled(self, service):
        result = service.handle_event(
            checkout_event("checkout.session.completed", session_id="cs_unknown", booking_id="01HF4G12ABCDEF3456789XYZZZ")
        )
        assert result["handled"] is False

    def test_event_without_any_booking_reference(self, service):
        result = service.handle_event(checkout_event("checkout.session.completed", session_id="cs_unknown"))
        assert result["handled"] is False


class TestOtherEvents:
    def test_expired_session_is_marked(self, db, service, reservation):
        _, _, session = reservation

        result = service.handle_event(checkout_event("checkout.session.expired"))

        assert result["handled"] is True
        db.refresh(session)
        assert session.status == PaymentSessionStatus.EXPIRED.value

    def test_unrelated_event_types_are_ignored(self, service):
        result = service.handle_event({"type": "invoice.paid", "data": {"object": {}}})
        assert result == {"handled": False, "event_type": "invoice.paid"}
