# backend/tests/routes/test_booking_routes.py
"""HTTP surface: status codes, error envelope and practitioner scoping."""

from datetime import datetime, timedelta
from decimal import Decimal
from unittest.mock import Mock

from fastapi.testclient import TestClient
import pytest

from practicebook.api.dependencies import get_booking_orchestrator, get_db, get_payment_service
from practicebook.core.exceptions import ValidationException
from practicebook.main import app
from practicebook.models.bill import BillStatus
from practicebook.models.booking import BookingStatus
from practicebook.models.calendar_event import CalendarEventType

OWNER_ID = "01HF4G12ABCDEF3456789XYZAB"
OTHER_OWNER_ID = "01HF4G12ABCDEF3456789XYZAC"
HEADERS = {"X-Practitioner-Id": OWNER_ID}


@pytest.fixture
def payment_service():
    return Mock()


@pytest.fixture
def api(db, orchestrator, payment_service):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_booking_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


def iso(value: datetime) -> str:
    return value.isoformat()


class TestCreateBookingRoute:
    def test_missing_practitioner_header(self, api, client, future_slot):
        start, end = future_slot
        response = api.post(
            "/api/v1/bookings",
            json={"client_id": client.id, "start_time": iso(start), "end_time": iso(end)},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "MISSING_PRACTITIONER"

    def test_malformed_practitioner_header(self, api, client, future_slot):
        start, end = future_slot
        response = api.post(
            "/api/v1/bookings",
            json={"client_id": client.id, "start_time": iso(start), "end_time": iso(end)},
            headers={"X-Practitioner-Id": "not-a-ulid"},
        )
        assert response.status_code == 401

    def test_paid_booking_is_created_as_reservation(self, api, client, future_slot, payments):
        start, end = future_slot
        response = api.post(
            "/api/v1/bookings",
            json={
                "client_id": client.id,
                "start_time": iso(start),
                "end_time": iso(end),
                "amount": "80.00",
            },
            headers=HEADERS,
        )

        assert response.status_code == 201
        data = response.json()
        assert data["booking"]["status"] == BookingStatus.PENDING.value
        assert data["requires_payment"] is True
        assert data["payment_url"] == "https://checkout.stripe.test/cs_test_1"
        assert Decimal(data["bill"]["amount"]) == Decimal("80.00")
        assert data["warnings"] == []

    def test_naive_time_rejected_with_problem_details(self, api, client):
        response = api.post(
            "/api/v1/bookings",
            json={
                "client_id": client.id,
                "start_time": "2030-03-04T10:00:00",
                "end_time": "2030-03-04T11:00:00",
            },
            headers=HEADERS,
        )

        assert response.status_code == 400
        problem = response.json()
        assert problem["code"] == "INVALID_TIME"
        assert problem["status"] == 400
        assert problem["instance"] == "/api/v1/bookings"

    def test_unknown_body_field_rejected(self, api, client, future_slot):
        start, end = future_slot
        response = api.post(
            "/api/v1/bookings",
            json={
                "client_id": client.id,
                "start_time": iso(start),
                "end_time": iso(end),
                "discount": 10,
            },
            headers=HEADERS,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_client_of_other_practitioner_not_found(self, api, make_client, future_slot):
        foreign = make_client(owner_id=OTHER_OWNER_ID)
        start, end = future_slot
        response = api.post(
            "/api/v1/bookings",
            json={"client_id": foreign.id, "start_time": iso(start), "end_time": iso(end)},
            headers=HEADERS,
        )
        assert response.status_code == 404


class TestCancelRoute:
    def test_cancel_paid_booking_refunds(self, api, client, make_booking, make_bill, future_slot):
        start, _ = future_slot
        booking = make_booking(client, start)
        make_bill(booking, status=BillStatus.PAID)

        response = api.post(
            f"/api/v1/bookings/{booking.id}/cancel", json={"reason": "client ill"}, headers=HEADERS
        )

        assert response.status_code == 200
        data = response.json()
        assert data["booking"]["status"] == BookingStatus.CANCELED.value
        assert data["will_refund"] is True
        assert data["refund_id"] == "re_1"

    def test_cancel_without_body(self, api, client, make_booking, future_slot):
        start, _ = future_slot
        booking = make_booking(client, start)

        response = api.post(f"/api/v1/bookings/{booking.id}/cancel", headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["already_canceled"] is False

    def test_refund_failure_is_bad_gateway(
        self, api, client, make_booking, make_bill, future_slot, payments
    ):
        start, _ = future_slot
        booking = make_booking(client, start)
        make_bill(booking, status=BillStatus.PAID)
        payments.refund_error = "card_declined"

        response = api.post(f"/api/v1/bookings/{booking.id}/cancel", headers=HEADERS)

        assert response.status_code == 502
        problem = response.json()
        assert problem["code"] == "REFUND_FAILED"
        assert problem["errors"]["booking_id"] == booking.id

    def test_other_practitioner_forbidden(self, api, client, make_booking, future_slot):
        start, _ = future_slot
        booking = make_booking(client, start)

        response = api.post(
            f"/api/v1/bookings/{booking.id}/cancel",
            headers={"X-Practitioner-Id": OTHER_OWNER_ID},
        )
        assert response.status_code == 403

    def test_unknown_booking(self, api):
        response = api.post("/api/v1/bookings/01HF4G12ABCDEF3456789XYZZZ/cancel", headers=HEADERS)
        assert response.status_code == 404


class TestRescheduleRoute:
    def test_reschedule_moves_booking_and_event(
        self, api, client, make_booking, future_slot, calendar
    ):
        start, _ = future_slot
        booking = make_booking(client, start, event_id="evt_1", event_type=CalendarEventType.FULL)
        new_start = start + timedelta(days=1)

        response = api.post(
            f"/api/v1/bookings/{booking.id}/reschedule",
            json={"start_time": iso(new_start), "end_time": iso(new_start + timedelta(hours=1))},
            headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["calendar_synced"] is True
        assert calendar.calls_to("reschedule_event")[0][0] == "evt_1"

    def test_missing_times(self, api, client, make_booking, future_slot):
        start, _ = future_slot
        booking = make_booking(client, start)

        response = api.post(f"/api/v1/bookings/{booking.id}/reschedule", json={}, headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["code"] == "MISSING_TIME"


class TestSeriesRoutes:
    def test_create_and_end_series(self, api, client, calendar):
        response = api.post(
            "/api/v1/series",
            json={
                "client_id": client.id,
                "timezone": "Europe/Madrid",
                "dtstart_local": "2030-03-04T10:00:00",
                "duration_minutes": 50,
            },
            headers=HEADERS,
        )

        assert response.status_code == 201
        created = response.json()
        assert created["series"]["by_weekday"] == 0
        assert created["series"]["master_event_id"] == "master_1"
        assert [b["occurrence_index"] for b in created["bookings"]] == [0, 1]

        series_id = created["series"]["id"]
        response = api.post(f"/api/v1/series/{series_id}/end", headers=HEADERS)

        assert response.status_code == 200
        ended = response.json()
        assert ended["series"]["status"] == "ended"
        assert ended["already_ended"] is False

    def test_offset_on_local_anchor_rejected(self, api, client):
        response = api.post(
            "/api/v1/series",
            json={
                "client_id": client.id,
                "timezone": "Europe/Madrid",
                "dtstart_local": "2030-03-04T10:00:00+01:00",
                "duration_minutes": 50,
            },
            headers=HEADERS,
        )
        assert response.status_code == 400

    def test_unsupported_interval(self, api, client):
        response = api.post(
            "/api/v1/series",
            json={
                "client_id": client.id,
                "timezone": "Europe/Madrid",
                "dtstart_local": "2030-03-04T10:00:00",
                "duration_minutes": 50,
                "interval_weeks": 4,
            },
            headers=HEADERS,
        )
        assert response.status_code == 400


class TestPaymentRoutes:
    def test_payment_link_redirects_to_checkout(self, api, payment_service):
        payment_service.get_or_create_checkout_url.return_value = "https://checkout.stripe.com/c/cs_1"

        response = api.get(
            "/api/v1/payments/01HF4G12ABCDEF3456789XYZZZ", follow_redirects=False
        )

        assert response.status_code == 307
        assert response.headers["location"] == "https://checkout.stripe.com/c/cs_1"

    def test_webhook_confirms_reservation(
        self, db, api, payment_service, client, make_booking, make_bill, make_payment_session, future_slot
    ):
        start, _ = future_slot
        booking = make_booking(
            client, start, status=BookingStatus.PENDING,
            event_id="evt_hold", event_type=CalendarEventType.PENDING,
        )
        bill = make_bill(booking, status=BillStatus.SENT)
        make_payment_session(booking, bill)
        payment_service.construct_webhook_event.return_value = {
            "id": "evt_stripe_1",
            "type": "checkout.session.completed",
            "data": {
                "object": {
                    "id": "cs_test_existing",
                    "payment_intent": "pi_1",
                    "metadata": {"booking_id": booking.id},
                }
            },
        }

        response = api.post(
            "/api/v1/payments/webhooks/stripe",
            content=b"{}",
            headers={"stripe-signature": "t=1,v1=abc"},
        )

        assert response.status_code == 200
        assert response.json()["received"] is True
        db.refresh(booking)
        assert booking.status == BookingStatus.SCHEDULED.value

    def test_webhook_with_bad_signature(self, api, payment_service):
        payment_service.construct_webhook_event.side_effect = ValidationException(
            "Invalid Stripe signature", code="INVALID_SIGNATURE"
        )

        response = api.post(
            "/api/v1/payments/webhooks/stripe",
            content=b"{}",
            headers={"stripe-signature": "bogus"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_SIGNATURE"


class TestOperationalRoutes:
    def test_health(self, api):
        response = api.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "ok"

    def test_metrics(self, api, client, future_slot):
        start, end = future_slot
        api.post(
            "/api/v1/bookings",
            json={"client_id": client.id, "start_time": iso(start), "end_time": iso(end)},
            headers=HEADERS,
        )

        response = api.get("/metrics")

        assert response.status_code == 200
        assert "practicebook_booking_transitions_total" in response.text
