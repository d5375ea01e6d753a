# backend/tests/conftest.py
"""
Shared fixtures.

Every test gets its own SQLite database file so services can commit freely,
plus recording fakes for the calendar, payment and notification adapters.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
import os
from typing import Any, Dict, List, Optional, Set, Tuple

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "testing")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from practicebook.database import Base
from practicebook.integrations.adapters import AdapterResult
import practicebook.models  # noqa: F401
from practicebook.models.bill import Bill, BillStatus
from practicebook.models.billing_settings import BillingSettings
from practicebook.models.booking import Booking, BookingMode, BookingStatus
from practicebook.models.booking_series import BookingSeries, SeriesStatus
from practicebook.models.calendar_event import CalendarEvent, CalendarEventStatus, CalendarEventType
from practicebook.models.client import Client
from practicebook.models.payment_session import PaymentSession, PaymentSessionStatus
from practicebook.services.booking_orchestrator import BookingOrchestrator

OWNER_ID = "01HF4G12ABCDEF3456789XYZAB"
OTHER_OWNER_ID = "01HF4G12ABCDEF3456789XYZAC"


class FakeCalendar:
    """In-memory calendar that records every call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail: Set[str] = set()
        # master event id -> {instance id: start_utc}
        self.instances: Dict[str, Dict[str, datetime]] = {}
        self._seq = 0

    def _new_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}_{self._seq}"

    def _record(self, method: str, *args: Any) -> Optional[AdapterResult[Any]]:
        self.calls.append((method, args))
        if method in self.fail:
            return AdapterResult.failure(f"{method} unavailable")
        return None

    def calls_to(self, method: str) -> List[Tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]

    def create_event(self, kind, start_utc, end_utc, details):
        failed = self._record("create_event", kind, start_utc, end_utc, details)
        return failed or AdapterResult.success(self._new_id(f"evt_{kind.value}"))

    def create_recurring_event(self, rule, details, excluded_local_dates=(), until_local=None):
        failed = self._record("create_recurring_event", rule, details, list(excluded_local_dates), until_local)
        return failed or AdapterResult.success(self._new_id("master"))

    def cancel_event(self, event_id):
        return self._record("cancel_event", event_id) or AdapterResult.success()

    def delete_event(self, event_id):
        return self._record("delete_event", event_id) or AdapterResult.success()

    def reschedule_event(self, event_id, start_utc, end_utc):
        return self._record("reschedule_event", event_id, start_utc, end_utc) or AdapterResult.success()

    def patch_recurrence_exclusions(self, master_event_id, excluded_local_dates, rule, until_local=None):
        failed = self._record("patch_recurrence_exclusions", master_event_id, list(excluded_local_dates))
        return failed or AdapterResult.success()

    def find_materialized_instance(self, master_event_id, approximate_start_utc, tolerance, search_window):
        failed = self._record("find_materialized_instance", master_event_id, approximate_start_utc)
        if failed:
            return failed
        for instance_id, start in self.instances.get(master_event_id, {}).items():
            if abs(start - approximate_start_utc) <= tolerance:
                return AdapterResult.success(instance_id)
        return AdapterResult.success(None)


class FakePayments:
    """Payment adapter that stores open sessions like the Stripe adapter does."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.sessions: List[Tuple[str, Decimal, str]] = []
        self.canceled_for: List[str] = []
        self.refunds: List[Tuple[str, str]] = []
        self.session_error: Optional[str] = None
        self.refund_error: Optional[str] = None

    def create_session(self, booking_id, amount, currency, payer_email, bill_id=None):
        if self.session_error:
            return AdapterResult.failure(self.session_error)
        self.sessions.append((booking_id, Decimal(amount), currency))
        stripe_id = f"cs_test_{len(self.sessions)}"
        url = f"https://checkout.stripe.test/{stripe_id}"
        self.db.add(
            PaymentSession(
                booking_id=booking_id,
                bill_id=bill_id,
                stripe_session_id=stripe_id,
                url=url,
                status=PaymentSessionStatus.OPEN.value,
                amount=Decimal(amount),
                currency=currency,
            )
        )
        self.db.flush()
        return AdapterResult.success(url)

    def cancel_sessions_for_booking(self, booking_id):
        self.canceled_for.append(booking_id)
        return AdapterResult.success()

    def refund(self, booking_id, reason):
        self.refunds.append((booking_id, reason))
        if self.refund_error:
            return AdapterResult.failure(self.refund_error)
        return AdapterResult.success(f"re_{len(self.refunds)}")


class FakeNotifications:
    def __init__(self) -> None:
        self.payment_requests: List[Dict[str, Any]] = []
        self.cancellations: List[Dict[str, Any]] = []
        self.error: Optional[str] = None

    def send_payment_request(self, to_email, client_name, amount, currency, start_utc, payment_url):
        if self.error:
            return AdapterResult.failure(self.error)
        self.payment_requests.append(
            {"to": to_email, "amount": Decimal(amount), "currency": currency, "url": payment_url}
        )
        return AdapterResult.success("msg")

    def send_cancellation(self, to_email, client_name, start_utc, refunded):
        if self.error:
            return AdapterResult.failure(self.error)
        self.cancellations.append({"to": to_email, "refunded": refunded})
        return AdapterResult.success("msg")


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'practicebook.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def payments(db) -> FakePayments:
    return FakePayments(db)


@pytest.fixture
def notifications() -> FakeNotifications:
    return FakeNotifications()


@pytest.fixture
def orchestrator(db, calendar, payments, notifications) -> BookingOrchestrator:
    return BookingOrchestrator(
        db,
        calendar_factory=lambda owner_id: calendar,
        payments=payments,
        notifications=notifications,
    )


@pytest.fixture
def future_slot():
    """A one-hour slot a few days ahead, aware UTC."""
    start = (datetime.now(timezone.utc) + timedelta(days=3)).replace(
        minute=0, second=0, microsecond=0
    )
    return start, start + timedelta(hours=1)


@pytest.fixture
def make_client(db):
    def _make(owner_id: str = OWNER_ID, name: str = "Ana Lopez", email: str = "ana@example.com") -> Client:
        client = Client(owner_id=owner_id, name=name, email=email)
        db.add(client)
        db.commit()
        return client

    return _make


@pytest.fixture
def make_billing_settings(db):
    def _make(
        owner_id: str = OWNER_ID,
        client_id: Optional[str] = None,
        session_amount: Optional[str] = "60.00",
        first_consultation_amount: Optional[str] = None,
        currency: Optional[str] = "eur",
        payment_email_lead_hours: Optional[int] = None,
    ) -> BillingSettings:
        row = BillingSettings(
            owner_id=owner_id,
            client_id=client_id,
            session_amount=Decimal(session_amount) if session_amount else None,
            first_consultation_amount=(
                Decimal(first_consultation_amount) if first_consultation_amount else None
            ),
            currency=currency,
            payment_email_lead_hours=payment_email_lead_hours,
        )
        db.add(row)
        db.commit()
        return row

    return _make


@pytest.fixture
def make_series(db):
    def _make(
        client: Client,
        dtstart_local: datetime = datetime(2030, 3, 4, 10, 0),
        timezone_name: str = "Europe/Madrid",
        interval_weeks: int = 1,
        master_event_id: Optional[str] = "master_fixture",
        until_local: Optional[datetime] = None,
        status: SeriesStatus = SeriesStatus.ACTIVE,
        owner_id: Optional[str] = None,
    ) -> BookingSeries:
        series = BookingSeries(
            owner_id=owner_id or client.owner_id,
            client_id=client.id,
            timezone=timezone_name,
            dtstart_local=dtstart_local,
            duration_minutes=50,
            interval_weeks=interval_weeks,
            by_weekday=dtstart_local.weekday(),
            mode=BookingMode.ONLINE.value,
            status=status.value,
            until_local=until_local,
            master_event_id=master_event_id,
            excluded_dates=[],
            standalone_overrides={},
        )
        db.add(series)
        db.commit()
        return series

    return _make


@pytest.fixture
def make_booking(db):
    def _make(
        client: Client,
        start: datetime,
        status: BookingStatus = BookingStatus.SCHEDULED,
        duration: timedelta = timedelta(hours=1),
        series: Optional[BookingSeries] = None,
        occurrence_index: Optional[int] = None,
        event_id: Optional[str] = None,
        event_type: CalendarEventType = CalendarEventType.FULL,
    ) -> Booking:
        booking = Booking(
            owner_id=client.owner_id,
            client_id=client.id,
            start_time=start,
            end_time=start + duration,
            status=status.value,
            series_id=series.id if series is not None else None,
            occurrence_index=occurrence_index,
            mode=BookingMode.ONLINE.value,
        )
        db.add(booking)
        db.flush()
        if event_id:
            db.add(
                CalendarEvent(
                    booking_id=booking.id,
                    google_event_id=event_id,
                    event_type=event_type.value,
                    status=CalendarEventStatus.ACTIVE.value,
                )
            )
        db.commit()
        return booking

    return _make


@pytest.fixture
def make_bill(db):
    def _make(
        booking: Booking,
        amount: str = "80.00",
        status: BillStatus = BillStatus.PENDING,
        email_scheduled_at: Optional[datetime] = None,
        currency: str = "eur",
        claimed_at: Optional[datetime] = None,
    ) -> Bill:
        bill = Bill(
            booking_id=booking.id,
            client_id=booking.client_id,
            owner_id=booking.owner_id,
            amount=Decimal(amount),
            currency=currency,
            status=status.value,
            email_scheduled_at=email_scheduled_at,
            paid_at=datetime.now(timezone.utc) if status == BillStatus.PAID else None,
            claimed_at=claimed_at,
        )
        db.add(bill)
        db.commit()
        return bill

    return _make


@pytest.fixture
def make_payment_session(db):
    def _make(
        booking: Booking,
        bill: Optional[Bill] = None,
        status: PaymentSessionStatus = PaymentSessionStatus.OPEN,
        stripe_session_id: str = "cs_test_existing",
        payment_intent_id: Optional[str] = None,
        url: str = "https://checkout.stripe.test/cs_test_existing",
    ) -> PaymentSession:
        row = PaymentSession(
            booking_id=booking.id,
            bill_id=bill.id if bill is not None else None,
            stripe_session_id=stripe_session_id,
            url=url,
            status=status.value,
            payment_intent_id=payment_intent_id,
            amount=bill.amount if bill is not None else Decimal("80.00"),
            currency="eur",
        )
        db.add(row)
        db.commit()
        return row

    return _make
