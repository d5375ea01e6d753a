# backend/tests/services/test_series_extension_service.py
"""Weekly series extension: one new occurrence per active series per run."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import Mock

import pytest

from practicebook.core.exceptions import OccurrenceConflictException
from practicebook.domain.recurrence import occurrence_at
from practicebook.models.bill import BillStatus
from practicebook.models.booking import Booking
from practicebook.models.booking_series import SeriesStatus
from practicebook.services.booking_orchestrator import BookingOrchestrator
from practicebook.services.series_extension_service import (
    OUTCOME_CREATED,
    OUTCOME_ENDED,
    OUTCOME_SKIPPED,
    SeriesExtensionService,
)

OTHER_OWNER_ID = "01HF4G12ABCDEF3456789XYZAC"


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def orchestrator_factory(calendar):
    def _factory(session):
        return BookingOrchestrator(
            session,
            calendar_factory=lambda owner_id: calendar,
            payments=Mock(),
            notifications=Mock(),
        )

    return _factory


@pytest.fixture
def service(db, orchestrator_factory, session_factory):
    return SeriesExtensionService(db, orchestrator_factory, session_factory=session_factory)


@pytest.fixture
def materialize(make_booking):
    """Store bookings for the given occurrence indices of a series."""

    def _materialize(series, client, indices):
        for index in indices:
            occ = occurrence_at(series.rule, index)
            make_booking(
                client,
                occ.start_utc,
                duration=occ.end_utc - occ.start_utc,
                series=series,
                occurrence_index=index,
            )

    return _materialize


def series_bookings(db, series_id):
    return (
        db.query(Booking)
        .filter(Booking.series_id == series_id)
        .order_by(Booking.occurrence_index)
        .all()
    )


class TestExtendAll:
    def test_creates_the_next_occurrence(self, db, service, client, make_series, materialize, calendar):
        series = make_series(client)
        materialize(series, client, range(6))

        summary = service.extend_all()

        assert summary.to_dict() == {"processed": 1, "created": 1, "skipped": 0, "failed": 0}
        bookings = series_bookings(db, series.id)
        assert [b.occurrence_index for b in bookings] == list(range(7))
        expected = occurrence_at(series.rule, 6)
        newest = bookings[-1]
        assert newest.start_time.replace(tzinfo=None) == expected.start_utc.replace(tzinfo=None)
        assert newest.end_time.replace(tzinfo=None) == expected.end_utc.replace(tzinfo=None)
        # The recurring master already covers the occurrence
        assert calendar.calls_to("create_event") == []

    def test_each_run_adds_exactly_one_occurrence(self, db, service, client, make_series, materialize):
        series = make_series(client)
        materialize(series, client, range(6))

        service.extend_all()
        service.extend_all()

        indices = [b.occurrence_index for b in series_bookings(db, series.id)]
        assert indices == list(range(8))
        assert len(set(indices)) == len(indices)

    def test_series_past_its_end_is_marked_ended(self, db, service, client, make_series, materialize):
        series = make_series(client, until_local=datetime(2030, 3, 12))
        materialize(series, client, [0, 1])

        summary = service.extend_all()

        assert summary.skipped == 1
        db.refresh(series)
        assert series.status == SeriesStatus.ENDED.value
        assert len(series_bookings(db, series.id)) == 2

    def test_one_failing_series_does_not_stop_the_run(
        self, db, service, client, make_series, materialize
    ):
        # Owner mismatch makes the client lookup fail for this series
        broken = make_series(client, owner_id=OTHER_OWNER_ID)
        healthy = make_series(client)
        materialize(healthy, client, [0])

        summary = service.extend_all()

        assert summary.failed == 1
        assert summary.created == 1
        assert series_bookings(db, broken.id) == []
        assert [b.occurrence_index for b in series_bookings(db, healthy.id)] == [0, 1]

    def test_inactive_series_are_not_extended(self, db, service, client, make_series):
        paused = make_series(client, status=SeriesStatus.PAUSED)

        summary = service.extend_all()

        assert summary.processed == 0
        assert service.extend_series(paused.id) == OUTCOME_SKIPPED
        assert series_bookings(db, paused.id) == []

    def test_parallel_workers_use_their_own_sessions(
        self, db, client, make_series, materialize, orchestrator_factory, session_factory
    ):
        first = make_series(client)
        second = make_series(client, dtstart_local=datetime(2030, 3, 6, 18, 0))
        materialize(first, client, [0, 1])
        materialize(second, client, [0])

        service = SeriesExtensionService(
            db, orchestrator_factory, session_factory=session_factory, max_workers=2
        )
        summary = service.extend_all()

        assert summary.created == 2
        assert [b.occurrence_index for b in series_bookings(db, first.id)] == [0, 1, 2]
        assert [b.occurrence_index for b in series_bookings(db, second.id)] == [0, 1]


class TestExtendSeries:
    def test_empty_series_starts_at_occurrence_zero(self, db, service, client, make_series):
        series = make_series(client)

        assert service.extend_series(series.id) == OUTCOME_CREATED

        (booking,) = series_bookings(db, series.id)
        assert booking.occurrence_index == 0

    def test_lost_race_is_skipped(self, db, client, make_series):
        series = make_series(client)
        orchestrator = Mock()
        orchestrator.create_booking.side_effect = OccurrenceConflictException(series.id, 0)
        service = SeriesExtensionService(db, lambda session: orchestrator)

        assert service.extend_series(series.id) == OUTCOME_SKIPPED

    def test_until_reached_returns_ended(self, service, client, make_series, materialize):
        series = make_series(client, until_local=datetime(2030, 3, 4, 12, 0))
        materialize(series, client, [0])

        assert service.extend_series(series.id) == OUTCOME_ENDED

    def test_new_occurrences_get_scheduled_bills(
        self, db, service, client, make_series, materialize, make_billing_settings
    ):
        make_billing_settings(session_amount="60.00", first_consultation_amount="90.00")
        series = make_series(client)
        materialize(series, client, [0])

        service.extend_series(series.id)

        newest = series_bookings(db, series.id)[-1]
        (bill,) = newest.bills
        assert bill.status == BillStatus.SCHEDULED.value
        assert Decimal(bill.amount) == Decimal("60.00")
